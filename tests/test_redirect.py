"""重定向策略测试"""

import pytest

from pipeline_http.core.redirect import is_redirectable, redirect_method, should_redirect
from pipeline_http.models import HttpMode


class TestShouldRedirect:
    """测试 should_redirect"""

    def test_documented_cases(self):
        assert should_redirect("GET", 302, True)
        assert not should_redirect("POST", 302, True)
        assert should_redirect("GET", 303, False)

    def test_302_requires_location(self):
        assert not should_redirect("GET", 302, False)
        assert should_redirect("HEAD", 302, True)

    @pytest.mark.parametrize("status", [301, 307, 308])
    def test_permanent_and_temporary(self, status):
        assert should_redirect(HttpMode.GET, status, True)
        assert should_redirect(HttpMode.HEAD, status, True)
        assert not should_redirect(HttpMode.PUT, status, True)
        assert not should_redirect(HttpMode.DELETE, status, True)

    @pytest.mark.parametrize("method", ["GET", "POST", "PUT", "DELETE", "PATCH"])
    def test_see_other_always_redirects(self, method):
        assert should_redirect(method, 303, True)

    @pytest.mark.parametrize("status", [200, 300, 304, 305, 404])
    def test_other_statuses(self, status):
        assert not should_redirect("GET", status, True)

    def test_is_redirectable(self):
        assert is_redirectable("get")
        assert is_redirectable(HttpMode.HEAD)
        assert not is_redirectable(HttpMode.MKCOL)


class TestRedirectMethod:
    """测试重定向后的方法"""

    def test_see_other_becomes_get(self):
        assert redirect_method("POST", 303) == "GET"
        assert redirect_method(HttpMode.PUT, 303) == "GET"

    def test_see_other_keeps_head(self):
        assert redirect_method("HEAD", 303) == "HEAD"

    def test_other_statuses_keep_method(self):
        assert redirect_method("GET", 301) == "GET"
        assert redirect_method(HttpMode.HEAD, 307) == "HEAD"
