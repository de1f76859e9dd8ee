"""异常类测试"""

import pytest

from pipeline_http.exceptions import (
    AuthenticatorNotFound,
    AuthFailure,
    ConfigurationError,
    DuplicateKeyName,
    HttpRequestException,
    InvalidUrl,
    IOFailure,
    TransportFailure,
    UnacceptableStatus,
    ValidationFailure,
    wrap_exception,
)
from pipeline_http.models import ResponseResult


class TestExceptionHierarchy:
    """测试异常层次结构"""

    @pytest.mark.parametrize(
        "error",
        [
            AuthenticatorNotFound("k"),
            DuplicateKeyName("k"),
            InvalidUrl("x"),
        ],
    )
    def test_configuration_errors(self, error):
        assert isinstance(error, ConfigurationError)
        assert isinstance(error, HttpRequestException)

    def test_base_context_rendering(self):
        error = HttpRequestException("boom", context={"step": 1})
        assert str(error) == "boom (Context: step=1)"
        assert str(HttpRequestException("plain")) == "plain"

    def test_configuration_error_str(self):
        error = ConfigurationError("bad", config_key="timeout", config_value=-1)
        assert str(error) == "bad | Key: timeout | Value: -1"

    def test_transport_failure_str(self):
        cause = ConnectionResetError()
        error = TransportFailure("failed", url="http://h/", cause=cause)
        assert str(error) == "failed | URL: http://h/ | Cause: ConnectionResetError"

    def test_auth_failure_str(self):
        error = AuthFailure("Error doing authentication", key_name="login", status_code=403)
        assert str(error) == "Error doing authentication | Authenticator: login | Status: 403"

    def test_validation_failure_carries_response(self):
        result = ResponseResult(status=500)
        error = UnacceptableStatus(500, "100:399", response=result)
        assert isinstance(error, ValidationFailure)
        assert error.response is result

    def test_io_failure_str(self):
        error = IOFailure("cannot write", file_path="/x", operation="write")
        assert str(error) == "cannot write | Operation: write | File: /x"


class TestWrapException:
    """测试异常包装装饰器"""

    def test_os_error(self):
        @wrap_exception
        def fail():
            raise PermissionError("denied")

        with pytest.raises(IOFailure):
            fail()

    def test_value_error(self):
        @wrap_exception
        def fail():
            raise ValueError("bad")

        with pytest.raises(ConfigurationError):
            fail()

    def test_package_errors_pass_through(self):
        @wrap_exception
        def fail():
            raise DuplicateKeyName("k")

        with pytest.raises(DuplicateKeyName):
            fail()

    def test_keeps_name(self):
        @wrap_exception
        def named():
            return 1

        assert named.__name__ == "named"
        assert named() == 1
