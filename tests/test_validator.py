"""响应校验测试"""

import pytest

from pipeline_http.core.validator import ResponseValidator
from pipeline_http.exceptions import ContentMismatch, UnacceptableStatus, ValidationFailure
from pipeline_http.models import ResponseResult
from pipeline_http.ranges import parse_ranges


@pytest.fixture
def validator(build_log) -> ResponseValidator:
    return ResponseValidator(build_log)


class TestStatusValidation:
    """测试状态码校验"""

    def test_status_in_range(self, validator, log_stream):
        validator.validate_status(ResponseResult(status=200), parse_ranges("100:399"))
        assert "Success: Status code 200 is in the accepted range: [100:399]" in (
            log_stream.getvalue()
        )

    def test_status_out_of_range(self, validator):
        result = ResponseResult(status=400, content="bad")
        with pytest.raises(UnacceptableStatus) as exc_info:
            validator.validate_status(result, parse_ranges("100:399"))

        error = exc_info.value
        assert str(error) == "Fail: the returned code 400 is not in the accepted range: 100:399"
        assert error.response is result
        assert error.status == 400

    def test_wider_range_accepts(self, validator):
        validator.validate_status(ResponseResult(status=400), parse_ranges("100:599"))

    def test_default_range_reports_default_text(self, validator):
        with pytest.raises(UnacceptableStatus) as exc_info:
            validator.validate_status(ResponseResult(status=500), parse_ranges(""))
        assert exc_info.value.accepted == "100:399"

    def test_without_log(self):
        ResponseValidator().validate_status(ResponseResult(status=204), parse_ranges("204"))


class TestContentValidation:
    """测试内容校验"""

    @pytest.mark.parametrize("required", ["", None])
    def test_empty_requirement_passes(self, validator, required):
        validator.validate_content(ResponseResult(status=200, content=None), required)

    def test_content_found(self, validator):
        result = ResponseResult(status=200, content="a needle in haystack")
        validator.validate_content(result, "needle")

    def test_content_missing(self, validator):
        result = ResponseResult(status=200, content="no match")
        with pytest.raises(ContentMismatch) as exc_info:
            validator.validate_content(result, "needle")

        error = exc_info.value
        assert error.body_length == 8
        assert "'needle'" in str(error)
        assert "(response length: 8)" in str(error)
        assert isinstance(error, ValidationFailure)

    def test_case_sensitive(self, validator):
        with pytest.raises(ContentMismatch):
            validator.validate_content(ResponseResult(status=200, content="NEEDLE"), "needle")

    def test_null_content_fails_with_zero_length(self, validator):
        with pytest.raises(ContentMismatch) as exc_info:
            validator.validate_content(ResponseResult(status=200), "x")
        assert exc_info.value.body_length == 0

    def test_validate_checks_status_first(self, validator):
        result = ResponseResult(status=500, content="ok")
        with pytest.raises(UnacceptableStatus):
            validator.validate(result, parse_ranges(None), "missing")
