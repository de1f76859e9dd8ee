"""数据模型测试"""

import pytest
from pydantic import ValidationError

from pipeline_http.models import (
    Config,
    HttpHeader,
    HttpMode,
    MimeType,
    NameValuePair,
    ResponseResult,
    StepConfig,
)


class TestHttpHeader:
    """测试请求头模型"""

    def test_authorization_always_masked(self):
        header = HttpHeader(name="authorization", value="Basic abc")
        assert header.masked
        assert header.display_value() == "*****"

    def test_mask_flag(self):
        assert HttpHeader(name="X-Key", value="k", mask_value=True).display_value() == "*****"
        assert HttpHeader(name="X-Key", value="k").display_value() == "k"

    def test_empty_name_rejected(self):
        with pytest.raises(ValidationError):
            HttpHeader(name="  ", value="x")


class TestResponseResult:
    """测试响应结果"""

    def test_header_lookup_is_case_insensitive(self):
        result = ResponseResult(
            status=200, headers={"Set-Cookie": ["a=1", "b=2"], "X-Other": ["1"]}
        )
        assert result.get_header("set-cookie") == ["a=1", "b=2"]
        assert result.get_header("missing") == []

    def test_str(self):
        assert str(ResponseResult(status=418)) == "Status: 418"


class TestStepConfig:
    """测试步骤配置"""

    def test_defaults(self):
        step = StepConfig(url="http://example.com")
        assert step.http_mode is HttpMode.GET
        assert step.valid_response_codes == "100:399"
        assert step.valid_response_content == ""
        assert step.content_type is MimeType.NOT_SET
        assert step.multipart_name == "file"
        assert step.wrap_as_multipart is True

    def test_negative_timeout(self):
        with pytest.raises(ValidationError):
            StepConfig(url="http://example.com", timeout=-1)

    def test_to_request_spec(self):
        step = StepConfig(
            url="http://example.com",
            http_mode=HttpMode.PUT,
            request_body="b",
            query_params=[NameValuePair(name="a", value="1")],
        )
        spec = step.to_request_spec()
        assert spec.method is HttpMode.PUT
        assert spec.body == "b"
        assert spec.params == (NameValuePair(name="a", value="1"),)

    def test_mime_type_is_set(self):
        assert not MimeType.NOT_SET.is_set
        assert MimeType.APPLICATION_JSON.is_set


class TestConfig:
    """测试应用配置"""

    def test_defaults(self):
        config = Config()
        assert config.timeout == 0
        assert config.use_system_properties is False

    def test_negative_timeout(self):
        with pytest.raises(ValidationError):
            Config(timeout=-5)
