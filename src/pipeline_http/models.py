"""数据模型定义

使用 Pydantic 进行类型安全的数据验证和模型定义
"""

from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class HttpMode(str, Enum):
    """支持的HTTP方法"""

    GET = "GET"
    HEAD = "HEAD"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"
    OPTIONS = "OPTIONS"
    PATCH = "PATCH"
    MKCOL = "MKCOL"


class MimeType(str, Enum):
    """Content-Type / Accept 可选值，NOT_SET 表示不发送该头"""

    NOT_SET = ""
    TEXT_HTML = "text/html"
    TEXT_PLAIN = "text/plain"
    APPLICATION_FORM = "application/x-www-form-urlencoded"
    APPLICATION_JSON = "application/json"
    APPLICATION_TAR = "application/x-tar"
    APPLICATION_ZIP = "application/zip"
    APPLICATION_OCTETSTREAM = "application/octet-stream"

    @property
    def is_set(self) -> bool:
        return self is not MimeType.NOT_SET


class NameValuePair(BaseModel):
    """名称/值对，用于查询参数和表单参数"""

    name: str = Field(..., description="参数名")
    value: str = Field(default="", description="参数值")

    model_config = ConfigDict(frozen=True)

    def as_tuple(self) -> Tuple[str, str]:
        return (self.name, self.value)


class HttpHeader(BaseModel):
    """自定义请求头"""

    name: str = Field(..., description="头名称")
    value: str = Field(default="", description="头的值")
    mask_value: bool = Field(default=False, description="日志中是否隐藏值")

    model_config = ConfigDict(frozen=True)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v: str) -> str:
        """头名称不能为空"""
        if not v.strip():
            raise ValueError("Header name must not be empty")
        return v.strip()

    @property
    def masked(self) -> bool:
        """Authorization 头总是在日志中隐藏"""
        return self.mask_value or self.name.lower() == "authorization"

    def display_value(self) -> str:
        return "*****" if self.masked else self.value


class FormDataPart(BaseModel):
    """multipart/form-data 的单个部分"""

    name: str = Field(..., description="表单字段名")
    file_name: Optional[str] = Field(default=None, description="上传时使用的文件名")
    content_type: Optional[str] = Field(default=None, description="该部分的Content-Type")
    body: Optional[str] = Field(default=None, description="文本内容")
    upload_file: Optional[str] = Field(default=None, description="要上传的文件路径")

    model_config = ConfigDict(frozen=True)


class RequestSpec(BaseModel):
    """一次HTTP调用的声明式描述"""

    url: str = Field(..., description="请求URL")
    method: HttpMode = Field(default=HttpMode.GET, description="HTTP方法")
    body: Optional[str] = Field(default=None, description="请求体")
    params: Tuple[NameValuePair, ...] = Field(default=(), description="参数（请求体为空时使用）")
    headers: Tuple[HttpHeader, ...] = Field(default=(), description="自定义请求头")
    content_type: MimeType = Field(default=MimeType.NOT_SET)
    accept_type: MimeType = Field(default=MimeType.NOT_SET)

    # 文件上传
    upload_file: Optional[str] = Field(default=None, description="上传文件路径")
    multipart_name: str = Field(default="file", description="multipart文件字段名")
    wrap_as_multipart: bool = Field(default=True, description="是否以multipart方式上传文件")
    form_data: Tuple[FormDataPart, ...] = Field(default=(), description="multipart表单数据")

    # GET 请求携带请求体的扩展
    allow_get_body: bool = Field(default=False, description="允许GET请求携带请求体")

    model_config = ConfigDict(frozen=True)


class RequestAction(BaseModel):
    """表单认证中的一个预请求步骤"""

    url: str = Field(..., description="预请求URL")
    mode: HttpMode = Field(default=HttpMode.POST, description="HTTP方法")
    params: Tuple[NameValuePair, ...] = Field(default=(), description="请求参数")

    model_config = ConfigDict(frozen=True)

    def to_request_spec(self) -> RequestSpec:
        return RequestSpec(url=self.url, method=self.mode, params=self.params)


class ResponseResult(BaseModel):
    """请求执行结果

    content 可能是合成的（传输失败被归类为404/408时），而不是从网络读取的
    """

    status: int = Field(..., description="HTTP状态码")
    content: Optional[str] = Field(default=None, description="响应内容")
    headers: Dict[str, List[str]] = Field(default_factory=dict, description="响应头")
    charset: Optional[str] = Field(default=None, description="响应字符集")

    def get_header(self, name: str) -> List[str]:
        """大小写不敏感地获取响应头的全部值"""
        values: List[str] = []
        for key, items in self.headers.items():
            if key.lower() == name.lower():
                values.extend(items)
        return values

    def __str__(self) -> str:
        return f"Status: {self.status}"


class StepConfig(BaseModel):
    """构建步骤提交的完整请求配置"""

    url: str = Field(..., description="请求URL")
    http_mode: HttpMode = Field(default=HttpMode.GET)
    request_body: Optional[str] = Field(default=None)
    custom_headers: List[HttpHeader] = Field(default_factory=list)
    query_params: List[NameValuePair] = Field(default_factory=list)
    accept_type: MimeType = Field(default=MimeType.NOT_SET)
    content_type: MimeType = Field(default=MimeType.NOT_SET)

    # 认证与传输
    authentication: str = Field(default="", description="认证器键名或凭据ID")
    use_ntlm: bool = Field(default=False, description="用户名/密码凭据使用NTLM")
    timeout: int = Field(default=0, description="超时时间(秒)，0表示不设置")
    ignore_ssl_errors: bool = Field(default=False)
    http_proxy: str = Field(default="", description="代理地址，例如 http://proxy:3128")
    proxy_authentication: str = Field(default="", description="代理凭据ID")
    use_system_properties: bool = Field(default=False, description="读取环境变量中的代理设置")

    # 响应校验
    valid_response_codes: str = Field(default="100:399")
    valid_response_content: str = Field(default="")

    # 输出
    console_log_response_body: bool = Field(default=False)
    quiet: bool = Field(default=False, description="不向构建日志输出请求细节")
    output_file: Optional[str] = Field(default=None)

    # 上传
    upload_file: Optional[str] = Field(default=None)
    multipart_name: str = Field(default="file")
    wrap_as_multipart: bool = Field(default=True)
    form_data: List[FormDataPart] = Field(default_factory=list)
    allow_get_body: bool = Field(default=False)

    workspace: str = Field(default=".", description="相对路径的基准目录")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """超时不能为负数"""
        if v < 0:
            raise ValueError("Timeout must be zero or positive")
        return v

    def to_request_spec(self) -> RequestSpec:
        """转换为不可变的请求描述"""
        return RequestSpec(
            url=self.url,
            method=self.http_mode,
            body=self.request_body,
            params=tuple(self.query_params),
            headers=tuple(self.custom_headers),
            content_type=self.content_type,
            accept_type=self.accept_type,
            upload_file=self.upload_file,
            multipart_name=self.multipart_name,
            wrap_as_multipart=self.wrap_as_multipart,
            form_data=tuple(self.form_data),
            allow_get_body=self.allow_get_body,
        )


class Config(BaseModel):
    """应用配置模型"""

    timeout: int = Field(default=0, description="默认超时时间(秒)，0表示不设置")
    valid_response_codes: str = Field(default="100:399", description="默认允许的响应码")
    registry_file: str = Field(default="", description="认证器配置文件路径")
    use_system_properties: bool = Field(default=False, description="读取环境变量中的代理设置")

    @field_validator("timeout")
    @classmethod
    def validate_timeout(cls, v: int) -> int:
        """超时不能为负数"""
        if v < 0:
            raise ValueError("Timeout must be zero or positive")
        return v

    model_config = ConfigDict(extra="allow")  # 允许额外配置项
