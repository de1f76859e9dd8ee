"""pipeline-http - 构建流水线的HTTP请求步骤

根据声明式配置发送一次HTTP请求，校验响应码和内容，输出响应体
"""

# 版本信息
__version__ = "1.0.0"
__title__ = "pipeline-http"
__description__ = "构建流水线的HTTP请求执行核心"
__license__ = "MIT"

from .build_log import BuildLog
from .config import AuthenticatorRegistry, get_config, get_registry
from .credentials import (
    CertificateCredential,
    InMemoryCredentialStore,
    UsernamePasswordCredential,
)
from .exceptions import (
    AuthenticatorNotFound,
    AuthFailure,
    ConfigurationError,
    ContentMismatch,
    DuplicateKeyName,
    HttpRequestException,
    InvalidRangeSpec,
    InvalidUrl,
    IOFailure,
    MalformedCredential,
    TransportFailure,
    UnacceptableStatus,
    ValidationFailure,
)
from .execution import HttpRequestExecution, execute_step, execute_step_sync
from .models import (
    Config,
    HttpHeader,
    HttpMode,
    MimeType,
    NameValuePair,
    RequestSpec,
    ResponseResult,
    StepConfig,
)
from .ranges import RangeSpec, parse_ranges
from .cli import main

# 公共API
__all__ = [
    # 执行
    "HttpRequestExecution",
    "execute_step",
    "execute_step_sync",
    # 数据模型
    "Config",
    "HttpHeader",
    "HttpMode",
    "MimeType",
    "NameValuePair",
    "RequestSpec",
    "ResponseResult",
    "StepConfig",
    "RangeSpec",
    "parse_ranges",
    # 配置与凭据
    "AuthenticatorRegistry",
    "get_config",
    "get_registry",
    "CertificateCredential",
    "InMemoryCredentialStore",
    "UsernamePasswordCredential",
    "BuildLog",
    # 异常类
    "HttpRequestException",
    "ConfigurationError",
    "InvalidRangeSpec",
    "AuthenticatorNotFound",
    "DuplicateKeyName",
    "InvalidUrl",
    "MalformedCredential",
    "TransportFailure",
    "AuthFailure",
    "ValidationFailure",
    "UnacceptableStatus",
    "ContentMismatch",
    "IOFailure",
    # 命令行入口
    "main",
    # 元数据
    "__version__",
]
