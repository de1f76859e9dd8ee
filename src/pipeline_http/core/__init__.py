"""核心模块

- request_builder: 请求构建
- redirect: 重定向策略
- network_client: 请求发送与传输错误归类
- validator: 响应校验
- file_manager: 响应输出
"""

from .request_builder import OutgoingRequest, RequestBuilder
from .network_client import HTTPClient
from .file_manager import ResultSink
from .validator import ResponseValidator

__all__ = [
    "OutgoingRequest",
    "RequestBuilder",
    "HTTPClient",
    "ResultSink",
    "ResponseValidator",
]
