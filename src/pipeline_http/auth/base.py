"""认证策略基础定义

所有认证器都是不可变的值对象，通过 ``kind`` 字段区分类型，
对外只暴露 prepare/authenticate 两个步骤：

- prepare: 在创建HTTP会话之前配置SSL上下文、默认认证头、中间件等
- authenticate: 会话创建之后、发送主请求之前执行的预请求（表单认证）
"""

import ssl
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from yarl import URL

from ..build_log import BuildLog

if TYPE_CHECKING:
    from ..core.network_client import HTTPClient


@dataclass
class AuthContext:
    """认证准备阶段的可变上下文，每次调用单独创建

    default_auth 和 proxy_auth 保存编码后的头部值（``Basic ...``），
    分别用于 Authorization 和 Proxy-Authorization。
    """

    target: URL
    log: BuildLog
    proxy: Optional[URL] = None
    ssl_context: Optional[ssl.SSLContext] = None
    default_auth: Optional[str] = None
    proxy_auth: Optional[str] = None
    middlewares: List[Any] = field(default_factory=list)
    connection_limit: Optional[int] = None

    def same_origin(self, url: URL) -> bool:
        """url 是否与目标地址的主机和端口相同"""
        return (url.host, url.port) == (self.target.host, self.target.port)

    def proxy_is_target(self) -> bool:
        """代理地址与目标地址的主机和端口相同"""
        if self.proxy is None:
            return False
        return (self.proxy.host, self.proxy.port) == (self.target.host, self.target.port)

    def auth_for(self, url: URL) -> Optional[str]:
        """预置的 Authorization 头只发往目标主机"""
        if self.default_auth is not None and self.same_origin(url):
            return self.default_auth
        return None


class Authenticator(BaseModel):
    """认证器基类"""

    key_name: str = Field(..., description="认证器唯一键名")

    model_config = ConfigDict(frozen=True)

    async def prepare(self, context: AuthContext) -> None:
        """配置会话级别的认证材料"""
        return None

    async def authenticate(self, client: "HTTPClient") -> None:
        """发送主请求之前执行预请求"""
        return None
