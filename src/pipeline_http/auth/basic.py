"""用户名/密码类认证器

- NoAuthentication: 不做任何准备
- BasicDigestAuthentication: 全局配置中的静态用户名/密码
- CredentialBasicAuthentication: 来自凭据存储的用户名/密码，支持代理凭据
"""

from typing import Literal, Optional, Tuple

import aiohttp
from pydantic import BaseModel, ConfigDict, Field

from ..credentials import UsernamePasswordCredential
from .base import AuthContext, Authenticator


class NoAuthentication(Authenticator):
    """不使用认证"""

    kind: Literal["none"] = "none"
    key_name: str = ""


class BasicDigestAuthentication(Authenticator):
    """Basic/Digest 认证

    预先发送Basic认证头；服务器返回Digest质询时由中间件重新应答
    """

    kind: Literal["basic_digest"] = "basic_digest"
    user_name: str = Field(..., description="用户名")
    password: str = Field(..., repr=False, description="密码")

    async def prepare(self, context: AuthContext) -> None:
        if context.proxy_is_target():
            context.log.println("Pre-emptive authentication skipped: target is the proxy host")
        else:
            context.default_auth = aiohttp.encode_basic_auth(self.user_name, self.password)
        context.middlewares.append(
            aiohttp.DigestAuthMiddleware(self.user_name, self.password)
        )


class HostCredential(BaseModel):
    """绑定到特定主机和端口的额外凭据"""

    host: str
    port: Optional[int] = None
    credential: UsernamePasswordCredential

    model_config = ConfigDict(frozen=True)


class CredentialBasicAuthentication(Authenticator):
    """凭据存储中的用户名/密码，使用预置Basic认证"""

    kind: Literal["credential_basic"] = "credential_basic"
    credential: UsernamePasswordCredential
    extra_credentials: Tuple[HostCredential, ...] = Field(default=())

    @classmethod
    def from_credential(
        cls, credential: UsernamePasswordCredential
    ) -> "CredentialBasicAuthentication":
        return cls(key_name=credential.id, credential=credential)

    def add_credentials(
        self, host: str, port: Optional[int], credential: UsernamePasswordCredential
    ) -> "CredentialBasicAuthentication":
        """返回附加了主机凭据的新认证器（代理场景）"""
        extra = HostCredential(host=host, port=port, credential=credential)
        return self.model_copy(
            update={"extra_credentials": self.extra_credentials + (extra,)}
        )

    async def prepare(self, context: AuthContext) -> None:
        for extra in self.extra_credentials:
            if context.proxy is not None and (extra.host, extra.port) == (
                context.proxy.host,
                context.proxy.port,
            ):
                context.proxy_auth = aiohttp.encode_basic_auth(
                    extra.credential.username, extra.credential.password
                )

        # 目标就是代理时不能为目标主机预置认证
        if context.proxy_is_target():
            context.log.println("Pre-emptive authentication skipped: target is the proxy host")
            return
        context.default_auth = aiohttp.encode_basic_auth(
            self.credential.username, self.credential.password
        )
