"""NTLM 认证

用户名格式为 ``DOMAIN\\user`` 或 ``user``。握手需要在同一个连接上完成，
因此会话连接数限制为 1。
"""

import base64
from typing import Any, Awaitable, Callable, Literal, Optional, Tuple

import aiohttp
import spnego
from aiohttp import hdrs

from ..credentials import UsernamePasswordCredential
from ..exceptions import MalformedCredential
from .base import AuthContext, Authenticator

NTLM_SCHEME = "NTLM"


def split_ntlm_username(username: str) -> Tuple[Optional[str], str]:
    """拆分 ``DOMAIN\\user``

    Returns:
        (domain, user)，没有域时 domain 为 None

    Raises:
        MalformedCredential: 用户名包含多个反斜杠
    """
    pieces = username.split("\\")
    if len(pieces) == 2:
        return pieces[0], pieces[1]
    if len(pieces) == 1:
        return None, pieces[0]
    raise MalformedCredential(
        "Username contains more than one \\", config_key="username"
    )


def _ntlm_challenge(response: aiohttp.ClientResponse) -> Optional[bytes]:
    for value in response.headers.getall(hdrs.WWW_AUTHENTICATE, []):
        scheme, _, token = value.strip().partition(" ")
        if scheme.upper() == NTLM_SCHEME and token.strip():
            return base64.b64decode(token.strip())
    return None


class NtlmAuthMiddleware:
    """会话中间件：对目标主机完成 NTLM 协商→质询→认证 三步握手"""

    def __init__(
        self,
        user: str,
        password: str,
        domain: Optional[str],
        target_host: Optional[str],
    ):
        self.user = user
        self.password = password
        self.domain = domain
        self.target_host = target_host

    @property
    def principal(self) -> str:
        return f"{self.domain}\\{self.user}" if self.domain else self.user

    def _token(self, context: Any, challenge: Optional[bytes] = None) -> str:
        out = context.step(challenge) if challenge is not None else context.step()
        return f"{NTLM_SCHEME} " + base64.b64encode(out).decode("ascii")

    async def __call__(
        self,
        request: aiohttp.ClientRequest,
        handler: Callable[[aiohttp.ClientRequest], Awaitable[aiohttp.ClientResponse]],
    ) -> aiohttp.ClientResponse:
        if request.url.host != self.target_host:
            return await handler(request)

        context = spnego.client(
            self.principal,
            self.password,
            hostname=request.url.host,
            service="http",
            protocol="ntlm",
        )
        request.headers[hdrs.AUTHORIZATION] = self._token(context)
        response = await handler(request)
        if response.status != 401:
            return response

        challenge = _ntlm_challenge(response)
        if challenge is None:
            return response

        # 读完质询响应，连接回到连接池供下一步复用
        await response.read()
        request.headers[hdrs.AUTHORIZATION] = self._token(context, challenge)
        return await handler(request)


class CredentialNtlmAuthentication(Authenticator):
    """凭据存储中的用户名/密码，使用 NTLM 协商"""

    kind: Literal["credential_ntlm"] = "credential_ntlm"
    credential: UsernamePasswordCredential

    @classmethod
    def from_credential(
        cls, credential: UsernamePasswordCredential
    ) -> "CredentialNtlmAuthentication":
        # 配置阶段就拒绝格式错误的用户名
        split_ntlm_username(credential.username)
        return cls(key_name=credential.id, credential=credential)

    @property
    def domain(self) -> Optional[str]:
        return split_ntlm_username(self.credential.username)[0]

    @property
    def user(self) -> str:
        return split_ntlm_username(self.credential.username)[1]

    async def prepare(self, context: AuthContext) -> None:
        domain, user = split_ntlm_username(self.credential.username)
        context.middlewares.append(
            NtlmAuthMiddleware(user, self.credential.password, domain, context.target.host)
        )
        context.connection_limit = 1
