"""表单认证

按顺序执行一组预请求（通常是登录表单提交），会话中的Cookie随后被主请求复用。
任何一步返回 4xx/5xx 都视为认证失败。
"""

from typing import TYPE_CHECKING, Literal, Tuple

from pydantic import Field

from ..core.request_builder import RequestBuilder
from ..exceptions import AuthFailure
from ..models import RequestAction
from .base import Authenticator

if TYPE_CHECKING:
    from ..core.network_client import HTTPClient


class FormAuthentication(Authenticator):
    """表单认证"""

    kind: Literal["form"] = "form"
    actions: Tuple[RequestAction, ...] = Field(default=(), description="预请求列表")

    async def authenticate(self, client: "HTTPClient") -> None:
        builder = RequestBuilder()
        for action in self.actions:
            with builder.build(action.to_request_spec()) as request:
                result = await client.send(request)

            # 400(客户端错误) 到 599(服务器错误)
            if 400 <= result.status <= 599:
                raise AuthFailure(
                    "Error doing authentication",
                    key_name=self.key_name,
                    status_code=result.status,
                    context={"url": action.url},
                )
