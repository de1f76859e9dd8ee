"""网络客户端模块

负责发送请求和归类传输层错误：
- 统一的超时设置（连接、套接字读写、整体）
- SSL信任策略（忽略证书错误时信任所有证书并关闭主机名校验）
- 按旧版语义手动处理重定向
- 读取完整响应并释放连接
- 把无法解析主机和连接超时转换为合成的 404/408 结果
"""

import asyncio
import socket
import ssl
import urllib.parse
from typing import Any, Dict, List, Optional, Tuple, Union

import aiohttp
from aiohttp import hdrs
from multidict import CIMultiDict
from yarl import URL

from ..auth.base import AuthContext
from ..build_log import BuildLog
from ..exceptions import TransportFailure
from ..models import ResponseResult
from .redirect import redirect_method, should_redirect
from .request_builder import CONTENT_TYPE, OutgoingRequest

MAX_REDIRECTS = 50
DEFAULT_CONNECTION_LIMIT = 100

UNKNOWN_HOST_SUFFIX = "as 404 Not Found"
TIMEOUT_SUFFIX = "as 408 Request Timeout"


def _sanitize_url_for_logging(url: Union[str, URL]) -> str:
    """清理URL中的敏感信息用于日志记录

    Args:
        url: 原始URL

    Returns:
        去掉用户信息的URL
    """
    try:
        parsed = urllib.parse.urlsplit(str(url))
        netloc = parsed.hostname or ""
        if parsed.port:
            netloc = f"{netloc}:{parsed.port}"
        return urllib.parse.urlunsplit(
            (parsed.scheme, netloc, parsed.path, parsed.query, parsed.fragment)
        )
    except ValueError:
        return "[URL]"


def collect_headers(headers: Any) -> Dict[str, List[str]]:
    """把多值响应头转换为 名称 -> 值列表，重复的头按顺序保留"""
    collected: Dict[str, List[str]] = {}
    names: Dict[str, str] = {}
    for name, value in headers.items():
        key = names.setdefault(name.lower(), str(name))
        collected.setdefault(key, []).append(value)
    return collected


def create_trust_all_context(
    ssl_context: Optional[ssl.SSLContext] = None,
) -> ssl.SSLContext:
    """信任所有证书并关闭主机名校验（保留已加载的客户端证书）"""
    context = ssl_context or ssl.create_default_context()
    context.check_hostname = False
    context.verify_mode = ssl.CERT_NONE
    return context


def create_timeout_config(timeout: Optional[int]) -> aiohttp.ClientTimeout:
    """同一个超时值用于连接、套接字和整个请求，0 或空表示不设置"""
    if not timeout or timeout <= 0:
        return aiohttp.ClientTimeout(
            total=None, connect=None, sock_read=None, sock_connect=None
        )
    return aiohttp.ClientTimeout(
        total=timeout,
        connect=timeout,
        sock_read=timeout,
        sock_connect=timeout,
    )


def is_unknown_host(error: aiohttp.ClientConnectorError) -> bool:
    """连接错误是否由域名解析失败引起"""
    if isinstance(error, aiohttp.ClientConnectorDNSError):
        return True
    return isinstance(error.os_error, socket.gaierror)


class HTTPClient:
    """单次调用使用的HTTP客户端

    Args:
        auth_context: 认证准备后的上下文（SSL、认证头、中间件、代理）
        timeout: 超时时间(秒)，0 表示不设置
        ignore_ssl_errors: 是否忽略SSL证书错误
        trust_env: 是否读取环境变量中的代理设置
    """

    def __init__(
        self,
        auth_context: AuthContext,
        timeout: int = 0,
        ignore_ssl_errors: bool = False,
        trust_env: bool = False,
    ):
        self.auth_context = auth_context
        self.timeout = timeout
        self.ignore_ssl_errors = ignore_ssl_errors
        self.trust_env = trust_env
        self._session: Optional[aiohttp.ClientSession] = None

    @property
    def log(self) -> BuildLog:
        return self.auth_context.log

    async def __aenter__(self) -> "HTTPClient":
        """异步上下文管理器入口"""
        await self._create_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """异步上下文管理器退出"""
        await self.close()

    def _create_ssl_context(self) -> Union[ssl.SSLContext, bool]:
        """SSL配置：认证器提供的上下文优先，忽略错误时改为信任所有证书"""
        if self.ignore_ssl_errors:
            return create_trust_all_context(self.auth_context.ssl_context)
        if self.auth_context.ssl_context is not None:
            return self.auth_context.ssl_context
        return True

    def _create_connector(
        self, ssl_context: Union[ssl.SSLContext, bool]
    ) -> aiohttp.TCPConnector:
        """创建TCP连接器"""
        return aiohttp.TCPConnector(
            ssl=ssl_context,
            limit=self.auth_context.connection_limit or DEFAULT_CONNECTION_LIMIT,
            enable_cleanup_closed=True,
        )

    async def _create_session(self) -> None:
        """创建HTTP会话"""
        if self._session is not None:
            return

        connector = self._create_connector(self._create_ssl_context())
        self._session = aiohttp.ClientSession(
            connector=connector,
            timeout=create_timeout_config(self.timeout),
            middlewares=tuple(self.auth_context.middlewares),
            trust_env=self.trust_env,
            # unsafe=True 才会保存IP地址主机的Cookie
            cookie_jar=aiohttp.CookieJar(unsafe=True),
            auto_decompress=True,
            raise_for_status=False,
        )

    async def close(self) -> None:
        """关闭HTTP会话"""
        if self._session:
            await self._session.close()
            self._session = None

    def _hop_headers(
        self,
        url: URL,
        headers: CIMultiDict,
        url_credentials: Optional[Tuple[URL, str]],
    ) -> Tuple[CIMultiDict, Optional[Dict[str, str]]]:
        """计算单次发送的请求头和代理头

        Authorization 的优先级：请求中显式设置的头 > URL中的用户信息 > 认证器预置的认证。
        HTTPS 目标的代理认证放在 CONNECT 请求上，HTTP 目标则直接随请求发给代理。
        """
        hop_headers = CIMultiDict(headers)
        if hdrs.AUTHORIZATION not in hop_headers:
            authorization = self.auth_context.auth_for(url)
            if url_credentials is not None and (url.host, url.port) == (
                url_credentials[0].host,
                url_credentials[0].port,
            ):
                authorization = url_credentials[1]
            if authorization is not None:
                hop_headers[hdrs.AUTHORIZATION] = authorization

        proxy_headers: Optional[Dict[str, str]] = None
        proxy_auth = self.auth_context.proxy_auth
        if proxy_auth is not None and self.auth_context.proxy is not None:
            if url.scheme == "https":
                proxy_headers = {hdrs.PROXY_AUTHORIZATION: proxy_auth}
            elif hdrs.PROXY_AUTHORIZATION not in hop_headers:
                hop_headers[hdrs.PROXY_AUTHORIZATION] = proxy_auth
        return hop_headers, proxy_headers

    async def _send(self, request: OutgoingRequest) -> ResponseResult:
        """发送请求并按旧版策略跟随重定向"""
        if self._session is None:
            await self._create_session()

        method = request.method
        url = request.url_object
        headers = CIMultiDict(request.headers)
        data = request.data

        # URL中的用户信息转换为 Basic 认证头，只发往该主机
        url_credentials: Optional[Tuple[URL, str]] = None
        if url.user is not None:
            url_credentials = (
                url,
                aiohttp.encode_basic_auth(url.user, url.password or ""),
            )
            url = url.with_user(None)

        self.log.println(f"Sending request to url: {_sanitize_url_for_logging(url)}")

        for _ in range(MAX_REDIRECTS + 1):
            hop_headers, proxy_headers = self._hop_headers(url, headers, url_credentials)
            async with self._session.request(
                method,
                url,
                headers=hop_headers,
                data=data,
                proxy=self.auth_context.proxy,
                proxy_headers=proxy_headers,
                allow_redirects=False,
            ) as response:
                location = response.headers.get("Location")
                if not (
                    should_redirect(method, response.status, location is not None)
                    and location
                ):
                    return await self._capture(method, response)

                # 读完重定向响应以释放连接
                await response.read()
                status = response.status

            next_method = redirect_method(method, status)
            if next_method != method:
                data = None
                headers.popall(CONTENT_TYPE, None)
            method = next_method
            url = url.join(URL(location))
            self.log.println(
                f"Redirecting ({status}) to: {_sanitize_url_for_logging(url)}"
            )

        raise TransportFailure(
            f"Too many redirects: exceeded {MAX_REDIRECTS}",
            url=_sanitize_url_for_logging(request.url),
        )

    async def _capture(
        self, method: str, response: aiohttp.ClientResponse
    ) -> ResponseResult:
        """读取完整的响应内容"""
        version = response.version
        protocol = f"HTTP/{version.major}.{version.minor}" if version else "HTTP/1.1"
        self.log.println(
            f"Response Code: {protocol} {response.status} {response.reason or ''}".rstrip()
        )

        body = await response.read()
        charset = response.charset
        content: Optional[str]
        if not body and method == "HEAD":
            content = None
        else:
            try:
                content = body.decode(charset or "utf-8", errors="replace")
            except LookupError:
                content = body.decode("utf-8", errors="replace")

        return ResponseResult(
            status=response.status,
            content=content,
            headers=collect_headers(response.headers),
            charset=charset,
        )

    async def send(self, request: OutgoingRequest) -> ResponseResult:
        """发送请求，所有传输错误都是致命的（用于认证预请求）"""
        try:
            return await self._send(request)
        except (aiohttp.ClientError, asyncio.TimeoutError, OSError, ValueError) as e:
            raise TransportFailure(
                f"Request failed: {e}",
                url=_sanitize_url_for_logging(request.url),
                cause=e,
            ) from e

    async def execute(self, request: OutgoingRequest) -> ResponseResult:
        """发送请求并归类传输层错误

        - 无法解析主机 -> 合成 404
        - 连接失败或超时 -> 合成 408
        - 其他传输错误，以及 aiohttp 拒绝的请求参数 -> TransportFailure

        Raises:
            TransportFailure: 无法归类的传输错误
        """
        try:
            return await self._send(request)
        except aiohttp.ClientSSLError as e:
            raise TransportFailure(
                f"SSL error: {e}", url=_sanitize_url_for_logging(request.url), cause=e
            ) from e
        except aiohttp.ClientConnectorError as e:
            if is_unknown_host(e):
                host = request.url_object.host
                self.log.println(f"Treating unknown host {host} ({e}) {UNKNOWN_HOST_SUFFIX}")
                return ResponseResult(
                    status=404, content=f"Unknown host {host} {UNKNOWN_HOST_SUFFIX}"
                )
            return self._timeout_result(e, request)
        except asyncio.TimeoutError as e:
            return self._timeout_result(e, request)
        except (aiohttp.ClientError, OSError, ValueError) as e:
            raise TransportFailure(
                f"Request failed: {e}",
                url=_sanitize_url_for_logging(request.url),
                cause=e,
            ) from e

    def _timeout_result(
        self, error: BaseException, request: OutgoingRequest
    ) -> ResponseResult:
        message = str(error)
        if not message:
            # 整体超时抛出的 TimeoutError 没有消息
            message = (
                f"request to {_sanitize_url_for_logging(request.url)} "
                f"timed out after {self.timeout} seconds"
            )
        description = f"{error.__class__.__name__}({message})"
        self.log.println(f"Treating {description} {TIMEOUT_SUFFIX}")
        return ResponseResult(status=408, content=f"{description} {TIMEOUT_SUFFIX}")


async def execute(
    request: OutgoingRequest,
    auth_context: AuthContext,
    timeout: int = 0,
    ignore_ssl_errors: bool = False,
    trust_env: bool = False,
) -> ResponseResult:
    """在新的会话中执行一个请求，会话在所有退出路径上关闭"""
    async with HTTPClient(auth_context, timeout, ignore_ssl_errors, trust_env) as client:
        return await client.execute(request)
