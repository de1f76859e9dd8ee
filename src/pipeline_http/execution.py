"""请求执行模块

把构建步骤的配置解析为不可变的执行快照，然后按顺序完成一次调用：
构建请求 -> 认证准备 -> 发送 -> 输出响应体 -> 校验 -> 写文件。

快照在解析阶段就完成了所有配置检查（URL、响应码范围、认证器引用），
任何网络请求之前都能发现配置错误。快照可以序列化为 JSON 在进程间传递。
"""

from typing import Optional

import aiohttp
from pydantic import BaseModel, ConfigDict, Field
from yarl import URL

from .async_adapter import smart_run
from .auth import (
    AnyAuthenticator,
    AuthContext,
    CertificateAuthentication,
    CredentialBasicAuthentication,
    CredentialNtlmAuthentication,
)
from .build_log import BuildLog
from .config import AuthenticatorRegistry, get_registry
from .core.file_manager import ResultSink
from .core.network_client import HTTPClient
from .core.request_builder import RequestBuilder, check_url
from .core.validator import ResponseValidator
from .credentials import CertificateCredential, CredentialStore, UsernamePasswordCredential
from .exceptions import AuthenticatorNotFound, ConfigurationError, wrap_exception
from .models import RequestSpec, ResponseResult, StepConfig
from .ranges import RangeSpec, parse_ranges


def resolve_authenticator(
    key_name: str,
    registry: Optional[AuthenticatorRegistry] = None,
    credential_store: Optional[CredentialStore] = None,
    use_ntlm: bool = False,
    url: Optional[str] = None,
) -> Optional[AnyAuthenticator]:
    """按键名解析认证器

    先查全局注册表，再查凭据存储。键名为空表示不使用认证。

    Raises:
        AuthenticatorNotFound: 键名在两处都找不到
    """
    if not key_name:
        return None

    if registry is not None:
        authenticator = registry.get(key_name)
        if authenticator is not None:
            return authenticator

    if credential_store is not None:
        credential = credential_store.lookup(key_name, url)
        if isinstance(credential, UsernamePasswordCredential):
            if use_ntlm:
                return CredentialNtlmAuthentication.from_credential(credential)
            return CredentialBasicAuthentication.from_credential(credential)
        if isinstance(credential, CertificateCredential):
            return CertificateAuthentication.from_credential(credential)

    raise AuthenticatorNotFound(key_name)


def resolve_proxy_credential(
    credential_id: str,
    credential_store: Optional[CredentialStore] = None,
    url: Optional[str] = None,
) -> UsernamePasswordCredential:
    """代理凭据必须是用户名/密码类型"""
    credential = None
    if credential_store is not None:
        credential = credential_store.lookup(credential_id, url)
    if not isinstance(credential, UsernamePasswordCredential):
        raise ConfigurationError(
            f"Proxy authentication '{credential_id}' doesn't exist anymore "
            "or is not a username/password credential type",
            config_key="proxy_authentication",
            config_value=credential_id,
        )
    return credential


class HttpRequestExecution(BaseModel):
    """一次调用的不可变执行快照

    认证器中已经包含凭据的明文值，不持有凭据存储的引用。
    """

    request: RequestSpec
    range_spec: RangeSpec
    valid_response_content: str = Field(default="")
    authenticator: Optional[AnyAuthenticator] = Field(default=None)

    # 传输
    timeout: int = Field(default=0, ge=0)
    ignore_ssl_errors: bool = Field(default=False)
    use_system_properties: bool = Field(default=False)
    proxy: Optional[str] = Field(default=None)
    proxy_credential: Optional[UsernamePasswordCredential] = Field(default=None)

    # 输出
    console_log_response_body: bool = Field(default=False)
    quiet: bool = Field(default=False)
    output_file: Optional[str] = Field(default=None)
    workspace: str = Field(default=".")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_step(
        cls,
        step: StepConfig,
        registry: Optional[AuthenticatorRegistry] = None,
        credential_store: Optional[CredentialStore] = None,
    ) -> "HttpRequestExecution":
        """解析步骤配置

        Raises:
            InvalidUrl: 请求或代理URL格式错误
            InvalidRangeSpec: 响应码范围格式错误
            AuthenticatorNotFound: 认证器引用无法解析
            ConfigurationError: 代理凭据无效
        """
        check_url(step.url)
        range_spec = parse_ranges(step.valid_response_codes)

        if registry is None:
            registry = get_registry()
        authenticator = resolve_authenticator(
            step.authentication, registry, credential_store, step.use_ntlm, step.url
        )

        proxy = None
        proxy_credential = None
        if step.http_proxy:
            proxy = str(check_url(step.http_proxy))
            if step.proxy_authentication:
                proxy_credential = resolve_proxy_credential(
                    step.proxy_authentication, credential_store, step.url
                )

        return cls(
            request=step.to_request_spec(),
            range_spec=range_spec,
            valid_response_content=step.valid_response_content,
            authenticator=authenticator,
            timeout=step.timeout,
            ignore_ssl_errors=step.ignore_ssl_errors,
            use_system_properties=step.use_system_properties,
            proxy=proxy,
            proxy_credential=proxy_credential,
            console_log_response_body=step.console_log_response_body,
            quiet=step.quiet,
            output_file=step.output_file,
            workspace=step.workspace,
        )

    def to_json(self) -> str:
        """序列化快照（包含凭据明文，只能在可信进程间传递）"""
        return self.model_dump_json()

    @classmethod
    def from_json(cls, data: str) -> "HttpRequestExecution":
        return cls.model_validate_json(data)

    def _log_request(self, log: BuildLog) -> None:
        log.println(f"HttpMethod: {self.request.method.value}")
        url = self.request.url
        parsed = URL(url)
        if parsed.password:
            url = str(parsed.with_password("*****"))
        log.println(f"URL: {url}")
        for header in self.request.headers:
            log.println(f"{header.name}: {header.display_value()}")

    async def run(self, log: Optional[BuildLog] = None) -> ResponseResult:
        """执行请求并校验响应

        Raises:
            TransportFailure: 无法归类的传输错误
            AuthFailure: 认证失败
            ValidationFailure: 状态码或内容校验失败
            IOFailure: 上传文件无法读取或输出文件无法写入
        """
        if self.quiet:
            log = BuildLog(quiet=True)
        elif log is None:
            log = BuildLog()

        self._log_request(log)

        proxy = URL(self.proxy) if self.proxy else None
        context = AuthContext(target=check_url(self.request.url), log=log, proxy=proxy)

        authenticator = self.authenticator
        if authenticator is not None:
            log.println(f"Using authentication: {authenticator.key_name}")
        if self.proxy_credential is not None and proxy is not None:
            log.println(f"Using proxy authentication: {self.proxy_credential.id}")
            if isinstance(authenticator, CredentialBasicAuthentication):
                authenticator = authenticator.add_credentials(
                    proxy.host, proxy.port, self.proxy_credential
                )
            else:
                context.proxy_auth = aiohttp.encode_basic_auth(
                    self.proxy_credential.username, self.proxy_credential.password
                )

        builder = RequestBuilder(self.workspace)
        with builder.build(self.request) as request:
            if authenticator is not None:
                await authenticator.prepare(context)
            async with HTTPClient(
                context,
                timeout=self.timeout,
                ignore_ssl_errors=self.ignore_ssl_errors,
                trust_env=self.use_system_properties,
            ) as client:
                if authenticator is not None:
                    await authenticator.authenticate(client)
                result = await client.execute(request)

        return await self._process(result, log)

    async def _process(self, result: ResponseResult, log: BuildLog) -> ResponseResult:
        """响应体先写入日志，再校验，最后写文件"""
        sink = ResultSink(
            log,
            console_echo=self.console_log_response_body,
            output_file=self.output_file,
            workspace=self.workspace,
        )
        validator = ResponseValidator(log)

        sink.echo(result)
        validator.validate_status(result, self.range_spec)
        validator.validate_content(result, self.valid_response_content)
        await sink.write_output(result)
        return result


async def execute_step(
    step: StepConfig,
    registry: Optional[AuthenticatorRegistry] = None,
    credential_store: Optional[CredentialStore] = None,
    log: Optional[BuildLog] = None,
) -> ResponseResult:
    """解析配置并执行请求 - 异步版本"""
    execution = HttpRequestExecution.from_step(step, registry, credential_store)
    return await execution.run(log)


@wrap_exception
def execute_step_sync(
    step: StepConfig,
    registry: Optional[AuthenticatorRegistry] = None,
    credential_store: Optional[CredentialStore] = None,
    log: Optional[BuildLog] = None,
) -> ResponseResult:
    """解析配置并执行请求 - 同步版本

    在任何环境中都能同步调用（包括已有事件循环的环境）
    """
    return smart_run(execute_step(step, registry, credential_store, log))
