"""pytest配置文件"""

from io import StringIO
from unittest.mock import Mock

import aiohttp
import pytest
from aioresponses import aioresponses
from yarl import URL

from pipeline_http.auth import AuthContext
from pipeline_http.build_log import BuildLog
from pipeline_http.config import AuthenticatorRegistry
from pipeline_http.credentials import InMemoryCredentialStore, UsernamePasswordCredential
from pipeline_http.models import StepConfig


@pytest.fixture
def log_stream() -> StringIO:
    """构建日志的输出内容"""
    return StringIO()


@pytest.fixture
def build_log(log_stream: StringIO) -> BuildLog:
    """写入内存的构建日志"""
    return BuildLog.to_file(log_stream)


@pytest.fixture
def auth_context(build_log: BuildLog) -> AuthContext:
    """目标为 example.com 的认证上下文"""
    return AuthContext(target=URL("http://example.com/api"), log=build_log)


@pytest.fixture
def registry() -> AuthenticatorRegistry:
    """空的内存认证器注册表"""
    return AuthenticatorRegistry()


@pytest.fixture
def credential_store() -> InMemoryCredentialStore:
    """包含常用凭据的存储"""
    store = InMemoryCredentialStore()
    store.add(UsernamePasswordCredential(id="deploy", username="deployer", password="s3cret"))
    store.add(UsernamePasswordCredential(id="corp", username="CORP\\alice", password="pw"))
    store.add(UsernamePasswordCredential(id="proxy-cred", username="proxyuser", password="proxypw"))
    return store


@pytest.fixture
def make_step(tmp_path):
    """创建工作目录为临时目录的步骤配置"""

    def _make(**kwargs) -> StepConfig:
        kwargs.setdefault("url", "http://example.com/api")
        kwargs.setdefault("workspace", str(tmp_path))
        return StepConfig(**kwargs)

    return _make


@pytest.fixture
def mock_http():
    """aioresponses 模拟所有HTTP请求"""
    with aioresponses() as mocked:
        yield mocked


@pytest.fixture
def connector_error():
    """构造连接错误的工厂"""

    def _make(os_error: OSError, host: str = "example.com", cls=aiohttp.ClientConnectorError):
        key = Mock(host=host, port=80, ssl=False)
        return cls(key, os_error)

    return _make


@pytest.fixture
def recorded_calls(mock_http: aioresponses):
    """返回某个请求的全部调用记录"""

    def _calls(method: str, url: str):
        return mock_http.requests.get((method, URL(url)), [])

    return _calls
