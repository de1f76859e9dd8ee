"""认证策略测试"""

import datetime
import ssl

import aiohttp
import pytest
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12
from cryptography.x509.oid import NameOID
from yarl import URL

from pipeline_http.auth import (
    AuthContext,
    BasicDigestAuthentication,
    CertificateAuthentication,
    CredentialBasicAuthentication,
    CredentialNtlmAuthentication,
    FormAuthentication,
    NoAuthentication,
    NtlmAuthMiddleware,
    authenticator_adapter,
    split_ntlm_username,
)
from pipeline_http.core.network_client import HTTPClient
from pipeline_http.credentials import CertificateCredential, UsernamePasswordCredential
from pipeline_http.exceptions import AuthFailure, MalformedCredential
from pipeline_http.models import HttpMode, NameValuePair, RequestAction


@pytest.fixture(scope="module")
def keystore() -> bytes:
    """自签名证书的 PKCS#12 密钥库，口令为 changeit"""
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, "pipeline-test")])
    now = datetime.datetime.now(datetime.timezone.utc)
    certificate = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - datetime.timedelta(days=1))
        .not_valid_after(now + datetime.timedelta(days=1))
        .sign(key, hashes.SHA256())
    )
    return pkcs12.serialize_key_and_certificates(
        b"client",
        key,
        certificate,
        None,
        serialization.BestAvailableEncryption(b"changeit"),
    )


class TestNtlm:
    """测试 NTLM 认证"""

    @pytest.mark.parametrize(
        "username, expected",
        [
            ("CORP\\alice", ("CORP", "alice")),
            ("alice", (None, "alice")),
            ("\\alice", ("", "alice")),
        ],
    )
    def test_split_username(self, username, expected):
        assert split_ntlm_username(username) == expected

    def test_split_rejects_multiple_backslashes(self):
        with pytest.raises(MalformedCredential):
            split_ntlm_username("A\\B\\c")

    def test_from_credential_validates_username(self):
        credential = UsernamePasswordCredential(id="bad", username="A\\B\\c", password="x")
        with pytest.raises(MalformedCredential):
            CredentialNtlmAuthentication.from_credential(credential)

    @pytest.mark.asyncio
    async def test_prepare_installs_middleware(self, auth_context):
        credential = UsernamePasswordCredential(id="corp", username="CORP\\alice", password="pw")
        authenticator = CredentialNtlmAuthentication.from_credential(credential)

        await authenticator.prepare(auth_context)

        assert authenticator.domain == "CORP"
        assert authenticator.user == "alice"
        assert auth_context.connection_limit == 1
        middleware = auth_context.middlewares[0]
        assert isinstance(middleware, NtlmAuthMiddleware)
        assert middleware.principal == "CORP\\alice"
        assert middleware.target_host == "example.com"

    def test_principal_without_domain(self):
        assert NtlmAuthMiddleware("bob", "pw", None, "h").principal == "bob"


class TestBasicAuthentication:
    """测试用户名/密码认证"""

    @pytest.mark.asyncio
    async def test_none_does_nothing(self, auth_context):
        await NoAuthentication().prepare(auth_context)
        assert auth_context.default_auth is None
        assert auth_context.middlewares == []

    @pytest.mark.asyncio
    async def test_basic_digest_prepare(self, auth_context):
        authenticator = BasicDigestAuthentication(
            key_name="ci", user_name="builder", password="pw"
        )
        await authenticator.prepare(auth_context)

        assert auth_context.default_auth == aiohttp.encode_basic_auth("builder", "pw")
        assert isinstance(auth_context.middlewares[0], aiohttp.DigestAuthMiddleware)

    @pytest.mark.asyncio
    async def test_proxy_is_target_skips_preemptive(self, build_log, log_stream):
        context = AuthContext(
            target=URL("http://proxy.local:3128/status"),
            log=build_log,
            proxy=URL("http://proxy.local:3128"),
        )
        authenticator = BasicDigestAuthentication(key_name="ci", user_name="u", password="p")

        await authenticator.prepare(context)

        assert context.default_auth is None
        assert "Pre-emptive authentication skipped" in log_stream.getvalue()

    def test_password_hidden_in_repr(self):
        authenticator = BasicDigestAuthentication(key_name="ci", user_name="u", password="hunter2")
        assert "hunter2" not in repr(authenticator)

    @pytest.mark.asyncio
    async def test_credential_basic(self, auth_context):
        credential = UsernamePasswordCredential(id="deploy", username="deployer", password="pw")
        authenticator = CredentialBasicAuthentication.from_credential(credential)

        await authenticator.prepare(auth_context)

        assert authenticator.key_name == "deploy"
        assert auth_context.default_auth == aiohttp.encode_basic_auth("deployer", "pw")

    @pytest.mark.asyncio
    async def test_add_credentials_for_proxy(self, build_log):
        credential = UsernamePasswordCredential(id="deploy", username="deployer", password="pw")
        proxy_credential = UsernamePasswordCredential(id="px", username="proxyuser", password="ppw")
        authenticator = CredentialBasicAuthentication.from_credential(credential)

        extended = authenticator.add_credentials("proxy.local", 3128, proxy_credential)

        assert authenticator.extra_credentials == ()
        assert len(extended.extra_credentials) == 1

        context = AuthContext(
            target=URL("http://example.com/"), log=build_log, proxy=URL("http://proxy.local:3128")
        )
        await extended.prepare(context)
        assert context.proxy_auth == aiohttp.encode_basic_auth("proxyuser", "ppw")
        assert context.default_auth == aiohttp.encode_basic_auth("deployer", "pw")


class TestCertificateAuthentication:
    """测试客户端证书认证"""

    @pytest.mark.asyncio
    async def test_invalid_keystore(self, auth_context):
        credential = CertificateCredential.from_pkcs12("cert", b"not a keystore", "pw")
        authenticator = CertificateAuthentication.from_credential(credential)

        with pytest.raises(AuthFailure) as exc_info:
            await authenticator.prepare(auth_context)
        assert "Failed to load key material" in exc_info.value.message
        assert exc_info.value.key_name == "cert"

    @pytest.mark.asyncio
    async def test_wrong_password(self, auth_context, keystore):
        credential = CertificateCredential.from_pkcs12("cert", keystore, "wrong")
        with pytest.raises(AuthFailure):
            await CertificateAuthentication.from_credential(credential).prepare(auth_context)

    @pytest.mark.asyncio
    async def test_loads_client_certificate(self, auth_context, keystore):
        credential = CertificateCredential.from_pkcs12("cert", keystore, "changeit")

        await CertificateAuthentication.from_credential(credential).prepare(auth_context)

        assert isinstance(auth_context.ssl_context, ssl.SSLContext)
        assert auth_context.ssl_context.verify_mode == ssl.CERT_REQUIRED

    @pytest.mark.asyncio
    async def test_bad_trust_material_only_warns(self, auth_context, keystore, log_stream):
        credential = CertificateCredential.from_pkcs12(
            "cert", keystore, "changeit", trust_material="garbage"
        )

        await CertificateAuthentication.from_credential(credential).prepare(auth_context)

        assert auth_context.ssl_context is not None
        assert "WARNING: could not load trust material from 'cert'" in log_stream.getvalue()

    def test_keystore_round_trip(self, keystore):
        credential = CertificateCredential.from_pkcs12("cert", keystore, "changeit")
        assert credential.keystore == keystore
        restored = CertificateCredential.model_validate_json(credential.model_dump_json())
        assert restored.keystore == keystore


class TestFormAuthentication:
    """测试表单认证"""

    @pytest.fixture
    def form(self) -> FormAuthentication:
        return FormAuthentication(
            key_name="login",
            actions=(
                RequestAction(
                    url="http://example.com/login",
                    params=(NameValuePair(name="user", value="admin"),),
                ),
            ),
        )

    @pytest.mark.asyncio
    async def test_actions_are_sent(self, form, auth_context, mock_http, recorded_calls):
        mock_http.post("http://example.com/login", status=200)

        async with HTTPClient(auth_context) as client:
            await form.authenticate(client)

        call = recorded_calls("POST", "http://example.com/login")[0]
        assert call.kwargs["data"] == b"user=admin"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("status", [400, 403, 500, 599])
    async def test_error_status_fails(self, form, auth_context, mock_http, status):
        mock_http.post("http://example.com/login", status=status)

        async with HTTPClient(auth_context) as client:
            with pytest.raises(AuthFailure) as exc_info:
                await form.authenticate(client)

        assert exc_info.value.message == "Error doing authentication"
        assert exc_info.value.status_code == status
        assert exc_info.value.key_name == "login"

    @pytest.mark.asyncio
    async def test_get_action_uses_query(self, auth_context, mock_http):
        form = FormAuthentication(
            key_name="sso",
            actions=(
                RequestAction(
                    url="http://example.com/sso",
                    mode=HttpMode.GET,
                    params=(NameValuePair(name="t", value="1"),),
                ),
            ),
        )
        mock_http.get("http://example.com/sso?t=1", status=204)

        async with HTTPClient(auth_context) as client:
            await form.authenticate(client)


class TestAuthenticatorUnion:
    """测试认证器标签联合的序列化"""

    def test_round_trip(self):
        form = FormAuthentication(
            key_name="login",
            actions=(RequestAction(url="http://example.com/login"),),
        )
        data = authenticator_adapter.dump_json(form)
        restored = authenticator_adapter.validate_json(data)

        assert isinstance(restored, FormAuthentication)
        assert restored == form

    def test_kind_selects_class(self):
        restored = authenticator_adapter.validate_python(
            {"kind": "basic_digest", "key_name": "k", "user_name": "u", "password": "p"}
        )
        assert isinstance(restored, BasicDigestAuthentication)
