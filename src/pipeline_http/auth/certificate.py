"""客户端证书认证

从 PKCS#12 密钥库加载客户端证书和私钥。密钥库中附带的CA证书以及凭据中的
PEM信任材料被加入信任列表；信任材料加载失败只记录警告（系统信任库可能已经足够），
密钥材料加载失败则认证失败。
"""

import secrets
import ssl
import tempfile
from pathlib import Path
from typing import List, Literal

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.serialization import pkcs12

from ..credentials import CertificateCredential
from ..exceptions import AuthFailure
from .base import AuthContext, Authenticator


def create_client_ssl_context() -> ssl.SSLContext:
    """创建启用证书验证的客户端SSL上下文"""
    ssl_context = ssl.create_default_context()
    ssl_context.minimum_version = ssl.TLSVersion.TLSv1_2
    ssl_context.check_hostname = True
    ssl_context.verify_mode = ssl.CERT_REQUIRED
    return ssl_context


class CertificateAuthentication(Authenticator):
    """PKCS#12 客户端证书"""

    kind: Literal["certificate"] = "certificate"
    credential: CertificateCredential

    @classmethod
    def from_credential(cls, credential: CertificateCredential) -> "CertificateAuthentication":
        return cls(key_name=credential.id, credential=credential)

    async def prepare(self, context: AuthContext) -> None:
        ssl_context = context.ssl_context or create_client_ssl_context()
        trust_pem = self._load_key_material(ssl_context)
        self._load_trust_material(ssl_context, trust_pem, context)
        context.ssl_context = ssl_context

    def _load_key_material(self, ssl_context: ssl.SSLContext) -> List[str]:
        """加载客户端证书和私钥，返回密钥库中附带的CA证书(PEM)"""
        password = self.credential.password.encode("utf-8") or None
        try:
            key, certificate, additional = pkcs12.load_key_and_certificates(
                self.credential.keystore, password
            )
        except (ValueError, TypeError) as e:
            raise AuthFailure(
                f"Failed to load key material: {e}", key_name=self.key_name
            )
        if key is None or certificate is None:
            raise AuthFailure(
                "Keystore contains no private key entry", key_name=self.key_name
            )

        # 私钥以临时口令加密后写入临时目录，load_cert_chain 只接受文件路径
        passphrase = secrets.token_hex(16)
        key_pem = key.private_bytes(
            serialization.Encoding.PEM,
            serialization.PrivateFormat.PKCS8,
            serialization.BestAvailableEncryption(passphrase.encode("ascii")),
        )
        cert_pem = certificate.public_bytes(serialization.Encoding.PEM)

        with tempfile.TemporaryDirectory(prefix="pipeline-http-") as tmp:
            key_file = Path(tmp) / "client.key"
            cert_file = Path(tmp) / "client.crt"
            key_file.write_bytes(key_pem)
            cert_file.write_bytes(cert_pem)
            try:
                ssl_context.load_cert_chain(
                    str(cert_file), str(key_file), password=passphrase
                )
            except ssl.SSLError as e:
                raise AuthFailure(
                    f"Failed to load key material: {e}", key_name=self.key_name
                )

        return [
            extra.public_bytes(serialization.Encoding.PEM).decode("ascii")
            for extra in additional or []
        ]

    def _load_trust_material(
        self, ssl_context: ssl.SSLContext, trust_pem: List[str], context: AuthContext
    ) -> None:
        if self.credential.trust_material:
            trust_pem = trust_pem + [self.credential.trust_material]
        if not trust_pem:
            return
        try:
            ssl_context.load_verify_locations(cadata="\n".join(trust_pem))
        except (ssl.SSLError, ValueError) as e:
            context.log.warning(
                f"could not load trust material from '{self.key_name}': {e}; "
                "falling back to system trust"
            )
