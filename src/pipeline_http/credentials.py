"""凭据查找模块

凭据存储对本包是不透明的查找服务。查找结果立即复制为不可变的值对象，
执行快照中只保存这些值，不保存存储本身的引用。
"""

import base64
import threading
from typing import Annotated, Dict, Literal, Optional, Protocol, Union

from pydantic import Base64Bytes, BaseModel, ConfigDict, Field


class UsernamePasswordCredential(BaseModel):
    """用户名/密码凭据"""

    kind: Literal["username_password"] = "username_password"
    id: str = Field(..., description="凭据ID")
    username: str = Field(..., description="用户名")
    password: str = Field(default="", repr=False, description="密码明文")
    description: str = Field(default="")

    model_config = ConfigDict(frozen=True)


class CertificateCredential(BaseModel):
    """证书凭据：PKCS#12 密钥库与可选的PEM信任材料"""

    kind: Literal["certificate"] = "certificate"
    id: str = Field(..., description="凭据ID")
    keystore: Base64Bytes = Field(..., repr=False, description="PKCS#12 内容")
    password: str = Field(default="", repr=False, description="密钥库密码")
    trust_material: Optional[str] = Field(default=None, repr=False, description="PEM格式CA证书")
    description: str = Field(default="")

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_pkcs12(
        cls,
        credential_id: str,
        data: bytes,
        password: str = "",
        trust_material: Optional[str] = None,
    ) -> "CertificateCredential":
        """从原始PKCS#12字节创建凭据（keystore字段要求base64输入）"""
        return cls(
            id=credential_id,
            keystore=base64.b64encode(data),
            password=password,
            trust_material=trust_material,
        )


Credential = Annotated[
    Union[UsernamePasswordCredential, CertificateCredential],
    Field(discriminator="kind"),
]


class CredentialStore(Protocol):
    """凭据查找服务接口"""

    def lookup(self, credential_id: str, url: Optional[str] = None) -> Optional[Credential]:
        """按ID查找凭据，url 用于按作用域过滤"""
        ...


class InMemoryCredentialStore:
    """基于字典的凭据存储，用于命令行和测试"""

    def __init__(self, credentials: Optional[Dict[str, Credential]] = None):
        self._credentials: Dict[str, Credential] = dict(credentials or {})
        self._lock = threading.Lock()

    def add(self, credential: Credential) -> None:
        with self._lock:
            self._credentials[credential.id] = credential

    def lookup(self, credential_id: str, url: Optional[str] = None) -> Optional[Credential]:
        return self._credentials.get(credential_id)

    def __len__(self) -> int:
        return len(self._credentials)
