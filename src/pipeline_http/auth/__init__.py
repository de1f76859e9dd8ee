"""认证策略

认证器是一个封闭的标签联合类型，按 ``kind`` 字段区分。
"""

from typing import Annotated, Union

from pydantic import Field, TypeAdapter

from .base import AuthContext, Authenticator
from .basic import (
    BasicDigestAuthentication,
    CredentialBasicAuthentication,
    HostCredential,
    NoAuthentication,
)
from .certificate import CertificateAuthentication
from .form import FormAuthentication
from .ntlm import CredentialNtlmAuthentication, NtlmAuthMiddleware, split_ntlm_username

AnyAuthenticator = Annotated[
    Union[
        NoAuthentication,
        BasicDigestAuthentication,
        CredentialBasicAuthentication,
        CredentialNtlmAuthentication,
        CertificateAuthentication,
        FormAuthentication,
    ],
    Field(discriminator="kind"),
]

authenticator_adapter: TypeAdapter = TypeAdapter(AnyAuthenticator)

__all__ = [
    "AuthContext",
    "Authenticator",
    "AnyAuthenticator",
    "authenticator_adapter",
    "NoAuthentication",
    "BasicDigestAuthentication",
    "CredentialBasicAuthentication",
    "CredentialNtlmAuthentication",
    "CertificateAuthentication",
    "FormAuthentication",
    "HostCredential",
    "NtlmAuthMiddleware",
    "split_ntlm_username",
]
