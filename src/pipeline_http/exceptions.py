"""异常定义模块

定义请求执行过程中的异常类，按失败类别划分：
配置错误、传输错误、认证错误、校验错误、文件错误
"""

import functools
from typing import Any, Dict, Optional


class HttpRequestException(Exception):
    """pipeline-http 基础异常类"""

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            return f"{self.message} (Context: {context_str})"
        return self.message


class ConfigurationError(HttpRequestException):
    """配置异常 - 在任何网络请求之前检测到"""

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        config_value: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.config_key = config_key
        self.config_value = config_value

    def __str__(self) -> str:
        parts = [self.message]
        if self.config_key:
            parts.append(f"Key: {self.config_key}")
        if self.config_value is not None:
            parts.append(f"Value: {self.config_value}")
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")
        return " | ".join(parts)


class InvalidRangeSpec(ConfigurationError):
    """响应码范围格式错误"""

    def __init__(self, message: str, spec: Optional[str] = None):
        super().__init__(message, config_key="validResponseCodes", config_value=spec)


class AuthenticatorNotFound(ConfigurationError):
    """认证器引用无法解析"""

    def __init__(self, key_name: str):
        super().__init__(
            f"Authentication '{key_name}' doesn't exist anymore",
            config_key="authentication",
            config_value=key_name,
        )
        self.key_name = key_name


class DuplicateKeyName(ConfigurationError):
    """认证器键名重复"""

    def __init__(self, key_name: str):
        super().__init__(
            "The Key Name must be unique",
            config_key="keyName",
            config_value=key_name,
        )
        self.key_name = key_name


class InvalidUrl(ConfigurationError):
    """URL格式错误"""

    def __init__(self, url: str, reason: Optional[str] = None):
        super().__init__(
            f"Invalid url: {reason}" if reason else "Invalid url",
            config_key="url",
            config_value=url,
        )
        self.url = url


class MalformedCredential(ConfigurationError):
    """凭据内容无法使用（例如NTLM用户名格式）"""

    pass


class TransportFailure(HttpRequestException):
    """无法归类为合成状态码的传输层错误"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        cause: Optional[BaseException] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.url = url
        self.cause = cause

    def __str__(self) -> str:
        parts = [self.message]
        if self.url:
            parts.append(f"URL: {self.url}")
        if self.cause is not None:
            parts.append(f"Cause: {self.cause.__class__.__name__}")
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")
        return " | ".join(parts)


class AuthFailure(HttpRequestException):
    """认证失败 - 表单预请求返回错误码或密钥材料加载失败"""

    def __init__(
        self,
        message: str,
        key_name: Optional[str] = None,
        status_code: Optional[int] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.key_name = key_name
        self.status_code = status_code

    def __str__(self) -> str:
        parts = [self.message]
        if self.key_name:
            parts.append(f"Authenticator: {self.key_name}")
        if self.status_code:
            parts.append(f"Status: {self.status_code}")
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")
        return " | ".join(parts)


class ValidationFailure(HttpRequestException):
    """响应校验失败

    响应对象保存在 ``response`` 属性中，调用方仍可读取状态码和内容
    """

    def __init__(
        self,
        message: str,
        response: Optional[Any] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.response = response


class UnacceptableStatus(ValidationFailure):
    """状态码不在允许范围内"""

    def __init__(self, status: int, accepted: str, response: Optional[Any] = None):
        super().__init__(
            f"Fail: the returned code {status} is not in the accepted range: {accepted}",
            response=response,
        )
        self.status = status
        self.accepted = accepted


class ContentMismatch(ValidationFailure):
    """响应内容不包含期望的子串"""

    def __init__(self, expected: str, body_length: int, response: Optional[Any] = None):
        super().__init__(
            f"Fail: Response doesn't contain expected content '{expected}' "
            f"(response length: {body_length})",
            response=response,
        )
        self.expected = expected
        self.body_length = body_length


class IOFailure(HttpRequestException):
    """文件操作异常"""

    def __init__(
        self,
        message: str,
        file_path: Optional[str] = None,
        operation: Optional[str] = None,
        context: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message, context)
        self.file_path = file_path
        self.operation = operation

    def __str__(self) -> str:
        parts = [self.message]
        if self.operation:
            parts.append(f"Operation: {self.operation}")
        if self.file_path:
            parts.append(f"File: {self.file_path}")
        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            parts.append(f"Context: {context_str}")
        return " | ".join(parts)


def wrap_exception(func):
    """异常包装装饰器 - 将标准异常转换为应用异常"""

    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except HttpRequestException:
            # 已经是应用异常，直接抛出
            raise
        except (IOError, OSError) as e:
            raise IOFailure(f"File operation failed: {e}")
        except ValueError as e:
            raise ConfigurationError(f"Invalid configuration: {e}")

    return wrapper
