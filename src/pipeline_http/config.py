"""配置管理模块

- Settings: 从环境变量、.env 文件加载默认值
- AuthenticatorRegistry: 全局认证器配置（Basic/Digest 与表单认证），按键名唯一
"""

import threading
from collections import Counter
from pathlib import Path
from typing import Iterable, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from .auth import Authenticator, BasicDigestAuthentication, FormAuthentication
from .exceptions import ConfigurationError, DuplicateKeyName, IOFailure
from .models import Config


class Settings(BaseSettings):
    """应用设置类，继承自 Pydantic BaseSettings"""

    # 网络配置
    pipeline_http_timeout: int = 0
    pipeline_http_use_system_properties: bool = False

    # 响应校验
    pipeline_http_valid_response_codes: str = "100:399"

    # 认证器配置文件
    pipeline_http_registry_file: str = ""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", case_sensitive=False
    )


class RegistrySnapshot(BaseModel):
    """认证器配置的不可变快照"""

    basic_digest_authentications: Tuple[BasicDigestAuthentication, ...] = Field(default=())
    form_authentications: Tuple[FormAuthentication, ...] = Field(default=())

    model_config = ConfigDict(frozen=True)

    def authenticators(self) -> Tuple[Authenticator, ...]:
        return self.basic_digest_authentications + self.form_authentications


def find_duplicate_key(authenticators: Iterable[Authenticator]) -> Optional[str]:
    """返回第一个重复的键名，没有重复时返回 None"""
    counts = Counter(a.key_name for a in authenticators)
    for key_name, count in counts.items():
        if count > 1:
            return key_name
    return None


def _check_snapshot(snapshot: RegistrySnapshot) -> None:
    for authenticator in snapshot.authenticators():
        if not authenticator.key_name.strip():
            raise ConfigurationError("Key Name is required", config_key="keyName")
    duplicate = find_duplicate_key(snapshot.authenticators())
    if duplicate is not None:
        raise DuplicateKeyName(duplicate)


class AuthenticatorRegistry:
    """全局认证器注册表

    读取不加锁，总是看到某个完整的快照；修改和持久化通过锁串行执行，
    新配置在校验通过后才整体替换旧快照。

    Args:
        path: JSON 持久化文件，为空时只保存在内存中
    """

    def __init__(self, path: Optional[Union[str, Path]] = None):
        self.path = Path(path) if path else None
        self._snapshot = RegistrySnapshot()
        self._lock = threading.Lock()

    @property
    def snapshot(self) -> RegistrySnapshot:
        return self._snapshot

    def authentications(self) -> Tuple[Authenticator, ...]:
        """当前全部认证器，Basic/Digest 在前"""
        return self._snapshot.authenticators()

    def key_names(self) -> List[str]:
        return [a.key_name for a in self.authentications()]

    def get(self, key_name: str) -> Optional[Authenticator]:
        """按键名查找认证器"""
        for authenticator in self._snapshot.authenticators():
            if authenticator.key_name == key_name:
                return authenticator
        return None

    def validate_key_name(self, value: str) -> Optional[str]:
        """新键名的校验，返回错误信息，合法时返回 None"""
        if not value or not value.strip():
            return "Key Name is required"
        if value in self.key_names():
            return "The Key Name must be unique"
        return None

    def configure(
        self,
        basic_digest: Iterable[BasicDigestAuthentication] = (),
        form: Iterable[FormAuthentication] = (),
    ) -> RegistrySnapshot:
        """整体替换认证器配置

        Raises:
            DuplicateKeyName: 两个认证器使用了同一个键名，旧配置保持不变
        """
        snapshot = RegistrySnapshot(
            basic_digest_authentications=tuple(basic_digest),
            form_authentications=tuple(form),
        )
        _check_snapshot(snapshot)

        with self._lock:
            if self.path is not None:
                self._write(self.path, snapshot)
            self._snapshot = snapshot
        return snapshot

    def save(self, path: Optional[Union[str, Path]] = None) -> Path:
        """把当前快照写入 JSON 文件"""
        target = Path(path) if path else self.path
        if target is None:
            raise ConfigurationError("No registry file configured", config_key="registry_file")
        with self._lock:
            self._write(target, self._snapshot)
        return target

    def load(self, path: Optional[Union[str, Path]] = None) -> RegistrySnapshot:
        """从 JSON 文件加载配置，文件不存在时保持空配置

        Raises:
            ConfigurationError: 文件内容无效或键名重复
            IOFailure: 文件无法读取
        """
        source = Path(path) if path else self.path
        if source is None:
            raise ConfigurationError("No registry file configured", config_key="registry_file")

        with self._lock:
            if not source.exists():
                return self._snapshot
            try:
                text = source.read_text(encoding="utf-8")
            except OSError as e:
                raise IOFailure(
                    f"Failed to read registry: {e.strerror or e}",
                    file_path=str(source),
                    operation="read",
                )
            try:
                snapshot = RegistrySnapshot.model_validate_json(text)
            except ValidationError as e:
                raise ConfigurationError(
                    f"Invalid registry file: {e.error_count()} validation error(s)",
                    config_key="registry_file",
                    config_value=str(source),
                )
            _check_snapshot(snapshot)
            self._snapshot = snapshot
            return snapshot

    @staticmethod
    def _write(path: Path, snapshot: RegistrySnapshot) -> None:
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            tmp = path.with_suffix(path.suffix + ".tmp")
            tmp.write_text(snapshot.model_dump_json(indent=2), encoding="utf-8")
            tmp.replace(path)
        except OSError as e:
            raise IOFailure(
                f"Failed to write registry: {e.strerror or e}",
                file_path=str(path),
                operation="write",
            )


class ConfigManager:
    """配置管理器"""

    def __init__(self):
        self._config: Optional[Config] = None
        self._registry: Optional[AuthenticatorRegistry] = None

    def get_config(self) -> Config:
        """获取配置，优先环境变量，然后使用默认值"""
        if self._config is not None:
            return self._config

        try:
            # 从环境变量加载设置
            config_dict = Settings().model_dump()

            # 移除 pipeline_http_ 前缀
            prefix = "pipeline_http_"
            clean_config = {}
            for key, value in config_dict.items():
                if key.startswith(prefix):
                    clean_config[key[len(prefix):]] = value
                else:
                    clean_config[key] = value

            self._config = Config(**clean_config)
            return self._config
        except ValidationError as e:
            raise ConfigurationError(f"Failed to validate configuration: {e}")

    def get_registry(self) -> AuthenticatorRegistry:
        """获取认证器注册表，配置了文件时从文件加载"""
        if self._registry is not None:
            return self._registry

        registry_file = self.get_config().registry_file
        registry = AuthenticatorRegistry(registry_file or None)
        if registry.path is not None:
            registry.load()
        self._registry = registry
        return registry

    def reset(self) -> None:
        """丢弃缓存的配置（环境变量变化后重新读取）"""
        self._config = None
        self._registry = None


# 全局配置管理器实例
config_manager = ConfigManager()


def get_config() -> Config:
    """获取全局配置"""
    return config_manager.get_config()


def get_registry() -> AuthenticatorRegistry:
    """获取全局认证器注册表"""
    return config_manager.get_registry()
