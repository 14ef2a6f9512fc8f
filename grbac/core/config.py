# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Configuration module for grbac.

RbacConfig configures the flat callback and remote decision paths,
EngineConfig configures the compiled-rule engine. Both validate eagerly and
raise ConfigurationError.
"""

from dataclasses import dataclass, field, fields
from typing import Any, Callable, Dict, Mapping, Optional, Union
import os

from ..errors import ConfigurationError
from ..util.config import (
    ENV_PREFIX,
    get_bool_config,
    get_config_value,
    load_config_file,
    merge_configs,
    parse_timeout,
)
from .types import DEFAULT_PERMISSIONS_GROUP, Effect


DEFAULT_REQ_ID_PATH = "user.id"
DEFAULT_REQ_TYPE_PATH = "user.type"


@dataclass
class RemoteAuthConfig:
    """Remote authority endpoint"""
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: Optional[float] = None  # seconds

    def __post_init__(self):
        if self.headers is None:
            self.headers = {}
        try:
            self.timeout = parse_timeout(self.timeout)
        except ValueError as e:
            raise ConfigurationError(f"Invalid remote timeout value: {e}") from e

    def validate(self) -> bool:
        """Validate the configuration"""
        if not isinstance(self.url, str) or not self.url:
            raise ConfigurationError("Invalid remote url value: must be a string")
        if not isinstance(self.headers, Mapping):
            raise ConfigurationError("Invalid remote headers value: must be a mapping")
        if self.timeout is not None and self.timeout <= 0:
            raise ConfigurationError("Invalid remote timeout value: must be positive")
        return True

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RemoteAuthConfig":
        if not isinstance(data, Mapping):
            raise ConfigurationError("Invalid remote value: must be a mapping")
        return cls(
            url=data.get("url"),
            headers=dict(data.get("headers") or {}),
            timeout=data.get("timeout"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "url": self.url,
            "headers": dict(self.headers),
            "timeout": self.timeout,
        }


@dataclass
class RbacConfig:
    """
    Configuration of a flat or remote decision path.

    At least one of get_permissions, check_permission or remote must be set.
    When remote is set, decisions are delegated to the remote authority.
    """
    get_permissions: Optional[Callable[..., Any]] = None
    check_permission: Optional[Callable[..., Any]] = None
    remote: Optional[RemoteAuthConfig] = None
    strict_and: bool = True
    req_id_path: str = DEFAULT_REQ_ID_PATH
    req_type_path: str = DEFAULT_REQ_TYPE_PATH

    def __post_init__(self):
        if isinstance(self.remote, Mapping):
            self.remote = RemoteAuthConfig.from_dict(self.remote)

    @property
    def is_remote(self) -> bool:
        return self.remote is not None

    def validate(self) -> bool:
        """Validate the configuration"""
        if self.remote is not None:
            if not isinstance(self.remote, RemoteAuthConfig):
                raise ConfigurationError("Invalid remote value: must be a RemoteAuthConfig")
            self.remote.validate()
        elif self.get_permissions is None and self.check_permission is None:
            raise ConfigurationError(
                "Invalid configuration: one of get_permissions, check_permission "
                "or remote is required"
            )

        for name in ("get_permissions", "check_permission"):
            value = getattr(self, name)
            if value is not None and not callable(value):
                raise ConfigurationError(f"Invalid {name} value: must be a function")

        if not isinstance(self.strict_and, bool):
            raise ConfigurationError("Invalid strict_and value: must be a bool")
        for name in ("req_id_path", "req_type_path"):
            if not isinstance(getattr(self, name), str) or not getattr(self, name):
                raise ConfigurationError(f"Invalid {name} value: must be a string")
        return True

    def to_dict(self) -> Dict[str, Any]:
        result = {f.name: getattr(self, f.name) for f in fields(self)}
        result["remote"] = self.remote.to_dict() if self.remote else None
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "RbacConfig":
        """Create from a mapping; unknown keys are rejected."""
        if not isinstance(data, Mapping):
            raise ConfigurationError("Invalid configuration value: must be a mapping")
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")
        values = dict(data)
        if values.get("remote") is None:
            values.pop("remote", None)
        return cls(**values)

    def merged(self, *overrides: Optional[Union["RbacConfig", Mapping[str, Any]]]) -> "RbacConfig":
        """
        Layer overrides on top of this configuration and validate the result.

        Later layers win. Remote headers merge key by key, case-insensitively.
        """
        config = RbacConfig.from_dict(layer_options(self, *overrides))
        config.validate()
        return config

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX, **callbacks) -> "RbacConfig":
        """
        Create configuration from environment variables.

        Reads {prefix}REMOTE_URL, {prefix}REMOTE_TIMEOUT, {prefix}STRICT_AND,
        {prefix}REQ_ID_PATH and {prefix}REQ_TYPE_PATH. Callbacks are passed
        as keyword arguments.
        """
        url = get_config_value("remote_url", env_prefix=prefix)
        remote = None
        if url:
            remote = RemoteAuthConfig(
                url=url,
                timeout=get_config_value("remote_timeout", env_prefix=prefix),
            )
            authorization = os.environ.get(f"{prefix}REMOTE_AUTHORIZATION")
            if authorization:
                remote.headers["Authorization"] = authorization

        return cls(
            remote=remote,
            strict_and=get_bool_config("strict_and", True, env_prefix=prefix),
            req_id_path=get_config_value("req_id_path", DEFAULT_REQ_ID_PATH, env_prefix=prefix),
            req_type_path=get_config_value("req_type_path", DEFAULT_REQ_TYPE_PATH, env_prefix=prefix),
            **callbacks
        )

    @classmethod
    def from_file(cls, file_path: str, **callbacks) -> "RbacConfig":
        """Create configuration from a JSON or YAML file plus callbacks."""
        try:
            data = load_config_file(file_path)
        except (OSError, ValueError) as e:
            raise ConfigurationError(f"Cannot load configuration file {file_path}: {e}") from e
        data.update(callbacks)
        return cls.from_dict(data)


@dataclass
class EngineConfig:
    """Configuration of the compiled-rule engine"""
    permissions_group: str = DEFAULT_PERMISSIONS_GROUP
    conjunction: bool = False
    missing_rule_effect: Effect = Effect.PERMIT
    deny_negates: bool = False

    def __post_init__(self):
        if isinstance(self.missing_rule_effect, str):
            try:
                self.missing_rule_effect = Effect(self.missing_rule_effect.lower())
            except ValueError as e:
                raise ConfigurationError(
                    f"Invalid missing_rule_effect value: {self.missing_rule_effect}"
                ) from e

    def validate(self) -> bool:
        """Validate the configuration"""
        if not isinstance(self.permissions_group, str) or not self.permissions_group:
            raise ConfigurationError("Invalid permissions_group value: must be a non-empty string")
        if not isinstance(self.conjunction, bool):
            raise ConfigurationError("Invalid conjunction value: must be a bool")
        if not isinstance(self.missing_rule_effect, Effect):
            raise ConfigurationError("Invalid missing_rule_effect value: must be an Effect")
        if not isinstance(self.deny_negates, bool):
            raise ConfigurationError("Invalid deny_negates value: must be a bool")
        return True

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> "EngineConfig":
        """Create configuration from environment variables"""
        return cls(
            permissions_group=get_config_value("permissions_group", DEFAULT_PERMISSIONS_GROUP,
                                               env_prefix=prefix),
            conjunction=get_bool_config("conjunction", False, env_prefix=prefix),
            missing_rule_effect=get_config_value("missing_rule_effect", Effect.PERMIT.value,
                                                 env_prefix=prefix),
            deny_negates=get_bool_config("deny_negates", False, env_prefix=prefix),
        )


def merge_headers(*layers: Optional[Mapping[str, str]]) -> Dict[str, str]:
    """
    Merge header mappings, later layers winning.

    Header names compare case-insensitively; the spelling of the winning
    layer is kept.
    """
    result: Dict[str, str] = {}
    for layer in layers:
        if not layer:
            continue
        for name, value in layer.items():
            for existing in [k for k in result if k.lower() == name.lower()]:
                del result[existing]
            result[name] = value
    return result


def layer_options(*layers: Optional[Union[RbacConfig, Mapping[str, Any]]]) -> Dict[str, Any]:
    """
    Merge option layers into one mapping, later layers winning.

    Nested mappings merge key by key; remote headers merge case-insensitively.
    """
    dicts = []
    for layer in layers:
        if layer is None:
            continue
        if isinstance(layer, RbacConfig):
            layer = layer.to_dict()
        elif not isinstance(layer, Mapping):
            raise ConfigurationError("Invalid overrides value: must be a mapping")
        layer = dict(layer)
        if isinstance(layer.get("remote"), RemoteAuthConfig):
            layer["remote"] = layer["remote"].to_dict()
        dicts.append(layer)

    data = merge_configs(*dicts)
    if isinstance(data.get("remote"), Mapping):
        remote = dict(data["remote"])
        remote["headers"] = merge_headers(
            *(layer["remote"].get("headers") for layer in dicts
              if isinstance(layer.get("remote"), Mapping))
        )
        data["remote"] = remote
    return data
