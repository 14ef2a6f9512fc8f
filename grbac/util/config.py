# Copyright (c) 2025 Gimel Foundation and the persons identified as the document authors.
# All rights reserved. This file is subject to the Gimel Foundation's Legal Provisions Relating to GiFo Documents.
# See http://GimelFoundation.com or https://github.com/Gimel-Foundation for details.
# Code Components extracted from GiFo-RfC 0111 must include this license text and are provided without warranty.

"""
Configuration utilities for grbac.

Environment lookups share the ``GRBAC_`` prefix. Files may be JSON or YAML;
their top-level keys are normalized to snake case and ``${VAR}`` references
in string values are expanded from the environment.
"""

import json
import os
import re
from datetime import timedelta
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


ENV_PREFIX = "GRBAC_"

TRUE_VALUES = frozenset({"true", "1", "yes", "on"})

_DURATION_RE = re.compile(r"^(\d+(?:\.\d+)?)\s*(ms|s|m|h)$")
_DURATION_UNITS = {
    "ms": timedelta(milliseconds=1),
    "s": timedelta(seconds=1),
    "m": timedelta(minutes=1),
    "h": timedelta(hours=1),
}
_VARIABLE_RE = re.compile(r"\$\{([^}]+)\}")


def get_config_value(key: str, default: Any = None,
                     cast_type: Optional[type] = None,
                     env_prefix: str = ENV_PREFIX) -> Any:
    """
    Read ``{env_prefix}{KEY}`` from the environment.

    Missing variables yield ``default``. With ``cast_type`` the raw string
    is converted; a value that does not convert also yields ``default``.
    """
    raw = os.environ.get(f"{env_prefix}{key.upper()}")
    if raw is None:
        return default
    if cast_type is None:
        return raw
    if cast_type is bool:
        return raw.strip().lower() in TRUE_VALUES
    try:
        return cast_type(raw)
    except (TypeError, ValueError):
        return default


def get_bool_config(key: str, default: bool = False,
                    env_prefix: str = ENV_PREFIX) -> bool:
    """Boolean flag from the environment."""
    return get_config_value(key, default, bool, env_prefix)


def parse_duration_string(duration_str: str) -> timedelta:
    """
    Parse '500ms', '30s', '5m' or '2h' into a timedelta.
    """
    if not isinstance(duration_str, str):
        raise ValueError("Duration must be a string")
    match = _DURATION_RE.match(duration_str.strip().lower())
    if not match:
        raise ValueError(f"Invalid duration format: {duration_str}")
    amount, unit = match.groups()
    return _DURATION_UNITS[unit] * float(amount)


def parse_timeout(value: Any) -> Optional[float]:
    """
    Convert a timeout to seconds.

    Accepts numbers, numeric strings, duration strings and timedeltas;
    None and the empty string mean no timeout.
    """
    if value is None or value == "":
        return None
    if isinstance(value, bool):
        raise ValueError(f"Invalid timeout: {value!r}")
    if isinstance(value, timedelta):
        return value.total_seconds()
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str):
        try:
            return float(value)
        except ValueError:
            return parse_duration_string(value).total_seconds()
    raise ValueError(f"Invalid timeout: {value!r}")


def merge_configs(*configs: Optional[Mapping[str, Any]]) -> Dict[str, Any]:
    """
    Merge option mappings; later ones win and nested mappings merge key by key.
    """
    result: Dict[str, Any] = {}
    for config in configs:
        if not isinstance(config, Mapping):
            continue
        for key, value in config.items():
            current = result.get(key)
            if isinstance(value, Mapping) and isinstance(current, Mapping):
                result[key] = merge_configs(current, value)
            else:
                result[key] = value
    return result


def normalize_config_key(key: str) -> str:
    return key.lower().replace("-", "_")


def expand_config_variables(config: Any, variables: Optional[Mapping[str, str]] = None) -> Any:
    """
    Replace ``${VAR}`` in string values, recursing into dicts and lists.

    Unknown variables are left as written.
    """
    if variables is None:
        variables = os.environ

    if isinstance(config, str):
        return _VARIABLE_RE.sub(lambda m: variables.get(m.group(1), m.group(0)), config)
    if isinstance(config, dict):
        return {k: expand_config_variables(v, variables) for k, v in config.items()}
    if isinstance(config, list):
        return [expand_config_variables(item, variables) for item in config]
    return config


def load_config_file(file_path: str) -> Dict[str, Any]:
    """
    Load a JSON (.json) or YAML (.yaml, .yml) configuration mapping.

    Raises:
        FileNotFoundError: If the file does not exist
        ValueError: On an unknown extension or when the file is not a mapping
    """
    path = Path(file_path)
    if not path.exists():
        raise FileNotFoundError(f"Configuration file not found: {file_path}")

    suffix = path.suffix.lower()
    if suffix not in (".json", ".yaml", ".yml"):
        raise ValueError(f"Unsupported configuration file format: {suffix}")

    with path.open("r", encoding="utf-8") as f:
        data = json.load(f) if suffix == ".json" else yaml.safe_load(f)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Configuration file must contain a mapping: {file_path}")
    return {normalize_config_key(k): v for k, v in expand_config_variables(data).items()}
