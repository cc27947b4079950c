"""Configuration loader and merger.

Precedence, lowest first: DEFAULTS, YAML config file, SSH_COPY_ID_* env vars.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import yaml

ENV_PREFIX = "SSH_COPY_ID_"

DEFAULT_CONFIG_PATH = Path("~/.config/ssh-copy-id/config.yaml")

DEFAULTS: Dict[str, Any] = {
    "connect_timeout": 10,
    "auth_timeout": 10,
    "command_timeout": 30,
    "log_level": "WARNING",
    "allow_agent": True,
    "look_for_keys": True,
    "default_key_files": ["id_ed25519", "id_ecdsa", "id_rsa"],
}

_ENV_KEYS = {
    "CONNECT_TIMEOUT": ("connect_timeout", float),
    "AUTH_TIMEOUT": ("auth_timeout", float),
    "COMMAND_TIMEOUT": ("command_timeout", float),
    "LOG_LEVEL": ("log_level", str),
    "ALLOW_AGENT": ("allow_agent", "bool"),
    "LOOK_FOR_KEYS": ("look_for_keys", "bool"),
}


def deep_merge(base: Dict[str, Any], incoming: Dict[str, Any]) -> Dict[str, Any]:
    result = dict(base)
    for key, value in (incoming or {}).items():
        if isinstance(value, dict) and isinstance(result.get(key), dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_yaml_file(path: Path) -> Dict[str, Any]:
    with open(path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"invalid yaml mapping: {path}")
    return data


def load_configs(paths: Iterable[Optional[Path]]) -> Dict[str, Any]:
    """Merge the given YAML files over DEFAULTS. Missing files are skipped."""
    merged: Dict[str, Any] = dict(DEFAULTS)
    for path in paths:
        if not path:
            continue
        path = Path(path).expanduser()
        if not path.is_file():
            continue
        merged = deep_merge(merged, load_yaml_file(path))
    return merged


def _parse_bool(value: str) -> bool:
    lowered = value.strip().lower()
    if lowered in ("1", "true", "yes", "on"):
        return True
    if lowered in ("0", "false", "no", "off"):
        return False
    raise ValueError(f"invalid boolean: {value!r}")


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return _parse_bool(str(value))


def apply_env_overrides(config: Dict[str, Any], environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    env = os.environ if environ is None else environ
    result = dict(config)
    for suffix, (key, kind) in _ENV_KEYS.items():
        raw = env.get(ENV_PREFIX + suffix)
        if raw is None or not raw.strip():
            continue
        try:
            result[key] = _parse_bool(raw) if kind == "bool" else kind(raw.strip())
        except ValueError as exc:
            raise ValueError(f"invalid {ENV_PREFIX + suffix}: {exc}") from exc
    return result


@dataclass(frozen=True)
class Settings:
    connect_timeout: float
    auth_timeout: float
    command_timeout: float
    log_level: str
    allow_agent: bool
    look_for_keys: bool
    default_key_files: Tuple[str, ...]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Settings":
        merged = deep_merge(DEFAULTS, data)
        return cls(
            connect_timeout=float(merged["connect_timeout"]),
            auth_timeout=float(merged["auth_timeout"]),
            command_timeout=float(merged["command_timeout"]),
            log_level=str(merged["log_level"]).upper(),
            allow_agent=_as_bool(merged["allow_agent"]),
            look_for_keys=_as_bool(merged["look_for_keys"]),
            default_key_files=tuple(str(x) for x in merged["default_key_files"] or ()),
        )

    @classmethod
    def load(cls, path: Optional[Path] = None, environ: Optional[Dict[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        if path is None and env.get(ENV_PREFIX + "CONFIG"):
            path = Path(env[ENV_PREFIX + "CONFIG"])
        if path is not None and not path.expanduser().is_file():
            raise FileNotFoundError(f"config file not found: {path}")
        path = path or DEFAULT_CONFIG_PATH
        return cls.from_dict(apply_env_overrides(load_configs([path]), env))
