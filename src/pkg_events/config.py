"""Configuration helpers for pkg-events."""

import copy
import os
from pathlib import Path
from typing import Optional, Any

import yaml
from platformdirs import user_config_dir

ENV_PREFIX = "PKG_EVENTS"
CONFIG_DIR = Path(user_config_dir("pkg-events"))
DEFAULT_CONFIG_PATH = CONFIG_DIR / "config.yaml"

LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]

DEFAULT_CONFIG = {
    "syslog": False,
    "syslog_address": "/dev/log",
    "debug_level": 0,
    "event_pipe": None,
    "plugins_dir": str(CONFIG_DIR / "plugins"),
    "log_level": "INFO",
}

PATH_KEYS = {
    "event_pipe",
    "plugins_dir",
}


def _env(name: str) -> Optional[str]:
    return os.environ.get(f"{ENV_PREFIX}_{name}")


def _config_path_from_env() -> Optional[Path]:
    value = _env("CONFIG") or _env("CONFIG_PATH")
    if value:
        return Path(value).expanduser()
    return None


def resolve_config_path(config_path: Optional[Path] = None) -> Path:
    return config_path or _config_path_from_env() or DEFAULT_CONFIG_PATH


def _load_config_file(path: Path, strict: bool = False) -> dict:
    if not path.exists():
        return {}
    try:
        data = yaml.safe_load(path.read_text()) or {}
    except Exception as exc:
        if strict:
            raise ValueError(f"Failed to parse config file {path}: {exc}")
        return {}
    if not isinstance(data, dict):
        if strict:
            raise ValueError(f"Config file {path} must be a mapping")
        return {}
    return data


def read_config_file(config_path: Optional[Path] = None, strict: bool = False) -> dict:
    path = resolve_config_path(config_path)
    return _load_config_file(path, strict=strict)


def config_defaults() -> dict:
    return copy.deepcopy(DEFAULT_CONFIG)


def _apply_env_overrides(config: dict) -> dict:
    mapping = {
        "SYSLOG": ("syslog", "bool"),
        "SYSLOG_ADDRESS": ("syslog_address", str),
        "DEBUG_LEVEL": ("debug_level", int),
        "EVENT_PIPE": ("event_pipe", str),
        "PLUGINS_DIR": ("plugins_dir", str),
        "LOG_LEVEL": ("log_level", str),
    }

    for env_name, (key, cast) in mapping.items():
        value = _env(env_name)
        if value is None:
            continue
        if cast == "bool":
            config[key] = value.lower() in ("true", "1", "yes", "on")
            continue
        try:
            config[key] = cast(value)
        except Exception:
            continue

    return config


def _resolve_paths(config: dict, base_dir: Path) -> dict:
    for key in PATH_KEYS:
        value = config.get(key)
        if not value:
            continue
        path = Path(str(value)).expanduser()
        if not path.is_absolute():
            path = base_dir / path
        config[key] = str(path)
    return config


def load_config(
    config_path: Optional[Path] = None,
    overrides: Optional[dict] = None,
    strict: bool = False,
) -> dict:
    """Load configuration with precedence: file -> env -> overrides."""
    resolved_path = resolve_config_path(config_path)
    merged = config_defaults()
    merged.update(_load_config_file(resolved_path, strict=strict))
    merged = _apply_env_overrides(merged)

    if overrides:
        merged.update(overrides)

    return _resolve_paths(merged, resolved_path.parent)


def write_config(config: dict, config_path: Optional[Path] = None) -> Path:
    path = resolve_config_path(config_path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(yaml.safe_dump(config, default_flow_style=False, sort_keys=False))
    return path


def config_schema() -> dict:
    return {
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "type": "object",
        "properties": {
            "syslog": {"type": "boolean"},
            "syslog_address": {"type": "string"},
            "debug_level": {"type": "integer", "minimum": 0},
            "event_pipe": {"type": ["string", "null"]},
            "plugins_dir": {"type": ["string", "null"]},
            "log_level": {"type": "string", "enum": LOG_LEVELS},
        },
        "additionalProperties": False,
    }


def _is_int(value: Any) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_config_dict(data: Any) -> list[str]:
    errors: list[str] = []
    if not isinstance(data, dict):
        return ["Config must be a mapping/object"]

    props = config_schema().get("properties", {})

    for key in data.keys():
        if key not in props:
            errors.append(f"Unknown config key: {key}")

    def check_type(key: str, value: Any, expected: str) -> None:
        if expected == "string" and not isinstance(value, str):
            errors.append(f"{key} must be a string")
        elif expected == "integer" and not _is_int(value):
            errors.append(f"{key} must be an integer")
        elif expected == "boolean" and not isinstance(value, bool):
            errors.append(f"{key} must be a boolean")

    for key, value in data.items():
        if key not in props:
            continue
        expected = props[key].get("type")
        if isinstance(expected, list):
            if value is None and "null" in expected:
                continue
            if "string" in expected and isinstance(value, str):
                continue
            errors.append(f"{key} must be one of types: {', '.join(expected)}")
            continue
        check_type(key, value, expected)

        if key == "debug_level" and _is_int(value) and value < 0:
            errors.append("debug_level must be >= 0")
        if key == "log_level" and isinstance(value, str) and value.upper() not in LOG_LEVELS:
            errors.append(f"log_level must be one of: {', '.join(LOG_LEVELS)}")

    return errors


def validate_config_file(config_path: Optional[Path] = None) -> list[str]:
    path = resolve_config_path(config_path)
    if not path.exists():
        return []
    data = _load_config_file(path, strict=True)
    return validate_config_dict(data)
