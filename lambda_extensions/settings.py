"""Load extension settings from config/settings.yaml."""

import os
from pathlib import Path
from typing import Any

import yaml

CONFIG_DIR_ENV = "LAMBDA_EXTENSIONS_CONFIG_DIR"
EXTENSION_NAME_ENV = "LAMBDA_EXTENSION_NAME"

_DEFAULTS: dict[str, Any] = {
    "extension": {
        # Lambda expects the name to match the file name under /opt/extensions
        "name": "lambda-extension",
    },
    "http": {
        "connect_timeout": 5.0,
    },
    "telemetry": {
        "enabled": False,
        "listener_host": "0.0.0.0",
        "listener_port": 8080,
        # Optional overrides merged into the default subscription
        # (schemaVersion, types, buffering, destination).
        "subscription": None,
    },
    "logging": {
        "file": None,
        "level": "INFO",
        "log_to_console": True,
        "max_bytes": 10485760,  # 10 MB
        "backup_count": 3,
    },
}

_cached: dict[str, Any] | None = None


def _deep_merge(base: dict[str, Any], overlay: dict[str, Any]) -> dict[str, Any]:
    """Merge overlay into base recursively. Mutates base."""
    for key, value in overlay.items():
        if value is None:
            continue
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value
    return base


def get_default_settings() -> dict[str, Any]:
    """Return a deep copy of default settings."""
    return _deep_copy_nested(_DEFAULTS)


def get_setting(settings: dict[str, Any], path: str, default: Any = None) -> Any:
    """Get a nested value by dot path (e.g. 'telemetry.listener_port')."""
    current: Any = settings
    for part in path.split("."):
        if not isinstance(current, dict) or part not in current:
            return default
        current = current[part]
    return current


def get_extension_name(settings: dict[str, Any]) -> str:
    """LAMBDA_EXTENSION_NAME wins over extension.name from settings."""
    return os.environ.get(EXTENSION_NAME_ENV) or get_setting(
        settings, "extension.name", "lambda-extension"
    )


def reload_settings() -> None:
    """Clear the settings cache."""
    global _cached
    _cached = None


def _default_config_dir() -> Path:
    override = os.environ.get(CONFIG_DIR_ENV)
    if override:
        return Path(override)
    return Path(__file__).resolve().parent.parent / "config"


def load_settings(config_dir: Path | None = None) -> dict[str, Any]:
    """Load settings from config/settings.yaml. Returns merged defaults + file values."""
    global _cached
    if _cached is not None:
        return _cached

    if config_dir is None:
        config_dir = _default_config_dir()
    path = config_dir / "settings.yaml"

    result = get_default_settings()

    if path.exists():
        try:
            data = yaml.safe_load(path.read_text(encoding="utf-8"))
            if isinstance(data, dict):
                _deep_merge(result, data)
        except (yaml.YAMLError, OSError):
            pass

    _cached = result
    return result


def _deep_copy_nested(obj: Any) -> Any:
    """Return a deep copy of nested dicts/lists for defaults."""
    if isinstance(obj, dict):
        return {k: _deep_copy_nested(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_deep_copy_nested(x) for x in obj]
    return obj
