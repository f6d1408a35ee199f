"""Settings loader with environment variable substitution."""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from ..errors import ConfigError
from .models import Settings

log = logging.getLogger(__name__)


def _default_config_dir() -> Path:
    """Get LexiLens configuration directory."""
    env_override = os.getenv("LEXILENS_CONFIG_DIR")
    if env_override:
        return Path(env_override).expanduser().resolve()
    return (Path.home() / ".lexilens").resolve()


# JSON (written by save_settings) takes priority over hand-written YAML
SETTINGS_JSON_NAME = "settings.json"
SETTINGS_YAML_NAME = "settings.yaml"

# Global settings singleton
_settings_instance: Settings | None = None


# ${NAME} or ${NAME:-fallback}
_ENV_REF = re.compile(r"\$\{(?P<name>[^:}]+)(?::-(?P<fallback>.*?))?\}")


def _expand_env(value: Any) -> Any:
    """Expand environment references in every string of a parsed settings tree."""
    if isinstance(value, str):
        return _ENV_REF.sub(
            lambda ref: os.environ.get(ref["name"], ref["fallback"] or ""), value
        )
    if isinstance(value, dict):
        return {key: _expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [_expand_env(item) for item in value]
    return value


def _read_file(path: Path) -> dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            if path.suffix == ".json":
                data = json.load(f)
            else:
                data = yaml.safe_load(f)
    except (OSError, ValueError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to load settings from {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Settings in {path} must be a mapping; got {type(data).__name__}"
        )
    return data


def _apply_env_overrides(data: dict[str, Any]) -> dict[str, Any]:
    """Apply LEXILENS_* environment overrides (highest priority).

    Supported variables:
        LEXILENS_SERVER_URL: Dictionary server base URL
        LEXILENS_DEBOUNCE_MS: Debounce window in milliseconds
        LEXILENS_MAX_CONCURRENCY: Concurrent source queries
        LEXILENS_STRICT: Case-sensitive exact matching (true/false)
    """
    data = dict(data)

    if "LEXILENS_SERVER_URL" in os.environ:
        data["server_url"] = os.environ["LEXILENS_SERVER_URL"]
        log.debug("Overriding server_url from environment: %s", data["server_url"])

    for key, field_name in (
        ("LEXILENS_DEBOUNCE_MS", "debounce_ms"),
        ("LEXILENS_MAX_CONCURRENCY", "max_concurrency"),
    ):
        if key in os.environ:
            try:
                data[field_name] = int(os.environ[key])
                log.debug("Overriding %s from environment: %s", field_name, data[field_name])
            except ValueError:
                log.warning("Invalid %s in environment: %r", key, os.environ[key])

    if "LEXILENS_STRICT" in os.environ:
        value = os.environ["LEXILENS_STRICT"].lower()
        data["strict"] = value in {"true", "1", "yes", "on"}
        log.debug("Overriding strict from environment: %s", data["strict"])

    return data


def load_settings(config_path: Path | str | None = None) -> Settings:
    """Load settings from JSON or YAML file.

    Priority order:
    1. Explicit config_path if provided
    2. ~/.lexilens/settings.json
    3. ~/.lexilens/settings.yaml
    4. Defaults

    Environment overrides are applied on top of whichever source was used.

    Args:
        config_path: Path to settings file (optional)

    Returns:
        Parsed and validated settings

    Raises:
        ConfigError: If the file cannot be read or the settings are invalid
    """
    raw: dict[str, Any] | None = None

    if config_path is not None:
        config_path = Path(config_path)
        if not config_path.exists():
            raise ConfigError(f"Settings file not found: {config_path}")
        raw = _read_file(config_path)
    else:
        config_dir = _default_config_dir()
        for name in (SETTINGS_JSON_NAME, SETTINGS_YAML_NAME):
            candidate = config_dir / name
            if candidate.exists():
                try:
                    raw = _read_file(candidate)
                    break
                except ConfigError as exc:
                    log.warning("Ignoring unreadable settings file: %s", exc)

    if raw is None:
        raw = {}

    data = _apply_env_overrides(_expand_env(raw))

    try:
        return Settings.model_validate(data)
    except ValidationError as exc:
        raise ConfigError(f"Invalid settings: {exc}") from exc


def save_settings(settings: Settings, config_path: Path | str | None = None) -> Path:
    """Write settings as JSON and return the path written."""
    path = Path(config_path) if config_path is not None else _default_config_dir() / SETTINGS_JSON_NAME
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(settings.model_dump(), f, indent=2)
    except OSError as exc:
        raise ConfigError(
            f"Failed to save settings to {path} [{type(exc).__name__}]: {exc}"
        ) from exc
    return path


def get_settings(config_path: Path | str | None = None, reload: bool = False) -> Settings:
    """Get global settings singleton.

    Args:
        config_path: Path to settings file (default: ~/.lexilens/settings.json)
        reload: Force reload settings from disk
    """
    global _settings_instance

    if _settings_instance is None or reload:
        _settings_instance = load_settings(config_path)

    return _settings_instance


def reset_settings() -> None:
    """Reset global settings singleton.

    Useful for testing.
    """
    global _settings_instance
    _settings_instance = None
