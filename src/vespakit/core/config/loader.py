"""
YAML configuration loading.

Configuration is read once at startup and validated into ``AppConfig``.
String values may reference the environment as ``${VAR}`` or
``${VAR:-default}``; an unset variable without a default becomes an
empty string and is then caught by model validation.
"""

from __future__ import annotations

import os
import re
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from .models import AppConfig

DEFAULT_CONFIG_PATH = Path("configs/vespakit.yaml")

_ENV_REF = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


class ConfigError(Exception):
    """Configuration could not be read or is invalid."""

    def __init__(self, message: str, path: Path | None = None, details: str | None = None):
        self.path = path
        self.details = details
        super().__init__(message)


def _substitute(text: str) -> str:
    return _ENV_REF.sub(lambda m: os.environ.get(m["name"], m["default"] or ""), text)


def expand_env(value: Any) -> Any:
    """Resolve ``${VAR}`` references in every string of a YAML tree."""
    if isinstance(value, str):
        return _substitute(value)
    if isinstance(value, dict):
        return {key: expand_env(item) for key, item in value.items()}
    if isinstance(value, list):
        return [expand_env(item) for item in value]
    return value


def _read_mapping(path: Path) -> dict[str, Any]:
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path}", path=path)

    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}", path=path, details=str(e)) from e
    except OSError as e:
        raise ConfigError(f"Cannot read {path}", path=path, details=str(e)) from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(f"Top level of {path} must be a mapping", path=path)
    return data


def _error_lines(error: ValidationError) -> list[str]:
    lines = []
    for item in error.errors():
        loc = ".".join(str(part) for part in item["loc"])
        lines.append(f"{loc}: {item['msg']}")
    return lines


def build_app_config(data: dict[str, Any], path: Path | None = None) -> AppConfig:
    """Validate an already-expanded mapping.

    Raises:
        ConfigError: One line per invalid field in ``details``
    """
    try:
        return AppConfig.model_validate(data)
    except ValidationError as e:
        where = f" in {path}" if path else ""
        raise ConfigError(
            f"Invalid configuration{where}",
            path=path,
            details="\n".join(_error_lines(e)),
        ) from e


def load_app_config(path: Path | str | None = None, expand: bool = True) -> AppConfig:
    """Load and validate the application configuration.

    A missing file or missing Knack credentials is fatal; there is no
    default to fall back to for either.

    Args:
        path: YAML file (default: configs/vespakit.yaml)
        expand: Resolve ``${VAR}`` references from the environment

    Raises:
        ConfigError: If the file is missing, unreadable or invalid
    """
    path = DEFAULT_CONFIG_PATH if path is None else Path(path)
    data = _read_mapping(path)
    return build_app_config(expand_env(data) if expand else data, path=path)


def validate_config_file(path: Path | str) -> list[str]:
    """Problems found in a configuration file; empty when it is valid."""
    try:
        load_app_config(path)
    except ConfigError as e:
        if e.__cause__ is not None and isinstance(e.__cause__, ValidationError):
            return _error_lines(e.__cause__)
        return [str(e)]
    return []


DEFAULT_CONFIG_TEMPLATE = """\
# vespakit configuration
knack:
  app_id: ${KNACK_APP_ID}
  api_key: ${KNACK_API_KEY}
  user_token: ${KNACK_USER_TOKEN:-}

throttle:
  base_cooldown_ms: 1000
  max_cooldown_ms: 10000

retry:
  max_attempts: 3
  base_delay_ms: 1000

cache:
  ttl_seconds: 300

proxy:
  email_url: ${VESPA_EMAIL_PROXY_URL:-}
  dashboard_url: ${VESPA_DASHBOARD_URL:-}

logging:
  level: INFO

debug: false
"""
