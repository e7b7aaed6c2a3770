import os
from pathlib import Path
from unittest import mock

import pytest

from vespakit.core.config import (
    AppConfig,
    ConfigError,
    ThrottleConfig,
    load_app_config,
    validate_config_file,
)
from vespakit.core.config.loader import DEFAULT_CONFIG_TEMPLATE


def _write(tmp_path: Path, text: str) -> Path:
    path = tmp_path / "vespakit.yaml"
    path.write_text(text, encoding="utf-8")
    return path


def test_defaults_match_documented_constants() -> None:
    config = AppConfig.model_validate({"knack": {"app_id": "a", "api_key": "k"}})

    assert config.throttle.base_cooldown_ms == 1000
    assert config.throttle.max_cooldown_ms == 10000
    assert config.retry.max_attempts == 3
    assert config.retry.base_delay_ms == 1000
    assert config.cache.ttl_seconds == 300
    assert config.knack.api_url == "https://api.knack.com/v1"
    assert config.knack.user_token is None
    assert config.debug is False


def test_api_url_trailing_slash_is_stripped() -> None:
    config = AppConfig.model_validate(
        {"knack": {"app_id": "a", "api_key": "k", "api_url": "https://example.test/v1/"}}
    )
    assert config.knack.api_url == "https://example.test/v1"


def test_max_cooldown_must_not_be_below_base() -> None:
    with pytest.raises(ValueError):
        ThrottleConfig(base_cooldown_ms=2000, max_cooldown_ms=1000)


def test_load_expands_environment_variables(tmp_path: Path) -> None:
    path = _write(tmp_path, DEFAULT_CONFIG_TEMPLATE)
    env = {"KNACK_APP_ID": "app-from-env", "KNACK_API_KEY": "key-from-env"}

    with mock.patch.dict(os.environ, env, clear=True):
        config = load_app_config(path)

    assert config.knack.app_id == "app-from-env"
    assert config.knack.api_key == "key-from-env"
    # ${KNACK_USER_TOKEN:-} falls back to empty
    assert config.knack.user_token == ""


def test_missing_credentials_fail_fast(tmp_path: Path) -> None:
    path = _write(tmp_path, DEFAULT_CONFIG_TEMPLATE)

    with mock.patch.dict(os.environ, {}, clear=True):
        with pytest.raises(ConfigError) as exc_info:
            load_app_config(path)

    assert exc_info.value.path == path
    assert "app_id" in (exc_info.value.details or "")


def test_missing_file_raises_config_error(tmp_path: Path) -> None:
    with pytest.raises(ConfigError, match="not found"):
        load_app_config(tmp_path / "nope.yaml")


def test_invalid_yaml_raises_config_error(tmp_path: Path) -> None:
    path = _write(tmp_path, "knack: [unclosed\n")

    with pytest.raises(ConfigError, match="Invalid YAML"):
        load_app_config(path)


def test_non_mapping_top_level_is_rejected(tmp_path: Path) -> None:
    path = _write(tmp_path, "- just\n- a list\n")

    with pytest.raises(ConfigError, match="mapping"):
        load_app_config(path)


def test_validate_config_file_lists_problems(tmp_path: Path) -> None:
    path = _write(
        tmp_path,
        "knack:\n  app_id: a\nthrottle:\n  base_cooldown_ms: -5\n",
    )

    errors = validate_config_file(path)

    assert any(e.startswith("knack.api_key") for e in errors)
    assert any(e.startswith("throttle.base_cooldown_ms") for e in errors)


def test_validate_config_file_accepts_valid_file(tmp_path: Path) -> None:
    path = _write(tmp_path, "knack:\n  app_id: a\n  api_key: k\n")
    assert validate_config_file(path) == []
