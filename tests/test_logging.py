import json
import logging

import pytest

from vespakit.core.logging import get_contextual_logger, get_logger, setup_logging


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("vespakit")
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()
    logger.setLevel(logging.NOTSET)


def test_loggers_live_under_package_namespace() -> None:
    assert get_logger("fetch.retries").name == "vespakit.fetch.retries"
    assert get_logger().name == "vespakit"


def test_json_file_log_includes_request_context(tmp_path) -> None:
    log_file = tmp_path / "logs" / "vespakit.jsonl"
    setup_logging(level="DEBUG", log_file=log_file, json_format=True, rich_console=False)

    log = get_contextual_logger("fetch.dispatcher", resource="object_6", request_key="student:1:get")
    log.warning("Request failed after %d attempt(s)", 3)

    lines = log_file.read_text(encoding="utf-8").splitlines()
    entry = json.loads(lines[-1])
    assert entry["level"] == "WARNING"
    assert entry["logger"] == "vespakit.fetch.dispatcher"
    assert entry["message"] == "Request failed after 3 attempt(s)"
    assert entry["resource"] == "object_6"
    assert entry["request_key"] == "student:1:get"


def test_with_context_keeps_existing_fields() -> None:
    log = get_contextual_logger("x", resource="object_6")
    child = log.with_context(request_key="k1")

    assert child.resource == "object_6"
    assert child.request_key == "k1"


def test_call_extras_override_bound_context(tmp_path) -> None:
    log_file = tmp_path / "vespakit.jsonl"
    setup_logging(level="INFO", log_file=log_file, json_format=True, rich_console=False)

    log = get_contextual_logger("fetch.retries", resource="object_6", attempt=1)
    log.debug("Retrying", extra={"attempt": 2, "status_code": 429})

    entry = json.loads(log_file.read_text(encoding="utf-8").splitlines()[-1])
    assert entry["attempt"] == 2
    assert entry["status_code"] == 429
    assert entry["resource"] == "object_6"


def test_unknown_context_field_is_rejected() -> None:
    with pytest.raises(ValueError):
        get_contextual_logger("x", portal="nope")
