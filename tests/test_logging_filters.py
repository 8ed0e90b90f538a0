"""Tests for sensitive data filtering and JSON formatting in logs."""

from __future__ import annotations

import json
import logging
from io import StringIO

import pytest

from app.core.config import LogSettings
from app.core.logging import (
    JsonFormatter,
    RequestIdFilter,
    SensitiveDataFilter,
    clear_request_id,
    configure_logging,
    redact,
    set_request_id,
)


@pytest.fixture
def capture():
    """Logger wired like production, writing JSON lines to a buffer."""

    logger = logging.getLogger("test_redaction")
    logger.setLevel(logging.INFO)
    logger.handlers.clear()
    logger.propagate = False

    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.addFilter(RequestIdFilter())
    handler.addFilter(SensitiveDataFilter())
    handler.setFormatter(JsonFormatter())
    logger.addHandler(handler)

    yield logger, stream

    logger.handlers.clear()
    clear_request_id()


def _last_line(stream: StringIO) -> dict:
    return json.loads(stream.getvalue().strip().splitlines()[-1])


def test_redacts_api_keys_and_raw_limiter_keys(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.exceeded",
        extra={
            "api_key": "sk-secret-123",
            "limiter_key": "api_key:sk-secret-123",
            "key_hash": "0123456789abcdef",
        },
    )

    output = stream.getvalue()
    assert "sk-secret-123" not in output
    assert _last_line(stream)["key_hash"] == "0123456789abcdef"


def test_redacts_forwarded_addresses_in_nested_headers(capture):
    logger, stream = capture

    logger.info(
        "request",
        extra={"headers": {"X-Forwarded-For": "203.0.113.7", "user-agent": "pytest"}},
    )

    line = _last_line(stream)
    assert line["headers"]["X-Forwarded-For"] == "[REDACTED]"
    assert line["headers"]["user-agent"] == "pytest"


def test_safe_fields_pass_through(capture):
    logger, stream = capture

    logger.info(
        "rate_limit.allowed",
        extra={"limit": 10, "remaining": 4, "window_ms": 60000, "key_type": "ip"},
    )

    line = _last_line(stream)
    assert line["message"] == "rate_limit.allowed"
    assert line["level"] == "info"
    assert line["remaining"] == 4
    assert "[REDACTED]" not in stream.getvalue()


def test_request_id_is_attached_from_context(capture):
    logger, stream = capture
    set_request_id("req-42")

    logger.info("rate_limit.allowed")

    assert _last_line(stream)["request_id"] == "req-42"


def test_redact_handles_sequences():
    value = [{"token": "t"}, ("keep", {"password": "p"})]

    assert redact(value) == [{"token": "[REDACTED]"}, ("keep", {"password": "[REDACTED]"})]


def test_configure_logging_file_output(tmp_path):
    log_file = tmp_path / "logs" / "app.log"
    cfg = LogSettings(output="file", file_path=str(log_file), format="json", level="INFO")

    configure_logging(cfg, debug=False)
    logging.getLogger("app.test").info("rate_limit.configured", extra={"limit": 3})
    for handler in logging.getLogger().handlers:
        handler.flush()

    assert json.loads(log_file.read_text().splitlines()[-1])["limit"] == 3
    assert logging.getLogger().level == logging.INFO

    configure_logging(LogSettings(), debug=True)
    assert logging.getLogger().level == logging.DEBUG
