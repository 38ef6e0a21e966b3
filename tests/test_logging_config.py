"""Tests for structured logging configuration."""

from __future__ import annotations

import json
import logging
import sys

from core.logging_config import JSONFormatter, get_logger, reset_request_id, set_request_id, setup_logging


def _record(msg="hello %s", args=("world",), exc_info=None, level=logging.INFO) -> logging.LogRecord:
    return logging.LogRecord(
        name="test", level=level, pathname="test.py",
        lineno=1, msg=msg, args=args, exc_info=exc_info
    )


def test_json_formatter_outputs_valid_json():
    parsed = json.loads(JSONFormatter().format(_record()))
    assert parsed["message"] == "hello world"
    assert parsed["level"] == "INFO"
    assert parsed["logger"] == "test"
    assert "timestamp" in parsed
    assert "context" not in parsed


def test_json_formatter_includes_exception():
    try:
        raise ValueError("test error")
    except ValueError:
        exc_info = sys.exc_info()
    parsed = json.loads(JSONFormatter().format(_record("fail", (), exc_info, logging.ERROR)))
    assert parsed["exception"]["type"] == "ValueError"
    assert parsed["exception"]["message"] == "test error"


def test_json_formatter_collects_context_fields():
    record = _record("program_assigned", ())
    record.ctx_enrollment_id = "abc123"
    record.ctx_workouts = 36
    record.unrelated = "skip me"
    parsed = json.loads(JSONFormatter().format(record))
    assert parsed["context"] == {"ctx_enrollment_id": "abc123", "ctx_workouts": 36}


def test_json_formatter_includes_request_id():
    token = set_request_id("req-42")
    try:
        parsed = json.loads(JSONFormatter().format(_record()))
    finally:
        reset_request_id(token)
    assert parsed["request_id"] == "req-42"


def test_get_logger_returns_named_logger():
    log = get_logger("my.module")
    assert log.name == "my.module"
    assert isinstance(log, logging.Logger)


def test_setup_logging_idempotent():
    root = logging.getLogger()
    initial_count = len(root.handlers)
    setup_logging()
    setup_logging()
    # Should not add duplicate handlers
    assert len(root.handlers) <= initial_count + 1
