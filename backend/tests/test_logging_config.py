"""
Tests for structured logging helpers
"""
import json
import logging

from esmc.core.logging_config import (ContextualFormatter, LoggingConfig,
                                      SensitiveDataFilter)


def _record(msg, **extra):
    record = logging.LogRecord("esmc.test", logging.INFO, __file__, 10, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


def test_sensitive_values_masked():
    record = _record("login with password=hunter2 and Bearer abc.def")

    SensitiveDataFilter().filter(record)

    assert "hunter2" not in record.msg
    assert "abc.def" not in record.msg


def test_disabled_filter_leaves_message():
    record = _record("password=hunter2")

    SensitiveDataFilter(enabled=False).filter(record)

    assert record.msg == "password=hunter2"


def test_formatter_includes_context_and_extras():
    LoggingConfig.set_context(request_id="req-1")
    try:
        payload = json.loads(ContextualFormatter().format(_record("halted", severity="critical")))
    finally:
        LoggingConfig.clear_context()

    assert payload["message"] == "halted"
    assert payload["request_id"] == "req-1"
    assert payload["severity"] == "critical"
