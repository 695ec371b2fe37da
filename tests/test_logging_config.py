"""Tests for logging configuration and redaction."""

import logging

import pytest

from aria_runtime import logging_config
from aria_runtime.logging_config import _RedactFilter, configure_logging


def make_record(msg, *args):
    return logging.LogRecord("aria", logging.INFO, __file__, 1, msg, args, None)


def test_redacts_data_urls():
    record = make_record("Screenshot %s", "data:image/jpeg;base64,/9j/4AAQSkZJRgABAQ==")

    assert _RedactFilter().filter(record)

    assert record.getMessage() == "Screenshot data:image;base64,[redacted]"


def test_redacts_api_keys():
    record = make_record("Using key sk-or-v1-abcdef123456 and bb_live_abcdefgh99")

    _RedactFilter().filter(record)

    assert "sk-or" not in record.getMessage()
    assert "bb_live" not in record.getMessage()
    assert record.getMessage().count("[redacted-key]") == 2


def test_plain_messages_untouched():
    record = make_record("Navigated to %s", "https://example.com")

    _RedactFilter().filter(record)

    assert record.args == ("https://example.com",)


@pytest.fixture
def reset_logging(monkeypatch):
    monkeypatch.delattr(logging, logging_config._CONFIGURED_SENTINEL, raising=False)
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield
    for handler in root.handlers:
        for f in [f for f in handler.filters if isinstance(f, _RedactFilter)]:
            handler.removeFilter(f)
    root.handlers = handlers
    root.setLevel(level)
    if hasattr(logging, logging_config._CONFIGURED_SENTINEL):
        delattr(logging, logging_config._CONFIGURED_SENTINEL)


def test_configure_logging_is_idempotent(reset_logging):
    configure_logging("DEBUG")
    configure_logging("ERROR")

    assert logging.getLogger().level == logging.DEBUG
    assert logging.getLogger("httpx").level == logging.WARNING
    assert all(
        any(isinstance(f, _RedactFilter) for f in handler.filters)
        for handler in logging.getLogger().handlers
    )
