"""Tests for structured logging."""

import json
import logging
import sys

import pytest

from melodia.domain.exceptions import DuplicateEntityException
from melodia.infrastructure.observability.logging import (
    CompactExceptionFormatter,
    CorrelationIdFilter,
    CustomJsonFormatter,
    configure_logging,
    get_correlation_id,
    set_correlation_id,
)


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = root.handlers[:], root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)


def _record(msg: str = "hello", exc_info=None) -> logging.LogRecord:
    return logging.LogRecord(
        name="melodia.test",
        level=logging.ERROR,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=(),
        exc_info=exc_info,
    )


class TestCorrelationId:
    """Test correlation ID functionality."""

    def test_set_and_get_correlation_id(self):
        """Test setting and getting correlation ID."""
        result = set_correlation_id("test-123-abc")
        assert result == "test-123-abc"
        assert get_correlation_id() == "test-123-abc"

    def test_set_correlation_id_generates_uuid_when_none(self):
        """Test that setting None generates a UUID."""
        result = set_correlation_id(None)
        assert len(result) == 36
        assert get_correlation_id() == result

    def test_filter_stamps_record(self):
        """CorrelationIdFilter copies the context value onto each record."""
        set_correlation_id("req-42")
        record = _record()

        assert CorrelationIdFilter().filter(record) is True
        assert record.correlation_id == "req-42"


class TestLoggingConfiguration:
    """Test logging configuration."""

    def test_configure_logging_debug_level(self):
        configure_logging(log_level="DEBUG", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() <= logging.DEBUG

    def test_configure_logging_info_level(self):
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        assert logging.getLogger("test").getEffectiveLevel() == logging.INFO

    def test_configure_logging_replaces_handlers(self):
        """Calling twice leaves exactly one handler on the root logger."""
        configure_logging(log_level="INFO")
        configure_logging(log_level="INFO")
        assert len(logging.getLogger().handlers) == 1

    def test_configure_logging_json_format(self):
        configure_logging(log_level="INFO", json_format=True, app_name="test-app")
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, CustomJsonFormatter)

    def test_configure_logging_text_format(self):
        configure_logging(log_level="INFO", json_format=False, app_name="test-app")
        handler = logging.getLogger().handlers[0]
        assert isinstance(handler.formatter, CompactExceptionFormatter)

    def test_noisy_loggers_are_quieted(self):
        configure_logging(log_level="DEBUG")
        assert logging.getLogger("sqlalchemy.engine").level == logging.WARNING
        assert logging.getLogger("aiosqlite").level == logging.WARNING


class TestFormatters:
    """Formatter output."""

    def test_json_formatter_includes_correlation_id(self):
        formatter = CustomJsonFormatter("%(timestamp)s %(level)s %(name)s %(message)s")
        record = _record("played song")
        record.correlation_id = "corr-1"

        payload = json.loads(formatter.format(record))

        assert payload["message"] == "played song"
        assert payload["level"] == "ERROR"
        assert payload["logger"] == "melodia.test"
        assert payload["correlation_id"] == "corr-1"

    def test_json_formatter_omits_empty_correlation_id(self):
        formatter = CustomJsonFormatter("%(message)s")
        record = _record()
        record.correlation_id = ""

        assert "correlation_id" not in json.loads(formatter.format(record))

    def test_compact_formatter_prints_chain_root_cause_first(self):
        """The original error comes first, the domain exception last."""
        try:
            try:
                raise ValueError("UNIQUE constraint failed: songs.isrc")
            except ValueError as e:
                raise DuplicateEntityException("Song", field="isrc") from e
        except DuplicateEntityException:
            exc_info = sys.exc_info()

        text = CompactExceptionFormatter().formatException(exc_info)
        lines = [line for line in text.splitlines() if line.startswith("╰─►")]

        assert lines[0] == "╰─► ValueError: UNIQUE constraint failed: songs.isrc"
        assert lines[1] == "╰─► DuplicateEntityException: Song with this isrc already exists"

    def test_compact_formatter_handles_missing_exception(self):
        assert CompactExceptionFormatter().formatException((None, None, None)) == ""
