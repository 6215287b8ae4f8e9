"""Tests for logging configuration and the Rich handler."""

from __future__ import annotations

import io
import json
import logging
import logging.handlers
import sys

import pytest
from rich.console import Console

from unitorrent.models import LogLevel, ObservabilityConfig
from unitorrent.utils.logging_config import (
    CorrelationFilter,
    StructuredFormatter,
    correlation_id,
    get_correlation_id,
    get_logger,
    set_correlation_id,
    setup_logging,
)
from unitorrent.utils.rich_logging import (
    CorrelationRichHandler,
    FileFormatter,
    strip_rich_markup,
)

pytestmark = [pytest.mark.unit, pytest.mark.observability]


@pytest.fixture(autouse=True)
def _reset_correlation_id():
    token = correlation_id.set(None)
    yield
    correlation_id.reset(token)


def make_record(msg="hello %s", args=("world",), **extra):
    record = logging.LogRecord(
        name="unitorrent.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=10,
        msg=msg,
        args=args,
        exc_info=None,
        func="fetch_list",
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestCorrelation:
    def test_filter_without_id(self):
        record = make_record()
        assert CorrelationFilter().filter(record)
        assert record.correlation_id == "no-correlation-id"

    def test_filter_with_id(self):
        assert set_correlation_id("req-1") == "req-1"
        record = make_record()
        CorrelationFilter().filter(record)
        assert record.correlation_id == "req-1"
        assert get_correlation_id() == "req-1"

    def test_generated_id(self):
        generated = set_correlation_id()
        assert generated
        assert get_correlation_id() == generated


class TestFormatters:
    def test_structured_formatter_emits_json(self):
        record = make_record(correlation_id="abc", operation="torrent-get")
        entry = json.loads(StructuredFormatter().format(record))

        assert entry["message"] == "hello world"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "unitorrent.test"
        assert entry["function"] == "fetch_list"
        assert entry["correlation_id"] == "abc"
        assert entry["operation"] == "torrent-get"
        assert "msg" not in entry

    def test_structured_formatter_includes_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = make_record(msg="failed", args=())
            record.exc_info = sys.exc_info()
        entry = json.loads(StructuredFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]

    def test_file_formatter_strips_markup(self):
        formatter = FileFormatter("%(message)s")
        record = make_record(msg="[#ff69b4]fetch_list[/#ff69b4] [bold]done[/bold]", args=())
        assert formatter.format(record) == "fetch_list done"

    def test_strip_rich_markup(self):
        assert strip_rich_markup("[red]x[/red] y") == "x y"


class TestRichHandler:
    def test_prefixes_function_name(self):
        buffer = io.StringIO()
        console = Console(file=buffer, width=200, force_terminal=False, color_system=None)
        handler = CorrelationRichHandler(console=console, show_path=False)

        handler.emit(make_record(msg="loaded [%d] torrents", args=(3,)))

        output = buffer.getvalue()
        assert "fetch_list" in output
        assert "loaded [3] torrents" in output

    def test_sets_correlation_id(self):
        console = Console(file=io.StringIO(), width=200)
        handler = CorrelationRichHandler(console=console, show_function=False)
        record = make_record()
        handler.emit(record)
        assert record.correlation_id == "no-correlation-id"


class TestSetupLogging:
    def test_console_only(self):
        setup_logging(ObservabilityConfig(log_level=LogLevel.DEBUG, log_correlation_id=False))

        pkg_logger = logging.getLogger("unitorrent")
        assert pkg_logger.level == logging.DEBUG
        assert not pkg_logger.propagate
        assert any(isinstance(h, CorrelationRichHandler) for h in pkg_logger.handlers)
        assert get_correlation_id() is None

    def test_file_output(self, tmp_path):
        log_file = tmp_path / "logs" / "unitorrent.log"
        setup_logging(ObservabilityConfig(log_file=str(log_file)))

        get_logger("adapter").info("added %s", "magnet")
        for handler in logging.getLogger("unitorrent").handlers:
            handler.flush()

        text = log_file.read_text(encoding="utf-8")
        assert "unitorrent.adapter" in text
        assert "added magnet" in text
        assert get_correlation_id() in text

    def test_structured_file_output(self, tmp_path):
        log_file = tmp_path / "structured.log"
        setup_logging(ObservabilityConfig(log_file=str(log_file), structured_logging=True))

        pkg_logger = logging.getLogger("unitorrent")
        assert any(
            isinstance(h, logging.handlers.RotatingFileHandler) for h in pkg_logger.handlers
        )
        get_logger("config").warning("reloaded")
        for handler in pkg_logger.handlers:
            handler.flush()

        lines = log_file.read_text(encoding="utf-8").splitlines()
        entry = json.loads(lines[-1])
        assert entry["message"] == "reloaded"
        assert entry["level"] == "WARNING"
