"""Tests for logging configuration and the JSON formatter."""

from __future__ import annotations

import json
import logging
import sys

import pytest

from consee.core.settings import LoggingSettings
from consee.infra.logging import JSONFormatter, configure_logging, reset_logging_state, setup_logging


def make_record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="consee.test",
        level=logging.INFO,
        pathname=__file__,
        lineno=1,
        msg="Import finished %s",
        args=("now",),
        exc_info=None,
    )
    for key, value in extra.items():
        setattr(record, key, value)
    return record


@pytest.fixture(autouse=True)
def _restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    reset_logging_state()
    yield
    root.handlers = handlers
    root.setLevel(level)
    reset_logging_state()


def test_json_formatter_fields():
    formatter = JSONFormatter(static={"service": "consee"})
    data = json.loads(formatter.format(make_record(successes=3)))

    assert data["level"] == "INFO"
    assert data["logger"] == "consee.test"
    assert data["message"] == "Import finished now"
    assert data["service"] == "consee"
    assert data["successes"] == 3
    assert data["timestamp"].endswith("Z")
    assert "pathname" not in data


def test_json_formatter_one_line_with_exception():
    formatter = JSONFormatter()
    try:
        raise RuntimeError("boom")
    except RuntimeError:
        record = make_record()
        record.exc_info = sys.exc_info()

    output = formatter.format(record)
    assert "\n" not in output
    assert "RuntimeError" in json.loads(output)["exception"]


def test_configure_logging_file_handler(tmp_path):
    path = tmp_path / "logs" / "consee.log"
    configure_logging(log_level="DEBUG", file_path=path, json_logs=True, console_enabled=False)

    logging.getLogger("consee.test").info("written", extra={"key": "a"})
    for handler in logging.getLogger().handlers:
        handler.flush()

    line = path.read_text().strip().splitlines()[-1]
    assert json.loads(line)["key"] == "a"


def test_setup_logging_runs_once():
    setup_logging(LoggingSettings(level="ERROR", console_enabled=False))
    setup_logging(LoggingSettings(level="DEBUG", console_enabled=False))
    assert logging.getLogger().level == logging.ERROR

    setup_logging(LoggingSettings(level="DEBUG", console_enabled=False), force=True)
    assert logging.getLogger().level == logging.DEBUG
