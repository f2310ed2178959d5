"""Tests for structured logging functionality."""

from __future__ import annotations

import json
import logging
import logging.handlers

import pytest

from quickmoney.logging_config import JSONFormatter, get_logger, setup_logging
from quickmoney.services import transaction_log


@pytest.fixture
def app_logger(config):
    logger = setup_logging(config)
    yield logger
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()


def _record(**extra) -> logging.LogRecord:
    record = logging.LogRecord(
        name="quickmoney.test",
        level=logging.INFO,
        pathname="test.py",
        lineno=42,
        msg="Test message",
        args=(),
        exc_info=None,
    )
    record.__dict__.update(extra)
    return record


def test_json_formatter_structure_and_extras():
    log_data = json.loads(JSONFormatter().format(_record(transaction_id=7)))

    assert log_data["level"] == "INFO"
    assert log_data["logger"] == "quickmoney.test"
    assert log_data["message"] == "Test message"
    assert log_data["line"] == 42
    assert "timestamp" in log_data
    assert log_data["extra"] == {"transaction_id": 7}


def test_json_formatter_with_exception():
    try:
        raise ValueError("Test error")
    except ValueError as exc:
        record = logging.LogRecord(
            name="quickmoney.test",
            level=logging.ERROR,
            pathname="test.py",
            lineno=1,
            msg="Error occurred",
            args=(),
            exc_info=(type(exc), exc, exc.__traceback__),
        )

    log_data = json.loads(JSONFormatter().format(record))
    assert log_data["exception"]["type"] == "ValueError"
    assert "Test error" in log_data["exception"]["message"]


def test_setup_logging_writes_json_file(config, app_logger):
    assert app_logger.name == "quickmoney"
    assert len(app_logger.handlers) == 2

    log_file = config.DATA_DIR / "logs" / "quickmoney.log"
    assert log_file.exists()

    # Re-running setup must not stack handlers.
    assert len(setup_logging(config).handlers) == 2


def test_service_events_reach_log_file(config, app_logger, state, make_tx):
    tx = transaction_log.add(state, make_tx(15))
    for handler in app_logger.handlers:
        handler.flush()

    lines = (config.DATA_DIR / "logs" / "quickmoney.log").read_text(encoding="utf-8").splitlines()
    entries = [json.loads(line) for line in lines if line.strip()]
    added = [e for e in entries if e["message"] == "Transaction added"]
    assert added and added[-1]["extra"]["transaction_id"] == tx.id
    assert added[-1]["logger"] == "quickmoney.services.transaction_log"
    assert added[-1]["extra"]["user_namespace"] == "tester"


def test_get_logger_namespaces():
    assert get_logger("module1").name == "quickmoney.module1"
    assert get_logger("quickmoney.scheduler").name == "quickmoney.scheduler"


@pytest.mark.parametrize("dev_mode", [True, False])
def test_console_level_by_mode(config, dev_mode):
    config.DEV_MODE = dev_mode
    logger = setup_logging(config)
    try:
        console = next(
            h
            for h in logger.handlers
            if isinstance(h, logging.StreamHandler) and not isinstance(h, logging.handlers.RotatingFileHandler)
        )
        assert console.level == (logging.INFO if dev_mode else logging.WARNING)
    finally:
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()
