"""
Tests for rewardpayout/logs.py and rewardpayout/payout/audit.py
"""

import json
import logging
import os
from unittest.mock import patch

import pytest

from rewardpayout.errors import FailureKind
from rewardpayout.logs import DailyFileHandler, JsonFormatter, configure_logging
from rewardpayout.payout.audit import AUDIT_LOGGER_NAME, AuditLog


@pytest.fixture
def reset_logging():
    yield
    root = logging.getLogger("rewardpayout")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)


class ListHandler(logging.Handler):
    """Collects records in memory."""

    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


def capture(logger_name):
    logger = logging.getLogger(logger_name)
    handler = ListHandler()
    logger.addHandler(handler)
    logger.setLevel(logging.DEBUG)
    return logger, handler


def make_record(message="hello", audit=None, level=logging.INFO):
    record = logging.LogRecord("rewardpayout.test", level, __file__, 1, message, None, None)
    if audit is not None:
        record.audit = audit
    return record


class TestJsonFormatter:
    """Tests for JsonFormatter."""

    def test_basic_fields(self):
        entry = json.loads(JsonFormatter().format(make_record("hello")))

        assert entry["message"] == "hello"
        assert entry["level"] == "INFO"
        assert entry["logger"] == "rewardpayout.test"
        assert "timestamp" in entry

    def test_audit_fields_merged(self):
        record = make_record("Token transfer completed", audit={
            "event": "transfer_completed",
            "transaction": "txid1",
            "recipient": "Eaddr",
            "amount": 5,
            "timestamp": 0,
        })

        entry = json.loads(JsonFormatter().format(record))

        assert entry["event"] == "transfer_completed"
        assert entry["transaction"] == "txid1"
        assert entry["amount"] == 5
        assert entry["timestamp"] != 0


class TestDailyFileHandler:
    """Tests for DailyFileHandler."""

    def test_writes_dated_file(self, tmp_path):
        handler = DailyFileHandler(str(tmp_path / "logs"))
        handler.setFormatter(JsonFormatter())
        try:
            handler.emit(make_record("first"))
        finally:
            handler.close()

        files = os.listdir(tmp_path / "logs")
        assert len(files) == 1
        assert files[0].startswith("reward-distribution-")
        assert files[0].endswith(".log")

    def test_switches_file_on_new_day(self, tmp_path):
        handler = DailyFileHandler(str(tmp_path), prefix="test")
        handler.setFormatter(JsonFormatter())
        try:
            with patch.object(DailyFileHandler, "_today", return_value="2024-01-01"):
                handler.emit(make_record("day one"))
            with patch.object(DailyFileHandler, "_today", return_value="2024-01-02"):
                handler.emit(make_record("day two"))
        finally:
            handler.close()

        assert sorted(os.listdir(tmp_path)) == ["test-2024-01-01.log", "test-2024-01-02.log"]
        with open(tmp_path / "test-2024-01-02.log") as f:
            assert json.loads(f.readline())["message"] == "day two"


class TestConfigureLogging:
    """Tests for configure_logging."""

    def test_console_only(self, reset_logging):
        root = configure_logging("debug")

        assert root.level == logging.DEBUG
        assert len(root.handlers) == 1
        assert not root.propagate

    def test_with_file(self, tmp_path, reset_logging):
        root = configure_logging("INFO", str(tmp_path))
        assert any(isinstance(h, DailyFileHandler) for h in root.handlers)

    def test_reconfigure_replaces_handlers(self, tmp_path, reset_logging):
        configure_logging("INFO", str(tmp_path))
        root = configure_logging("INFO")
        assert len(root.handlers) == 1


class TestAuditLog:
    """Tests for AuditLog."""

    def test_transfer_completed(self):
        logger, handler = capture("rewardpayout.audit.completed")
        try:
            AuditLog(logger).transfer_completed("txid1", "Eaddr", 5)
        finally:
            logger.removeHandler(handler)

        record = handler.records[-1]
        assert record.getMessage() == "Token transfer completed"
        assert record.audit["event"] == "transfer_completed"
        assert record.audit["transaction"] == "txid1"
        assert record.audit["recipient"] == "Eaddr"
        assert record.audit["amount"] == 5

    def test_transfer_failed(self):
        logger, handler = capture("rewardpayout.audit.failed")
        try:
            AuditLog(logger).transfer_failed(
                "Eaddr", 5, FailureKind.INSUFFICIENT_FUNDS, "Insufficient balance"
            )
        finally:
            logger.removeHandler(handler)

        record = handler.records[-1]
        assert record.levelno == logging.ERROR
        assert record.audit["kind"] == "insufficient_funds"
        assert record.audit["error"] == "Insufficient balance"

    def test_default_logger(self):
        assert AuditLog().logger.name == AUDIT_LOGGER_NAME
