#!/usr/bin/env python3
"""Comprehensive tests for the Logger module."""

import logging
import threading
from datetime import datetime

import pytest

from rulesort.infrastructure.logger import (
    Logger,
    LogLevel,
    configure_file_logging,
    get_logger,
    get_ops_logger,
    log_file_operation,
)


class ListHandler(logging.Handler):
    """Collects formatted messages."""

    def __init__(self):
        super().__init__()
        self.messages = []

    def emit(self, record):
        self.messages.append(record.getMessage())


@pytest.fixture
def captured():
    handler = ListHandler()
    logger = Logger(name="rulesort.test", level=LogLevel.DEBUG, handlers=[handler])
    return logger, handler


class TestLogLevel:
    """Tests for LogLevel enum."""

    def test_log_levels(self):
        """Test log level values match Python logging."""
        assert LogLevel.DEBUG == logging.DEBUG
        assert LogLevel.INFO == logging.INFO
        assert LogLevel.WARNING == logging.WARNING
        assert LogLevel.ERROR == logging.ERROR
        assert LogLevel.CRITICAL == logging.CRITICAL


class TestLogger:
    """Tests for Logger class."""

    def test_logger_creation(self):
        """Test creating a logger."""
        logger = Logger(name="rulesort.creation", level=LogLevel.DEBUG)
        assert logger.name == "rulesort.creation"
        assert logger.logger.level == LogLevel.DEBUG
        assert logger.logger.propagate is False

    def test_string_level(self):
        logger = Logger(name="rulesort.strlevel", level="warning")
        assert logger.logger.level == LogLevel.WARNING

    def test_context_formatting(self, captured):
        """Test key-value context is appended to the message."""
        logger, handler = captured
        logger.info("Moved file", source="/a", destination="/b")
        assert handler.messages == ["Moved file | source=/a destination=/b"]

    def test_no_context(self, captured):
        logger, handler = captured
        logger.warning("plain")
        assert handler.messages == ["plain"]

    def test_add_context(self, captured):
        """Test nested thread-local context."""
        logger, handler = captured
        with logger.add_context(rule_id="photos"):
            with logger.add_context(file="a.jpg"):
                logger.debug("Executing action")
            logger.debug("After")
        logger.debug("Outside")

        assert handler.messages == [
            "Executing action | rule_id=photos file=a.jpg",
            "After | rule_id=photos",
            "Outside",
        ]

    def test_context_is_thread_local(self, captured):
        logger, handler = captured

        def worker():
            logger.info("from thread")

        with logger.add_context(rule_id="main"):
            thread = threading.Thread(target=worker)
            thread.start()
            thread.join()

        assert handler.messages == ["from thread"]

    def test_level_filtering(self, captured):
        logger, handler = captured
        logger.set_level(LogLevel.ERROR)
        logger.info("hidden")
        logger.error("shown")
        assert handler.messages == ["shown"]

    def test_exception(self, captured):
        logger, handler = captured
        logger.exception("Failed", ValueError("boom"), path="/x")
        assert "exception_type=ValueError" in handler.messages[0]
        assert "exception_message=boom" in handler.messages[0]

    def test_create_file_handler(self, temp_dir):
        logger = Logger(name="rulesort.file", handlers=[])
        handler = logger.create_file_handler(temp_dir / "nested" / "app.log")
        logger.add_handler(handler)
        logger.info("to file", key="value")
        handler.close()
        content = (temp_dir / "nested" / "app.log").read_text()
        assert "to file | key=value" in content


class TestGlobalLoggers:
    """Tests for module-level logger helpers."""

    def test_get_logger_singleton(self):
        assert get_logger() is get_logger()
        assert get_logger().name == "rulesort"

    def test_ops_logger_has_no_handlers_by_default(self):
        ops = get_ops_logger()
        assert ops.name == "rulesort.file_ops"
        assert ops.logger.handlers == []
        # Dropped silently
        log_file_operation("move: /a -> /b", action="move")

    def test_configure_file_logging(self, temp_dir):
        logs = temp_dir / "logs"
        logger = configure_file_logging(logs, "DEBUG", today=datetime(2025, 6, 20))
        logger.debug("main message")
        log_file_operation("copy: /a -> /b", action="copy", dry_run=False)

        for handler in logger.logger.handlers + get_ops_logger().logger.handlers:
            handler.flush()

        assert "main message" in (logs / "main.log").read_text()
        ops_text = (logs / "ops" / "2025-06-20.log").read_text()
        assert "copy: /a -> /b | action=copy dry_run=False" in ops_text
