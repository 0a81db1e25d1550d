#!/usr/bin/env python3
"""Structured logging system for RuleSort.

This module provides a structured logging system with:
- Multiple log levels (DEBUG, INFO, WARNING, ERROR)
- Structured context (key-value pairs)
- Console and rotating file handlers
- Thread-local context management
- A separate file-operations log for applied actions

Example:
    >>> logger = Logger(level=LogLevel.INFO)
    >>> logger.info("Starting sort", source="/home/me/Downloads", dry_run=True)
    >>> with logger.add_context(rule_id="photos"):
    ...     logger.debug("Executing action")
"""

import logging
import logging.handlers
import threading
from contextlib import contextmanager
from datetime import datetime
from enum import IntEnum
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from rulesort.core.constants import APP_NAME, OPS_LOGGER_NAME, Limits


class LogLevel(IntEnum):
    """Log levels matching Python's logging module."""

    DEBUG = logging.DEBUG  # 10
    INFO = logging.INFO  # 20
    WARNING = logging.WARNING  # 30
    ERROR = logging.ERROR  # 40
    CRITICAL = logging.CRITICAL  # 50


class Logger:
    """Structured logger with context support.

    Provides structured logging with key-value context that can be
    attached to log messages. Supports multiple output handlers and
    thread-local context management.
    """

    # Thread-local storage for context
    _context_stack = threading.local()

    def __init__(
        self,
        name: str = APP_NAME,
        level: Union[LogLevel, str] = LogLevel.INFO,
        handlers: Optional[List[logging.Handler]] = None,
    ):
        """Initialize logger.

        Args:
            name: Logger name for identification
            level: Minimum log level to output
            handlers: Optional list of logging handlers
        """
        self.name = name
        self.logger = logging.getLogger(name)
        self.set_level(level)

        # Configure handlers if not provided
        if handlers is None:
            handlers = [self._create_console_handler()]

        # Clear existing handlers and add new ones
        self.logger.handlers.clear()
        for handler in handlers:
            self.logger.addHandler(handler)

        # Prevent propagation to root logger
        self.logger.propagate = False

    def _create_console_handler(self) -> logging.StreamHandler:
        """Create default console handler with formatting.

        Returns:
            Configured console handler
        """
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        return handler

    def create_file_handler(
        self,
        filename: Union[str, Path],
        max_bytes: int = Limits.LOG_MAX_BYTES,
        backup_count: int = Limits.LOG_BACKUP_COUNT,
    ) -> logging.handlers.RotatingFileHandler:
        """Create rotating file handler.

        Parent directories are created when missing.

        Args:
            filename: Path to log file
            max_bytes: Maximum size before rotation
            backup_count: Number of backup files to keep

        Returns:
            Configured rotating file handler
        """
        Path(filename).parent.mkdir(parents=True, exist_ok=True)
        handler = logging.handlers.RotatingFileHandler(
            filename, maxBytes=max_bytes, backupCount=backup_count, encoding="utf-8"
        )
        formatter = logging.Formatter(
            "%(asctime)s [%(levelname)s] %(name)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        handler.setFormatter(formatter)
        return handler

    def add_handler(self, handler: logging.Handler) -> None:
        """Add a new output handler.

        Args:
            handler: Logging handler to add
        """
        self.logger.addHandler(handler)

    def set_level(self, level: Union[LogLevel, str]) -> None:
        """Set the minimum log level.

        Args:
            level: New log level (LogLevel or string)
        """
        if isinstance(level, str):
            level = LogLevel[level.upper()]
        self.logger.setLevel(level)

    def _get_context(self) -> Dict[str, Any]:
        """Get current thread-local context.

        Returns:
            Combined context from all levels
        """
        if not hasattr(self._context_stack, "stack"):
            self._context_stack.stack = [{}]

        context = {}
        for ctx in self._context_stack.stack:
            context.update(ctx)
        return context

    def _format_message(self, msg: str, context: Dict[str, Any]) -> str:
        """Format message with context.

        Args:
            msg: Log message
            context: Context dictionary

        Returns:
            Formatted message with context
        """
        if context:
            ctx_str = " ".join(f"{k}={v}" for k, v in context.items())
            return f"{msg} | {ctx_str}"
        return msg

    @contextmanager
    def add_context(self, **kwargs):
        """Context manager to add temporary context.

        Args:
            **kwargs: Key-value pairs to add to context

        Example:
            >>> with logger.add_context(file="a.txt", rule_id="txt"):
            ...     logger.info("Processing file")
        """
        if not hasattr(self._context_stack, "stack"):
            self._context_stack.stack = [{}]

        self._context_stack.stack.append(kwargs)
        try:
            yield
        finally:
            self._context_stack.stack.pop()

    def _log(self, level: int, msg: str, context: Dict[str, Any]) -> None:
        if self.logger.isEnabledFor(level):
            combined_context = self._get_context()
            combined_context.update(context)
            formatted_msg = self._format_message(msg, combined_context)
            self.logger.log(level, formatted_msg, extra={"context": combined_context})

    def debug(self, msg: str, **context) -> None:
        """Log debug message.

        Args:
            msg: Log message
            **context: Additional context key-value pairs
        """
        self._log(logging.DEBUG, msg, context)

    def info(self, msg: str, **context) -> None:
        """Log info message."""
        self._log(logging.INFO, msg, context)

    def warning(self, msg: str, **context) -> None:
        """Log warning message."""
        self._log(logging.WARNING, msg, context)

    def error(self, msg: str, **context) -> None:
        """Log error message."""
        self._log(logging.ERROR, msg, context)

    def exception(self, msg: str, exc: Exception, **context) -> None:
        """Log exception with traceback.

        Args:
            msg: Log message
            exc: Exception to log
            **context: Additional context key-value pairs
        """
        combined_context = self._get_context()
        combined_context.update(context)
        combined_context["exception_type"] = type(exc).__name__
        combined_context["exception_message"] = str(exc)
        formatted_msg = self._format_message(msg, combined_context)
        self.logger.error(formatted_msg, exc_info=exc, extra={"context": combined_context})


# Global logger instances
_global_logger: Optional[Logger] = None
_ops_logger: Optional[Logger] = None
_lock = threading.Lock()


def get_logger(name: str = APP_NAME) -> Logger:
    """Get or create a logger instance.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    global _global_logger
    with _lock:
        if _global_logger is None or _global_logger.name != name:
            _global_logger = Logger(name=name)
        return _global_logger


def get_ops_logger() -> Logger:
    """Get the file-operations logger.

    It has no handlers until :func:`configure_file_logging` attaches one, so
    operation records are dropped by default.
    """
    global _ops_logger
    with _lock:
        if _ops_logger is None:
            _ops_logger = Logger(name=OPS_LOGGER_NAME, level=LogLevel.INFO, handlers=[])
        return _ops_logger


def log_file_operation(msg: str, **context) -> None:
    """Record one applied (or simulated) file operation."""
    get_ops_logger().info(msg, **context)


def configure_file_logging(
    logs_folder: Union[str, Path],
    level: Union[LogLevel, str] = LogLevel.INFO,
    today: Optional[datetime] = None,
) -> Logger:
    """Route the main log and the operations log to files.

    The main log goes to ``<logs_folder>/main.log`` and operations to
    ``<logs_folder>/ops/<YYYY-MM-DD>.log``.

    Args:
        logs_folder: Folder for log files
        level: Main log level
        today: Date used for the operations log name

    Returns:
        The configured main logger
    """
    logs_folder = Path(logs_folder).expanduser()
    today = today or datetime.now()

    logger = get_logger()
    logger.set_level(level)
    logger.add_handler(logger.create_file_handler(logs_folder / "main.log"))

    ops = get_ops_logger()
    ops.add_handler(ops.create_file_handler(logs_folder / "ops" / f"{today:%Y-%m-%d}.log"))
    return logger
