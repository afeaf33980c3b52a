"""System logger for operational events.

This module provides singleton loggers for messages that are about the library
itself rather than the application's telemetry (missing configuration, failed
log deliveries, failed background flushes).

Logging strategy:
- System logger (stderr): operational messages, INFO and above
- Console logger (stderr): application log events printed by ConsoleTransport
  when no ingest endpoint is configured

Structured messages are plain dicts:
    get_system_logger().warning({"event": "axiom_not_configured", "message": "..."})
"""

from __future__ import annotations

__all__ = [
    "ConsoleFormatter",
    "get_console_logger",
    "get_system_logger",
]

import logging
import sys

from axiom_asgi.constants import APP_NAME


class ConsoleFormatter(logging.Formatter):
    """Human-readable formatter for console output.

    Extracts 'message' or 'event' field from dict messages for cleaner stderr output.
    """

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human-readable console output.

        Args:
            record: The log record to format.

        Returns:
            str: Formatted log message with level prefix.
        """
        if isinstance(record.msg, dict):
            msg = record.msg.get("message") or record.msg.get("event", "")
            return f"{record.levelname}: {msg}"
        return f"{record.levelname}: {record.getMessage()}"


_system_logger: logging.Logger | None = None
_console_logger: logging.Logger | None = None


def _build_stderr_logger(name: str, formatter: logging.Formatter) -> logging.Logger:
    """Create a non-propagating logger with a single stderr handler."""
    logger = logging.getLogger(name)
    logger.setLevel(logging.DEBUG)
    logger.propagate = False

    # Close and remove any existing handlers to avoid duplicates and resource leaks
    for handler in logger.handlers:
        handler.close()
    logger.handlers.clear()

    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setLevel(logging.DEBUG)
    stderr_handler.setFormatter(formatter)
    logger.addHandler(stderr_handler)
    return logger


def get_system_logger() -> logging.Logger:
    """Get the singleton system logger instance.

    Created on first call with a stderr handler at INFO.

    Returns:
        logging.Logger: Configured system logger instance.

    Example:
        >>> from axiom_asgi.system_logger import get_system_logger
        >>> get_system_logger().error({"event": "log_delivery_failed", "message": "..."})
    """
    global _system_logger

    if _system_logger is not None:
        return _system_logger

    _system_logger = _build_stderr_logger(f"{APP_NAME}.system", ConsoleFormatter())
    _system_logger.setLevel(logging.INFO)
    return _system_logger


def get_console_logger() -> logging.Logger:
    """Get the singleton logger that prints application log events to stderr.

    Messages are pre-formatted by ConsoleTransport, so the formatter only
    emits the message itself.

    Returns:
        logging.Logger: Configured console logger instance.
    """
    global _console_logger

    if _console_logger is not None:
        return _console_logger

    _console_logger = _build_stderr_logger(f"{APP_NAME}.console", logging.Formatter("%(message)s"))
    return _console_logger
