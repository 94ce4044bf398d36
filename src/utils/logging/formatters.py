"""
Custom log formatters for structured and console logging.

Provides a JSON formatter for machine-readable logs and a console
formatter with level colours for interactive runs.
"""

import copy
import json
import logging
import os
import sys
import traceback
from datetime import UTC, datetime
from typing import Any

# Attributes every LogRecord carries; anything else came in through `extra`
RESERVED_FIELDS = frozenset({
    "name", "msg", "args", "created", "filename", "funcName",
    "levelname", "levelno", "lineno", "module", "msecs",
    "message", "pathname", "process", "processName", "relativeCreated",
    "thread", "threadName", "exc_info", "exc_text", "stack_info",
    "taskName", "asctime",
})


def extra_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Return the context attached to a record via `extra=`."""
    return {
        key: value
        for key, value in record.__dict__.items()
        if key not in RESERVED_FIELDS and not key.startswith("_")
    }


class JSONFormatter(logging.Formatter):
    """
    JSON formatter for structured logging

    Outputs one JSON object per record with standard fields, the source
    location and any extra context (collection, phase, counts).
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_hostname: bool = True,
        app_name: str = "docsync",
    ):
        """
        Initialize JSON formatter

        Args:
            include_timestamp: Include ISO8601 timestamp
            include_hostname: Include hostname in log records
            app_name: Application name to include in logs
        """
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_hostname = include_hostname
        self.app_name = app_name
        self.hostname = os.uname().nodename if include_hostname else None

    def format(self, record: logging.LogRecord) -> str:
        log_data: dict[str, Any] = {
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "app": self.app_name,
        }

        if self.include_timestamp:
            log_data["timestamp"] = datetime.fromtimestamp(record.created, UTC).isoformat()

        if self.include_hostname and self.hostname:
            log_data["hostname"] = self.hostname

        log_data["source"] = {
            "file": record.pathname,
            "line": record.lineno,
            "function": record.funcName,
        }

        log_data["thread"] = record.threadName

        if record.exc_info and record.exc_info[0] is not None:
            log_data["exception"] = {
                "type": record.exc_info[0].__name__,
                "message": str(record.exc_info[1]),
                "traceback": traceback.format_exception(*record.exc_info),
            }

        context = extra_fields(record)
        if context:
            log_data["context"] = context

        return json.dumps(log_data, default=str)


class ConsoleFormatter(logging.Formatter):
    """
    Human-readable console formatter with colors

    Context passed through `extra` is appended as `[key=value, ...]`.
    """

    COLORS = {
        "DEBUG": "\033[36m",      # Cyan
        "INFO": "\033[32m",       # Green
        "WARNING": "\033[33m",    # Yellow
        "ERROR": "\033[31m",      # Red
        "CRITICAL": "\033[35m",   # Magenta
    }
    RESET = "\033[0m"

    def __init__(self, use_colors: bool = True):
        """
        Initialize console formatter

        Args:
            use_colors: Whether to use ANSI color codes (only honoured on a TTY)
        """
        super().__init__(
            fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
        self.use_colors = use_colors and sys.stderr.isatty()

    def format(self, record: logging.LogRecord) -> str:
        # Colour a copy so other handlers still see the plain level name
        if self.use_colors and record.levelname in self.COLORS:
            record = copy.copy(record)
            record.levelname = f"{self.COLORS[record.levelname]}{record.levelname}{self.RESET}"

        formatted = super().format(record)

        context = extra_fields(record)
        if context:
            formatted += " [" + ", ".join(f"{k}={v}" for k, v in context.items()) + "]"

        return formatted
