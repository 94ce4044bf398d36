"""
Logging configuration for docsync.

Provides setup functions for configuring application-wide logging with
support for file rotation, console output, and JSON formatting.
"""

import logging
import logging.handlers
import os
import sys

from .formatters import ConsoleFormatter, JSONFormatter

TRUTHY = ("true", "1", "yes")


def setup_logging(
    level: str = "INFO",
    log_file: str | None = None,
    console_output: bool = True,
    json_format: bool = False,
    app_name: str = "docsync",
    max_bytes: int = 50 * 1024 * 1024,  # 50MB
    backup_count: int = 5,
) -> None:
    """
    Configure logging for the application

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        log_file: Path to log file (if None, file logging is disabled)
        console_output: Whether to log to stderr
        json_format: Use JSON format for both console and file logs
        app_name: Application name for log context
        max_bytes: Maximum log file size before rotation
        backup_count: Number of rotated log files to keep
    """
    numeric_level = getattr(logging, level.upper(), logging.INFO)

    root_logger = logging.getLogger()
    root_logger.setLevel(numeric_level)

    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)
        handler.close()

    def json_formatter() -> JSONFormatter:
        return JSONFormatter(include_timestamp=True, include_hostname=True, app_name=app_name)

    if console_output:
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setLevel(numeric_level)
        console_handler.setFormatter(
            json_formatter() if json_format else ConsoleFormatter(use_colors=True)
        )
        root_logger.addHandler(console_handler)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)

        file_handler = logging.handlers.RotatingFileHandler(
            filename=log_file,
            maxBytes=max_bytes,
            backupCount=backup_count,
            encoding="utf-8",
        )
        file_handler.setLevel(numeric_level)
        file_handler.setFormatter(
            json_formatter()
            if json_format
            else logging.Formatter(
                fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        root_logger.addHandler(file_handler)

    # Quieten third-party libraries
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    logging.getLogger("opentelemetry").setLevel(logging.WARNING)

    logging.getLogger(__name__).debug(
        f"Logging initialized: level={level}, file={log_file or 'none'}, "
        f"console={console_output}, json={json_format}"
    )


def configure_from_env(default_level: str = "INFO", **overrides) -> None:
    """
    Configure logging from environment variables

    Keyword overrides (e.g. from command-line flags) win over the
    environment; overrides set to None are ignored.

    Environment variables:
        LOG_LEVEL: Log level (default: INFO)
        LOG_FILE: Log file path (default: none)
        LOG_JSON: Use JSON format (default: false)
        LOG_CONSOLE: Enable console output (default: true)
    """
    settings = {
        "level": os.getenv("LOG_LEVEL", default_level),
        "log_file": os.getenv("LOG_FILE") or None,
        "console_output": os.getenv("LOG_CONSOLE", "true").lower() in TRUTHY,
        "json_format": os.getenv("LOG_JSON", "false").lower() in TRUTHY,
    }
    settings.update({k: v for k, v in overrides.items() if v is not None})

    setup_logging(**settings)
