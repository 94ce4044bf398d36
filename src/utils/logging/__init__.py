"""
Structured logging for docsync

Provides JSON or coloured console output, optional rotating log files and
a ContextLogger that stamps collection/phase context onto every record.

Usage:
    import logging

    from utils.logging import ContextLogger, setup_logging

    # Setup logging (call once at application startup)
    setup_logging(level="INFO", log_file="/var/log/docsync/sync.log")

    logger = logging.getLogger(__name__)
    logger.info("Collection synchronized", extra={"collection": "users", "created": 12})

    log = ContextLogger(__name__, collection="users")
    log.info("Diff complete", creates=12)
"""

from .config import configure_from_env, setup_logging
from .formatters import ConsoleFormatter, JSONFormatter
from .handlers import ContextLogger

__all__ = [
    "setup_logging",
    "configure_from_env",
    "JSONFormatter",
    "ConsoleFormatter",
    "ContextLogger",
]
