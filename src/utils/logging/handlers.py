"""
Logger wrappers carrying per-operation context.
"""

import logging


class ContextLogger:
    """
    Logger wrapper that adds contextual information to all log messages

    Usage:
        logger = ContextLogger(__name__, collection="users")
        logger.info("Diff computed", creates=3, deletes=1)
        # Output carries collection, creates and deletes
    """

    def __init__(self, name: str, **context):
        """
        Initialize context logger

        Args:
            name: Logger name
            **context: Contextual key-value pairs to include in all logs
        """
        self.logger = logging.getLogger(name)
        self.context = context

    def _log(self, level: int, msg: str, *args, exc_info=None, **kwargs) -> None:
        if not self.logger.isEnabledFor(level):
            return

        self.logger.log(
            level,
            msg,
            *args,
            exc_info=exc_info,
            extra={**self.context, **kwargs},
            stacklevel=3,
        )

    def debug(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.DEBUG, msg, *args, **kwargs)

    def info(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.INFO, msg, *args, **kwargs)

    def warning(self, msg: str, *args, **kwargs) -> None:
        self._log(logging.WARNING, msg, *args, **kwargs)

    def error(self, msg: str, *args, exc_info=None, **kwargs) -> None:
        self._log(logging.ERROR, msg, *args, exc_info=exc_info, **kwargs)

    def critical(self, msg: str, *args, exc_info=None, **kwargs) -> None:
        self._log(logging.CRITICAL, msg, *args, exc_info=exc_info, **kwargs)
