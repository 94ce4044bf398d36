"""
Retry decorator with exponential backoff for database connections

Only connection establishment is retried. Bulk data operations are never
retried automatically: a failed chunk aborts the collection and is
reported instead.

Usage:
    from utils.retry import retry_database_operation

    @retry_database_operation(max_retries=3, base_delay=1.0)
    def connect():
        return psycopg2.connect(...)
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

# Common transient error patterns
RETRYABLE_PATTERNS = (
    "connection",
    "timeout",
    "deadlock",
    "lock wait timeout",
    "server closed the connection",
    "could not connect",
    "connection refused",
    "connection reset",
    "broken pipe",
    "network error",
    "the database system is starting up",
    "too many clients",
)

RETRYABLE_EXCEPTION_NAMES = (
    "connectionerror",
    "timeouterror",
    "operationalerror",  # psycopg2 raises this for transient server issues
    "interfaceerror",
)

# Authentication failures surface as OperationalError too and must not be retried
NON_RETRYABLE_PATTERNS = (
    "password authentication failed",
    "no password supplied",
    "does not exist",
)


def is_retryable_db_exception(exception: Exception) -> bool:
    """
    Determine if a database exception is retryable

    Args:
        exception: The exception to check

    Returns:
        True if the exception is transient, False otherwise
    """
    exception_str = str(exception).lower()
    exception_type = type(exception).__name__.lower()

    for pattern in NON_RETRYABLE_PATTERNS:
        if pattern in exception_str:
            return False

    for pattern in RETRYABLE_PATTERNS:
        if pattern in exception_str or pattern in exception_type:
            return True

    return exception_type in RETRYABLE_EXCEPTION_NAMES


def retry_database_operation(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 30.0,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator retrying transient database errors with exponential backoff

    Non-retryable errors (bad credentials, missing database, syntax errors)
    fail immediately.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Upper bound for a single delay in seconds (default: 30.0)
        on_retry: Callback function(attempt, exception, delay) called on each retry
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            func_name = getattr(func, '__name__', 'function')

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except Exception as e:
                    if not is_retryable_db_exception(e):
                        logger.error(
                            f"Non-retryable database error in {func_name}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    if attempt == max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func_name}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    # Exponential backoff with +/-25% jitter
                    delay = min(base_delay * (2.0 ** attempt), max_delay)
                    jitter_amount = delay * 0.25
                    delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))

                    logger.warning(
                        f"Retryable database error in {func_name} "
                        f"(attempt {attempt + 1}/{max_retries}): "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )

                    if on_retry:
                        on_retry(attempt + 1, e, delay)

                    time.sleep(delay)

            raise RuntimeError(f"Unexpected error in retry logic for {func_name}")

        return wrapper
    return decorator
