"""
Retry decorators with exponential backoff

Used around the two operations of a sync pass that may fail transiently
before any write happens:
- opening the HR database connection
- binding to the directory service

Writes are never retried inside a pass; re-running the pass is the retry.

Usage:
    from sync_utils.retry import retry_database_operation

    @retry_database_operation(max_retries=3, base_delay=1.0)
    def connect():
        return pyodbc.connect(connection_string, timeout=10)
"""

import logging
import random
import time
from functools import wraps
from typing import Any, Callable, Optional, Tuple, Type

logger = logging.getLogger(__name__)

# SQLSTATE codes reported by the ODBC driver for transient conditions
RETRYABLE_SQLSTATES = {
    "08001",  # unable to establish connection
    "08S01",  # communication link failure
    "HYT00",  # login/query timeout expired
    "HYT01",  # connection timeout expired
    "40001",  # deadlock victim
}

RETRYABLE_PATTERNS = [
    "connection",
    "timeout",
    "timed out",
    "deadlock",
    "lost connection",
    "unable to connect",
    "connection refused",
    "connection reset",
    "broken pipe",
    "network error",
    "communication link failure",
]


def _compute_delay(
    attempt: int,
    base_delay: float,
    max_delay: float,
    exponential_base: float,
    jitter: bool,
) -> float:
    delay = min(base_delay * (exponential_base ** attempt), max_delay)
    if jitter:
        # +/-25% of the delay
        jitter_amount = delay * 0.25
        delay = max(0.1, delay + random.uniform(-jitter_amount, jitter_amount))
    return delay


def retry_with_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    jitter: bool = True,
    retryable_exceptions: Optional[Tuple[Type[Exception], ...]] = None,
    should_retry: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Decorator that retries a function with exponential backoff

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        max_delay: Maximum delay in seconds (default: 60.0)
        exponential_base: Base for exponential backoff (default: 2.0)
        jitter: Add random jitter to the delay (default: True)
        retryable_exceptions: Exception types to retry (default: all exceptions)
        should_retry: Predicate deciding whether a caught exception is transient
        on_retry: Callback function(attempt, exception, delay) called on each retry

    Returns:
        Decorated function with retry logic

    Example:
        @retry_with_backoff(
            max_retries=2,
            retryable_exceptions=(LDAPSocketOpenError,),
        )
        def bind(connection):
            connection.open()
            connection.bind()
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args, **kwargs) -> Any:
            func_name = getattr(func, "__name__", "function")

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)

                except Exception as e:
                    retryable = True
                    if retryable_exceptions and not isinstance(e, retryable_exceptions):
                        retryable = False
                    if should_retry is not None and not should_retry(e):
                        retryable = False

                    if not retryable:
                        logger.error(
                            f"Non-retryable exception in {func_name}: {type(e).__name__}: {e}"
                        )
                        raise

                    if attempt == max_retries:
                        logger.error(
                            f"Max retries ({max_retries}) exceeded for {func_name}: "
                            f"{type(e).__name__}: {e}"
                        )
                        raise

                    delay = _compute_delay(
                        attempt, base_delay, max_delay, exponential_base, jitter
                    )

                    logger.warning(
                        f"Attempt {attempt + 1}/{max_retries} failed for {func_name}: "
                        f"{type(e).__name__}: {e}. Retrying in {delay:.2f}s..."
                    )

                    if on_retry:
                        try:
                            on_retry(attempt + 1, e, delay)
                        except Exception as callback_error:
                            logger.error(f"Error in retry callback: {callback_error}")

                    time.sleep(delay)

            raise RuntimeError(f"Unexpected error in retry logic for {func_name}")

        return wrapper
    return decorator


def is_retryable_db_exception(exception: Exception) -> bool:
    """
    Determine if a database exception is transient

    pyodbc errors carry the SQLSTATE as their first argument; those are
    checked first, then the message and type name are matched against
    common transient patterns.

    Args:
        exception: The exception to check

    Returns:
        True if the exception is retryable, False otherwise
    """
    args = getattr(exception, "args", ())
    if args and isinstance(args[0], str) and args[0].upper() in RETRYABLE_SQLSTATES:
        return True

    exception_str = str(exception).lower()
    exception_type = type(exception).__name__.lower()

    for pattern in RETRYABLE_PATTERNS:
        if pattern in exception_str or pattern in exception_type:
            return True

    return exception_type in {"operationalerror", "interfaceerror", "timeouterror"}


def retry_database_operation(
    max_retries: int = 3,
    base_delay: float = 1.0,
    on_retry: Optional[Callable[[int, Exception, float], None]] = None,
):
    """
    Convenience decorator for HR database operations

    Only retries transient database errors (connection, timeout, deadlock).
    Login failures, syntax errors and permission errors fail immediately.

    Args:
        max_retries: Maximum number of retry attempts (default: 3)
        base_delay: Initial delay in seconds (default: 1.0)
        on_retry: Callback function(attempt, exception, delay) called on each retry
    """
    return retry_with_backoff(
        max_retries=max_retries,
        base_delay=base_delay,
        should_retry=is_retryable_db_exception,
        on_retry=on_retry,
    )
