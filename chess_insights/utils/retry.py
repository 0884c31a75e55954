# chess_insights/utils/retry.py
"""
Async retry with exponential backoff for short-lived durable-store contention.

SQLite in WAL mode still serializes writers; a second writer sees
"database is locked" or "database is busy" until the first one commits. Those
errors are worth waiting out. Every other failure (a full disk, a closed
connection, a constraint violation) is raised on the first attempt.
"""
import asyncio
import functools
import random
from typing import Any, Callable, Coroutine, Optional, Tuple, Type

import structlog

from chess_insights.utils import metrics

logger = structlog.get_logger(__name__)

AsyncFunc = Callable[..., Coroutine[Any, Any, Any]]
RetryPredicate = Callable[[BaseException], bool]

_CONTENTION_MARKERS = ("locked", "busy")


def is_lock_contention(error: BaseException) -> bool:
    """True for SQLite's "database is locked" / "database is busy" errors."""
    message = str(error).lower()
    return any(marker in message for marker in _CONTENTION_MARKERS)


def retry_with_backoff(
    exceptions_to_catch: Tuple[Type[Exception], ...],
    attempts: int = 3,
    initial_backoff_s: float = 0.05,
    max_backoff_s: float = 1.0,
    jitter_factor: float = 0.2,
    retry_if: Optional[RetryPredicate] = None,
    db_type: str = "durable",
) -> Callable[[AsyncFunc], AsyncFunc]:
    """
    Retries the decorated coroutine while it raises a retryable error.

    Args:
        exceptions_to_catch: Exception classes that may be retried.
        attempts: Total number of tries, the first one included.
        initial_backoff_s: Wait before the second try; doubled after each failure.
        max_backoff_s: Upper bound for a single wait.
        jitter_factor: Each wait is shifted randomly by up to this fraction.
        retry_if: Further narrows which caught errors are retried. Errors it
            rejects are raised immediately.
        db_type: Label for the transient-error counter.
    """
    def decorator(func: AsyncFunc) -> AsyncFunc:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_backoff_s
            attempt = 1
            while True:
                try:
                    return await func(*args, **kwargs)
                except exceptions_to_catch as e:
                    if retry_if is not None and not retry_if(e):
                        raise
                    metrics.DB_TRANSIENT_ERRORS_TOTAL.labels(db_type=db_type).inc()
                    if attempt >= attempts:
                        logger.error("Giving up after transient errors.", operation=func.__name__, attempts=attempts, error=str(e))
                        raise
                    wait = min(max_backoff_s, delay * (1 + random.uniform(-jitter_factor, jitter_factor)))
                    logger.warning("Transient error, retrying.", operation=func.__name__, attempt=attempt, wait_seconds=round(wait, 3), error=str(e))
                    await asyncio.sleep(wait)
                    delay *= 2
                    attempt += 1
        return wrapper
    return decorator
