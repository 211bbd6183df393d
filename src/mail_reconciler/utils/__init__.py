"""Utility functions for Mail Reconciler."""

import time
from functools import wraps
from typing import Any, Callable, Optional, TypeVar

import structlog

logger = structlog.get_logger()

F = TypeVar("F", bound=Callable[..., Any])

_TRANSIENT_HTTP_STATUSES = {429, 500, 502, 503, 504}


def is_transient_error(exc: Exception) -> bool:
    """Whether a failed remote call is worth retrying.

    Network errors and HTTP 429/5xx responses (googleapiclient's HttpError
    carries the status on ``exc.resp.status``) are transient; everything else,
    including 4xx auth and not-found errors, is not.
    """

    status = getattr(getattr(exc, "resp", None), "status", None)
    if status is not None:
        try:
            return int(status) in _TRANSIENT_HTTP_STATUSES
        except (TypeError, ValueError):
            return False
    return isinstance(exc, (ConnectionError, TimeoutError))


def retry_on_failure(
    max_retries: int = 3,
    delay: float = 1.0,
    backoff: float = 2.0,
    should_retry: Optional[Callable[[Exception], bool]] = None,
) -> Callable[[F], F]:
    """Decorator to retry a function on failure with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts.
        delay: Initial delay between retries in seconds.
        backoff: Multiplier for delay after each retry.
        should_retry: Predicate deciding whether an error is retried. Errors
            it rejects are raised immediately. Defaults to retrying everything.

    Returns:
        Decorated function with retry logic.
    """

    def decorator(func: F) -> F:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            current_delay = delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except Exception as e:
                    if should_retry is not None and not should_retry(e):
                        raise
                    if attempt >= max_retries:
                        logger.error(
                            "function_retry_exhausted",
                            function=func.__name__,
                            attempts=max_retries + 1,
                            error=str(e),
                        )
                        raise
                    logger.warning(
                        "function_retry",
                        function=func.__name__,
                        attempt=attempt + 1,
                        max_retries=max_retries,
                        delay=current_delay,
                        error=str(e),
                    )
                    time.sleep(current_delay)
                    current_delay *= backoff

            raise AssertionError("unreachable")

        return wrapper  # type: ignore

    return decorator
