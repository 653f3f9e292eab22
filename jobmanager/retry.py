"""
Bounded retry with exponential backoff for Kubernetes API calls.

Listing namespaces and jobs can fail transiently (API server restarts,
throttling, dropped connections). The helpers here retry those calls in place
a fixed number of times before giving up.
"""

import time
import functools
from typing import Callable, Type, Tuple, Optional, TypeVar

from kubernetes.client.rest import ApiException

T = TypeVar("T")


class RetryError(Exception):
    """Raised when all retry attempts are exhausted."""
    pass


def exponential_backoff(
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    exponential_base: float = 2.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable] = None,
):
    """
    Decorator for retrying functions with exponential backoff.

    Args:
        max_retries: Maximum number of retry attempts (0 = no retries)
        base_delay: Initial delay in seconds
        max_delay: Maximum delay between retries in seconds
        exponential_base: Base for exponential calculation (delay *= base)
        exceptions: Tuple of exceptions to catch and retry
        retry_if: Optional predicate; exceptions it rejects are re-raised at once
        on_retry: Optional callback function(attempt, exception, delay)

    Example:
        @exponential_backoff(max_retries=2, base_delay=0.5, exceptions=(ApiException,))
        def list_page(cursor):
            return api.list_namespace(_continue=cursor)
    """
    def decorator(func: Callable) -> Callable:
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            delay = base_delay

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions as e:
                    if retry_if is not None and not retry_if(e):
                        raise

                    # Don't sleep after the last attempt
                    if attempt < max_retries:
                        current_delay = min(delay, max_delay)

                        if on_retry:
                            on_retry(attempt + 1, e, current_delay)

                        if current_delay > 0:
                            time.sleep(current_delay)
                        delay *= exponential_base
                    else:
                        raise RetryError(
                            f"Failed after {max_retries + 1} attempts: {str(e)}"
                        ) from e

        return wrapper
    return decorator


def with_retry(
    max_attempts: int,
    op: Callable[[], T],
    base_delay: float = 0.0,
    exceptions: Tuple[Type[Exception], ...] = (Exception,),
    retry_if: Optional[Callable[[Exception], bool]] = None,
    on_retry: Optional[Callable] = None,
) -> T:
    """
    Call ``op`` up to ``max_attempts`` times in total.

    Returns the first successful result. Raises RetryError (chained to the last
    failure) once every attempt has failed, or the original exception at once
    when ``retry_if`` rejects it.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    retrying = exponential_backoff(
        max_retries=max_attempts - 1,
        base_delay=base_delay,
        exceptions=exceptions,
        retry_if=retry_if,
        on_retry=on_retry,
    )(op)
    return retrying()


def should_retry_http_status(status_code: int) -> bool:
    """
    Check if HTTP status code indicates a retryable error.

    Args:
        status_code: HTTP status code

    Returns:
        True if should retry
    """
    # Retry on server errors and rate limiting
    retryable_codes = {
        408,  # Request Timeout
        429,  # Too Many Requests
        500,  # Internal Server Error
        502,  # Bad Gateway
        503,  # Service Unavailable
        504,  # Gateway Timeout
    }

    return status_code in retryable_codes


def is_transient_error(exception: Exception) -> bool:
    """
    Determine if an exception is likely transient and should be retried.

    API errors are judged by their HTTP status. An ApiException without a
    status never reached the server, so it is treated like any other
    transport failure.

    Args:
        exception: Exception to check

    Returns:
        True if error is likely transient (timeout, connection, 5xx, 429)
    """
    if isinstance(exception, ApiException):
        if not exception.status:
            return True
        return should_retry_http_status(exception.status)

    return True
