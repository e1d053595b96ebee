"""Bounded retry for remote calls, built on tenacity."""

from collections.abc import Awaitable, Callable
from typing import TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_incrementing,
)

from storefront.errors import RetryableError
from storefront.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

DEFAULT_MAX_RETRIES = 3
DEFAULT_BASE_DELAY = 1.0


def is_retryable(error: BaseException) -> bool:
    """Client errors (4xx) and cancellation are never retried."""
    if not isinstance(error, Exception):
        return False
    if isinstance(error, RetryableError) and error.is_client_error:
        return False
    return True


def _log_retry(retry_state: RetryCallState) -> None:
    error = retry_state.outcome.exception() if retry_state.outcome else None
    logger.warning(
        f"Attempt {retry_state.attempt_number} failed ({type(error).__name__}: {error}), "
        f"retrying in {retry_state.upcoming_sleep:.2f}s"
    )


async def with_retry(
    fn: Callable[[], Awaitable[T]],
    max_retries: int = DEFAULT_MAX_RETRIES,
    base_delay: float = DEFAULT_BASE_DELAY,
) -> T:
    """
    Await `fn()` with up to `max_retries` attempts in total.

    Waits `base_delay * attempt` seconds after each failed attempt. A
    RetryableError with a 4xx status_code is re-raised at once; after the
    last attempt the final error is re-raised unchanged.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_retries),
        wait=wait_incrementing(start=base_delay, increment=base_delay),
        retry=retry_if_exception(is_retryable),
        before_sleep=_log_retry,
        reraise=True,
    )
    return await retrying(fn)
