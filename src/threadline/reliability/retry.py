"""Retry helpers built on tenacity.

``retry_with_backoff`` waits ``2**n * base_delay`` seconds after failed
attempt ``n``; ``retry_with_fixed_delay`` waits a constant. Both call
``on_retry(attempt, error)`` before each new attempt (never after the final
one) and re-raise the last exception object unchanged.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_fixed,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")

OnRetry = Callable[[int, BaseException], Any]


def _always(error: BaseException) -> bool:
    return isinstance(error, Exception)


def _before_sleep(on_retry: OnRetry | None) -> Callable[[RetryCallState], None]:
    def hook(retry_state: RetryCallState) -> None:
        error = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Attempt %d failed, retrying in %.2fs: %s",
            retry_state.attempt_number,
            retry_state.next_action.sleep if retry_state.next_action else 0,
            error,
        )
        if on_retry is not None:
            on_retry(retry_state.attempt_number, error)

    return hook


def _awaiting(fn: Callable[[], Awaitable[T]]) -> Callable[[], Awaitable[T]]:
    """Wrap ``fn`` in a coroutine function; tenacity only awaits those."""

    async def attempt() -> T:
        return await fn()

    return attempt


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay after failed attempt ``attempt`` (1-based)."""
    return (2**attempt) * base_delay


async def retry_with_backoff(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    base_delay: float = 1.0,
    on_retry: OnRetry | None = None,
    should_retry: Callable[[BaseException], bool] = _always,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Call ``fn`` until it succeeds or ``max_attempts`` is reached.

    Args:
        fn: Zero-argument callable returning an awaitable.
        max_attempts: Total number of calls, including the first.
        base_delay: Base delay in seconds.
        on_retry: Hook called with (attempt, error) before every retry.
        should_retry: Predicate deciding whether an error is worth retrying.
            Errors it rejects propagate immediately.
        sleep: Awaitable sleep, replaceable in tests.

    Raises:
        The exception raised by the last attempt.
    """
    retrying = AsyncRetrying(
        retry=retry_if_exception(should_retry),
        wait=lambda retry_state: backoff_delay(retry_state.attempt_number, base_delay),
        stop=stop_after_attempt(max_attempts),
        before_sleep=_before_sleep(on_retry),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(_awaiting(fn))


async def retry_with_fixed_delay(
    fn: Callable[[], Awaitable[T]],
    *,
    max_attempts: int = 3,
    delay: float = 1.0,
    on_retry: OnRetry | None = None,
    should_retry: Callable[[BaseException], bool] = _always,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> T:
    """Same as retry_with_backoff but waits ``delay`` seconds between attempts."""
    retrying = AsyncRetrying(
        retry=retry_if_exception(should_retry),
        wait=wait_fixed(delay),
        stop=stop_after_attempt(max_attempts),
        before_sleep=_before_sleep(on_retry),
        sleep=sleep,
        reraise=True,
    )
    return await retrying(_awaiting(fn))
