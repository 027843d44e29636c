"""
Retry-with-backoff combinator.

A thin, call-site independent wrapper around tenacity's AsyncRetrying:

    result = await retry_with_backoff(
        lambda attempt: client.get(url),
        max_attempts=3,
        initial_delay=2.0,
        max_delay=30.0,
        retry_on=lambda exc: isinstance(exc, UpstreamError),
    )

The wrapped callable receives the 1-based attempt number and must build any
per-attempt state (timeouts, request objects) itself, so nothing from a failed
attempt leaks into the next one. Delays double from `initial_delay` up to
`max_delay`; with `jitter` a random amount up to a quarter of the initial delay
is added before the cap is applied. Once the budget is spent the last
exception is re-raised unchanged.
"""
import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_exponential_jitter,
)

from app.core.logging import get_logger

logger = get_logger(__name__)

T = TypeVar("T")

RetryHook = Callable[[BaseException, int, float], None]


def backoff_wait(initial_delay: float, max_delay: float, jitter: bool = True):
    """Build the tenacity wait strategy used by retry_with_backoff."""
    if jitter:
        return wait_exponential_jitter(
            initial=initial_delay,
            max=max_delay,
            exp_base=2,
            jitter=initial_delay / 4,
        )
    return wait_exponential(multiplier=initial_delay, max=max_delay, exp_base=2)


def _always(exc: BaseException) -> bool:
    return True


async def retry_with_backoff(
    fn: Callable[[int], Awaitable[T]],
    *,
    max_attempts: int = 3,
    initial_delay: float = 2.0,
    max_delay: float = 30.0,
    retry_on: Callable[[BaseException], bool] = _always,
    jitter: bool = True,
    on_retry: Optional[RetryHook] = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
) -> T:
    """
    Call `fn(attempt_number)` until it succeeds or the attempt budget is spent.

    Args:
        fn: Async callable taking the 1-based attempt number
        max_attempts: Total attempts including the first one
        initial_delay: Delay in seconds before the second attempt
        max_delay: Upper bound for any single delay
        retry_on: Predicate deciding whether an exception is retryable
        jitter: Add random jitter to each delay
        on_retry: Called with (exception, attempt_number, delay) before sleeping
        sleep: Sleep coroutine (injectable for tests)

    Returns:
        The first successful result of `fn`

    Raises:
        The exception of the last attempt, or the first non-retryable one
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    def _before_sleep(state: RetryCallState) -> None:
        exc = state.outcome.exception() if state.outcome else None
        delay = state.next_action.sleep if state.next_action else 0.0
        logger.warning(
            f"Attempt {state.attempt_number}/{max_attempts} failed: {exc!r}; "
            f"retrying in {delay:.2f}s",
            extra={"attempt": state.attempt_number, "delay_seconds": round(delay, 3)},
        )
        if on_retry is not None and exc is not None:
            on_retry(exc, state.attempt_number, delay)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(max_attempts),
        wait=backoff_wait(initial_delay, max_delay, jitter),
        retry=retry_if_exception(retry_on),
        before_sleep=_before_sleep,
        sleep=sleep,
        reraise=True,
    )

    async for attempt in retrying:
        with attempt:
            result = await fn(attempt.retry_state.attempt_number)
    return result
