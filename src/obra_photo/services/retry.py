"""Exponential backoff for remote calls."""

import asyncio
from typing import Awaitable, Callable, Optional, TypeVar

import structlog

from obra_photo.exceptions import RateLimitedError, TransientRemoteError

logger = structlog.get_logger(__name__)

T = TypeVar("T")

SleepFunc = Callable[[float], Awaitable[None]]


def backoff_delay(attempt: int, base_delay: float) -> float:
    """Delay before retry number ``attempt + 1``: base, 2x base, 4x base..."""
    return base_delay * (2**attempt)


async def retry_with_backoff(
    operation: Callable[[], Awaitable[T]],
    max_attempts: int = 3,
    base_delay: float = 2.0,
    retry_on: tuple[type[BaseException], ...] = (TransientRemoteError,),
    sleep: SleepFunc = asyncio.sleep,
    on_retry: Optional[Callable[[int, BaseException, float], None]] = None,
) -> T:
    """
    Run ``operation`` until it succeeds or the attempt budget is spent.

    A ``RateLimitedError`` carrying a ``retry_after`` hint waits at least
    that long. Exceptions outside ``retry_on`` propagate immediately.

    Args:
        operation: Zero-argument coroutine factory, called once per attempt.
        max_attempts: Total number of attempts, including the first.
        base_delay: Delay after the first failure, doubled each time.
        retry_on: Exception types that trigger a retry.
        sleep: Awaitable sleep, replaceable in tests.
        on_retry: Called with ``(attempt, error, delay)`` before each wait.

    Returns:
        The operation's result.

    Raises:
        The last retryable exception once every attempt has failed.
    """
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    for attempt in range(max_attempts):
        try:
            return await operation()
        except retry_on as e:
            if attempt == max_attempts - 1:
                logger.warning(
                    "retry_attempts_exhausted",
                    attempts=max_attempts,
                    error=str(e),
                    error_type=type(e).__name__,
                )
                raise

            delay = backoff_delay(attempt, base_delay)
            if isinstance(e, RateLimitedError) and e.retry_after is not None:
                delay = max(delay, e.retry_after)

            logger.info(
                "retrying_operation",
                attempt=attempt + 1,
                max_attempts=max_attempts,
                delay_seconds=delay,
                error=str(e),
            )
            if on_retry is not None:
                on_retry(attempt + 1, e, delay)
            await sleep(delay)

    raise AssertionError("unreachable")
