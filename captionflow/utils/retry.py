"""Composable retry policies built on tenacity.

The pipeline retries at two levels: the STT client retries a single HTTP call
(rate limits, model warm-up) and the orchestrator retries a whole segment.
Both describe their behaviour as a :class:`RetryPolicy` and run it through
:func:`retry_async`, so attempt limits and backoff are swappable per level.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    RetryCallState,
    before_sleep_log,
    retry_if_exception,
    stop_after_attempt,
)

__all__ = [
    "RetryPolicy",
    "WaitFn",
    "exponential_backoff",
    "fixed_wait",
    "linear_backoff",
    "retry_async",
]

T = TypeVar("T")

# (attempt_number, exception) -> seconds to wait before the next attempt
WaitFn = Callable[[int, BaseException], float]

logger = logging.getLogger(__name__)


def linear_backoff(step_sec: float) -> WaitFn:
    """Wait ``step_sec * attempt`` seconds after each failed attempt.

    Returns:
        WaitFn: The wait function.
    """
    return lambda attempt, _exc: step_sec * attempt


def exponential_backoff(base_sec: float, max_sec: float) -> WaitFn:
    """Wait ``base_sec * 2**(attempt - 1)`` seconds, capped at ``max_sec``.

    Returns:
        WaitFn: The wait function.
    """
    return lambda attempt, _exc: min(max_sec, base_sec * 2 ** (attempt - 1))


def fixed_wait(seconds: float) -> WaitFn:
    """Wait the same number of seconds after every failed attempt.

    Returns:
        WaitFn: The wait function.
    """
    return lambda _attempt, _exc: seconds


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt limit plus backoff for one retry level.

    Attributes:
        max_attempts: Total attempts including the first one.
        wait: Backoff function receiving the attempt number and the exception.
        retry_on: Exception types that are retried.
        give_up_on: Exception types that are never retried, even when they
            also match ``retry_on``.
        name: Label used in log lines.

    """

    max_attempts: int
    wait: WaitFn
    retry_on: tuple[type[BaseException], ...] = (Exception,)
    give_up_on: tuple[type[BaseException], ...] = ()
    name: str = "operation"

    def should_retry(self, exc: BaseException) -> bool:
        """Return ``True`` when ``exc`` is eligible for another attempt."""
        if self.give_up_on and isinstance(exc, self.give_up_on):
            return False
        return isinstance(exc, self.retry_on)

    def wait_seconds(self, retry_state: RetryCallState) -> float:
        """Adapt :attr:`wait` to tenacity's ``wait`` callable signature.

        Returns:
            float: Seconds to sleep before the next attempt.
        """
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        return max(0.0, float(self.wait(retry_state.attempt_number, exc)))


async def retry_async(
    policy: RetryPolicy,
    fn: Callable[..., Awaitable[T]],
    *args: Any,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    log: logging.Logger | None = None,
    **kwargs: Any,
) -> T:
    """Run ``fn(*args, **kwargs)`` under ``policy``.

    The last exception is re-raised unchanged once the policy gives up, so
    callers see the real failure rather than a wrapper.

    Args:
        policy: Retry policy to apply.
        fn: Coroutine function to call.
        *args: Positional arguments for ``fn``.
        sleep: Awaitable sleep used between attempts (injectable for tests).
        log: Logger receiving a WARNING before each sleep.
        **kwargs: Keyword arguments for ``fn``.

    Returns:
        The value returned by the first successful attempt.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(max(1, policy.max_attempts)),
        wait=policy.wait_seconds,
        retry=retry_if_exception(policy.should_retry),
        sleep=sleep,
        reraise=True,
        before_sleep=before_sleep_log(log or logger, logging.WARNING),
    )
    return await retrying(fn, *args, **kwargs)
