"""Unit tests for the tenacity-backed retry helpers."""

from __future__ import annotations

import asyncio

import pytest

from captionflow.utils.retry import (
    RetryPolicy,
    exponential_backoff,
    fixed_wait,
    linear_backoff,
    retry_async,
)


class Flaky:
    """Coroutine callable failing ``failures`` times before succeeding."""

    def __init__(self, failures: int, exc: type[Exception] = RuntimeError) -> None:
        self.failures = failures
        self.exc = exc
        self.calls = 0

    async def __call__(self, value: str) -> str:
        self.calls += 1
        if self.calls <= self.failures:
            raise self.exc(f"failure {self.calls}")
        return value


def test_backoff_functions() -> None:
    err = RuntimeError()
    assert [linear_backoff(2.0)(n, err) for n in (1, 2, 3)] == [2.0, 4.0, 6.0]
    assert [exponential_backoff(1.0, 5.0)(n, err) for n in (1, 2, 3, 4)] == [1.0, 2.0, 4.0, 5.0]
    assert fixed_wait(15.0)(3, err) == 15.0


def test_retry_async_succeeds_after_failures(sleeps, no_sleep) -> None:
    fn = Flaky(failures=2)
    policy = RetryPolicy(max_attempts=3, wait=linear_backoff(2.0))

    result = asyncio.run(retry_async(policy, fn, "ok", sleep=no_sleep))

    assert result == "ok"
    assert fn.calls == 3
    assert sleeps == [2.0, 4.0]


def test_retry_async_reraises_last_error(sleeps, no_sleep) -> None:
    """Once attempts run out the original exception propagates, not a wrapper."""
    fn = Flaky(failures=5)
    policy = RetryPolicy(max_attempts=3, wait=fixed_wait(1.0))

    with pytest.raises(RuntimeError, match="failure 3"):
        asyncio.run(retry_async(policy, fn, "never", sleep=no_sleep))

    assert fn.calls == 3
    assert sleeps == [1.0, 1.0]


def test_retry_async_skips_non_matching_errors(sleeps, no_sleep) -> None:
    fn = Flaky(failures=1, exc=KeyError)
    policy = RetryPolicy(max_attempts=3, wait=fixed_wait(1.0), retry_on=(RuntimeError,))

    with pytest.raises(KeyError):
        asyncio.run(retry_async(policy, fn, "x", sleep=no_sleep))

    assert fn.calls == 1
    assert sleeps == []


def test_give_up_on_wins_over_retry_on(sleeps, no_sleep) -> None:
    fn = Flaky(failures=1, exc=ValueError)
    policy = RetryPolicy(
        max_attempts=3,
        wait=fixed_wait(1.0),
        retry_on=(Exception,),
        give_up_on=(ValueError,),
    )

    with pytest.raises(ValueError):
        asyncio.run(retry_async(policy, fn, "x", sleep=no_sleep))

    assert fn.calls == 1


def test_wait_receives_the_failed_exception(no_sleep) -> None:
    seen: list[tuple[int, str]] = []

    def wait(attempt: int, exc: BaseException) -> float:
        seen.append((attempt, str(exc)))
        return 0.0

    fn = Flaky(failures=2)
    asyncio.run(retry_async(RetryPolicy(max_attempts=3, wait=wait), fn, "x", sleep=no_sleep))

    assert seen == [(1, "failure 1"), (2, "failure 2")]
