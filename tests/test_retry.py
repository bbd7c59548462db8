"""Tests for the retry wrapper and its backoff curve."""

from __future__ import annotations

import pytest

from copilot.agents.retry import RetryPolicy, backoff_delay, with_retry

from conftest import SleepRecorder


def _flaky(failures: int, result: str = "ok"):
    calls = {"n": 0}

    async def operation():
        calls["n"] += 1
        if calls["n"] <= failures:
            raise ConnectionError(f"failure {calls['n']}")
        return result

    return operation, calls


class TestBackoffDelay:
    def test_no_jitter(self):
        policy = RetryPolicy(base_delay_ms=650)
        assert backoff_delay(0, policy, lambda a, b: 0.0) == pytest.approx(0.65)
        assert backoff_delay(1, policy, lambda a, b: 0.0) == pytest.approx(1.04)
        assert backoff_delay(2, policy, lambda a, b: 0.0) == pytest.approx(1.664)

    def test_max_jitter(self):
        policy = RetryPolicy(base_delay_ms=650, jitter_ms=300)
        assert backoff_delay(0, policy, lambda a, b: b) == pytest.approx(0.95)

    def test_jitter_range_requested(self):
        seen = []

        def random_fn(a, b):
            seen.append((a, b))
            return a

        backoff_delay(0, RetryPolicy(jitter_ms=300), random_fn)
        assert seen == [(0, 300)]

    def test_successive_waits_not_below_previous_expectation(self):
        policy = RetryPolicy()
        for index in range(4):
            expected = policy.base_delay_ms * policy.factor**index + policy.jitter_ms / 2
            lowest_next = backoff_delay(index + 1, policy, lambda a, b: 0.0) * 1000
            assert lowest_next >= expected

    @pytest.mark.parametrize(
        "kwargs", [{"tries": 0}, {"base_delay_ms": -1}, {"jitter_ms": -5}, {"factor": 0.5}]
    )
    def test_invalid_policy(self, kwargs):
        with pytest.raises(ValueError):
            RetryPolicy(**kwargs)


@pytest.mark.asyncio
class TestWithRetry:
    async def test_success_does_not_retry(self):
        sleeps = SleepRecorder()
        operation, calls = _flaky(0)

        assert await with_retry(operation, sleep=sleeps) == "ok"
        assert calls["n"] == 1
        assert sleeps.delays == []

    async def test_recovers_after_failures(self):
        sleeps = SleepRecorder()
        operation, calls = _flaky(2)

        assert await with_retry(operation, RetryPolicy(tries=3), sleep=sleeps) == "ok"
        assert calls["n"] == 3
        assert len(sleeps.delays) == 2

    async def test_raises_last_error_after_tries(self):
        sleeps = SleepRecorder()
        operation, calls = _flaky(10)

        with pytest.raises(ConnectionError, match="failure 3"):
            await with_retry(operation, RetryPolicy(tries=3), sleep=sleeps)

        assert calls["n"] == 3
        assert len(sleeps.delays) == 2

    async def test_single_try_never_sleeps(self):
        sleeps = SleepRecorder()
        operation, calls = _flaky(10)

        with pytest.raises(ConnectionError):
            await with_retry(operation, RetryPolicy(tries=1), sleep=sleeps)

        assert calls["n"] == 1
        assert sleeps.delays == []

    async def test_waits_grow(self):
        sleeps = SleepRecorder()
        operation, _ = _flaky(10)
        policy = RetryPolicy(tries=5)

        with pytest.raises(ConnectionError):
            await with_retry(operation, policy, sleep=sleeps)

        assert len(sleeps.delays) == 4
        for index, (previous, current) in enumerate(zip(sleeps.delays, sleeps.delays[1:])):
            expected_previous = (
                policy.base_delay_ms * policy.factor**index + policy.jitter_ms / 2
            ) / 1000
            assert current >= expected_previous
            assert previous >= policy.base_delay_ms * policy.factor**index / 1000

    async def test_empty_result_is_not_retried(self):
        sleeps = SleepRecorder()
        operation, calls = _flaky(0, result="")

        assert await with_retry(operation, sleep=sleeps) == ""
        assert calls["n"] == 1

    async def test_non_retryable_error_raises_immediately(self):
        class BadConfig(RuntimeError):
            retryable = False

        sleeps = SleepRecorder()
        calls = {"n": 0}

        async def operation():
            calls["n"] += 1
            raise BadConfig("no credential")

        with pytest.raises(BadConfig):
            await with_retry(operation, RetryPolicy(tries=3), sleep=sleeps)

        assert calls["n"] == 1
        assert sleeps.delays == []
