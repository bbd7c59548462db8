"""Retry wrapper — bounded attempts with exponential backoff and jitter.

Every role invocation in the pipeline goes through ``with_retry``. Only raised
exceptions are retried; a response that parses into a fail-closed default is
a valid result and is returned as-is. Exceptions carrying ``retryable = False``
(configuration problems) are re-raised on the first attempt.
"""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[None]]
RandomFn = Callable[[float, float], float]


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget and backoff curve.

    delay(attempt_index) = base_delay_ms * factor ** attempt_index
                           + uniform(0, jitter_ms)
    where attempt_index is 0 for the wait after the first failure.
    """

    tries: int = 3
    base_delay_ms: float = 650
    factor: float = 1.6
    jitter_ms: float = 300

    def __post_init__(self) -> None:
        if self.tries < 1:
            raise ValueError("tries must be >= 1")
        if self.base_delay_ms < 0 or self.jitter_ms < 0:
            raise ValueError("delays must be >= 0")
        if self.factor < 1.0:
            raise ValueError("factor must be >= 1.0")


def is_retryable(error: BaseException) -> bool:
    """Errors opt out of retries with a falsy ``retryable`` attribute."""
    return bool(getattr(error, "retryable", True))


def backoff_delay(
    attempt_index: int,
    policy: RetryPolicy,
    random_fn: RandomFn = random.uniform,
) -> float:
    """Seconds to wait after the failure of attempt ``attempt_index`` (0-based)."""
    delay_ms = policy.base_delay_ms * policy.factor**attempt_index
    delay_ms += random_fn(0, policy.jitter_ms)
    return delay_ms / 1000


async def with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    *,
    label: str = "operation",
    sleep: SleepFn = asyncio.sleep,
    random_fn: RandomFn = random.uniform,
) -> T:
    """Await ``operation()`` up to ``policy.tries`` times.

    Sleeps between failed attempts and re-raises the last error once the
    budget is spent.
    """
    policy = policy or RetryPolicy()

    for attempt in range(policy.tries):
        try:
            return await operation()
        except Exception as e:
            if not is_retryable(e):
                logger.error(f"{label} failed with non-retryable {type(e).__name__}: {e}")
                raise
            if attempt + 1 >= policy.tries:
                logger.error(
                    f"{label} failed after {policy.tries} attempt(s): "
                    f"{type(e).__name__}: {e}"
                )
                raise
            delay = backoff_delay(attempt, policy, random_fn)
            logger.warning(
                f"{label} attempt {attempt + 1}/{policy.tries} failed "
                f"({type(e).__name__}: {e}) — retrying in {delay:.2f}s"
            )
            await sleep(delay)

    raise AssertionError("unreachable")  # pragma: no cover
