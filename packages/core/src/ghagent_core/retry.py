"""Bounded retry with exponential backoff and jitter.

with_retry() is the single retry primitive for GitHub API calls; retry_linear()
is the fixed-count variant used for git pushes.
"""

from __future__ import annotations

import logging
import random
import time
from dataclasses import dataclass, field
from typing import Callable, TypeVar

from ghagent_core.errors import is_retryable

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    max_attempts: int = 5
    base_delay: float = 0.5
    max_delay: float = 8.0
    jitter: float = 0.25
    retryable: Callable[[BaseException], bool] = field(default=is_retryable)

    def backoff(self, attempt: int) -> float:
        """Delay before the next try, without jitter. ``attempt`` is 1-based."""
        return min(self.base_delay * 2 ** (attempt - 1), self.max_delay)


DEFAULT_POLICY = RetryPolicy()


def with_retry(
    operation_name: str,
    operation: Callable[[], T],
    policy: RetryPolicy | None = None,
    sleep: Callable[[float], None] = time.sleep,
    jitter: Callable[[float, float], float] = random.uniform,
) -> T:
    """Run ``operation`` until it succeeds, fails non-retryably, or attempts run out.

    The last exception is re-raised unchanged.
    """
    policy = policy or DEFAULT_POLICY
    attempt = 1
    while True:
        try:
            return operation()
        except Exception as e:
            if attempt >= policy.max_attempts or not policy.retryable(e):
                if attempt > 1:
                    logger.error("%s failed after %d attempt(s): %s", operation_name, attempt, e)
                raise
            delay = policy.backoff(attempt) + jitter(0, policy.jitter)
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %.2fs...",
                operation_name,
                attempt,
                policy.max_attempts,
                e,
                delay,
            )
            sleep(delay)
            attempt += 1


def retry_linear(
    operation_name: str,
    operation: Callable[[], T],
    attempts: int = 3,
    delay: float = 2.0,
    sleep: Callable[[float], None] = time.sleep,
) -> T:
    """Retry any failure up to ``attempts`` times, sleeping ``delay * attempt`` in between."""
    for attempt in range(1, attempts + 1):
        try:
            return operation()
        except Exception as e:
            if attempt == attempts:
                raise
            logger.warning(
                "%s failed (attempt %d/%d): %s. Retrying in %ds...",
                operation_name,
                attempt,
                attempts,
                e,
                delay * attempt,
            )
            sleep(delay * attempt)
    raise ValueError("attempts must be at least 1")
