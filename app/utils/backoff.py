"""
utils/backoff.py — Retry delay math for rate-limited vendor calls

delay(attempt) = min(BASE * 2**attempt, MAX) + uniform(0, JITTER)

Jitter is drawn fresh on every call so concurrent runs don't retry in
lockstep. A Retry-After value from the server overrides the computed
delay, clamped to MAX_RETRY_AFTER. No shared state: every run builds
its own RetryPolicy.

Called by: app/connectors/shopify_inventory.py
"""

import random
from dataclasses import dataclass, field
from typing import Callable

BASE_DELAY = 1.0  # seconds
MAX_DELAY = 30.0
JITTER = 1.0
MAX_ATTEMPTS = 5
MAX_RETRY_AFTER = 60.0  # ceiling on a server-sent Retry-After


@dataclass(frozen=True)
class BackoffPolicy:
    base: float = BASE_DELAY
    cap: float = MAX_DELAY
    jitter: float = JITTER
    rand: Callable[[], float] = field(default=random.random, repr=False, compare=False)

    def base_delay(self, attempt: int) -> float:
        """Non-jittered component, capped."""
        if attempt < 0:
            raise ValueError("attempt must be non-negative")
        # avoid float overflow for absurd attempt numbers
        if attempt >= 32:
            return self.cap
        return min(self.base * (2**attempt), self.cap)

    def delay(self, attempt: int) -> float:
        """Seconds to wait before the retry following ``attempt``."""
        return self.base_delay(attempt) + self.rand() * self.jitter


def parse_retry_after(value: str | None) -> float | None:
    """Retry-After in seconds, or None when absent or not a number."""
    if value is None:
        return None
    try:
        seconds = float(value.strip())
    except (ValueError, AttributeError):
        return None
    if seconds < 0:
        return None
    return seconds


@dataclass(frozen=True)
class RetryPolicy:
    """attempt → delay | give up.

    ``next_delay`` returns None once ``max_attempts`` calls have been made.
    """

    max_attempts: int = MAX_ATTEMPTS
    backoff: BackoffPolicy = field(default_factory=BackoffPolicy)
    max_retry_after: float = MAX_RETRY_AFTER

    def next_delay(self, attempt: int, retry_after: float | None = None) -> float | None:
        # attempt is 0-based: attempt 4 is the fifth call
        if attempt + 1 >= self.max_attempts:
            return None
        if retry_after is not None:
            return min(retry_after, self.max_retry_after)
        return self.backoff.delay(attempt)
