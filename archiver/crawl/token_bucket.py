"""Token-bucket admission control for the crawler."""

from __future__ import annotations

import time
from collections import deque
from typing import Callable, Deque

# Window used to smooth the reported rate.
_AVERAGE_WINDOW_S = 60.0


class TokenBucket:
    """A token bucket refilled continuously at *rate* tokens per second.

    The bucket starts empty, so the first admission after construction waits
    for a full token.  ``delay_for_tokens`` only projects; ``take_tokens`` is
    the sole method that spends tokens.  Callers wait for the projected delay,
    re-check with ``has_tokens`` and only then take, which stays correct if
    several consumers share one bucket.

    Example:
        >>> bucket = TokenBucket(rate=1.0, capacity=10)
        >>> bucket.delay_for_tokens(1)  # about one second on a fresh bucket
    """

    def __init__(
        self,
        rate: float,
        capacity: float,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if rate <= 0:
            raise ValueError(f"rate must be positive, got {rate!r}")
        if capacity <= 0:
            raise ValueError(f"capacity must be positive, got {capacity!r}")
        self.rate = float(rate)
        self.capacity = float(capacity)
        self.tokens = 0.0
        self._clock = clock
        self.last_refill = clock()
        self._created_at = self.last_refill
        self._taken: Deque[tuple[float, float]] = deque()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    def _projected(self, now: float) -> float:
        elapsed = max(0.0, now - self.last_refill)
        return min(self.capacity, self.tokens + elapsed * self.rate)

    def _refill(self) -> None:
        now = self._clock()
        self.tokens = self._projected(now)
        self.last_refill = now

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def delay_for_tokens(self, n: float) -> float:
        """Seconds to wait before *n* tokens could be available (read-only)."""
        available = self._projected(self._clock())
        if available >= n:
            return 0.0
        return (n - available) / self.rate

    def has_tokens(self, n: float) -> bool:
        self._refill()
        return self.tokens >= n

    def take_tokens(self, n: float) -> None:
        """Spend *n* tokens.  The balance is clamped at zero, never negative."""
        self._refill()
        self.tokens = max(0.0, self.tokens - n)
        self._taken.append((self.last_refill, float(n)))

    def average_rate(self) -> float:
        """Tokens taken per second over the recent window, for reporting."""
        now = self._clock()
        while self._taken and now - self._taken[0][0] > _AVERAGE_WINDOW_S:
            self._taken.popleft()
        span = min(_AVERAGE_WINDOW_S, now - self._created_at)
        if span <= 0:
            return 0.0
        return sum(n for _, n in self._taken) / span
