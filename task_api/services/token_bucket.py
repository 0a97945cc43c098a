"""Token bucket rate limiting primitive.

Each admitted request consumes one token. Tokens come back in whole
intervals: every ``refill_period`` seconds ``refill_amount`` tokens are
added, capped at ``capacity``. Refill is computed lazily on access.
"""

import time
from threading import Lock
from typing import Callable

Clock = Callable[[], float]


class TokenBucket:
    """Thread-safe interval-refill token bucket.

    A bucket with non-positive capacity rejects every request.
    """

    def __init__(
        self,
        capacity: int,
        refill_amount: int,
        refill_period: float,
        clock: Clock = time.monotonic,
    ):
        """Initialize a full token bucket.

        Args:
            capacity: Maximum number of tokens the bucket can hold
            refill_amount: Tokens added per elapsed period
            refill_period: Period length in seconds
            clock: Monotonic time source in seconds

        Raises:
            ValueError: If refill_period is not positive or refill_amount is negative
        """
        if refill_period <= 0:
            raise ValueError("refill_period must be positive")
        if refill_amount < 0:
            raise ValueError("refill_amount must not be negative")

        self.capacity = max(0, int(capacity))
        self.refill_amount = int(refill_amount)
        self.refill_period = float(refill_period)
        self._clock = clock
        self._tokens = self.capacity
        self._last_refill = clock()
        self._last_access = self._last_refill
        self._lock = Lock()

    def _refill(self, now: float) -> None:
        """Add tokens for every whole period elapsed since the last refill.

        Must be called with the lock held.
        """
        elapsed = now - self._last_refill
        if elapsed < self.refill_period:
            return

        periods = int(elapsed // self.refill_period)
        self._tokens = min(self.capacity, self._tokens + periods * self.refill_amount)
        # Keep the remainder so partial periods are not lost
        self._last_refill += periods * self.refill_period

    def try_consume(self) -> bool:
        """Attempt to consume one token.

        Returns:
            True if a token was consumed, False if the bucket is empty
        """
        with self._lock:
            now = self._clock()
            self._last_access = now
            self._refill(now)

            if self._tokens >= 1:
                self._tokens -= 1
                return True
            return False

    def available_tokens(self) -> int:
        """Current token count, after refill. Never consumes."""
        with self._lock:
            self._refill(self._clock())
            return self._tokens

    def idle_for(self) -> float:
        """Seconds since the bucket was last consumed from."""
        with self._lock:
            return self._clock() - self._last_access
