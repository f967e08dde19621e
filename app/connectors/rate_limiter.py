"""
Token-bucket request rate limiter shared by all requests of one connector.
"""

from __future__ import annotations

import threading
import time
from collections.abc import Callable


class TokenBucketRateLimiter:
    """
    Blocks callers until a request token is available.

    The bucket holds at most ``burst`` tokens and refills at
    ``rate_per_second``. Callers are throttled, never rejected.
    """

    def __init__(
        self,
        *,
        rate_per_second: float,
        burst: int = 1,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if rate_per_second <= 0:
            raise ValueError("rate_per_second must be positive.")
        self._rate = float(rate_per_second)
        self._capacity = float(max(1, burst))
        self._clock = clock
        self._sleep = sleep
        self._tokens = self._capacity
        self._updated_at = clock()
        self._lock = threading.Lock()

    @property
    def rate_per_second(self) -> float:
        return self._rate

    def acquire(self) -> None:
        """
        Take one token, sleeping until the bucket has refilled enough.
        """

        with self._lock:
            while True:
                self._refill()
                if self._tokens >= 1.0:
                    self._tokens -= 1.0
                    return
                self._sleep((1.0 - self._tokens) / self._rate)

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._updated_at = now
