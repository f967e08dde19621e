"""
tests/test_rate_limiter.py

Pytest unit tests for TokenBucketRateLimiter.

Time is simulated: the fake sleep advances the fake clock, so every
assertion is deterministic and no test actually waits.

Coverage
--------
- Burst capacity is served without waiting
- Sustained rate is enforced once the burst is spent
- Idle time refills the bucket up to capacity only
- Invalid rate rejected
- Thread-safe token accounting
"""

from __future__ import annotations

import threading

import pytest

from app.connectors.rate_limiter import TokenBucketRateLimiter


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


def _limiter(clock: FakeClock, *, rate: float, burst: int) -> TokenBucketRateLimiter:
    return TokenBucketRateLimiter(rate_per_second=rate, burst=burst, clock=clock, sleep=clock.sleep)


# ---------------------------------------------------------------------------
# Throttling
# ---------------------------------------------------------------------------


class TestTokenBucket:
    def test_burst_is_free(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, rate=2.0, burst=5)
        for _ in range(5):
            limiter.acquire()
        assert clock.sleeps == []

    def test_rate_enforced_after_burst(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, rate=2.0, burst=2)
        for _ in range(6):
            limiter.acquire()
        # 2 free tokens, then 4 more at 2/s.
        assert sum(clock.sleeps) == pytest.approx(2.0)
        assert clock.now == pytest.approx(2.0)

    def test_idle_refill_is_capped(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, rate=10.0, burst=3)
        for _ in range(3):
            limiter.acquire()
        clock.now += 60.0

        for _ in range(3):
            limiter.acquire()
        assert clock.sleeps == []

        limiter.acquire()
        assert sum(clock.sleeps) == pytest.approx(0.1)

    def test_partial_token_waits_for_remainder(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, rate=4.0, burst=1)
        limiter.acquire()
        clock.now += 0.125
        limiter.acquire()
        assert sum(clock.sleeps) == pytest.approx(0.125)

    @pytest.mark.parametrize("rate", [0, -1.5])
    def test_non_positive_rate_rejected(self, rate: float) -> None:
        with pytest.raises(ValueError):
            TokenBucketRateLimiter(rate_per_second=rate)

    def test_concurrent_callers_share_one_bucket(self, clock: FakeClock) -> None:
        limiter = _limiter(clock, rate=5.0, burst=5)
        threads = [threading.Thread(target=limiter.acquire) for _ in range(10)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert sum(clock.sleeps) == pytest.approx(1.0)
