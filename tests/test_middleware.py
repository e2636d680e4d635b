"""
Rate limiter tests
"""

from __future__ import annotations

from unittest.mock import patch

import pytest

from mcpwrap.api.middleware import RateLimitExceededError, SlidingWindowRateLimiter


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def monotonic(self) -> float:
        return self.now


class TestSlidingWindowRateLimiter:
    """Test SlidingWindowRateLimiter."""

    @pytest.fixture
    def clock(self):
        clock = FakeClock()
        with patch("mcpwrap.api.middleware.time", clock):
            yield clock

    def test_limit_per_client(self, clock):
        limiter = SlidingWindowRateLimiter("http", limit=2, window_seconds=10.0)

        limiter.acquire("a")
        limiter.acquire("a")
        limiter.acquire("b")

        with pytest.raises(RateLimitExceededError) as exc:
            limiter.acquire("a")
        assert exc.value.retry_after == pytest.approx(10.0)

    def test_window_slides(self, clock):
        limiter = SlidingWindowRateLimiter("http", limit=1, window_seconds=10.0)

        limiter.acquire("a")
        clock.now += 10.5
        limiter.acquire("a")

    def test_idle_clients_are_dropped(self, clock):
        limiter = SlidingWindowRateLimiter("http", limit=5, window_seconds=10.0)

        for n in range(100):
            limiter.acquire(f"10.0.0.{n}")
        assert limiter.client_count == 100

        clock.now += 11.0
        limiter.acquire("10.0.1.1")

        assert limiter.client_count == 1
