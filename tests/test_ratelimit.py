"""
Tests for the fixed window rate limiter.
"""
import asyncio

import pytest

from docai.core.ratelimit import (
    RATE_LIMITS,
    RateLimitConfig,
    RateLimiter,
    get_rate_limit_key,
    rate_limit_headers,
)


class FakeClock:
    def __init__(self, now: float = 1_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now


class TestFixedWindow:
    def test_allows_up_to_max_then_blocks(self):
        """Should allow max_requests calls then block the next one."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(window_seconds=60, max_requests=3)

        results = [limiter.check("upload:u1", config) for _ in range(4)]

        assert [r.allowed for r in results] == [True, True, True, False]
        assert [r.remaining for r in results] == [2, 1, 0, 0]
        assert results[0].retry_after is None
        assert results[3].retry_after == 60

    def test_window_resets_after_expiry(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(window_seconds=60, max_requests=1)

        assert limiter.check("k", config).allowed
        assert not limiter.check("k", config).allowed

        clock.now += 60
        result = limiter.check("k", config)
        assert result.allowed
        assert result.reset_time == clock.now + 60

    def test_window_does_not_slide(self):
        """Should keep the reset time fixed for the whole window."""
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(window_seconds=60, max_requests=5)

        first = limiter.check("k", config)
        clock.now += 30
        second = limiter.check("k", config)
        assert first.reset_time == second.reset_time

    def test_retry_after_rounds_up(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        config = RateLimitConfig(window_seconds=10, max_requests=1)

        limiter.check("k", config)
        clock.now += 8.5
        assert limiter.check("k", config).retry_after == 2

    def test_keys_are_independent(self):
        limiter = RateLimiter(clock=FakeClock())
        config = RateLimitConfig(window_seconds=60, max_requests=1)
        assert limiter.check("upload:a", config).allowed
        assert limiter.check("upload:b", config).allowed


class TestSweep:
    def test_sweep_evicts_only_expired(self):
        clock = FakeClock()
        limiter = RateLimiter(clock=clock)
        limiter.check("short", RateLimitConfig(window_seconds=10, max_requests=5))
        limiter.check("long", RateLimitConfig(window_seconds=100, max_requests=5))

        clock.now += 50
        assert limiter.sweep() == 1
        assert len(limiter) == 1

    async def test_start_and_stop_background_sweep(self):
        """Should evict expired windows without new traffic."""
        clock = FakeClock()
        limiter = RateLimiter(sweep_interval=0.01, clock=clock)
        limiter.check("k", RateLimitConfig(window_seconds=1, max_requests=5))
        clock.now += 5

        limiter.start()
        await asyncio.sleep(0.05)
        assert len(limiter) == 0

        await limiter.stop()


class TestHelpers:
    @pytest.mark.parametrize("user_id,ip,expected", [
        ("user_1", "1.2.3.4", "upload:user_1"),
        (None, "1.2.3.4", "upload:1.2.3.4"),
        (None, None, "upload:anonymous"),
    ])
    def test_key_prefers_user_then_ip(self, user_id, ip, expected):
        assert get_rate_limit_key(user_id, ip, "upload") == expected

    def test_presets(self):
        assert RATE_LIMITS["upload"] == RateLimitConfig(60, 10)
        assert RATE_LIMITS["auth"] == RateLimitConfig(300, 10)

    def test_headers_include_retry_after_when_blocked(self):
        limiter = RateLimiter(clock=FakeClock())
        config = RateLimitConfig(window_seconds=60, max_requests=0)
        headers = rate_limit_headers(limiter.check("k", config))
        assert headers["Retry-After"] == "60"
        assert headers["X-RateLimit-Remaining"] == "0"
