"""
Tests for fixed-window rate limiting.
"""

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from viralhub.auth import (
    AuthenticatedUser,
    FixedWindowRateLimiter,
    RateLimitPreset,
    RedisRateLimiter,
    enforce_rate_limit,
    get_client_identifier,
)
from viralhub.exceptions import RateLimitError


class FakeClock:
    def __init__(self):
        self.now = 500.0

    def __call__(self):
        return self.now


def fake_request(headers=None, host="10.0.0.1"):
    return SimpleNamespace(headers=headers or {}, client=SimpleNamespace(host=host))


class TestFixedWindow:

    def test_allows_up_to_max_then_blocks(self):
        limiter = FixedWindowRateLimiter(clock=FakeClock())

        results = [limiter.check("heavy:user:1", 5, 60) for _ in range(6)]

        assert [r.allowed for r in results] == [True] * 5 + [False]
        assert [r.remaining for r in results[:5]] == [4, 3, 2, 1, 0]

    def test_window_starts_at_first_request(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(clock=clock)
        for _ in range(5):
            limiter.check("k", 5, 60)

        clock.now += 45
        blocked = limiter.check("k", 5, 60)
        assert blocked.allowed is False
        assert blocked.reset_in == 15

        clock.now += 15
        assert limiter.check("k", 5, 60).allowed is True

    def test_keys_are_independent(self):
        limiter = FixedWindowRateLimiter(clock=FakeClock())
        limiter.check("a", 1, 60)

        assert limiter.check("a", 1, 60).allowed is False
        assert limiter.check("b", 1, 60).allowed is True

    def test_expired_windows_are_dropped(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(clock=clock)
        for i in range(1000):
            limiter.check(f"api:user:u{i}:10.0.0.1", 100, 60)
        assert len(limiter) == 1000

        clock.now += 61
        limiter.check("api:user:late:10.0.0.1", 100, 60)

        assert len(limiter) == 1

    def test_live_windows_survive_sweep(self):
        clock = FakeClock()
        limiter = FixedWindowRateLimiter(clock=clock, sweep_interval=10)
        limiter.check("long", 1, 300)

        clock.now += 30
        limiter.check("other", 1, 60)

        assert limiter.check("long", 1, 300).allowed is False

    def test_reset(self):
        limiter = FixedWindowRateLimiter(clock=FakeClock())
        limiter.check("a", 1, 60)
        limiter.reset("a")

        assert limiter.check("a", 1, 60).allowed is True


class TestPresets:

    @pytest.mark.parametrize("preset,limit", [
        (RateLimitPreset.API, 100),
        (RateLimitPreset.AUTH, 10),
        (RateLimitPreset.AI_GENERATE, 20),
        (RateLimitPreset.HEAVY, 5),
    ])
    def test_limits(self, preset, limit):
        assert preset.max_requests == limit
        assert preset.window_seconds == 60


class TestIdentifier:

    def test_forwarded_for_wins(self):
        request = fake_request({"x-forwarded-for": "203.0.113.7, 10.0.0.2"})
        user = AuthenticatedUser(id="u1")

        assert get_client_identifier(request, user) == "user:u1:203.0.113.7"

    def test_real_ip_then_peer(self):
        assert get_client_identifier(fake_request({"x-real-ip": "198.51.100.4"})) == "user:anonymous:198.51.100.4"
        assert get_client_identifier(fake_request()) == "user:anonymous:10.0.0.1"


class TestEnforce:

    @pytest.mark.asyncio
    async def test_raises_with_retry_after(self):
        dependency = enforce_rate_limit(RateLimitPreset.HEAVY)
        limiter = FixedWindowRateLimiter(clock=FakeClock())
        user = AuthenticatedUser(id="u1")

        for _ in range(5):
            await dependency(fake_request(), user=user, limiter=limiter)
        with pytest.raises(RateLimitError) as exc_info:
            await dependency(fake_request(), user=user, limiter=limiter)

        assert exc_info.value.retry_after == 60
        assert exc_info.value.to_dict() == {"detail": "Too many requests", "retry_after": 60}

    @pytest.mark.asyncio
    async def test_presets_counted_separately(self):
        limiter = FixedWindowRateLimiter(clock=FakeClock())
        user = AuthenticatedUser(id="u1")
        for _ in range(5):
            await enforce_rate_limit(RateLimitPreset.HEAVY)(fake_request(), user=user, limiter=limiter)

        result = await enforce_rate_limit(RateLimitPreset.API)(fake_request(), user=user, limiter=limiter)

        assert result.allowed is True


class TestRedisLimiter:

    @pytest.mark.asyncio
    async def test_fails_open(self):
        pipe = MagicMock()
        pipe.__aenter__.return_value = pipe
        pipe.execute = AsyncMock(side_effect=RedisConnectionError("down"))
        client = MagicMock()
        client.pipeline.return_value = pipe

        result = await RedisRateLimiter(client).check("k", 5, 60)

        assert result.allowed is True
        assert result.remaining == 5

    @pytest.mark.asyncio
    async def test_blocks_over_limit(self):
        pipe = MagicMock()
        pipe.__aenter__.return_value = pipe
        pipe.execute = AsyncMock(return_value=[6, True, 42])
        client = MagicMock()
        client.pipeline.return_value = pipe

        result = await RedisRateLimiter(client).check("k", 5, 60)

        assert result.allowed is False
        assert result.reset_in == 42
        pipe.incr.assert_called_once_with("viralhub:ratelimit:k")
