"""Tests for the fixed-window rate limiters."""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tracker.core.rate_limit.backend import (
    InMemoryFixedWindowRateLimiter,
    RateLimitResult,
    RedisFixedWindowRateLimiter,
    rate_limit_headers,
)


pytestmark = pytest.mark.unit


class FakeClock:
    """Manually advanced clock."""

    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def limiter(clock: FakeClock) -> InMemoryFixedWindowRateLimiter:
    return InMemoryFixedWindowRateLimiter(clock=clock)


class TestInMemoryFixedWindowRateLimiter:
    """Tests for the process-local limiter."""

    async def test_allows_up_to_limit(self, limiter: InMemoryFixedWindowRateLimiter):
        results = [await limiter.hit("key:1", 5, 60) for _ in range(5)]

        assert all(r.allowed for r in results)
        assert [r.remaining for r in results] == [4, 3, 2, 1, 0]
        assert all(r.retry_after is None for r in results)

    async def test_rejects_over_limit(self, limiter: InMemoryFixedWindowRateLimiter):
        """The sixth request in a 5-per-minute window is refused."""
        for _ in range(5):
            await limiter.hit("key:1", 5, 60)

        result = await limiter.hit("key:1", 5, 60)

        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after == 60
        assert result.reset_time == 1_060

    async def test_retry_after_shrinks(
        self, limiter: InMemoryFixedWindowRateLimiter, clock: FakeClock
    ):
        for _ in range(5):
            await limiter.hit("key:1", 5, 60)
        clock.advance(45.5)

        result = await limiter.hit("key:1", 5, 60)

        assert result.retry_after == 15

    async def test_new_window_resets(
        self, limiter: InMemoryFixedWindowRateLimiter, clock: FakeClock
    ):
        for _ in range(6):
            await limiter.hit("key:1", 5, 60)
        clock.advance(60)

        result = await limiter.hit("key:1", 5, 60)

        assert result.allowed is True
        assert result.remaining == 4

    async def test_rejection_not_counted(
        self, limiter: InMemoryFixedWindowRateLimiter, clock: FakeClock
    ):
        """Hammering a full window does not extend it."""
        for _ in range(20):
            await limiter.hit("key:1", 5, 60)
        clock.advance(60)

        results = [await limiter.hit("key:1", 5, 60) for _ in range(5)]

        assert all(r.allowed for r in results)

    async def test_keys_are_independent(self, limiter: InMemoryFixedWindowRateLimiter):
        for _ in range(5):
            await limiter.hit("key:1", 5, 60)

        assert (await limiter.hit("key:2", 5, 60)).allowed

    async def test_concurrent_hits_respect_limit(self, limiter: InMemoryFixedWindowRateLimiter):
        results = await asyncio.gather(*(limiter.hit("key:1", 5, 60) for _ in range(20)))

        assert sum(r.allowed for r in results) == 5

    async def test_reset(self, limiter: InMemoryFixedWindowRateLimiter):
        for _ in range(5):
            await limiter.hit("key:1", 5, 60)

        limiter.reset("key:1")

        assert (await limiter.hit("key:1", 5, 60)).allowed

    async def test_expired_windows_are_swept(
        self, limiter: InMemoryFixedWindowRateLimiter, clock: FakeClock
    ):
        """Identifiers that stop calling are dropped once their window ends."""
        for n in range(100):
            await limiter.hit(f"key:{n}", 5, 30)
        assert limiter.tracked == 100

        clock.advance(61)
        await limiter.hit("key:live", 5, 30)

        assert limiter.tracked == 1

    async def test_sweep_keeps_open_windows(self, clock: FakeClock):
        limiter = InMemoryFixedWindowRateLimiter(clock=clock, sweep_interval=10)
        await limiter.hit("key:short", 5, 5)
        for _ in range(3):
            await limiter.hit("key:long", 5, 3600)

        clock.advance(10)
        result = await limiter.hit("key:other", 5, 60)

        assert result.allowed
        assert limiter.tracked == 2
        assert (await limiter.hit("key:long", 5, 3600)).remaining == 1

    async def test_no_sweep_before_interval(
        self, limiter: InMemoryFixedWindowRateLimiter, clock: FakeClock
    ):
        await limiter.hit("key:1", 5, 10)

        clock.advance(30)
        await limiter.hit("key:2", 5, 10)

        assert limiter.tracked == 2


def _mock_pipeline(results: list) -> MagicMock:
    # Pipeline commands are queued synchronously; only execute is awaited
    mock_pipeline = MagicMock()
    mock_pipeline.execute = AsyncMock(return_value=results)
    mock_pipeline.__aenter__ = AsyncMock(return_value=mock_pipeline)
    mock_pipeline.__aexit__ = AsyncMock(return_value=None)
    return mock_pipeline


class TestRedisFixedWindowRateLimiter:
    """Tests for the Redis-backed limiter."""

    def test_build_key(self):
        limiter = RedisFixedWindowRateLimiter(prefix="ratelimit:apikey")

        assert limiter._build_key("3") == "ratelimit:apikey:3"

    async def test_under_limit(self):
        limiter = RedisFixedWindowRateLimiter(clock=lambda: 1_000.0)
        mock_pipeline = _mock_pipeline([1, True, 60])
        mock_client = MagicMock()
        mock_client.pipeline = MagicMock(return_value=mock_pipeline)

        with patch("tracker.core.rate_limit.backend.redis_client") as mock_redis:
            mock_redis.return_value.__aenter__ = AsyncMock(return_value=mock_client)
            mock_redis.return_value.__aexit__ = AsyncMock(return_value=None)

            result = await limiter.hit("3", 5, 60)

        assert result.allowed is True
        assert result.remaining == 4
        assert result.reset_time == 1_060
        mock_pipeline.incr.assert_called_once_with("ratelimit:apikey:3")
        mock_pipeline.expire.assert_called_once_with("ratelimit:apikey:3", 60, nx=True)

    async def test_over_limit(self):
        limiter = RedisFixedWindowRateLimiter(clock=lambda: 1_000.0)
        mock_pipeline = _mock_pipeline([6, False, 42])
        mock_client = MagicMock()
        mock_client.pipeline = MagicMock(return_value=mock_pipeline)

        with patch("tracker.core.rate_limit.backend.redis_client") as mock_redis:
            mock_redis.return_value.__aenter__ = AsyncMock(return_value=mock_client)
            mock_redis.return_value.__aexit__ = AsyncMock(return_value=None)

            result = await limiter.hit("3", 5, 60)

        assert result.allowed is False
        assert result.remaining == 0
        assert result.retry_after == 42

    async def test_missing_ttl_falls_back_to_window(self):
        limiter = RedisFixedWindowRateLimiter(clock=lambda: 1_000.0)
        mock_pipeline = _mock_pipeline([2, False, -1])
        mock_client = MagicMock()
        mock_client.pipeline = MagicMock(return_value=mock_pipeline)

        with patch("tracker.core.rate_limit.backend.redis_client") as mock_redis:
            mock_redis.return_value.__aenter__ = AsyncMock(return_value=mock_client)
            mock_redis.return_value.__aexit__ = AsyncMock(return_value=None)

            result = await limiter.hit("3", 5, 60)

        assert result.reset_time == 1_060


class TestRateLimitHeaders:
    """Tests for the header rendering."""

    def test_allowed(self):
        result = RateLimitResult(allowed=True, limit=5, remaining=3, reset_time=1_060)

        assert rate_limit_headers(result) == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "3",
        }

    def test_rejected(self):
        result = RateLimitResult(
            allowed=False, limit=5, remaining=0, reset_time=1_060, retry_after=60
        )

        assert rate_limit_headers(result) == {
            "X-RateLimit-Limit": "5",
            "X-RateLimit-Remaining": "0",
            "X-RateLimit-Reset": "1060",
            "Retry-After": "60",
        }
