"""Fixed-window rate limiters.

Two interchangeable backends share the :class:`RateLimiter` interface:
a process-local in-memory limiter and a Redis limiter whose counters
are shared by every instance pointing at the same Redis.
"""

import asyncio
import math
import time
from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass

from tracker.config import settings
from tracker.core.cache.redis import redis_client


Clock = Callable[[], float]


@dataclass
class RateLimitResult:
    """Result of a rate limit check."""

    allowed: bool
    limit: int
    remaining: int
    reset_time: int
    retry_after: int | None = None


def rate_limit_headers(result: RateLimitResult) -> dict[str, str]:
    """Response headers describing a rate limit decision."""
    headers = {
        "X-RateLimit-Limit": str(result.limit),
        "X-RateLimit-Remaining": str(result.remaining),
    }
    if not result.allowed:
        headers["X-RateLimit-Reset"] = str(result.reset_time)
        headers["Retry-After"] = str(result.retry_after)
    return headers


def _seconds_until(reset_at: float, now: float) -> int:
    return max(1, math.ceil(reset_at - now))


class RateLimiter(ABC):
    """Counts requests per identifier within a fixed window."""

    @abstractmethod
    async def hit(self, identifier: str, limit: int, window: int) -> RateLimitResult:
        """Record one request and decide whether it is allowed.

        Args:
            identifier: Key the counter is kept under (e.g. an API key id)
            limit: Requests allowed per window
            window: Window length in seconds

        Returns:
            RateLimitResult with allowed status and metadata
        """


@dataclass
class _Window:
    count: int
    reset_at: float


class InMemoryFixedWindowRateLimiter(RateLimiter):
    """Process-local limiter.

    A request that would exceed the limit is rejected without being
    counted, so a rejected burst does not push the window further out.
    Expired windows are swept at most once per ``sweep_interval`` seconds,
    so identifiers that stop calling do not accumulate.
    """

    def __init__(self, clock: Clock = time.time, sweep_interval: float = 60.0) -> None:
        self.clock = clock
        self.sweep_interval = sweep_interval
        self._windows: dict[str, _Window] = {}
        self._lock = asyncio.Lock()
        self._next_sweep = clock() + sweep_interval

    @property
    def tracked(self) -> int:
        """Number of identifiers currently holding a window."""
        return len(self._windows)

    def _sweep(self, now: float) -> None:
        expired = [key for key, w in self._windows.items() if now >= w.reset_at]
        for key in expired:
            del self._windows[key]
        self._next_sweep = now + self.sweep_interval

    async def hit(self, identifier: str, limit: int, window: int) -> RateLimitResult:
        async with self._lock:
            now = self.clock()
            if now >= self._next_sweep:
                self._sweep(now)
            current = self._windows.get(identifier)
            if current is None or now >= current.reset_at:
                current = _Window(count=0, reset_at=now + window)
                self._windows[identifier] = current

            if current.count >= limit:
                return RateLimitResult(
                    allowed=False,
                    limit=limit,
                    remaining=0,
                    reset_time=math.ceil(current.reset_at),
                    retry_after=_seconds_until(current.reset_at, now),
                )

            current.count += 1
            return RateLimitResult(
                allowed=True,
                limit=limit,
                remaining=limit - current.count,
                reset_time=math.ceil(current.reset_at),
            )

    def reset(self, identifier: str | None = None) -> None:
        """Forget one counter, or all of them."""
        if identifier is None:
            self._windows.clear()
        else:
            self._windows.pop(identifier, None)


class RedisFixedWindowRateLimiter(RateLimiter):
    """Redis-backed limiter using ``INCR`` with an ``EXPIRE`` on first hit.

    Unlike the in-memory limiter, rejected requests are counted too;
    the counter simply expires with the window.
    """

    def __init__(self, prefix: str = "ratelimit:apikey", clock: Clock = time.time) -> None:
        self.prefix = prefix
        self.clock = clock

    def _build_key(self, identifier: str) -> str:
        return f"{self.prefix}:{identifier}"

    async def hit(self, identifier: str, limit: int, window: int) -> RateLimitResult:
        key = self._build_key(identifier)

        async with redis_client() as client, client.pipeline(transaction=True) as pipe:
            pipe.incr(key)
            pipe.expire(key, window, nx=True)
            pipe.ttl(key)
            count, _, ttl = await pipe.execute()

        now = self.clock()
        ttl = ttl if ttl and ttl > 0 else window
        reset_at = now + ttl
        allowed = count <= limit

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - count),
            reset_time=math.ceil(reset_at),
            retry_after=None if allowed else _seconds_until(reset_at, now),
        )


_limiter: RateLimiter | None = None


def get_rate_limiter() -> RateLimiter:
    """Return the process-wide limiter selected by ``RATE_LIMIT_BACKEND``."""
    global _limiter
    if _limiter is None:
        if settings.rate_limit_backend == "redis":
            _limiter = RedisFixedWindowRateLimiter()
        else:
            _limiter = InMemoryFixedWindowRateLimiter()
    return _limiter
