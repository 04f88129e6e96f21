"""Fixed-window rate limiting for API keys."""

from tracker.core.rate_limit.backend import (
    InMemoryFixedWindowRateLimiter,
    RateLimiter,
    RateLimitResult,
    RedisFixedWindowRateLimiter,
    get_rate_limiter,
    rate_limit_headers,
)


__all__ = [
    "InMemoryFixedWindowRateLimiter",
    "RateLimitResult",
    "RateLimiter",
    "RedisFixedWindowRateLimiter",
    "get_rate_limiter",
    "rate_limit_headers",
]
