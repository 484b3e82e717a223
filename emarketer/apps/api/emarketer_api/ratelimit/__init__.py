"""Fixed-window rate limiting (auth, chat and general API policies)."""

from emarketer_api.ratelimit.limiter import (
    POLICIES,
    FixedWindowRateLimiter,
    RateLimitPolicy,
    RateLimitResult,
    build_rate_limiters,
)
from emarketer_api.ratelimit.store import (
    InMemoryRateLimitStore,
    RateLimitEntry,
    RateLimitStore,
    RedisRateLimitStore,
)

__all__ = [
    "POLICIES",
    "FixedWindowRateLimiter",
    "InMemoryRateLimitStore",
    "RateLimitEntry",
    "RateLimitPolicy",
    "RateLimitResult",
    "RateLimitStore",
    "RedisRateLimitStore",
    "build_rate_limiters",
]
