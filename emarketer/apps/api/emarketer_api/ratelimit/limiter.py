"""Fixed-window rate limiter.

Per check at time ``now`` (ms):
1. sweep expired entries (opportunistic, no background task)
2. no entry, or ``now >= reset_time``: start a new window (count=1), allow
3. count < limit: increment, allow
4. otherwise deny

Keys are namespaced per policy (``<policy>:<key>``) so one caller's auth and
chat counters never share a window.
"""

import logging
import math
import os
import time
from dataclasses import dataclass
from typing import Callable, Optional

from emarketer_api.config.env import get_int, get_rate_limit_backend
from emarketer_api.db.redis_client import RedisClient
from emarketer_api.ratelimit.store import (
    InMemoryRateLimitStore,
    RateLimitEntry,
    RateLimitStore,
    RedisRateLimitStore,
)

logger = logging.getLogger(__name__)

Clock = Callable[[], int]


def _system_clock_ms() -> int:
    return int(time.time() * 1000)


@dataclass(frozen=True)
class RateLimitPolicy:
    """A named limit: ``limit`` calls per ``window_ms``."""

    name: str
    limit: int
    window_ms: int
    message: str = "Too many requests, please try again later"


@dataclass(frozen=True)
class RateLimitResult:
    """Outcome of one check."""

    allowed: bool
    limit: int
    remaining: int
    reset_time_ms: int
    retry_after_ms: int

    @property
    def retry_after_seconds(self) -> int:
        return math.ceil(self.retry_after_ms / 1000)

    @property
    def reset_epoch_seconds(self) -> int:
        return math.ceil(self.reset_time_ms / 1000)


POLICIES: dict[str, RateLimitPolicy] = {
    "auth": RateLimitPolicy(
        name="auth",
        limit=5,
        window_ms=15 * 60 * 1000,
        message="Too many login attempts, please try again later",
    ),
    "chat": RateLimitPolicy(
        name="chat",
        limit=10,
        window_ms=60 * 1000,
        message="Too many chat requests, please slow down",
    ),
    "api": RateLimitPolicy(name="api", limit=100, window_ms=60 * 1000),
}


class FixedWindowRateLimiter:
    """Fixed-window counter over an injected store.

    Args:
        policy: Limit and window
        store: Counter storage (in-memory or Redis)
        clock: Returns current time in milliseconds (injectable for tests)
    """

    def __init__(
        self,
        policy: RateLimitPolicy,
        store: Optional[RateLimitStore] = None,
        clock: Optional[Clock] = None,
    ):
        if policy.limit <= 0 or policy.window_ms <= 0:
            raise ValueError("limit and window_ms must be positive")
        self.policy = policy
        self.store = store if store is not None else InMemoryRateLimitStore()
        self.clock = clock or _system_clock_ms

    def _namespaced(self, key: str) -> str:
        return f"{self.policy.name}:{key}"

    def check(self, key: str) -> RateLimitResult:
        """Count one call for ``key`` and decide whether it is allowed."""
        now = self.clock()
        self.store.sweep(now)

        store_key = self._namespaced(key)
        limit = self.policy.limit
        entry = self.store.get(store_key)

        if entry is None or now >= entry.reset_time_ms:
            entry = RateLimitEntry(count=1, reset_time_ms=now + self.policy.window_ms)
            self.store.set(store_key, entry)
            allowed = True
        elif entry.count < limit:
            entry = RateLimitEntry(count=entry.count + 1, reset_time_ms=entry.reset_time_ms)
            self.store.set(store_key, entry)
            allowed = True
        else:
            allowed = False

        return RateLimitResult(
            allowed=allowed,
            limit=limit,
            remaining=max(0, limit - entry.count),
            reset_time_ms=entry.reset_time_ms,
            retry_after_ms=max(0, entry.reset_time_ms - now),
        )


def _policy_from_env(policy: RateLimitPolicy) -> RateLimitPolicy:
    """Apply RATE_LIMIT_<POLICY>_LIMIT override, if any."""
    env_name = f"RATE_LIMIT_{policy.name.upper()}_LIMIT"
    limit = get_int(env_name, policy.limit)
    if limit != policy.limit:
        logger.info(
            "Rate-limit policy overridden from environment",
            extra={"event": "rate_limit.policy.override", "policy": policy.name, "limit": limit},
        )
    return RateLimitPolicy(
        name=policy.name, limit=limit, window_ms=policy.window_ms, message=policy.message
    )


def build_rate_limiters(
    store: Optional[RateLimitStore] = None,
    clock: Optional[Clock] = None,
) -> dict[str, FixedWindowRateLimiter]:
    """Build one limiter per policy sharing a single store.

    When ``store`` is None the backend comes from RATE_LIMIT_BACKEND.
    """
    if store is None:
        if get_rate_limit_backend() == "redis":
            store = RedisRateLimitStore(
                RedisClient.get_client(),
                prefix=os.getenv("RATE_LIMIT_REDIS_PREFIX", "emk:ratelimit:"),
            )
        else:
            store = InMemoryRateLimitStore()

    return {
        name: FixedWindowRateLimiter(_policy_from_env(policy), store=store, clock=clock)
        for name, policy in POLICIES.items()
    }
