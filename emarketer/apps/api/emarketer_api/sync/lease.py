"""Scoped sync leases.

A lease is an expiring exclusive claim on a sync scope (``company:<id>`` or
``user:<id>``). At most one run per scope holds it; a crashed holder loses it
when the TTL elapses.

- RedisSyncLease: SET NX PX, release only if the stored token still matches
  (Lua compare-and-delete) so a run never frees a lease that already expired
  and was re-acquired by someone else.
- InMemorySyncLease: same contract for single-instance deployments and tests.
"""

import logging
import os
import threading
import time
import uuid
from typing import Callable, Optional, Protocol

import redis

from emarketer_api.config.env import get_rate_limit_backend
from emarketer_api.db.redis_client import RedisClient

logger = logging.getLogger(__name__)

_RELEASE_SCRIPT = """
if redis.call("get", KEYS[1]) == ARGV[1] then
    return redis.call("del", KEYS[1])
else
    return 0
end
"""


class SyncLease(Protocol):
    def acquire(self, scope: str, ttl_seconds: int) -> Optional[str]: ...

    def release(self, scope: str, token: str) -> bool: ...


class RedisSyncLease:
    """Redis-backed lease shared by every API instance."""

    def __init__(self, client: redis.Redis, prefix: str = "emk:sync:lease:"):
        self.client = client
        self.prefix = prefix
        self._release = client.register_script(_RELEASE_SCRIPT)

    def acquire(self, scope: str, ttl_seconds: int) -> Optional[str]:
        """Try to take the lease.

        Returns:
            Lease token if acquired, None if another holder has it
        """
        token = str(uuid.uuid4())
        ok = self.client.set(f"{self.prefix}{scope}", token, nx=True, px=ttl_seconds * 1000)
        return token if ok else None

    def release(self, scope: str, token: str) -> bool:
        released = self._release(keys=[f"{self.prefix}{scope}"], args=[token])
        return bool(released)


class InMemorySyncLease:
    """Process-local lease."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._held: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._clock = clock or time.monotonic

    def acquire(self, scope: str, ttl_seconds: int) -> Optional[str]:
        now = self._clock()
        with self._lock:
            current = self._held.get(scope)
            if current is not None and current[1] > now:
                return None
            token = str(uuid.uuid4())
            self._held[scope] = (token, now + ttl_seconds)
            return token

    def release(self, scope: str, token: str) -> bool:
        with self._lock:
            current = self._held.get(scope)
            if current is None or current[0] != token:
                return False
            del self._held[scope]
            return True


_default_lease: Optional[SyncLease] = None
_default_lock = threading.Lock()


def get_sync_lease() -> SyncLease:
    """Process-wide lease.

    Backend: SYNC_LEASE_BACKEND=memory|redis, defaulting to RATE_LIMIT_BACKEND.
    """
    global _default_lease
    with _default_lock:
        if _default_lease is None:
            backend = os.getenv("SYNC_LEASE_BACKEND", "").lower() or get_rate_limit_backend()
            if backend == "redis":
                _default_lease = RedisSyncLease(RedisClient.get_client())
            else:
                _default_lease = InMemorySyncLease()
            logger.info(
                "Sync lease backend initialized",
                extra={"event": "sync.lease.init", "backend": backend},
            )
        return _default_lease


def reset_sync_lease() -> None:
    """Drop the process-wide lease (for testing)."""
    global _default_lease
    with _default_lock:
        _default_lease = None
