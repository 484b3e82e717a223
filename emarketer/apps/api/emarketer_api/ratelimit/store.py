"""Rate-limit counter stores.

- InMemoryRateLimitStore: process-local dict guarded by a lock. Counters are
  lost on restart and not shared between workers.
- RedisRateLimitStore: shared across instances. Each entry is a hash with a
  PEXPIREAT at its reset time, so Redis drops expired windows by itself and
  ``sweep`` has nothing to do. A get/set race between two instances can lose
  an increment; that slack is accepted.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional, Protocol

import redis

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RateLimitEntry:
    """Counter for one key in its current window."""

    count: int
    reset_time_ms: int


class RateLimitStore(Protocol):
    """Storage contract used by FixedWindowRateLimiter."""

    def get(self, key: str) -> Optional[RateLimitEntry]: ...

    def set(self, key: str, entry: RateLimitEntry) -> None: ...

    def sweep(self, now_ms: int) -> int: ...


class InMemoryRateLimitStore:
    """Process-local store."""

    def __init__(self) -> None:
        self._entries: dict[str, RateLimitEntry] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[RateLimitEntry]:
        with self._lock:
            return self._entries.get(key)

    def set(self, key: str, entry: RateLimitEntry) -> None:
        with self._lock:
            self._entries[key] = entry

    def sweep(self, now_ms: int) -> int:
        """Drop entries whose window has ended.

        Returns:
            Number of entries removed
        """
        with self._lock:
            expired = [k for k, e in self._entries.items() if now_ms >= e.reset_time_ms]
            for key in expired:
                del self._entries[key]
            return len(expired)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class RedisRateLimitStore:
    """Redis-backed store shared by all API instances."""

    def __init__(self, client: redis.Redis, prefix: str = "emk:ratelimit:"):
        self.client = client
        self.prefix = prefix

    def _key(self, key: str) -> str:
        return f"{self.prefix}{key}"

    def get(self, key: str) -> Optional[RateLimitEntry]:
        data = self.client.hgetall(self._key(key))
        if not data:
            return None
        try:
            return RateLimitEntry(count=int(data["count"]), reset_time_ms=int(data["reset"]))
        except (KeyError, ValueError):
            logger.warning(
                "Corrupt rate-limit entry ignored",
                extra={"event": "rate_limit.store.corrupt_entry"},
            )
            return None

    def set(self, key: str, entry: RateLimitEntry) -> None:
        redis_key = self._key(key)
        pipe = self.client.pipeline(transaction=True)
        pipe.hset(redis_key, mapping={"count": entry.count, "reset": entry.reset_time_ms})
        pipe.pexpireat(redis_key, entry.reset_time_ms)
        pipe.execute()

    def sweep(self, now_ms: int) -> int:
        # Redis expires keys at reset time
        return 0
