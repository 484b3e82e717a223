"""Unit tests for the fixed-window rate limiter."""

from unittest.mock import MagicMock

import pytest

from emarketer_api.ratelimit.limiter import (
    POLICIES,
    FixedWindowRateLimiter,
    RateLimitPolicy,
    build_rate_limiters,
)
from emarketer_api.ratelimit.store import (
    InMemoryRateLimitStore,
    RateLimitEntry,
    RedisRateLimitStore,
)
from tests.helpers import FakeClock


def _limiter(limit: int = 5, window_ms: int = 1000, store=None, clock=None) -> FixedWindowRateLimiter:
    policy = RateLimitPolicy(name="test", limit=limit, window_ms=window_ms)
    return FixedWindowRateLimiter(policy, store=store if store is not None else InMemoryRateLimitStore(), clock=clock or FakeClock())


def test_allows_up_to_limit_then_denies():
    clock = FakeClock()
    limiter = _limiter(limit=5, window_ms=1000, clock=clock)

    results = [limiter.check("203.0.113.7") for _ in range(6)]

    assert [r.allowed for r in results] == [True, True, True, True, True, False]
    assert [r.remaining for r in results] == [4, 3, 2, 1, 0, 0]
    assert all(r.limit == 5 for r in results)


def test_denied_result_reports_time_until_reset():
    clock = FakeClock()
    limiter = _limiter(limit=1, window_ms=1000, clock=clock)

    first = limiter.check("k")
    clock.advance(300)
    denied = limiter.check("k")

    assert not denied.allowed
    assert denied.reset_time_ms == first.reset_time_ms
    assert denied.retry_after_ms == 700
    assert denied.retry_after_seconds == 1


def test_retry_after_stays_within_window():
    clock = FakeClock()
    limiter = _limiter(limit=2, window_ms=1000, clock=clock)

    for step in range(12):
        result = limiter.check("k")
        assert 0 <= result.retry_after_ms <= 1000
        clock.advance(150 if step % 2 else 40)


def test_window_resets_at_reset_time():
    clock = FakeClock()
    limiter = _limiter(limit=2, window_ms=1000, clock=clock)

    limiter.check("k")
    limiter.check("k")
    assert not limiter.check("k").allowed

    clock.advance(999)
    assert not limiter.check("k").allowed

    clock.advance(1)
    fresh = limiter.check("k")
    assert fresh.allowed
    assert fresh.remaining == 1
    assert fresh.reset_time_ms == clock() + 1000


def test_keys_are_independent():
    limiter = _limiter(limit=1)

    assert limiter.check("10.0.0.1").allowed
    assert not limiter.check("10.0.0.1").allowed
    assert limiter.check("10.0.0.2").allowed


def test_policies_sharing_a_store_do_not_share_counters():
    store = InMemoryRateLimitStore()
    clock = FakeClock()
    auth = FixedWindowRateLimiter(RateLimitPolicy("auth", 1, 1000), store=store, clock=clock)
    chat = FixedWindowRateLimiter(RateLimitPolicy("chat", 1, 1000), store=store, clock=clock)

    assert auth.check("10.0.0.1").allowed
    assert chat.check("10.0.0.1").allowed
    assert store.get("auth:10.0.0.1") is not None
    assert store.get("chat:10.0.0.1") is not None


def test_expired_entries_are_swept_on_check():
    store = InMemoryRateLimitStore()
    clock = FakeClock()
    limiter = _limiter(limit=5, window_ms=1000, store=store, clock=clock)

    for i in range(3):
        limiter.check(f"client-{i}")
    assert len(store) == 3

    clock.advance(1000)
    limiter.check("client-new")

    assert len(store) == 1


def test_sweep_returns_removed_count():
    store = InMemoryRateLimitStore()
    store.set("a", RateLimitEntry(count=1, reset_time_ms=100))
    store.set("b", RateLimitEntry(count=1, reset_time_ms=200))

    assert store.sweep(150) == 1
    assert store.get("a") is None
    assert store.get("b") is not None


def test_invalid_policy_rejected():
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(RateLimitPolicy("bad", 0, 1000))
    with pytest.raises(ValueError):
        FixedWindowRateLimiter(RateLimitPolicy("bad", 1, 0))


def test_default_policies():
    assert (POLICIES["auth"].limit, POLICIES["auth"].window_ms) == (5, 15 * 60 * 1000)
    assert (POLICIES["chat"].limit, POLICIES["chat"].window_ms) == (10, 60 * 1000)
    assert (POLICIES["api"].limit, POLICIES["api"].window_ms) == (100, 60 * 1000)


def test_build_rate_limiters_shares_one_store():
    store = InMemoryRateLimitStore()
    limiters = build_rate_limiters(store=store, clock=FakeClock())

    assert set(limiters) == {"auth", "chat", "api"}
    assert all(limiter.store is store for limiter in limiters.values())


def test_build_rate_limiters_applies_env_override(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_CHAT_LIMIT", "3")

    limiters = build_rate_limiters(store=InMemoryRateLimitStore(), clock=FakeClock())

    assert limiters["chat"].policy.limit == 3
    assert limiters["chat"].policy.window_ms == 60 * 1000
    assert limiters["auth"].policy.limit == 5


def test_build_rate_limiters_rejects_bad_env(monkeypatch):
    monkeypatch.setenv("RATE_LIMIT_API_LIMIT", "lots")

    with pytest.raises(ValueError, match="RATE_LIMIT_API_LIMIT"):
        build_rate_limiters(store=InMemoryRateLimitStore())


# ============================================================================
# Redis store
# ============================================================================


def test_redis_store_reads_hash():
    client = MagicMock()
    client.hgetall.return_value = {"count": "3", "reset": "1700000060000"}
    store = RedisRateLimitStore(client, prefix="t:")

    entry = store.get("chat:1.2.3.4")

    client.hgetall.assert_called_once_with("t:chat:1.2.3.4")
    assert entry == RateLimitEntry(count=3, reset_time_ms=1700000060000)


def test_redis_store_missing_or_corrupt_entry_is_none():
    client = MagicMock()
    store = RedisRateLimitStore(client)

    client.hgetall.return_value = {}
    assert store.get("k") is None

    client.hgetall.return_value = {"count": "x", "reset": "1"}
    assert store.get("k") is None


def test_redis_store_set_expires_at_reset_time():
    client = MagicMock()
    pipe = client.pipeline.return_value
    store = RedisRateLimitStore(client, prefix="t:")

    store.set("auth:k", RateLimitEntry(count=2, reset_time_ms=1700000900000))

    pipe.hset.assert_called_once_with("t:auth:k", mapping={"count": 2, "reset": 1700000900000})
    pipe.pexpireat.assert_called_once_with("t:auth:k", 1700000900000)
    pipe.execute.assert_called_once()
    assert store.sweep(0) == 0
