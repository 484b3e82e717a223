"""Unit tests for scoped sync leases."""

from unittest.mock import MagicMock

from emarketer_api.sync.lease import (
    InMemorySyncLease,
    RedisSyncLease,
    get_sync_lease,
    reset_sync_lease,
)


class ManualClock:
    def __init__(self):
        self.now = 100.0

    def __call__(self) -> float:
        return self.now


def test_in_memory_lease_is_exclusive_per_scope():
    lease = InMemorySyncLease()

    token = lease.acquire("company:a", 60)

    assert token is not None
    assert lease.acquire("company:a", 60) is None
    assert lease.acquire("company:b", 60) is not None


def test_in_memory_release_requires_matching_token():
    lease = InMemorySyncLease()
    token = lease.acquire("company:a", 60)

    assert not lease.release("company:a", "someone-else")
    assert lease.acquire("company:a", 60) is None

    assert lease.release("company:a", token)
    assert lease.acquire("company:a", 60) is not None


def test_in_memory_lease_expires():
    clock = ManualClock()
    lease = InMemorySyncLease(clock=clock)
    stale = lease.acquire("user:u-1", 30)

    clock.now += 31
    fresh = lease.acquire("user:u-1", 30)

    assert fresh is not None
    # Expired holder must not free the new holder's lease
    assert not lease.release("user:u-1", stale)
    assert lease.acquire("user:u-1", 30) is None


def test_redis_lease_uses_set_nx_px():
    client = MagicMock()
    client.set.return_value = True
    lease = RedisSyncLease(client, prefix="l:")

    token = lease.acquire("company:a", 45)

    assert token is not None
    client.set.assert_called_once_with("l:company:a", token, nx=True, px=45000)


def test_redis_lease_conflict_returns_none():
    client = MagicMock()
    client.set.return_value = None
    lease = RedisSyncLease(client)

    assert lease.acquire("company:a", 45) is None


def test_redis_release_runs_compare_and_delete():
    client = MagicMock()
    script = client.register_script.return_value
    script.return_value = 1
    lease = RedisSyncLease(client, prefix="l:")

    assert lease.release("company:a", "tok")
    script.assert_called_once_with(keys=["l:company:a"], args=["tok"])

    script.return_value = 0
    assert not lease.release("company:a", "tok")


def test_default_lease_is_memory_without_redis(monkeypatch):
    monkeypatch.delenv("SYNC_LEASE_BACKEND", raising=False)
    monkeypatch.setenv("RATE_LIMIT_BACKEND", "memory")
    reset_sync_lease()
    try:
        lease = get_sync_lease()
        assert isinstance(lease, InMemorySyncLease)
        assert get_sync_lease() is lease
    finally:
        reset_sync_lease()
