"""Tests for the scheduler's sync trigger loop."""

import threading

import httpx
import pytest

from emarketer_scheduler.loops import sync_trigger_loop as loop_module
from emarketer_scheduler.loops.sync_trigger_loop import (
    _shutdown_event,
    fire_sync_trigger,
    request_shutdown,
    sync_trigger_loop,
)

BASE_URL = "http://api.internal"
SECRET = "s3cret"


def _client(handler) -> httpx.Client:
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_fire_sync_trigger_posts_with_bearer_secret():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append((request.method, str(request.url), request.headers["Authorization"]))
        return httpx.Response(200, json={"success": True, "results": {"total": 2, "success": 2}})

    results = fire_sync_trigger(_client(handler), BASE_URL, SECRET)

    assert results == {"total": 2, "success": 2}
    assert seen == [("POST", f"{BASE_URL}/cron/sync-all", f"Bearer {SECRET}")]


def test_fire_sync_trigger_non_2xx_returns_none():
    http = _client(lambda request: httpx.Response(401, json={"error": "Unauthorized"}))

    assert fire_sync_trigger(http, BASE_URL, SECRET) is None


def test_fire_sync_trigger_tolerates_non_json_error():
    http = _client(lambda request: httpx.Response(502, text="Bad Gateway"))

    assert fire_sync_trigger(http, BASE_URL, SECRET) is None


def test_loop_single_iteration_fires_immediately():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"results": {}})

    sync_trigger_loop(
        _client(handler), BASE_URL, SECRET, interval_seconds=3600, stop_after_one_iteration=True
    )

    assert len(calls) == 1


def test_loop_survives_transport_errors():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    # Must not raise
    sync_trigger_loop(
        _client(handler), BASE_URL, SECRET, interval_seconds=3600, stop_after_one_iteration=True
    )


def test_loop_waits_one_interval_before_first_trigger():
    calls = []

    def handler(request):
        calls.append(request)
        return httpx.Response(200, json={"results": {}})

    thread = threading.Thread(
        target=sync_trigger_loop,
        kwargs={"http": _client(handler), "base_url": BASE_URL, "cron_secret": SECRET, "interval_seconds": 3600},
    )
    thread.start()
    request_shutdown()
    thread.join(timeout=5)

    assert not thread.is_alive()
    assert calls == []


def test_loop_runs_on_start_until_shutdown():
    fired = threading.Event()

    def handler(request):
        fired.set()
        return httpx.Response(200, json={"results": {}})

    thread = threading.Thread(
        target=sync_trigger_loop,
        kwargs={
            "http": _client(handler),
            "base_url": BASE_URL,
            "cron_secret": SECRET,
            "interval_seconds": 3600,
            "run_on_start": True,
        },
    )
    thread.start()
    assert fired.wait(timeout=5)

    _shutdown_event.set()
    thread.join(timeout=5)
    assert not thread.is_alive()


class RecordingEvent(threading.Event):
    """Shutdown event that records wait timeouts and stops after the first one."""

    def __init__(self):
        super().__init__()
        self.waits = []

    def wait(self, timeout=None):
        self.waits.append(timeout)
        self.set()
        return True


@pytest.mark.parametrize("batch_seconds, expected_wait", [(600.0, 1200.0), (2500.0, 0.0)])
def test_wait_subtracts_trigger_duration(monkeypatch, batch_seconds, expected_wait):
    now = [1000.0]
    event = RecordingEvent()
    monkeypatch.setattr(loop_module, "_shutdown_event", event)

    def handler(request):
        now[0] += batch_seconds
        return httpx.Response(200, json={"results": {}})

    sync_trigger_loop(
        _client(handler),
        BASE_URL,
        SECRET,
        interval_seconds=1800,
        run_on_start=True,
        clock=lambda: now[0],
    )

    assert event.waits == [expected_wait]
