"""Sync trigger loop.

Every SYNC_INTERVAL_SECONDS (default 30 minutes):
    POST {APP_BASE_URL}/cron/sync-all  with  Authorization: Bearer <CRON_SECRET>

The loop never runs the sync itself; the API instance serving the call does,
and the orchestrator's scope lease keeps overlapping batches from double
syncing the same company.
"""

import logging
import signal
import threading
import time
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

# Global shutdown event for graceful termination
_shutdown_event = threading.Event()


def _signal_handler(signum, frame):
    """Handle shutdown signals (SIGTERM, SIGINT) gracefully."""
    sig_name = signal.Signals(signum).name
    logger.info(f"Received {sig_name} signal, initiating graceful shutdown...")
    _shutdown_event.set()


def install_signal_handlers() -> None:
    """Register SIGTERM/SIGINT handlers (main thread only)."""
    signal.signal(signal.SIGTERM, _signal_handler)
    signal.signal(signal.SIGINT, _signal_handler)


def request_shutdown() -> None:
    _shutdown_event.set()


def fire_sync_trigger(http: httpx.Client, base_url: str, cron_secret: str) -> Optional[dict]:
    """Call the sync endpoint once.

    Returns:
        The batch ``results`` on success, None on a non-2xx response

    Raises:
        httpx.HTTPError: On transport failure
    """
    response = http.post(
        f"{base_url}/cron/sync-all",
        headers={"Authorization": f"Bearer {cron_secret}", "Content-Type": "application/json"},
    )
    try:
        data = response.json()
    except ValueError:
        data = {}

    if response.status_code >= 400:
        logger.error(
            "Scheduled sync failed",
            extra={
                "event": "scheduler.sync.failed",
                "upstream_status": response.status_code,
                "error_message": data.get("error") if isinstance(data, dict) else None,
            },
        )
        return None

    results = data.get("results") if isinstance(data, dict) else None
    logger.info(
        "Scheduled sync completed",
        extra={"event": "scheduler.sync.completed", "results": results},
    )
    return results


def sync_trigger_loop(
    http: httpx.Client,
    base_url: str,
    cron_secret: str,
    interval_seconds: int = 1800,
    run_on_start: bool = False,
    stop_after_one_iteration: bool = False,
    clock: Callable[[], float] = time.monotonic,
) -> None:
    """Fire the sync trigger on a fixed interval until shutdown.

    Args:
        http: httpx client (timeout configured by caller)
        base_url: API base URL
        cron_secret: Shared bearer secret
        interval_seconds: Time between triggers
        run_on_start: Fire immediately instead of waiting one interval first
        stop_after_one_iteration: For testing only - exit after one trigger
        clock: Monotonic seconds; the wait after a trigger subtracts its duration
    """
    logger.info(
        f"Sync trigger loop started (interval={interval_seconds}s)",
        extra={"event": "scheduler.loop.started", "interval_seconds": interval_seconds},
    )

    if not run_on_start and not stop_after_one_iteration:
        _shutdown_event.wait(interval_seconds)

    iteration = 0
    failures = 0

    while not _shutdown_event.is_set():
        iteration += 1
        iteration_start = clock()

        try:
            if fire_sync_trigger(http, base_url, cron_secret) is None:
                failures += 1
        except Exception as e:
            failures += 1
            logger.error(f"Sync trigger error in iteration {iteration}: {e}", exc_info=True)

        elapsed = clock() - iteration_start
        logger.debug(
            f"Sync trigger iteration {iteration} finished",
            extra={"iteration": iteration, "duration_ms": int(elapsed * 1000)},
        )

        if stop_after_one_iteration:
            logger.info("Sync trigger loop stopping after one iteration (test mode)")
            break

        # Interruptible sleep; keeps the trigger period at interval_seconds
        _shutdown_event.wait(max(0.0, interval_seconds - elapsed))

    logger.info(
        f"Sync trigger loop stopped after {iteration} iterations",
        extra={"event": "scheduler.loop.stopped", "total_iterations": iteration, "failures": failures},
    )
