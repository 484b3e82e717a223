"""eMarketer scheduler entry point.

Runs the sync trigger loop in a dedicated thread until SIGTERM/SIGINT.

Env:
- APP_BASE_URL: API to trigger (see emarketer_api.config.env)
- CRON_SECRET: shared bearer secret (required in production)
- SYNC_INTERVAL_SECONDS: default 1800
- SYNC_RUN_ON_START: "true" to fire once immediately
"""

import logging
import os
import threading

import httpx

from emarketer_api.config.env import (
    get_app_base_url,
    get_cron_secret,
    get_sync_http_timeout_seconds,
    get_sync_interval_seconds,
)
from emarketer_api.utils import configure_json_logging
from emarketer_scheduler.loops.sync_trigger_loop import install_signal_handlers, sync_trigger_loop

configure_json_logging(log_level=os.getenv("LOG_LEVEL", "INFO"))
logger = logging.getLogger(__name__)


def main() -> None:
    """Main entry point for the scheduler."""
    base_url = get_app_base_url()
    cron_secret = get_cron_secret()
    interval_seconds = get_sync_interval_seconds()
    run_on_start = os.getenv("SYNC_RUN_ON_START", "false").lower() in {"true", "1", "yes"}

    install_signal_handlers()

    # The batch runs inside the API call, so reads may take much longer than connects
    timeout = httpx.Timeout(get_sync_http_timeout_seconds() * 20, connect=10.0)
    http = httpx.Client(timeout=timeout)

    logger.info(
        "Starting eMarketer scheduler",
        extra={"event": "scheduler.start", "base_url": base_url, "interval_seconds": interval_seconds},
    )

    loop_thread = threading.Thread(
        target=sync_trigger_loop,
        kwargs={
            "http": http,
            "base_url": base_url,
            "cron_secret": cron_secret,
            "interval_seconds": interval_seconds,
            "run_on_start": run_on_start,
        },
        name="SyncTriggerLoop",
        daemon=False,
    )

    try:
        loop_thread.start()
        loop_thread.join()
    except KeyboardInterrupt:
        logger.info("Scheduler stopped by user (KeyboardInterrupt)")
    finally:
        http.close()
        logger.info("Scheduler shutdown complete")


if __name__ == "__main__":
    main()
