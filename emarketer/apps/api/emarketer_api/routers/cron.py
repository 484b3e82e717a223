"""Sync trigger endpoints.

Endpoints:
- POST /cron/sync-all: run the sync batch over all active integrations
- POST /cron/run: delegate to {APP_BASE_URL}/cron/sync-all (lets an external
  cron hit a stable URL while the batch runs on whichever instance serves it)

Both require Authorization: Bearer <CRON_SECRET>.
"""

import logging

import httpx
from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from emarketer_api.config.env import get_app_base_url, get_sync_http_timeout_seconds
from emarketer_api.db.session import get_db
from emarketer_api.errors import UpstreamFailure
from emarketer_api.schemas import CronRunResponse, SyncAllResponse
from emarketer_api.sync.orchestrator import SyncOrchestrator
from emarketer_api.sync.trigger import require_cron_secret

router = APIRouter(prefix="/cron", tags=["cron"])
logger = logging.getLogger(__name__)


def get_orchestrator(db: Session = Depends(get_db)):
    """Per-request orchestrator (overridable in tests)."""
    with SyncOrchestrator(db) as orchestrator:
        yield orchestrator


def get_delegate_http_client():
    """httpx client used by /cron/run (overridable in tests)."""
    # The batch can take minutes; only the connect phase is short
    timeout = httpx.Timeout(get_sync_http_timeout_seconds() * 20, connect=10.0)
    with httpx.Client(timeout=timeout) as client:
        yield client


@router.post("/sync-all", response_model=SyncAllResponse)
def sync_all(
    _authorization: str = Depends(require_cron_secret),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncAllResponse:
    """Run the sync batch."""
    logger.info("Scheduled sync batch starting", extra={"event": "cron.sync_all.start"})
    results = orchestrator.run_all(triggered_by="cron")
    return SyncAllResponse(success=True, message="Sync completed", results=results)


@router.post("/run", response_model=CronRunResponse)
def run(
    authorization: str = Depends(require_cron_secret),
    http: httpx.Client = Depends(get_delegate_http_client),
) -> JSONResponse:
    """Forward the trigger to /cron/sync-all and relay its status and body."""
    url = f"{get_app_base_url()}/cron/sync-all"
    try:
        upstream = http.post(url, headers={"Authorization": authorization})
    except httpx.HTTPError as e:
        logger.error(
            "Cron delegate call failed",
            extra={"event": "cron.run.delegate_failed", "error_type": type(e).__name__},
        )
        raise UpstreamFailure("Sync trigger failed", platform="self") from e

    try:
        data = upstream.json()
    except ValueError:
        data = None

    ok = upstream.status_code < 400
    logger.info(
        "Cron delegate call completed",
        extra={"event": "cron.run.completed", "upstream_status": upstream.status_code},
    )
    return JSONResponse(
        status_code=upstream.status_code,
        content=CronRunResponse(ok=ok, data=data).model_dump(),
    )
