"""Sync log endpoints (company-scoped).

Endpoints:
- GET  /api/companies/{company_id}/sync-logs
- POST /api/companies/{company_id}/sync-logs/{sync_log_id}/cancel (manager+)
"""

import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from emarketer_api.auth.access import CompanyAccess, get_company_membership, require_company_role
from emarketer_api.db.repo_sync_logs import SyncLogRepository
from emarketer_api.db.session import get_db
from emarketer_api.errors import Conflict, NotFound
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.schemas import SyncLogResponse
from emarketer_api.sync.orchestrator import cancel_sync

router = APIRouter(
    prefix="/api/companies/{company_id}/sync-logs",
    tags=["sync"],
    dependencies=[Depends(rate_limit("api"))],
)
logger = logging.getLogger(__name__)


@router.get("", response_model=list[SyncLogResponse])
def list_sync_logs(
    limit: int = Query(50, ge=1, le=200),
    access: CompanyAccess = Depends(get_company_membership),
    db: Session = Depends(get_db),
) -> list[SyncLogResponse]:
    logs = SyncLogRepository(db).list_for_company(access.company_id, limit=limit)
    return [SyncLogResponse.model_validate(log) for log in logs]


@router.post("/{sync_log_id}/cancel", response_model=SyncLogResponse)
def cancel_sync_log(
    sync_log_id: str,
    access: CompanyAccess = Depends(require_company_role("manager")),
    db: Session = Depends(get_db),
) -> SyncLogResponse:
    """Cancel a pending or running sync.

    Raises:
        NotFound: 404 if the log is not in this company
        Conflict: 409 if the run already finished
    """
    repo = SyncLogRepository(db)
    if repo.get_for_company(sync_log_id, access.company_id) is None:
        raise NotFound("Sync log not found")

    if not cancel_sync(db, sync_log_id):
        raise Conflict("Sync already finished")

    logger.info("Sync cancelled by user", extra={"event": "sync.cancel.requested", "sync_log": sync_log_id})
    return SyncLogResponse.model_validate(repo.get(sync_log_id))
