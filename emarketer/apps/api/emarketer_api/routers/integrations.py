"""Integration endpoints (company-scoped).

Endpoints:
- GET    /api/companies/{company_id}/integrations
- POST   /api/companies/{company_id}/integrations: connect / re-authorize (manager+)
- DELETE /api/companies/{company_id}/integrations/{integration_id}: soft disable (manager+)
- POST   /api/companies/{company_id}/integrations/{integration_id}/sync: manual sync (manager+)
"""

import logging

from fastapi import APIRouter, Depends, Response, status
from sqlalchemy.orm import Session

from emarketer_api.auth.access import CompanyAccess, get_company_membership, require_company_role
from emarketer_api.db.repo_integrations import IntegrationRepository
from emarketer_api.db.session import get_db
from emarketer_api.errors import NotFound
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.routers.cron import get_orchestrator
from emarketer_api.schemas import IntegrationCreateRequest, IntegrationResponse, SyncLogResponse
from emarketer_api.sync.orchestrator import SyncOrchestrator

router = APIRouter(
    prefix="/api/companies/{company_id}/integrations",
    tags=["integrations"],
    dependencies=[Depends(rate_limit("api"))],
)
logger = logging.getLogger(__name__)


@router.get("", response_model=list[IntegrationResponse])
def list_integrations(
    access: CompanyAccess = Depends(get_company_membership),
    db: Session = Depends(get_db),
) -> list[IntegrationResponse]:
    integrations = IntegrationRepository(db).list_for_company(access.company_id)
    return [IntegrationResponse.model_validate(i) for i in integrations]


@router.post("", response_model=IntegrationResponse)
def connect_integration(
    request: IntegrationCreateRequest,
    response: Response,
    access: CompanyAccess = Depends(require_company_role("manager")),
    db: Session = Depends(get_db),
) -> IntegrationResponse:
    integration, created = IntegrationRepository(db).upsert_for_company(
        company_id=access.company_id,
        platform=request.platform,
        account_id=request.account_id,
        access_token=request.access_token,
        refresh_token=request.refresh_token,
        expires_at=request.expires_at,
        account_name=request.account_name,
    )
    response.status_code = status.HTTP_201_CREATED if created else status.HTTP_200_OK

    logger.info(
        "Integration connected",
        extra={
            "event": "integration.connected",
            "integration_id": integration.id,
            "platform": integration.platform,
            "created": created,
        },
    )
    return IntegrationResponse.model_validate(integration)


@router.delete("/{integration_id}", response_model=IntegrationResponse)
def disable_integration(
    integration_id: str,
    access: CompanyAccess = Depends(require_company_role("manager")),
    db: Session = Depends(get_db),
) -> IntegrationResponse:
    repo = IntegrationRepository(db)
    integration = repo.get_for_company(integration_id, access.company_id)
    if integration is None:
        raise NotFound("Integration not found")

    integration = repo.deactivate(integration)
    logger.info(
        "Integration disabled",
        extra={"event": "integration.disabled", "integration_id": integration.id},
    )
    return IntegrationResponse.model_validate(integration)


@router.post("/{integration_id}/sync", response_model=SyncLogResponse)
def sync_integration(
    integration_id: str,
    access: CompanyAccess = Depends(require_company_role("manager")),
    db: Session = Depends(get_db),
    orchestrator: SyncOrchestrator = Depends(get_orchestrator),
) -> SyncLogResponse:
    """Run a manual sync now and return its SyncLog.

    A run already holding the company lease yields a CANCELLED log with a
    lease_conflict error rather than an HTTP error.
    """
    integration = IntegrationRepository(db).get_for_company(integration_id, access.company_id)
    if integration is None or not integration.is_active:
        raise NotFound("Integration not found")

    sync_log = orchestrator.run_integration(integration, triggered_by="manual")
    return SyncLogResponse.model_validate(sync_log)
