"""Alert endpoints (company-scoped).

Endpoints:
- GET   /api/companies/{company_id}/alerts?limit=&unreadOnly=
- PATCH /api/companies/{company_id}/alerts/{alert_id}
"""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from emarketer_api.auth.access import CompanyAccess, get_company_membership
from emarketer_api.db.repo_alerts import AlertRepository
from emarketer_api.db.session import get_db
from emarketer_api.errors import NotFound
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.schemas import AlertResponse, AlertUpdateRequest

router = APIRouter(
    prefix="/api/companies/{company_id}/alerts",
    tags=["alerts"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=list[AlertResponse])
def list_alerts(
    limit: int = Query(50, ge=1, le=200),
    unread_only: bool = Query(False, alias="unreadOnly"),
    access: CompanyAccess = Depends(get_company_membership),
    db: Session = Depends(get_db),
) -> list[AlertResponse]:
    """Newest first."""
    alerts = AlertRepository(db).list_for_company(
        access.company_id, limit=limit, unread_only=unread_only
    )
    return [AlertResponse.model_validate(alert) for alert in alerts]


@router.patch("/{alert_id}", response_model=AlertResponse)
def update_alert(
    alert_id: str,
    request: AlertUpdateRequest,
    access: CompanyAccess = Depends(get_company_membership),
    db: Session = Depends(get_db),
) -> AlertResponse:
    """Mark an alert read or unread.

    Raises:
        NotFound: 404 if the alert is not in this company
    """
    repo = AlertRepository(db)
    alert = repo.get_for_company(alert_id, access.company_id)
    if alert is None:
        raise NotFound("Alert not found")

    return AlertResponse.model_validate(repo.set_read(alert, request.is_read))
