"""Campaign metrics endpoint (company-scoped)."""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from emarketer_api.auth.access import CompanyAccess, get_company_membership
from emarketer_api.db.repo_campaigns import CampaignRepository
from emarketer_api.db.session import get_db
from emarketer_api.ratelimit.dependency import rate_limit
from emarketer_api.schemas import CampaignResponse, Platform

router = APIRouter(
    prefix="/api/companies/{company_id}/campaigns",
    tags=["campaigns"],
    dependencies=[Depends(rate_limit("api"))],
)


@router.get("", response_model=list[CampaignResponse])
def list_campaigns(
    platform: Optional[Platform] = None,
    limit: int = Query(200, ge=1, le=1000),
    access: CompanyAccess = Depends(get_company_membership),
    db: Session = Depends(get_db),
) -> list[CampaignResponse]:
    """Synced campaigns, highest spend first."""
    campaigns = CampaignRepository(db).list_for_company(access.company_id, platform=platform, limit=limit)
    return [CampaignResponse.model_validate(c) for c in campaigns]
