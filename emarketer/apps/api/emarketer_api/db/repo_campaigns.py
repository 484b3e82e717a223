"""Repository for synced campaign metrics."""

from typing import Literal

from sqlalchemy import select
from sqlalchemy.orm import Session

from emarketer_api.db.models import Campaign, Integration
from emarketer_api.schemas import CampaignRecord

_METRIC_FIELDS = (
    "name",
    "status",
    "spend",
    "impressions",
    "clicks",
    "conversions",
    "revenue",
    "ctr",
    "cpc",
    "roas",
    "metrics_date",
)


class CampaignRepository:
    """Repository for Campaign operations."""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, integration: Integration, record: CampaignRecord) -> Literal["created", "updated"]:
        """Insert or update one campaign keyed by (integration_id, external_id).

        The caller owns the transaction; a failure here is rolled back by the
        caller and counted as a failed record.
        """
        stmt = select(Campaign).where(
            Campaign.integration_id == integration.id,
            Campaign.external_id == record.external_id,
        )
        campaign = self.db.execute(stmt).scalar_one_or_none()

        outcome: Literal["created", "updated"] = "updated"
        if campaign is None:
            campaign = Campaign(
                integration_id=integration.id,
                company_id=integration.company_id,
                user_id=integration.user_id,
                platform=integration.platform,
                external_id=record.external_id,
            )
            self.db.add(campaign)
            outcome = "created"

        for field in _METRIC_FIELDS:
            setattr(campaign, field, getattr(record, field))

        self.db.flush()
        return outcome

    def list_for_company(
        self, company_id: str, platform: str | None = None, limit: int = 200
    ) -> list[Campaign]:
        stmt = select(Campaign).where(Campaign.company_id == company_id)
        if platform:
            stmt = stmt.where(Campaign.platform == platform)
        stmt = stmt.order_by(Campaign.spend.desc(), Campaign.name.asc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())
