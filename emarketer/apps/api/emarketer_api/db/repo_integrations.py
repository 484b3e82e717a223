"""Repository for ad-platform integrations."""

from datetime import datetime, timezone
from typing import Iterable, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from emarketer_api.db.models import Integration


class IntegrationRepository:
    """Repository for Integration operations."""

    def __init__(self, db: Session):
        self.db = db

    def get(self, integration_id: str) -> Optional[Integration]:
        return self.db.get(Integration, integration_id)

    def get_for_company(self, integration_id: str, company_id: str) -> Optional[Integration]:
        """Get integration scoped to a company (None for other tenants' rows)."""
        stmt = select(Integration).where(
            Integration.id == integration_id,
            Integration.company_id == company_id,
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_company(self, company_id: str, include_inactive: bool = False) -> list[Integration]:
        stmt = select(Integration).where(Integration.company_id == company_id)
        if not include_inactive:
            stmt = stmt.where(Integration.is_active.is_(True))
        stmt = stmt.order_by(Integration.created_at.asc())
        return list(self.db.execute(stmt).scalars().all())

    def list_active(self, platforms: Iterable[str]) -> list[Integration]:
        """Active integrations on the given platforms, oldest first."""
        stmt = (
            select(Integration)
            .where(
                Integration.is_active.is_(True),
                Integration.platform.in_(list(platforms)),
            )
            .order_by(Integration.created_at.asc())
        )
        return list(self.db.execute(stmt).scalars().all())

    def upsert_for_company(
        self,
        company_id: str,
        platform: str,
        account_id: str,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        account_name: Optional[str] = None,
    ) -> tuple[Integration, bool]:
        """Connect (or re-authorize) a company integration.

        Re-connecting an existing (company, platform, account) replaces the
        tokens and re-activates the row.

        Returns:
            (integration, created)
        """
        stmt = select(Integration).where(
            Integration.company_id == company_id,
            Integration.platform == platform,
            Integration.account_id == account_id,
        )
        integration = self.db.execute(stmt).scalar_one_or_none()
        created = integration is None

        if integration is None:
            integration = Integration(
                company_id=company_id,
                platform=platform,
                account_id=account_id,
            )
            self.db.add(integration)

        integration.access_token = access_token
        integration.refresh_token = refresh_token
        integration.expires_at = expires_at
        if account_name is not None:
            integration.account_name = account_name
        integration.is_active = True

        self.db.commit()
        self.db.refresh(integration)
        return integration, created

    def deactivate(self, integration: Integration) -> Integration:
        integration.is_active = False
        self.db.commit()
        self.db.refresh(integration)
        return integration

    def update_tokens(
        self, integration: Integration, access_token: str, expires_at: Optional[datetime]
    ) -> None:
        """Persist a refreshed access token."""
        integration.access_token = access_token
        integration.expires_at = expires_at
        self.db.commit()

    def mark_synced(self, integration: Integration, at: Optional[datetime] = None) -> None:
        integration.last_sync_at = at or datetime.now(timezone.utc)
        self.db.commit()
