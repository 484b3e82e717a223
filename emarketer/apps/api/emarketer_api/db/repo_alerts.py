"""Repository for alerts."""

from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.orm import Session

from emarketer_api.db.models import Alert

SEVERITIES = ("low", "medium", "high", "critical")


class AlertRepository:
    """Repository for Alert operations."""

    def __init__(self, db: Session):
        self.db = db

    def create_alert(
        self,
        message: str,
        type: str,
        severity: str = "medium",
        details: Optional[dict[str, Any]] = None,
        company_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Alert:
        """Raise an alert for a company (or a user when there is no company).

        Raises:
            ValueError: Unknown severity or no owner given
        """
        if severity not in SEVERITIES:
            raise ValueError(f"severity must be one of {SEVERITIES}, got '{severity}'")
        if company_id is None and user_id is None:
            raise ValueError("an alert needs a company_id or a user_id")

        alert = Alert(
            company_id=company_id,
            user_id=user_id,
            type=type,
            severity=severity,
            message=message,
            details=details,
        )
        self.db.add(alert)
        self.db.commit()
        self.db.refresh(alert)
        return alert

    def get_for_company(self, alert_id: str, company_id: str) -> Optional[Alert]:
        stmt = select(Alert).where(Alert.id == alert_id, Alert.company_id == company_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_company(
        self, company_id: str, limit: int = 50, unread_only: bool = False
    ) -> list[Alert]:
        stmt = select(Alert).where(Alert.company_id == company_id)
        if unread_only:
            stmt = stmt.where(Alert.is_read.is_(False))
        stmt = stmt.order_by(Alert.created_at.desc()).limit(limit)
        return list(self.db.execute(stmt).scalars().all())

    def set_read(self, alert: Alert, is_read: bool) -> Alert:
        alert.is_read = is_read
        self.db.commit()
        self.db.refresh(alert)
        return alert
