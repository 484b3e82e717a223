"""Repository for SyncLog rows.

Status changes go through ``transition`` only: a single UPDATE guarded by
``WHERE status = :expected`` so concurrent writers (orchestrator, cancel
endpoint) cannot both win, and terminal rows can never be rewritten.
"""

from typing import Any, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from emarketer_api.db.models import Integration, SyncLog
from emarketer_api.sync.status import InvalidTransition, SyncStatus, can_transition


class SyncLogRepository:
    """Repository for SyncLog operations."""

    def __init__(self, db: Session):
        self.db = db

    def create_pending(self, integration: Integration, triggered_by: str) -> SyncLog:
        """Insert the PENDING row that opens a sync attempt."""
        sync_log = SyncLog(
            integration_id=integration.id,
            company_id=integration.company_id,
            user_id=integration.user_id,
            platform=integration.platform,
            sync_type="CAMPAIGNS",
            triggered_by=triggered_by,
            status=SyncStatus.PENDING.value,
        )
        self.db.add(sync_log)
        self.db.commit()
        self.db.refresh(sync_log)
        return sync_log

    def get(self, sync_log_id: str) -> Optional[SyncLog]:
        """Get a fresh copy of the row (bypasses the identity map cache)."""
        return self.db.get(SyncLog, sync_log_id, populate_existing=True)

    def get_for_company(self, sync_log_id: str, company_id: str) -> Optional[SyncLog]:
        stmt = (
            select(SyncLog)
            .where(SyncLog.id == sync_log_id, SyncLog.company_id == company_id)
            .execution_options(populate_existing=True)
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def list_for_company(self, company_id: str, limit: int = 50) -> list[SyncLog]:
        stmt = (
            select(SyncLog)
            .where(SyncLog.company_id == company_id)
            .order_by(SyncLog.created_at.desc())
            .limit(limit)
        )
        return list(self.db.execute(stmt).scalars().all())

    def current_status(self, sync_log_id: str) -> Optional[str]:
        stmt = select(SyncLog.status).where(SyncLog.id == sync_log_id)
        return self.db.execute(stmt).scalar_one_or_none()

    def transition(
        self,
        sync_log_id: str,
        expected: SyncStatus,
        target: SyncStatus,
        updates: Optional[dict[str, Any]] = None,
    ) -> bool:
        """Compare-and-set the status of a sync log.

        Args:
            sync_log_id: Row to update
            expected: Status the row must currently have
            target: New status
            updates: Extra columns written in the same UPDATE

        Returns:
            True if this call won the transition, False if the row was no
            longer in ``expected`` (another writer got there first)

        Raises:
            InvalidTransition: If ``expected -> target`` is not a legal edge
        """
        if not can_transition(expected.value, target.value):
            raise InvalidTransition(f"{expected.value} -> {target.value} is not allowed")

        values: dict[str, Any] = {"status": target.value}
        if updates:
            values.update(updates)

        stmt = (
            update(SyncLog)
            .where(SyncLog.id == sync_log_id, SyncLog.status == expected.value)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        result = self.db.execute(stmt)
        self.db.commit()
        return result.rowcount == 1

    def record_progress(self, sync_log_id: str, counts: dict[str, int]) -> bool:
        """Write running record counters onto an IN_PROGRESS row.

        Does not commit: the caller commits it together with the record it
        counts, so the counters always match what was written.

        Returns:
            False once the row has left IN_PROGRESS (cancelled)
        """
        stmt = (
            update(SyncLog)
            .where(SyncLog.id == sync_log_id, SyncLog.status == SyncStatus.IN_PROGRESS.value)
            .values(**counts)
            .execution_options(synchronize_session=False)
        )
        return self.db.execute(stmt).rowcount == 1

    def cancel(self, sync_log_id: str, error: dict[str, Any], completed_at: Any) -> bool:
        """Cancel a PENDING or IN_PROGRESS run.

        Returns:
            True if the row was cancelled, False if it was already terminal
        """
        updates = {"error": error, "completed_at": completed_at}
        for expected in (SyncStatus.PENDING, SyncStatus.IN_PROGRESS):
            if self.transition(sync_log_id, expected, SyncStatus.CANCELLED, updates):
                return True
        return False
