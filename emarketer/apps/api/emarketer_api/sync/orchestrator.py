"""Integration sync orchestrator.

One run per integration:

1. insert SyncLog PENDING
2. acquire the scope lease (company:<id> or user:<id>); if another run holds
   it the row goes PENDING -> CANCELLED (lease_conflict)
3. PENDING -> IN_PROGRESS
4. stream records from the platform client and upsert each one, counting
   created / updated / failed; each record commits together with the running
   counters on the IN_PROGRESS row, and that same write detects a cancel
5. IN_PROGRESS -> SUCCESS | PARTIAL_SUCCESS | FAILED
6. release the lease, stamp integration.last_sync_at on successful runs,
   raise an alert on FAILED runs

The terminal write sits in a ``finally`` block: whatever happens inside the
run, the row never stays PENDING or IN_PROGRESS, and the lease is released
even if that write fails.
"""

import logging
import time
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import Callable, Optional

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from emarketer_api.config.env import get_sync_http_timeout_seconds, get_sync_lease_ttl_seconds
from emarketer_api.context import sync_log_id_var
from emarketer_api.db.models import Integration, SyncLog
from emarketer_api.db.repo_alerts import AlertRepository
from emarketer_api.db.repo_campaigns import CampaignRepository
from emarketer_api.db.repo_integrations import IntegrationRepository
from emarketer_api.db.repo_sync_logs import SyncLogRepository
from emarketer_api.errors import UpstreamFailure
from emarketer_api.observability.events import log_sync_batch_completed, log_sync_completed
from emarketer_api.schemas import SyncBatchSummary, SyncErrorDetail, SyncRunDetail
from emarketer_api.sync.lease import SyncLease, get_sync_lease
from emarketer_api.sync.platforms import PlatformClient, RecordFailure, get_platform_client
from emarketer_api.sync.status import SyncStatus, resolve_terminal_status

logger = logging.getLogger(__name__)

# Platforms covered by the scheduled batch; GA4 is synced on demand only
SCHEDULED_PLATFORMS = ("meta", "google-ads")

ClientFactory = Callable[..., PlatformClient]


@dataclass
class RunCounters:
    processed: int = 0
    created: int = 0
    updated: int = 0
    failed: int = 0

    @property
    def succeeded(self) -> int:
        return self.created + self.updated

    def record(self, outcome: str) -> None:
        """Count one record: created | updated | failed."""
        self.processed += 1
        if outcome == "created":
            self.created += 1
        elif outcome == "updated":
            self.updated += 1
        else:
            self.failed += 1

    def after(self, outcome: str) -> "RunCounters":
        """Copy with ``outcome`` counted, leaving this instance untouched."""
        counted = replace(self)
        counted.record(outcome)
        return counted

    def as_columns(self) -> dict[str, int]:
        return {
            "records_processed": self.processed,
            "records_created": self.created,
            "records_updated": self.updated,
            "records_failed": self.failed,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class SyncOrchestrator:
    """Runs integration syncs against one database session.

    Args:
        db: Session used for SyncLog, Campaign and Integration writes
        lease: Scope lease (defaults to the process-wide lease)
        http: httpx client for platform calls (created and owned if None)
        client_factory: Builds the platform client for an integration
        lease_ttl_seconds: Lease lifetime (SYNC_LEASE_TTL_SECONDS)
    """

    def __init__(
        self,
        db: Session,
        lease: Optional[SyncLease] = None,
        http: Optional[httpx.Client] = None,
        client_factory: ClientFactory = get_platform_client,
        lease_ttl_seconds: Optional[int] = None,
    ):
        self.db = db
        self.lease = lease if lease is not None else get_sync_lease()
        self._owns_http = http is None
        self.http = http or httpx.Client(timeout=get_sync_http_timeout_seconds())
        self.client_factory = client_factory
        self.lease_ttl_seconds = lease_ttl_seconds or get_sync_lease_ttl_seconds()

        self.sync_logs = SyncLogRepository(db)
        self.integrations = IntegrationRepository(db)
        self.campaigns = CampaignRepository(db)

    def close(self) -> None:
        if self._owns_http:
            self.http.close()

    def __enter__(self) -> "SyncOrchestrator":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Single integration
    # ------------------------------------------------------------------

    def run_integration(self, integration: Integration, triggered_by: str) -> SyncLog:
        """Run one sync attempt and return its (terminal) SyncLog."""
        sync_log = self.sync_logs.create_pending(integration, triggered_by)
        ctx_token = sync_log_id_var.set(sync_log.id)

        started = time.perf_counter()
        counters = RunCounters()
        expected = SyncStatus.PENDING
        status: Optional[SyncStatus] = None
        error: Optional[SyncErrorDetail] = None
        already_terminal = False
        lease_token: Optional[str] = None
        scope = integration.lease_scope

        logger.info(
            "Sync run started",
            extra={
                "event": "sync.started",
                "integration_id": integration.id,
                "platform": integration.platform,
                "triggered_by": triggered_by,
            },
        )

        try:
            lease_token = self.lease.acquire(scope, self.lease_ttl_seconds)
            if lease_token is None:
                status = SyncStatus.CANCELLED
                error = SyncErrorDetail(
                    kind="lease_conflict",
                    message=f"Another sync is running for {scope}",
                    platform=integration.platform,
                )
            elif not self.sync_logs.transition(
                sync_log.id,
                SyncStatus.PENDING,
                SyncStatus.IN_PROGRESS,
                {"started_at": _utcnow()},
            ):
                # Cancelled while still pending
                already_terminal = True
            else:
                expected = SyncStatus.IN_PROGRESS
                if self._ingest(sync_log.id, integration, counters):
                    already_terminal = True
                else:
                    status = resolve_terminal_status(counters.succeeded, counters.failed)

        except UpstreamFailure as e:
            self.db.rollback()
            status = SyncStatus.FAILED
            error = SyncErrorDetail(
                kind="upstream",
                message=e.message,
                platform=e.platform or integration.platform,
                status_code=e.upstream_status,
            )
        except Exception as e:
            self.db.rollback()
            logger.error(
                "Sync run crashed",
                extra={"event": "sync.crashed", "integration_id": integration.id},
                exc_info=True,
            )
            status = SyncStatus.FAILED
            error = SyncErrorDetail(
                kind="unexpected",
                message=f"Unexpected error: {type(e).__name__}",
                platform=integration.platform,
            )

        finally:
            try:
                if not already_terminal:
                    if status is None:
                        # Interrupted by a BaseException (shutdown)
                        status = SyncStatus.FAILED
                        error = SyncErrorDetail(
                            kind="unexpected", message="Sync interrupted", platform=integration.platform
                        )
                    self._write_terminal(sync_log.id, expected, status, error, counters, started)
            finally:
                try:
                    if lease_token is not None:
                        self.lease.release(scope, lease_token)
                finally:
                    sync_log_id_var.reset(ctx_token)

        final = self.sync_logs.get(sync_log.id)
        if final.status in (SyncStatus.SUCCESS.value, SyncStatus.PARTIAL_SUCCESS.value):
            self.integrations.mark_synced(integration, final.completed_at)
        elif final.status == SyncStatus.FAILED.value:
            self._raise_failure_alert(integration, final)

        log_sync_completed(
            sync_log_id=final.id,
            integration_id=integration.id,
            platform=integration.platform,
            status=final.status,
            records_processed=final.records_processed,
            records_failed=final.records_failed,
            duration_ms=final.duration_ms,
            error_kind=(final.error or {}).get("kind"),
        )
        return final

    def _ingest(self, sync_log_id: str, integration: Integration, counters: RunCounters) -> bool:
        """Upsert every record from the platform.

        Returns:
            True if the run was cancelled part-way
        """
        client = self.client_factory(
            integration.platform, self.http, on_token_refresh=self._persist_token
        )

        for item in client.fetch_campaigns(integration):
            outcome = self._upsert(integration, item)

            # Counters ride in the same transaction as the record they count
            counted = counters.after(outcome)
            if not self.sync_logs.record_progress(sync_log_id, counted.as_columns()):
                self.db.rollback()
                logger.info(
                    "Sync run cancelled",
                    extra={"event": "sync.cancelled", "records_processed": counters.processed},
                )
                return True

            self.db.commit()
            counters.record(outcome)

        return False

    def _upsert(self, integration: Integration, item) -> str:
        """Stage one record; returns created | updated | failed."""
        if isinstance(item, RecordFailure):
            logger.warning(
                "Campaign record rejected",
                extra={"event": "sync.record.rejected", "external_id": item.external_id, "reason": item.reason},
            )
            return "failed"

        try:
            return self.campaigns.upsert(integration, item)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.warning(
                "Campaign upsert failed",
                extra={
                    "event": "sync.record.failed",
                    "external_id": item.external_id,
                    "error_type": type(e).__name__,
                },
            )
            return "failed"

    def _raise_failure_alert(self, integration: Integration, sync_log: SyncLog) -> None:
        error = sync_log.error or {}
        try:
            AlertRepository(self.db).create_alert(
                message=f"{integration.platform} sync failed: {error.get('message', 'unknown error')}",
                type="sync_failed",
                severity="high",
                details={
                    "sync_log_id": sync_log.id,
                    "integration_id": integration.id,
                    "platform": integration.platform,
                    "error_kind": error.get("kind"),
                },
                company_id=integration.company_id,
                user_id=None if integration.company_id else integration.user_id,
            )
        except SQLAlchemyError:
            # The run is already recorded
            self.db.rollback()
            logger.error(
                "Failed to record sync failure alert",
                extra={"event": "alert.create_failed", "sync_log": sync_log.id},
                exc_info=True,
            )

    def _persist_token(
        self, integration: Integration, access_token: str, expires_at: Optional[datetime]
    ) -> None:
        self.integrations.update_tokens(integration, access_token, expires_at)

    def _write_terminal(
        self,
        sync_log_id: str,
        expected: SyncStatus,
        status: SyncStatus,
        error: Optional[SyncErrorDetail],
        counters: RunCounters,
        started: float,
    ) -> None:
        updates = {
            **counters.as_columns(),
            "error": error.model_dump(exclude_none=True) if error else None,
            "completed_at": _utcnow(),
            "duration_ms": int((time.perf_counter() - started) * 1000),
        }
        if not self.sync_logs.transition(sync_log_id, expected, status, updates):
            # Lost the race to a cancel; the row is already terminal
            logger.info(
                "Terminal write skipped, sync log already final",
                extra={"event": "sync.terminal.skipped", "target_status": status.value},
            )

    # ------------------------------------------------------------------
    # Batch
    # ------------------------------------------------------------------

    def run_all(self, triggered_by: str) -> SyncBatchSummary:
        """Sync every active scheduled integration.

        One integration failing never aborts the batch.
        """
        integrations = self.integrations.list_active(SCHEDULED_PLATFORMS)
        summary = SyncBatchSummary(total=len(integrations))

        for integration in integrations:
            try:
                sync_log = self.run_integration(integration, triggered_by)
            except Exception as e:
                self.db.rollback()
                logger.error(
                    "Sync run could not be recorded",
                    extra={"event": "sync.record_failed", "integration_id": integration.id},
                    exc_info=True,
                )
                summary.failed += 1
                summary.details.append(
                    SyncRunDetail(
                        integration_id=integration.id,
                        platform=integration.platform,
                        status=SyncStatus.FAILED.value,
                        error=type(e).__name__,
                    )
                )
                continue

            if sync_log.status in (SyncStatus.SUCCESS.value, SyncStatus.PARTIAL_SUCCESS.value):
                summary.success += 1
            elif sync_log.status == SyncStatus.CANCELLED.value:
                summary.skipped += 1
            else:
                summary.failed += 1

            summary.details.append(
                SyncRunDetail(
                    integration_id=integration.id,
                    platform=integration.platform,
                    sync_log_id=sync_log.id,
                    status=sync_log.status,
                    records_processed=sync_log.records_processed,
                    error=(sync_log.error or {}).get("message"),
                )
            )

        log_sync_batch_completed(
            triggered_by=triggered_by,
            total=summary.total,
            success=summary.success,
            failed=summary.failed,
            skipped=summary.skipped,
        )
        return summary


def cancel_sync(db: Session, sync_log_id: str) -> bool:
    """Cancel a PENDING or IN_PROGRESS run.

    Returns:
        True if cancelled, False if the run had already finished
    """
    error = SyncErrorDetail(kind="cancelled", message="Cancelled by user")
    return SyncLogRepository(db).cancel(
        sync_log_id, error.model_dump(exclude_none=True), completed_at=_utcnow()
    )
