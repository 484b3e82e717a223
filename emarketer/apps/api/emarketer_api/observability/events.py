"""Structured log events for security and sync observability.

Usage:
    from emarketer_api.observability.events import log_rate_limit_exceeded

    log_rate_limit_exceeded(policy="chat", key="203.0.113.7", path="/api/chat", retry_after_seconds=42)

Security:
- Rate-limit keys (client IPs) are hashed, never logged raw
- Tokens and secrets never reach these helpers
"""

import hashlib
import logging
from typing import Optional

logger = logging.getLogger(__name__)


def hash_key(key: str) -> str:
    """Hash a rate-limit key for logging.

    Returns:
        SHA256 hash (first 16 chars)
    """
    if not key:
        return "unknown"
    return hashlib.sha256(key.encode()).hexdigest()[:16]


# ============================================================================
# Security events
# ============================================================================


def log_rate_limit_exceeded(
    policy: str,
    key: str,
    path: Optional[str] = None,
    retry_after_seconds: Optional[int] = None,
) -> None:
    """Log a denied rate-limit check (429)."""
    logger.warning(
        "rate_limit.exceeded",
        extra={
            "event": "rate_limit.exceeded",
            "policy": policy,
            "key_hash": hash_key(key),
            "path": path,
            "retry_after_seconds": retry_after_seconds,
        },
    )


def log_access_denied(user_id: str, company_id: str, reason: str) -> None:
    """Log a denied company access (missing membership or insufficient role).

    Args:
        user_id: Caller
        company_id: Target company (may not exist)
        reason: "no_membership" or "insufficient_role:<required>"
    """
    logger.warning(
        "access.denied",
        extra={
            "event": "access.denied",
            "target_user_id": user_id,
            "target_company_id": company_id,
            "reason": reason,
        },
    )


def log_cron_unauthorized(path: str) -> None:
    """Log a sync trigger call with a missing or wrong secret."""
    logger.warning("cron.unauthorized", extra={"event": "cron.unauthorized", "path": path})


# ============================================================================
# Sync events
# ============================================================================


def log_sync_completed(
    sync_log_id: str,
    integration_id: str,
    platform: str,
    status: str,
    records_processed: int,
    records_failed: int,
    duration_ms: Optional[int],
    error_kind: Optional[str] = None,
) -> None:
    """Log the terminal state of one sync run."""
    level = logging.INFO if status in ("SUCCESS", "PARTIAL_SUCCESS") else logging.WARNING
    logger.log(
        level,
        "sync.completed",
        extra={
            "event": "sync.completed",
            "sync_log": sync_log_id,
            "integration_id": integration_id,
            "platform": platform,
            "status": status,
            "records_processed": records_processed,
            "records_failed": records_failed,
            "duration_ms": duration_ms,
            "error_kind": error_kind,
        },
    )


def log_sync_batch_completed(
    triggered_by: str, total: int, success: int, failed: int, skipped: int
) -> None:
    """Log the summary of a run_all batch."""
    logger.info(
        "sync.batch.completed",
        extra={
            "event": "sync.batch.completed",
            "triggered_by": triggered_by,
            "total": total,
            "success": success,
            "failed": failed,
            "skipped": skipped,
        },
    )
