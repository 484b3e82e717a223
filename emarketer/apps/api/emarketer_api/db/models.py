"""SQLAlchemy ORM Models for eMarketer."""

import uuid
from datetime import date, datetime, timezone
from typing import Optional

from sqlalchemy import (
    DATE,
    FLOAT,
    INTEGER,
    JSON,
    TEXT,
    TIMESTAMP,
    Boolean,
    CheckConstraint,
    Index,
    UniqueConstraint,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_id() -> str:
    """Generate an opaque primary key."""
    return str(uuid.uuid4())


class Base(DeclarativeBase):
    """Base class for all ORM models."""

    pass


class Company(Base):
    """Company model - the tenant boundary for all marketing data."""

    __tablename__ = "companies"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    domain: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )


class Membership(Base):
    """Membership model - grants a Supabase user a role within a company."""

    __tablename__ = "memberships"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(TEXT, nullable=False)  # Supabase auth.users
    company_id: Mapped[str] = mapped_column(TEXT, nullable=False)  # FK to companies

    # owner | manager | analyst
    role: Mapped[str] = mapped_column(TEXT, nullable=False, default="analyst")

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("user_id", "company_id", name="uq_memberships_user_company"),
        Index("idx_memberships_user_created", "user_id", "created_at"),
        Index("idx_memberships_company", "company_id"),
    )


class Integration(Base):
    """Integration model - OAuth credentials for one ad platform account.

    Owned by a company (team integration) or a single user (personal
    integration). Soft-disabled through is_active, never deleted by the API.
    """

    __tablename__ = "integrations"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    user_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    company_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    # meta | google-ads | ga4
    platform: Mapped[str] = mapped_column(TEXT, nullable=False)
    account_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    account_name: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    access_token: Mapped[str] = mapped_column(TEXT, nullable=False)
    refresh_token: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    last_sync_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "company_id", "platform", "account_id", name="uq_integrations_company_platform_account"
        ),
        UniqueConstraint(
            "user_id", "platform", "account_id", name="uq_integrations_user_platform_account"
        ),
        CheckConstraint(
            "user_id IS NOT NULL OR company_id IS NOT NULL", name="ck_integrations_owner"
        ),
        Index("idx_integrations_active_platform", "is_active", "platform"),
    )

    @property
    def lease_scope(self) -> str:
        """Scope used for the sync lease (one run per tenant at a time)."""
        if self.company_id:
            return f"company:{self.company_id}"
        return f"user:{self.user_id}"


class SyncLog(Base):
    """SyncLog model - append-only audit record of one sync attempt.

    Status: PENDING -> IN_PROGRESS -> SUCCESS | PARTIAL_SUCCESS | FAILED | CANCELLED.
    Terminal rows are never updated.
    """

    __tablename__ = "sync_logs"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    integration_id: Mapped[str] = mapped_column(TEXT, nullable=False)  # FK to integrations
    company_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    platform: Mapped[str] = mapped_column(TEXT, nullable=False)

    sync_type: Mapped[str] = mapped_column(TEXT, nullable=False, default="CAMPAIGNS")
    # schedule | cron | manual
    triggered_by: Mapped[str] = mapped_column(TEXT, nullable=False)

    status: Mapped[str] = mapped_column(TEXT, nullable=False, default="PENDING")

    records_processed: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    records_created: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    records_updated: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    records_failed: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)

    # SyncErrorDetail: {"kind", "message", "platform"?, "status_code"?}
    error: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)

    started_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    completed_at: Mapped[Optional[datetime]] = mapped_column(
        TIMESTAMP(timezone=True), nullable=True
    )
    duration_ms: Mapped[Optional[int]] = mapped_column(INTEGER, nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        Index("idx_sync_logs_company_created", "company_id", "created_at"),
        Index("idx_sync_logs_integration_created", "integration_id", "created_at"),
        Index("idx_sync_logs_status", "status"),
    )


class Campaign(Base):
    """Campaign model - normalized per-campaign metrics written by sync."""

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    integration_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    company_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    platform: Mapped[str] = mapped_column(TEXT, nullable=False)

    external_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    name: Mapped[str] = mapped_column(TEXT, nullable=False)
    status: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    spend: Mapped[float] = mapped_column(FLOAT, nullable=False, default=0.0)
    impressions: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    clicks: Mapped[int] = mapped_column(INTEGER, nullable=False, default=0)
    conversions: Mapped[float] = mapped_column(FLOAT, nullable=False, default=0.0)
    revenue: Mapped[float] = mapped_column(FLOAT, nullable=False, default=0.0)
    ctr: Mapped[float] = mapped_column(FLOAT, nullable=False, default=0.0)
    cpc: Mapped[float] = mapped_column(FLOAT, nullable=False, default=0.0)
    roas: Mapped[float] = mapped_column(FLOAT, nullable=False, default=0.0)
    metrics_date: Mapped[date] = mapped_column(DATE, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint("integration_id", "external_id", name="uq_campaigns_integration_external"),
        Index("idx_campaigns_company_platform", "company_id", "platform"),
    )


class ChatMessage(Base):
    """ChatMessage model - AI assistant conversation history."""

    __tablename__ = "chat_messages"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(TEXT, nullable=False)
    company_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    # user | assistant
    role: Mapped[str] = mapped_column(TEXT, nullable=False)
    content: Mapped[str] = mapped_column(TEXT, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (Index("idx_chat_messages_user_created", "user_id", "created_at"),)


class Alert(Base):
    """Alert model - notifications raised for a company or user.

    Created by services (failed syncs); the only user mutation is is_read.
    """

    __tablename__ = "alerts"

    id: Mapped[str] = mapped_column(TEXT, primary_key=True, default=new_id)
    company_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)
    user_id: Mapped[Optional[str]] = mapped_column(TEXT, nullable=True)

    # sync_failed | ...
    type: Mapped[str] = mapped_column(TEXT, nullable=False)
    # low | medium | high | critical
    severity: Mapped[str] = mapped_column(TEXT, nullable=False, default="medium")
    message: Mapped[str] = mapped_column(TEXT, nullable=False)
    details: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    is_read: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(
        TIMESTAMP(timezone=True), nullable=False, default=_utcnow
    )

    __table_args__ = (
        CheckConstraint(
            "severity IN ('low', 'medium', 'high', 'critical')", name="ck_alerts_severity"
        ),
        CheckConstraint("user_id IS NOT NULL OR company_id IS NOT NULL", name="ck_alerts_owner"),
        Index("idx_alerts_company_created", "company_id", "created_at"),
    )
