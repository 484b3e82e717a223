"""Pydantic schemas for API requests/responses."""

from datetime import date, datetime
from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

Platform = Literal["meta", "google-ads", "ga4"]
RoleName = Literal["owner", "manager", "analyst"]

_EMAIL_PATTERN = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"


class CamelModel(BaseModel):
    """Response model serialized with camelCase keys (dashboard contract)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# ============================================================================
# Error envelope
# ============================================================================


class ErrorEnvelope(BaseModel):
    """Body of every non-2xx response."""

    error: str = Field(..., description="Short, user-safe message")
    code: Optional[str] = Field(None, description="Stable machine-readable error code")
    request_id: Optional[str] = Field(None, description="Correlates with server logs")


class RateLimitedEnvelope(ErrorEnvelope):
    """429 body; retryAfter is in seconds."""

    retryAfter: int = Field(..., ge=0, description="Seconds until the window resets")


# ============================================================================
# Auth
# ============================================================================


class RegisterRequest(BaseModel):
    """Request body for POST /api/auth/register."""

    email: str = Field(..., description="User email address", pattern=_EMAIL_PATTERN)
    password: str = Field(..., description="User password (minimum 8 characters)", min_length=8)
    name: Optional[str] = Field(None, max_length=200, description="Display name")


class LoginRequest(BaseModel):
    """Request body for POST /api/auth/login."""

    email: str = Field(..., description="User email address", pattern=_EMAIL_PATTERN)
    password: str = Field(..., description="User password", min_length=1)


class AuthResponse(BaseModel):
    """Response for successful auth operations."""

    user_id: str = Field(..., description="Supabase user UUID")
    email: str
    company_id: Optional[str] = Field(None, description="Personal company created at registration")
    access_token: Optional[str] = Field(None, description="JWT access token (login only)")
    refresh_token: Optional[str] = Field(None, description="JWT refresh token (login only)")
    message: Optional[str] = None


# ============================================================================
# Companies / Members
# ============================================================================


class CompanyCreateRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=200)
    domain: Optional[str] = Field(None, max_length=253)


class CompanyResponse(CamelModel):
    id: str
    name: str
    domain: Optional[str] = None
    role: Optional[str] = Field(None, description="Caller's role in this company")
    created_at: datetime


class MemberInviteRequest(BaseModel):
    """Add an existing user to a company."""

    user_id: str = Field(..., min_length=1, alias="userId")
    role: RoleName = "analyst"

    model_config = ConfigDict(populate_by_name=True)


class MemberRoleUpdateRequest(BaseModel):
    role: RoleName


class MemberResponse(CamelModel):
    id: str
    user_id: str
    company_id: str
    role: str
    created_at: datetime


# ============================================================================
# Integrations
# ============================================================================


class IntegrationCreateRequest(BaseModel):
    """Store OAuth credentials obtained by the front-end consent flow."""

    platform: Platform
    account_id: str = Field(..., min_length=1, alias="accountId")
    account_name: Optional[str] = Field(None, alias="accountName")
    access_token: str = Field(..., min_length=1, alias="accessToken")
    refresh_token: Optional[str] = Field(None, alias="refreshToken")
    expires_at: Optional[datetime] = Field(None, alias="expiresAt")

    model_config = ConfigDict(populate_by_name=True)


class IntegrationResponse(CamelModel):
    """Integration as shown to the dashboard; tokens are never echoed."""

    id: str
    user_id: Optional[str] = None
    company_id: Optional[str] = None
    platform: str
    account_id: str
    account_name: Optional[str] = None
    is_active: bool
    last_sync_at: Optional[datetime] = None
    created_at: datetime


# ============================================================================
# Sync
# ============================================================================


class SyncErrorDetail(BaseModel):
    """Typed error payload stored on a SyncLog row."""

    kind: Literal["upstream", "unexpected", "lease_conflict", "cancelled"]
    message: str
    platform: Optional[str] = None
    status_code: Optional[int] = None


class CampaignRecord(BaseModel):
    """Normalized campaign metrics produced by a platform client."""

    external_id: str
    name: str
    status: Optional[str] = None
    spend: float = 0.0
    impressions: int = 0
    clicks: int = 0
    conversions: float = 0.0
    revenue: float = 0.0
    ctr: float = 0.0
    cpc: float = 0.0
    roas: float = 0.0
    metrics_date: date


class SyncLogResponse(CamelModel):
    id: str
    integration_id: str
    company_id: Optional[str] = None
    platform: str
    sync_type: str
    triggered_by: str
    status: str
    records_processed: int
    records_created: int
    records_updated: int
    records_failed: int
    error: Optional[SyncErrorDetail] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    duration_ms: Optional[int] = None
    created_at: datetime


class SyncRunDetail(BaseModel):
    """Per-integration outcome inside a batch run."""

    integration_id: str
    platform: str
    sync_log_id: Optional[str] = None
    status: str
    records_processed: int = 0
    error: Optional[str] = None


class SyncBatchSummary(BaseModel):
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    details: list[SyncRunDetail] = Field(default_factory=list)


class SyncAllResponse(BaseModel):
    """Response for POST /cron/sync-all."""

    success: bool
    message: str
    results: SyncBatchSummary


class CronRunResponse(BaseModel):
    """Response for POST /cron/run (delegating trigger)."""

    ok: bool
    data: Any = None


# ============================================================================
# Campaigns / Chat
# ============================================================================


class CampaignResponse(CamelModel):
    id: str
    integration_id: str
    platform: str
    external_id: str
    name: str
    status: Optional[str] = None
    spend: float
    impressions: int
    clicks: int
    conversions: float
    revenue: float
    ctr: float
    cpc: float
    roas: float
    metrics_date: date
    updated_at: datetime


class ChatRequest(BaseModel):
    """Request body for POST /api/chat."""

    message: str = Field(..., min_length=1, max_length=4000)
    company_id: Optional[str] = Field(None, alias="companyId")

    model_config = ConfigDict(populate_by_name=True)


class ChatResponse(CamelModel):
    reply: str
    message_id: str


# ============================================================================
# Alerts
# ============================================================================


class AlertResponse(CamelModel):
    id: str
    company_id: Optional[str] = None
    type: str
    severity: str
    message: str
    details: Optional[dict[str, Any]] = None
    is_read: bool
    created_at: datetime


class AlertUpdateRequest(BaseModel):
    """Request body for PATCH /api/companies/{company_id}/alerts/{alert_id}."""

    is_read: bool = Field(..., alias="isRead")

    model_config = ConfigDict(populate_by_name=True)
