"""Common pieces for ad-platform clients.

A client turns one Integration into a stream of normalized CampaignRecords.
It never touches the database; refreshed OAuth tokens are handed back
through ``on_token_refresh`` and persisted by the orchestrator.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Iterator, Optional, Union

import httpx

from emarketer_api.db.models import Integration
from emarketer_api.errors import UpstreamFailure
from emarketer_api.schemas import CampaignRecord

logger = logging.getLogger(__name__)

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"

TokenRefreshCallback = Callable[[Integration, str, Optional[datetime]], None]


@dataclass(frozen=True)
class RecordFailure:
    """A campaign the platform returned but that could not be normalized."""

    external_id: str
    reason: str


SyncItem = Union[CampaignRecord, RecordFailure]


def safe_float(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def safe_int(value: Any) -> int:
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return 0


def derived_metrics(spend: float, impressions: int, clicks: int, revenue: float) -> dict[str, float]:
    """ctr (percent), cpc and roas; zero when the denominator is zero."""
    return {
        "ctr": (clicks / impressions) * 100 if impressions > 0 else 0.0,
        "cpc": spend / clicks if clicks > 0 else 0.0,
        "roas": revenue / spend if spend > 0 else 0.0,
    }


def token_expired(integration: Integration, now: Optional[datetime] = None) -> bool:
    if integration.expires_at is None:
        return False
    expires_at = integration.expires_at
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return (now or datetime.now(timezone.utc)) > expires_at


class PlatformClient(ABC):
    """Fetch campaigns for one integration.

    Args:
        http: Shared httpx client (timeout configured by the caller)
        on_token_refresh: Called with the new token when one is refreshed
        today: Date stamped on produced records (injectable for tests)
    """

    platform: str = ""

    def __init__(
        self,
        http: httpx.Client,
        on_token_refresh: Optional[TokenRefreshCallback] = None,
        today: Optional[Callable[[], date]] = None,
    ):
        self.http = http
        self.on_token_refresh = on_token_refresh
        self.today = today or (lambda: datetime.now(timezone.utc).date())

    @abstractmethod
    def fetch_campaigns(self, integration: Integration) -> Iterator[SyncItem]:
        """Yield one item per campaign.

        Raises:
            UpstreamFailure: If the platform rejects the top-level request
        """

    def _get(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http.get(url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFailure(
                f"{self.platform} request failed: {type(e).__name__}", platform=self.platform
            ) from e

    def _post(self, url: str, **kwargs: Any) -> httpx.Response:
        try:
            return self.http.post(url, **kwargs)
        except httpx.HTTPError as e:
            raise UpstreamFailure(
                f"{self.platform} request failed: {type(e).__name__}", platform=self.platform
            ) from e

    def _require_ok(self, response: httpx.Response, what: str) -> dict[str, Any]:
        """Decode a top-level response or raise UpstreamFailure."""
        if response.status_code >= 400:
            raise UpstreamFailure(
                f"Failed to fetch {what}",
                platform=self.platform,
                upstream_status=response.status_code,
            )
        body = self._json_body(response)
        if body is None:
            raise UpstreamFailure(
                f"Invalid JSON from {self.platform} ({what})",
                platform=self.platform,
                upstream_status=response.status_code,
            )
        return body

    @staticmethod
    def _json_body(response: httpx.Response) -> Optional[dict[str, Any]]:
        """JSON object body of a 2xx response; None for errors or non-object bodies."""
        if response.status_code >= 400:
            return None
        try:
            body = response.json()
        except ValueError:
            return None
        return body if isinstance(body, dict) else None

    def _refresh_google_token(
        self, integration: Integration, client_id_env: str, client_secret_env: str
    ) -> str:
        """Return a usable access token, refreshing it when expired.

        A failed refresh keeps the stored token; the next call reports the
        upstream failure.
        """
        if not integration.refresh_token or not token_expired(integration):
            return integration.access_token

        response = self._post(
            GOOGLE_TOKEN_URL,
            data={
                "client_id": os.getenv(client_id_env, ""),
                "client_secret": os.getenv(client_secret_env, ""),
                "refresh_token": integration.refresh_token,
                "grant_type": "refresh_token",
            },
        )
        payload = self._json_body(response)
        if payload is None or not payload.get("access_token"):
            logger.warning(
                "OAuth token refresh failed",
                extra={
                    "event": "sync.token.refresh_failed",
                    "platform": self.platform,
                    "integration_id": integration.id,
                    "upstream_status": response.status_code,
                },
            )
            return integration.access_token

        access_token = payload["access_token"]
        expires_in = payload.get("expires_in")
        expires_at = (
            datetime.now(timezone.utc) + timedelta(seconds=int(expires_in)) if expires_in else None
        )
        if self.on_token_refresh is not None:
            self.on_token_refresh(integration, access_token, expires_at)

        logger.info(
            "OAuth token refreshed",
            extra={
                "event": "sync.token.refreshed",
                "platform": self.platform,
                "integration_id": integration.id,
            },
        )
        return access_token
