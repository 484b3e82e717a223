"""Meta (Facebook) Ads client: Graph API v18.0.

ad accounts -> campaigns -> last-30-day insights. A campaign whose nested
calls fail is skipped, not failed; only the account listing is fatal.
"""

import os
from typing import Any, Iterator

from emarketer_api.db.models import Integration
from emarketer_api.schemas import CampaignRecord
from emarketer_api.sync.platforms.base import (
    PlatformClient,
    RecordFailure,
    SyncItem,
    safe_float,
    safe_int,
)

GRAPH_API_BASE = "https://graph.facebook.com/v18.0"

PURCHASE_ACTIONS = frozenset({"purchase", "offsite_conversion.fb_pixel_purchase"})

CAMPAIGN_FIELDS = "id,name,status,objective,daily_budget,lifetime_budget,created_time,updated_time"
INSIGHT_FIELDS = "spend,impressions,clicks,ctr,cpc,reach,frequency,actions"


def get_conversion_value() -> float:
    """Revenue attributed to one purchase conversion (META_CONVERSION_VALUE, default 50)."""
    return safe_float(os.getenv("META_CONVERSION_VALUE", "50")) or 50.0


def purchase_conversions(actions: list[dict[str, Any]]) -> float:
    for action in actions or []:
        if action.get("action_type") in PURCHASE_ACTIONS:
            return safe_float(action.get("value"))
    return 0.0


class MetaAdsClient(PlatformClient):
    platform = "meta"

    def fetch_campaigns(self, integration: Integration) -> Iterator[SyncItem]:
        token = integration.access_token
        accounts = self._require_ok(
            self._get(f"{GRAPH_API_BASE}/me/adaccounts", params={"access_token": token}),
            "Meta ad accounts",
        )
        conversion_value = get_conversion_value()

        for account in accounts.get("data", []):
            response = self._get(
                f"{GRAPH_API_BASE}/{account['id']}/campaigns",
                params={"fields": CAMPAIGN_FIELDS, "access_token": token},
            )
            page = self._json_body(response)
            if page is None:
                continue

            for campaign in page.get("data", []):
                item = self._campaign_record(campaign, token, conversion_value)
                if item is not None:
                    yield item

    def _campaign_record(
        self, campaign: dict[str, Any], token: str, conversion_value: float
    ) -> SyncItem | None:
        campaign_id = str(campaign.get("id", ""))
        if not campaign_id or not campaign.get("name"):
            return RecordFailure(external_id=campaign_id or "unknown", reason="missing id or name")

        response = self._get(
            f"{GRAPH_API_BASE}/{campaign_id}/insights",
            params={"fields": INSIGHT_FIELDS, "date_preset": "last_30d", "access_token": token},
        )
        body = self._json_body(response)
        if body is None:
            return None

        rows = body.get("data") or [{}]
        insights = rows[0]

        conversions = purchase_conversions(insights.get("actions", []))
        revenue = conversions * conversion_value
        spend = safe_float(insights.get("spend"))

        return CampaignRecord(
            external_id=campaign_id,
            name=campaign["name"],
            status=campaign.get("status"),
            spend=spend,
            impressions=safe_int(insights.get("impressions")),
            clicks=safe_int(insights.get("clicks")),
            conversions=conversions,
            revenue=revenue,
            ctr=safe_float(insights.get("ctr")),
            cpc=safe_float(insights.get("cpc")),
            roas=revenue / spend if spend > 0 else 0.0,
            metrics_date=self.today(),
        )
