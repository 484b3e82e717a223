"""Google Ads client: REST v16.

Refreshes the OAuth token when expired, lists accessible customers, runs a
GAQL search per customer over LAST_30_DAYS and aggregates the daily rows per
campaign.
"""

import os
from typing import Any, Iterator

from emarketer_api.db.models import Integration
from emarketer_api.schemas import CampaignRecord
from emarketer_api.sync.platforms.base import (
    PlatformClient,
    SyncItem,
    derived_metrics,
    safe_float,
    safe_int,
)

GOOGLE_ADS_API_BASE = "https://googleads.googleapis.com/v16"

CAMPAIGN_QUERY = """
    SELECT
      campaign.id,
      campaign.name,
      campaign.status,
      metrics.impressions,
      metrics.clicks,
      metrics.cost_micros,
      metrics.conversions,
      metrics.conversions_value,
      metrics.ctr,
      metrics.average_cpc
    FROM campaign
    WHERE segments.date DURING LAST_30_DAYS
"""


def aggregate_campaign_rows(results: list[dict[str, Any]]) -> dict[str, dict[str, Any]]:
    """Sum per-day GAQL rows into one bucket per campaign id."""
    campaigns: dict[str, dict[str, Any]] = {}
    for row in results:
        campaign = row.get("campaign", {})
        metrics = row.get("metrics", {})
        campaign_id = str(campaign.get("id", ""))
        if not campaign_id:
            continue

        bucket = campaigns.setdefault(
            campaign_id,
            {
                "name": campaign.get("name", ""),
                "status": campaign.get("status"),
                "impressions": 0,
                "clicks": 0,
                "cost": 0.0,
                "conversions": 0.0,
                "conversion_value": 0.0,
            },
        )
        bucket["impressions"] += safe_int(metrics.get("impressions"))
        bucket["clicks"] += safe_int(metrics.get("clicks"))
        bucket["cost"] += safe_int(metrics.get("costMicros")) / 1_000_000
        bucket["conversions"] += safe_float(metrics.get("conversions"))
        bucket["conversion_value"] += safe_float(metrics.get("conversionsValue"))
    return campaigns


class GoogleAdsClient(PlatformClient):
    platform = "google-ads"

    def _headers(self, access_token: str) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "developer-token": os.getenv("GOOGLE_ADS_DEVELOPER_TOKEN", ""),
            "Content-Type": "application/json",
        }

    def fetch_campaigns(self, integration: Integration) -> Iterator[SyncItem]:
        access_token = self._refresh_google_token(
            integration, "GOOGLE_ADS_CLIENT_ID", "GOOGLE_ADS_CLIENT_SECRET"
        )
        headers = self._headers(access_token)

        accounts = self._require_ok(
            self._get(f"{GOOGLE_ADS_API_BASE}/customers:listAccessibleCustomers", headers=headers),
            "Google Ads accounts",
        )
        customer_ids = [rn.replace("customers/", "") for rn in accounts.get("resourceNames", [])]

        for customer_id in customer_ids:
            response = self._post(
                f"{GOOGLE_ADS_API_BASE}/customers/{customer_id}/googleAds:search",
                headers=headers,
                json={"query": CAMPAIGN_QUERY},
            )
            page = self._json_body(response)
            if page is None:
                continue

            buckets = aggregate_campaign_rows(page.get("results", []))
            for campaign_id, bucket in buckets.items():
                spend = bucket["cost"]
                revenue = bucket["conversion_value"]
                yield CampaignRecord(
                    external_id=campaign_id,
                    name=bucket["name"],
                    status=bucket["status"],
                    spend=spend,
                    impressions=bucket["impressions"],
                    clicks=bucket["clicks"],
                    conversions=bucket["conversions"],
                    revenue=revenue,
                    metrics_date=self.today(),
                    **derived_metrics(spend, bucket["impressions"], bucket["clicks"], revenue),
                )
