"""Google Analytics 4 client: Data API v1beta runReport.

Rows over the last 7 days are grouped by session campaign name:
sessions -> clicks, eventCount -> conversions, eventValue -> revenue.
GA4 has no spend, so cpc and roas stay zero.
"""

from typing import Any, Iterator

from emarketer_api.db.models import Integration
from emarketer_api.schemas import CampaignRecord
from emarketer_api.sync.platforms.base import PlatformClient, SyncItem, safe_float, safe_int

GA4_DATA_API_BASE = "https://analyticsdata.googleapis.com/v1beta"

REPORT_REQUEST = {
    "dateRanges": [{"startDate": "7daysAgo", "endDate": "today"}],
    "dimensions": [{"name": "sessionCampaignName"}],
    "metrics": [
        {"name": "eventCount"},
        {"name": "sessions"},
        {"name": "totalUsers"},
        {"name": "eventValue"},
    ],
    "limit": 1000,
}


def _value(values: list[dict[str, Any]], index: int) -> Any:
    if index < len(values):
        return values[index].get("value")
    return None


class GA4Client(PlatformClient):
    platform = "ga4"

    def fetch_campaigns(self, integration: Integration) -> Iterator[SyncItem]:
        access_token = self._refresh_google_token(
            integration, "GOOGLE_CLIENT_ID", "GOOGLE_CLIENT_SECRET"
        )
        property_id = integration.account_id

        report = self._require_ok(
            self._post(
                f"{GA4_DATA_API_BASE}/properties/{property_id}:runReport",
                headers={"Authorization": f"Bearer {access_token}"},
                json=REPORT_REQUEST,
            ),
            "GA4 report",
        )

        for row in report.get("rows", []):
            dimensions = row.get("dimensionValues", [])
            metrics = row.get("metricValues", [])
            name = _value(dimensions, 0) or "(not set)"

            yield CampaignRecord(
                external_id=f"ga4:{name}",
                name=name,
                impressions=0,
                clicks=safe_int(_value(metrics, 1)),
                conversions=safe_float(_value(metrics, 0)),
                revenue=safe_float(_value(metrics, 3)),
                metrics_date=self.today(),
            )
