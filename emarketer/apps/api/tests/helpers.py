"""Shared test doubles: fake clock and canned platform clients."""

from datetime import date
from typing import Callable, Iterator, Optional

import httpx

from emarketer_api.db.models import Integration
from emarketer_api.schemas import CampaignRecord
from emarketer_api.sync.platforms import PlatformClient, SyncItem


class FakeClock:
    """Millisecond clock advanced manually by tests."""

    def __init__(self, start_ms: int = 1_700_000_000_000):
        self.now_ms = start_ms

    def __call__(self) -> int:
        return self.now_ms

    def advance(self, ms: int) -> None:
        self.now_ms += ms


class StaticPlatformClient(PlatformClient):
    """Yields a canned list of items, then optionally raises."""

    platform = "meta"

    def __init__(self, items: list[SyncItem], error: Optional[BaseException] = None, **kwargs):
        super().__init__(http=httpx.Client(), **kwargs)
        self.items = items
        self.error = error

    def fetch_campaigns(self, integration: Integration) -> Iterator[SyncItem]:
        for item in self.items:
            yield item
        if self.error is not None:
            raise self.error


def make_record(external_id: str, name: Optional[str] = None, spend: float = 10.0) -> CampaignRecord:
    return CampaignRecord(
        external_id=external_id,
        name=name or f"Campaign {external_id}",
        status="ACTIVE",
        spend=spend,
        impressions=1000,
        clicks=50,
        conversions=2,
        revenue=100.0,
        ctr=5.0,
        cpc=spend / 50,
        roas=100.0 / spend if spend else 0.0,
        metrics_date=date(2026, 10, 1),
    )


def static_client_factory(
    items: list[SyncItem], error: Optional[BaseException] = None
) -> Callable[..., PlatformClient]:
    """Client factory for SyncOrchestrator returning StaticPlatformClient."""

    def _factory(platform: str, http: httpx.Client, on_token_refresh=None) -> PlatformClient:
        return StaticPlatformClient(items, error=error, on_token_refresh=on_token_refresh)

    return _factory
