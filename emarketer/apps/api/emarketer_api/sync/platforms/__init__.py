"""Ad-platform clients keyed by Integration.platform."""

from typing import Optional

import httpx

from emarketer_api.sync.platforms.base import (
    PlatformClient,
    RecordFailure,
    SyncItem,
    TokenRefreshCallback,
)
from emarketer_api.sync.platforms.ga4 import GA4Client
from emarketer_api.sync.platforms.google_ads import GoogleAdsClient
from emarketer_api.sync.platforms.meta import MetaAdsClient

PLATFORM_CLIENTS: dict[str, type[PlatformClient]] = {
    "meta": MetaAdsClient,
    "google-ads": GoogleAdsClient,
    "ga4": GA4Client,
}


def get_platform_client(
    platform: str,
    http: httpx.Client,
    on_token_refresh: Optional[TokenRefreshCallback] = None,
) -> PlatformClient:
    """Instantiate the client for ``platform``.

    Raises:
        KeyError: If the platform has no client
    """
    return PLATFORM_CLIENTS[platform](http, on_token_refresh=on_token_refresh)


__all__ = [
    "PLATFORM_CLIENTS",
    "GA4Client",
    "GoogleAdsClient",
    "MetaAdsClient",
    "PlatformClient",
    "RecordFailure",
    "SyncItem",
    "get_platform_client",
]
