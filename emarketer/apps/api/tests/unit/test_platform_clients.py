"""Unit tests for ad-platform clients (HTTP mocked with httpx.MockTransport)."""

import json
from datetime import date, datetime, timedelta, timezone

import httpx
import pytest

from emarketer_api.db.models import Integration
from emarketer_api.errors import UpstreamFailure
from emarketer_api.sync.platforms import (
    GA4Client,
    GoogleAdsClient,
    MetaAdsClient,
    RecordFailure,
    get_platform_client,
)
from emarketer_api.sync.platforms.base import derived_metrics, safe_float, safe_int, token_expired
from emarketer_api.sync.platforms.google_ads import aggregate_campaign_rows

TODAY = date(2026, 10, 17)


def _http(routes: dict) -> httpx.Client:
    """Client answering from {(method, path): response or callable}."""

    def handler(request: httpx.Request) -> httpx.Response:
        route = routes.get((request.method, request.url.path))
        if route is None:
            return httpx.Response(404, json={"error": "no route"})
        if callable(route):
            return route(request)
        return route

    return httpx.Client(transport=httpx.MockTransport(handler))


def _integration(platform: str, **fields) -> Integration:
    return Integration(
        id="int-1",
        company_id="c-1",
        platform=platform,
        account_id=fields.pop("account_id", "act_1"),
        access_token=fields.pop("access_token", "tok-old"),
        **fields,
    )


# ============================================================================
# Helpers
# ============================================================================


def test_safe_number_parsing():
    assert safe_float("12.5") == 12.5
    assert safe_float(None) == 0.0
    assert safe_float("n/a") == 0.0
    assert safe_int("42") == 42
    assert safe_int("3.9") == 3
    assert safe_int(None) == 0


def test_derived_metrics_zero_denominators():
    assert derived_metrics(0.0, 0, 0, 0.0) == {"ctr": 0.0, "cpc": 0.0, "roas": 0.0}

    metrics = derived_metrics(spend=20.0, impressions=1000, clicks=50, revenue=80.0)
    assert metrics["ctr"] == pytest.approx(5.0)
    assert metrics["cpc"] == pytest.approx(0.4)
    assert metrics["roas"] == pytest.approx(4.0)


def test_token_expired_handles_naive_timestamps():
    now = datetime(2026, 10, 17, 12, 0, tzinfo=timezone.utc)

    assert not token_expired(_integration("ga4"), now=now)
    assert token_expired(_integration("ga4", expires_at=datetime(2026, 10, 17, 11, 0)), now=now)
    assert not token_expired(
        _integration("ga4", expires_at=now + timedelta(minutes=5)), now=now
    )


def test_get_platform_client():
    http = httpx.Client()
    assert isinstance(get_platform_client("meta", http), MetaAdsClient)
    assert isinstance(get_platform_client("google-ads", http), GoogleAdsClient)
    assert isinstance(get_platform_client("ga4", http), GA4Client)
    with pytest.raises(KeyError):
        get_platform_client("tiktok", http)


# ============================================================================
# Meta
# ============================================================================


def test_meta_fetches_campaigns_with_insights(monkeypatch):
    monkeypatch.delenv("META_CONVERSION_VALUE", raising=False)
    http = _http({
        ("GET", "/v18.0/me/adaccounts"): httpx.Response(200, json={"data": [{"id": "act_1"}]}),
        ("GET", "/v18.0/act_1/campaigns"): httpx.Response(200, json={"data": [
            {"id": "111", "name": "Spring Sale", "status": "ACTIVE"},
            {"id": "", "name": "Nameless id"},
            {"id": "222", "name": "Insights broken", "status": "PAUSED"},
        ]}),
        ("GET", "/v18.0/111/insights"): httpx.Response(200, json={"data": [{
            "spend": "100.0",
            "impressions": "2000",
            "clicks": "40",
            "ctr": "2.0",
            "cpc": "2.5",
            "actions": [
                {"action_type": "link_click", "value": "40"},
                {"action_type": "purchase", "value": "3"},
            ],
        }]}),
        ("GET", "/v18.0/222/insights"): httpx.Response(500),
    })
    client = MetaAdsClient(http, today=lambda: TODAY)

    items = list(client.fetch_campaigns(_integration("meta")))

    assert len(items) == 2
    record, failure = items
    assert record.external_id == "111"
    assert record.name == "Spring Sale"
    assert record.spend == 100.0
    assert record.impressions == 2000
    assert record.clicks == 40
    assert record.conversions == 3.0
    assert record.revenue == 150.0
    assert record.roas == pytest.approx(1.5)
    assert record.metrics_date == TODAY
    assert failure == RecordFailure(external_id="unknown", reason="missing id or name")


def test_meta_conversion_value_from_env(monkeypatch):
    monkeypatch.setenv("META_CONVERSION_VALUE", "20")
    http = _http({
        ("GET", "/v18.0/me/adaccounts"): httpx.Response(200, json={"data": [{"id": "act_1"}]}),
        ("GET", "/v18.0/act_1/campaigns"): httpx.Response(200, json={"data": [{"id": "1", "name": "A"}]}),
        ("GET", "/v18.0/1/insights"): httpx.Response(200, json={"data": [{
            "spend": "0",
            "actions": [{"action_type": "offsite_conversion.fb_pixel_purchase", "value": "2"}],
        }]}),
    })

    (record,) = list(MetaAdsClient(http).fetch_campaigns(_integration("meta")))

    assert record.revenue == 40.0
    assert record.roas == 0.0


def test_meta_account_listing_failure_is_upstream_failure():
    http = _http({("GET", "/v18.0/me/adaccounts"): httpx.Response(401, json={"error": {}})})

    with pytest.raises(UpstreamFailure) as exc_info:
        list(MetaAdsClient(http).fetch_campaigns(_integration("meta")))

    assert exc_info.value.platform == "meta"
    assert exc_info.value.upstream_status == 401


def test_meta_account_listing_not_json_is_upstream_failure():
    http = _http({("GET", "/v18.0/me/adaccounts"): httpx.Response(200, text="<html>maintenance</html>")})

    with pytest.raises(UpstreamFailure) as exc_info:
        list(MetaAdsClient(http).fetch_campaigns(_integration("meta")))

    assert exc_info.value.platform == "meta"
    assert exc_info.value.upstream_status == 200


def test_meta_skips_pages_that_are_not_json():
    http = _http({
        ("GET", "/v18.0/me/adaccounts"): httpx.Response(200, json={"data": [{"id": "act_1"}, {"id": "act_2"}]}),
        ("GET", "/v18.0/act_1/campaigns"): httpx.Response(200, text="not json"),
        ("GET", "/v18.0/act_2/campaigns"): httpx.Response(200, json={"data": [
            {"id": "1", "name": "A"},
            {"id": "2", "name": "B"},
        ]}),
        ("GET", "/v18.0/1/insights"): httpx.Response(200, content=b"\x00\x01"),
        ("GET", "/v18.0/2/insights"): httpx.Response(200, json={"data": [{"spend": "5"}]}),
    })

    items = list(MetaAdsClient(http).fetch_campaigns(_integration("meta")))

    assert [item.external_id for item in items] == ["2"]
    assert items[0].spend == 5.0


def test_transport_error_is_upstream_failure():
    def boom(request):
        raise httpx.ConnectError("connection refused", request=request)

    http = httpx.Client(transport=httpx.MockTransport(boom))

    with pytest.raises(UpstreamFailure) as exc_info:
        list(MetaAdsClient(http).fetch_campaigns(_integration("meta")))

    assert exc_info.value.upstream_status is None
    assert "ConnectError" in exc_info.value.message


# ============================================================================
# Google Ads
# ============================================================================


def test_aggregate_campaign_rows_sums_days():
    buckets = aggregate_campaign_rows([
        {"campaign": {"id": "9", "name": "Brand"}, "metrics": {"clicks": "10", "costMicros": "1500000"}},
        {"campaign": {"id": "9", "name": "Brand"}, "metrics": {"clicks": "30", "costMicros": "500000"}},
        {"campaign": {}, "metrics": {"clicks": "99"}},
    ])

    assert list(buckets) == ["9"]
    assert buckets["9"]["clicks"] == 40
    assert buckets["9"]["cost"] == pytest.approx(2.0)


def test_google_ads_refreshes_expired_token_and_aggregates(monkeypatch):
    monkeypatch.setenv("GOOGLE_ADS_DEVELOPER_TOKEN", "dev-token")
    seen_auth = []

    def list_customers(request):
        seen_auth.append(request.headers["Authorization"])
        assert request.headers["developer-token"] == "dev-token"
        return httpx.Response(200, json={"resourceNames": ["customers/123"]})

    def search(request):
        assert "FROM campaign" in json.loads(request.content)["query"]
        return httpx.Response(200, json={"results": [
            {
                "campaign": {"id": "9", "name": "Brand", "status": "ENABLED"},
                "metrics": {"impressions": "100", "clicks": "10", "costMicros": "1500000",
                            "conversions": "1", "conversionsValue": "4"},
            },
            {
                "campaign": {"id": "9", "name": "Brand", "status": "ENABLED"},
                "metrics": {"impressions": "300", "clicks": "30", "costMicros": "500000",
                            "conversions": "2", "conversionsValue": "6"},
            },
        ]})

    http = _http({
        ("POST", "/token"): httpx.Response(200, json={"access_token": "tok-new", "expires_in": 3600}),
        ("GET", "/v16/customers:listAccessibleCustomers"): list_customers,
        ("POST", "/v16/customers/123/googleAds:search"): search,
    })
    refreshed = []
    integration = _integration(
        "google-ads",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )
    client = GoogleAdsClient(
        http,
        on_token_refresh=lambda i, token, expires_at: refreshed.append((i.id, token, expires_at)),
        today=lambda: TODAY,
    )

    (record,) = list(client.fetch_campaigns(integration))

    assert seen_auth == ["Bearer tok-new"]
    assert refreshed[0][:2] == ("int-1", "tok-new")
    assert refreshed[0][2] is not None
    assert record.external_id == "9"
    assert record.spend == pytest.approx(2.0)
    assert record.impressions == 400
    assert record.clicks == 40
    assert record.conversions == pytest.approx(3.0)
    assert record.revenue == pytest.approx(10.0)
    assert record.ctr == pytest.approx(10.0)
    assert record.cpc == pytest.approx(0.05)
    assert record.roas == pytest.approx(5.0)


def test_google_ads_failed_refresh_keeps_stored_token():
    seen_auth = []

    def list_customers(request):
        seen_auth.append(request.headers["Authorization"])
        return httpx.Response(200, json={"resourceNames": []})

    http = _http({
        ("POST", "/token"): httpx.Response(400, json={"error": "invalid_grant"}),
        ("GET", "/v16/customers:listAccessibleCustomers"): list_customers,
    })
    integration = _integration(
        "google-ads",
        refresh_token="refresh-1",
        expires_at=datetime.now(timezone.utc) - timedelta(hours=1),
    )

    assert list(GoogleAdsClient(http).fetch_campaigns(integration)) == []
    assert seen_auth == ["Bearer tok-old"]


# ============================================================================
# GA4
# ============================================================================


def test_ga4_maps_report_rows():
    def run_report(request):
        assert request.headers["Authorization"] == "Bearer tok-old"
        return httpx.Response(200, json={"rows": [
            {
                "dimensionValues": [{"value": "summer"}],
                "metricValues": [{"value": "12"}, {"value": "80"}, {"value": "70"}, {"value": "345.5"}],
            },
            {"dimensionValues": [], "metricValues": []},
        ]})

    http = _http({("POST", "/v1beta/properties/prop-9:runReport"): run_report})

    records = list(GA4Client(http, today=lambda: TODAY).fetch_campaigns(_integration("ga4", account_id="prop-9")))

    assert [r.external_id for r in records] == ["ga4:summer", "ga4:(not set)"]
    summer = records[0]
    assert summer.clicks == 80
    assert summer.conversions == 12.0
    assert summer.revenue == 345.5
    assert summer.spend == 0.0
    assert summer.roas == 0.0


def test_ga4_report_failure():
    http = _http({("POST", "/v1beta/properties/act_1:runReport"): httpx.Response(403)})

    with pytest.raises(UpstreamFailure) as exc_info:
        list(GA4Client(http).fetch_campaigns(_integration("ga4")))

    assert exc_info.value.platform == "ga4"
    assert exc_info.value.upstream_status == 403
