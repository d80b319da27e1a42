"""
Tests for campaign analytics retrieval, caching and refresh.
"""

import asyncio
import json
from datetime import date
from unittest.mock import AsyncMock, MagicMock

import pytest

from realaist.adapters.base import (
    BaseAdPlatformAdapter,
    BreakdownDimension,
    BreakdownRow,
    CampaignPerformance,
    NotFoundError,
    PlatformError,
)
from realaist.core.exceptions import FORBIDDEN, NOT_FOUND, VALIDATION_ERROR, CampaignError
from realaist.services.analytics_service import (
    AnalyticsRefresher,
    DateRange,
    calculate_budget_usage,
    get_campaign_analytics,
    summarize_metrics,
)
from realaist.services.cache_service import AnalyticsCache

GOOGLE_ID = "9876543210"


class FakeRedis:
    """Just enough of redis.asyncio.Redis for AnalyticsCache."""

    def __init__(self):
        self.store = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value):
        self.store[key] = value

    async def setex(self, key, ttl, value):
        self.store[key] = value

    async def delete(self, key):
        return 1 if self.store.pop(key, None) is not None else 0

    async def scan_iter(self, match=None, count=None):
        prefix = match.rstrip("*")
        for key in list(self.store):
            if key.startswith(prefix):
                yield key


@pytest.fixture
async def active_campaign(db, campaign):
    campaign.status = "active"
    campaign.payment_status = "success"
    campaign.google_ads_campaign_id = GOOGLE_ID
    await db.commit()
    return campaign


@pytest.fixture
def adapter():
    mock = MagicMock(spec=BaseAdPlatformAdapter)
    mock.get_campaign_performance = AsyncMock(
        return_value=CampaignPerformance(
            campaign_id=GOOGLE_ID,
            campaign_name="Property Campaign - 2026-10-19",
            impressions=12_000,
            clicks=240,
            cost_micros=30_000_000,
            conversions=6,
            conversion_value=0,
        )
    )

    async def breakdown(campaign_id, dimension, start_date=None, end_date=None):
        return [BreakdownRow(segment=f"{dimension.value}-segment", impressions=100, clicks=4, cost_micros=250_000)]

    mock.get_breakdown = AsyncMock(side_effect=breakdown)
    return mock


class TestSummaries:

    def test_metrics_rounded(self):
        metrics = summarize_metrics(
            CampaignPerformance(campaign_id="1", impressions=3, clicks=1, cost_micros=1_000_000)
        )

        assert metrics["cost_micros"] == 1_000_000
        assert metrics["cost"] == 1.0
        assert metrics["ctr"] == 33.33
        assert metrics["average_cpc"] == 1.0
        assert metrics["cpm"] == 333.33

    def test_zero_impressions_guarded(self):
        metrics = summarize_metrics(CampaignPerformance(campaign_id="1"))
        assert metrics["ctr"] == metrics["average_cpc"] == metrics["cpm"] == 0

    def test_budget_usage(self):
        usage = calculate_budget_usage(6000, 30.0, exchange_rate=134)
        assert usage == {"total": 6000.0, "spent": 4020.0, "remaining": 1980.0, "percentage": 67.0}

    def test_budget_usage_clamped(self):
        usage = calculate_budget_usage(6000, 60.0, exchange_rate=134)

        assert usage["remaining"] == 0
        assert usage["percentage"] == 100

    def test_budget_usage_without_ad_spend(self):
        assert calculate_budget_usage(0, 5.0, exchange_rate=134)["percentage"] == 0


class TestGetCampaignAnalytics:
    """Analytics for one external campaign."""

    async def test_full_payload(self, db, owner, active_campaign, adapter):
        analytics = await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter)

        assert analytics["campaign_id"] == active_campaign.id
        assert analytics["metrics"]["impressions"] == 12_000
        assert analytics["metrics"]["ctr"] == 2.0
        assert analytics["metrics"]["cost"] == 30.0
        assert analytics["metrics"]["cost_micros"] == 30_000_000
        assert analytics["metrics"]["cpm"] == 2.5
        assert analytics["budget"]["spent"] == 4020.0
        assert analytics["budget"]["remaining"] == 1980.0
        assert analytics["breakdowns"]["age"] == [
            {"segment": "age-segment", "impressions": 100, "clicks": 4, "cost": 0.25}
        ]
        assert analytics["breakdowns"]["location"] is not None

    async def test_breakdown_failure_is_isolated(self, db, owner, active_campaign, adapter):
        async def breakdown(campaign_id, dimension, start_date=None, end_date=None):
            if dimension == BreakdownDimension.GENDER:
                raise PlatformError("gender_view unavailable", platform="google")
            return []

        adapter.get_breakdown.side_effect = breakdown

        analytics = await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter)

        assert analytics["breakdowns"]["gender"] is None
        assert analytics["breakdowns"]["age"] == []
        assert analytics["breakdowns"]["location"] == []
        assert analytics["metrics"]["impressions"] == 12_000

    async def test_date_range_forwarded(self, db, owner, active_campaign, adapter):
        date_range = DateRange(start_date=date(2026, 10, 1), end_date=date(2026, 10, 15))

        analytics = await get_campaign_analytics(db, owner.id, GOOGLE_ID, date_range=date_range, adapter=adapter)

        adapter.get_campaign_performance.assert_awaited_once_with(GOOGLE_ID, date(2026, 10, 1), date(2026, 10, 15))
        assert analytics["date_range"] == {"start_date": "2026-10-01", "end_date": "2026-10-15"}

    async def test_top_line_failure_propagates(self, db, owner, active_campaign, adapter):
        adapter.get_campaign_performance.side_effect = NotFoundError("Campaign not found", platform="google")

        with pytest.raises(NotFoundError):
            await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter)

    async def test_unknown_external_id(self, db, owner, adapter):
        with pytest.raises(CampaignError) as exc_info:
            await get_campaign_analytics(db, owner.id, "111", adapter=adapter)

        assert exc_info.value.code == NOT_FOUND

    async def test_other_users_campaign_forbidden(self, db, other_user, active_campaign, adapter):
        with pytest.raises(CampaignError) as exc_info:
            await get_campaign_analytics(db, other_user.id, GOOGLE_ID, adapter=adapter)

        assert exc_info.value.code == FORBIDDEN
        adapter.get_campaign_performance.assert_not_called()

    async def test_inactive_campaign_refused(self, db, owner, campaign, adapter):
        campaign.google_ads_campaign_id = GOOGLE_ID
        await db.commit()

        with pytest.raises(CampaignError) as exc_info:
            await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter)

        assert exc_info.value.code == VALIDATION_ERROR


class TestAnalyticsCache:

    async def test_second_request_served_from_cache(self, db, owner, active_campaign, adapter):
        cache = AnalyticsCache(FakeRedis(), ttl=60)

        first = await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter, cache=cache)
        second = await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter, cache=cache)

        assert second == json.loads(json.dumps(first, default=str))
        assert adapter.get_campaign_performance.await_count == 1

    async def test_refresh_bypasses_cache(self, db, owner, active_campaign, adapter):
        cache = AnalyticsCache(FakeRedis(), ttl=60)

        await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter, cache=cache)
        await get_campaign_analytics(db, owner.id, GOOGLE_ID, adapter=adapter, cache=cache, refresh=True)

        assert adapter.get_campaign_performance.await_count == 2

    async def test_invalidate_only_touches_campaign(self):
        client = FakeRedis()
        cache = AnalyticsCache(client, ttl=60)
        await cache.set(AnalyticsCache.key("1", "2026-10-01", "2026-10-02"), {"a": 1})
        await cache.set(AnalyticsCache.key("1"), {"a": 2})
        await cache.set(AnalyticsCache.key("2"), {"b": 1})

        assert await cache.invalidate("1") == 2
        assert await cache.get(AnalyticsCache.key("2")) == {"b": 1}

    async def test_no_client_is_a_miss(self):
        cache = AnalyticsCache(None)

        assert await cache.get("analytics:1:-:-") is None
        assert await cache.set("analytics:1:-:-", {}) is False
        assert await cache.invalidate("1") == 0

    async def test_backend_errors_are_misses(self):
        client = MagicMock()
        client.get = AsyncMock(side_effect=ConnectionError("redis down"))
        cache = AnalyticsCache(client)

        assert await cache.get("analytics:1:-:-") is None


class TestAnalyticsRefresher:
    """Explicit, cancellable refresh."""

    async def test_publishes_result(self):
        received = []
        refresher = AnalyticsRefresher(AsyncMock(return_value={"n": 1}), on_result=received.append)

        await refresher.refresh()

        assert refresher.result == {"n": 1}
        assert received == [{"n": 1}]

    async def test_superseded_result_discarded(self):
        slow_started = asyncio.Event()
        release_slow = asyncio.Event()
        responses = iter([{"n": "slow"}, {"n": "fast"}])

        async def fetch():
            response = next(responses)
            if response["n"] == "slow":
                slow_started.set()
                await release_slow.wait()
            return response

        refresher = AnalyticsRefresher(fetch)
        slow = refresher.refresh()
        await slow_started.wait()
        await refresher.refresh()
        release_slow.set()
        await slow

        assert refresher.result == {"n": "fast"}

    async def test_close_cancels_in_flight(self):
        started = asyncio.Event()
        received = []

        async def fetch():
            started.set()
            await asyncio.sleep(10)
            return {"n": 1}

        refresher = AnalyticsRefresher(fetch, on_result=received.append)
        task = refresher.refresh()
        await started.wait()

        await refresher.close()

        assert task.cancelled()
        assert refresher.result is None
        assert received == []
        with pytest.raises(RuntimeError):
            refresher.refresh()

    async def test_failure_recorded(self):
        refresher = AnalyticsRefresher(AsyncMock(side_effect=PlatformError("boom", platform="google")))

        assert await refresher.refresh() is None
        assert isinstance(refresher.error, PlatformError)
