"""
Analytics Service

Provides Google Ads performance data for active campaigns.

Features:
- Ownership checks by external campaign id
- Top-line metrics with derived ratios
- Budget usage against the campaign's ad spend
- Age, gender and location breakdowns, each degrading independently
- Response caching and explicit, cancellable refresh
"""

import asyncio
from dataclasses import dataclass
from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Awaitable, Callable, Optional

import structlog
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.adapters import get_adapter
from realaist.adapters.base import BaseAdPlatformAdapter, BreakdownDimension, CampaignPerformance
from realaist.config import settings
from realaist.core.exceptions import FORBIDDEN, NOT_FOUND, VALIDATION_ERROR, CampaignError
from realaist.models import Campaign
from realaist.services.cache_service import AnalyticsCache

logger = structlog.get_logger()


@dataclass
class DateRange:
    """Optional reporting window; both ends inclusive."""
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    def to_dict(self) -> dict[str, Optional[str]]:
        return {
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "end_date": self.end_date.isoformat() if self.end_date else None,
        }


def summarize_metrics(performance: CampaignPerformance) -> dict[str, Any]:
    """Top-line metrics with ratios rounded to 2 decimals."""
    return {
        "impressions": performance.impressions,
        "clicks": performance.clicks,
        "cost": round(performance.cost, 2),
        "cost_micros": performance.cost_micros,
        "conversions": round(performance.conversions, 2),
        "conversion_value": round(performance.conversion_value, 2),
        "ctr": round(performance.ctr, 2),
        "average_cpc": round(performance.average_cpc, 2),
        "cpm": round(performance.cpm, 2),
    }


def calculate_budget_usage(
    ad_spend: Any,
    cost: float,
    exchange_rate: Optional[float] = None,
) -> dict[str, float]:
    """
    Compare spend reported by Google Ads with the campaign's ad spend.

    Google Ads budgets are funded in USD, so reported cost is converted back
    to KES before comparison.

    Returns:
        `{total, spent, remaining, percentage}` with percentage capped at 100
    """
    rate = exchange_rate if exchange_rate is not None else settings.kes_to_usd_rate
    total = float(ad_spend or Decimal("0"))
    spent = round(cost * rate, 2)
    remaining = round(max(total - spent, 0.0), 2)
    percentage = round(min(spent / total * 100, 100.0), 2) if total > 0 else 0.0
    return {
        "total": round(total, 2),
        "spent": spent,
        "remaining": remaining,
        "percentage": percentage,
    }


async def _fetch_breakdown(
    adapter: BaseAdPlatformAdapter,
    campaign_id: str,
    dimension: BreakdownDimension,
    date_range: DateRange,
) -> Optional[list[dict[str, Any]]]:
    try:
        rows = await adapter.get_breakdown(
            campaign_id, dimension, date_range.start_date, date_range.end_date
        )
    except Exception as e:
        logger.warning(
            "analytics_breakdown_unavailable",
            campaign_id=campaign_id,
            dimension=dimension.value,
            error=str(e),
        )
        return None
    return [row.to_dict() for row in rows]


async def get_campaign_for_analytics(
    db: AsyncSession,
    user_id: str,
    google_ads_campaign_id: str,
) -> Campaign:
    """
    Resolve and authorize the campaign behind an external id.

    Raises:
        CampaignError: `not_found`, `forbidden` for other users' campaigns,
            `validation_error` if the campaign has no live Google Ads data
    """
    result = await db.execute(
        select(Campaign).where(Campaign.google_ads_campaign_id == google_ads_campaign_id)
    )
    campaign = result.scalars().first()
    if campaign is None:
        raise CampaignError(NOT_FOUND, "Campaign not found")
    if campaign.user_id != user_id:
        raise CampaignError(FORBIDDEN, "You do not have access to this campaign")
    if campaign.status != "active" or not campaign.targets_google:
        raise CampaignError(
            VALIDATION_ERROR,
            "Analytics are only available for active Google Ads campaigns",
        )
    return campaign


async def get_campaign_analytics(
    db: AsyncSession,
    user_id: str,
    google_ads_campaign_id: str,
    date_range: Optional[DateRange] = None,
    adapter: Optional[BaseAdPlatformAdapter] = None,
    cache: Optional[AnalyticsCache] = None,
    refresh: bool = False,
) -> dict[str, Any]:
    """
    Get performance analytics for a campaign.

    Args:
        db: Database session
        user_id: Requesting user
        google_ads_campaign_id: External campaign id
        date_range: Optional reporting window
        adapter: Google Ads adapter
        cache: Response cache
        refresh: Invalidate cached results first

    Returns:
        Analytics payload with metrics, budget and breakdowns

    Raises:
        CampaignError: See get_campaign_for_analytics
        AdapterError: Top-line metrics could not be fetched
    """
    campaign = await get_campaign_for_analytics(db, user_id, google_ads_campaign_id)
    date_range = date_range or DateRange()

    cache_key = AnalyticsCache.key(
        google_ads_campaign_id, date_range.start_date, date_range.end_date
    )
    if cache is not None:
        if refresh:
            await cache.invalidate(google_ads_campaign_id)
        else:
            cached = await cache.get(cache_key)
            if cached is not None:
                logger.debug("cache_hit", key=cache_key)
                return cached

    adapter = adapter or get_adapter("google")
    performance = await adapter.get_campaign_performance(
        google_ads_campaign_id, date_range.start_date, date_range.end_date
    )
    if performance is None:
        performance = CampaignPerformance(campaign_id=google_ads_campaign_id)

    age, gender, location = await asyncio.gather(
        _fetch_breakdown(adapter, google_ads_campaign_id, BreakdownDimension.AGE, date_range),
        _fetch_breakdown(adapter, google_ads_campaign_id, BreakdownDimension.GENDER, date_range),
        _fetch_breakdown(adapter, google_ads_campaign_id, BreakdownDimension.LOCATION, date_range),
    )

    analytics = {
        "campaign_id": campaign.id,
        "google_ads_campaign_id": google_ads_campaign_id,
        "campaign_name": performance.campaign_name or campaign.campaign_name,
        "date_range": date_range.to_dict(),
        "metrics": summarize_metrics(performance),
        "budget": calculate_budget_usage(campaign.ad_spend, performance.cost),
        "breakdowns": {
            "age": age,
            "gender": gender,
            "location": location,
        },
        "fetched_at": datetime.now(timezone.utc).isoformat(),
    }

    if cache is not None:
        await cache.set(cache_key, analytics)

    logger.info(
        "analytics_fetched",
        campaign_id=campaign.id,
        google_ads_campaign_id=google_ads_campaign_id,
        impressions=performance.impressions,
        breakdowns_missing=[k for k, v in analytics["breakdowns"].items() if v is None],
    )

    return analytics


# =============================================================================
# Refresh
# =============================================================================


class AnalyticsRefresher:
    """
    Runs user-triggered analytics refreshes for one view.

    Every refresh gets a request token. Only the newest request may publish
    its result; results of superseded requests and of anything still in
    flight when the view closes are dropped.
    """

    def __init__(
        self,
        fetch: Callable[[], Awaitable[dict]],
        on_result: Optional[Callable[[dict], None]] = None,
    ):
        self._fetch = fetch
        self._on_result = on_result
        self._token = 0
        self._tasks: set[asyncio.Task] = set()
        self._closed = False
        self.result: Optional[dict] = None
        self.error: Optional[Exception] = None

    @property
    def closed(self) -> bool:
        return self._closed

    def refresh(self) -> asyncio.Task:
        """Start a refresh; returns the task running it."""
        if self._closed:
            raise RuntimeError("Refresher is closed")
        self._token += 1
        task = asyncio.create_task(self._run(self._token))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _is_current(self, token: int) -> bool:
        return not self._closed and token == self._token

    async def _run(self, token: int) -> Optional[dict]:
        try:
            result = await self._fetch()
        except asyncio.CancelledError:
            logger.debug("analytics_refresh_cancelled", token=token)
            raise
        except Exception as e:
            if self._is_current(token):
                self.error = e
                logger.warning("analytics_refresh_failed", token=token, error=str(e))
            return None

        if not self._is_current(token):
            logger.debug("analytics_refresh_discarded", token=token)
            return None

        self.result = result
        self.error = None
        if self._on_result:
            self._on_result(result)
        return result

    async def close(self) -> None:
        """Cancel in-flight refreshes and stop publishing results."""
        self._closed = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
