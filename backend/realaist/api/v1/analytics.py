"""
Analytics API endpoints.

Provides Google Ads performance for a caller's active campaign:
- Top-line metrics and derived ratios
- Budget usage
- Age, gender and location breakdowns
"""

from datetime import date
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, field_validator
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.adapters import BaseAdPlatformAdapter, get_adapter
from realaist.core.database import get_db
from realaist.middleware.auth import CurrentUser, get_current_user
from realaist.services.analytics_service import DateRange, get_campaign_analytics
from realaist.services.cache_service import AnalyticsCache, get_analytics_cache

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class DateRangeRequest(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None

    @field_validator("end_date")
    @classmethod
    def validate_end_date(cls, v, info):
        if v and info.data.get("start_date") and v < info.data["start_date"]:
            raise ValueError("end_date must be on or after start_date")
        return v


class AnalyticsRequest(BaseModel):
    """Analytics request for one external campaign."""
    google_ads_campaign_id: str
    date_range: Optional[DateRangeRequest] = None
    refresh: bool = False


class AnalyticsResponse(BaseModel):
    success: bool
    analytics: dict


def get_ads_adapter() -> BaseAdPlatformAdapter:
    return get_adapter("google")


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/campaign", response_model=AnalyticsResponse)
async def campaign_analytics(
    data: AnalyticsRequest,
    current_user: CurrentUser = Depends(get_current_user),
    adapter: BaseAdPlatformAdapter = Depends(get_ads_adapter),
    cache: AnalyticsCache = Depends(get_analytics_cache),
    db: AsyncSession = Depends(get_db),
):
    """
    Get analytics for an active Google Ads campaign.

    Breakdowns that cannot be fetched are returned as null.
    """
    date_range = None
    if data.date_range:
        date_range = DateRange(
            start_date=data.date_range.start_date,
            end_date=data.date_range.end_date,
        )

    analytics = await get_campaign_analytics(
        db,
        current_user.id,
        data.google_ads_campaign_id,
        date_range=date_range,
        adapter=adapter,
        cache=cache,
        refresh=data.refresh,
    )
    return AnalyticsResponse(success=True, analytics=analytics)


@router.get("/campaigns/{google_ads_campaign_id}", response_model=AnalyticsResponse)
async def campaign_analytics_by_id(
    google_ads_campaign_id: str,
    start_date: Optional[date] = Query(default=None),
    end_date: Optional[date] = Query(default=None),
    refresh: bool = Query(default=False),
    current_user: CurrentUser = Depends(get_current_user),
    adapter: BaseAdPlatformAdapter = Depends(get_ads_adapter),
    cache: AnalyticsCache = Depends(get_analytics_cache),
    db: AsyncSession = Depends(get_db),
):
    """Query-string variant of the campaign analytics endpoint."""
    analytics = await get_campaign_analytics(
        db,
        current_user.id,
        google_ads_campaign_id,
        date_range=DateRange(start_date=start_date, end_date=end_date),
        adapter=adapter,
        cache=cache,
        refresh=refresh,
    )
    return AnalyticsResponse(success=True, analytics=analytics)
