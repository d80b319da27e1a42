"""
Campaign API endpoints.

Implements:
- Campaign submission (pending/pending, fee split applied)
- Listing and fetching the caller's campaigns
"""

from datetime import date, datetime
from decimal import Decimal
from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Request, status
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.core.database import get_db
from realaist.middleware.auth import CurrentUser, get_current_user
from realaist.middleware.security import limiter
from realaist.services import campaign_service
from realaist.services.payment_service import is_payment_required

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class CampaignCreate(BaseModel):
    """
    Campaign submission.

    Required fields are checked by the service so that a missing field is
    reported with its name.
    """
    campaign_name: Optional[str] = Field(default=None, max_length=255)
    target_location: Optional[list[str]] = None
    target_age_group: Optional[str] = None
    duration_start: Optional[date] = None
    duration_end: Optional[date] = None
    audience_interests: list[str] = []
    budget: Optional[Decimal] = None
    property_ids: Optional[list[str]] = None
    platforms: Optional[list[str]] = None


class CampaignResponse(BaseModel):
    """Campaign response schema."""
    id: str
    campaign_name: str
    status: str
    payment_status: str
    user_budget: Decimal
    platform_fee: Decimal
    ad_spend: Decimal
    total_paid: Decimal
    target_location: list[str]
    target_age_group: Optional[str]
    audience_interests: list[str]
    duration_start: date
    duration_end: date
    property_ids: list[str]
    platforms: list[str]
    google_ads_campaign_id: Optional[str]
    payment_id: Optional[str]
    rejection_reason: Optional[str]
    approved_at: Optional[datetime]
    created_at: datetime
    payment_required: bool = False

    class Config:
        from_attributes = True


class CampaignListResponse(BaseModel):
    """Campaign list response."""
    campaigns: list[CampaignResponse]
    total: int


def to_response(campaign) -> CampaignResponse:
    response = CampaignResponse.model_validate(campaign)
    response.payment_required = is_payment_required(campaign)
    return response


# =============================================================================
# Endpoints
# =============================================================================

@router.post("", response_model=CampaignResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("30/minute")
async def create_campaign(
    request: Request,
    data: CampaignCreate,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """
    Submit a campaign.

    The campaign starts pending with its payment pending; the platform fee
    and ad spend are fixed at submission.
    """
    campaign = await campaign_service.create_campaign(
        db, current_user.id, data.model_dump()
    )
    await db.commit()
    await db.refresh(campaign)
    return to_response(campaign)


@router.get("", response_model=CampaignListResponse)
async def list_campaigns(
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """List the caller's campaigns, newest first."""
    campaigns = await campaign_service.list_user_campaigns(db, current_user.id)
    return CampaignListResponse(
        campaigns=[to_response(c) for c in campaigns],
        total=len(campaigns),
    )


@router.get("/{campaign_id}", response_model=CampaignResponse)
async def get_campaign(
    campaign_id: str,
    current_user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Get one of the caller's campaigns."""
    campaign = await campaign_service.get_user_campaign(db, current_user.id, campaign_id)
    return to_response(campaign)
