"""
Admin campaign review endpoints.

Implements:
- Review queue listing
- Approval (creates the Google Ads campaign, activates)
- Rejection with refund
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.adapters import BaseAdPlatformAdapter, PaystackClient, get_adapter
from realaist.api.v1.campaigns import CampaignListResponse, CampaignResponse, to_response
from realaist.core.database import get_db
from realaist.middleware.auth import CurrentUser, require_admin
from realaist.services import campaign_service

logger = structlog.get_logger()

router = APIRouter()


class RejectRequest(BaseModel):
    """Rejection request."""
    reason: Optional[str] = Field(default=None, max_length=2000)


def get_ads_adapter() -> BaseAdPlatformAdapter:
    return get_adapter("google")


def get_payment_gateway() -> PaystackClient:
    return PaystackClient()


@router.get("/campaigns", response_model=CampaignListResponse)
async def list_review_queue(
    status: Optional[str] = Query(default=None),
    payment_status: Optional[str] = Query(default=None),
    current_user: CurrentUser = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """List campaigns for review."""
    campaigns = await campaign_service.list_campaigns_for_review(
        db, status=status, payment_status=payment_status
    )
    return CampaignListResponse(
        campaigns=[to_response(c) for c in campaigns],
        total=len(campaigns),
    )


@router.post("/campaigns/{campaign_id}/approve", response_model=CampaignResponse)
async def approve_campaign(
    campaign_id: str,
    current_user: CurrentUser = Depends(require_admin),
    adapter: BaseAdPlatformAdapter = Depends(get_ads_adapter),
    db: AsyncSession = Depends(get_db),
):
    """
    Approve a paid campaign.

    Requires a provider-issued session; local mock admins are refused.
    """
    campaign = await campaign_service.approve_campaign(
        db, current_user.session, campaign_id, ads_adapter=adapter
    )
    await db.commit()
    return to_response(campaign)


@router.post("/campaigns/{campaign_id}/reject", response_model=CampaignResponse)
async def reject_campaign(
    campaign_id: str,
    data: Optional[RejectRequest] = None,
    current_user: CurrentUser = Depends(require_admin),
    gateway: PaystackClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Reject a pending campaign, refunding a settled payment."""
    campaign = await campaign_service.reject_campaign(
        db,
        current_user.session,
        campaign_id,
        reason=data.reason if data else None,
        payment_gateway=gateway,
    )
    await db.commit()
    return to_response(campaign)
