"""
Payment API endpoints.

Implements:
- Transaction initialization for a campaign
- Pull-based verification by reference
- Paystack webhook receiver
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, Header, Request
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.adapters import PaystackClient
from realaist.config import settings
from realaist.core.database import get_db
from realaist.core.exceptions import VALIDATION_ERROR, CampaignError
from realaist.middleware.auth import CurrentUser, get_current_user
from realaist.middleware.security import limiter
from realaist.services import payment_service

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class InitializePaymentRequest(BaseModel):
    """Start a payment for a campaign."""
    campaign_id: str
    email: Optional[str] = Field(default=None, max_length=255)
    metadata: Optional[dict] = None


class InitializePaymentResponse(BaseModel):
    reference: str
    access_code: Optional[str]
    authorization_url: Optional[str]
    amount: int
    currency: str


class VerifyPaymentResponse(BaseModel):
    """Amounts are in cents."""
    status: str
    reference: str
    amount: int
    amount_paid: Optional[int]
    currency: str
    paid_at: Optional[str]
    channel: Optional[str]


def get_payment_gateway() -> PaystackClient:
    return PaystackClient()


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/initialize", response_model=InitializePaymentResponse)
@limiter.limit(settings.rate_limit_payments)
async def initialize_payment(
    request: Request,
    data: InitializePaymentRequest,
    current_user: CurrentUser = Depends(get_current_user),
    gateway: PaystackClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Initialize a Paystack transaction for the campaign's full budget."""
    email = data.email or current_user.email
    if not email:
        raise CampaignError(VALIDATION_ERROR, "An email address is required", field="email")

    result = await payment_service.initialize_payment(
        db,
        current_user.id,
        data.campaign_id,
        email=email,
        metadata=data.metadata,
        gateway=gateway,
    )
    await db.commit()
    return result


@router.get("/verify/{reference}", response_model=VerifyPaymentResponse)
@limiter.limit(settings.rate_limit_payments)
async def verify_payment(
    request: Request,
    reference: str,
    current_user: CurrentUser = Depends(get_current_user),
    gateway: PaystackClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """Confirm a payment with Paystack and reconcile it."""
    result = await payment_service.verify_payment(
        db, current_user.id, reference, gateway=gateway
    )
    await db.commit()
    return result


@router.post("/webhook")
async def paystack_webhook(
    request: Request,
    x_paystack_signature: Optional[str] = Header(default=None),
    gateway: PaystackClient = Depends(get_payment_gateway),
    db: AsyncSession = Depends(get_db),
):
    """
    Receive Paystack events.

    Always acknowledged so Paystack does not retry; failures are logged.
    """
    raw_body = await request.body()
    try:
        await payment_service.handle_webhook(
            db, raw_body, x_paystack_signature, gateway=gateway
        )
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(
            "webhook_processing_failed",
            error=str(e),
            error_type=type(e).__name__,
        )
    return {"status": "received"}
