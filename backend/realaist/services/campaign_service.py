"""
Campaign service.

Provides functions for:
- Campaign submission with the platform fee split
- Owner and admin campaign listing
- Admin approval (external ad campaign creation, guarded activation)
- Admin rejection with refund of a settled payment
"""

from datetime import date, datetime, timezone
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.adapters import get_adapter
from realaist.adapters.base import (
    AdapterError,
    AdCampaignSpec,
    BaseAdPlatformAdapter,
    PropertyListing,
)
from realaist.adapters.paystack import PaymentError, PaystackClient
from realaist.config import settings
from realaist.core.exceptions import (
    ADS_CREATION_FAILED,
    FORBIDDEN,
    NOT_FOUND,
    NOT_PENDING,
    PAYMENT_NOT_CONFIRMED,
    REFUND_FAILED,
    UNAUTHENTICATED,
    VALIDATION_ERROR,
    CampaignError,
)
from realaist.core.security import SessionData
from realaist.models import AD_PLATFORMS, AGE_GROUPS, Campaign, Payment, Profile, Property

logger = structlog.get_logger()

CENT = Decimal("0.01")

REQUIRED_FIELDS = (
    "budget",
    "duration_start",
    "duration_end",
    "property_ids",
    "target_location",
    "platforms",
)


# =============================================================================
# Fee Split
# =============================================================================

def compute_fee_split(budget: Any, fee_rate: float) -> tuple[Decimal, Decimal]:
    """
    Split a budget into the platform fee and the ad spend.

    Both parts are rounded to cents and always sum to the budget exactly.

    Returns:
        (platform_fee, ad_spend)
    """
    amount = Decimal(str(budget)).quantize(CENT, rounding=ROUND_HALF_UP)
    platform_fee = (amount * Decimal(str(fee_rate))).quantize(CENT, rounding=ROUND_HALF_UP)
    return platform_fee, amount - platform_fee


# =============================================================================
# Submission
# =============================================================================

def _parse_date(value: Any, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        raise CampaignError(VALIDATION_ERROR, f"Invalid date for {field}", field=field)


def _parse_budget(value: Any) -> Decimal:
    try:
        budget = Decimal(str(value))
    except InvalidOperation:
        raise CampaignError(VALIDATION_ERROR, "Budget must be a number", field="budget")
    if not budget.is_finite() or budget <= 0:
        raise CampaignError(VALIDATION_ERROR, "Budget must be positive", field="budget")
    if budget < settings.min_campaign_budget:
        raise CampaignError(
            VALIDATION_ERROR,
            f"Budget must be at least KES {settings.min_campaign_budget:,}",
            field="budget",
        )
    return budget


def validate_submission(data: dict[str, Any]) -> dict[str, Any]:
    """
    Validate and normalize a campaign submission.

    Raises:
        CampaignError: `validation_error` naming the offending field
    """
    for field in REQUIRED_FIELDS:
        value = data.get(field)
        if value is None or value == "" or value == []:
            raise CampaignError(
                VALIDATION_ERROR, f"Missing required field: {field}", field=field
            )

    platforms = list(dict.fromkeys(data["platforms"]))
    unknown = [p for p in platforms if p not in AD_PLATFORMS]
    if unknown:
        raise CampaignError(
            VALIDATION_ERROR, f"Unsupported platforms: {', '.join(unknown)}", field="platforms"
        )

    age_group = data.get("target_age_group") or None
    if age_group is not None and age_group not in AGE_GROUPS:
        raise CampaignError(VALIDATION_ERROR, "Unknown age group", field="target_age_group")

    start = _parse_date(data["duration_start"], "duration_start")
    end = _parse_date(data["duration_end"], "duration_end")
    if start > end:
        raise CampaignError(
            VALIDATION_ERROR, "Campaign end date must be on or after the start date", field="duration_end"
        )

    return {
        "budget": _parse_budget(data["budget"]),
        "duration_start": start,
        "duration_end": end,
        "property_ids": list(dict.fromkeys(data["property_ids"])),
        "target_location": list(data["target_location"]),
        "target_age_group": age_group,
        "audience_interests": list(data.get("audience_interests") or []),
        "platforms": platforms,
        "campaign_name": data.get("campaign_name"),
    }


async def create_campaign(
    db: AsyncSession,
    user_id: str,
    data: dict[str, Any],
    fee_rate: Optional[float] = None,
) -> Campaign:
    """
    Create a pending campaign from a user submission.

    Args:
        db: Database session
        user_id: Submitting user
        data: Submitted fields
        fee_rate: Platform fee rate, defaults to the configured campaign rate

    Returns:
        The new campaign in pending/pending state
    """
    clean = validate_submission(data)
    fee_rate = settings.campaign_fee_rate if fee_rate is None else fee_rate
    platform_fee, ad_spend = compute_fee_split(clean["budget"], fee_rate)
    budget = platform_fee + ad_spend

    campaign = Campaign(
        user_id=user_id,
        campaign_name=clean["campaign_name"] or f"Property Campaign - {date.today().isoformat()}",
        target_location=clean["target_location"],
        target_age_group=clean["target_age_group"],
        audience_interests=clean["audience_interests"],
        duration_start=clean["duration_start"],
        duration_end=clean["duration_end"],
        user_budget=budget,
        platform_fee=platform_fee,
        ad_spend=ad_spend,
        total_paid=budget,
        status="pending",
        payment_status="pending",
        property_ids=clean["property_ids"],
        platforms=clean["platforms"],
    )
    db.add(campaign)
    await db.flush()

    logger.info(
        "campaign_created",
        campaign_id=campaign.id,
        user_id=user_id,
        user_budget=str(budget),
        platform_fee=str(platform_fee),
        ad_spend=str(ad_spend),
        platforms=clean["platforms"],
    )

    return campaign


# =============================================================================
# Queries
# =============================================================================

async def list_user_campaigns(db: AsyncSession, user_id: str) -> list[Campaign]:
    """Campaigns owned by a user, newest first."""
    result = await db.execute(
        select(Campaign)
        .where(Campaign.user_id == user_id)
        .order_by(Campaign.created_at.desc())
    )
    return list(result.scalars().all())


async def get_user_campaign(db: AsyncSession, user_id: str, campaign_id: str) -> Campaign:
    """
    Get a campaign owned by a user.

    Raises:
        CampaignError: `not_found` for missing campaigns and campaigns of other users
    """
    campaign = await db.get(Campaign, campaign_id)
    if campaign is None or campaign.user_id != user_id:
        raise CampaignError(NOT_FOUND, "Campaign not found")
    return campaign


async def list_campaigns_for_review(
    db: AsyncSession,
    status: Optional[str] = None,
    payment_status: Optional[str] = None,
) -> list[Campaign]:
    """All campaigns for the admin queue, optionally filtered."""
    query = select(Campaign).order_by(Campaign.created_at.desc())
    if status:
        query = query.where(Campaign.status == status)
    if payment_status:
        query = query.where(Campaign.payment_status == payment_status)
    result = await db.execute(query)
    return list(result.scalars().all())


# =============================================================================
# Admin Decisions
# =============================================================================

async def require_admin_session(db: AsyncSession, session: Optional[SessionData]) -> Profile:
    """
    Ensure the acting principal is a provider-verified admin.

    Locally mocked sessions are refused because the downstream ad platform
    call must be attributable to a real signed-in admin.

    Raises:
        CampaignError: `unauthenticated` or `forbidden`
    """
    if session is None or not session.is_verified:
        raise CampaignError(UNAUTHENTICATED, "A verified session is required")

    profile = await db.get(Profile, session.user_id)
    is_admin = profile.is_admin if profile is not None else session.role == "admin"
    if not is_admin:
        raise CampaignError(FORBIDDEN, "Admin access required")
    return profile


async def _load_listings(db: AsyncSession, property_ids: list[str]) -> list[PropertyListing]:
    if not property_ids:
        return []
    result = await db.execute(select(Property).where(Property.id.in_(property_ids)))
    return [
        PropertyListing(
            id=p.id,
            title=p.title,
            location=p.location,
            price=float(p.price) if p.price is not None else None,
            property_type=p.property_type,
            bedrooms=p.bedrooms,
            square_feet=p.square_feet,
        )
        for p in result.scalars().all()
    ]


async def approve_campaign(
    db: AsyncSession,
    session: Optional[SessionData],
    campaign_id: str,
    ads_adapter: Optional[BaseAdPlatformAdapter] = None,
) -> Campaign:
    """
    Approve a paid campaign and activate it.

    When Google is among the campaign's platforms the external campaign is
    created first; if that fails nothing is written and the campaign stays
    pending. Activation is a single guarded UPDATE, so a concurrent approval
    cannot activate the row twice.

    Args:
        db: Database session
        session: Acting admin session
        campaign_id: Campaign to approve
        ads_adapter: Google Ads adapter, resolved from the registry if omitted

    Returns:
        The active campaign

    Raises:
        CampaignError: unauthenticated, forbidden, not_found, not_pending,
            payment_not_confirmed or ads_creation_failed
    """
    await require_admin_session(db, session)

    campaign = await db.get(Campaign, campaign_id)
    if campaign is None:
        raise CampaignError(NOT_FOUND, "Campaign not found")
    if not campaign.can_transition_to("active"):
        raise CampaignError(NOT_PENDING, f"Campaign is {campaign.status}, not pending")
    if campaign.payment_status != "success":
        raise CampaignError(
            PAYMENT_NOT_CONFIRMED,
            f"Payment status is {campaign.payment_status}; approval requires a confirmed payment",
        )

    google_ads_campaign_id = None
    adapter = None
    if campaign.targets_google:
        adapter = ads_adapter or get_adapter("google")
        spec = AdCampaignSpec(
            name=campaign.campaign_name,
            total_budget=float(campaign.ad_spend),
            start_date=campaign.duration_start,
            end_date=campaign.duration_end,
            locations=list(campaign.target_location or []),
            age_group=campaign.target_age_group,
            interests=list(campaign.audience_interests or []),
            listings=await _load_listings(db, list(campaign.property_ids or [])),
        )
        try:
            result = await adapter.create_campaign(spec)
        except AdapterError as e:
            logger.error(
                "campaign_ads_creation_failed",
                campaign_id=campaign_id,
                error=e.message,
                error_type=type(e).__name__,
            )
            raise CampaignError(ADS_CREATION_FAILED, e.message)
        except Exception as e:
            logger.error(
                "campaign_ads_creation_failed",
                campaign_id=campaign_id,
                error=str(e),
                error_type=type(e).__name__,
                exc_info=True,
            )
            raise CampaignError(ADS_CREATION_FAILED, str(e) or type(e).__name__)
        google_ads_campaign_id = result.campaign_id

    now = datetime.now(timezone.utc)
    outcome = await db.execute(
        update(Campaign)
        .where(
            Campaign.id == campaign_id,
            Campaign.status == "pending",
            Campaign.payment_status == "success",
        )
        .values(
            status="active",
            google_ads_campaign_id=google_ads_campaign_id,
            approved_by_id=session.user_id,
            approved_at=now,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )

    if outcome.rowcount != 1:
        logger.warning("campaign_approval_lost_race", campaign_id=campaign_id)
        if google_ads_campaign_id and adapter is not None:
            try:
                await adapter.remove_campaign(google_ads_campaign_id)
            except AdapterError as e:
                logger.error(
                    "campaign_ads_compensation_failed",
                    campaign_id=campaign_id,
                    google_ads_campaign_id=google_ads_campaign_id,
                    error=e.message,
                )
        raise CampaignError(NOT_PENDING, "Campaign is no longer pending")

    await db.refresh(campaign)

    logger.info(
        "campaign_approved",
        campaign_id=campaign_id,
        approved_by=session.user_id,
        google_ads_campaign_id=google_ads_campaign_id,
    )

    return campaign


async def reject_campaign(
    db: AsyncSession,
    session: Optional[SessionData],
    campaign_id: str,
    reason: Optional[str] = None,
    payment_gateway: Optional[PaystackClient] = None,
) -> Campaign:
    """
    Reject a pending campaign, refunding its payment if it was settled.

    The row is locked before the refund is issued and the refund happens
    before any state is written, so a failed refund leaves the campaign
    untouched.

    Raises:
        CampaignError: unauthenticated, forbidden, not_found, not_pending or refund_failed
    """
    await require_admin_session(db, session)

    result = await db.execute(
        select(Campaign).where(Campaign.id == campaign_id).with_for_update()
    )
    campaign = result.scalar_one_or_none()
    if campaign is None:
        raise CampaignError(NOT_FOUND, "Campaign not found")
    if campaign.status != "pending":
        raise CampaignError(NOT_PENDING, f"Campaign is {campaign.status}, not pending")

    payment_status = campaign.payment_status
    if payment_status == "success":
        payment = await _settled_payment(db, campaign)
        if payment is not None:
            gateway = payment_gateway or PaystackClient()
            try:
                await gateway.refund_transaction(
                    payment.paystack_reference,
                    merchant_note=f"Campaign rejected: {reason}" if reason else "Campaign rejected",
                )
            except PaymentError as e:
                logger.error(
                    "campaign_refund_failed",
                    campaign_id=campaign_id,
                    reference=payment.paystack_reference,
                    error=e.message,
                )
                raise CampaignError(REFUND_FAILED, e.message)
            payment.status = "refunded"
            payment_status = "refunded"
            logger.info(
                "campaign_payment_refunded",
                campaign_id=campaign_id,
                reference=payment.paystack_reference,
                amount=payment.amount_paid,
            )

    now = datetime.now(timezone.utc)
    outcome = await db.execute(
        update(Campaign)
        .where(Campaign.id == campaign_id, Campaign.status == "pending")
        .values(
            status="failed",
            payment_status=payment_status,
            rejection_reason=reason,
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    if outcome.rowcount != 1:
        raise CampaignError(NOT_PENDING, "Campaign is no longer pending")

    await db.refresh(campaign)

    logger.info(
        "campaign_rejected",
        campaign_id=campaign_id,
        rejected_by=session.user_id,
        reason=reason,
        payment_status=payment_status,
    )

    return campaign


async def _settled_payment(db: AsyncSession, campaign: Campaign) -> Optional[Payment]:
    query = select(Payment).where(
        Payment.campaign_id == campaign.id,
        Payment.status == "success",
    )
    if campaign.payment_id:
        query = select(Payment).where(Payment.id == campaign.payment_id)
    result = await db.execute(query.order_by(Payment.created_at.desc()).limit(1))
    return result.scalar_one_or_none()
