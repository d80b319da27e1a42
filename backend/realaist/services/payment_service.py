"""
Payment service.

Provides functions for:
- Paystack transaction initialization for a campaign
- Pull-based payment verification
- Webhook ingestion (charge.success / charge.failed)

Verification and webhooks share one reconciliation path, which is
idempotent by Paystack reference: a payment already marked successful is
never re-applied.
"""

import json
import time
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Optional

import structlog
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from realaist.adapters.paystack import PaymentError, PaystackClient
from realaist.config import settings
from realaist.core.exceptions import NOT_FOUND, NOT_PENDING, CampaignError
from realaist.core.security import verify_paystack_signature
from realaist.models import Campaign, Payment

logger = structlog.get_logger()

CHARGE_SUCCESS = "charge.success"
CHARGE_FAILED = "charge.failed"


# =============================================================================
# Helpers
# =============================================================================

def to_cents(amount: Any) -> int:
    """Convert a currency amount to the smallest unit."""
    return int((Decimal(str(amount)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def is_payment_required(campaign: Campaign) -> bool:
    """True while a pending campaign has not been paid for."""
    return campaign.status == "pending" and campaign.payment_status != "success"


def generate_reference(campaign_id: str, now: Optional[float] = None) -> str:
    """Build a Paystack reference of the form `campaign_<id>_<epoch ms>`."""
    epoch_ms = int((now if now is not None else time.time()) * 1000)
    return f"campaign_{campaign_id}_{epoch_ms}"


def _parse_paid_at(value: Any) -> Optional[datetime]:
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    try:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        logger.warning("payment_paid_at_unparseable", value=value)
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


async def _settle_late_charge(
    db: AsyncSession,
    payment: Payment,
    gateway: Optional[PaystackClient],
) -> None:
    """
    Handle a charge that settled after its campaign stopped waiting for it.

    A rejected campaign gets the money back. If the refund fails the
    campaign keeps `payment_status=success` next to `status=failed`, which
    marks it for a manual refund.
    """
    campaign = await db.get(Campaign, payment.campaign_id)
    if campaign is None:
        logger.error("payment_campaign_missing", reference=payment.paystack_reference)
        return
    await db.refresh(campaign)

    if campaign.status != "failed":
        logger.warning(
            "payment_for_closed_campaign",
            reference=payment.paystack_reference,
            campaign_id=campaign.id,
            campaign_status=campaign.status,
        )
        return

    gateway = gateway or PaystackClient()
    try:
        await gateway.refund_transaction(
            payment.paystack_reference,
            merchant_note="Campaign rejected before payment completed",
        )
    except PaymentError as e:
        campaign.payment_status = "success"
        campaign.payment_id = payment.id
        await db.flush()
        logger.error(
            "payment_late_refund_failed",
            reference=payment.paystack_reference,
            campaign_id=campaign.id,
            error=e.message,
        )
        return

    await db.refresh(payment)
    payment.status = "refunded"
    campaign.payment_status = "refunded"
    campaign.payment_id = payment.id
    await db.flush()
    logger.info(
        "payment_late_charge_refunded",
        reference=payment.paystack_reference,
        campaign_id=campaign.id,
    )


# =============================================================================
# Initialization
# =============================================================================

async def initialize_payment(
    db: AsyncSession,
    user_id: str,
    campaign_id: str,
    email: str,
    metadata: Optional[dict] = None,
    gateway: Optional[PaystackClient] = None,
) -> dict[str, Any]:
    """
    Start a Paystack transaction for a campaign.

    Args:
        db: Database session
        user_id: Campaign owner
        campaign_id: Campaign to pay for
        email: Customer email
        metadata: Extra data echoed back by Paystack
        gateway: Paystack client

    Returns:
        `{reference, access_code, authorization_url, amount, currency}`

    Raises:
        CampaignError: `not_found` if the campaign is missing or not owned,
            `not_pending` if it no longer needs payment
        PaymentError: Paystack refused the transaction
    """
    campaign = await db.get(Campaign, campaign_id)
    if campaign is None or campaign.user_id != user_id:
        raise CampaignError(NOT_FOUND, "Campaign not found")
    if not is_payment_required(campaign):
        raise CampaignError(NOT_PENDING, "Campaign does not require payment")

    gateway = gateway or PaystackClient()
    reference = generate_reference(campaign.id)
    amount = to_cents(campaign.user_budget)
    currency = settings.paystack_currency

    payload_metadata = {
        "campaign_id": campaign.id,
        "user_id": user_id,
        "campaign_name": campaign.campaign_name,
        **(metadata or {}),
    }

    data = await gateway.initialize_transaction(
        email=email,
        amount=amount,
        reference=reference,
        metadata=payload_metadata,
        currency=currency,
    )

    payment = Payment(
        campaign_id=campaign.id,
        user_id=user_id,
        paystack_reference=data.get("reference") or reference,
        paystack_access_code=data.get("access_code"),
        authorization_url=data.get("authorization_url"),
        amount_requested=amount,
        currency=currency,
        status="pending",
        customer_email=email,
        customer_name=(metadata or {}).get("customer_name"),
        payment_metadata=payload_metadata,
    )
    db.add(payment)
    campaign.payment_status = "processing"
    await db.flush()

    logger.info(
        "payment_initialized",
        campaign_id=campaign.id,
        reference=payment.paystack_reference,
        amount=amount,
        currency=currency,
    )

    return {
        "reference": payment.paystack_reference,
        "access_code": payment.paystack_access_code,
        "authorization_url": payment.authorization_url,
        "amount": amount,
        "currency": currency,
    }


# =============================================================================
# Reconciliation
# =============================================================================

async def apply_charge_event(
    db: AsyncSession,
    event: str,
    data: dict[str, Any],
    gateway: Optional[PaystackClient] = None,
) -> Optional[Payment]:
    """
    Apply a charge outcome to the payment and its campaign.

    Safe under at-least-once delivery. `amount_paid` is assigned from the
    event, never accumulated. Amount and currency mismatches are logged but
    do not block the update. A success for a campaign that was rejected in
    the meantime is refunded.

    Returns:
        The payment, or None when the reference is unknown
    """
    reference = data.get("reference")
    result = await db.execute(select(Payment).where(Payment.paystack_reference == reference))
    payment = result.scalar_one_or_none()
    if payment is None:
        logger.warning("payment_unknown_reference", reference=reference, paystack_event=event)
        return None

    if event == CHARGE_SUCCESS:
        amount = data.get("amount")
        amount_paid = int(amount) if amount is not None else payment.amount_requested
        if amount_paid != payment.amount_requested:
            logger.warning(
                "payment_amount_mismatch",
                reference=reference,
                expected=payment.amount_requested,
                received=amount_paid,
            )
        currency = data.get("currency") or payment.currency
        if currency != payment.currency:
            logger.warning(
                "payment_currency_mismatch",
                reference=reference,
                expected=payment.currency,
                received=currency,
            )

        outcome = await db.execute(
            update(Payment)
            .where(
                Payment.id == payment.id,
                Payment.status.in_(("pending", "failed")),
            )
            .values(
                status="success",
                amount_paid=amount_paid,
                currency=currency,
                payment_method=data.get("channel"),
                paid_at=_parse_paid_at(data.get("paid_at")) or datetime.now(timezone.utc),
                gateway_response=data.get("gateway_response"),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            logger.info("payment_already_processed", reference=reference, status=payment.status)
            return payment

        campaign_outcome = await db.execute(
            update(Campaign)
            .where(Campaign.id == payment.campaign_id, Campaign.status == "pending")
            .values(
                payment_status="success",
                payment_id=payment.id,
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if campaign_outcome.rowcount != 1:
            await _settle_late_charge(db, payment, gateway)
        else:
            logger.info(
                "payment_succeeded",
                reference=reference,
                campaign_id=payment.campaign_id,
                amount_paid=amount_paid,
            )

    elif event == CHARGE_FAILED:
        outcome = await db.execute(
            update(Payment)
            .where(Payment.id == payment.id, Payment.status == "pending")
            .values(
                status="failed",
                payment_method=data.get("channel"),
                gateway_response=data.get("gateway_response"),
                updated_at=datetime.now(timezone.utc),
            )
            .execution_options(synchronize_session=False)
        )
        if outcome.rowcount != 1:
            logger.info("payment_already_processed", reference=reference, status=payment.status)
            return payment

        await db.execute(
            update(Campaign)
            .where(Campaign.id == payment.campaign_id, Campaign.payment_status != "success")
            .values(payment_status="failed", updated_at=datetime.now(timezone.utc))
            .execution_options(synchronize_session=False)
        )
        logger.info("payment_failed", reference=reference, campaign_id=payment.campaign_id)

    else:
        logger.info("payment_event_ignored", reference=reference, paystack_event=event)
        return payment

    await db.refresh(payment)
    campaign = await db.get(Campaign, payment.campaign_id)
    if campaign is not None:
        await db.refresh(campaign)
    return payment


async def verify_payment(
    db: AsyncSession,
    user_id: str,
    reference: str,
    gateway: Optional[PaystackClient] = None,
) -> dict[str, Any]:
    """
    Confirm a payment by asking Paystack directly.

    Independent of webhook delivery; applies the same reconciliation.

    Returns:
        `{status, amount, amount_paid, paid_at, channel, reference, currency}`
        with amounts in cents

    Raises:
        CampaignError: `not_found` if the payment is missing or not owned
        PaymentError: Paystack could not verify the transaction
    """
    result = await db.execute(select(Payment).where(Payment.paystack_reference == reference))
    payment = result.scalar_one_or_none()
    if payment is None or payment.user_id != user_id:
        raise CampaignError(NOT_FOUND, "Payment not found")

    gateway = gateway or PaystackClient()
    transaction = await gateway.verify_transaction(reference)
    provider_status = transaction.get("status")

    if provider_status == "success":
        await apply_charge_event(
            db, CHARGE_SUCCESS, {**transaction, "reference": reference}, gateway=gateway
        )
    elif provider_status == "failed":
        await apply_charge_event(
            db, CHARGE_FAILED, {**transaction, "reference": reference}, gateway=gateway
        )
    else:
        logger.info("payment_verification_unsettled", reference=reference, status=provider_status)

    logger.info("payment_verified", reference=reference, status=payment.status)

    return {
        "status": payment.status,
        "reference": payment.paystack_reference,
        "amount": payment.amount_requested,
        "amount_paid": payment.amount_paid,
        "currency": payment.currency,
        "paid_at": payment.paid_at.isoformat() if payment.paid_at else None,
        "channel": payment.payment_method,
    }


async def handle_webhook(
    db: AsyncSession,
    raw_body: bytes,
    signature: Optional[str],
    secret: Optional[str] = None,
    gateway: Optional[PaystackClient] = None,
) -> bool:
    """
    Process a Paystack webhook delivery.

    Deliveries with a missing or invalid `x-paystack-signature` are ignored.

    Returns:
        True if the event was applied to a known payment
    """
    if not verify_paystack_signature(raw_body, signature, secret):
        logger.warning("payment_webhook_invalid_signature")
        return False

    try:
        envelope = json.loads(raw_body)
    except ValueError:
        logger.warning("payment_webhook_malformed_body")
        return False

    event = envelope.get("event")
    data = envelope.get("data") or {}
    logger.info("payment_webhook_received", paystack_event=event, reference=data.get("reference"))

    if event not in (CHARGE_SUCCESS, CHARGE_FAILED):
        logger.info("payment_webhook_event_unhandled", paystack_event=event)
        return False

    payment = await apply_charge_event(db, event, data, gateway=gateway)
    return payment is not None
