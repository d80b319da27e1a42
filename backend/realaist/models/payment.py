"""
Payment model for Paystack transactions.

Amounts are stored in the smallest currency unit (cents). A payment row is
created when a transaction is initialized and is afterwards only mutated by
the verify and webhook handlers. Rows are never deleted.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import BigInteger, DateTime, Enum, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from realaist.core.database import Base, JSONType, new_uuid

PAYMENT_ROW_STATUSES = ("pending", "success", "failed", "refunded")


class Payment(Base):
    """A single Paystack transaction for a campaign."""

    __tablename__ = "payments"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    campaign_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("campaigns.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id: Mapped[str] = mapped_column(String(36), nullable=False)

    # Paystack identifiers
    paystack_reference: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    paystack_access_code: Mapped[Optional[str]] = mapped_column(String(100))
    authorization_url: Mapped[Optional[str]] = mapped_column(Text)

    # Amounts (cents)
    amount_requested: Mapped[int] = mapped_column(BigInteger, nullable=False)
    amount_paid: Mapped[Optional[int]] = mapped_column(BigInteger)
    currency: Mapped[str] = mapped_column(String(3), default="KES", nullable=False)

    status: Mapped[str] = mapped_column(
        Enum(*PAYMENT_ROW_STATUSES, name="payment_status"),
        default="pending",
        nullable=False,
    )
    payment_method: Mapped[Optional[str]] = mapped_column(String(50))
    paid_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    gateway_response: Mapped[Optional[str]] = mapped_column(Text)

    customer_email: Mapped[Optional[str]] = mapped_column(String(255))
    customer_name: Mapped[Optional[str]] = mapped_column(String(255))
    payment_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONType)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (
        Index("ix_payments_campaign_id", "campaign_id"),
        Index("ix_payments_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payment {self.paystack_reference} ({self.status})>"
