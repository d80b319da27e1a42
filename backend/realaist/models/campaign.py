"""
Campaign model for paid property promotion.

A campaign moves through two coupled fields: the lifecycle `status` and the
`payment_status` mirrored from its payment.

    status:          pending -> active -> completed
                            +-> failed
    payment_status:  pending -> processing -> success -> refunded
                                           +-> failed / cancelled

A campaign may only become active once its payment succeeded and, when
Google Ads is among its platforms, an external campaign id was obtained.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import (
    CheckConstraint,
    Date,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from realaist.core.database import Base, JSONType, new_uuid


CAMPAIGN_STATUSES = ("pending", "active", "failed", "completed")
PAYMENT_STATUSES = ("pending", "processing", "success", "failed", "refunded", "cancelled")
AGE_GROUPS = ("18-24", "25-34", "35-44", "45-54", "55-64", "65+")
AD_PLATFORMS = ("google", "meta")

CAMPAIGN_STATUS_TRANSITIONS = {
    "pending": ["active", "failed"],
    "active": ["completed", "failed"],
    "failed": [],
    "completed": [],
}


class Campaign(Base):
    """
    Paid advertising campaign for one or more property listings.

    Money columns are in KES. `user_budget` is what the owner pays,
    `platform_fee` is withheld and `ad_spend` is handed to the ad platforms.
    """

    __tablename__ = "campaigns"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)

    user_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="CASCADE"),
        nullable=False,
    )
    campaign_name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Targeting
    target_location: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    target_age_group: Mapped[Optional[str]] = mapped_column(
        Enum(*AGE_GROUPS, name="target_age_group"),
    )
    audience_interests: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Schedule
    duration_start: Mapped[date] = mapped_column(Date, nullable=False)
    duration_end: Mapped[date] = mapped_column(Date, nullable=False)

    # Money
    user_budget: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    ad_spend: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    total_paid: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)

    # Lifecycle
    status: Mapped[str] = mapped_column(
        Enum(*CAMPAIGN_STATUSES, name="campaign_status"),
        default="pending",
        nullable=False,
    )
    payment_status: Mapped[str] = mapped_column(
        Enum(*PAYMENT_STATUSES, name="campaign_payment_status"),
        default="pending",
        nullable=False,
    )
    payment_id: Mapped[Optional[str]] = mapped_column(String(36))
    rejection_reason: Mapped[Optional[str]] = mapped_column(Text)

    # External references
    google_ads_campaign_id: Mapped[Optional[str]] = mapped_column(String(100))
    property_ids: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)
    platforms: Mapped[list] = mapped_column(JSONType, default=list, nullable=False)

    # Approval audit
    approved_by_id: Mapped[Optional[str]] = mapped_column(String(36))
    approved_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

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
        Index("ix_campaigns_user_id", "user_id"),
        Index("ix_campaigns_status", "status"),
        Index("ix_campaigns_google_ads_campaign_id", "google_ads_campaign_id"),
        Index("ix_campaigns_created_at", "created_at"),
        CheckConstraint("user_budget > 0", name="ck_campaigns_positive_budget"),
        CheckConstraint(
            "duration_end >= duration_start",
            name="ck_campaigns_valid_dates",
        ),
    )

    def __repr__(self) -> str:
        return f"<Campaign {self.campaign_name} ({self.status}/{self.payment_status}) [{self.id}]>"

    def can_transition_to(self, new_status: str) -> bool:
        """Check if transition to new status is valid."""
        return new_status in CAMPAIGN_STATUS_TRANSITIONS.get(self.status, [])

    @property
    def targets_google(self) -> bool:
        return "google" in (self.platforms or [])

    @property
    def duration_days(self) -> int:
        return (self.duration_end - self.duration_start).days
