"""
Profile and property models.

Both tables belong to the marketplace and are owned by other services; the
campaign pipeline only reads them (roles for admin checks, listing details
for ad copy).
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, Enum, ForeignKey, Index, Integer, Numeric, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from realaist.core.database import Base, new_uuid

USER_TYPES = ("admin", "developer", "buyer", "host")


class Profile(Base):
    """Marketplace account profile. `id` is the auth provider's user id."""

    __tablename__ = "profiles"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    full_name: Mapped[Optional[str]] = mapped_column(String(255))
    user_type: Mapped[str] = mapped_column(
        Enum(*USER_TYPES, name="user_type"),
        default="buyer",
        nullable=False,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self) -> str:
        return f"<Profile {self.email} ({self.user_type})>"

    @property
    def is_admin(self) -> bool:
        return self.user_type == "admin"


class Property(Base):
    """Property listing referenced by campaigns."""

    __tablename__ = "properties"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_uuid)
    developer_id: Mapped[Optional[str]] = mapped_column(
        String(36),
        ForeignKey("profiles.id", ondelete="SET NULL"),
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[Optional[str]] = mapped_column(Text)
    location: Mapped[Optional[str]] = mapped_column(String(255))
    price: Mapped[Optional[Decimal]] = mapped_column(Numeric(14, 2))
    property_type: Mapped[Optional[str]] = mapped_column(String(100))
    bedrooms: Mapped[Optional[int]] = mapped_column(Integer)
    bathrooms: Mapped[Optional[int]] = mapped_column(Integer)
    square_feet: Mapped[Optional[int]] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
    )

    __table_args__ = (Index("ix_properties_developer_id", "developer_id"),)

    def __repr__(self) -> str:
        return f"<Property {self.title} [{self.id}]>"
