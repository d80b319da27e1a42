"""
SQLAlchemy Models

All database models are imported here for easy access and Alembic discovery.
"""

from realaist.models.profile import Profile, Property, USER_TYPES
from realaist.models.campaign import (
    Campaign,
    AD_PLATFORMS,
    AGE_GROUPS,
    CAMPAIGN_STATUSES,
    CAMPAIGN_STATUS_TRANSITIONS,
    PAYMENT_STATUSES,
)
from realaist.models.payment import Payment, PAYMENT_ROW_STATUSES

__all__ = [
    "Profile",
    "Property",
    "USER_TYPES",
    "Campaign",
    "AD_PLATFORMS",
    "AGE_GROUPS",
    "CAMPAIGN_STATUSES",
    "CAMPAIGN_STATUS_TRANSITIONS",
    "PAYMENT_STATUSES",
    "Payment",
    "PAYMENT_ROW_STATUSES",
]
