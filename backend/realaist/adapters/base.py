"""
Base Ad Platform Adapter

Abstract interface the campaign pipeline uses to reach an ad network:
create a campaign for a paid listing promotion, remove it again when an
approval has to be compensated, and read performance back for analytics.

Design principles:
- Platform-agnostic data types
- Async interface for non-blocking callers
- Platform errors translated into one adapter error hierarchy
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import Any, Optional

import structlog

logger = structlog.get_logger()


# =============================================================================
# Data Types
# =============================================================================

class BreakdownDimension(str, Enum):
    """Segments analytics can be broken down by."""
    AGE = "age"
    GENDER = "gender"
    LOCATION = "location"


@dataclass
class PropertyListing:
    """Listing details used to build ad groups and ad copy."""
    id: str
    title: str
    location: Optional[str] = None
    price: Optional[float] = None
    property_type: Optional[str] = None
    bedrooms: Optional[int] = None
    square_feet: Optional[int] = None


@dataclass
class AdCampaignSpec:
    """Everything needed to create an external campaign."""
    name: str
    total_budget: float  # KES handed to the platform
    start_date: date
    end_date: date
    locations: list[str] = field(default_factory=list)
    age_group: Optional[str] = None
    interests: list[str] = field(default_factory=list)
    listings: list[PropertyListing] = field(default_factory=list)

    @property
    def duration_days(self) -> int:
        return (self.end_date - self.start_date).days


@dataclass
class AdCampaignResult:
    """Outcome of an external campaign creation."""
    campaign_id: str
    budget_id: Optional[str] = None
    daily_budget_usd: float = 0.0
    ad_groups: int = 0
    keywords: int = 0
    ads: int = 0
    warnings: list[str] = field(default_factory=list)


@dataclass
class CampaignPerformance:
    """Top-line campaign metrics for a date range."""
    campaign_id: str
    campaign_name: Optional[str] = None
    impressions: int = 0
    clicks: int = 0
    cost_micros: int = 0
    conversions: float = 0.0
    conversion_value: float = 0.0

    @property
    def cost(self) -> float:
        """Cost in account currency units."""
        return self.cost_micros / 1_000_000

    @property
    def ctr(self) -> float:
        """Click-through rate."""
        return (self.clicks / self.impressions * 100) if self.impressions > 0 else 0.0

    @property
    def average_cpc(self) -> float:
        """Average cost per click."""
        return self.cost / self.clicks if self.clicks > 0 else 0.0

    @property
    def cpm(self) -> float:
        """Cost per 1000 impressions."""
        return (self.cost / self.impressions * 1000) if self.impressions > 0 else 0.0


@dataclass
class BreakdownRow:
    """One segment of a demographic or geographic breakdown."""
    segment: str
    impressions: int = 0
    clicks: int = 0
    cost_micros: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "segment": self.segment,
            "impressions": self.impressions,
            "clicks": self.clicks,
            "cost": round(self.cost_micros / 1_000_000, 2),
        }


# =============================================================================
# Error Types
# =============================================================================

class AdapterError(Exception):
    """Base exception for adapter errors."""
    def __init__(self, message: str, platform: str, details: dict = None):
        self.message = message
        self.platform = platform
        self.details = details or {}
        super().__init__(message)


class AuthenticationError(AdapterError):
    """Platform credentials are invalid or expired."""
    pass


class RateLimitError(AdapterError):
    """Platform rate limit exceeded."""
    def __init__(self, message: str, platform: str, retry_after: int = 60):
        super().__init__(message, platform)
        self.retry_after = retry_after


class ValidationError(AdapterError):
    """Request validation failed."""
    pass


class NotFoundError(AdapterError):
    """Campaign or account does not exist on the platform."""
    pass


class PlatformError(AdapterError):
    """Platform-specific error."""
    pass


class ConfigurationError(AdapterError):
    """Adapter credentials are not configured."""
    pass


# =============================================================================
# Base Adapter
# =============================================================================

class BaseAdPlatformAdapter(ABC):
    """
    Abstract base class for ad platform adapters.

    Methods are async so callers can cancel them. Implementations raise
    `AdapterError` subclasses only.
    """

    def __init__(self, platform: str):
        self.platform = platform
        self.logger = logger.bind(platform=platform)

    @abstractmethod
    async def create_campaign(self, spec: AdCampaignSpec) -> AdCampaignResult:
        """
        Create a campaign with its budget, targeting, ad groups and ads.

        Args:
            spec: Campaign details

        Returns:
            Result carrying the platform campaign ID

        Raises:
            AdapterError: If the campaign itself could not be created
        """

    @abstractmethod
    async def remove_campaign(self, campaign_id: str) -> bool:
        """
        Remove a campaign created by `create_campaign`.

        Args:
            campaign_id: Platform campaign ID

        Returns:
            True if removed
        """

    @abstractmethod
    async def get_campaign_performance(
        self,
        campaign_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Optional[CampaignPerformance]:
        """
        Get top-line metrics for a campaign.

        Args:
            campaign_id: Platform campaign ID
            start_date: Start of date range
            end_date: End of date range

        Returns:
            Metrics, or None if the platform has no data for the campaign
        """

    @abstractmethod
    async def get_breakdown(
        self,
        campaign_id: str,
        dimension: BreakdownDimension,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[BreakdownRow]:
        """
        Get metrics segmented by age, gender or location.

        Args:
            campaign_id: Platform campaign ID
            dimension: Breakdown dimension
            start_date: Start of date range
            end_date: End of date range

        Returns:
            One row per segment
        """

    # =========================================================================
    # Utility Methods
    # =========================================================================

    def _log_operation(self, operation: str, **kwargs):
        """Log an adapter operation."""
        self.logger.info(f"adapter_{operation}", **kwargs)

    def _log_error(self, operation: str, error: Exception, **kwargs):
        """Log an adapter error."""
        self.logger.error(
            f"adapter_{operation}_error",
            error=str(error),
            error_type=type(error).__name__,
            **kwargs,
        )
