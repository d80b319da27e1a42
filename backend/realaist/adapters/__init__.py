"""
External Service Adapters

Ad platform adapters implement BaseAdPlatformAdapter and are created through
the registry below. The Paystack client lives beside them.
"""

from realaist.adapters.base import (
    AdCampaignResult,
    AdCampaignSpec,
    AdapterError,
    AuthenticationError,
    BaseAdPlatformAdapter,
    BreakdownDimension,
    BreakdownRow,
    CampaignPerformance,
    ConfigurationError,
    NotFoundError,
    PlatformError,
    PropertyListing,
    RateLimitError,
    ValidationError,
)
from realaist.adapters.google_ads import GoogleAdsAdapter
from realaist.adapters.paystack import PaymentError, PaystackClient


# Adapter registry
_adapters: dict[str, type[BaseAdPlatformAdapter]] = {
    "google": GoogleAdsAdapter,
}


def get_adapter(platform: str) -> BaseAdPlatformAdapter:
    """
    Get an adapter instance for a platform.

    Args:
        platform: Platform name

    Returns:
        Configured adapter instance

    Raises:
        ValueError: If platform is not supported
    """
    adapter_class = _adapters.get(platform)
    if not adapter_class:
        raise ValueError(f"Unsupported platform: {platform}")

    return adapter_class()


__all__ = [
    # Factory
    "get_adapter",
    # Base types
    "BaseAdPlatformAdapter",
    "AdCampaignSpec",
    "AdCampaignResult",
    "BreakdownDimension",
    "BreakdownRow",
    "CampaignPerformance",
    "PropertyListing",
    # Errors
    "AdapterError",
    "AuthenticationError",
    "ConfigurationError",
    "NotFoundError",
    "PlatformError",
    "RateLimitError",
    "ValidationError",
    # Adapters
    "GoogleAdsAdapter",
    "PaystackClient",
    "PaymentError",
]
