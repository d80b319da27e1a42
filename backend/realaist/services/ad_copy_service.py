"""
Ad Copy Service

Builds search ad copy and keywords for property listings.

Features:
- Keywords from audience interests and listing details
- Responsive search ad headlines and descriptions
- Enforce Google Ads character limits
"""

import re
from typing import Iterable, Optional, Sequence

from realaist.adapters.base import PropertyListing


# =============================================================================
# Character Limits
# =============================================================================

GOOGLE_LIMITS = {
    "headline": 30,
    "description": 90,
    "path": 15,
}

MAX_HEADLINES = 15
MAX_DESCRIPTIONS = 4
MAX_KEYWORDS = 50

GENERIC_KEYWORDS = (
    "property for sale",
    "houses for sale",
    "real estate",
    "buy property",
    "buy house",
)

GENERIC_HEADLINES = (
    "Premium Property for Sale",
    "Your Dream Home Awaits",
    "Quality Living Spaces",
    "Modern Real Estate",
    "Invest in Real Estate",
    "Exclusive Properties",
    "Best Property Deals",
)


def _clip(text: str, kind: str) -> str:
    return text[: GOOGLE_LIMITS[kind]]


def generate_keywords(
    interests: Iterable[str],
    listings: Sequence[PropertyListing],
    limit: int = MAX_KEYWORDS,
) -> list[str]:
    """
    Keywords for an ad group, de-duplicated in insertion order.

    Args:
        interests: Audience interests chosen for the campaign
        listings: Listings the ad group promotes
        limit: Maximum number of keywords

    Returns:
        Lower-case keyword texts
    """
    keywords: dict[str, None] = {}

    def add(text: str) -> None:
        keywords.setdefault(text, None)

    for interest in interests:
        interest = interest.lower()
        add(interest)
        add(f"{interest} property")
        add(f"{interest} real estate")

    for listing in listings:
        if listing.location:
            location = listing.location.lower()
            add(f"property in {location}")
            add(f"house in {location}")
            add(f"{location} real estate")
        if listing.property_type:
            property_type = listing.property_type.lower()
            add(property_type)
            add(f"{property_type} for sale")
        if listing.bedrooms:
            add(f"{listing.bedrooms} bedroom house")
            add(f"{listing.bedrooms} bedroom property")

    for keyword in GENERIC_KEYWORDS:
        add(keyword)

    return list(keywords)[:limit]


def generate_headlines(listing: PropertyListing) -> list[str]:
    """Up to fifteen unique headlines of at most 30 characters."""
    headlines = []
    location = listing.location or "Kenya"

    if listing.property_type and listing.location:
        headlines.append(_clip(f"{listing.property_type} in {listing.location}", "headline"))
    if listing.bedrooms:
        headlines.append(
            _clip(f"{listing.bedrooms} Bedroom {listing.property_type or 'House'}", "headline")
        )
    if listing.price:
        headlines.append(_clip(f"KES {float(listing.price) / 1_000_000:.1f}M - Great Deal", "headline"))

    headlines.extend(GENERIC_HEADLINES)
    for template in ("Property in {}", "Homes in {}", "Real Estate in {}", "Buy a Home in {}"):
        headlines.append(_clip(template.format(location), "headline"))

    # Google rejects repeated headlines within one ad
    return list(dict.fromkeys(headlines))[:MAX_HEADLINES]


def generate_descriptions(listing: PropertyListing) -> list[str]:
    descriptions = []

    summary = f"{listing.property_type or 'Property'} with {listing.bedrooms or 'multiple'} bedrooms"
    if listing.square_feet:
        summary += f", {listing.square_feet} sq ft"
    descriptions.append(_clip(summary, "description"))
    descriptions.append(
        _clip(f"Located in {listing.location or 'prime area'}. Modern amenities included.", "description")
    )
    descriptions.append(_clip("Contact us today for viewing. Financing options available.", "description"))
    descriptions.append(
        _clip("Quality construction, great location, excellent value for money.", "description")
    )
    return descriptions[:MAX_DESCRIPTIONS]


def display_path(location: Optional[str]) -> str:
    """Second display URL path segment derived from the listing location."""
    if not location:
        return ""
    return _clip(re.sub(r"\s+", "-", location.lower()), "path")
