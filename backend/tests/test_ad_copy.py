"""
Tests for ad copy generation and Google Ads budget/targeting helpers.
"""

from datetime import date
from unittest.mock import MagicMock

import pytest
from google.auth.exceptions import RefreshError

from realaist.adapters.base import (
    AdCampaignSpec,
    AuthenticationError,
    PlatformError,
    PropertyListing,
)
from realaist.adapters.google_ads import (
    KENYA_COUNTRY_TARGET,
    GoogleAdsAdapter,
    _date_clause,
    daily_budget_usd,
    geo_target_ids,
)
from realaist.services import ad_copy_service

LISTING = PropertyListing(
    id="prop-1",
    title="Garden Apartments",
    location="Kilimani",
    price=12_500_000,
    property_type="Apartment",
    bedrooms=3,
    square_feet=1400,
)


class TestAdCopy:
    """Headlines, descriptions and keywords."""

    def test_headlines_within_limits(self):
        headlines = ad_copy_service.generate_headlines(LISTING)

        assert headlines[:3] == ["Apartment in Kilimani", "3 Bedroom Apartment", "KES 12.5M - Great Deal"]
        assert len(headlines) <= ad_copy_service.MAX_HEADLINES
        assert len(set(headlines)) == len(headlines)
        assert all(len(h) <= 30 for h in headlines)

    def test_headlines_for_sparse_listing(self):
        headlines = ad_copy_service.generate_headlines(PropertyListing(id="p", title="Plot"))

        assert "Property in Kenya" in headlines
        assert all(len(h) <= 30 for h in headlines)

    def test_descriptions_within_limits(self):
        descriptions = ad_copy_service.generate_descriptions(LISTING)

        assert descriptions[0] == "Apartment with 3 bedrooms, 1400 sq ft"
        assert len(descriptions) == ad_copy_service.MAX_DESCRIPTIONS
        assert all(len(d) <= 90 for d in descriptions)

    def test_keywords_deduplicated(self):
        keywords = ad_copy_service.generate_keywords(["Real Estate", "Investment"], [LISTING])

        assert keywords[0] == "real estate"
        assert keywords.count("real estate") == 1
        assert "property in kilimani" in keywords
        assert "3 bedroom house" in keywords

    def test_keyword_limit(self):
        assert len(ad_copy_service.generate_keywords(["Investment"], [LISTING], limit=5)) == 5

    @pytest.mark.parametrize(
        "location,expected",
        [(None, ""), ("Kilimani", "kilimani"), ("Karen Estate Area Nairobi", "karen-estate-ar")],
    )
    def test_display_path(self, location, expected):
        assert ad_copy_service.display_path(location) == expected


class TestGoogleAdsHelpers:

    def test_geo_targets_deduplicated(self):
        assert geo_target_ids(["Nairobi", "Kilimani"]) == ["1001356"]
        assert geo_target_ids(["Mombasa", "Thika", "Ruiru"]) == ["1001357", "1001358"]

    def test_unknown_locations_target_kenya(self):
        assert geo_target_ids(["Atlantis"]) == [KENYA_COUNTRY_TARGET]
        assert geo_target_ids([]) == [KENYA_COUNTRY_TARGET]

    def test_daily_budget_spread_over_days(self):
        assert daily_budget_usd(6_000, 30, exchange_rate=134, minimum=1.0) == pytest.approx(6_000 / 134 / 30)

    def test_daily_budget_floor(self):
        assert daily_budget_usd(100, 30, exchange_rate=134, minimum=1.0) == 1.0

    def test_zero_duration_uses_total(self):
        assert daily_budget_usd(1_340, 0, exchange_rate=134, minimum=1.0) == pytest.approx(10.0)

    def test_date_clause(self):
        assert _date_clause(None, None) == ""
        assert _date_clause(date(2026, 10, 1), date(2026, 10, 15)) == (
            " AND segments.date BETWEEN '2026-10-01' AND '2026-10-15'"
        )
        assert _date_clause(date(2026, 10, 1), None) == " AND segments.date >= '2026-10-01'"


class TestCreateCampaignErrors:
    """Failures outside GoogleAdsException still surface as adapter errors."""

    @pytest.fixture
    def spec(self):
        return AdCampaignSpec(
            name="Garden Apartments Campaign",
            total_budget=6_000,
            start_date=date(2026, 11, 1),
            end_date=date(2026, 11, 30),
            locations=["Nairobi"],
            listings=[LISTING],
        )

    async def test_revoked_refresh_token(self, spec):
        client = MagicMock()
        client.get_service.side_effect = RefreshError("invalid_grant: Token has been expired or revoked")
        adapter = GoogleAdsAdapter(client=client)

        with pytest.raises(AuthenticationError, match="invalid_grant"):
            await adapter.create_campaign(spec)

    async def test_transport_failure(self, spec):
        client = MagicMock()
        client.get_service.side_effect = RuntimeError("failed to connect to all addresses")
        adapter = GoogleAdsAdapter(client=client)

        with pytest.raises(PlatformError, match="failed to connect"):
            await adapter.create_campaign(spec)
