"""
Google Ads API Adapter

Implements the BaseAdPlatformAdapter interface for Google Ads.
Uses the google-ads Python library against the single customer account the
marketplace advertises from.

API Documentation: https://developers.google.com/google-ads/api/docs/start
"""

from datetime import date
from typing import Iterable, Optional

import structlog
from google.ads.googleads.client import GoogleAdsClient
from google.ads.googleads.errors import GoogleAdsException
from google.auth.exceptions import RefreshError

from realaist.adapters.base import (
    AdapterError,
    AdCampaignResult,
    AdCampaignSpec,
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
from realaist.config import settings
from realaist.services import ad_copy_service

logger = structlog.get_logger()


# Kenya locations to Google Ads geo target constant IDs
KENYA_GEO_TARGETS = {
    "Nairobi": "1001356",
    "Mombasa": "1001357",
    "Kisumu": "1001360",
    "Nakuru": "1001362",
    "Eldoret": "1001366",
    "Thika": "1001358",
    "Ruiru": "1001358",
    "Kikuyu": "1001358",
    "Karen": "1001356",
    "Westlands": "1001356",
    "Kilimani": "1001356",
    "Kileleshwa": "1001356",
    "Lavington": "1001356",
    "Muthaiga": "1001356",
    "Runda": "1001356",
    "Gigiri": "1001356",
    "Kenya": "2404",
}
KENYA_COUNTRY_TARGET = "2404"

GEO_TARGET_NAMES = {
    "1001356": "Nairobi",
    "1001357": "Mombasa",
    "1001358": "Kiambu",
    "1001360": "Kisumu",
    "1001362": "Nakuru",
    "1001366": "Uasin Gishu",
    "2404": "Kenya",
}

# Campaign age groups to AgeRangeTypeEnum member names
AGE_RANGE_TYPES = {
    "18-24": "AGE_RANGE_18_24",
    "25-34": "AGE_RANGE_25_34",
    "35-44": "AGE_RANGE_35_44",
    "45-54": "AGE_RANGE_45_54",
    "55-64": "AGE_RANGE_55_64",
    "65+": "AGE_RANGE_65_UP",
}

MAX_KEYWORDS_PER_AD_GROUP = 20
DEFAULT_CPC_BID_MICROS = 10_000_000  # 10 USD


def geo_target_ids(locations: Iterable[str]) -> list[str]:
    """Distinct geo target IDs for the given locations, falling back to all of Kenya."""
    ids = [KENYA_GEO_TARGETS[loc] for loc in locations if loc in KENYA_GEO_TARGETS]
    return list(dict.fromkeys(ids)) or [KENYA_COUNTRY_TARGET]


def daily_budget_usd(
    total_budget_kes: float,
    duration_days: int,
    exchange_rate: float = None,
    minimum: float = None,
) -> float:
    """Spread a KES total over the campaign days, converted to USD, with a daily floor."""
    exchange_rate = exchange_rate or settings.kes_to_usd_rate
    minimum = settings.min_daily_budget_usd if minimum is None else minimum
    total_usd = total_budget_kes / exchange_rate
    daily = total_usd / duration_days if duration_days > 0 else total_usd
    return max(daily, minimum)


def _date_clause(start_date: Optional[date], end_date: Optional[date]) -> str:
    if start_date and end_date:
        return f" AND segments.date BETWEEN '{start_date}' AND '{end_date}'"
    if start_date:
        return f" AND segments.date >= '{start_date}'"
    if end_date:
        return f" AND segments.date <= '{end_date}'"
    return ""


class GoogleAdsAdapter(BaseAdPlatformAdapter):
    """
    Google Ads API adapter.

    Campaigns are created as paused Search campaigns with manual CPC so an
    operator can review them in Google Ads before they start serving.
    """

    def __init__(self, client: Optional[GoogleAdsClient] = None):
        super().__init__(platform="google")
        self._client = client
        self.customer_id = (settings.google_ads_customer_id or "").replace("-", "")

    def _get_client(self) -> GoogleAdsClient:
        """
        Create (once) a Google Ads client from configured credentials.

        Raises:
            ConfigurationError: If credentials are missing
        """
        if self._client is not None:
            return self._client

        if not settings.google_ads_configured:
            raise ConfigurationError(
                message="Google Ads credentials not configured",
                platform="google",
            )

        credentials = {
            "developer_token": settings.google_ads_developer_token,
            "client_id": settings.google_ads_client_id,
            "client_secret": settings.google_ads_client_secret,
            "refresh_token": settings.google_ads_refresh_token,
            "use_proto_plus": True,
        }
        if settings.google_ads_login_customer_id:
            credentials["login_customer_id"] = settings.google_ads_login_customer_id.replace("-", "")

        self._client = GoogleAdsClient.load_from_dict(credentials)
        return self._client

    def _handle_google_error(self, error: GoogleAdsException, operation: str):
        """
        Convert Google Ads errors to adapter errors.

        Args:
            error: Google Ads exception
            operation: Operation that failed

        Raises:
            Appropriate adapter error
        """
        self._log_error(operation, error, request_id=error.request_id)

        for error_detail in error.failure.errors:
            code = error_detail.error_code
            kind = type(code).pb(code).WhichOneof("error_code")
            message = str(error_detail.message)

            if kind in ("authentication_error", "authorization_error"):
                raise AuthenticationError(
                    message=f"Google Ads authentication failed: {message}",
                    platform="google",
                    details={"error": message},
                )

            if kind == "quota_error":
                raise RateLimitError(
                    message="Google Ads rate limit exceeded",
                    platform="google",
                    retry_after=60,
                )

            if "not found" in message.lower():
                raise NotFoundError(
                    message=f"Not found in Google Ads: {message}",
                    platform="google",
                )

            if kind in ("request_error", "field_error", "campaign_budget_error", "campaign_error"):
                raise ValidationError(
                    message=f"Invalid request: {message}",
                    platform="google",
                    details={"error_type": kind},
                )

        first = error.failure.errors[0].message if error.failure.errors else str(error)
        raise PlatformError(
            message=f"Google Ads error: {first}",
            platform="google",
            details={"request_id": error.request_id},
        )

    # =========================================================================
    # Campaign Operations
    # =========================================================================

    async def create_campaign(self, spec: AdCampaignSpec) -> AdCampaignResult:
        """Create budget, campaign, location criteria, ad groups, keywords and ads."""
        daily_usd = daily_budget_usd(spec.total_budget, spec.duration_days)
        self._log_operation(
            "create_campaign",
            name=spec.name,
            total_budget_kes=spec.total_budget,
            daily_budget_usd=round(daily_usd, 2),
            duration_days=spec.duration_days,
            listings=len(spec.listings),
        )

        try:
            client = self._get_client()
            customer_id = self.customer_id
            campaign_budget_service = client.get_service("CampaignBudgetService")
            campaign_service = client.get_service("CampaignService")

            budget_operation = client.get_type("CampaignBudgetOperation")
            budget = budget_operation.create
            budget.name = f"{spec.name} Budget"
            budget.amount_micros = int(round(daily_usd * 1_000_000))
            budget.delivery_method = client.enums.BudgetDeliveryMethodEnum.STANDARD
            budget.explicitly_shared = False

            budget_response = campaign_budget_service.mutate_campaign_budgets(
                customer_id=customer_id, operations=[budget_operation]
            )
            budget_resource_name = budget_response.results[0].resource_name

            campaign_operation = client.get_type("CampaignOperation")
            campaign = campaign_operation.create
            campaign.name = spec.name
            campaign.campaign_budget = budget_resource_name
            campaign.advertising_channel_type = client.enums.AdvertisingChannelTypeEnum.SEARCH
            campaign.status = client.enums.CampaignStatusEnum.PAUSED
            campaign.manual_cpc.enhanced_cpc_enabled = False
            campaign.network_settings.target_google_search = True
            campaign.network_settings.target_search_network = True
            campaign.start_date = spec.start_date.strftime("%Y-%m-%d")
            campaign.end_date = spec.end_date.strftime("%Y-%m-%d")

            response = campaign_service.mutate_campaigns(
                customer_id=customer_id, operations=[campaign_operation]
            )
        except GoogleAdsException as e:
            self._handle_google_error(e, "create_campaign")
        except RefreshError as e:
            self._log_error("create_campaign", e)
            raise AuthenticationError(
                message=f"Google Ads credentials rejected: {e}",
                platform="google",
            )
        except AdapterError:
            raise
        except Exception as e:
            self._log_error("create_campaign", e)
            raise PlatformError(
                message=f"Google Ads request failed: {e}",
                platform="google",
            )

        campaign_resource_name = response.results[0].resource_name
        result = AdCampaignResult(
            campaign_id=campaign_resource_name.split("/")[-1],
            budget_id=budget_resource_name.split("/")[-1],
            daily_budget_usd=round(daily_usd, 2),
        )

        # Targeting and creatives are best effort once the campaign exists
        try:
            self._add_location_criteria(client, campaign_resource_name, spec.locations)
        except GoogleAdsException as e:
            self._log_error("add_location_criteria", e, campaign_id=result.campaign_id)
            result.warnings.append("location_targeting_failed")

        for index, listing in enumerate(spec.listings):
            try:
                self._add_listing_ad_group(client, campaign_resource_name, spec, listing, result)
            except GoogleAdsException as e:
                self._log_error(
                    "add_ad_group",
                    e,
                    campaign_id=result.campaign_id,
                    property_id=listing.id,
                    index=index,
                )
                result.warnings.append(f"ad_group_failed:{listing.id}")

        self._log_operation(
            "create_campaign_success",
            campaign_id=result.campaign_id,
            ad_groups=result.ad_groups,
            keywords=result.keywords,
            ads=result.ads,
        )
        return result

    def _add_location_criteria(
        self,
        client: GoogleAdsClient,
        campaign_resource_name: str,
        locations: list[str],
    ) -> None:
        criterion_service = client.get_service("CampaignCriterionService")
        geo_service = client.get_service("GeoTargetConstantService")

        operations = []
        for geo_id in geo_target_ids(locations):
            operation = client.get_type("CampaignCriterionOperation")
            criterion = operation.create
            criterion.campaign = campaign_resource_name
            criterion.location.geo_target_constant = geo_service.geo_target_constant_path(geo_id)
            operations.append(operation)

        criterion_service.mutate_campaign_criteria(
            customer_id=self.customer_id, operations=operations
        )

    def _add_listing_ad_group(
        self,
        client: GoogleAdsClient,
        campaign_resource_name: str,
        spec: AdCampaignSpec,
        listing: PropertyListing,
        result: AdCampaignResult,
    ) -> None:
        """One ad group per listing with keywords, age targeting and a responsive search ad."""
        ad_group_service = client.get_service("AdGroupService")
        criterion_service = client.get_service("AdGroupCriterionService")
        ad_group_ad_service = client.get_service("AdGroupAdService")

        ad_group_operation = client.get_type("AdGroupOperation")
        ad_group = ad_group_operation.create
        ad_group.name = f"{listing.title[:30]} - {listing.location or 'Kenya'}"
        ad_group.campaign = campaign_resource_name
        ad_group.status = client.enums.AdGroupStatusEnum.ENABLED
        ad_group.type_ = client.enums.AdGroupTypeEnum.SEARCH_STANDARD
        ad_group.cpc_bid_micros = DEFAULT_CPC_BID_MICROS

        ad_group_response = ad_group_service.mutate_ad_groups(
            customer_id=self.customer_id, operations=[ad_group_operation]
        )
        ad_group_resource_name = ad_group_response.results[0].resource_name
        result.ad_groups += 1

        criterion_operations = []
        keywords = ad_copy_service.generate_keywords(spec.interests, [listing])[:MAX_KEYWORDS_PER_AD_GROUP]
        for text in keywords:
            operation = client.get_type("AdGroupCriterionOperation")
            criterion = operation.create
            criterion.ad_group = ad_group_resource_name
            criterion.status = client.enums.AdGroupCriterionStatusEnum.ENABLED
            criterion.keyword.text = text
            criterion.keyword.match_type = client.enums.KeywordMatchTypeEnum.BROAD
            criterion_operations.append(operation)

        age_range = AGE_RANGE_TYPES.get(spec.age_group or "")
        if age_range:
            operation = client.get_type("AdGroupCriterionOperation")
            criterion = operation.create
            criterion.ad_group = ad_group_resource_name
            criterion.age_range.type_ = getattr(client.enums.AgeRangeTypeEnum, age_range)
            criterion_operations.append(operation)

        criterion_service.mutate_ad_group_criteria(
            customer_id=self.customer_id, operations=criterion_operations
        )
        result.keywords += len(keywords)

        ad_operation = client.get_type("AdGroupAdOperation")
        ad_group_ad = ad_operation.create
        ad_group_ad.ad_group = ad_group_resource_name
        ad_group_ad.status = client.enums.AdGroupAdStatusEnum.ENABLED
        ad = ad_group_ad.ad
        ad.final_urls.append(f"{settings.property_url_base}/{listing.id}")
        for text in ad_copy_service.generate_headlines(listing):
            asset = client.get_type("AdTextAsset")
            asset.text = text
            ad.responsive_search_ad.headlines.append(asset)
        for text in ad_copy_service.generate_descriptions(listing):
            asset = client.get_type("AdTextAsset")
            asset.text = text
            ad.responsive_search_ad.descriptions.append(asset)
        ad.responsive_search_ad.path1 = "properties"
        path2 = ad_copy_service.display_path(listing.location)
        if path2:
            ad.responsive_search_ad.path2 = path2

        ad_group_ad_service.mutate_ad_group_ads(
            customer_id=self.customer_id, operations=[ad_operation]
        )
        result.ads += 1

    async def remove_campaign(self, campaign_id: str) -> bool:
        """Remove a campaign."""
        self._log_operation("remove_campaign", campaign_id=campaign_id)

        client = self._get_client()
        try:
            campaign_service = client.get_service("CampaignService")
            operation = client.get_type("CampaignOperation")
            operation.remove = campaign_service.campaign_path(self.customer_id, campaign_id)
            campaign_service.mutate_campaigns(
                customer_id=self.customer_id, operations=[operation]
            )
            return True
        except GoogleAdsException as e:
            self._handle_google_error(e, "remove_campaign")

    # =========================================================================
    # Metrics Operations
    # =========================================================================

    async def get_campaign_performance(
        self,
        campaign_id: str,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> Optional[CampaignPerformance]:
        """Get top-line metrics for a campaign."""
        self._log_operation(
            "get_campaign_performance",
            campaign_id=campaign_id,
            start_date=str(start_date) if start_date else None,
            end_date=str(end_date) if end_date else None,
        )

        client = self._get_client()
        try:
            ga_service = client.get_service("GoogleAdsService")
            query = f"""
                SELECT
                    campaign.id,
                    campaign.name,
                    metrics.impressions,
                    metrics.clicks,
                    metrics.cost_micros,
                    metrics.conversions,
                    metrics.conversions_value
                FROM campaign
                WHERE campaign.id = {self._numeric_id(campaign_id)}{_date_clause(start_date, end_date)}
            """
            response = ga_service.search(customer_id=self.customer_id, query=query)

            performance = None
            for row in response:
                if performance is None:
                    performance = CampaignPerformance(
                        campaign_id=str(row.campaign.id),
                        campaign_name=row.campaign.name,
                    )
                performance.impressions += row.metrics.impressions
                performance.clicks += row.metrics.clicks
                performance.cost_micros += row.metrics.cost_micros
                performance.conversions += row.metrics.conversions
                performance.conversion_value += row.metrics.conversions_value

            return performance

        except GoogleAdsException as e:
            self._handle_google_error(e, "get_campaign_performance")

    async def get_breakdown(
        self,
        campaign_id: str,
        dimension: BreakdownDimension,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> list[BreakdownRow]:
        """Get metrics segmented by age range, gender or city."""
        self._log_operation(
            "get_breakdown", campaign_id=campaign_id, dimension=dimension.value
        )

        if dimension == BreakdownDimension.AGE:
            select, resource = "ad_group_criterion.age_range.type", "age_range_view"
        elif dimension == BreakdownDimension.GENDER:
            select, resource = "ad_group_criterion.gender.type", "gender_view"
        else:
            select, resource = "segments.geo_target_city", "geographic_view"

        client = self._get_client()
        try:
            ga_service = client.get_service("GoogleAdsService")
            query = f"""
                SELECT
                    {select},
                    metrics.impressions,
                    metrics.clicks,
                    metrics.cost_micros
                FROM {resource}
                WHERE campaign.id = {self._numeric_id(campaign_id)}{_date_clause(start_date, end_date)}
            """
            response = ga_service.search(customer_id=self.customer_id, query=query)

            rows: dict[str, BreakdownRow] = {}
            for row in response:
                segment = self._segment_label(row, dimension)
                entry = rows.setdefault(segment, BreakdownRow(segment=segment))
                entry.impressions += row.metrics.impressions
                entry.clicks += row.metrics.clicks
                entry.cost_micros += row.metrics.cost_micros

            return sorted(rows.values(), key=lambda r: r.impressions, reverse=True)

        except GoogleAdsException as e:
            self._handle_google_error(e, f"get_{dimension.value}_breakdown")

    # =========================================================================
    # Helper Methods
    # =========================================================================

    def _numeric_id(self, campaign_id: str) -> int:
        """Campaign IDs are interpolated into GAQL, so only digits are accepted."""
        if not str(campaign_id).isdigit():
            raise NotFoundError(
                message=f"Invalid Google Ads campaign id: {campaign_id}",
                platform="google",
            )
        return int(campaign_id)

    def _segment_label(self, row, dimension: BreakdownDimension) -> str:
        if dimension == BreakdownDimension.AGE:
            return row.ad_group_criterion.age_range.type_.name
        if dimension == BreakdownDimension.GENDER:
            return row.ad_group_criterion.gender.type_.name
        geo_id = row.segments.geo_target_city.split("/")[-1]
        return GEO_TARGET_NAMES.get(geo_id, geo_id or "unknown")
