"""
ROI preview API endpoints.

Implements:
- Reach projection for a single budget
- Budget/impressions projection series
- Budget selector state (slider range, step, chart points)
"""

from typing import Optional

import structlog
from fastapi import APIRouter
from pydantic import BaseModel, Field, model_validator

from realaist.config import settings
from realaist.core.exceptions import VALIDATION_ERROR, CampaignError
from realaist.roi import BudgetSelector, calculate_roi, format_large_number, generate_roi_projection
from realaist.services.campaign_service import compute_fee_split

logger = structlog.get_logger()

router = APIRouter()


# =============================================================================
# Request/Response Schemas
# =============================================================================

class PreviewRequest(BaseModel):
    budget: float = Field(ge=0)
    platforms: list[str] = []


class PreviewResponse(BaseModel):
    budget: float
    platform_fee: float
    ad_spend: float
    impressions: int
    views: int
    clicks: int
    engagement: int
    formatted: dict[str, str]


class ProjectionRequest(BaseModel):
    min_budget: float = Field(ge=0)
    max_budget: float = Field(gt=0)
    platforms: list[str] = []
    steps: int = Field(default=30, ge=1, le=500)

    @model_validator(mode="after")
    def validate_range(self):
        if self.max_budget < self.min_budget:
            raise ValueError("max_budget must not be below min_budget")
        return self


class SelectorRequest(BaseModel):
    """
    Selector state for a budget.

    `drag_start_budget` is the budget when the current drag began; when set
    the slider range stays at the range derived from that budget.
    """
    budget: Optional[float] = None
    platforms: list[str] = []
    drag_start_budget: Optional[float] = None


# =============================================================================
# Endpoints
# =============================================================================

@router.post("/preview", response_model=PreviewResponse)
async def preview(data: PreviewRequest):
    """Projected reach for a budget."""
    platform_fee, ad_spend = compute_fee_split(data.budget, settings.preview_fee_rate)
    metrics = calculate_roi(
        data.budget,
        data.platforms,
        fee_rate=settings.preview_fee_rate,
        exchange_rate=settings.kes_to_usd_rate,
    )
    return PreviewResponse(
        budget=data.budget,
        platform_fee=float(platform_fee),
        ad_spend=float(ad_spend),
        **metrics.to_dict(),
        formatted={k: format_large_number(v) for k, v in metrics.to_dict().items()},
    )


@router.post("/projection")
async def projection(data: ProjectionRequest):
    """Evenly spaced budget/impressions points; empty without platforms."""
    try:
        points = generate_roi_projection(
            data.min_budget,
            data.max_budget,
            data.platforms,
            steps=data.steps,
            fee_rate=settings.preview_fee_rate,
        )
    except ValueError as e:
        raise CampaignError(VALIDATION_ERROR, str(e))
    return {
        "points": [{"budget": p.budget, "impressions": p.impressions} for p in points],
    }


@router.post("/selector")
async def selector(data: SelectorRequest):
    """Slider range, step, chart domain and highlighted chart points."""
    budget_selector = BudgetSelector(
        platforms=data.platforms,
        budget=data.drag_start_budget if data.drag_start_budget is not None else data.budget,
        median=settings.median_campaign_budget,
        min_budget=settings.min_campaign_budget,
        max_budget=settings.max_campaign_budget,
        fee_rate=settings.preview_fee_rate,
    )
    if data.drag_start_budget is not None:
        budget_selector.begin_drag()
        budget_selector.set_budget(data.budget)
    return budget_selector.snapshot()
