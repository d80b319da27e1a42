"""
Interactive budget selector state.

Derives the slider range and step, the chart x-axis domain and the highlighted
projection curve from a single current budget. The slider range is frozen for
the duration of a drag gesture so the thumb does not jump while the live
range keeps moving with the budget. The chart domain always follows the live
value.
"""

import math
from dataclasses import dataclass
from typing import Optional, Sequence

from realaist.roi.roi_calculator import (
    DEFAULT_PLATFORM,
    DISPLAY_FEE_RATE,
    ROIMetrics,
    calculate_roi,
    generate_roi_projection,
    normalize_platforms,
)

MIN_BUDGET = 1_000
MAX_BUDGET = 500_000
MEDIAN_BUDGET = 50_000


@dataclass(frozen=True)
class BudgetRange:
    min: float
    max: float

    @property
    def span(self) -> float:
        return self.max - self.min

    def contains(self, value: float) -> bool:
        return self.min <= value <= self.max


@dataclass(frozen=True)
class ChartPoint:
    """Projection point with the highlighted area populated up to the current budget."""
    budget: float
    impressions: int
    current_impressions: Optional[int]


def derive_range(
    budget: float,
    median: float = MEDIAN_BUDGET,
    min_budget: float = MIN_BUDGET,
    max_budget: float = MAX_BUDGET,
) -> BudgetRange:
    """
    Range that keeps the median visible.

    Budgets at or below the median get a window centred on the median; larger
    budgets expand the window upward to at least 115% of the budget.
    """
    distance = abs(budget - median) / median
    dynamic_range = (median * 2) * (1 + distance * 0.5)

    if budget <= median:
        return BudgetRange(
            min=max(min_budget, median - dynamic_range / 2),
            max=min(max_budget, median + dynamic_range / 2),
        )
    return BudgetRange(
        min=min_budget,
        max=min(max_budget, max(budget * 1.15, median + dynamic_range)),
    )


def step_for_range(budget_range: BudgetRange) -> int:
    """About 1/200th of the range, snapped to 100 below 500 and to 500 above."""
    base = budget_range.span / 200
    if base < 100:
        return 100
    if base < 500:
        return int(math.floor(base / 100 + 0.5)) * 100
    return int(math.floor(base / 500 + 0.5)) * 500


class BudgetSelector:
    """
    Slider and chart state for the campaign budget preview.

    One instance per preview widget. Call `set_budget` on every input change,
    `begin_drag` / `end_drag` around pointer gestures.
    """

    def __init__(
        self,
        platforms: Sequence[str] = (),
        budget: Optional[float] = None,
        median: float = MEDIAN_BUDGET,
        min_budget: float = MIN_BUDGET,
        max_budget: float = MAX_BUDGET,
        steps: int = 30,
        fee_rate: float = DISPLAY_FEE_RATE,
    ):
        self.median = median
        self.min_budget = min_budget
        self.max_budget = max_budget
        self.steps = steps
        self.fee_rate = fee_rate
        self.platforms = normalize_platforms(platforms) or [DEFAULT_PLATFORM]
        self._frozen_range: Optional[BudgetRange] = None
        self.budget = self._normalize(budget)

    def _normalize(self, value: Optional[float]) -> float:
        # Empty or zero input falls back to the median before clamping
        if not value or math.isnan(value):
            value = self.median
        return max(self.min_budget, min(self.max_budget, value))

    # =========================================================================
    # Inputs
    # =========================================================================

    def set_budget(self, value: Optional[float]) -> float:
        self.budget = self._normalize(value)
        return self.budget

    def set_platforms(self, platforms: Sequence[str]) -> None:
        self.platforms = normalize_platforms(platforms) or [DEFAULT_PLATFORM]

    def begin_drag(self) -> BudgetRange:
        """Freeze the slider range at its current live value."""
        self._frozen_range = self.live_range()
        return self._frozen_range

    def end_drag(self) -> None:
        self._frozen_range = None

    @property
    def is_dragging(self) -> bool:
        return self._frozen_range is not None

    # =========================================================================
    # Derived state
    # =========================================================================

    def live_range(self) -> BudgetRange:
        return derive_range(self.budget, self.median, self.min_budget, self.max_budget)

    def slider_range(self) -> BudgetRange:
        if self._frozen_range is not None:
            return self._frozen_range
        return self.live_range()

    def slider_step(self) -> int:
        return step_for_range(self.slider_range())

    def slider_percentage(self) -> float:
        budget_range = self.slider_range()
        if budget_range.span == 0:
            return 0.0
        return (self.budget - budget_range.min) / budget_range.span * 100

    def chart_domain(self) -> BudgetRange:
        return self.live_range()

    def current_metrics(self) -> ROIMetrics:
        return calculate_roi(self.budget, self.platforms, fee_rate=self.fee_rate)

    def chart_points(self) -> list[ChartPoint]:
        """
        Projection over the full budget range, filtered to the chart domain.

        The exact current budget is inserted in order when the series does not
        already contain it, so the highlighted area ends at the slider thumb.
        """
        projection = generate_roi_projection(
            self.min_budget,
            self.max_budget,
            self.platforms,
            steps=self.steps,
            fee_rate=self.fee_rate,
        )
        points = [
            ChartPoint(
                budget=p.budget,
                impressions=p.impressions,
                current_impressions=p.impressions if p.budget <= self.budget else None,
            )
            for p in projection
        ]

        if not any(p.budget == self.budget for p in points):
            impressions = self.current_metrics().impressions
            exact = ChartPoint(self.budget, impressions, impressions)
            index = next(
                (i for i, p in enumerate(points) if p.budget > self.budget),
                len(points),
            )
            points.insert(index, exact)

        domain = self.chart_domain()
        return [p for p in points if domain.contains(p.budget)]

    def snapshot(self) -> dict:
        """Serializable view of the selector for API responses."""
        slider = self.slider_range()
        domain = self.chart_domain()
        return {
            "budget": self.budget,
            "platforms": list(self.platforms),
            "metrics": self.current_metrics().to_dict(),
            "slider": {
                "min": slider.min,
                "max": slider.max,
                "step": self.slider_step(),
                "percentage": round(self.slider_percentage(), 2),
                "frozen": self.is_dragging,
            },
            "chart_domain": {"min": domain.min, "max": domain.max},
            "points": [
                {
                    "budget": p.budget,
                    "impressions": p.impressions,
                    "current_impressions": p.current_impressions,
                }
                for p in self.chart_points()
            ],
        }
