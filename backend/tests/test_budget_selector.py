"""
Tests for the budget slider/chart state.
"""

import pytest

from realaist.roi import BudgetRange, BudgetSelector, derive_range, step_for_range
from realaist.roi.budget_selector import MAX_BUDGET, MEDIAN_BUDGET, MIN_BUDGET


class TestDeriveRange:
    """Slider range derivation."""

    def test_median_budget_sits_strictly_inside(self):
        budget_range = derive_range(MEDIAN_BUDGET)

        assert budget_range == BudgetRange(min=1_000, max=100_000)
        assert budget_range.min < MEDIAN_BUDGET < budget_range.max

    def test_small_budget_centres_on_median(self):
        # distance 0.8 -> window 140,000 around the median
        budget_range = derive_range(10_000)
        assert budget_range.min == 1_000
        assert budget_range.max == pytest.approx(120_000)

    def test_large_budget_expands_upward(self):
        # distance 3 -> 250,000 above the median beats 115% of the budget
        assert derive_range(200_000) == BudgetRange(min=1_000, max=300_000)

    def test_very_large_budget_capped_at_max(self):
        assert derive_range(480_000).max == MAX_BUDGET


class TestStepForRange:

    @pytest.mark.parametrize(
        "span,expected",
        [
            (10_000, 100),       # 50 -> floor of 100
            (60_000, 300),       # 300
            (99_000, 500),       # 495 -> nearest 100
            (299_000, 1_500),    # 1,495 -> nearest 500
            (499_000, 2_500),    # 2,495
        ],
    )
    def test_snapping(self, span, expected):
        assert step_for_range(BudgetRange(min=1_000, max=1_000 + span)) == expected


class TestBudgetSelector:
    """Interactive selector behaviour."""

    def test_defaults_to_median_and_google(self):
        selector = BudgetSelector()

        assert selector.budget == MEDIAN_BUDGET
        assert selector.platforms == ["Google Ads"]

    @pytest.mark.parametrize("value", [None, 0, float("nan")])
    def test_empty_input_falls_back_to_median(self, value):
        selector = BudgetSelector(budget=value)
        assert selector.budget == MEDIAN_BUDGET

    def test_input_is_clamped(self):
        selector = BudgetSelector()

        assert selector.set_budget(10) == MIN_BUDGET
        assert selector.set_budget(10_000_000) == MAX_BUDGET

    def test_drag_freezes_slider_range(self):
        """Budget changes during a drag do not move the slider bounds."""
        selector = BudgetSelector(budget=MEDIAN_BUDGET)
        frozen = selector.begin_drag()

        selector.set_budget(200_000)

        assert selector.is_dragging
        assert selector.slider_range() == frozen == BudgetRange(min=1_000, max=100_000)
        assert selector.slider_step() == step_for_range(frozen)

    def test_chart_domain_stays_live_during_drag(self):
        selector = BudgetSelector(budget=MEDIAN_BUDGET)
        selector.begin_drag()

        selector.set_budget(200_000)

        assert selector.chart_domain() == BudgetRange(min=1_000, max=300_000)

    def test_release_restores_live_range(self):
        selector = BudgetSelector(budget=MEDIAN_BUDGET)
        selector.begin_drag()
        selector.set_budget(200_000)

        selector.end_drag()

        assert not selector.is_dragging
        assert selector.slider_range() == derive_range(200_000)

    def test_degenerate_range_percentage_is_zero(self):
        selector = BudgetSelector(min_budget=5_000, max_budget=5_000, median=5_000)

        assert selector.slider_range().span == 0
        assert selector.slider_percentage() == 0

    def test_percentage_of_range(self):
        selector = BudgetSelector(budget=MEDIAN_BUDGET)
        assert selector.slider_percentage() == pytest.approx(49_000 / 99_000 * 100)

    def test_chart_inserts_exact_budget(self):
        """The highlighted area ends exactly at the current budget."""
        selector = BudgetSelector(budget=MEDIAN_BUDGET)
        points = selector.chart_points()
        budgets = [p.budget for p in points]

        assert MEDIAN_BUDGET in budgets
        assert budgets == sorted(budgets)

        highlighted = [p for p in points if p.current_impressions is not None]
        assert highlighted[-1].budget == MEDIAN_BUDGET
        assert all(p.budget <= MEDIAN_BUDGET for p in highlighted)
        assert all(p.current_impressions is None for p in points if p.budget > MEDIAN_BUDGET)

    def test_chart_points_within_domain(self):
        selector = BudgetSelector(budget=200_000)
        domain = selector.chart_domain()

        assert all(domain.contains(p.budget) for p in selector.chart_points())

    def test_empty_platforms_use_default(self):
        selector = BudgetSelector(platforms=[])
        selector.set_platforms([])

        assert selector.platforms == ["Google Ads"]
        assert selector.current_metrics().impressions > 0

    def test_snapshot_shape(self):
        snapshot = BudgetSelector(platforms=["meta"], budget=75_000).snapshot()

        assert snapshot["budget"] == 75_000
        assert snapshot["platforms"] == ["Meta Ads"]
        assert snapshot["slider"]["frozen"] is False
        assert snapshot["metrics"]["impressions"] > 0
        assert snapshot["points"]
