"""
ROI calculator for campaign budget projections.

Maps a KES budget and a set of ad platforms to projected reach using fixed
industry benchmarks for real-estate advertising in Kenya. Everything here is
pure and cheap enough to run on every budget change.
"""

import math
from dataclasses import asdict, dataclass
from typing import Iterable, Sequence

# 1 USD = 134 KES
KES_TO_USD_RATE = 134.0

# Fee withheld before projecting reach in the preview
DISPLAY_FEE_RATE = 0.3

DEFAULT_PLATFORM = "Google Ads"

# Stored campaign platform ids to benchmark names
PLATFORM_LABELS = {
    "google": "Google Ads",
    "meta": "Meta Ads",
}


@dataclass(frozen=True)
class PlatformBenchmark:
    """Benchmark coefficients for one ad platform."""
    cpm: float  # USD per 1000 impressions
    ctr: float
    view_rate: float
    engagement_rate: float


PLATFORM_BENCHMARKS = {
    "Google Ads": PlatformBenchmark(cpm=8, ctr=0.025, view_rate=0.85, engagement_rate=0.0075),
    "Meta Ads": PlatformBenchmark(cpm=6, ctr=0.015, view_rate=0.75, engagement_rate=0.02),
}

DEFAULT_BENCHMARK = PlatformBenchmark(cpm=7, ctr=0.02, view_rate=0.8, engagement_rate=0.015)


@dataclass(frozen=True)
class ROIMetrics:
    """Projected reach for a budget."""
    impressions: int = 0
    views: int = 0
    clicks: int = 0
    engagement: int = 0

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class ProjectionPoint:
    """One point of a budget/impressions series."""
    budget: float
    impressions: int


ZERO_METRICS = ROIMetrics()


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def normalize_platforms(platforms: Iterable[str]) -> list[str]:
    """Map stored platform ids to benchmark names, dropping duplicates."""
    names = (PLATFORM_LABELS.get(p, p) for p in platforms)
    return list(dict.fromkeys(names))


def benchmark_for(platform: str) -> PlatformBenchmark:
    return PLATFORM_BENCHMARKS.get(platform, DEFAULT_BENCHMARK)


def calculate_roi(
    budget: float,
    platforms: Sequence[str],
    fee_rate: float = DISPLAY_FEE_RATE,
    exchange_rate: float = KES_TO_USD_RATE,
) -> ROIMetrics:
    """
    Project impressions, views, clicks and engagement for a budget.

    Args:
        budget: Total budget in KES
        platforms: Benchmark names (or stored platform ids)
        fee_rate: Fraction withheld before the spend reaches the platforms
        exchange_rate: KES per USD

    Returns:
        Rounded metrics summed across platforms. Non-positive or non-finite
        budgets and an empty platform list give all-zero metrics.
    """
    if budget is None or not math.isfinite(budget) or budget <= 0:
        return ZERO_METRICS

    names = normalize_platforms(platforms or [])
    if not names:
        return ZERO_METRICS

    ad_spend_usd = budget * (1 - fee_rate) / exchange_rate
    per_platform_usd = ad_spend_usd / len(names)

    impressions = views = clicks = engagement = 0.0
    for name in names:
        bench = benchmark_for(name)
        platform_impressions = per_platform_usd / bench.cpm * 1000
        impressions += platform_impressions
        views += platform_impressions * bench.view_rate
        clicks += platform_impressions * bench.ctr
        engagement += platform_impressions * bench.engagement_rate

    return ROIMetrics(
        impressions=_round_half_up(impressions),
        views=_round_half_up(views),
        clicks=_round_half_up(clicks),
        engagement=_round_half_up(engagement),
    )


def generate_roi_projection(
    min_budget: float,
    max_budget: float,
    platforms: Sequence[str],
    steps: int = 30,
    fee_rate: float = DISPLAY_FEE_RATE,
) -> list[ProjectionPoint]:
    """
    Build `steps + 1` evenly spaced points from `min_budget` to `max_budget`.

    An empty platform selection returns no points at all. Intermediate
    budgets are rounded to whole shillings unless the step is under one
    shilling, where rounding would repeat budgets.
    """
    if not platforms:
        return []
    if steps < 1:
        raise ValueError("steps must be at least 1")

    step = (max_budget - min_budget) / steps
    points = []
    for i in range(steps + 1):
        if i == 0:
            budget = min_budget
        elif i == steps:
            budget = max_budget
        else:
            budget = min_budget + step * i
            if step >= 1:
                budget = _round_half_up(budget)
        metrics = calculate_roi(budget, platforms, fee_rate=fee_rate)
        points.append(ProjectionPoint(budget=budget, impressions=metrics.impressions))
    return points


def format_large_number(value: float) -> str:
    """Format a count for chart labels: 1.5M, 12.3K, 999."""
    if value >= 1_000_000:
        return f"{value / 1_000_000:.1f}M"
    if value >= 1_000:
        return f"{value / 1_000:.1f}K"
    return str(value)
