"""
Budget preview: ROI projection and slider/chart state.
"""

from realaist.roi.budget_selector import (
    BudgetRange,
    BudgetSelector,
    ChartPoint,
    derive_range,
    step_for_range,
)
from realaist.roi.roi_calculator import (
    ProjectionPoint,
    ROIMetrics,
    calculate_roi,
    format_large_number,
    generate_roi_projection,
)

__all__ = [
    "BudgetRange",
    "BudgetSelector",
    "ChartPoint",
    "derive_range",
    "step_for_range",
    "ProjectionPoint",
    "ROIMetrics",
    "calculate_roi",
    "format_large_number",
    "generate_roi_projection",
]
