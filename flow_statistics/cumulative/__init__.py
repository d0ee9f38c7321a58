"""
Daily Cumulative Flow Statistics Module

Calculates cumulative volume or yield per water year from daily flows, and
the cross-year distribution of those running totals per day of year.

Data flow:
- fill_missing_dates - complete water years with null-valued days
- add_date_variables - WaterYear and DayofYear on a non-leap reference year
- add_cumulative_volume / add_cumulative_yield - running totals
- calculate_daily_cumulative_stats - Mean, Median, Minimum, Maximum, P<p>
- add_overlay_year - single water year trace for comparison
"""

from .water_year import (
    add_date_variables,
    day_of_water_year,
    fill_missing_dates,
    get_origin_date,
    water_year_of,
)
from .cumulative_metrics import (
    add_cumulative_volume,
    add_cumulative_yield,
    resolve_basin_area,
    volume_to_yield_mm,
    yield_mm_to_volume,
)
from .calculate_cumulative_statistics import (
    OVERLAY_COL,
    CumulativeStatsResult,
    add_overlay_year,
    calculate_all_cumulative_statistics,
    calculate_daily_cumulative_stats,
    format_for_database,
    stats_to_records,
)

__all__ = [
    "add_date_variables",
    "day_of_water_year",
    "fill_missing_dates",
    "get_origin_date",
    "water_year_of",
    "add_cumulative_volume",
    "add_cumulative_yield",
    "resolve_basin_area",
    "volume_to_yield_mm",
    "yield_mm_to_volume",
    "OVERLAY_COL",
    "CumulativeStatsResult",
    "add_overlay_year",
    "calculate_all_cumulative_statistics",
    "calculate_daily_cumulative_stats",
    "format_for_database",
    "stats_to_records",
]
