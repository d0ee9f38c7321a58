"""
Cumulative flow calculations: unit conversion and running sums.

This module provides:
- Volume conversion (daily mean rate in m3/s -> daily volume in m3)
- Yield conversion (volume in m3 -> depth over the basin in mm) and back
- Basin area resolution from an explicit value or station metadata
- Running sums per station and water year with null propagation

Usage:
    from flow_statistics.cumulative.cumulative_metrics import (
        add_cumulative_volume,
        add_cumulative_yield,
    )
"""

import logging
import math
import numbers
from typing import Mapping, Optional, Union

import pandas as pd

from ..errors import MissingBasinArea
from .water_year import STATION_COL, DATE_COL, VALUE_COL, add_date_variables

log = logging.getLogger("cumulative_metrics")

SECONDS_PER_DAY = 86400
SQ_METRES_PER_SQ_KM = 1e6
MM_PER_METRE = 1000

BasinArea = Optional[Union[float, Mapping[str, float]]]


# =============================================================================
# UNIT CONVERSION
# =============================================================================

def daily_volume_m3(rate_m3s):
    """Daily volume (m3) from a daily mean flow rate (m3/s)."""
    return rate_m3s * SECONDS_PER_DAY


def volume_to_yield_mm(volume_m3, basin_area_km2: float):
    """Depth of water (mm) spread over the basin area."""
    return volume_m3 / (basin_area_km2 * SQ_METRES_PER_SQ_KM) * MM_PER_METRE


def yield_mm_to_volume(yield_mm, basin_area_km2: float):
    """Inverse of volume_to_yield_mm."""
    return yield_mm / MM_PER_METRE * (basin_area_km2 * SQ_METRES_PER_SQ_KM)


def _usable_area(value) -> Optional[float]:
    if value is None or isinstance(value, bool) or not isinstance(value, numbers.Real):
        return None
    value = float(value)
    if not math.isfinite(value) or value <= 0:
        return None
    return value


def resolve_basin_area(
    station_number: str,
    basin_area: BasinArea = None,
    station_metadata: Optional[Mapping[str, float]] = None,
) -> float:
    """
    Basin area (km2) for a station.

    Order of lookup:
    1. basin_area as a single number (applies to every station)
    2. basin_area as a {station: km2} mapping
    3. station_metadata {station: km2}, e.g. from stations.basin_areas()

    Raises MissingBasinArea if none of them gives a positive value.
    """
    if basin_area is not None and not isinstance(basin_area, Mapping):
        area = _usable_area(basin_area)
        if area is not None:
            return area

    if isinstance(basin_area, Mapping):
        area = _usable_area(basin_area.get(station_number))
        if area is not None:
            return area

    if station_metadata:
        area = _usable_area(station_metadata.get(station_number))
        if area is not None:
            log.debug(f"Using metadata basin area {area} km2 for {station_number}")
            return area

    raise MissingBasinArea(station_number)


# =============================================================================
# RUNNING SUMS
# =============================================================================

def _prepare(data: pd.DataFrame, water_year_start: int) -> pd.DataFrame:
    if 'WaterYear' not in data.columns or 'DayofYear' not in data.columns:
        data = add_date_variables(data, water_year_start)
    return data.sort_values([STATION_COL, DATE_COL], kind='mergesort').reset_index(drop=True)


def running_sum(values: pd.Series, keys) -> pd.Series:
    """
    Running sum within each key group where a null day makes the rest of
    the group null. Rows must already be in date order within each group.
    """
    broken = values.isna().astype(int).groupby(keys).cumsum() > 0
    return values.fillna(0).groupby(keys).cumsum().mask(broken)


def add_cumulative_volume(data: pd.DataFrame, water_year_start: int = 1) -> pd.DataFrame:
    """
    Add Cumul_Volume_m3: running total volume from the first day of each
    water year, per station.

    Every day of the water year is accumulated, including 29 February.
    Data should be gap-filled first (fill_missing_dates) so that a missing
    day shows up as a null and ends the year's running total.
    """
    df = _prepare(data, water_year_start)
    keys = [df[STATION_COL], df['WaterYear']]
    df['Volume_m3'] = daily_volume_m3(df[VALUE_COL].astype(float))
    df['Cumul_Volume_m3'] = running_sum(df['Volume_m3'], keys)
    return df.drop(columns=['Volume_m3'])


def add_cumulative_yield(
    data: pd.DataFrame,
    water_year_start: int = 1,
    basin_area: BasinArea = None,
    station_metadata: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """
    Add Cumul_Volume_m3 and Cumul_Yield_mm (cumulative depth over the basin).

    Raises MissingBasinArea for the first station without a resolvable area.
    """
    df = add_cumulative_volume(data, water_year_start)
    areas = {
        station: resolve_basin_area(station, basin_area, station_metadata)
        for station in df[STATION_COL].unique()
    }
    df['Basin_Area_sqkm'] = df[STATION_COL].map(areas).astype(float)
    df['Cumul_Yield_mm'] = volume_to_yield_mm(df['Cumul_Volume_m3'], df['Basin_Area_sqkm'])
    return df
