"""
Calculate daily cumulative flow statistics across water years.

For each station the daily series is gap-filled to whole water years, given
water year / day of year variables, accumulated into a running volume (or
yield) per water year, and summarised per day of year across the included
water years: Mean, Median, Minimum, Maximum and P<p> percentiles.

Pipeline per station:
1. fill_missing_dates        - whole water years, NaN for missing days
2. add_date_variables        - WaterYear, DayofYear (non-leap reference year)
3. add_cumulative_volume     - running sum, null once any day is null
   add_cumulative_yield      - also divides by basin area (use_yield)
4. calculate_daily_cumulative_stats - cross-year statistics per day of year
5. add_overlay_year          - optional single water year trace

Configuration errors abort the whole run. Data problems (no basin area,
nothing left after filtering, no overlay data) only affect the station
concerned and are reported as warnings.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

import numpy as np
import pandas as pd

from ..config import CumulativeStatsConfig, percentile_column
from ..errors import EmptyInput, MissingBasinArea, NoMatchingOverlayData
from .cumulative_metrics import add_cumulative_volume, add_cumulative_yield
from .water_year import (
    DATE_COL,
    LEAP_DAY_OF_YEAR,
    STATION_COL,
    VALUE_COL,
    add_date_variables,
    fill_missing_dates,
    get_origin_date,
)

log = logging.getLogger("cumulative_statistics")

BASE_STAT_COLUMNS = ['Mean', 'Median', 'Minimum', 'Maximum']
OVERLAY_COL = 'OverlayCumulative'


@dataclass
class CumulativeStatsResult:
    """Statistics table plus the per-station problems met while building it."""
    stats: pd.DataFrame
    warnings: List[str] = field(default_factory=list)
    skipped_stations: Dict[str, str] = field(default_factory=dict)
    cumulative: Optional[pd.DataFrame] = None

    def warn(self, message: str):
        log.warning(message)
        self.warnings.append(message)


def stats_columns(percentiles) -> List[str]:
    return (
        [STATION_COL, DATE_COL, 'DayofYear']
        + BASE_STAT_COLUMNS
        + [percentile_column(p) for p in sorted(set(percentiles))]
        + ['SampleCount']
    )


def empty_stats(percentiles) -> pd.DataFrame:
    return pd.DataFrame(columns=stats_columns(percentiles))


# =============================================================================
# FILTERING
# =============================================================================

def filter_water_years(
    df: pd.DataFrame,
    start_year: Optional[int] = None,
    end_year: Optional[int] = None,
    exclude_years=(),
) -> pd.DataFrame:
    """Keep water years within [start_year, end_year] and not excluded."""
    mask = pd.Series(True, index=df.index)
    if start_year is not None:
        mask &= df['WaterYear'] >= start_year
    if end_year is not None:
        mask &= df['WaterYear'] <= end_year
    if exclude_years:
        mask &= ~df['WaterYear'].isin(list(exclude_years))
    return df[mask]


def water_years_with_data(df: pd.DataFrame, months) -> pd.DataFrame:
    """
    Keep water years that have at least one non-null daily value in the
    months of interest. Membership is decided on the whole year; no rows
    are removed from the years kept.
    """
    if df.empty:
        return df
    presence_col = VALUE_COL if VALUE_COL in df.columns else None
    in_months = df['Month'].isin(list(months))
    if presence_col is not None:
        in_months &= df[presence_col].notna()
    has_data = in_months.groupby([df[STATION_COL], df['WaterYear']]).transform('any')
    return df[has_data.astype(bool)]


# =============================================================================
# CROSS-YEAR STATISTICS
# =============================================================================

def summarise_values(values: np.ndarray, percentiles) -> Dict[str, float]:
    """
    Mean, Median, Minimum, Maximum and percentiles of the non-null values.

    Percentiles interpolate linearly between order statistics (numpy's
    default 'linear' method). An empty sample gives NaN for everything.
    """
    values = values[~np.isnan(values)]
    pcts = sorted(set(percentiles))
    if values.size == 0:
        stats = {col: np.nan for col in BASE_STAT_COLUMNS}
        stats.update({percentile_column(p): np.nan for p in pcts})
        stats['SampleCount'] = 0
        return stats

    stats = {
        'Mean': float(values.mean()),
        'Median': float(np.median(values)),
        'Minimum': float(values.min()),
        'Maximum': float(values.max()),
    }
    if pcts:
        for p, value in zip(pcts, np.percentile(values, pcts)):
            stats[percentile_column(p)] = float(value)
    stats['SampleCount'] = int(values.size)
    return stats


def calculate_daily_cumulative_stats(
    cumulative: pd.DataFrame,
    config: CumulativeStatsConfig,
) -> pd.DataFrame:
    """
    Cross-year statistics of cumulative values per station and day of year.

    Args:
        cumulative: output of add_cumulative_volume / add_cumulative_yield
        config: year range, exclusions, months and percentiles to apply

    Returns one row per (STATION_NUMBER, DayofYear) left after filtering,
    with the reference calendar Date of that day of year. Days where no year
    has a cumulative value get NaN statistics.
    """
    value_col = config.value_column
    if cumulative.empty:
        return empty_stats(config.percentiles)

    df = filter_water_years(cumulative, config.start_year, config.end_year, config.exclude_years)
    df = water_years_with_data(df, config.months)
    df = df[df['Month'].isin(list(config.months)) & (df['DayofYear'] != LEAP_DAY_OF_YEAR)]

    if df.empty:
        return empty_stats(config.percentiles)

    rows = []
    for (station, day), group in df.groupby([STATION_COL, 'DayofYear'], sort=True):
        row = {STATION_COL: station, 'DayofYear': int(day)}
        row.update(summarise_values(group[value_col].to_numpy(dtype=float), config.percentiles))
        rows.append(row)

    stats = pd.DataFrame(rows)
    origin = get_origin_date(config.water_year_start)
    stats[DATE_COL] = origin + pd.to_timedelta(stats['DayofYear'], unit='D')
    stats['SampleCount'] = stats['SampleCount'].astype(int)
    return stats[stats_columns(config.percentiles)]


# =============================================================================
# PER-STATION PIPELINE
# =============================================================================

def calculate_station_cumulative(
    station_data: pd.DataFrame,
    config: CumulativeStatsConfig,
    station_metadata: Optional[Mapping[str, float]] = None,
) -> pd.DataFrame:
    """Gap-fill, add date variables and running totals for one or more stations."""
    filled = fill_missing_dates(station_data, config.water_year_start)
    dated = add_date_variables(filled, config.water_year_start)
    if config.use_yield:
        return add_cumulative_yield(
            dated, config.water_year_start,
            basin_area=config.basin_area,
            station_metadata=station_metadata,
        )
    return add_cumulative_volume(dated, config.water_year_start)


def calculate_station_statistics(
    station_number: str,
    station_data: pd.DataFrame,
    config: CumulativeStatsConfig,
    station_metadata: Optional[Mapping[str, float]] = None,
):
    """
    Cumulative series and daily statistics for a single station.

    Returns (cumulative, stats).
    Raises EmptyInput or MissingBasinArea; the caller decides to skip.
    """
    if station_data[VALUE_COL].notna().sum() == 0:
        raise EmptyInput(station_number, "no flow values")

    cumulative = calculate_station_cumulative(station_data, config, station_metadata)
    stats = calculate_daily_cumulative_stats(cumulative, config)

    if stats.empty:
        raise EmptyInput(station_number)

    return cumulative, stats


def add_overlay_year(
    stats: pd.DataFrame,
    cumulative: pd.DataFrame,
    config: CumulativeStatsConfig,
    result: Optional[CumulativeStatsResult] = None,
) -> pd.DataFrame:
    """
    Left-join one water year's cumulative trace onto the statistics as
    OverlayCumulative, matched on station and day of year.

    The overlay year goes through the same year range and exclusion filters
    as the statistics, so an excluded year gives an empty trace. Stations
    without data for the year keep an all-NaN column and get a warning.
    """
    year = config.overlay_year
    value_col = config.value_column

    year_data = filter_water_years(cumulative, config.start_year, config.end_year, config.exclude_years)
    year_data = year_data[(year_data['WaterYear'] == year) & (year_data['DayofYear'] != LEAP_DAY_OF_YEAR)]
    year_data = year_data[[STATION_COL, 'DayofYear', value_col]].rename(columns={value_col: OVERLAY_COL})

    merged = stats.merge(year_data, on=[STATION_COL, 'DayofYear'], how='left')

    for station, group in merged.groupby(STATION_COL, sort=False):
        if group[OVERLAY_COL].isna().all():
            message = str(NoMatchingOverlayData(station, year))
            if result is not None:
                result.warn(message)
            else:
                log.warning(message)

    return merged


# =============================================================================
# MAIN CALCULATION FUNCTION
# =============================================================================

def calculate_all_cumulative_statistics(
    data: pd.DataFrame,
    config: Optional[CumulativeStatsConfig] = None,
    station_metadata: Optional[Mapping[str, float]] = None,
) -> CumulativeStatsResult:
    """
    Daily cumulative statistics for every station in data.

    Args:
        data: observations with STATION_NUMBER, Date, Value columns
            (see flow_data.format_flow_columns for other layouts)
        config: run options; defaults to CumulativeStatsConfig()
        station_metadata: {station: basin area km2} for yield lookups

    Returns:
        CumulativeStatsResult with the combined statistics table, warnings
        and the stations that were skipped (station -> reason).

    Raises InvalidConfig before any calculation if config is invalid.
    """
    config = (config or CumulativeStatsConfig()).validate()
    result = CumulativeStatsResult(stats=empty_stats(config.percentiles))

    if config.station_numbers:
        data = data[data[STATION_COL].isin(list(config.station_numbers))]

    if data.empty:
        result.warn("No flow data provided; no statistics calculated")
        return result

    all_stats = []
    all_cumulative = []
    for station, station_data in data.groupby(STATION_COL, sort=True):
        log.info(f"Calculating daily cumulative statistics for {station}")
        try:
            cumulative, stats = calculate_station_statistics(
                station, station_data, config, station_metadata
            )
        except (MissingBasinArea, EmptyInput) as e:
            result.skipped_stations[station] = str(e)
            result.warn(f"Skipping station {station}: {e}")
            continue

        log.info(f"{station}: {len(stats)} days from "
                 f"{int(stats['SampleCount'].max())} water years")
        all_stats.append(stats)
        all_cumulative.append(cumulative)

    if not all_stats:
        result.warn("No stations produced daily cumulative statistics")
        return result

    result.stats = pd.concat(all_stats, ignore_index=True)
    result.cumulative = pd.concat(all_cumulative, ignore_index=True)

    if config.overlay_year is not None:
        result.stats = add_overlay_year(result.stats, result.cumulative, config, result)

    return result


# =============================================================================
# OUTPUT FORMATTING
# =============================================================================

def _clean(value):
    """Convert numpy/pandas scalars to JSON/database friendly values."""
    if value is None:
        return None
    if isinstance(value, pd.Timestamp):
        return value.date().isoformat()
    if isinstance(value, (np.integer,)):
        return int(value)
    if isinstance(value, (float, np.floating)):
        return None if np.isnan(value) else float(value)
    return value


def stats_to_records(stats: pd.DataFrame) -> List[Dict[str, Any]]:
    """Statistics rows as plain dicts (dates as ISO strings, NaN as None)."""
    return [
        {col: _clean(value) for col, value in row.items()}
        for row in stats.to_dict(orient='records')
    ]


def format_for_database(stats: pd.DataFrame, config: CumulativeStatsConfig) -> List[Dict[str, Any]]:
    """
    Flatten statistics to rows of the daily_cumulative_stats table.

    Percentiles go into a single percentile_values mapping so any
    percentile list can be stored.
    """
    value_type = 'yield_mm' if config.use_yield else 'volume_m3'
    pct_cols = config.percentile_columns
    rows = []
    for record in stats_to_records(stats):
        rows.append({
            'station_number': record[STATION_COL],
            'water_year_start': config.water_year_start,
            'value_type': value_type,
            'day_of_year': record['DayofYear'],
            'analysis_date': record[DATE_COL],
            'mean_value': record['Mean'],
            'median_value': record['Median'],
            'min_value': record['Minimum'],
            'max_value': record['Maximum'],
            'percentile_values': {col: record.get(col) for col in pct_cols},
            'overlay_year': config.overlay_year,
            'overlay_value': record.get(OVERLAY_COL),
            'sample_count': record['SampleCount'],
        })
    return rows
