"""
Water year calendar handling for daily flow data.

- Water year numbering with a configurable start month
- Day of water year aligned to a fixed non-leap reference year
- Filling of missing dates to complete water years

A water year starting in month M > 1 is labelled by the calendar year in which
it ends, e.g. with M = 10, 1 October 2000 - 30 September 2001 is water year
2001. With M = 1 the water year is the calendar year.

Day of year is counted on a non-leap reference water year (the one running
through 1900), so a given calendar date has the same DayofYear in every year.
29 February has no reference slot and is assigned LEAP_DAY_OF_YEAR (366). It
stays in the data for running sums and is dropped from per-day output.
"""

import datetime
from functools import lru_cache
from typing import Dict, Union

import pandas as pd

from ..config import validate_water_year_start

DateLike = Union[datetime.date, pd.Timestamp, str]

DAYS_IN_REFERENCE_YEAR = 365
LEAP_DAY_OF_YEAR = 366

# Canonical observation columns
STATION_COL = 'STATION_NUMBER'
DATE_COL = 'Date'
VALUE_COL = 'Value'


def to_naive_dates(dates: pd.Series) -> pd.Series:
    """
    Parse dates and drop any timezone, keeping local wall-clock dates, so
    they line up with the naive water year calendar. Unparseable values
    become NaT.
    """
    dates = pd.to_datetime(dates, errors='coerce')
    if dates.dt.tz is not None:
        dates = dates.dt.tz_localize(None)
    return dates.dt.normalize()


def _reference_start(water_year_start: int) -> pd.Timestamp:
    """First day of the reference water year (which ends in non-leap 1900)."""
    year = 1900 if water_year_start == 1 else 1899
    return pd.Timestamp(year=year, month=water_year_start, day=1)


def get_origin_date(water_year_start: int = 1) -> pd.Timestamp:
    """
    Reference date of day 0.

    origin + DayofYear days gives the reference calendar date of a day of
    year, e.g. water_year_start=10 -> 1899-09-30, so day 1 is 1899-10-01.
    """
    water_year_start = validate_water_year_start(water_year_start)
    return _reference_start(water_year_start) - pd.Timedelta(days=1)


@lru_cache(maxsize=12)
def _day_of_year_lookup(water_year_start: int) -> Dict[int, int]:
    """Map month * 100 + day -> day of year on the reference water year."""
    dates = pd.date_range(_reference_start(water_year_start), periods=DAYS_IN_REFERENCE_YEAR, freq='D')
    return {d.month * 100 + d.day: i + 1 for i, d in enumerate(dates)}


def water_year_of(date: DateLike, water_year_start: int = 1) -> int:
    """Water year label of a single date."""
    water_year_start = validate_water_year_start(water_year_start)
    ts = pd.Timestamp(date)
    if water_year_start > 1 and ts.month >= water_year_start:
        return ts.year + 1
    return ts.year


def day_of_water_year(date: DateLike, water_year_start: int = 1) -> int:
    """Day of water year (1-365) of a single date; 29 February returns 366."""
    water_year_start = validate_water_year_start(water_year_start)
    ts = pd.Timestamp(date)
    return _day_of_year_lookup(water_year_start).get(ts.month * 100 + ts.day, LEAP_DAY_OF_YEAR)


def water_year_bounds(water_year: int, water_year_start: int = 1):
    """First and last calendar date of a water year."""
    water_year_start = validate_water_year_start(water_year_start)
    first_year = water_year if water_year_start == 1 else water_year - 1
    start = pd.Timestamp(year=first_year, month=water_year_start, day=1)
    end = start + pd.DateOffset(years=1) - pd.Timedelta(days=1)
    return start, end


def add_date_variables(data: pd.DataFrame, water_year_start: int = 1) -> pd.DataFrame:
    """
    Add CalendarYear, Month, MonthName, WaterYear and DayofYear columns.

    Args:
        data: DataFrame with a Date column
        water_year_start: first month of the water year (1-12)

    Returns a copy of data with the date variables added.
    """
    water_year_start = validate_water_year_start(water_year_start)

    df = data.copy()
    df[DATE_COL] = to_naive_dates(df[DATE_COL])
    dates = df[DATE_COL].dt

    df['CalendarYear'] = dates.year
    df['Month'] = dates.month
    df['MonthName'] = dates.month_name().str[:3]

    df['WaterYear'] = df['CalendarYear']
    if water_year_start > 1:
        df.loc[df['Month'] >= water_year_start, 'WaterYear'] += 1

    lookup = _day_of_year_lookup(water_year_start)
    month_day = df['Month'] * 100 + dates.day
    df['DayofYear'] = month_day.map(lookup).fillna(LEAP_DAY_OF_YEAR).astype(int)

    return df


def fill_missing_dates(data: pd.DataFrame, water_year_start: int = 1) -> pd.DataFrame:
    """
    Insert NaN-valued rows for missing days, per station.

    Each station's series is extended to whole water years: from the first day
    of the water year of its earliest date to the last day of the water year of
    its latest date. Rows are grouped by station and sorted by date.
    """
    water_year_start = validate_water_year_start(water_year_start)

    df = data.copy()
    df[DATE_COL] = to_naive_dates(df[DATE_COL])
    df = df.dropna(subset=[DATE_COL])

    filled = []
    for station, group in df.groupby(STATION_COL, sort=False):
        first, _ = water_year_bounds(water_year_of(group[DATE_COL].min(), water_year_start), water_year_start)
        _, last = water_year_bounds(water_year_of(group[DATE_COL].max(), water_year_start), water_year_start)
        full_range = pd.date_range(first, last, freq='D', name=DATE_COL)

        station_df = group.set_index(DATE_COL).sort_index().reindex(full_range)
        station_df[STATION_COL] = station
        filled.append(station_df.reset_index())

    if not filled:
        return df.iloc[0:0].reset_index(drop=True)

    out = pd.concat(filled, ignore_index=True)
    columns = [STATION_COL, DATE_COL] + [c for c in out.columns if c not in (STATION_COL, DATE_COL)]
    return out[columns]
