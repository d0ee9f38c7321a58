"""
Daily cumulative statistics API endpoints.

Calculates cumulative volume or yield statistics per day of year on request
from the daily_flow table, for percentile ribbon charts in the frontend.

Tables:
- station (station_number, station_name, drainage_area_km2)
- daily_flow (station_number, obs_date, value in m3/s)

Values: cumulative volume in m3, or cumulative yield in mm with use_yield.
Dates: reference calendar dates of each day of the water year.
"""

import logging
from typing import Any, Dict, List, Optional

import asyncpg
import pandas as pd
from fastapi import APIRouter, Depends, HTTPException, Query
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, Field

from ...config import ALL_MONTHS, DEFAULT_PERCENTILES, CumulativeStatsConfig
from ...cumulative.calculate_cumulative_statistics import (
    calculate_all_cumulative_statistics,
    stats_to_records,
)
from ...errors import InvalidConfig
from ...flow_data import format_flow_columns

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/statistics", tags=["statistics"])


# =============================================================================
# PYDANTIC MODELS
# =============================================================================


class StationSummary(BaseModel):
    """Summary info for a station"""

    station_number: str
    station_name: str
    drainage_area_km2: Optional[float] = None


class DailyCumulativeStatsResponse(BaseModel):
    """Daily cumulative statistics for one station"""

    station_number: str = Field(..., description="Station number (e.g., '08NM116')")
    unit: str = Field(..., description="'m3' for cumulative volume, 'mm' for cumulative yield")
    water_year_start: int = Field(..., description="First month of the water year")
    overlay_year: Optional[int] = Field(None, description="Water year in OverlayCumulative")
    stats: List[Dict[str, Any]] = Field(
        ..., description="One row per day of year: Mean, Median, Minimum, Maximum, P<p>"
    )
    warnings: List[str] = Field(default_factory=list)


# =============================================================================
# DATABASE CONNECTION
# =============================================================================

db_pool = None


def set_db_pool(pool):
    global db_pool
    db_pool = pool


async def get_db():
    if db_pool is None:
        raise HTTPException(status_code=500, detail="Database not available")
    async with db_pool.acquire() as connection:
        yield connection


async def fetch_daily_flows(connection: asyncpg.Connection, station_number: str) -> pd.DataFrame:
    query = """
    SELECT station_number, obs_date, value
    FROM daily_flow
    WHERE station_number = $1
    ORDER BY obs_date
    """
    rows = await connection.fetch(query, station_number)
    raw = pd.DataFrame(
        [(row["station_number"], row["obs_date"], row["value"]) for row in rows],
        columns=["station_number", "obs_date", "value"],
    )
    return format_flow_columns(raw, dates="obs_date", values="value", groups="station_number")


async def fetch_basin_area(connection: asyncpg.Connection, station_number: str) -> Optional[float]:
    query = """
    SELECT drainage_area_km2
    FROM station
    WHERE station_number = $1
    """
    row = await connection.fetchrow(query, station_number)
    if row is None or row["drainage_area_km2"] is None:
        return None
    return float(row["drainage_area_km2"])


# =============================================================================
# ENDPOINTS
# =============================================================================


@router.get("/stations", response_model=List[StationSummary], summary="List stations")
async def list_stations(connection: asyncpg.Connection = Depends(get_db)):
    query = """
    SELECT station_number, station_name, drainage_area_km2
    FROM station
    ORDER BY station_number
    """
    rows = await connection.fetch(query)
    return [
        StationSummary(
            station_number=row["station_number"],
            station_name=row["station_name"] or row["station_number"],
            drainage_area_km2=float(row["drainage_area_km2"])
            if row["drainage_area_km2"] is not None
            else None,
        )
        for row in rows
    ]


@router.get(
    "/stations/{station_number}/daily-cumulative",
    response_model=DailyCumulativeStatsResponse,
    summary="Get daily cumulative flow statistics",
)
async def get_daily_cumulative_stats(
    station_number: str,
    water_year_start: int = Query(1, description="First month of the water year (1-12)"),
    start_year: Optional[int] = Query(None, description="First water year"),
    end_year: Optional[int] = Query(None, description="Last water year"),
    exclude_years: Optional[List[int]] = Query(None, description="Water years to exclude"),
    months: Optional[List[int]] = Query(None, description="Months of interest (1-12)"),
    percentiles: Optional[List[float]] = Query(None, description="Percentiles to calculate"),
    use_yield: bool = Query(False, description="Cumulative yield (mm) instead of volume (m3)"),
    basin_area: Optional[float] = Query(None, description="Basin area in km2"),
    add_year: Optional[int] = Query(None, description="Water year to overlay"),
    connection: asyncpg.Connection = Depends(get_db),
):
    """
    Calculate daily cumulative statistics for a station.

    Missing statistics are returned as null; charts draw them as 0.
    """
    config = CumulativeStatsConfig(
        water_year_start=water_year_start,
        start_year=start_year,
        end_year=end_year,
        exclude_years=tuple(exclude_years or ()),
        months=tuple(months) if months else ALL_MONTHS,
        percentiles=tuple(percentiles) if percentiles else DEFAULT_PERCENTILES,
        use_yield=use_yield,
        basin_area=basin_area,
        overlay_year=add_year,
    )
    try:
        config.validate()
    except InvalidConfig as e:
        raise HTTPException(status_code=400, detail=str(e))

    data = await fetch_daily_flows(connection, station_number)
    if data.empty:
        raise HTTPException(status_code=404, detail=f"No daily flow data for station {station_number}")

    station_metadata = None
    if use_yield and basin_area is None:
        area = await fetch_basin_area(connection, station_number)
        station_metadata = {station_number: area} if area is not None else None

    # pandas/numpy work runs off the event loop
    result = await run_in_threadpool(
        calculate_all_cumulative_statistics, data, config, station_metadata=station_metadata
    )

    if station_number in result.skipped_stations:
        raise HTTPException(status_code=404, detail=result.skipped_stations[station_number])

    logger.info(f"Calculated {len(result.stats)} daily cumulative rows for {station_number}")

    return DailyCumulativeStatsResponse(
        station_number=station_number,
        unit="mm" if use_yield else "m3",
        water_year_start=water_year_start,
        overlay_year=add_year,
        stats=stats_to_records(result.stats),
        warnings=result.warnings,
    )
