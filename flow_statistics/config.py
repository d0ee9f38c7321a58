"""
Configuration for the flow statistics package.

Settings: environment-driven service configuration (database, S3, API).
CumulativeStatsConfig: options of a single cumulative statistics run.
"""

import math
import numbers
import os
from dataclasses import dataclass, field
from typing import List, Mapping, Optional, Sequence, Tuple, Union

from .errors import InvalidConfig


class Settings:
    # Database
    DATABASE_URL: Optional[str] = os.getenv("DATABASE_URL")

    # S3
    S3_BUCKET: str = os.getenv("S3_BUCKET", "hydrometric-daily-flows")
    AWS_REGION: str = os.getenv("AWS_REGION", "us-west-2")

    # Station reference metadata (station_number, station_name, drainage_area_km2)
    STATION_METADATA_CSV: Optional[str] = os.getenv("STATION_METADATA_CSV")

    # API Settings
    API_TITLE: str = "Flow Statistics API"
    API_VERSION: str = "1.0.0"
    API_DESCRIPTION: str = "Daily cumulative flow statistics for hydrometric stations"

    # CORS Settings
    ALLOWED_ORIGINS: List[str] = [
        "http://localhost:3000",  # Frontend development
        "http://localhost:3001",
    ]


settings = Settings()


DEFAULT_PERCENTILES: Tuple[float, ...] = (5, 25, 75, 95)
ALL_MONTHS: Tuple[int, ...] = tuple(range(1, 13))


def percentile_column(p: float) -> str:
    """Column name for a percentile (5 -> 'P5', 2.5 -> 'P2.5')."""
    return f"P{p:g}"


def _is_int(value) -> bool:
    return isinstance(value, numbers.Integral) and not isinstance(value, bool)


def _is_positive_number(value) -> bool:
    return (
        isinstance(value, numbers.Real)
        and not isinstance(value, bool)
        and math.isfinite(value)
        and value > 0
    )


@dataclass
class CumulativeStatsConfig:
    """
    Options for a daily cumulative statistics run.

    water_year_start: first month of the water year (1 = calendar year)
    start_year / end_year: inclusive water year bounds, None = unbounded
    exclude_years: water years left out of the statistics
    months: months of interest; rows outside them do not contribute
    use_yield: report cumulative yield (mm) instead of volume (m3)
    basin_area: km2, one number for all stations or {station: km2};
        None = look up in station metadata
    percentiles: percentiles reported as P<p> columns
    overlay_year: water year added as a single-year trace
    log_scale / include_title: presentation only
    """
    water_year_start: int = 1
    start_year: Optional[int] = None
    end_year: Optional[int] = None
    exclude_years: Sequence[int] = ()
    months: Sequence[int] = ALL_MONTHS
    use_yield: bool = False
    basin_area: Optional[Union[float, Mapping[str, float]]] = None
    percentiles: Sequence[float] = DEFAULT_PERCENTILES
    overlay_year: Optional[int] = None
    log_scale: bool = False
    include_title: bool = False
    station_numbers: Optional[Sequence[str]] = field(default=None)

    def validate(self) -> "CumulativeStatsConfig":
        """Raise InvalidConfig on any bad option. Returns self."""
        validate_water_year_start(self.water_year_start)

        for name in ("start_year", "end_year", "overlay_year"):
            value = getattr(self, name)
            if value is not None and not _is_int(value):
                raise InvalidConfig(f"{name} must be an integer year, got {value!r}")
        if (self.start_year is not None and self.end_year is not None
                and self.start_year > self.end_year):
            raise InvalidConfig(
                f"start_year ({self.start_year}) must be less than or equal to "
                f"end_year ({self.end_year})"
            )

        if isinstance(self.exclude_years, (str, bytes)):
            raise InvalidConfig("exclude_years must be a list of integer years")
        for year in self.exclude_years:
            if not _is_int(year):
                raise InvalidConfig(f"exclude_years must contain integer years, got {year!r}")

        if not list(self.months):
            raise InvalidConfig("months must contain at least one month (1-12)")
        for month in self.months:
            if not _is_int(month) or not 1 <= month <= 12:
                raise InvalidConfig(f"months must be integers between 1 and 12, got {month!r}")

        for p in self.percentiles:
            if (not isinstance(p, numbers.Real) or isinstance(p, bool)
                    or not math.isfinite(p) or not 0 <= p <= 100):
                raise InvalidConfig(f"percentiles must be numbers between 0 and 100, got {p!r}")

        if self.basin_area is not None:
            if isinstance(self.basin_area, Mapping):
                for station, area in self.basin_area.items():
                    if area is not None and not _is_positive_number(area):
                        raise InvalidConfig(
                            f"basin_area for station {station} must be a positive number, got {area!r}"
                        )
            elif not _is_positive_number(self.basin_area):
                raise InvalidConfig(
                    f"basin_area must be a positive number (km2), got {self.basin_area!r}"
                )

        for name in ("use_yield", "log_scale", "include_title"):
            if not isinstance(getattr(self, name), bool):
                raise InvalidConfig(f"{name} must be True or False")

        return self

    @property
    def percentile_columns(self) -> List[str]:
        return [percentile_column(p) for p in sorted(set(self.percentiles))]

    @property
    def value_column(self) -> str:
        """Cumulative column the statistics are calculated from."""
        return "Cumul_Yield_mm" if self.use_yield else "Cumul_Volume_m3"


def validate_water_year_start(water_year_start) -> int:
    if not _is_int(water_year_start) or not 1 <= water_year_start <= 12:
        raise InvalidConfig(
            f"water_year_start must be an integer month between 1 and 12, got {water_year_start!r}"
        )
    return int(water_year_start)
