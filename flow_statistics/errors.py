"""
Error kinds raised by the cumulative statistics pipeline.

InvalidConfig aborts a run before any computation. The other errors are
scoped to one station: the station is skipped (or its overlay left empty)
with a warning and the remaining stations proceed.
"""


class CumulativeStatsError(Exception):
    """Base class for cumulative statistics errors."""


class InvalidConfig(CumulativeStatsError, ValueError):
    """Bad water year month, percentile, year range or other option."""


class MissingBasinArea(CumulativeStatsError):
    """Yield requested but no basin area could be resolved for a station."""

    def __init__(self, station_number: str):
        self.station_number = station_number
        super().__init__(
            f"No basin area available for station {station_number}; "
            f"supply basin_area or station metadata to calculate yield"
        )


class NoMatchingOverlayData(CumulativeStatsError):
    """The requested overlay year has no data for a station."""

    def __init__(self, station_number: str, year: int):
        self.station_number = station_number
        self.year = year
        super().__init__(
            f"Daily data does not exist for station {station_number} in water year {year}"
        )


class EmptyInput(CumulativeStatsError):
    """No observations remain for a station after filtering."""

    def __init__(self, station_number: str, reason: str = "no observations remain after filtering"):
        self.station_number = station_number
        super().__init__(f"Station {station_number}: {reason}")
