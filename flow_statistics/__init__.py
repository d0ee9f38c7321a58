"""
Daily cumulative flow statistics for hydrometric stations.
"""

from .config import CumulativeStatsConfig
from .errors import (
    CumulativeStatsError,
    EmptyInput,
    InvalidConfig,
    MissingBasinArea,
    NoMatchingOverlayData,
)
from .cumulative import calculate_all_cumulative_statistics

__version__ = "1.0.0"

__all__ = [
    "CumulativeStatsConfig",
    "CumulativeStatsError",
    "EmptyInput",
    "InvalidConfig",
    "MissingBasinArea",
    "NoMatchingOverlayData",
    "calculate_all_cumulative_statistics",
]
