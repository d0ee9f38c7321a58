"""
Station reference metadata (name, drainage area).

The drainage area is the basin area used to turn cumulative volume into
yield when no explicit basin_area is given.
"""

import csv
import logging
import math
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

from .config import settings

# Optional: psycopg2 for database access
try:
    import psycopg2
    HAS_PSYCOPG2 = True
except ImportError:
    HAS_PSYCOPG2 = False

log = logging.getLogger("stations")


def _parse_area(raw) -> Optional[float]:
    if raw is None or str(raw).strip() == '':
        return None
    try:
        area = float(raw)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(area) or area <= 0:
        return None
    return area


def load_station_metadata(
    csv_path: Optional[Path] = None,
    filter_codes: Optional[List[str]] = None,
) -> Dict[str, Dict[str, Any]]:
    """
    Load station metadata from a CSV with columns
    station_number, station_name, drainage_area_km2.

    Args:
        csv_path: path to the CSV (defaults to STATION_METADATA_CSV)
        filter_codes: optional list of station numbers to keep

    Returns dict keyed by station_number with name and basin_area_km2.
    Stations without a usable area are kept with basin_area_km2 = None.
    """
    if csv_path is None:
        if not settings.STATION_METADATA_CSV:
            raise ValueError("No station metadata CSV given and STATION_METADATA_CSV not set")
        csv_path = settings.STATION_METADATA_CSV
    csv_path = Path(csv_path)

    if not csv_path.exists():
        raise FileNotFoundError(f"Station metadata CSV not found at {csv_path}")

    stations = {}
    with open(csv_path, 'r', newline='') as f:
        reader = csv.DictReader(f)
        for row in reader:
            station_number = row['station_number'].strip()

            if filter_codes is not None and station_number not in filter_codes:
                continue

            stations[station_number] = {
                'name': (row.get('station_name') or station_number).strip(),
                'basin_area_km2': _parse_area(row.get('drainage_area_km2')),
            }

    log.info(f"Loaded {len(stations)} stations from {csv_path}")
    return stations


def load_station_metadata_from_db(
    filter_codes: Optional[List[str]] = None,
    database_url: Optional[str] = None,
) -> Dict[str, Dict[str, Any]]:
    """Load station metadata from the station table."""
    if not HAS_PSYCOPG2:
        raise ImportError("psycopg2 required for database access. Install with: pip install psycopg2-binary")

    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL environment variable not set")

    query = "SELECT station_number, station_name, drainage_area_km2 FROM station"
    params = None
    if filter_codes:
        query += " WHERE station_number = ANY(%s)"
        params = (list(filter_codes),)

    conn = psycopg2.connect(database_url)
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        rows = cursor.fetchall()
        cursor.close()
    finally:
        conn.close()

    stations = {
        station_number: {
            'name': station_name or station_number,
            'basin_area_km2': _parse_area(area),
        }
        for station_number, station_name, area in rows
    }
    log.info(f"Loaded {len(stations)} stations from database")
    return stations


def basin_areas(metadata: Mapping[str, Mapping[str, Any]]) -> Dict[str, float]:
    """{station: basin area km2} for stations with a known area."""
    return {
        station: meta['basin_area_km2']
        for station, meta in metadata.items()
        if meta.get('basin_area_km2') is not None
    }
