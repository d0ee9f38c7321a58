"""
Daily flow data import.

Loads daily flow tables from a local CSV, an S3 object or the daily_flow
database table, and maps caller column names onto the canonical
STATION_NUMBER / Date / Value layout used by the statistics code.
"""

import logging
from typing import List, Optional, Sequence

import pandas as pd

from .config import settings
from .cumulative.water_year import DATE_COL, STATION_COL, VALUE_COL, to_naive_dates
from .errors import InvalidConfig

# Optional: boto3 for S3 access
try:
    import boto3
    HAS_BOTO3 = True
except ImportError:
    HAS_BOTO3 = False

# Optional: psycopg2 for database access
try:
    import psycopg2
    HAS_PSYCOPG2 = True
except ImportError:
    HAS_PSYCOPG2 = False

log = logging.getLogger("flow_data")

# Station number given to data without a station column
PLACEHOLDER_STATION = "XXXXXXX"


def format_flow_columns(
    data: pd.DataFrame,
    dates: str = DATE_COL,
    values: str = VALUE_COL,
    groups: str = STATION_COL,
    rm_other_cols: bool = True,
) -> pd.DataFrame:
    """
    Rename caller columns to STATION_NUMBER, Date and Value and coerce types.

    Args:
        data: daily flow table
        dates: name of the date column
        values: name of the daily mean flow column (m3/s)
        groups: name of the station column; if absent every row is given
            the placeholder station XXXXXXX
        rm_other_cols: drop every other column

    Raises InvalidConfig if the date or value column is missing, or no
    date could be parsed.
    """
    if dates not in data.columns:
        raise InvalidConfig(
            f"Dates not found in data. Rename dates column to '{DATE_COL}' "
            f"or identify the column using the 'dates' argument."
        )
    if values not in data.columns:
        raise InvalidConfig(
            f"Values not found in data. Rename values column to '{VALUE_COL}' "
            f"or identify the column using the 'values' argument."
        )

    df = data.copy()
    if groups not in df.columns:
        log.info(f"No '{groups}' column found; treating data as a single station")
        df[STATION_COL] = PLACEHOLDER_STATION
        groups = STATION_COL

    df = df.rename(columns={groups: STATION_COL, dates: DATE_COL, values: VALUE_COL})
    # Rename can leave duplicate columns when a canonical name already exists elsewhere
    df = df.loc[:, ~df.columns.duplicated(keep='first')]

    df[DATE_COL] = to_naive_dates(df[DATE_COL])
    if df[DATE_COL].isna().all() and len(df) > 0:
        raise InvalidConfig(f"Could not parse any dates from column '{dates}'")
    bad_dates = int(df[DATE_COL].isna().sum())
    if bad_dates:
        log.warning(f"Dropping {bad_dates} rows with unparseable dates")
        df = df.dropna(subset=[DATE_COL])

    df[VALUE_COL] = pd.to_numeric(df[VALUE_COL], errors='coerce')
    df[STATION_COL] = df[STATION_COL].astype(str)

    if rm_other_cols:
        df = df[[STATION_COL, DATE_COL, VALUE_COL]]
    else:
        others = [c for c in df.columns if c not in (STATION_COL, DATE_COL, VALUE_COL)]
        df = df[[STATION_COL, DATE_COL, VALUE_COL] + others]

    return df.reset_index(drop=True)


def filter_stations(data: pd.DataFrame, station_numbers: Optional[Sequence[str]]) -> pd.DataFrame:
    """Keep the given stations; warn about requested stations with no data."""
    if not station_numbers:
        return data
    wanted = [str(s) for s in station_numbers]
    missing = sorted(set(wanted) - set(data[STATION_COL].unique()))
    for station in missing:
        log.warning(f"Station {station} not found in flow data")
    return data[data[STATION_COL].isin(wanted)].reset_index(drop=True)


def load_flow_csv(file_path: str, sep: str = ",", **column_names) -> pd.DataFrame:
    """Load a daily flow CSV from a local file and format its columns."""
    log.info(f"Loading from file: {file_path}")
    sep = "\t" if sep == r"\t" else sep
    raw = pd.read_csv(file_path, sep=sep)
    return format_flow_columns(raw, **column_names)


def load_flow_csv_from_s3(key: str, bucket: Optional[str] = None, **column_names) -> pd.DataFrame:
    """Load a daily flow CSV from S3 and format its columns."""
    if not HAS_BOTO3:
        raise ImportError("boto3 is required for S3 access. Install with: pip install boto3")

    bucket = bucket or settings.S3_BUCKET
    s3 = boto3.client('s3', region_name=settings.AWS_REGION)
    log.info(f"Loading s3://{bucket}/{key}")
    response = s3.get_object(Bucket=bucket, Key=key)
    raw = pd.read_csv(response['Body'])
    log.info(f"DataFrame shape: {raw.shape}")
    return format_flow_columns(raw, **column_names)


def load_flow_from_db(
    station_numbers: Optional[List[str]] = None,
    database_url: Optional[str] = None,
) -> pd.DataFrame:
    """
    Load daily flows from the daily_flow table.

    Table columns: station_number, obs_date, value (m3/s).
    """
    if not HAS_PSYCOPG2:
        raise ImportError("psycopg2 required for database access. Install with: pip install psycopg2-binary")

    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL environment variable not set")

    query = "SELECT station_number, obs_date, value FROM daily_flow"
    params = None
    if station_numbers:
        query += " WHERE station_number = ANY(%s)"
        params = (list(station_numbers),)
    query += " ORDER BY station_number, obs_date"

    conn = psycopg2.connect(database_url)
    try:
        cursor = conn.cursor()
        cursor.execute(query, params)
        rows = cursor.fetchall()
        cursor.close()
    finally:
        conn.close()

    log.info(f"Loaded {len(rows)} daily flow rows from database")
    raw = pd.DataFrame(rows, columns=['station_number', 'obs_date', 'value'])
    return format_flow_columns(raw, dates='obs_date', values='value', groups='station_number')
