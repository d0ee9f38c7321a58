#!/usr/bin/env python3
"""
Main entry point for daily cumulative flow statistics.

Loads daily flows (local CSV, S3 or database), calculates cumulative
volume or yield statistics per day of year and writes them out as CSV,
JSON, charts and/or database rows.

Usage:
    python -m flow_statistics.main --csv-path flows.csv --output-csv stats.csv
    python -m flow_statistics.main --csv-path flows.csv --use-yield --station-metadata stations.csv
    python -m flow_statistics.main --from-db --station 08NM116 --water-year-start 10 --write-db
    python -m flow_statistics.main --s3-key daily/08NM116.csv --add-year 2015 --plot-dir charts --pdf
"""

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Dict, List, Optional

from .config import ALL_MONTHS, DEFAULT_PERCENTILES, CumulativeStatsConfig, settings
from .cumulative.calculate_cumulative_statistics import (
    CumulativeStatsResult,
    calculate_all_cumulative_statistics,
    format_for_database,
    stats_to_records,
)
from .errors import InvalidConfig
from .flow_data import filter_stations, load_flow_csv, load_flow_csv_from_s3, load_flow_from_db
from .stations import basin_areas, load_station_metadata, load_station_metadata_from_db

# Optional: psycopg2 for direct database writes
try:
    import psycopg2
    from psycopg2.extras import Json, execute_values
    HAS_PSYCOPG2 = True
except ImportError:
    HAS_PSYCOPG2 = False

log = logging.getLogger("flow_statistics")

DB_COLUMNS = [
    'station_number', 'water_year_start', 'value_type', 'day_of_year', 'analysis_date',
    'mean_value', 'median_value', 'min_value', 'max_value', 'percentile_values',
    'overlay_year', 'overlay_value', 'sample_count',
]


def get_db_connection(database_url: Optional[str] = None):
    """Get database connection from DATABASE_URL."""
    if not HAS_PSYCOPG2:
        raise ImportError("psycopg2 required for database writes. Install with: pip install psycopg2-binary")
    database_url = database_url or settings.DATABASE_URL
    if not database_url:
        raise ValueError("DATABASE_URL environment variable not set")
    return psycopg2.connect(database_url)


def write_stats_to_db(rows: List[Dict[str, Any]], database_url: Optional[str] = None) -> int:
    """
    Upsert rows from format_for_database into daily_cumulative_stats.

    Existing rows for the same stations, water year start and value type
    are deleted first in the same transaction, so days left out by the
    current filters do not keep statistics from an earlier run.

    Returns number of rows written.
    """
    if not rows:
        return 0

    conn = get_db_connection(database_url)
    cursor = conn.cursor()

    analyses = sorted({(row['water_year_start'], row['value_type']) for row in rows})
    for water_year_start, value_type in analyses:
        stations = sorted({
            row['station_number'] for row in rows
            if row['water_year_start'] == water_year_start and row['value_type'] == value_type
        })
        cursor.execute(
            """
            DELETE FROM daily_cumulative_stats
            WHERE station_number = ANY(%s) AND water_year_start = %s AND value_type = %s
            """,
            (stations, water_year_start, value_type)
        )
        log.info(f"Cleared previous {value_type} rows for {len(stations)} stations")

    values = [
        tuple(Json(row[col]) if col == 'percentile_values' else row[col] for col in DB_COLUMNS)
        for row in rows
    ]
    execute_values(
        cursor,
        f"""
        INSERT INTO daily_cumulative_stats ({', '.join(DB_COLUMNS)})
        VALUES %s
        ON CONFLICT (station_number, water_year_start, value_type, day_of_year)
        DO UPDATE SET
            analysis_date = EXCLUDED.analysis_date,
            mean_value = EXCLUDED.mean_value, median_value = EXCLUDED.median_value,
            min_value = EXCLUDED.min_value, max_value = EXCLUDED.max_value,
            percentile_values = EXCLUDED.percentile_values,
            overlay_year = EXCLUDED.overlay_year, overlay_value = EXCLUDED.overlay_value,
            sample_count = EXCLUDED.sample_count,
            updated_at = NOW()
        """,
        values
    )
    conn.commit()
    cursor.close()
    conn.close()

    log.info(f"Wrote {len(values)} daily cumulative statistics rows")
    return len(values)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description='Calculate daily cumulative flow statistics (volume or yield) per day of year'
    )

    source = parser.add_argument_group('input')
    source.add_argument('--csv-path', help='Local daily flow CSV file')
    source.add_argument('--s3-key', help='Daily flow CSV object key in S3_BUCKET')
    source.add_argument('--from-db', action='store_true', help='Load daily flows from the daily_flow table')
    source.add_argument('--dates-col', default='Date', help='Date column name (default: Date)')
    source.add_argument('--values-col', default='Value', help='Flow column name, m3/s (default: Value)')
    source.add_argument('--groups-col', default='STATION_NUMBER', help='Station column name (default: STATION_NUMBER)')
    source.add_argument('--station', nargs='+', help='Station number(s) to process')
    source.add_argument('--station-metadata', help='Station metadata CSV with drainage_area_km2')
    source.add_argument('--metadata-from-db', action='store_true', help='Load station metadata from the station table')

    options = parser.add_argument_group('statistics')
    options.add_argument('--water-year-start', type=int, default=1, help='First month of the water year (1-12)')
    options.add_argument('--start-year', type=int, help='First water year to include')
    options.add_argument('--end-year', type=int, help='Last water year to include')
    options.add_argument('--exclude-years', type=int, nargs='+', default=[], help='Water years to exclude')
    options.add_argument('--months', type=int, nargs='+', default=list(ALL_MONTHS), help='Months of interest')
    options.add_argument('--percentiles', type=float, nargs='+', default=list(DEFAULT_PERCENTILES),
                         help='Percentiles to calculate (default: 5 25 75 95)')
    options.add_argument('--use-yield', action='store_true', help='Cumulative yield (mm) instead of volume (m3)')
    options.add_argument('--basin-area', type=float, help='Basin area in km2 (overrides station metadata)')
    options.add_argument('--add-year', type=int, help='Water year to add as an overlay trace')
    options.add_argument('--log-scale', action='store_true', help='Logarithmic y axis on charts')
    options.add_argument('--include-title', action='store_true', help='Station number as chart title')

    output = parser.add_argument_group('output')
    output.add_argument('--output-csv', help='Write statistics to CSV')
    output.add_argument('--output-json', action='store_true', help='Print statistics as JSON')
    output.add_argument('--plot-dir', help='Write PNG charts to this directory')
    output.add_argument('--pdf', action='store_true', help='Also write a PDF report to --plot-dir')
    output.add_argument('--write-db', action='store_true', help='Upsert statistics into daily_cumulative_stats')
    output.add_argument('--dry-run', action='store_true', help='Calculate but do not save output')
    output.add_argument('--verbose', '-v', action='store_true', help='Debug logging')

    return parser


def build_config(args) -> CumulativeStatsConfig:
    return CumulativeStatsConfig(
        water_year_start=args.water_year_start,
        start_year=args.start_year,
        end_year=args.end_year,
        exclude_years=tuple(args.exclude_years),
        months=tuple(args.months),
        use_yield=args.use_yield,
        basin_area=args.basin_area,
        percentiles=tuple(args.percentiles),
        overlay_year=args.add_year,
        log_scale=args.log_scale,
        include_title=args.include_title,
        station_numbers=args.station,
    ).validate()


def load_input(args):
    column_names = {
        'dates': args.dates_col,
        'values': args.values_col,
        'groups': args.groups_col,
    }
    if args.csv_path:
        data = load_flow_csv(args.csv_path, **column_names)
    elif args.s3_key:
        data = load_flow_csv_from_s3(args.s3_key, **column_names)
    else:
        data = load_flow_from_db(args.station)
    return filter_stations(data, args.station)


def load_metadata(args) -> Optional[Dict[str, float]]:
    if args.station_metadata:
        return basin_areas(load_station_metadata(Path(args.station_metadata)))
    if args.metadata_from_db:
        return basin_areas(load_station_metadata_from_db(args.station))
    if args.use_yield and args.basin_area is None and settings.STATION_METADATA_CSV:
        return basin_areas(load_station_metadata())
    return None


def write_outputs(args, config: CumulativeStatsConfig, result: CumulativeStatsResult):
    stats = result.stats

    if args.output_json:
        output = {
            'stats': stats_to_records(stats),
            'warnings': result.warnings,
            'skipped_stations': result.skipped_stations,
        }
        print(json.dumps(output, indent=2))

    if args.output_csv:
        out = stats.copy()
        if not out.empty:
            out['Date'] = out['Date'].dt.strftime('%m-%d')
        out.to_csv(args.output_csv, index=False)
        log.info(f"Saved {len(out)} rows to {args.output_csv}")

    if args.plot_dir:
        from .visualize_cumulative_stats import create_pdf_report, plot_daily_cumulative_stats, save_figures

        figures = plot_daily_cumulative_stats(
            stats,
            use_yield=config.use_yield,
            log_scale=config.log_scale,
            include_title=config.include_title,
            overlay_year=config.overlay_year,
        )
        plot_dir = Path(args.plot_dir)
        if args.pdf and figures:
            create_pdf_report(figures, plot_dir / 'daily_cumulative_stats.pdf')
        save_figures(figures, plot_dir)

    if args.write_db:
        write_stats_to_db(format_for_database(stats, config))


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    if not (args.csv_path or args.s3_key or args.from_db):
        parser.error("One of --csv-path, --s3-key or --from-db is required")

    try:
        config = build_config(args)
        data = load_input(args)
        metadata = load_metadata(args)
        result = calculate_all_cumulative_statistics(data, config, station_metadata=metadata)
    except InvalidConfig as e:
        parser.error(str(e))

    if args.dry_run:
        log.info("Dry run complete. Statistics calculated but not saved.")
        log.info(f"Total: {len(result.stats)} rows, {len(result.skipped_stations)} stations skipped")
        return 0

    write_outputs(args, config, result)

    for station, reason in result.skipped_stations.items():
        log.warning(f"Skipped {station}: {reason}")
    log.info(f"Total rows generated: {len(result.stats)}")
    return 0


if __name__ == '__main__':
    sys.exit(main())
