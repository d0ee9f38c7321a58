#!/usr/bin/env python3
"""
Visualize daily cumulative flow statistics.

Draws percentile ribbons (Min-P5, P5-P25, P25-P75, P75-P95, P95-Max) with the
daily cumulative Mean and Median, and optionally one water year's cumulative
trace, for each station in a statistics table. The table either comes from
calculate_all_cumulative_statistics or is fetched from the API.

Usage:
    python -m flow_statistics.visualize_cumulative_stats --station 08NM116
    python -m flow_statistics.visualize_cumulative_stats --station 08NM116 --use-yield --add-year 2015 --pdf
"""

import argparse
import logging
import re
from pathlib import Path
from typing import Dict, List, Optional

import matplotlib.dates as mdates
import matplotlib.pyplot as plt
import pandas as pd
import requests

from .cumulative.calculate_cumulative_statistics import OVERLAY_COL
from .cumulative.water_year import DATE_COL, STATION_COL
from .flow_data import PLACEHOLDER_STATION

log = logging.getLogger("visualize_cumulative_stats")

# Ribbon colours, outermost low band first
BAND_COLOURS = ['#FFA500', '#FFFF00', '#87CEFF', '#1C86EE', '#27408B']

LINE_COLOURS = {'Median': '#7D26CD', 'Mean': '#008B45'}
# Softer statistic lines so the overlay year stands out
OVERLAY_LINE_COLOURS = {'Median': '#104E8B', 'Mean': '#AFEEEE', 'Overlay': 'red'}

PERCENTILE_COL = re.compile(r'^P(\d+(?:\.\d+)?)$')


def _ordinal(p: float) -> str:
    text = f"{p:g}"
    if '.' in text:
        return f"{text}th"
    n = int(text)
    if 10 <= n % 100 <= 20:
        suffix = 'th'
    else:
        suffix = {1: 'st', 2: 'nd', 3: 'rd'}.get(n % 10, 'th')
    return f"{n}{suffix}"


def percentile_columns(stats: pd.DataFrame) -> List[str]:
    """P<p> columns of a statistics table, in increasing percentile order."""
    found = []
    for col in stats.columns:
        match = PERCENTILE_COL.match(str(col))
        if match:
            found.append((float(match.group(1)), col))
    return [col for _, col in sorted(found)]


def band_definitions(stats: pd.DataFrame):
    """(lower column, upper column, label) for each ribbon."""
    pcts = percentile_columns(stats)
    bounds = ['Minimum'] + pcts + ['Maximum']
    bands = []
    for lower, upper in zip(bounds[:-1], bounds[1:]):
        if lower == 'Minimum' and upper == 'Maximum':
            label = 'Min-Max'
        elif lower == 'Minimum':
            label = f"Min-{_ordinal(float(upper[1:]))} Percentile"
        elif upper == 'Maximum':
            label = f"{_ordinal(float(lower[1:]))} Percentile-Max"
        else:
            label = f"{_ordinal(float(lower[1:]))}-{_ordinal(float(upper[1:]))} Percentile"
        bands.append((lower, upper, label))
    return bands


def plot_name(station: str, n_stations: int, use_yield: bool) -> str:
    kind = "Daily_Cumulative_Yield_Stats" if use_yield else "Daily_Cumulative_Volumetric_Stats"
    return kind if n_stations == 1 else f"{station}_{kind}"


def plot_station_chart(
    station: str,
    station_stats: pd.DataFrame,
    use_yield: bool = False,
    log_scale: bool = False,
    include_title: bool = False,
    overlay_year: Optional[int] = None,
):
    """
    Create the cumulative statistics chart for one station.

    Missing statistics are drawn as 0; with log_scale, non-positive values
    are left out.
    """
    data = station_stats.sort_values(DATE_COL)
    x = pd.to_datetime(data[DATE_COL])

    value_cols = [c for c in data.columns if c not in (STATION_COL, DATE_COL, 'DayofYear', 'SampleCount')]
    values = data[value_cols].astype(float).fillna(0)
    if log_scale:
        values = values.where(values > 0)

    fig, ax = plt.subplots(figsize=(12, 6))

    bands = band_definitions(data)
    for (lower, upper, label), colour in zip(bands, BAND_COLOURS * (len(bands) // len(BAND_COLOURS) + 1)):
        ax.fill_between(x, values[lower], values[upper], color=colour, label=label, linewidth=0)

    show_overlay = overlay_year is not None and OVERLAY_COL in values.columns
    colours = OVERLAY_LINE_COLOURS if show_overlay else LINE_COLOURS
    ax.plot(x, values['Median'], color=colours['Median'], linewidth=1.4, label='Median')
    ax.plot(x, values['Mean'], color=colours['Mean'], linewidth=1.4, label='Mean')
    if show_overlay:
        ax.plot(x, values[OVERLAY_COL], color=colours['Overlay'], linewidth=1.4,
                label=f"{overlay_year} Flows")

    if log_scale:
        ax.set_yscale('log')

    ax.xaxis.set_major_locator(mdates.MonthLocator())
    ax.xaxis.set_major_formatter(mdates.DateFormatter('%b'))
    ax.set_xlim(x.min(), x.max())
    ax.margins(x=0)
    ax.set_xlabel('Day of Year', fontsize=12)
    ax.set_ylabel('Cumulative Yield (mm)' if use_yield else 'Cumulative Volume (cubic metres)', fontsize=12)

    if include_title and station != PLACEHOLDER_STATION:
        ax.set_title(station, fontsize=14)

    ax.grid(True, alpha=0.3, linestyle='-')
    ax.set_axisbelow(True)
    ax.set_facecolor('#F0F0F0')

    # Lines first, then ribbons from highest to lowest
    handles, labels = ax.get_legend_handles_labels()
    by_label = dict(zip(labels, handles))
    band_labels = [label for _, _, label in bands]
    ordered = [label for label in labels if label not in band_labels] + list(reversed(band_labels))
    ax.legend([by_label[label] for label in ordered], ordered,
              title='Daily Statistics', loc='upper left', fontsize=9)

    fig.tight_layout()
    return fig


def plot_daily_cumulative_stats(
    stats: pd.DataFrame,
    use_yield: bool = False,
    log_scale: bool = False,
    include_title: bool = False,
    overlay_year: Optional[int] = None,
) -> Dict[str, "plt.Figure"]:
    """
    Create one chart per station.

    Returns dict of plot name -> Figure. With a single station the name is
    Daily_Cumulative_Volumetric_Stats (or ..._Yield_Stats); with several it is
    prefixed by the station number.
    """
    if stats.empty:
        log.warning("No statistics to plot")
        return {}

    stations = list(dict.fromkeys(stats[STATION_COL]))
    figures = {}
    for station in stations:
        station_stats = stats[stats[STATION_COL] == station]
        if (overlay_year is not None and OVERLAY_COL in station_stats.columns
                and station_stats[OVERLAY_COL].isna().all()):
            log.warning(f"Daily data does not exist for {station} in {overlay_year} and was not plotted")
        figures[plot_name(station, len(stations), use_yield)] = plot_station_chart(
            station, station_stats,
            use_yield=use_yield,
            log_scale=log_scale,
            include_title=include_title,
            overlay_year=overlay_year,
        )
    return figures


def save_figures(figures: Dict[str, "plt.Figure"], output_dir: Path) -> List[Path]:
    """Save each figure as <name>.png and close it."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    paths = []
    for name, fig in figures.items():
        output_path = output_dir / f"{name}.png"
        fig.savefig(output_path, dpi=150, bbox_inches='tight')
        plt.close(fig)
        log.info(f"Saved: {output_path}")
        paths.append(output_path)
    return paths


def create_pdf_report(figures: Dict[str, "plt.Figure"], pdf_path: Path) -> Path:
    """Write all figures to a multi-page PDF, one station per page."""
    from matplotlib.backends.backend_pdf import PdfPages

    pdf_path = Path(pdf_path)
    pdf_path.parent.mkdir(parents=True, exist_ok=True)
    with PdfPages(pdf_path) as pdf:
        for fig in figures.values():
            pdf.savefig(fig, bbox_inches='tight')
    log.info(f"Saved PDF: {pdf_path}")
    return pdf_path


def fetch_cumulative_stats(api_url: str, station_number: str, params: Optional[dict] = None) -> pd.DataFrame:
    """Fetch daily cumulative statistics for a station from the API."""
    url = f"{api_url}/api/statistics/stations/{station_number}/daily-cumulative"
    log.info(f"Fetching data from: {url}")

    response = requests.get(url, params=params or {}, timeout=60)
    response.raise_for_status()
    payload = response.json()

    for warning in payload.get('warnings', []):
        log.warning(warning)

    stats = pd.DataFrame(payload.get('stats', []))
    if not stats.empty:
        stats[DATE_COL] = pd.to_datetime(stats[DATE_COL])
        numeric = [c for c in stats.columns if c not in (STATION_COL, DATE_COL)]
        stats[numeric] = stats[numeric].apply(pd.to_numeric, errors='coerce').astype(float)
    return stats


def main():
    parser = argparse.ArgumentParser(description='Plot daily cumulative flow statistics from the API')
    parser.add_argument('--station', '-s', required=True, help='Station number (e.g. 08NM116)')
    parser.add_argument('--api-url', default='http://localhost:8000', help='API base URL')
    parser.add_argument('--output-dir', '-o', default='./charts', help='Output directory')
    parser.add_argument('--use-yield', action='store_true', help='Plot cumulative yield (mm)')
    parser.add_argument('--basin-area', type=float, help='Basin area in km2 for yield')
    parser.add_argument('--water-year-start', type=int, default=1, help='First month of the water year')
    parser.add_argument('--start-year', type=int, help='First water year')
    parser.add_argument('--end-year', type=int, help='Last water year')
    parser.add_argument('--exclude-years', type=int, nargs='*', default=[], help='Water years to exclude')
    parser.add_argument('--add-year', type=int, help='Water year to overlay')
    parser.add_argument('--log-scale', action='store_true', help='Logarithmic y axis')
    parser.add_argument('--include-title', action='store_true', help='Station number as title')
    parser.add_argument('--pdf', action='store_true', help='Also write a PDF report')

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(message)s",
        datefmt="%Y-%m-%dT%H:%M:%SZ",
    )

    params = {
        'use_yield': args.use_yield,
        'water_year_start': args.water_year_start,
        'basin_area': args.basin_area,
        'start_year': args.start_year,
        'end_year': args.end_year,
        'exclude_years': args.exclude_years or None,
        'add_year': args.add_year,
    }
    params = {k: v for k, v in params.items() if v is not None}

    stats = fetch_cumulative_stats(args.api_url, args.station, params)
    figures = plot_daily_cumulative_stats(
        stats,
        use_yield=args.use_yield,
        log_scale=args.log_scale,
        include_title=args.include_title,
        overlay_year=args.add_year,
    )

    output_dir = Path(args.output_dir)
    if args.pdf:
        create_pdf_report(figures, output_dir / f"{args.station}_daily_cumulative_stats.pdf")
    save_figures(figures, output_dir)

    print(f"\nDone! Charts saved to {output_dir}/")


if __name__ == '__main__':
    main()
