import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
import pytest

from flow_statistics import visualize_cumulative_stats as viz
from flow_statistics.config import CumulativeStatsConfig
from flow_statistics.cumulative import calculate_all_cumulative_statistics


@pytest.fixture
def stats(random_flows):
    return calculate_all_cumulative_statistics(random_flows).stats


@pytest.fixture(autouse=True)
def close_figures():
    yield
    plt.close("all")


def test_band_definitions_default_percentiles(stats):
    labels = [label for _, _, label in viz.band_definitions(stats)]
    assert labels == [
        "Min-5th Percentile",
        "5th-25th Percentile",
        "25th-75th Percentile",
        "75th-95th Percentile",
        "95th Percentile-Max",
    ]


def test_band_definitions_without_percentiles():
    frame = pd.DataFrame(columns=["STATION_NUMBER", "Date", "DayofYear", "Mean", "Median", "Minimum", "Maximum"])
    assert viz.band_definitions(frame) == [("Minimum", "Maximum", "Min-Max")]


@pytest.mark.parametrize("p, text", [(1, "1st"), (2, "2nd"), (3, "3rd"), (11, "11th"), (22, "22nd"), (2.5, "2.5th")])
def test_ordinal(p, text):
    assert viz._ordinal(p) == text


def test_percentile_columns_sorted_numerically():
    frame = pd.DataFrame(columns=["P95", "P10", "P2.5", "Mean"])
    assert viz.percentile_columns(frame) == ["P2.5", "P10", "P95"]


def test_one_figure_per_station(stats):
    figures = viz.plot_daily_cumulative_stats(stats)
    assert set(figures) == {
        "08NM116_Daily_Cumulative_Volumetric_Stats",
        "08NM200_Daily_Cumulative_Volumetric_Stats",
    }


def test_single_station_name(stats):
    single = stats[stats["STATION_NUMBER"] == "08NM116"]
    assert list(viz.plot_daily_cumulative_stats(single, use_yield=True)) == ["Daily_Cumulative_Yield_Stats"]


def test_chart_contents(stats):
    single = stats[stats["STATION_NUMBER"] == "08NM116"]
    fig = viz.plot_station_chart("08NM116", single, include_title=True)
    ax = fig.axes[0]

    assert ax.get_title() == "08NM116"
    assert ax.get_ylabel() == "Cumulative Volume (cubic metres)"
    legend_labels = [t.get_text() for t in ax.get_legend().get_texts()]
    assert legend_labels[:2] == ["Median", "Mean"]
    assert legend_labels[2] == "95th Percentile-Max"
    assert legend_labels[-1] == "Min-5th Percentile"


def test_placeholder_station_has_no_title(stats):
    single = stats[stats["STATION_NUMBER"] == "08NM116"].assign(STATION_NUMBER="XXXXXXX")
    fig = viz.plot_station_chart("XXXXXXX", single, include_title=True)
    assert fig.axes[0].get_title() == ""


def test_overlay_line(multi_year_flows):
    config = CumulativeStatsConfig(overlay_year=2002)
    stats = calculate_all_cumulative_statistics(multi_year_flows, config).stats

    fig = viz.plot_daily_cumulative_stats(stats, overlay_year=2002)["Daily_Cumulative_Volumetric_Stats"]

    labels = [t.get_text() for t in fig.axes[0].get_legend().get_texts()]
    assert "2002 Flows" in labels


def test_missing_values_do_not_fail(stats):
    single = stats[stats["STATION_NUMBER"] == "08NM116"].copy()
    single.loc[single["DayofYear"] > 300, ["Mean", "Median", "P5", "Maximum"]] = np.nan
    before = single.copy()

    viz.plot_daily_cumulative_stats(single, log_scale=True)

    pd.testing.assert_frame_equal(single, before)


def test_empty_stats():
    assert viz.plot_daily_cumulative_stats(pd.DataFrame()) == {}


def test_save_figures_and_pdf(stats, tmp_path):
    figures = viz.plot_daily_cumulative_stats(stats)

    pdf = viz.create_pdf_report(figures, tmp_path / "report.pdf")
    paths = viz.save_figures(figures, tmp_path / "charts")

    assert pdf.exists()
    assert sorted(p.name for p in paths) == [
        "08NM116_Daily_Cumulative_Volumetric_Stats.png",
        "08NM200_Daily_Cumulative_Volumetric_Stats.png",
    ]
    assert all(p.exists() for p in paths)


def test_fetch_cumulative_stats(monkeypatch):
    payload = {
        "stats": [
            {"STATION_NUMBER": "08NM116", "Date": "1900-01-01", "DayofYear": 1, "Mean": 2.0,
             "Median": 2.0, "Minimum": 1.0, "Maximum": 3.0, "P5": None, "SampleCount": 2},
        ],
        "warnings": ["something"],
    }
    calls = []

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return payload

    def fake_get(url, params=None, timeout=None):
        calls.append((url, params))
        return FakeResponse()

    monkeypatch.setattr(viz.requests, "get", fake_get)

    stats = viz.fetch_cumulative_stats("http://api", "08NM116", {"use_yield": True})

    assert calls == [("http://api/api/statistics/stations/08NM116/daily-cumulative", {"use_yield": True})]
    assert stats["Date"].iloc[0] == pd.Timestamp("1900-01-01")
    assert np.isnan(stats["P5"].iloc[0])
