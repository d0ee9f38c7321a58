import matplotlib

matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest


def _daily_frame(station, start, end, values=10.0):
    dates = pd.date_range(start, end, freq="D")
    if callable(values):
        vals = values(dates)
    elif np.isscalar(values):
        vals = np.full(len(dates), float(values))
    else:
        vals = np.asarray(values, dtype=float)
    return pd.DataFrame({"STATION_NUMBER": station, "Date": dates, "Value": vals})


@pytest.fixture
def make_flows():
    """Factory for daily flow frames: make_flows(station, start, end, values)."""
    return _daily_frame


@pytest.fixture
def constant_flow():
    """Station A, 10 m3/s every day of 2001."""
    return _daily_frame("A", "2001-01-01", "2001-12-31", 10.0)


@pytest.fixture
def multi_year_flows():
    """Station A, 2001-2005, constant flow equal to (year - 2000) m3/s."""
    frames = [
        _daily_frame("A", f"{year}-01-01", f"{year}-12-31", float(year - 2000))
        for year in range(2001, 2006)
    ]
    return pd.concat(frames, ignore_index=True)


@pytest.fixture
def random_flows():
    """Two stations, ten years of non-negative random daily flows."""
    rng = np.random.default_rng(42)
    frames = []
    for station in ("08NM116", "08NM200"):
        dates = pd.date_range("1990-01-01", "1999-12-31", freq="D")
        frames.append(pd.DataFrame({
            "STATION_NUMBER": station,
            "Date": dates,
            "Value": rng.gamma(2.0, 5.0, len(dates)),
        }))
    return pd.concat(frames, ignore_index=True)
