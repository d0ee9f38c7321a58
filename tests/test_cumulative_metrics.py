import numpy as np
import pandas as pd
import pytest

from flow_statistics.cumulative.cumulative_metrics import (
    SECONDS_PER_DAY,
    add_cumulative_volume,
    add_cumulative_yield,
    daily_volume_m3,
    resolve_basin_area,
    running_sum,
    volume_to_yield_mm,
    yield_mm_to_volume,
)
from flow_statistics.cumulative.water_year import add_date_variables, fill_missing_dates
from flow_statistics.errors import MissingBasinArea


def _day(df, date):
    return df.loc[df["Date"] == pd.Timestamp(date)].iloc[0]


class TestUnitConversion:
    def test_daily_volume(self):
        assert daily_volume_m3(1.0) == 86400
        assert SECONDS_PER_DAY == 86400

    def test_yield_of_one_mm(self):
        # 864000 m3 over 864 km2 is 1 mm
        assert volume_to_yield_mm(864000.0, 864.0) == pytest.approx(1.0)

    def test_yield_volume_inverse(self):
        assert yield_mm_to_volume(volume_to_yield_mm(12345.6, 78.9), 78.9) == pytest.approx(12345.6)


class TestResolveBasinArea:
    def test_single_number_applies_to_every_station(self):
        assert resolve_basin_area("A", 100) == 100.0
        assert resolve_basin_area("B", 100.5) == 100.5

    def test_mapping(self):
        assert resolve_basin_area("B", {"A": 1.0, "B": 2.0}) == 2.0

    def test_mapping_falls_back_to_metadata(self):
        assert resolve_basin_area("C", {"A": 1.0}, {"C": 30.0}) == 30.0

    def test_metadata_only(self):
        assert resolve_basin_area("A", None, {"A": 42.0}) == 42.0

    @pytest.mark.parametrize("metadata", [None, {}, {"A": None}, {"A": 0}, {"A": float("nan")}, {"B": 5.0}])
    def test_missing(self, metadata):
        with pytest.raises(MissingBasinArea) as excinfo:
            resolve_basin_area("A", None, metadata)
        assert excinfo.value.station_number == "A"


class TestRunningSum:
    def test_null_ends_group_total(self):
        values = pd.Series([1.0, 2.0, np.nan, 4.0, 5.0, 6.0])
        keys = pd.Series([1, 1, 1, 1, 2, 2])

        result = running_sum(values, keys)

        assert result.iloc[:2].tolist() == [1.0, 3.0]
        assert result.iloc[2:4].isna().all()
        assert result.iloc[4:].tolist() == [5.0, 11.0]


class TestAddCumulativeVolume:
    def test_constant_flow(self, constant_flow):
        cumulative = add_cumulative_volume(constant_flow)

        assert _day(cumulative, "2001-01-01")["Cumul_Volume_m3"] == 10 * 86400
        assert _day(cumulative, "2001-04-10")["Cumul_Volume_m3"] == 10 * 86400 * 100
        assert _day(cumulative, "2001-12-31")["Cumul_Volume_m3"] == 10 * 86400 * 365

    def test_non_decreasing_for_non_negative_flow(self, random_flows):
        cumulative = add_cumulative_volume(random_flows)
        diffs = cumulative.groupby(["STATION_NUMBER", "WaterYear"])["Cumul_Volume_m3"].diff().dropna()
        assert (diffs >= 0).all()

    def test_resets_each_water_year(self, multi_year_flows):
        cumulative = add_cumulative_volume(multi_year_flows)
        assert _day(cumulative, "2002-01-01")["Cumul_Volume_m3"] == 2 * 86400
        assert _day(cumulative, "2005-12-31")["Cumul_Volume_m3"] == 5 * 86400 * 365

    def test_october_water_year_reset(self, make_flows):
        flows = make_flows("A", "2000-10-01", "2002-09-30", 1.0)
        cumulative = add_cumulative_volume(flows, water_year_start=10)

        assert _day(cumulative, "2001-09-30")["Cumul_Volume_m3"] == 365 * 86400
        assert _day(cumulative, "2001-10-01")["Cumul_Volume_m3"] == 86400
        assert _day(cumulative, "2001-10-01")["WaterYear"] == 2002

    def test_leap_day_is_accumulated(self, make_flows):
        cumulative = add_cumulative_volume(make_flows("A", "2000-01-01", "2000-12-31", 1.0))

        leap = _day(cumulative, "2000-02-29")
        assert leap["DayofYear"] == 366
        assert leap["Cumul_Volume_m3"] == 60 * 86400
        march_first = _day(cumulative, "2000-03-01")
        assert march_first["DayofYear"] == 60
        assert march_first["Cumul_Volume_m3"] == 61 * 86400
        assert _day(cumulative, "2000-12-31")["Cumul_Volume_m3"] == 366 * 86400

    def test_missing_value_nulls_rest_of_year_only(self, multi_year_flows):
        flows = multi_year_flows.copy()
        flows.loc[flows["Date"] == pd.Timestamp("2001-03-01"), "Value"] = np.nan

        cumulative = add_cumulative_volume(flows)

        assert _day(cumulative, "2001-02-28")["Cumul_Volume_m3"] == 59 * 86400
        year_2001 = cumulative[(cumulative["WaterYear"] == 2001) & (cumulative["Date"] >= "2001-03-01")]
        assert year_2001["Cumul_Volume_m3"].isna().all()
        assert _day(cumulative, "2002-12-31")["Cumul_Volume_m3"] == 2 * 86400 * 365

    def test_gap_filled_dates_end_total(self, make_flows):
        flows = make_flows("A", "2001-01-01", "2001-12-31", 1.0)
        flows = flows[flows["Date"] != pd.Timestamp("2001-06-15")]

        cumulative = add_cumulative_volume(fill_missing_dates(flows))

        assert len(cumulative) == 365
        assert _day(cumulative, "2001-06-14")["Cumul_Volume_m3"] == 165 * 86400
        assert pd.isna(_day(cumulative, "2001-06-16")["Cumul_Volume_m3"])

    def test_accepts_data_with_date_variables(self, constant_flow):
        dated = add_date_variables(constant_flow, 1)
        cumulative = add_cumulative_volume(dated)
        assert cumulative["Cumul_Volume_m3"].iloc[-1] == 10 * 86400 * 365

    def test_input_not_modified(self, constant_flow):
        before = constant_flow.copy()
        add_cumulative_volume(constant_flow)
        pd.testing.assert_frame_equal(constant_flow, before)


class TestAddCumulativeYield:
    def test_constant_flow_yield(self, constant_flow):
        cumulative = add_cumulative_yield(constant_flow, basin_area=864.0)

        assert _day(cumulative, "2001-01-01")["Cumul_Yield_mm"] == pytest.approx(1.0)
        assert _day(cumulative, "2001-12-31")["Cumul_Yield_mm"] == pytest.approx(365.0)
        assert (cumulative["Basin_Area_sqkm"] == 864.0).all()

    def test_per_station_areas_from_metadata(self, constant_flow):
        flows = pd.concat([constant_flow, constant_flow.assign(STATION_NUMBER="B")], ignore_index=True)

        cumulative = add_cumulative_yield(flows, station_metadata={"A": 864.0, "B": 432.0})

        last = cumulative[cumulative["Date"] == pd.Timestamp("2001-12-31")].set_index("STATION_NUMBER")
        assert last.loc["A", "Cumul_Yield_mm"] == pytest.approx(365.0)
        assert last.loc["B", "Cumul_Yield_mm"] == pytest.approx(730.0)

    def test_missing_area_raises(self, constant_flow):
        with pytest.raises(MissingBasinArea):
            add_cumulative_yield(constant_flow)
