import pytest

from flow_statistics.stations import basin_areas, load_station_metadata

METADATA_CSV = """station_number,station_name,drainage_area_km2
08NM116,MISSION CREEK NEAR EAST KELOWNA,795
08NM200,BELLEVUE CREEK,
05BB001,BOW RIVER AT BANFF,2210.0
"""


@pytest.fixture
def metadata_csv(tmp_path):
    path = tmp_path / "stations.csv"
    path.write_text(METADATA_CSV)
    return path


def test_load_station_metadata(metadata_csv):
    stations = load_station_metadata(metadata_csv)

    assert stations["08NM116"] == {"name": "MISSION CREEK NEAR EAST KELOWNA", "basin_area_km2": 795.0}
    assert stations["08NM200"]["basin_area_km2"] is None
    assert len(stations) == 3


def test_filter_codes(metadata_csv):
    stations = load_station_metadata(metadata_csv, filter_codes=["05BB001"])
    assert list(stations) == ["05BB001"]


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_station_metadata(tmp_path / "nope.csv")


def test_basin_areas_skips_unknown(metadata_csv):
    areas = basin_areas(load_station_metadata(metadata_csv))
    assert areas == {"08NM116": 795.0, "05BB001": 2210.0}
