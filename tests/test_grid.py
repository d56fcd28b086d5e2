import pytest

from citybrain.intelligence.grid import (ZoneGrid, zone_id, zone_center, approx_distance_km,
                                         FOUR_NEIGHBORS, EIGHT_NEIGHBORS, DEFAULT_CELL_SIZE_DEG)


POINTS = [
    (25.2048, 55.2708),
    (-33.8688, 151.2093),
    (40.7128, -74.0060),
    (0.0, 0.0),
    (-0.001, -0.001),
    (89.99, 179.99),
]


@pytest.mark.parametrize("lat,lng", POINTS)
def test_zone_id_is_deterministic(lat, lng):
    assert zone_id(lat, lng) == zone_id(lat, lng)


@pytest.mark.parametrize("lat,lng", POINTS)
def test_zone_center_within_one_cell(lat, lng):
    center_lat, center_lng = zone_center(zone_id(lat, lng))
    assert abs(center_lat - lat) <= DEFAULT_CELL_SIZE_DEG
    assert abs(center_lng - lng) <= DEFAULT_CELL_SIZE_DEG


def test_zone_id_floors_negative_coordinates():
    assert zone_id(-0.001, -0.001) == "-1_-1"
    assert zone_id(0.001, 0.001) == "0_0"
    assert zone_center("-1_-1") == pytest.approx((-0.0135, -0.0135))


def test_known_zone():
    # 25.2048 / 0.027 = 933.5, 55.2708 / 0.027 = 2047.07
    assert zone_id(25.2048, 55.2708) == "933_2047"
    assert zone_center("933_2047") == pytest.approx((25.2045, 55.2825))


def test_invalid_zone_id_rejected():
    grid = ZoneGrid()
    with pytest.raises(ValueError):
        grid.parse("not-a-zone")
    with pytest.raises(ValueError):
        grid.parse("_12")


def test_cell_size_must_be_positive():
    with pytest.raises(ValueError):
        ZoneGrid(0)


def test_neighbor_ids():
    grid = ZoneGrid()
    assert grid.neighbor_ids("10_20") == ["11_20", "9_20", "10_21", "10_19"]
    assert len(grid.neighbor_ids("10_20", EIGHT_NEIGHBORS)) == 8
    assert set(grid.neighbor_ids("10_20", FOUR_NEIGHBORS)) < set(grid.neighbor_ids("10_20", EIGHT_NEIGHBORS))


def test_offset_point_moves_one_cell():
    grid = ZoneGrid()
    lat, lng = grid.offset_point(25.2048, 55.2708, 1, 0)
    assert lat == pytest.approx(25.2318)
    assert lng == 55.2708
    assert grid.zone_id(lat, lng) == "934_2047"


def test_approx_distance_uses_flat_degrees():
    assert approx_distance_km(0, 0, 0.027, 0) == pytest.approx(2.997)
    assert approx_distance_km(0, 0, 0.03, 0.04) == pytest.approx(5.55)


def test_custom_cell_size():
    grid = ZoneGrid(cell_size_deg=0.5)
    assert grid.zone_id(1.2, -1.2) == "2_-3"
    assert grid.zone_center("2_-3") == pytest.approx((1.25, -1.25))
