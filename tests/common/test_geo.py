import pytest

from src.payroll_engine.payroll_engine.common.geo import Location, haversine_meters, within_radius


def test_one_degree_of_longitude_at_equator():
    assert haversine_meters(Location(0.0, 0.0), Location(0.0, 1.0)) == pytest.approx(111195, abs=1)


def test_distance_is_symmetric(office):
    other = Location(office.lat + 0.0005, office.lng - 0.0005)

    assert haversine_meters(office, other) == pytest.approx(haversine_meters(other, office))


def test_within_radius_is_inclusive(office):
    point = Location(office.lat + 0.0005, office.lng)
    distance = haversine_meters(point, office)

    assert within_radius(point, office, distance)
    assert not within_radius(point, office, distance - 0.5)
