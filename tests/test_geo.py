import math

import pytest

from storedesk.routing.domain import UNKNOWN_DISTANCE_KM, Coordinates, distance


def test_same_point_is_zero():
    assert distance(40.0, -74.0, 40.0, -74.0) == pytest.approx(0.0, abs=1e-9)


def test_is_symmetric():
    a = distance(52.52, 13.405, 48.8566, 2.3522)
    b = distance(48.8566, 2.3522, 52.52, 13.405)
    assert a == pytest.approx(b)


def test_one_degree_of_latitude():
    assert distance(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.05)


def test_berlin_to_paris():
    assert distance(52.52, 13.405, 48.8566, 2.3522) == pytest.approx(877.5, abs=2.0)


def test_antipodes_are_half_the_circumference():
    assert distance(0.0, 0.0, 0.0, 180.0) == pytest.approx(math.pi * 6371.0, rel=1e-6)


@pytest.mark.parametrize("bad", [None, float("nan"), float("inf"), "12.5", True])
def test_unusable_coordinates_yield_sentinel(bad):
    assert distance(bad, 0.0, 1.0, 1.0) == UNKNOWN_DISTANCE_KM
    assert distance(0.0, 0.0, 1.0, bad) == UNKNOWN_DISTANCE_KM


def test_coordinates_validity():
    assert Coordinates(0.0, 0.0).is_valid
    assert not Coordinates(float("nan"), 0.0).is_valid
    assert not Coordinates(None, 10.0).is_valid
