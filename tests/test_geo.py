"""Unit tests for geo.py: great-circle distance and straight-line estimates."""

import math

import pytest

from geo import (
    AVERAGE_SPEED_M_PER_MIN,
    EARTH_RADIUS_M,
    estimate_duration_minutes,
    haversine_meters,
    is_usable_distance,
)


# =========================================================================
# Haversine
# =========================================================================

class TestHaversine:
    def test_same_point_is_zero(self):
        assert haversine_meters((40.7484, -73.9857), (40.7484, -73.9857)) == 0

    def test_one_degree_of_latitude(self):
        # 1 degree along a meridian = R * pi / 180
        expected = EARTH_RADIUS_M * math.pi / 180
        assert haversine_meters((0, 0), (1, 0)) == pytest.approx(expected, rel=1e-9)

    def test_symmetric(self):
        a, b = (40.7484, -73.9857), (40.6782, -73.9442)
        assert haversine_meters(a, b) == pytest.approx(haversine_meters(b, a))

    def test_pole_to_pole(self):
        assert haversine_meters((90, 0), (-90, 0)) == pytest.approx(EARTH_RADIUS_M * math.pi)

    def test_antipodal_on_equator(self):
        assert haversine_meters((0, 0), (0, 180)) == pytest.approx(EARTH_RADIUS_M * math.pi)

    def test_midtown_to_brooklyn(self):
        # Empire State Building to Barclays Center, about 7.4 km
        d = haversine_meters((40.7484, -73.9857), (40.6826, -73.9754))
        assert 7000 < d < 8000

    def test_nan_propagates(self):
        assert math.isnan(haversine_meters((float("nan"), 0), (1, 1)))

    def test_nan_is_not_usable(self):
        assert not is_usable_distance(haversine_meters((40.7484, -73.9857), (0, float("nan"))))


# =========================================================================
# Duration estimate
# =========================================================================

class TestEstimateDuration:
    def test_walking_speed(self):
        assert estimate_duration_minutes(800, "walking") == 10

    def test_driving_speed(self):
        assert estimate_duration_minutes(15000, "driving") == 15

    def test_transit_speed(self):
        assert estimate_duration_minutes(3000, "transit") == 10

    def test_half_rounds_up(self):
        # 40 m walking = 0.5 minutes
        assert estimate_duration_minutes(40, "walking") == 1
        # 2.5 minutes rounds up, not to even
        assert estimate_duration_minutes(200, "walking") == 3

    def test_zero_distance(self):
        assert estimate_duration_minutes(0, "driving") == 0

    def test_unknown_mode_rejected(self):
        with pytest.raises(ValueError, match="bicycling"):
            estimate_duration_minutes(800, "bicycling")

    def test_speed_table(self):
        assert AVERAGE_SPEED_M_PER_MIN == {"walking": 80, "driving": 1000, "transit": 300}


class TestUsableDistance:
    def test_usable(self):
        assert is_usable_distance(0)
        assert is_usable_distance(1234.5)

    def test_unusable(self):
        assert not is_usable_distance(float("nan"))
        assert not is_usable_distance(float("inf"))
        assert not is_usable_distance(-1)
