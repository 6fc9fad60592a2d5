"""
Great-circle distance and straight-line travel estimates.

Used as the degraded fallback when the Distance Matrix API is unavailable
or returns no usable element for a (destination, mode) pair.  The speed
table is an approximation, not a routing calculation.
"""

import math
from typing import Tuple

# Mean Earth radius in meters
EARTH_RADIUS_M = 6371000

# Average door-to-door speeds in meters per minute.
#   walking  ~4.8 km/h
#   driving  ~60 km/h, includes a traffic allowance
#   transit  ~18 km/h, includes stops and waiting
AVERAGE_SPEED_M_PER_MIN = {
    "walking": 80,
    "driving": 1000,
    "transit": 300,
}


def haversine_meters(a: Tuple[float, float], b: Tuple[float, float]) -> float:
    """Straight-line distance in meters between two (lat, lng) pairs in degrees.

    NaN in either input propagates to a NaN result; callers treat that as
    unusable (see ``is_usable_distance``).
    """
    lat1, lon1 = math.radians(a[0]), math.radians(a[1])
    lat2, lon2 = math.radians(b[0]), math.radians(b[1])

    dlat = lat2 - lat1
    dlon = lon2 - lon1

    h = math.sin(dlat / 2) ** 2 + math.cos(lat1) * math.cos(lat2) * math.sin(dlon / 2) ** 2
    # Rounding can push h a hair past 1.0 for antipodal points
    if h > 1.0:
        h = 1.0
    c = 2 * math.asin(math.sqrt(h))

    return EARTH_RADIUS_M * c


def estimate_duration_minutes(distance_meters: float, mode: str) -> int:
    """Estimated trip duration in whole minutes for a straight-line distance."""
    if mode not in AVERAGE_SPEED_M_PER_MIN:
        raise ValueError(f"Unknown travel mode: {mode}")
    speed = AVERAGE_SPEED_M_PER_MIN[mode]
    # floor(x + 0.5) rather than round() to avoid banker's rounding at .5
    return int(math.floor(distance_meters / speed + 0.5))


def is_usable_distance(distance_meters: float) -> bool:
    return not (math.isnan(distance_meters) or math.isinf(distance_meters)) and distance_meters >= 0
