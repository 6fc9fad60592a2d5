"""Shared fixtures for the housing comparison test suite.

Points the SQLite store at a temporary file and provides a controllable
clock, an in-memory store and a small set of sample candidates.
"""

import atexit
import os
import sys
import tempfile

import pytest

# Point the DB at a temp file BEFORE importing models (it reads DB_PATH at import time)
_test_db_fd, _test_db_path = tempfile.mkstemp(suffix=".db")
os.close(_test_db_fd)  # close the fd immediately; sqlite3 opens its own handle
os.environ["HOUSEHUNT_DB_PATH"] = _test_db_path
atexit.register(lambda: os.unlink(_test_db_path) if os.path.exists(_test_db_path) else None)

# Never talk to the real API from tests
os.environ.pop("GOOGLE_MAPS_API_KEY", None)

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from candidates import (  # noqa: E402
    Amenities,
    AmenityRating,
    Candidate,
    LaundryType,
    TravelTime,
    TravelTimes,
)
from models import InMemoryStore  # noqa: E402

WORK = (40.7484, -73.9857)


class FakeClock:
    """Callable clock returning epoch seconds; advance() moves it forward."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


def make_bundle(walking=0, driving=0, transit=0, distance=1000):
    """Bundle with the given minutes per mode."""
    return TravelTimes(
        walking=TravelTime(distance=distance if walking else 0, duration=walking),
        driving=TravelTime(distance=distance if driving else 0, duration=driving),
        transit=TravelTime(distance=distance if transit else 0, duration=transit),
    )


def make_candidate(cid="c1", **overrides):
    defaults = dict(
        id=cid,
        name=f"Listing {cid}",
        lat=40.75,
        lng=-73.99,
        rent=200000,
        square_footage=800,
        bedrooms=1,
        bathrooms=1,
    )
    defaults.update(overrides)
    return Candidate(**defaults)


@pytest.fixture()
def clock():
    return FakeClock()


@pytest.fixture()
def store():
    return InMemoryStore()


@pytest.fixture()
def scenario_candidates():
    """A: cheap, roomy, rated gym, no travel data.  B: pricier, smaller, 12-minute commute."""
    a = make_candidate(
        "A",
        rent=150000,
        square_footage=900,
        bedrooms=2,
        bathrooms=1,
        amenities=Amenities(gym=AmenityRating(has=True, rating=4)),
    )
    b = make_candidate(
        "B",
        rent=200000,
        square_footage=700,
        bedrooms=1,
        bathrooms=1,
        travel_times=make_bundle(walking=40, driving=12, transit=25),
    )
    return [a, b]


@pytest.fixture()
def sample_candidates():
    return [
        make_candidate(
            "studio", lat=40.7527, lng=-73.9772, rent=180000, square_footage=450,
            bedrooms=0, bathrooms=1,
            travel_times=make_bundle(walking=14, driving=6, transit=9),
        ),
        make_candidate(
            "loft", lat=40.7193, lng=-73.9951, rent=320000, square_footage=1100,
            bedrooms=2, bathrooms=2,
            amenities=Amenities(
                gym=AmenityRating(has=True, rating=5),
                outdoor_space=AmenityRating(has=True),
                parking=True,
                laundry=LaundryType.IN_UNIT,
                pets=True,
            ),
            travel_times=make_bundle(walking=55, driving=18, transit=28),
        ),
        make_candidate(
            "house", lat=40.6782, lng=-73.9442, rent=260000, square_footage=1400,
            bedrooms=3, bathrooms=1.5,
            amenities=Amenities(laundry=LaundryType.BUILDING, parking=True),
            travel_times=make_bundle(walking=110, driving=25, transit=40),
        ),
    ]
