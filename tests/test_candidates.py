"""Unit tests for candidates.py: records, travel-time bundles and boundary validation."""

import pytest

from candidates import (
    AmenityKind,
    AmenityRating,
    Amenities,
    Candidate,
    CandidateValidationError,
    LaundryType,
    PropertyType,
    TravelTime,
    TravelTimes,
    candidate_from_dict,
    validate_listing_form,
)


def _valid_input(**overrides):
    data = {
        "id": "apt-1",
        "name": "Sunny 1BR",
        "lat": 40.75,
        "lng": -73.99,
        "property_type": "apartment",
        "rent": 210000,
        "square_footage": 650,
        "bedrooms": 1,
        "bathrooms": 1,
        "amenities": {
            "gym": {"has": True, "rating": 4},
            "pool": {"has": False},
            "outdoor_space": {"has": True},
            "parking": False,
            "laundry": "in-unit",
            "pets": True,
        },
    }
    data.update(overrides)
    return data


# =========================================================================
# Travel-time bundle
# =========================================================================

class TestTravelTimes:
    def test_default_bundle_not_computed(self):
        assert not TravelTimes().is_computed()

    def test_any_duration_counts_as_computed(self):
        bundle = TravelTimes(transit=TravelTime(distance=3000, duration=12))
        assert bundle.is_computed()
        assert bundle.durations() == [0, 0, 12]

    def test_dict_shape(self):
        bundle = TravelTimes(walking=TravelTime(800, 10))
        assert bundle.to_dict() == {
            "walking": {"distance": 800, "duration": 10},
            "driving": {"distance": 0, "duration": 0},
            "transit": {"distance": 0, "duration": 0},
        }

    def test_from_dict_tolerates_missing_modes(self):
        bundle = TravelTimes.from_dict({"driving": {"distance": 5000, "duration": 9}})
        assert bundle.driving == TravelTime(5000, 9)
        assert bundle.walking == TravelTime()


# =========================================================================
# Amenities
# =========================================================================

class TestAmenities:
    def test_rated_lookup_by_kind(self):
        a = Amenities(pool=AmenityRating(has=True, rating=3))
        assert a.rated(AmenityKind.POOL).rating == 3
        assert not a.rated(AmenityKind.GYM).has

    def test_unrated_amenity(self):
        assert not AmenityRating(has=True).is_rated
        assert AmenityRating(has=True, rating=2).is_rated

    def test_feature_names(self):
        a = Amenities(
            gym=AmenityRating(has=True),
            parking=True,
            laundry=LaundryType.BUILDING,
        )
        assert a.feature_names() == ["parking", "building laundry", "gym"]

    def test_kind_labels(self):
        assert AmenityKind.OUTDOOR_SPACE.label == "Outdoor Space"


# =========================================================================
# candidate_from_dict
# =========================================================================

class TestCandidateFromDict:
    def test_valid_record(self):
        c = candidate_from_dict(_valid_input())
        assert isinstance(c, Candidate)
        assert c.id == "apt-1"
        assert c.coords == (40.75, -73.99)
        assert c.property_type is PropertyType.APARTMENT
        assert c.amenities.laundry is LaundryType.IN_UNIT
        assert c.amenities.gym.rating == 4
        assert c.amenities.outdoor_space.has and not c.amenities.outdoor_space.is_rated
        assert c.travel_times is None

    def test_position_object(self):
        data = _valid_input()
        del data["lat"], data["lng"]
        data["position"] = {"lat": 40.7, "lng": -74.0}
        assert candidate_from_dict(data).coords == (40.7, -74.0)

    def test_negative_rent_rejected(self):
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(_valid_input(rent=-1))
        assert [e.field for e in exc_info.value.errors] == ["rent"]

    def test_rating_out_of_range(self):
        data = _valid_input()
        data["amenities"]["gym"] = {"has": True, "rating": 6}
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(data)
        assert exc_info.value.errors[0].field == "amenities.gym.rating"

    def test_rating_requires_presence(self):
        data = _valid_input()
        data["amenities"]["pool"] = {"has": False, "rating": 3}
        with pytest.raises(CandidateValidationError):
            candidate_from_dict(data)

    def test_unknown_enums_reported_together(self):
        data = _valid_input(property_type="castle")
        data["amenities"]["laundry"] = "river"
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(data)
        fields = {e.field for e in exc_info.value.errors}
        assert fields == {"property_type", "amenities.laundry"}

    def test_is_a_value_error(self):
        with pytest.raises(ValueError):
            candidate_from_dict(_valid_input(lat="north"))

    def test_travel_times_loaded(self):
        data = _valid_input(travel_times={"driving": {"distance": 4000, "duration": 11}})
        c = candidate_from_dict(data)
        assert c.travel_times.driving.duration == 11

    def test_non_numeric_travel_time(self):
        data = _valid_input(travel_times={"walking": {"distance": "100", "duration": 5}})
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(data)
        assert [e.field for e in exc_info.value.errors] == ["travel_times.walking.distance"]

    def test_negative_travel_time(self):
        data = _valid_input(travel_times={"transit": {"distance": 900, "duration": -3}})
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(data)
        assert [e.field for e in exc_info.value.errors] == ["travel_times.transit.duration"]

    def test_infinite_duration_rejected(self):
        data = _valid_input(travel_times={"driving": {"distance": 900, "duration": float("inf")}})
        with pytest.raises(CandidateValidationError):
            candidate_from_dict(data)

    def test_infinite_rent_rejected(self):
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(_valid_input(rent=float("inf")))
        assert [e.field for e in exc_info.value.errors] == ["rent"]

    @pytest.mark.parametrize("key", ["position", "amenities", "travel_times"])
    def test_list_where_object_expected(self, key):
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(_valid_input(**{key: [1, 2]}))
        assert key in {e.field for e in exc_info.value.errors}

    def test_mode_entry_must_be_object(self):
        data = _valid_input(travel_times={"walking": [10, 600]})
        with pytest.raises(CandidateValidationError) as exc_info:
            candidate_from_dict(data)
        assert exc_info.value.errors[0].field == "travel_times.walking"

    def test_record_must_be_object(self):
        with pytest.raises(CandidateValidationError):
            candidate_from_dict(["apt-1", 40.75, -73.99])

    def test_round_trip_through_to_dict(self):
        c = candidate_from_dict(_valid_input())
        again = candidate_from_dict(c.to_dict())
        assert again.amenities == c.amenities
        assert again.rent == c.rent


# =========================================================================
# Listing form validation
# =========================================================================

class TestValidateListingForm:
    def test_valid_form(self):
        assert validate_listing_form(_valid_input()) == []

    def test_name_required(self):
        errors = validate_listing_form(_valid_input(name="  "))
        assert [e.field for e in errors] == ["name"]

    def test_rent_limits(self):
        low = validate_listing_form(_valid_input(rent=10000))
        high = validate_listing_form(_valid_input(rent=2000000))
        assert low[0].message == "rent must be at least 50000"
        assert high[0].message == "rent must be at most 1000000"

    def test_fractional_bedrooms(self):
        errors = validate_listing_form(_valid_input(bedrooms=1.5))
        assert errors[0].message == "Bedrooms must be a whole number"

    def test_bad_rating(self):
        data = _valid_input()
        data["amenities"]["pool"] = {"has": True, "rating": 9}
        errors = validate_listing_form(data)
        assert errors[0].message == "Pool rating must be 1-5 stars"

    def test_year_built_range(self):
        assert validate_listing_form(_valid_input(year_built=1750))
        assert validate_listing_form(_valid_input(year_built=1999)) == []

    def test_long_description(self):
        errors = validate_listing_form(_valid_input(description="x" * 1001))
        assert [e.field for e in errors] == ["description"]
