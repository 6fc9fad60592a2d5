"""
Candidate listings under comparison.

Plain dataclasses for the records the scoring core reads and annotates:
the listing itself, its amenities, the per-mode travel-time bundle and the
score bundle.  External data (form posts, JSON files) enters through
``candidate_from_dict``, which enforces the record invariants and raises
``CandidateValidationError`` listing every offending field.
"""

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Tuple

TRAVEL_MODES = ("walking", "driving", "transit")


# =============================================================================
# ENUMS
# =============================================================================

class PropertyType(Enum):
    APARTMENT = "apartment"
    HOUSE = "house"
    CONDO = "condo"
    TOWNHOUSE = "townhouse"


class LaundryType(Enum):
    IN_UNIT = "in-unit"
    BUILDING = "building"
    NONE = "none"


class AmenityKind(Enum):
    """Amenities that carry an optional 1-5 star rating."""
    GYM = "gym"
    POOL = "pool"
    OUTDOOR_SPACE = "outdoor_space"

    @property
    def label(self) -> str:
        return {
            AmenityKind.GYM: "Gym",
            AmenityKind.POOL: "Pool",
            AmenityKind.OUTDOOR_SPACE: "Outdoor Space",
        }[self]


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class AmenityRating:
    has: bool = False
    rating: Optional[float] = None  # 1-5 stars, only meaningful when has=True

    @property
    def is_rated(self) -> bool:
        return self.has and bool(self.rating)


@dataclass
class Amenities:
    gym: AmenityRating = field(default_factory=AmenityRating)
    pool: AmenityRating = field(default_factory=AmenityRating)
    outdoor_space: AmenityRating = field(default_factory=AmenityRating)
    parking: bool = False
    laundry: LaundryType = LaundryType.NONE
    pets: bool = False

    def rated(self, kind: AmenityKind) -> AmenityRating:
        return getattr(self, kind.value)

    def feature_names(self) -> List[str]:
        """Human-readable list of everything this listing offers."""
        features = []
        if self.parking:
            features.append("parking")
        if self.laundry is not LaundryType.NONE:
            features.append(f"{self.laundry.value} laundry")
        if self.pets:
            features.append("pet-friendly")
        if self.gym.has:
            features.append("gym")
        if self.pool.has:
            features.append("pool")
        if self.outdoor_space.has:
            features.append("outdoor space")
        return features


@dataclass
class TravelTime:
    distance: float = 0  # meters
    duration: int = 0    # minutes


@dataclass
class TravelTimes:
    """Per-mode travel-time bundle from the work address to a candidate.

    A bundle whose durations are all zero means "not yet computed": a
    real trip with positive distance cannot take zero minutes.
    """
    walking: TravelTime = field(default_factory=TravelTime)
    driving: TravelTime = field(default_factory=TravelTime)
    transit: TravelTime = field(default_factory=TravelTime)

    def for_mode(self, mode: str) -> TravelTime:
        return getattr(self, mode)

    def set_mode(self, mode: str, value: TravelTime) -> None:
        setattr(self, mode, value)

    def durations(self) -> List[int]:
        return [self.for_mode(m).duration for m in TRAVEL_MODES]

    def is_computed(self) -> bool:
        return any(d > 0 for d in self.durations())

    def to_dict(self) -> Dict[str, Dict[str, float]]:
        return {
            m: {"distance": self.for_mode(m).distance, "duration": self.for_mode(m).duration}
            for m in TRAVEL_MODES
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TravelTimes":
        bundle = cls()
        for mode in TRAVEL_MODES:
            entry = data.get(mode) or {}
            bundle.set_mode(mode, TravelTime(
                distance=entry.get("distance", 0) or 0,
                duration=int(entry.get("duration", 0) or 0),
            ))
        return bundle


@dataclass
class ScoreBundle:
    """Overall score plus one score per scoring plugin, all 0-100."""
    overall: float = 0.0
    commute: float = 0.0
    cost: float = 0.0
    amenities: float = 0.0
    size: float = 0.0
    # Scores from plugins registered at runtime, keyed by plugin id
    extra: Dict[str, float] = field(default_factory=dict)


@dataclass
class Candidate:
    """A listing under comparison.  Rent is in cents."""
    id: str
    name: str
    lat: float
    lng: float
    user_id: str = ""
    property_type: PropertyType = PropertyType.APARTMENT
    rent: int = 0
    square_footage: float = 0
    bedrooms: int = 0
    bathrooms: float = 0
    amenities: Amenities = field(default_factory=Amenities)
    travel_times: Optional[TravelTimes] = None
    scores: Optional[ScoreBundle] = None
    description: str = ""
    year_built: Optional[int] = None
    added_date: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())
    last_updated: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def coords(self) -> Tuple[float, float]:
        return (self.lat, self.lng)

    def to_dict(self) -> Dict[str, Any]:
        a = self.amenities
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "property_type": self.property_type.value,
            "lat": self.lat,
            "lng": self.lng,
            "rent": self.rent,
            "square_footage": self.square_footage,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "amenities": {
                "gym": {"has": a.gym.has, "rating": a.gym.rating},
                "pool": {"has": a.pool.has, "rating": a.pool.rating},
                "outdoor_space": {"has": a.outdoor_space.has, "rating": a.outdoor_space.rating},
                "parking": a.parking,
                "laundry": a.laundry.value,
                "pets": a.pets,
            },
            "travel_times": self.travel_times.to_dict() if self.travel_times else None,
            "scores": {
                "overall": self.scores.overall,
                "commute": self.scores.commute,
                "cost": self.scores.cost,
                "amenities": self.scores.amenities,
                "size": self.scores.size,
                **self.scores.extra,
            } if self.scores else None,
            "description": self.description,
            "year_built": self.year_built,
            "added_date": self.added_date,
            "last_updated": self.last_updated,
        }


# =============================================================================
# BOUNDARY VALIDATION
# =============================================================================

@dataclass
class FieldError:
    field: str
    message: str
    value: Any = None


class CandidateValidationError(ValueError):
    """Raised when external candidate data violates the record invariants."""

    def __init__(self, errors: List[FieldError]):
        self.errors = errors
        summary = "; ".join(f"{e.field}: {e.message}" for e in errors)
        super().__init__(f"Invalid candidate data: {summary}")


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool) and math.isfinite(value)


def _object_field(data: Dict[str, Any], key: str, errors: List[FieldError]) -> Dict[str, Any]:
    """Nested object under *key*, or {} (recording an error) when it is not one."""
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, dict):
        errors.append(FieldError(key, "must be an object", value))
        return {}
    return value


def _parse_travel_times(raw: Dict[str, Any], errors: List[FieldError]) -> TravelTimes:
    bundle = TravelTimes()
    for mode in TRAVEL_MODES:
        entry = raw.get(mode) or {}
        if not isinstance(entry, dict):
            errors.append(FieldError(f"travel_times.{mode}", "must be an object", entry))
            continue
        values = {}
        for key in ("distance", "duration"):
            value = entry.get(key, 0)
            if value is None:
                value = 0
            if not _is_number(value):
                errors.append(FieldError(f"travel_times.{mode}.{key}", "must be a number", value))
                value = 0
            elif value < 0:
                errors.append(FieldError(f"travel_times.{mode}.{key}", "cannot be negative", value))
            values[key] = value
        bundle.set_mode(mode, TravelTime(distance=values["distance"], duration=int(values["duration"])))
    return bundle


def _parse_amenity(raw: Any, name: str, errors: List[FieldError]) -> AmenityRating:
    if raw is None:
        return AmenityRating()
    if isinstance(raw, bool):
        return AmenityRating(has=raw)
    if not isinstance(raw, dict):
        errors.append(FieldError(f"amenities.{name}", "must be an object with 'has' and 'rating'", raw))
        return AmenityRating()

    has = bool(raw.get("has", False))
    rating = raw.get("rating")
    if rating in (None, 0):
        return AmenityRating(has=has)
    if not _is_number(rating) or not 1 <= rating <= 5:
        errors.append(FieldError(f"amenities.{name}.rating", "must be between 1 and 5", rating))
        return AmenityRating(has=has)
    if not has:
        errors.append(FieldError(f"amenities.{name}.rating", "rated amenity must be present", rating))
    return AmenityRating(has=has, rating=rating)


def candidate_from_dict(data: Dict[str, Any]) -> Candidate:
    """Build a Candidate from loosely-typed input, enforcing its invariants.

    Accepts ``lat``/``lng`` at the top level or a ``position`` object.
    """
    if not isinstance(data, dict):
        raise CandidateValidationError([FieldError("candidate", "must be an object", data)])
    errors: List[FieldError] = []

    cid = data.get("id")
    if cid in (None, ""):
        errors.append(FieldError("id", "is required", cid))

    position = _object_field(data, "position", errors)
    lat = data.get("lat", position.get("lat"))
    lng = data.get("lng", position.get("lng"))
    if not _is_number(lat) or not -90 <= lat <= 90:
        errors.append(FieldError("lat", "must be a latitude in degrees", lat))
    if not _is_number(lng) or not -180 <= lng <= 180:
        errors.append(FieldError("lng", "must be a longitude in degrees", lng))

    numeric = {}
    for key in ("rent", "square_footage", "bedrooms", "bathrooms"):
        value = data.get(key, 0)
        if value is None:
            value = 0
        if not _is_number(value):
            errors.append(FieldError(key, "must be a number", value))
            value = 0
        elif value < 0:
            errors.append(FieldError(key, "cannot be negative", value))
        numeric[key] = value

    raw_type = data.get("property_type", PropertyType.APARTMENT.value)
    try:
        property_type = PropertyType(raw_type)
    except (ValueError, TypeError):
        errors.append(FieldError(
            "property_type",
            f"must be one of: {', '.join(p.value for p in PropertyType)}",
            raw_type,
        ))
        property_type = PropertyType.APARTMENT

    raw_amenities = _object_field(data, "amenities", errors)
    raw_laundry = raw_amenities.get("laundry", LaundryType.NONE.value)
    try:
        laundry = LaundryType(raw_laundry)
    except (ValueError, TypeError):
        errors.append(FieldError(
            "amenities.laundry",
            f"must be one of: {', '.join(t.value for t in LaundryType)}",
            raw_laundry,
        ))
        laundry = LaundryType.NONE

    amenities = Amenities(
        gym=_parse_amenity(raw_amenities.get("gym"), "gym", errors),
        pool=_parse_amenity(raw_amenities.get("pool"), "pool", errors),
        outdoor_space=_parse_amenity(raw_amenities.get("outdoor_space"), "outdoor_space", errors),
        parking=bool(raw_amenities.get("parking", False)),
        laundry=laundry,
        pets=bool(raw_amenities.get("pets", False)),
    )

    travel_times = None
    if data.get("travel_times"):
        travel_times = _parse_travel_times(_object_field(data, "travel_times", errors), errors)

    if errors:
        raise CandidateValidationError(errors)

    candidate = Candidate(
        id=str(cid),
        name=str(data.get("name", "")),
        lat=float(lat),
        lng=float(lng),
        user_id=str(data.get("user_id", "")),
        property_type=property_type,
        rent=int(numeric["rent"]),
        square_footage=numeric["square_footage"],
        bedrooms=int(numeric["bedrooms"]),
        bathrooms=numeric["bathrooms"],
        amenities=amenities,
        travel_times=travel_times,
        description=data.get("description") or "",
        year_built=data.get("year_built"),
    )
    for key in ("added_date", "last_updated"):
        if data.get(key):
            setattr(candidate, key, data[key])
    return candidate


def duplicate_ids(candidates: Sequence[Candidate]) -> List[str]:
    """Ids that appear more than once, in first-seen order."""
    seen = set()
    dupes: List[str] = []
    for c in candidates:
        if c.id in seen and c.id not in dupes:
            dupes.append(c.id)
        seen.add(c.id)
    return dupes


# Form-level limits for listings entered by hand (rent in cents)
LISTING_FORM_LIMITS = {
    "rent": (50000, 1000000),
    "square_footage": (100, 10000),
    "bedrooms": (0, 10),
    "bathrooms": (0, 10),
}
NAME_MAX_CHARS = 100
DESCRIPTION_MAX_CHARS = 1000
EARLIEST_YEAR_BUILT = 1800


def validate_listing_form(data: Dict[str, Any]) -> List[FieldError]:
    """Check hand-entered listing data against the form limits.

    Stricter than ``candidate_from_dict``: a record can be a valid
    Candidate (e.g. rent 0, meaning unknown) and still fail the form.
    Returns an empty list when everything passes.
    """
    errors: List[FieldError] = []

    name = data.get("name")
    if not isinstance(name, str) or not name.strip():
        errors.append(FieldError("name", "Name is required", name))
    elif len(name) > NAME_MAX_CHARS:
        errors.append(FieldError("name", f"name must be at most {NAME_MAX_CHARS} characters", name))

    for key, (lo, hi) in LISTING_FORM_LIMITS.items():
        value = data.get(key)
        if value is None or value == "":
            errors.append(FieldError(key, f"{key} is required", value))
            continue
        if not _is_number(value):
            errors.append(FieldError(key, f"{key} must be a number", value))
            continue
        if value < lo:
            errors.append(FieldError(key, f"{key} must be at least {lo}", value))
        if value > hi:
            errors.append(FieldError(key, f"{key} must be at most {hi}", value))

    bedrooms = data.get("bedrooms")
    if _is_number(bedrooms) and int(bedrooms) != bedrooms:
        errors.append(FieldError("bedrooms", "Bedrooms must be a whole number", bedrooms))

    raw_type = data.get("property_type")
    if raw_type not in {p.value for p in PropertyType}:
        errors.append(FieldError(
            "property_type",
            f"property_type must be one of: {', '.join(p.value for p in PropertyType)}",
            raw_type,
        ))

    amenities = _object_field(data, "amenities", errors)
    for kind in AmenityKind:
        entry = amenities.get(kind.value)
        rating = entry.get("rating") if isinstance(entry, dict) else None
        if rating and (not _is_number(rating) or not 1 <= rating <= 5):
            errors.append(FieldError(
                f"amenities.{kind.value}.rating",
                f"{kind.label} rating must be 1-5 stars",
                rating,
            ))
    if amenities.get("laundry", LaundryType.NONE.value) not in {t.value for t in LaundryType}:
        errors.append(FieldError("amenities.laundry", "Laundry must be in-unit, building or none",
                                 amenities.get("laundry")))

    description = data.get("description")
    if description and len(description) > DESCRIPTION_MAX_CHARS:
        errors.append(FieldError(
            "description", f"description must be at most {DESCRIPTION_MAX_CHARS} characters", None
        ))

    year_built = data.get("year_built")
    if year_built:
        latest = datetime.now(timezone.utc).year + 1
        if not _is_number(year_built) or not EARLIEST_YEAR_BUILT <= year_built <= latest:
            errors.append(FieldError(
                "year_built", "Year built must be between 1800 and next year", year_built
            ))

    return errors
