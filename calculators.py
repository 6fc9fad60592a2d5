"""
Scoring algorithms for candidate listings.

Each scorer is a pure function returning a 0-100 score, a short
explanation shown to the user as the rationale for that score, and the
factor breakdown behind it.  Missing inputs are not errors: the scorer
returns 0 with a "No ... data available" explanation.

Travel times must already be attached to a candidate before
``score_commute`` runs; nothing here calls out to the network.
"""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from candidates import AmenityKind, Candidate, LaundryType
from scoring_config import (
    DEFAULT_CONFIG,
    SCORING_MODEL,
    AnalyticsConfig,
    band_label,
)

NO_TRAVEL_DATA = "No travel time data available"
NO_RENT_DATA = "No rent data available"
NO_SIZE_DATA = "No size data available"

# Metric-specific wording for the score bands (excellent/good/fair/poor)
_COST_LABELS = ("very affordable", "affordable", "moderately priced", "expensive")
_AMENITY_LABELS = ("excellent", "good", "moderate", "limited")
_SIZE_LABELS = ("spacious", "comfortable", "adequate", "compact")


# =============================================================================
# DATA CLASSES
# =============================================================================

@dataclass
class ScoreFactor:
    """One input to a score and the points it contributed."""
    factor: str
    value: float
    weight: float
    contribution: float


@dataclass
class ScoreBreakdown:
    score: float            # 0-100
    explanation: str
    factors: List[ScoreFactor] = field(default_factory=list)


@dataclass
class CombinedScores:
    candidate_id: str
    commute: ScoreBreakdown
    cost: ScoreBreakdown
    amenities: ScoreBreakdown
    size: ScoreBreakdown
    overall: ScoreBreakdown


# =============================================================================
# HELPERS
# =============================================================================

def _clamp(value: float, lo: float = 0.0, hi: float = 100.0) -> float:
    return max(lo, min(hi, value))


def normalize_to_scale(value: float, lo: float, hi: float, invert: bool = False) -> float:
    """Map *value* from [lo, hi] onto 0-100.  Equal bounds map to 50."""
    if hi == lo:
        return 50.0
    normalized = (value - lo) / (hi - lo) * 100
    if invert:
        return max(0.0, 100 - normalized)
    return _clamp(normalized)


# =============================================================================
# COMMUTE
# =============================================================================

def _commute_step_score(best_minutes: float, max_commute_minutes: float) -> float:
    model = SCORING_MODEL
    for step in model.commute_steps:
        if best_minutes <= step.max_minutes:
            return step.score
    if best_minutes <= max_commute_minutes:
        return model.commute_within_max_score
    return model.commute_over_max_score


def _commute_time_rating(best_minutes: float) -> str:
    if best_minutes <= 15:
        return "excellent"
    if best_minutes <= 30:
        return "good"
    if best_minutes <= 45:
        return "fair"
    return "poor"


def score_commute(candidate: Candidate, config: Optional[AnalyticsConfig] = None) -> ScoreBreakdown:
    """Score the best available commute with a bonus for modal flexibility.

    Zero-duration modes are unresolved lookups, not instant trips, and are
    left out of both the best time and the good-options count.
    """
    config = config or DEFAULT_CONFIG
    model = SCORING_MODEL

    bundle = candidate.travel_times
    if bundle is None or not bundle.is_computed():
        return ScoreBreakdown(score=0, explanation=NO_TRAVEL_DATA)

    durations = [d for d in bundle.durations() if d > 0]
    best = min(durations)
    base = _commute_step_score(best, config.thresholds.max_commute_minutes)

    good_options = sum(1 for d in durations if d <= model.commute_good_option_minutes)
    bonus = model.commute_options_bonus if good_options >= model.commute_min_good_options else 0
    score = min(100.0, base + bonus)

    factors = [
        ScoreFactor("Best Commute Time", best, 0.7, score - bonus),
        ScoreFactor("Multiple Commute Options", good_options, 0.3, bonus),
    ]

    explanation = (
        f"Best commute time is {best:.0f} minutes "
        f"({_commute_time_rating(best)}, score: {score:.0f}/100 - {band_label(score)})"
    )
    if good_options >= model.commute_min_good_options:
        explanation += (
            f". {good_options} transportation options under "
            f"{model.commute_good_option_minutes:.0f} minutes"
        )

    return ScoreBreakdown(score=score, explanation=explanation, factors=factors)


# =============================================================================
# COST
# =============================================================================

def score_cost(
    candidate: Candidate,
    candidates: Sequence[Candidate],
    config: Optional[AnalyticsConfig] = None,
) -> ScoreBreakdown:
    """Relative rent score within the candidate set, adjusted for absolute cost.

    The top of the range is capped at the configured max rent so a single
    outlier doesn't compress everyone else's score.  The expensive penalty
    is independent of the set, so a uniformly pricey set can't all look
    cheap.
    """
    config = config or DEFAULT_CONFIG
    model = SCORING_MODEL
    max_rent_threshold = config.thresholds.max_rent

    rent = candidate.rent
    if rent <= 0:
        return ScoreBreakdown(score=0, explanation=NO_RENT_DATA)

    rents = [c.rent for c in candidates if c.rent > 0] or [rent]
    min_rent = min(rents)
    max_rent = min(max(rents), max_rent_threshold)
    rent_range = max_rent - min_rent

    if rent_range > 0:
        base = _clamp(100 * (max_rent - rent) / rent_range)
    else:
        base = 100.0

    adjustment = 0.0
    if rent <= min_rent * model.cost_cheap_ratio:
        adjustment = model.cost_cheap_bonus
    if rent >= max_rent_threshold * model.cost_expensive_ratio:
        adjustment = max(-model.cost_expensive_penalty, adjustment - model.cost_expensive_penalty)

    score = _clamp(base + adjustment)

    factors = [
        ScoreFactor("Relative Rent Cost", rent, 0.8, base),
        ScoreFactor("Affordability Adjustment", adjustment, 0.2, adjustment),
    ]

    percentile = _clamp(100 * (max_rent - rent) / rent_range) if rent_range > 0 else 50.0
    explanation = (
        f"Rent is ${rent / 100:.0f}/month "
        f"({band_label(score, _COST_LABELS)}, {percentile:.0f}th percentile)"
    )

    return ScoreBreakdown(score=score, explanation=explanation, factors=factors)


# =============================================================================
# AMENITIES
# =============================================================================

def score_amenities(candidate: Candidate) -> ScoreBreakdown:
    """Additive amenity points, capped at 100.

    Basic amenities are worth up to 40 points; each of gym, pool and
    outdoor space up to 20, scaled by its star rating.  A present but
    unrated amenity earns partial credit.
    """
    model = SCORING_MODEL
    amenities = candidate.amenities
    factors: List[ScoreFactor] = []
    basic = 0.0

    if amenities.parking:
        basic += model.parking_points
        factors.append(ScoreFactor("Parking", 1, 0.25, model.parking_points))

    if amenities.laundry is LaundryType.IN_UNIT:
        basic += model.in_unit_laundry_points
        factors.append(ScoreFactor("In-unit Laundry", 1, 0.375, model.in_unit_laundry_points))
    elif amenities.laundry is LaundryType.BUILDING:
        basic += model.building_laundry_points
        factors.append(ScoreFactor("Building Laundry", 1, 0.2, model.building_laundry_points))

    if amenities.pets:
        basic += model.pets_points
        factors.append(ScoreFactor("Pet Friendly", 1, 0.125, model.pets_points))

    rated = 0.0
    for kind in AmenityKind:
        amenity = amenities.rated(kind)
        if not amenity.has:
            continue
        if amenity.is_rated:
            contribution = amenity.rating / 5 * model.rated_amenity_points
            factors.append(ScoreFactor(f"{kind.label} Quality", amenity.rating, 0.2, contribution))
        else:
            contribution = model.rated_amenity_points * model.unrated_amenity_credit
            factors.append(ScoreFactor(f"{kind.label} Available", 1, 0.2, contribution))
        rated += contribution

    score = min(100.0, basic + rated)

    features = amenities.feature_names()
    quality = band_label(score, _AMENITY_LABELS)
    if features:
        explanation = f"{len(features)} amenities: {', '.join(features)} ({quality})"
    else:
        explanation = f"No amenities listed ({quality})"

    return ScoreBreakdown(score=score, explanation=explanation, factors=factors)


# =============================================================================
# SIZE
# =============================================================================

def score_size(
    candidate: Candidate,
    candidates: Sequence[Candidate],
    config: Optional[AnalyticsConfig] = None,
) -> ScoreBreakdown:
    """Relative floor area (0-50) plus minimum-size, bedroom and bathroom points."""
    config = config or DEFAULT_CONFIG
    model = SCORING_MODEL

    sqft = candidate.square_footage
    if sqft <= 0:
        return ScoreBreakdown(score=0, explanation=NO_SIZE_DATA)

    sizes = [c.square_footage for c in candidates if c.square_footage > 0] or [sqft]
    min_size = min(sizes)
    size_range = max(sizes) - min_size

    if size_range > 0:
        area_points = _clamp((sqft - min_size) / size_range * model.size_range_points,
                             0, model.size_range_points)
    else:
        area_points = model.size_equal_points

    meets_minimum = sqft >= config.thresholds.min_square_footage
    minimum_bonus = model.size_minimum_bonus if meets_minimum else 0

    bedroom_points = min(max(int(candidate.bedrooms), 0), model.max_scored_bedrooms) * model.bedroom_points
    bathroom_points = min(max(int(candidate.bathrooms), 0), model.max_scored_bathrooms) * model.bathroom_points

    factors = [
        ScoreFactor("Relative Square Footage", sqft, 0.5, area_points),
        ScoreFactor("Minimum Size Requirement", 1 if meets_minimum else 0, 0.1, minimum_bonus),
        ScoreFactor("Bedroom Count", candidate.bedrooms, 0.3, bedroom_points),
        ScoreFactor("Bathroom Count", candidate.bathrooms, 0.1, bathroom_points),
    ]

    score = _clamp(area_points + minimum_bonus + bedroom_points + bathroom_points)

    explanation = (
        f"{sqft:.0f} sq ft, {candidate.bedrooms}bed/{candidate.bathrooms:g}bath "
        f"({band_label(score, _SIZE_LABELS)})"
    )

    return ScoreBreakdown(score=score, explanation=explanation, factors=factors)


# =============================================================================
# COMBINED
# =============================================================================

def combine_scores(
    candidate: Candidate,
    candidates: Sequence[Candidate],
    config: Optional[AnalyticsConfig] = None,
) -> CombinedScores:
    """All four breakdowns for one candidate plus the weighted overall score."""
    config = config or DEFAULT_CONFIG
    w = config.weights

    commute = score_commute(candidate, config)
    cost = score_cost(candidate, candidates, config)
    amenities = score_amenities(candidate)
    size = score_size(candidate, candidates, config)

    parts = [
        ("Commute Score", commute.score, w.commute),
        ("Cost Score", cost.score, w.cost),
        ("Amenity Score", amenities.score, w.amenities),
        ("Size Score", size.score, w.size),
    ]
    overall_value = sum(score * weight for _, score, weight in parts)

    ordered = sorted(w.as_dict().items(), key=lambda kv: kv[1], reverse=True)
    overall = ScoreBreakdown(
        score=overall_value,
        explanation="Overall score weighted by: " + ", ".join(k.capitalize() for k, _ in ordered),
        factors=[ScoreFactor(name, score, weight, score * weight) for name, score, weight in parts],
    )

    return CombinedScores(
        candidate_id=candidate.id,
        commute=commute,
        cost=cost,
        amenities=amenities,
        size=size,
        overall=overall,
    )
