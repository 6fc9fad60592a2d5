"""
Scoring model configuration for the housing comparison core.

Owns every numeric constant that affects a candidate's scores: default
metric weights, user-adjustable thresholds, the commute step buckets and
the amenity / size point tables.

Frozen dataclasses provide type checking and IDE support without
the indirection of YAML/JSON config files.
"""

import logging
from dataclasses import dataclass, field, replace
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


# =============================================================================
# Dataclasses
# =============================================================================

@dataclass(frozen=True)
class AnalyticsWeights:
    """Per-metric weights applied when combining plugin scores.

    Nominally sum to 1.0 so the overall score stays on the 0-100 scale.
    """
    commute: float = 0.4
    cost: float = 0.3
    amenities: float = 0.2
    size: float = 0.1

    def as_dict(self) -> Dict[str, float]:
        return {
            "commute": self.commute,
            "cost": self.cost,
            "amenities": self.amenities,
            "size": self.size,
        }


@dataclass(frozen=True)
class AnalyticsThresholds:
    max_commute_minutes: float = 60
    max_rent: int = 500000  # cents ($5000)
    min_square_footage: float = 500

    def as_dict(self) -> Dict[str, float]:
        return {
            "max_commute_minutes": self.max_commute_minutes,
            "max_rent": self.max_rent,
            "min_square_footage": self.min_square_footage,
        }


@dataclass(frozen=True)
class AnalyticsConfig:
    """Weights, thresholds and free-form per-plugin settings for one run."""
    weights: AnalyticsWeights = field(default_factory=AnalyticsWeights)
    thresholds: AnalyticsThresholds = field(default_factory=AnalyticsThresholds)
    plugins: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CommuteStep:
    """Score awarded when the best commute is at or under max_minutes."""
    max_minutes: float
    score: float


@dataclass(frozen=True)
class ScoreBand:
    """Maps a minimum score threshold to a human-readable label."""
    threshold: float
    label: str


@dataclass(frozen=True)
class ScoringModel:
    """Fixed point tables for the four core scoring algorithms.

    A single module-level instance (SCORING_MODEL) is the source of truth.
    Bump `version` on every change that alters score outputs.
    """
    version: str

    # Commute: step function on the best of walking/driving/transit.
    # The last bucket's ceiling is the configured max commute threshold.
    commute_steps: Tuple[CommuteStep, ...]
    commute_within_max_score: float  # over the last step, within the threshold
    commute_over_max_score: float
    commute_good_option_minutes: float
    commute_min_good_options: int
    commute_options_bonus: float

    # Cost
    cost_cheap_ratio: float       # rent <= min_rent * ratio earns the bonus
    cost_cheap_bonus: float
    cost_expensive_ratio: float   # rent >= max_rent threshold * ratio is penalized
    cost_expensive_penalty: float
    cost_affordable_ratio: float  # recommendation: rent <= max_rent threshold * ratio

    # Amenities
    parking_points: float
    in_unit_laundry_points: float
    building_laundry_points: float
    pets_points: float
    rated_amenity_points: float
    unrated_amenity_credit: float  # fraction of rated_amenity_points for present-but-unrated

    # Size
    size_range_points: float
    size_equal_points: float       # every candidate has the same floor area
    size_minimum_bonus: float
    bedroom_points: float
    max_scored_bedrooms: int
    bathroom_points: float
    max_scored_bathrooms: int

    score_bands: Tuple[ScoreBand, ...]


# =============================================================================
# SCORING_MODEL: current production values
# =============================================================================

SCORING_MODEL = ScoringModel(
    version="1.0.0",

    commute_steps=(
        CommuteStep(15, 100),
        CommuteStep(30, 85),
        CommuteStep(45, 70),
    ),
    commute_within_max_score=50,
    commute_over_max_score=25,
    commute_good_option_minutes=30,
    commute_min_good_options=2,
    commute_options_bonus=10,

    cost_cheap_ratio=1.1,
    cost_cheap_bonus=10,
    cost_expensive_ratio=0.8,
    cost_expensive_penalty=15,
    cost_affordable_ratio=0.6,

    parking_points=10,
    in_unit_laundry_points=15,
    building_laundry_points=8,
    pets_points=5,
    rated_amenity_points=20,
    unrated_amenity_credit=0.6,

    size_range_points=50,
    size_equal_points=25,
    size_minimum_bonus=10,
    bedroom_points=10,
    max_scored_bedrooms=3,
    bathroom_points=5,
    max_scored_bathrooms=2,

    score_bands=(
        ScoreBand(80, "excellent"),
        ScoreBand(60, "good"),
        ScoreBand(40, "fair"),
        ScoreBand(0, "poor"),
    ),
)

DEFAULT_CONFIG = AnalyticsConfig()

# Weights must sum to 1.0 within this tolerance
WEIGHT_SUM_TOLERANCE = 0.01


# =============================================================================
# Pure helpers
# =============================================================================

def band_index(score: float) -> int:
    """Index into SCORING_MODEL.score_bands for a 0-100 score."""
    for i, band in enumerate(SCORING_MODEL.score_bands):
        if score >= band.threshold:
            return i
    return len(SCORING_MODEL.score_bands) - 1


def band_label(score: float, labels: Optional[Tuple[str, ...]] = None) -> str:
    """Human-readable band for a score.

    ``labels`` substitutes metric-specific wording, one per band in
    SCORING_MODEL.score_bands order (e.g. "spacious" ... "compact").
    """
    idx = band_index(score)
    if labels:
        return labels[idx]
    return SCORING_MODEL.score_bands[idx].label


def validate_config(config: AnalyticsConfig) -> List[str]:
    """Return human-readable problems with *config*; empty when valid."""
    errors: List[str] = []

    weights = config.weights.as_dict()
    weight_sum = sum(weights.values())
    if abs(weight_sum - 1.0) > WEIGHT_SUM_TOLERANCE:
        errors.append(f"Weights must sum to 1.0, current sum: {weight_sum:.3f}")

    for key, weight in weights.items():
        if weight < 0 or weight > 1:
            errors.append(f"{key} weight must be between 0 and 1, current: {weight}")

    t = config.thresholds
    if t.max_commute_minutes <= 0:
        errors.append("Max commute time must be positive")
    if t.max_rent <= 0:
        errors.append("Max rent must be positive")
    if t.min_square_footage <= 0:
        errors.append("Min square footage must be positive")

    return errors


def merge_config(
    base: AnalyticsConfig,
    weights: Optional[Dict[str, float]] = None,
    thresholds: Optional[Dict[str, float]] = None,
    plugins: Optional[Dict[str, Any]] = None,
) -> AnalyticsConfig:
    """Overlay partial weight / threshold / plugin settings onto *base*.

    Raises ValueError for unknown weight or threshold names.
    """
    new_weights = base.weights
    if weights:
        unknown = set(weights) - set(base.weights.as_dict())
        if unknown:
            raise ValueError(f"Unknown weight(s): {', '.join(sorted(unknown))}")
        new_weights = replace(base.weights, **weights)

    new_thresholds = base.thresholds
    if thresholds:
        unknown = set(thresholds) - set(base.thresholds.as_dict())
        if unknown:
            raise ValueError(f"Unknown threshold(s): {', '.join(sorted(unknown))}")
        new_thresholds = replace(base.thresholds, **thresholds)

    new_plugins = dict(base.plugins)
    if plugins:
        new_plugins.update(plugins)

    return AnalyticsConfig(weights=new_weights, thresholds=new_thresholds, plugins=new_plugins)


def create_config(
    weights: Optional[Dict[str, float]] = None,
    thresholds: Optional[Dict[str, float]] = None,
    plugins: Optional[Dict[str, Any]] = None,
) -> AnalyticsConfig:
    """Build a config from partial overrides of the defaults.

    Soft validation: an invalid result is logged and DEFAULT_CONFIG is
    returned instead of raising.
    """
    config = merge_config(DEFAULT_CONFIG, weights, thresholds, plugins)
    errors = validate_config(config)
    if errors:
        logger.warning("Invalid scoring configuration, using defaults: %s", "; ".join(errors))
        return DEFAULT_CONFIG
    return config


# Validate the defaults at import time (ValueError, not assert,
# so validation is never stripped by python -O).
_default_errors = validate_config(DEFAULT_CONFIG)
if _default_errors:
    raise ValueError(f"Default scoring configuration is invalid: {_default_errors}")
