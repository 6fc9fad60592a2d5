"""
Analytics engine: plugin registry and weighted score aggregation.

Each registered plugin scores every candidate 0-100 and contributes
insights and recommendations.  The engine runs them in registration
order, combines their scores with each plugin's weight into one overall
score per candidate, and ranks the candidates.

A plugin that raises is logged, reported on the notification channel and
left out of that run; the others still produce results.  Only one
calculation may be in flight per engine: a second call while one is
running raises CalculationInProgressError instead of interleaving.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from calculators import (
    ScoreBreakdown,
    score_amenities,
    score_commute,
    score_cost,
    score_size,
)
from candidates import Candidate, ScoreBundle, duplicate_ids
from notifications import (
    CALCULATION_COMPLETED,
    CALCULATION_STARTED,
    CONFIG_UPDATED,
    ENGINE_RESET,
    PLUGIN_CALCULATION_COMPLETED,
    PLUGIN_CALCULATION_ERROR,
    PLUGIN_CALCULATION_STARTED,
    PLUGIN_REGISTERED,
    PLUGIN_UNREGISTERED,
    NotificationChannel,
)
from scoring_config import (
    DEFAULT_CONFIG,
    SCORING_MODEL,
    AnalyticsConfig,
    merge_config,
    validate_config,
)

logger = logging.getLogger(__name__)

# Weight for plugins that don't map onto a configured metric, so
# third-party plugins contribute without a config change.
DEFAULT_PLUGIN_WEIGHT = 0.25


class CalculationInProgressError(RuntimeError):
    """Raised when calculate_analytics is called while a calculation is running."""

    pass


# =============================================================================
# RESULT TYPES
# =============================================================================

@dataclass
class PluginMetadata:
    plugin_id: str
    calculation_time_ms: float
    candidates_processed: int


@dataclass
class PluginResult:
    scores: Dict[str, float]  # candidate id -> 0-100
    insights: List[str] = field(default_factory=list)
    recommendations: List[str] = field(default_factory=list)
    breakdowns: Dict[str, ScoreBreakdown] = field(default_factory=dict)
    metadata: Optional[PluginMetadata] = None


@dataclass
class RankedCandidate:
    id: str
    score: float
    rank: int


@dataclass
class CalculationMetadata:
    calculation_time_ms: float
    candidates_processed: int
    plugins_executed: List[str]
    model_version: str = SCORING_MODEL.version


@dataclass
class CombinedAnalyticsResult:
    overall_scores: Dict[str, float]
    plugin_scores: Dict[str, Dict[str, float]]  # plugin id -> candidate id -> score
    insights: List[str]
    recommendations: List[str]
    top_candidates: List[RankedCandidate]
    metadata: CalculationMetadata

    def to_dict(self) -> dict:
        return {
            "overall_scores": dict(self.overall_scores),
            "plugin_scores": {pid: dict(s) for pid, s in self.plugin_scores.items()},
            "insights": list(self.insights),
            "recommendations": list(self.recommendations),
            "top_candidates": [
                {"id": t.id, "score": t.score, "rank": t.rank} for t in self.top_candidates
            ],
            "metadata": {
                "calculation_time_ms": self.metadata.calculation_time_ms,
                "candidates_processed": self.metadata.candidates_processed,
                "plugins_executed": list(self.metadata.plugins_executed),
                "model_version": self.metadata.model_version,
            },
        }


# =============================================================================
# PLUGINS
# =============================================================================

class AnalyticsPlugin:
    """Base class for scoring plugins.

    Subclasses set ``id``, ``name`` and ``description`` and implement
    ``calculate``.  ``weight_key`` names the AnalyticsWeights field that
    weights this plugin; leave it None to use DEFAULT_PLUGIN_WEIGHT.
    """
    id: str = ""
    name: str = ""
    description: str = ""
    weight_key: Optional[str] = None

    def calculate(self, candidates: Sequence[Candidate], config: AnalyticsConfig) -> PluginResult:
        raise NotImplementedError

    def weight(self, config: AnalyticsConfig) -> float:
        if self.weight_key:
            return config.weights.as_dict().get(self.weight_key, DEFAULT_PLUGIN_WEIGHT)
        return DEFAULT_PLUGIN_WEIGHT

    def _score_each(
        self,
        candidates: Sequence[Candidate],
        scorer: Callable[[Candidate], ScoreBreakdown],
    ) -> PluginResult:
        """Run *scorer* over every candidate; each explanation becomes an insight."""
        t0 = time.perf_counter()
        result = PluginResult(scores={})
        for candidate in candidates:
            breakdown = scorer(candidate)
            result.scores[candidate.id] = breakdown.score
            result.breakdowns[candidate.id] = breakdown
            result.insights.append(breakdown.explanation)
        result.metadata = PluginMetadata(
            plugin_id=self.id,
            calculation_time_ms=(time.perf_counter() - t0) * 1000,
            candidates_processed=len(candidates),
        )
        return result


class CommuteScorePlugin(AnalyticsPlugin):
    id = "commute-score"
    name = "Commute Score"
    description = "Scores locations based on travel time to work"
    weight_key = "commute"

    def calculate(self, candidates, config):
        return self._score_each(candidates, lambda c: score_commute(c, config))


class CostScorePlugin(AnalyticsPlugin):
    id = "cost-score"
    name = "Cost Score"
    description = "Scores locations based on rent affordability and value"
    weight_key = "cost"

    def calculate(self, candidates, config):
        result = self._score_each(candidates, lambda c: score_cost(c, candidates, config))

        rents = [c.rent for c in candidates if c.rent > 0]
        if rents:
            avg_rent = sum(rents) / len(rents)
            result.insights.append(f"Average rent: ${avg_rent / 100:.0f}")

            affordable_limit = config.thresholds.max_rent * SCORING_MODEL.cost_affordable_ratio
            affordable = sum(1 for r in rents if r <= affordable_limit)
            if affordable:
                result.recommendations.append(f"{affordable} locations are particularly affordable")

        return result


class AmenityScorePlugin(AnalyticsPlugin):
    id = "amenities-score"
    name = "Amenity Score"
    description = "Scores locations based on available amenities and their quality ratings"
    weight_key = "amenities"

    def calculate(self, candidates, config):
        return self._score_each(candidates, score_amenities)


class SizeScorePlugin(AnalyticsPlugin):
    id = "size-score"
    name = "Size Score"
    description = "Scores locations based on square footage and room counts"
    weight_key = "size"

    def calculate(self, candidates, config):
        return self._score_each(candidates, lambda c: score_size(c, candidates, config))


def core_plugins() -> List[AnalyticsPlugin]:
    return [CommuteScorePlugin(), CostScorePlugin(), AmenityScorePlugin(), SizeScorePlugin()]


# =============================================================================
# ENGINE
# =============================================================================

class AnalyticsEngine:
    """Plugin registry plus orchestrator for one comparison session."""

    def __init__(
        self,
        config: Optional[AnalyticsConfig] = None,
        channel: Optional[NotificationChannel] = None,
    ):
        self.config = config or DEFAULT_CONFIG
        self.channel = channel or NotificationChannel()
        self._plugins: Dict[str, AnalyticsPlugin] = {}
        self._calc_lock = threading.Lock()
        self._register_core_plugins()

    # ------------------------------------------------------------------
    # Registry
    # ------------------------------------------------------------------

    def register_plugin(self, plugin: AnalyticsPlugin) -> None:
        if plugin.id in self._plugins:
            logger.warning("[analytics] Plugin %s is already registered, overwriting", plugin.id)
        self._plugins[plugin.id] = plugin
        self.channel.emit(PLUGIN_REGISTERED, {"plugin_id": plugin.id})

    def unregister_plugin(self, plugin_id: str) -> bool:
        removed = self._plugins.pop(plugin_id, None) is not None
        if removed:
            self.channel.emit(PLUGIN_UNREGISTERED, {"plugin_id": plugin_id})
        return removed

    def get_plugins(self) -> List[AnalyticsPlugin]:
        return list(self._plugins.values())

    def get_plugin(self, plugin_id: str) -> Optional[AnalyticsPlugin]:
        return self._plugins.get(plugin_id)

    def _register_core_plugins(self) -> None:
        for plugin in core_plugins():
            self.register_plugin(plugin)

    # ------------------------------------------------------------------
    # Configuration
    # ------------------------------------------------------------------

    def get_config(self) -> AnalyticsConfig:
        return self.config

    def update_config(self, weights=None, thresholds=None, plugins=None) -> AnalyticsConfig:
        """Merge partial settings into the active config for the next calculation."""
        self.config = merge_config(self.config, weights, thresholds, plugins)
        errors = validate_config(self.config)
        if errors:
            logger.warning("[analytics] Config update has problems: %s", "; ".join(errors))
        self.channel.emit(CONFIG_UPDATED, {"config": self.config, "errors": errors})
        return self.config

    def validate_config(self) -> List[str]:
        return validate_config(self.config)

    def reset(self) -> None:
        """Restore the default config and the four core plugins."""
        self._plugins.clear()
        self.config = DEFAULT_CONFIG
        self._register_core_plugins()
        self.channel.emit(ENGINE_RESET, {})

    # ------------------------------------------------------------------
    # Calculation
    # ------------------------------------------------------------------

    @property
    def is_calculating(self) -> bool:
        return self._calc_lock.locked()

    def calculate_analytics(self, candidates: Sequence[Candidate]) -> CombinedAnalyticsResult:
        dupes = duplicate_ids(candidates)
        if dupes:
            raise ValueError(f"Duplicate candidate ids: {', '.join(dupes)}")
        if not self._calc_lock.acquire(blocking=False):
            raise CalculationInProgressError("Analytics calculation is already in progress")

        try:
            t0 = time.perf_counter()
            config = self.config
            plugins = list(self._plugins.values())
            self.channel.emit(CALCULATION_STARTED, {"candidates_count": len(candidates)})

            plugin_scores: Dict[str, Dict[str, float]] = {}
            weights: Dict[str, float] = {}
            insights: List[str] = []
            recommendations: List[str] = []

            for plugin in plugins:
                self.channel.emit(PLUGIN_CALCULATION_STARTED, {
                    "plugin_id": plugin.id,
                    "plugin_name": plugin.name,
                })
                try:
                    result = plugin.calculate(candidates, config)
                    weight = plugin.weight(config)
                except Exception as e:
                    logger.exception("[analytics] Plugin %s failed", plugin.id)
                    self.channel.emit(PLUGIN_CALCULATION_ERROR, {
                        "plugin_id": plugin.id,
                        "error": str(e) or e.__class__.__name__,
                    })
                    continue

                plugin_scores[plugin.id] = result.scores
                weights[plugin.id] = weight
                insights.extend(result.insights)
                recommendations.extend(result.recommendations)
                self.channel.emit(PLUGIN_CALCULATION_COMPLETED, {
                    "plugin_id": plugin.id,
                    "result": result,
                })

            overall = self._overall_scores(candidates, plugin_scores, weights)
            top = rank_candidates(overall)

            elapsed_ms = (time.perf_counter() - t0) * 1000
            result = CombinedAnalyticsResult(
                overall_scores=overall,
                plugin_scores=plugin_scores,
                insights=insights,
                recommendations=recommendations,
                top_candidates=top,
                metadata=CalculationMetadata(
                    calculation_time_ms=elapsed_ms,
                    candidates_processed=len(candidates),
                    plugins_executed=list(plugin_scores),
                ),
            )
            logger.info(
                "[analytics] Scored %d candidates with %d/%d plugins in %dms",
                len(candidates), len(plugin_scores), len(plugins), int(elapsed_ms),
            )
            self.channel.emit(CALCULATION_COMPLETED, {"result": result})
            return result
        finally:
            self._calc_lock.release()

    @staticmethod
    def _overall_scores(
        candidates: Sequence[Candidate],
        plugin_scores: Dict[str, Dict[str, float]],
        weights: Dict[str, float],
    ) -> Dict[str, float]:
        overall: Dict[str, float] = {}
        for candidate in candidates:
            total = 0.0
            for plugin_id, scores in plugin_scores.items():
                total += scores.get(candidate.id, 0) * weights[plugin_id]
            overall[candidate.id] = total
        return overall


def rank_candidates(overall_scores: Dict[str, float]) -> List[RankedCandidate]:
    """Highest score first; ties keep input order.  Ranks start at 1."""
    ordered = sorted(overall_scores.items(), key=lambda kv: kv[1], reverse=True)
    return [RankedCandidate(id=cid, score=score, rank=i + 1) for i, (cid, score) in enumerate(ordered)]


_CORE_SCORE_FIELDS = {
    CommuteScorePlugin.id: "commute",
    CostScorePlugin.id: "cost",
    AmenityScorePlugin.id: "amenities",
    SizeScorePlugin.id: "size",
}


def apply_scores(candidates: Sequence[Candidate], result: CombinedAnalyticsResult) -> None:
    """Attach a ScoreBundle from *result* to every candidate in place."""
    for candidate in candidates:
        bundle = ScoreBundle(overall=result.overall_scores.get(candidate.id, 0.0))
        for plugin_id, scores in result.plugin_scores.items():
            value = scores.get(candidate.id, 0.0)
            attr = _CORE_SCORE_FIELDS.get(plugin_id)
            if attr:
                setattr(bundle, attr, value)
            else:
                bundle.extra[plugin_id] = value
        candidate.scores = bundle
