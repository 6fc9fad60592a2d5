"""
Keeps candidates' travel times in step with the candidate list and the
work address.

The surrounding application calls these hooks when its data changes; each
one runs the calculator, writes the bundles onto the candidates and
announces progress on the notification channel.
"""

import logging
from typing import Iterable, List, Optional, Sequence

import notifications
from candidates import Candidate
from notifications import NotificationChannel
from travel_time_cache import coordinates_match
from travel_time_service import TravelTimeCalculator, has_valid_travel_times

logger = logging.getLogger(__name__)


class TravelTimeIntegration:

    def __init__(self, calculator: TravelTimeCalculator, channel: Optional[NotificationChannel] = None):
        self.calculator = calculator
        self.channel = channel or NotificationChannel()

    @property
    def user_context(self):
        return self.calculator.user_context

    def initialize(self, candidates: Sequence[Candidate]) -> int:
        """Compute travel times for candidates that don't have valid ones yet."""
        missing = [c for c in candidates if not has_valid_travel_times(c.travel_times)]
        if not missing:
            return 0
        return self._calculate(missing, reason="initialize")

    def on_candidates_updated(self, candidates: Sequence[Candidate]) -> int:
        return self.initialize(candidates)

    def on_candidate_added(self, candidate: Candidate) -> bool:
        """Single-destination path for one new candidate."""
        try:
            bundle = self.calculator.calculate_single(candidate)
        except Exception as e:
            logger.exception("[travel] Travel time for %s failed", candidate.id)
            self.channel.emit(notifications.TRAVEL_TIME_CALCULATION_ERROR, {
                "reason": "candidate_added", "error": str(e),
            })
            return False
        if bundle is None:
            return False
        candidate.travel_times = bundle
        return has_valid_travel_times(bundle)

    def on_work_address_changed(self, candidates: Sequence[Candidate], lat: float, lng: float) -> int:
        """Move the origin, drop cache entries for the old one and recompute everything."""
        previous = self.user_context.set_work_coords(lat, lng)
        if previous is not None and coordinates_match(previous, (lat, lng)):
            return 0
        if previous is not None:
            removed = self.calculator.cache.invalidate_by_origin(previous)
            self.channel.emit(notifications.TRAVEL_TIME_CACHE_INVALIDATED, {
                "origin": {"lat": previous[0], "lng": previous[1]},
                "entries_removed": removed,
            })
        for candidate in candidates:
            candidate.travel_times = None
        if not candidates:
            return 0
        return self._calculate(list(candidates), reason="work_address_changed")

    def calculate_for(self, candidates: Iterable[Candidate], ids: Iterable[str]) -> int:
        wanted = set(ids)
        selected = [c for c in candidates if c.id in wanted]
        if not selected:
            return 0
        return self._calculate(selected, reason="requested")

    def clear_all(self, candidates: Iterable[Candidate] = ()) -> None:
        self.calculator.clear_cache()
        for candidate in candidates:
            candidate.travel_times = None
        self.channel.emit(notifications.TRAVEL_TIME_CACHE_CLEARED, {})

    def _calculate(self, candidates: List[Candidate], reason: str) -> int:
        """Run the calculator and annotate candidates.  Returns how many got valid times."""
        if not self.user_context.has_work_address:
            logger.info("[travel] Work address unset; %d candidates left without travel times", len(candidates))
            return 0

        self.channel.emit(notifications.TRAVEL_TIME_CALCULATION_STARTED, {
            "reason": reason, "count": len(candidates),
        })
        try:
            results = self.calculator.calculate_batch(candidates)
        except Exception as e:
            logger.exception("[travel] Travel time calculation failed (%s)", reason)
            self.channel.emit(notifications.TRAVEL_TIME_CALCULATION_ERROR, {
                "reason": reason, "error": str(e),
            })
            return 0

        by_id = {r.candidate_id: r for r in results}
        resolved = 0
        for candidate in candidates:
            result = by_id.get(candidate.id)
            if result is None:
                continue
            candidate.travel_times = result.travel_times
            if has_valid_travel_times(result.travel_times):
                resolved += 1

        self.channel.emit(notifications.TRAVEL_TIME_CALCULATION_COMPLETED, {
            "reason": reason,
            "count": len(candidates),
            "resolved": resolved,
            "from_cache": sum(1 for r in results if r.from_cache),
        })
        return resolved
