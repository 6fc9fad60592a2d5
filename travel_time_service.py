"""
Travel times from the work address to every candidate.

For each candidate the calculator produces a walking/driving/transit
bundle.  Cached bundles are reused; the rest are looked up against the
Distance Matrix API in batches of ten destinations, one request per batch
per mode, with a short pause between batches.

Failures are contained to the smallest unit possible:
  - a non-OK element affects one destination for one mode
  - a failed request (timeout, HTTP error, bad status) affects one batch
    for one mode
Either way that (destination, mode) falls back to a straight-line
estimate from geo.py.  A destination nothing could be resolved for gets
an all-zero bundle, which scoring reads as "travel time unknown".
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from candidates import Candidate, TravelTime, TravelTimes, TRAVEL_MODES
from distance_matrix import DistanceMatrixClient, DistanceMatrixError, MatrixElement
from geo import estimate_duration_minutes, haversine_meters, is_usable_distance
from run_trace import get_trace
from travel_time_cache import TravelTimeCache
from user_context import UserContext

logger = logging.getLogger(__name__)

BATCH_SIZE = DistanceMatrixClient.MAX_DESTINATIONS
# Pause between successive batches to stay under the API's rate limit
BATCH_DELAY_SECONDS = 0.1


@dataclass
class TravelTimeResult:
    candidate_id: str
    travel_times: TravelTimes
    from_cache: bool = False


def has_valid_travel_times(bundle: Optional[TravelTimes]) -> bool:
    """True when a bundle exists and at least one mode has a duration."""
    return bundle is not None and bundle.is_computed()


def seconds_to_minutes(seconds: float) -> int:
    return int(math.floor(seconds / 60 + 0.5))


def fallback_travel_time(origin: Tuple[float, float], dest: Tuple[float, float], mode: str) -> Optional[TravelTime]:
    """Straight-line estimate for one mode, or None if the distance is unusable."""
    distance = haversine_meters(origin, dest)
    if not is_usable_distance(distance):
        return None
    return TravelTime(distance=distance, duration=estimate_duration_minutes(distance, mode))


def _chunks(items: list, size: int):
    for i in range(0, len(items), size):
        yield items[i:i + size]


class TravelTimeCalculator:
    """Batched work-to-candidate travel times with caching and fallback."""

    def __init__(
        self,
        client: Optional[DistanceMatrixClient],
        cache: TravelTimeCache,
        user_context: UserContext,
        sleep: Callable[[float], None] = time.sleep,
        batch_delay: float = BATCH_DELAY_SECONDS,
        batch_size: int = BATCH_SIZE,
    ):
        self.client = client
        self.cache = cache
        self.user_context = user_context
        self.sleep = sleep
        self.batch_delay = batch_delay
        self.batch_size = batch_size

    def is_service_available(self) -> bool:
        return self.client is not None and self.client.is_configured

    def clear_cache(self) -> None:
        self.cache.clear()

    # ------------------------------------------------------------------
    # Batch path
    # ------------------------------------------------------------------

    def calculate_batch(self, candidates: Sequence[Candidate]) -> List[TravelTimeResult]:
        """
        Bundle per candidate, in input order.

        Returns an empty list when the work address is unset.
        """
        origin = self.user_context.work_coords
        if origin is None:
            logger.warning("[travel] No work address set; skipping travel time calculation")
            return []
        if not candidates:
            return []

        bundles: List[Optional[TravelTimes]] = [None] * len(candidates)
        from_cache = [False] * len(candidates)
        pending: List[int] = []
        for i, candidate in enumerate(candidates):
            cached = self.cache.get(origin, candidate.coords)
            if cached is not None:
                bundles[i] = cached
                from_cache[i] = True
            else:
                pending.append(i)

        logger.info(
            "[travel] %d candidates: %d cached, %d to compute",
            len(candidates), len(candidates) - len(pending), len(pending),
        )

        for batch_no, batch in enumerate(_chunks(pending, self.batch_size)):
            if batch_no > 0 and self.batch_delay > 0:
                self.sleep(self.batch_delay)
            dests = [candidates[i].coords for i in batch]
            computed = self._compute_batch(origin, dests)
            for i, dest, bundle in zip(batch, dests, computed):
                bundles[i] = bundle
                if bundle.is_computed():
                    self.cache.set(origin, dest, bundle)

        return [
            TravelTimeResult(candidate_id=c.id, travel_times=bundles[i], from_cache=from_cache[i])
            for i, c in enumerate(candidates)
        ]

    def _compute_batch(self, origin: Tuple[float, float], dests: List[Tuple[float, float]]) -> List[TravelTimes]:
        bundles = [TravelTimes() for _ in dests]
        for mode in TRAVEL_MODES:
            elements = self._query_mode(origin, dests, mode)
            for bundle, dest, elem in zip(bundles, dests, elements):
                value = self._resolve(origin, dest, mode, elem)
                if value is not None:
                    bundle.set_mode(mode, value)
        return bundles

    def _query_mode(
        self,
        origin: Tuple[float, float],
        dests: List[Tuple[float, float]],
        mode: str,
    ) -> List[Optional[MatrixElement]]:
        """One request for one mode.  A failed request yields None per destination."""
        if not self.is_service_available():
            return [None] * len(dests)
        try:
            return self.client.batch_query(origin, dests, mode)
        except DistanceMatrixError:
            logger.warning(
                "[travel] %s lookup failed for %d destinations; using estimates",
                mode, len(dests), exc_info=True,
            )
            return [None] * len(dests)

    def _resolve(
        self,
        origin: Tuple[float, float],
        dest: Tuple[float, float],
        mode: str,
        elem: Optional[MatrixElement],
    ) -> Optional[TravelTime]:
        if elem is not None and elem.ok:
            return TravelTime(
                distance=elem.distance_meters,
                duration=seconds_to_minutes(elem.duration_seconds),
            )
        if elem is not None:
            logger.debug("[travel] %s element status %s for %s; using estimate", mode, elem.status, dest)
        trace = get_trace()
        if trace:
            trace.record_fallback(mode)
        return fallback_travel_time(origin, dest, mode)

    # ------------------------------------------------------------------
    # Single-destination path
    # ------------------------------------------------------------------

    def calculate_single(self, candidate: Candidate) -> Optional[TravelTimes]:
        """Bundle for one newly added candidate, or None if no work address is set."""
        origin = self.user_context.work_coords
        if origin is None:
            logger.warning("[travel] No work address set; skipping travel time for %s", candidate.id)
            return None

        cached = self.cache.get(origin, candidate.coords)
        if cached is not None:
            return cached

        bundle = TravelTimes()
        for mode in TRAVEL_MODES:
            elem = None
            if self.is_service_available():
                try:
                    elem = self.client.query(origin, candidate.coords, mode)
                except DistanceMatrixError:
                    logger.warning(
                        "[travel] %s lookup failed for %s; using estimate",
                        mode, candidate.id, exc_info=True,
                    )
            value = self._resolve(origin, candidate.coords, mode, elem)
            if value is not None:
                bundle.set_mode(mode, value)

        if bundle.is_computed():
            self.cache.set(origin, candidate.coords, bundle)
        return bundle
