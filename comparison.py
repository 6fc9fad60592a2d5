#!/usr/bin/env python3
"""
Housing comparison: travel times plus weighted scoring over a candidate list.

ComparisonSession owns one engine, cache, calculator and notification
channel, so independent sessions (and tests) never share state.

Usage:
    python comparison.py candidates.json --work-lat 40.7484 --work-lng -73.9857
    python comparison.py candidates.json --work-lat 40.7484 --work-lng -73.9857 --json
    python comparison.py candidates.json --work-lat 40.7484 --work-lng -73.9857 --no-network

Requires GOOGLE_MAPS_API_KEY for real travel times; without it (or with
--no-network) every travel time is a straight-line estimate.
"""

import argparse
import json
import logging
import os
import sys
import uuid
from typing import List, Optional, Sequence

from dotenv import load_dotenv

from analytics_engine import AnalyticsEngine, CombinedAnalyticsResult, apply_scores
from candidates import Candidate, candidate_from_dict, duplicate_ids
from distance_matrix import DistanceMatrixClient
from models import InMemoryStore, SQLiteKeyValueStore
from notifications import NotificationChannel
from run_trace import TraceContext, clear_trace, set_trace
from scoring_config import AnalyticsConfig, band_label
from travel_time_cache import TravelTimeCache
from travel_time_integration import TravelTimeIntegration
from travel_time_service import TravelTimeCalculator
from user_context import UserContext

logger = logging.getLogger(__name__)


class ComparisonSession:
    """Everything one comparison needs, wired together."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        store=None,
        config: Optional[AnalyticsConfig] = None,
        client: Optional[DistanceMatrixClient] = None,
        channel: Optional[NotificationChannel] = None,
        user_context: Optional[UserContext] = None,
        sleep=None,
        background_cleanup: bool = False,
    ):
        self.channel = channel or NotificationChannel()
        self.user_context = user_context or UserContext()
        self.cache = TravelTimeCache(store=store if store is not None else InMemoryStore())
        if client is None and api_key:
            client = DistanceMatrixClient(api_key)
        calc_kwargs = {"sleep": sleep} if sleep is not None else {}
        self.calculator = TravelTimeCalculator(client, self.cache, self.user_context, **calc_kwargs)
        self.travel_times = TravelTimeIntegration(self.calculator, self.channel)
        self.engine = AnalyticsEngine(config=config, channel=self.channel)
        if background_cleanup:
            self.cache.start_cleanup_timer()

    def set_work_address(self, lat: float, lng: float, candidates: Sequence[Candidate] = ()) -> int:
        return self.travel_times.on_work_address_changed(candidates, lat, lng)

    def run_comparison(self, candidates: Sequence[Candidate]) -> CombinedAnalyticsResult:
        """Fill in travel times, score every candidate and attach the scores."""
        trace = TraceContext(trace_id=uuid.uuid4().hex[:10], candidates=len(candidates))
        set_trace(trace)
        try:
            with trace.stage("travel_times"):
                self.travel_times.initialize(candidates)
            with trace.stage("analytics"):
                result = self.engine.calculate_analytics(candidates)
                apply_scores(candidates, result)
            return result
        finally:
            trace.log_summary()
            clear_trace()

    def close(self) -> None:
        self.cache.stop_cleanup_timer()


# =============================================================================
# CLI
# =============================================================================

def load_candidates(path: str) -> List[Candidate]:
    with open(path) as f:
        raw = json.load(f)
    if isinstance(raw, dict):
        raw = raw.get("candidates", [])
    if not isinstance(raw, list):
        raise ValueError(f"{path}: expected a list of candidates")
    candidates = [candidate_from_dict(item) for item in raw]
    dupes = duplicate_ids(candidates)
    if dupes:
        raise ValueError(f"{path}: duplicate candidate ids: {', '.join(dupes)}")
    return candidates


def format_result(candidates: Sequence[Candidate], result: CombinedAnalyticsResult) -> str:
    """Format ranked results as a readable report"""
    by_id = {c.id: c for c in candidates}
    lines = []

    lines.append("=" * 70)
    lines.append(f"HOUSING COMPARISON: {len(candidates)} candidates")
    lines.append("=" * 70)

    for ranked in result.top_candidates:
        c = by_id[ranked.id]
        lines.append(f"\n#{ranked.rank} {c.name}: {ranked.score:.1f}/100 ({band_label(ranked.score)})")
        if c.rent:
            lines.append(f"  RENT: ${c.rent / 100:,.0f}/month")
        if c.travel_times and c.travel_times.is_computed():
            t = c.travel_times
            lines.append(
                f"  COMMUTE: walk {t.walking.duration} min, "
                f"drive {t.driving.duration} min, transit {t.transit.duration} min"
            )
        for plugin_id, scores in result.plugin_scores.items():
            lines.append(f"  - {plugin_id}: {scores.get(c.id, 0):.0f}")

    if result.insights:
        lines.append("\nINSIGHTS:")
        for insight in result.insights:
            lines.append(f"  - {insight}")
    if result.recommendations:
        lines.append("\nRECOMMENDATIONS:")
        for rec in result.recommendations:
            lines.append(f"  - {rec}")

    lines.append(f"\nModel version {result.metadata.model_version}, "
                 f"{result.metadata.calculation_time_ms:.0f}ms")
    return "\n".join(lines)


def main(argv: Optional[List[str]] = None) -> int:
    load_dotenv()
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
    )

    parser = argparse.ArgumentParser(
        description="Compare housing candidates by commute, cost, amenities, and size"
    )
    parser.add_argument(
        "candidates",
        help="JSON file with a list of candidates (or {\"candidates\": [...]})"
    )
    parser.add_argument(
        "--work-lat",
        type=float,
        required=True,
        help="Work address latitude"
    )
    parser.add_argument(
        "--work-lng",
        type=float,
        required=True,
        help="Work address longitude"
    )
    parser.add_argument(
        "--api-key",
        default=os.environ.get("GOOGLE_MAPS_API_KEY"),
        help="Google Maps API key (or set GOOGLE_MAPS_API_KEY env var)"
    )
    parser.add_argument(
        "--db",
        default=None,
        help="SQLite file for the travel-time cache (default: HOUSEHUNT_DB_PATH or househunt.db)"
    )
    parser.add_argument(
        "--no-network",
        action="store_true",
        help="Skip the Distance Matrix API and use straight-line estimates"
    )
    parser.add_argument(
        "--json",
        action="store_true",
        help="Output as JSON instead of formatted text"
    )

    args = parser.parse_args(argv)

    try:
        candidates = load_candidates(args.candidates)
    except (OSError, ValueError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    api_key = None if args.no_network else args.api_key
    if not api_key:
        logger.info("No Distance Matrix API key in use; travel times will be estimates")

    session = ComparisonSession(api_key=api_key, store=SQLiteKeyValueStore(args.db))
    try:
        session.set_work_address(args.work_lat, args.work_lng)
        result = session.run_comparison(candidates)
    finally:
        session.close()

    if args.json:
        output = result.to_dict()
        output["candidates"] = [c.to_dict() for c in candidates]
        print(json.dumps(output, indent=2))
    else:
        print(format_result(candidates, result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
