"""
Google Distance Matrix client for work-to-candidate travel times.

One request covers one origin, up to MAX_DESTINATIONS destinations and
one travel mode.  The client reports per-element statuses as returned and
raises DistanceMatrixError when the request as a whole fails (network
error, timeout, HTTP error, non-JSON body, non-OK top-level status); the
travel-time calculator turns both kinds of failure into straight-line
estimates.
"""

import logging
import math
import os
import time
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

import requests

from run_trace import get_trace

logger = logging.getLogger(__name__)


class DistanceMatrixError(Exception):
    """Raised when a Distance Matrix request fails as a whole."""

    pass


@dataclass
class MatrixElement:
    """One destination's result from a Distance Matrix row."""
    status: str
    distance_meters: float = 0
    duration_seconds: float = 0

    @property
    def ok(self) -> bool:
        return self.status == "OK"


def _fmt(coords: Tuple[float, float]) -> str:
    return f"{coords[0]},{coords[1]}"


def _value(field) -> Optional[float]:
    """Numeric ``value`` of a distance/duration object, or None if absent or malformed."""
    if not isinstance(field, dict):
        return None
    value = field.get("value")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    if math.isnan(value) or math.isinf(value) or value < 0:
        return None
    return value


class DistanceMatrixClient:
    """Client for the Distance Matrix API"""

    # Per-call timeout in seconds.  A request that hasn't answered by then
    # is a failure and the caller falls back to the estimator.
    DEFAULT_TIMEOUT = 10

    # Destinations per request
    MAX_DESTINATIONS = 10

    def __init__(self, api_key: Optional[str], base_url: Optional[str] = None, timeout: Optional[float] = None):
        self.api_key = api_key
        self.base_url = base_url or os.environ.get(
            "DISTANCE_MATRIX_BASE_URL",
            "https://maps.googleapis.com/maps/api/distancematrix/json",
        )
        self.timeout = timeout or self.DEFAULT_TIMEOUT
        self.session = requests.Session()
        self.session.trust_env = False

    @property
    def is_configured(self) -> bool:
        return bool(self.api_key)

    def _traced_get(self, endpoint_name: str, params: dict) -> dict:
        """GET with trace recording.  Raises DistanceMatrixError on any transport failure."""
        t0 = time.time()
        trace = get_trace()
        try:
            response = self.session.get(self.base_url, params=params, timeout=self.timeout)
        except requests.exceptions.Timeout as e:
            if trace:
                trace.record_api_call("distance_matrix", endpoint_name,
                                      int((time.time() - t0) * 1000), 0, "timeout")
            raise DistanceMatrixError(f"Distance Matrix request timed out after {self.timeout}s") from e
        except requests.exceptions.RequestException as e:
            if trace:
                trace.record_api_call("distance_matrix", endpoint_name,
                                      int((time.time() - t0) * 1000), 0, "exception")
            raise DistanceMatrixError(f"Distance Matrix request failed: {e}") from e

        elapsed_ms = int((time.time() - t0) * 1000)
        try:
            data = response.json()
        except ValueError:
            data = None
        provider_status = data.get("status", "") if isinstance(data, dict) else ""
        if trace:
            trace.record_api_call(
                service="distance_matrix",
                endpoint=endpoint_name,
                elapsed_ms=elapsed_ms,
                status_code=response.status_code,
                provider_status=provider_status,
            )

        if response.status_code >= 400:
            raise DistanceMatrixError(f"Distance Matrix HTTP {response.status_code}")
        if not isinstance(data, dict):
            raise DistanceMatrixError(
                f"Distance Matrix returned non-JSON response (HTTP {response.status_code})"
            )
        return data

    def batch_query(
        self,
        origin: Tuple[float, float],
        destinations: Sequence[Tuple[float, float]],
        mode: str,
    ) -> List[MatrixElement]:
        """
        Distance and duration from *origin* to each destination for one mode.
        Returns one element per destination, in request order.  Elements the
        API didn't return come back with status "MISSING".
        """
        if not destinations:
            return []
        if len(destinations) > self.MAX_DESTINATIONS:
            raise ValueError(
                f"At most {self.MAX_DESTINATIONS} destinations per request, got {len(destinations)}"
            )
        if not self.api_key:
            raise DistanceMatrixError("Distance Matrix API key not configured")

        params = {
            "origins": _fmt(origin),
            "destinations": "|".join(_fmt(d) for d in destinations),
            "mode": mode,
            "key": self.api_key,
        }
        endpoint = f"batch:{mode}" if len(destinations) > 1 else f"single:{mode}"
        data = self._traced_get(endpoint, params)

        if data.get("status") != "OK":
            raise DistanceMatrixError(f"Distance Matrix API failed: {data.get('status')}")

        try:
            elements = data["rows"][0]["elements"]
        except (KeyError, IndexError, TypeError):
            raise DistanceMatrixError("Distance Matrix response has no rows/elements")
        if not isinstance(elements, list):
            raise DistanceMatrixError("Distance Matrix elements is not a list")
        if len(elements) != len(destinations):
            logger.warning(
                "Distance Matrix %s returned %d elements for %d destinations",
                endpoint, len(elements), len(destinations),
            )

        results: List[MatrixElement] = []
        for i in range(len(destinations)):
            if i >= len(elements) or not isinstance(elements[i], dict):
                results.append(MatrixElement(status="MISSING"))
                continue
            elem = elements[i]
            status = elem.get("status", "MISSING")
            distance = _value(elem.get("distance"))
            duration = _value(elem.get("duration"))
            if status == "OK" and (distance is None or duration is None):
                status = "INCOMPLETE"
            results.append(MatrixElement(
                status=status,
                distance_meters=distance or 0,
                duration_seconds=duration or 0,
            ))
        return results

    def query(self, origin: Tuple[float, float], dest: Tuple[float, float], mode: str) -> MatrixElement:
        """Single origin-destination lookup for one mode."""
        return self.batch_query(origin, [dest], mode)[0]
