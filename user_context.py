"""
The current user's work address, as seen by the travel-time subsystem.

Travel times are computed from the work coordinates to each candidate.
While the work address is unset there is nothing to compute from, and the
calculator returns no results.
"""

import logging
import threading
from typing import Optional, Tuple

logger = logging.getLogger(__name__)


class UserContext:
    """Holds the user id and work coordinates for one comparison session."""

    def __init__(self, user_id: str = "", work_coords: Optional[Tuple[float, float]] = None):
        self.user_id = user_id
        self._lock = threading.Lock()
        self._work_coords: Optional[Tuple[float, float]] = None
        if work_coords is not None:
            self.set_work_coords(*work_coords)

    @property
    def work_coords(self) -> Optional[Tuple[float, float]]:
        with self._lock:
            return self._work_coords

    @property
    def has_work_address(self) -> bool:
        return self.work_coords is not None

    def set_work_coords(self, lat: float, lng: float) -> Optional[Tuple[float, float]]:
        """Set the work address.  Returns the previous coordinates (or None)."""
        if not (-90 <= lat <= 90) or not (-180 <= lng <= 180):
            raise ValueError(f"Invalid work coordinates: {lat}, {lng}")
        with self._lock:
            previous = self._work_coords
            self._work_coords = (float(lat), float(lng))
        logger.info("Work address set to %.6f,%.6f", lat, lng)
        return previous

    def clear(self) -> Optional[Tuple[float, float]]:
        with self._lock:
            previous = self._work_coords
            self._work_coords = None
        return previous
