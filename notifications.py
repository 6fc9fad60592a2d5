"""
Fire-and-forget change notifications.

The analytics engine and the travel-time subsystem announce what they are
doing ("calculation started", "plugin registered", ...) through a
NotificationChannel owned by the caller.  Nobody is required to listen,
and a listener that raises is logged and skipped so it can never break
the emitter.
"""

import logging
import threading
from typing import Any, Callable, Dict, List

logger = logging.getLogger(__name__)

# Analytics engine
CALCULATION_STARTED = "calculation_started"
CALCULATION_COMPLETED = "calculation_completed"
PLUGIN_REGISTERED = "plugin_registered"
PLUGIN_UNREGISTERED = "plugin_unregistered"
PLUGIN_CALCULATION_STARTED = "plugin_calculation_started"
PLUGIN_CALCULATION_COMPLETED = "plugin_calculation_completed"
PLUGIN_CALCULATION_ERROR = "plugin_calculation_error"
CONFIG_UPDATED = "config_updated"
ENGINE_RESET = "engine_reset"

# Travel times
TRAVEL_TIME_CALCULATION_STARTED = "travel_time_calculation_started"
TRAVEL_TIME_CALCULATION_COMPLETED = "travel_time_calculation_completed"
TRAVEL_TIME_CALCULATION_ERROR = "travel_time_calculation_error"
TRAVEL_TIME_CACHE_INVALIDATED = "travel_time_cache_invalidated"
TRAVEL_TIME_CACHE_CLEARED = "travel_time_cache_cleared"

# Subscribe to every event
ALL_EVENTS = "*"

Listener = Callable[[str, Dict[str, Any]], None]


class NotificationChannel:
    """Named-event fan-out to subscribed listeners."""

    def __init__(self):
        self._lock = threading.Lock()
        self._listeners: Dict[str, List[Listener]] = {}

    def subscribe(self, event: str, listener: Listener) -> None:
        with self._lock:
            self._listeners.setdefault(event, []).append(listener)

    def unsubscribe(self, event: str, listener: Listener) -> bool:
        with self._lock:
            listeners = self._listeners.get(event, [])
            if listener in listeners:
                listeners.remove(listener)
                return True
        return False

    def emit(self, event: str, detail: Dict[str, Any]) -> None:
        with self._lock:
            targets = list(self._listeners.get(event, [])) + list(self._listeners.get(ALL_EVENTS, []))
        for listener in targets:
            try:
                listener(event, detail)
            except Exception:
                logger.warning("Notification listener failed for %s", event, exc_info=True)


class RecordingChannel(NotificationChannel):
    """Channel that also keeps every emitted (event, detail) pair.

    Handy for tests and for debugging a single comparison run.
    """

    def __init__(self):
        super().__init__()
        self.events: List[tuple] = []

    def emit(self, event: str, detail: Dict[str, Any]) -> None:
        self.events.append((event, detail))
        super().emit(event, detail)

    def names(self) -> List[str]:
        return [name for name, _ in self.events]
