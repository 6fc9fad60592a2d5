"""
Persistent cache of computed travel-time bundles.

Entries are keyed by (work origin, destination) coordinates rounded to six
decimal places and hold the bundle, its creation time and the origin it
was computed from.

Lifecycle of an entry:
  - created on the first successful computation for its key
  - read on every lookup; past the 24h TTL a read returns None but leaves
    the entry in place (expired entries are removed by cleanup passes)
  - invalidated wholesale when the work origin changes
  - evicted oldest-first once the cache holds more than MAX_ENTRIES

Every mutation writes the whole cache through to the key-value store as
one JSON document.  Store failures never propagate: a corrupt or
unreadable document loads as an empty cache, and a failed write is logged
while the in-memory cache stays authoritative.
"""

import copy
import json
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Tuple

from candidates import TravelTimes
from models import InMemoryStore

logger = logging.getLogger(__name__)

CACHE_STORAGE_KEY = "travel_time_cache"
CACHE_FORMAT_VERSION = "1.0"

CACHE_TTL_SECONDS = 24 * 60 * 60
MAX_ENTRIES = 100
# Share of MAX_ENTRIES kept by an eviction sweep (newest first)
LRU_KEEP_FRACTION = 0.8
CLEANUP_INTERVAL_SECONDS = 60 * 60

# Origins closer than this (degrees) are the same work address
ORIGIN_TOLERANCE = 0.000001


def cache_key(origin: Tuple[float, float], dest: Tuple[float, float]) -> str:
    """Stable key for an (origin, destination) pair, six decimal places."""
    return f"{origin[0]:.6f},{origin[1]:.6f}_{dest[0]:.6f},{dest[1]:.6f}"


def coordinates_match(a: Tuple[float, float], b: Tuple[float, float]) -> bool:
    return abs(a[0] - b[0]) < ORIGIN_TOLERANCE and abs(a[1] - b[1]) < ORIGIN_TOLERANCE


@dataclass
class CacheEntry:
    data: TravelTimes
    timestamp: int  # epoch milliseconds
    work_coords: Tuple[float, float]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "data": self.data.to_dict(),
            "timestamp": self.timestamp,
            "workCoords": {"lat": self.work_coords[0], "lng": self.work_coords[1]},
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CacheEntry":
        coords = raw["workCoords"]
        return cls(
            data=TravelTimes.from_dict(raw["data"]),
            timestamp=int(raw["timestamp"]),
            work_coords=(float(coords["lat"]), float(coords["lng"])),
        )


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    expired_reads: int = 0
    expired_removed: int = 0
    evicted: int = 0
    last_cleanup: int = 0  # epoch milliseconds

    @property
    def lookups(self) -> int:
        return self.hits + self.misses + self.expired_reads

    @property
    def hit_rate(self) -> float:
        return self.hits / self.lookups if self.lookups else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "expiredReads": self.expired_reads,
            "expiredEntries": self.expired_removed,
            "evicted": self.evicted,
            "totalLookups": self.lookups,
            "hitRate": self.hit_rate,
            "lastCleanup": self.last_cleanup,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "CacheStats":
        return cls(
            hits=int(raw.get("hits", 0)),
            misses=int(raw.get("misses", 0)),
            expired_reads=int(raw.get("expiredReads", 0)),
            expired_removed=int(raw.get("expiredEntries", 0)),
            evicted=int(raw.get("evicted", 0)),
            last_cleanup=int(raw.get("lastCleanup", 0)),
        )


class TravelTimeCache:
    """Write-through travel-time cache with TTL expiry and capacity eviction."""

    def __init__(
        self,
        store=None,
        clock: Callable[[], float] = time.time,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_entries: int = MAX_ENTRIES,
        storage_key: str = CACHE_STORAGE_KEY,
    ):
        self.store = store if store is not None else InMemoryStore()
        self.clock = clock
        self.ttl_ms = int(ttl_seconds * 1000)
        self.max_entries = max_entries
        self.storage_key = storage_key

        self._lock = threading.RLock()
        self._entries: Dict[str, CacheEntry] = {}
        self._stats = CacheStats(last_cleanup=self._now_ms())
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

        self._load()

    def _now_ms(self) -> int:
        return int(self.clock() * 1000)

    def _is_expired(self, entry: CacheEntry, now_ms: int) -> bool:
        return now_ms - entry.timestamp > self.ttl_ms

    # ------------------------------------------------------------------
    # Lookups and writes
    # ------------------------------------------------------------------

    def get(self, origin: Tuple[float, float], dest: Tuple[float, float]) -> Optional[TravelTimes]:
        """Cached bundle for the pair, or None if absent or past the TTL."""
        with self._lock:
            entry = self._entries.get(cache_key(origin, dest))
            if entry is None:
                self._stats.misses += 1
                return None
            if self._is_expired(entry, self._now_ms()):
                self._stats.expired_reads += 1
                return None
            self._stats.hits += 1
            return copy.deepcopy(entry.data)

    def set(self, origin: Tuple[float, float], dest: Tuple[float, float], bundle: TravelTimes) -> None:
        with self._lock:
            key = cache_key(origin, dest)
            # Re-insert so dict order tracks write recency for equal timestamps
            self._entries.pop(key, None)
            self._entries[key] = CacheEntry(
                data=copy.deepcopy(bundle),
                timestamp=self._now_ms(),
                work_coords=(origin[0], origin[1]),
            )
            if len(self._entries) > self.max_entries:
                self._remove_expired()
                if len(self._entries) > self.max_entries:
                    self._evict_oldest()
            self._save()

    def invalidate_by_origin(self, origin: Tuple[float, float]) -> int:
        """Drop every entry computed from *origin*.  Returns the count removed."""
        with self._lock:
            stale = [k for k, e in self._entries.items() if coordinates_match(e.work_coords, origin)]
            for key in stale:
                del self._entries[key]
            if stale:
                logger.info(
                    "[cache] Invalidated %d travel-time entries after work address change",
                    len(stale),
                )
                self._save()
            return len(stale)

    def cleanup(self) -> int:
        """Remove every entry past the TTL.  Returns the count removed."""
        with self._lock:
            removed = self._remove_expired()
            evicted = 0
            if len(self._entries) > self.max_entries:
                evicted = self._evict_oldest()
            if removed or evicted:
                self._save()
            return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats = CacheStats(last_cleanup=self._now_ms())
            self._save()

    # ------------------------------------------------------------------
    # Introspection
    # ------------------------------------------------------------------

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, pair) -> bool:
        return cache_key(pair[0], pair[1]) in self._entries

    def get_stats(self) -> Dict[str, Any]:
        with self._lock:
            stats = self._stats.to_dict()
            stats["entries"] = len(self._entries)
            return stats

    def has_offline_data(self) -> bool:
        return bool(self._entries)

    def entries(self) -> Dict[str, CacheEntry]:
        with self._lock:
            return copy.deepcopy(self._entries)

    # ------------------------------------------------------------------
    # Sweeps
    # ------------------------------------------------------------------

    def _remove_expired(self) -> int:
        now = self._now_ms()
        expired = [k for k, e in self._entries.items() if self._is_expired(e, now)]
        for key in expired:
            del self._entries[key]
        self._stats.last_cleanup = now
        if expired:
            self._stats.expired_removed += len(expired)
            logger.info("[cache] Cleaned up %d expired travel-time entries", len(expired))
        return len(expired)

    def _evict_oldest(self) -> int:
        keep = int(self.max_entries * LRU_KEEP_FRACTION)
        # sorted() is stable, so equal timestamps keep write order
        by_age = sorted(self._entries.items(), key=lambda kv: kv[1].timestamp)
        to_remove = by_age[:max(0, len(by_age) - keep)]
        for key, _ in to_remove:
            del self._entries[key]
        if to_remove:
            self._stats.evicted += len(to_remove)
            logger.info("[cache] Evicted %d oldest travel-time entries", len(to_remove))
        return len(to_remove)

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def to_document(self) -> Dict[str, Any]:
        return {
            "entries": {k: e.to_dict() for k, e in self._entries.items()},
            "stats": self._stats.to_dict(),
            "version": CACHE_FORMAT_VERSION,
            "lastUpdated": self._now_ms(),
        }

    def _save(self) -> None:
        try:
            self.store.set_item(self.storage_key, json.dumps(self.to_document()))
        except Exception:
            logger.warning(
                "[cache] Failed to persist travel-time cache; continuing in memory",
                exc_info=True,
            )

    def _load(self) -> None:
        try:
            raw = self.store.get_item(self.storage_key)
        except Exception:
            logger.warning("[cache] Failed to read travel-time cache from store", exc_info=True)
            return
        if not raw:
            return

        try:
            doc = json.loads(raw)
            entries = doc.get("entries")
            if not isinstance(entries, dict):
                raise ValueError("cache document has no entries object")
        except (json.JSONDecodeError, TypeError, ValueError, AttributeError):
            logger.warning("[cache] Corrupted travel-time cache in store, starting empty", exc_info=True)
            return

        loaded: Dict[str, CacheEntry] = {}
        for key, item in entries.items():
            try:
                loaded[key] = CacheEntry.from_dict(item)
            except (KeyError, TypeError, ValueError):
                logger.warning("[cache] Skipping malformed cache entry %s", key)
        # Oldest first so eviction ties and iteration follow write order
        self._entries = dict(sorted(loaded.items(), key=lambda kv: kv[1].timestamp))

        stats = doc.get("stats")
        if isinstance(stats, dict):
            try:
                self._stats = CacheStats.from_dict(stats)
            except (TypeError, ValueError):
                logger.warning("[cache] Ignoring malformed cache stats")

        self.cleanup()

    # ------------------------------------------------------------------
    # Background cleanup thread
    # ------------------------------------------------------------------

    def _cleanup_loop(self, interval: float) -> None:
        logger.info("[cache] Cleanup thread started (interval=%ds)", interval)
        while not self._stop_event.wait(timeout=interval):
            try:
                self.cleanup()
            except Exception:
                logger.exception("[cache] Unexpected error in periodic cleanup")
        logger.info("[cache] Cleanup thread stopped")

    def start_cleanup_timer(self, interval: float = CLEANUP_INTERVAL_SECONDS) -> None:
        """Start the periodic expiry sweep (idempotent)."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._cleanup_loop, args=(interval,), daemon=True)
        self._thread.start()

    def stop_cleanup_timer(self) -> None:
        self._stop_event.set()
