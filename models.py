"""
SQLite persistence for the local key-value store.

The travel-time cache persists itself as one JSON document under a single
key; anything else that needs get/set/remove semantics can share the
table.  No ORM, just raw sqlite3.

Store errors (locked database, full disk) propagate from the store
methods.  Callers decide how to degrade; the travel-time cache logs them
and carries on in memory.
"""

import sqlite3
import os
import logging
from datetime import datetime, timezone
from typing import Dict, Optional

logger = logging.getLogger(__name__)

DB_PATH = os.environ.get("HOUSEHUNT_DB_PATH", "househunt.db")


class StorageQuotaError(Exception):
    """Raised by a store that refuses a write because it is full."""

    pass


def _get_db(db_path: Optional[str] = None):
    """Get a sqlite3 connection with WAL mode for concurrent reads."""
    conn = sqlite3.connect(db_path or DB_PATH, timeout=10)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA journal_mode=WAL")
    return conn


def init_db(db_path: Optional[str] = None):
    """Create tables if they don't exist. Safe to call on every startup."""
    conn = _get_db(db_path)
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS kv_store (
            key         TEXT PRIMARY KEY,
            value       TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()


# ---------------------------------------------------------------------------
# Key-value access
# ---------------------------------------------------------------------------

def get_item(key: str, db_path: Optional[str] = None) -> Optional[str]:
    """Return the stored string for *key*, or None if absent."""
    conn = _get_db(db_path)
    try:
        row = conn.execute(
            "SELECT value FROM kv_store WHERE key = ?", (key,)
        ).fetchone()
    finally:
        conn.close()
    return row["value"] if row else None


def set_item(key: str, value: str, db_path: Optional[str] = None) -> None:
    conn = _get_db(db_path)
    try:
        conn.execute(
            """INSERT OR REPLACE INTO kv_store (key, value, updated_at)
               VALUES (?, ?, ?)""",
            (key, value, datetime.now(timezone.utc).isoformat()),
        )
        conn.commit()
    finally:
        conn.close()


def remove_item(key: str, db_path: Optional[str] = None) -> None:
    conn = _get_db(db_path)
    try:
        conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
        conn.commit()
    finally:
        conn.close()


class SQLiteKeyValueStore:
    """Persistent store backed by the kv_store table.

    The table is created on construction, so a fresh database file works
    without a separate init_db() call.
    """

    def __init__(self, db_path: Optional[str] = None):
        self.db_path = db_path or DB_PATH
        init_db(self.db_path)

    def get_item(self, key: str) -> Optional[str]:
        return get_item(key, self.db_path)

    def set_item(self, key: str, value: str) -> None:
        set_item(key, value, self.db_path)

    def remove_item(self, key: str) -> None:
        remove_item(key, self.db_path)


class InMemoryStore:
    """Dict-backed store with the same interface, for tests and diskless sessions.

    ``max_bytes`` caps the total stored size; a write that would exceed
    it raises StorageQuotaError, as a full browser store would.
    """

    def __init__(self, max_bytes: Optional[int] = None):
        self.max_bytes = max_bytes
        self.data: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[str]:
        return self.data.get(key)

    def set_item(self, key: str, value: str) -> None:
        if self.max_bytes is not None:
            others = sum(len(v) for k, v in self.data.items() if k != key)
            if others + len(value) > self.max_bytes:
                raise StorageQuotaError(
                    f"Store quota exceeded writing {key!r} ({len(value)} chars)"
                )
        self.data[key] = value

    def remove_item(self, key: str) -> None:
        self.data.pop(key, None)
