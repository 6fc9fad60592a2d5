"""Unit tests for models.py: the key-value persistence layer."""

import pytest

from models import (
    InMemoryStore,
    SQLiteKeyValueStore,
    StorageQuotaError,
    _get_db,
    get_item,
    init_db,
    remove_item,
    set_item,
)


# =========================================================================
# SQLite functions (default DB path from HOUSEHUNT_DB_PATH)
# =========================================================================

class TestSQLiteFunctions:
    def setup_method(self):
        init_db()
        conn = _get_db()
        conn.execute("DELETE FROM kv_store")
        conn.commit()
        conn.close()

    def test_missing_key(self):
        assert get_item("nope") is None

    def test_set_get(self):
        set_item("k", '{"a": 1}')
        assert get_item("k") == '{"a": 1}'

    def test_overwrite(self):
        set_item("k", "one")
        set_item("k", "two")
        assert get_item("k") == "two"

    def test_remove(self):
        set_item("k", "v")
        remove_item("k")
        assert get_item("k") is None

    def test_remove_missing_is_noop(self):
        remove_item("never-set")

    def test_init_db_idempotent(self):
        init_db()
        init_db()


class TestSQLiteKeyValueStore:
    def test_fresh_file(self, tmp_path):
        store = SQLiteKeyValueStore(str(tmp_path / "fresh.db"))
        assert store.get_item("k") is None
        store.set_item("k", "v")
        assert store.get_item("k") == "v"
        store.remove_item("k")
        assert store.get_item("k") is None

    def test_separate_files_isolated(self, tmp_path):
        a = SQLiteKeyValueStore(str(tmp_path / "a.db"))
        b = SQLiteKeyValueStore(str(tmp_path / "b.db"))
        a.set_item("k", "from-a")
        assert b.get_item("k") is None


# =========================================================================
# In-memory store
# =========================================================================

class TestInMemoryStore:
    def test_roundtrip(self):
        store = InMemoryStore()
        store.set_item("k", "v")
        assert store.get_item("k") == "v"
        store.remove_item("k")
        assert store.get_item("k") is None

    def test_quota(self):
        store = InMemoryStore(max_bytes=10)
        store.set_item("a", "12345")
        with pytest.raises(StorageQuotaError):
            store.set_item("b", "123456")
        # replacing a key only counts its new size
        store.set_item("a", "1234567890")
        assert store.get_item("a") == "1234567890"
