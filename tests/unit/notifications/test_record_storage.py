"""Tests for skinminder/notifications/storage.py"""

import pytest

from skinminder.notifications.models import PersistError
from skinminder.notifications.storage import MemoryRecordStore, SqliteRecordStore


class TestSqliteRecordStore:
    def test_missing_record_returns_none(self, temp_db):
        store = SqliteRecordStore(temp_db)
        assert store.read_record("nothing") is None

    def test_write_then_read(self, temp_db):
        store = SqliteRecordStore(temp_db)
        store.write_record("prefs", b'{"a": 1}')
        assert store.read_record("prefs") == b'{"a": 1}'

    def test_write_replaces_whole_record(self, temp_db):
        store = SqliteRecordStore(temp_db)
        store.write_record("prefs", b"first version, longer")
        store.write_record("prefs", b"second")
        assert store.read_record("prefs") == b"second"

    def test_records_survive_new_instance(self, temp_db):
        SqliteRecordStore(temp_db).write_record("prefs", b"kept")
        assert SqliteRecordStore(temp_db).read_record("prefs") == b"kept"

    def test_unopenable_path_raises_persist_error(self, tmp_path):
        blocker = tmp_path / "not_a_dir"
        blocker.write_text("file in the way")
        store = SqliteRecordStore(blocker / "sub" / "db.sqlite")
        with pytest.raises(PersistError):
            store.write_record("prefs", b"x")


class TestMemoryRecordStore:
    def test_fail_writes_keeps_old_record(self):
        store = MemoryRecordStore({"prefs": b"old"})
        store.fail_writes = True
        with pytest.raises(PersistError):
            store.write_record("prefs", b"new")
        assert store.read_record("prefs") == b"old"

    def test_counts_writes(self):
        store = MemoryRecordStore()
        store.write_record("a", b"1")
        store.write_record("a", b"2")
        assert store.write_count == 2
