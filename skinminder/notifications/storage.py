"""
Tool: Durable Record Storage
Purpose: Whole-record key/value storage for preferences and permission answers

Usage:
    from skinminder.notifications.storage import SqliteRecordStore

    store = SqliteRecordStore()
    store.write_record("notification_preferences", b"{...}")
    data = store.read_record("notification_preferences")

Each write replaces the full value for a key in a single transaction, so a
reader sees either the old record or the new one, never a mix.
"""

from __future__ import annotations

import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from skinminder import DB_PATH, get_connection
from skinminder.notifications.models import PersistError


class RecordStore(ABC):
    """Key/value medium that only supports whole-record reads and writes."""

    @abstractmethod
    def read_record(self, key: str) -> bytes | None:
        """Return the stored bytes, or None if nothing was written yet."""

    @abstractmethod
    def write_record(self, key: str, data: bytes) -> None:
        """Atomically replace the record. Raises PersistError on failure."""


class SqliteRecordStore(RecordStore):
    """Records kept in the `records` table of the engine database."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = Path(db_path or DB_PATH)

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise PersistError(f"Cannot open record store at {self.db_path}: {e}") from e

    def read_record(self, key: str) -> bytes | None:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT value FROM records WHERE key = ?", (key,))
            row = cursor.fetchone()
        except sqlite3.Error as e:
            raise PersistError(f"Failed to read record {key}: {e}") from e
        finally:
            conn.close()

        if not row:
            return None
        return bytes(row["value"])

    def write_record(self, key: str, data: bytes) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT INTO records (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, sqlite3.Binary(data), datetime.now().isoformat()),
                )
        except sqlite3.Error as e:
            raise PersistError(f"Failed to write record {key}: {e}") from e
        finally:
            conn.close()


class MemoryRecordStore(RecordStore):
    """
    Process-local record store.

    Set `fail_writes` to simulate an unavailable medium (disk full, sandbox
    revoked); writes then raise PersistError and leave the old record intact.
    """

    def __init__(self, records: dict[str, bytes] | None = None):
        self.records: dict[str, bytes] = dict(records or {})
        self.fail_writes = False
        self.write_count = 0

    def read_record(self, key: str) -> bytes | None:
        return self.records.get(key)

    def write_record(self, key: str, data: bytes) -> None:
        if self.fail_writes:
            raise PersistError(f"Storage unavailable for record {key}")
        self.records[key] = bytes(data)
        self.write_count += 1
