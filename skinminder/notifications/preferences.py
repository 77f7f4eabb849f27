"""
Tool: Notification Preference Store
Purpose: Durable, total per-category reminder settings

Usage:
    from skinminder.notifications.preferences import PreferenceStore

    store = PreferenceStore(SqliteRecordStore())
    prefs = store.load()
    prefs = store.update(
        NotificationCategory.ROUTINE_REMINDER,
        lambda setting: setting.with_enabled(True),
    )

Design:
    - The whole PreferenceSet lives under one key; every write replaces it
    - update() is the only sanctioned mutation path (read-modify-write under a lock)
    - A failed write keeps the new set in memory and is retried by the next write
"""

from __future__ import annotations

import json
import logging
import threading
from collections.abc import Callable
from datetime import time

from skinminder.notifications.models import (
    DEFAULT_PREFERRED_TIME,
    CategorySetting,
    NotificationCategory,
    PersistError,
    PreferenceSet,
)
from skinminder.notifications.storage import RecordStore

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES_KEY = "notification_preferences"

PreferenceListener = Callable[[PreferenceSet], None]


class PreferenceStore:
    """Owns the persisted PreferenceSet."""

    def __init__(
        self,
        records: RecordStore,
        key: str = DEFAULT_PREFERENCES_KEY,
        default_time: time = DEFAULT_PREFERRED_TIME,
    ):
        self.records = records
        self.key = key
        self.default_time = default_time
        self._lock = threading.RLock()
        self._current: PreferenceSet | None = None
        self._dirty = False
        self._listeners: list[PreferenceListener] = []

    @property
    def dirty(self) -> bool:
        """True when the in-memory set has not reached storage yet."""
        return self._dirty

    def defaults(self) -> PreferenceSet:
        return PreferenceSet.default(preferred_time=self.default_time)

    # ─────────────────────────────────────────────────────────────────────
    # Read / write
    # ─────────────────────────────────────────────────────────────────────

    def load(self) -> PreferenceSet:
        """
        Return the persisted set, or defaults if nothing was saved.

        Never raises. An unreadable medium falls back to the last-known set.
        """
        with self._lock:
            if self._dirty and self._current is not None:
                return self._current

            try:
                raw = self.records.read_record(self.key)
            except PersistError as e:
                logger.warning(f"Preference storage unreadable, using last known set: {e}")
                return self._current or self.defaults()

            if raw is None:
                prefs = self.defaults()
            else:
                prefs = self._decode(raw)

            self._current = prefs
            return prefs

    def save(self, prefs: PreferenceSet) -> None:
        """
        Replace the whole persisted set.

        Raises:
            PersistError: storage unavailable; `prefs` is kept in memory and
                written again on the next mutation.
        """
        with self._lock:
            self._current = prefs
            data = json.dumps(prefs.to_dict(), sort_keys=True).encode("utf-8")
            try:
                self.records.write_record(self.key, data)
            except PersistError:
                self._dirty = True
                raise
            if self._dirty:
                logger.info("Pending preference changes written to storage")
            self._dirty = False

    def update(
        self,
        category: NotificationCategory,
        mutator: Callable[[CategorySetting], CategorySetting],
    ) -> PreferenceSet:
        """
        Apply `mutator` to one category and persist the full set.

        Other categories are carried over untouched.

        Returns:
            The new PreferenceSet (also when the write had to be deferred)
        """
        category = NotificationCategory(category)
        with self._lock:
            current = self.load()
            updated = current.replace(category, mutator(current[category]))
            self._commit(updated)
        logger.info(
            f"Updated {category.value}: enabled={updated[category].enabled} "
            f"frequency={updated[category].frequency.value}"
        )
        self._notify(updated)
        return updated

    def set_preferred_time(self, preferred_time: time) -> PreferenceSet:
        """Change the daily reminder anchor time."""
        with self._lock:
            updated = self.load().with_preferred_time(preferred_time)
            self._commit(updated)
        logger.info(f"Preferred reminder time set to {preferred_time.strftime('%H:%M')}")
        self._notify(updated)
        return updated

    def reset(self) -> PreferenceSet:
        """Restore first-run defaults for every category."""
        with self._lock:
            updated = self.defaults()
            self._commit(updated)
        self._notify(updated)
        return updated

    def _commit(self, prefs: PreferenceSet) -> None:
        try:
            self.save(prefs)
        except PersistError as e:
            logger.warning(f"Could not persist preferences, keeping them in memory: {e}")

    def _decode(self, raw: bytes) -> PreferenceSet:
        try:
            data = json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            logger.warning(f"Stored preferences are unreadable, using defaults: {e}")
            return self.defaults()
        if not isinstance(data, dict):
            logger.warning("Stored preferences are not a record, using defaults")
            return self.defaults()
        return PreferenceSet.from_dict(data, preferred_time=self.default_time)

    # ─────────────────────────────────────────────────────────────────────
    # Change channel
    # ─────────────────────────────────────────────────────────────────────

    def subscribe(self, listener: PreferenceListener) -> Callable[[], None]:
        """
        Register a callback for preference changes.

        Returns:
            A function that removes the listener
        """
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def _notify(self, prefs: PreferenceSet) -> None:
        for listener in list(self._listeners):
            try:
                listener(prefs)
            except Exception:
                logger.exception("Preference listener failed")
