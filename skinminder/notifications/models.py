"""
Tool: Reminder Engine Models
Purpose: Data structures and errors shared by the notification engine

Usage:
    from skinminder.notifications.models import (
        NotificationCategory,
        Frequency,
        AuthorizationState,
        CategorySetting,
        PreferenceSet,
        ScheduledDelivery,
        ReconcileReport,
    )
"""

from __future__ import annotations

from collections.abc import Iterator, Mapping
from dataclasses import dataclass, field, replace
from datetime import datetime, time
from enum import StrEnum
from typing import Any


class NotificationCategory(StrEnum):
    """The fixed set of reminder purposes. Not user-extensible."""

    DAILY_PHOTO_REMINDER = "daily_photo_reminder"
    ROUTINE_REMINDER = "routine_reminder"
    PROGRESS_REMINDER = "progress_reminder"


class Frequency(StrEnum):
    """Delivery cadence for a category."""

    DAILY = "daily"
    WEEKLY = "weekly"
    MONTHLY = "monthly"
    NEVER = "never"


class AuthorizationState(StrEnum):
    """Whether the process may deliver local notifications."""

    NOT_DETERMINED = "not_determined"
    AUTHORIZED = "authorized"
    DENIED = "denied"


class ReconcileOutcome(StrEnum):
    """What reconcile did for a single category."""

    SCHEDULED = "scheduled"      # New delivery handed off
    UNCHANGED = "unchanged"      # Wanted delivery already pending
    CANCELLED = "cancelled"      # Category turned off, pending delivery removed
    DISABLED = "disabled"        # Category off, nothing was pending
    BLOCKED = "blocked"          # Not authorized, intent kept in preferences
    FAILED = "failed"            # Delivery authority refused the hand-off


# =============================================================================
# Errors
# =============================================================================


class PersistError(Exception):
    """The durable storage medium is unavailable."""


class DispatchError(Exception):
    """A notification could not be handed to the delivery authority."""


class NotAuthorizedError(DispatchError):
    """Delivery attempted while the user has not granted permission."""

    def __init__(self, state: AuthorizationState):
        super().__init__(f"Notifications are not authorized (state: {state.value})")
        self.state = state


class DeliveryFailedError(DispatchError):
    """The delivery authority failed; safe to retry once."""


# =============================================================================
# Preferences
# =============================================================================

DEFAULT_PREFERRED_TIME = time(9, 0)


@dataclass(frozen=True)
class CategorySetting:
    """Enabled flag and cadence for one category."""

    enabled: bool = False
    frequency: Frequency = Frequency.DAILY

    def with_enabled(self, enabled: bool) -> CategorySetting:
        return replace(self, enabled=enabled)

    def with_frequency(self, frequency: Frequency) -> CategorySetting:
        return replace(self, frequency=Frequency(frequency))

    @property
    def active(self) -> bool:
        """True when this category should have an upcoming delivery."""
        return self.enabled and self.frequency != Frequency.NEVER

    def to_dict(self) -> dict[str, Any]:
        return {"enabled": self.enabled, "frequency": self.frequency.value}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> CategorySetting:
        enabled = data["enabled"]
        if not isinstance(enabled, bool):
            raise ValueError(f"enabled must be a bool, got {enabled!r}")
        return cls(enabled=enabled, frequency=Frequency(data["frequency"]))


DEFAULT_SETTINGS: dict[NotificationCategory, CategorySetting] = {
    NotificationCategory.DAILY_PHOTO_REMINDER: CategorySetting(enabled=True, frequency=Frequency.DAILY),
    NotificationCategory.ROUTINE_REMINDER: CategorySetting(enabled=False, frequency=Frequency.DAILY),
    NotificationCategory.PROGRESS_REMINDER: CategorySetting(enabled=False, frequency=Frequency.WEEKLY),
}


@dataclass(frozen=True)
class PreferenceSet:
    """
    Total mapping from category to setting, plus the preferred reminder time.

    Every category is always present. A partial mapping passed in is filled
    from DEFAULT_SETTINGS, so absence is never observable.
    """

    settings: Mapping[NotificationCategory, CategorySetting] = field(default_factory=dict)
    preferred_time: time = DEFAULT_PREFERRED_TIME

    def __post_init__(self) -> None:
        total = {
            category: self.settings.get(category, DEFAULT_SETTINGS[category])
            for category in NotificationCategory
        }
        object.__setattr__(self, "settings", total)

    @classmethod
    def default(cls, preferred_time: time = DEFAULT_PREFERRED_TIME) -> PreferenceSet:
        return cls(settings=dict(DEFAULT_SETTINGS), preferred_time=preferred_time)

    def __getitem__(self, category: NotificationCategory) -> CategorySetting:
        return self.settings[NotificationCategory(category)]

    def __iter__(self) -> Iterator[NotificationCategory]:
        return iter(NotificationCategory)

    def items(self) -> Iterator[tuple[NotificationCategory, CategorySetting]]:
        for category in NotificationCategory:
            yield category, self.settings[category]

    def replace(self, category: NotificationCategory, setting: CategorySetting) -> PreferenceSet:
        """Return a new set with one category's setting swapped."""
        updated = dict(self.settings)
        updated[NotificationCategory(category)] = setting
        return PreferenceSet(settings=updated, preferred_time=self.preferred_time)

    def with_preferred_time(self, preferred_time: time) -> PreferenceSet:
        return PreferenceSet(settings=dict(self.settings), preferred_time=preferred_time)

    def to_dict(self) -> dict[str, Any]:
        return {
            "categories": {
                category.value: setting.to_dict() for category, setting in self.items()
            },
            "preferred_time": self.preferred_time.strftime("%H:%M"),
        }

    @classmethod
    def from_dict(
        cls,
        data: Mapping[str, Any],
        preferred_time: time = DEFAULT_PREFERRED_TIME,
    ) -> PreferenceSet:
        """
        Build a set from stored data.

        Unknown categories are ignored and malformed entries fall back to the
        category default, so the result is always total.

        Args:
            data: Dict as produced by to_dict()
            preferred_time: Used when the stored time is missing or malformed
        """
        settings: dict[NotificationCategory, CategorySetting] = {}
        raw_categories = data.get("categories") or {}
        if isinstance(raw_categories, Mapping):
            for key, raw in raw_categories.items():
                try:
                    category = NotificationCategory(key)
                    settings[category] = CategorySetting.from_dict(raw)
                except (ValueError, KeyError, TypeError):
                    continue

        raw_time = data.get("preferred_time")
        if isinstance(raw_time, str):
            try:
                preferred_time = time.fromisoformat(raw_time)
            except ValueError:
                pass

        return cls(settings=settings, preferred_time=preferred_time)


# =============================================================================
# Deliveries
# =============================================================================


@dataclass(frozen=True)
class ScheduledDelivery:
    """
    One pending reminder handed to the delivery authority.

    The id is derived from category and fire time, so reconciling twice with
    the same inputs yields the same delivery.
    """

    id: str
    category: NotificationCategory
    fire_at: datetime
    title: str
    body: str

    @staticmethod
    def make_id(category: NotificationCategory, fire_at: datetime) -> str:
        return f"{NotificationCategory(category).value}@{fire_at.isoformat()}"

    @classmethod
    def create(
        cls,
        category: NotificationCategory,
        fire_at: datetime,
        title: str,
        body: str,
    ) -> ScheduledDelivery:
        return cls(
            id=cls.make_id(category, fire_at),
            category=NotificationCategory(category),
            fire_at=fire_at,
            title=title,
            body=body,
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "category": self.category.value,
            "fire_at": self.fire_at.isoformat(),
            "title": self.title,
            "body": self.body,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> ScheduledDelivery:
        fire_at = data["fire_at"]
        if isinstance(fire_at, str):
            fire_at = datetime.fromisoformat(fire_at)
        return cls(
            id=data["id"],
            category=NotificationCategory(data["category"]),
            fire_at=fire_at,
            title=data["title"],
            body=data.get("body") or "",
        )


@dataclass
class ReconcileReport:
    """Result of bringing pending deliveries in line with preferences."""

    auth_state: AuthorizationState
    outcomes: dict[NotificationCategory, ReconcileOutcome] = field(default_factory=dict)
    scheduled: list[ScheduledDelivery] = field(default_factory=list)
    cancelled: list[str] = field(default_factory=list)
    active: dict[NotificationCategory, ScheduledDelivery] = field(default_factory=dict)

    @property
    def blocked(self) -> bool:
        return self.auth_state != AuthorizationState.AUTHORIZED

    @property
    def changed(self) -> bool:
        """True when anything was scheduled or cancelled."""
        return bool(self.scheduled or self.cancelled)

    def to_dict(self) -> dict[str, Any]:
        return {
            "auth_state": self.auth_state.value,
            "blocked": self.blocked,
            "outcomes": {category.value: outcome.value for category, outcome in self.outcomes.items()},
            "scheduled": [delivery.to_dict() for delivery in self.scheduled],
            "cancelled": list(self.cancelled),
            "active": {category.value: delivery.to_dict() for category, delivery in self.active.items()},
        }
