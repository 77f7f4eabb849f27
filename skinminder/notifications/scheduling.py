"""
Tool: Reminder Scheduling Rules
Purpose: Map a category's cadence to its next fire time and reminder copy

Usage:
    from skinminder.notifications.scheduling import ScheduleRules, next_fire_time

    fire_at = next_fire_time(Frequency.DAILY, now, anchor=time(9, 0))

    rules = ScheduleRules()
    anchor = rules.anchor_for(NotificationCategory.ROUTINE_REMINDER, prefs.preferred_time)

Cadence:
    - Daily: next occurrence of the anchor time
    - Weekly: next occurrence of the anchor on a fixed weekday (Sunday by default)
    - Monthly: next occurrence of the anchor on a fixed day of month (1st by default)
    - Never: no delivery

Anchors:
    The daily photo reminder follows the user's preferred time. Routine
    reminders go out in the evening (18:00) and progress check-ins at 10:00
    unless configured otherwise.

Fire times are always strictly after `now`, so a run at the anchor itself
schedules the next cycle. That keeps reconcile idempotent for a given clock.
The anchor is a wall-clock time: across a DST change it keeps its local hour
and the UTC offset of the target day is used.
"""

from __future__ import annotations

import calendar
import time as systime
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta, timezone, tzinfo

from skinminder.notifications.models import Frequency, NotificationCategory


@dataclass(frozen=True)
class NotificationTemplate:
    """Title and body shown for a category's reminder."""

    title: str
    body: str


DEFAULT_TEMPLATES: dict[NotificationCategory, NotificationTemplate] = {
    NotificationCategory.DAILY_PHOTO_REMINDER: NotificationTemplate(
        title="📸 Time for your daily skin check!",
        body="Take a photo and track your skin's progress. Consistency is key to beautiful skin!",
    ),
    NotificationCategory.ROUTINE_REMINDER: NotificationTemplate(
        title="🌟 Don't forget your skincare routine!",
        body="Your personalized routine is waiting. A few minutes now for glowing skin later!",
    ),
    NotificationCategory.PROGRESS_REMINDER: NotificationTemplate(
        title="📊 Weekly Progress Check-in",
        body="Share your skin health progress and celebrate your journey!",
    ),
}


# Categories missing here fire at the user's preferred time
DEFAULT_CATEGORY_ANCHORS: dict[NotificationCategory, time] = {
    NotificationCategory.ROUTINE_REMINDER: time(18, 0),
    NotificationCategory.PROGRESS_REMINDER: time(10, 0),
}


@dataclass(frozen=True)
class ScheduleRules:
    """Fixed weekday/day-of-month anchors, per-category times and copy."""

    weekly_weekday: int = 6  # Monday=0, Sunday=6
    monthly_day: int = 1
    templates: Mapping[NotificationCategory, NotificationTemplate] = field(
        default_factory=lambda: dict(DEFAULT_TEMPLATES)
    )
    category_anchors: Mapping[NotificationCategory, time] = field(
        default_factory=lambda: dict(DEFAULT_CATEGORY_ANCHORS)
    )

    def __post_init__(self) -> None:
        if not 0 <= self.weekly_weekday <= 6:
            raise ValueError(f"weekly_weekday must be 0-6, got {self.weekly_weekday}")
        if not 1 <= self.monthly_day <= 31:
            raise ValueError(f"monthly_day must be 1-31, got {self.monthly_day}")

    def template_for(self, category: NotificationCategory) -> NotificationTemplate:
        return self.templates.get(category) or DEFAULT_TEMPLATES[NotificationCategory(category)]

    def anchor_for(self, category: NotificationCategory, preferred_time: time) -> time:
        """Time of day a category fires: its fixed anchor, else the preferred time."""
        return self.category_anchors.get(NotificationCategory(category), preferred_time)

    def next_fire_time(self, frequency: Frequency, now: datetime, anchor: time) -> datetime | None:
        return next_fire_time(
            frequency,
            now,
            anchor,
            weekly_weekday=self.weekly_weekday,
            monthly_day=self.monthly_day,
        )


def _is_system_local(tz: tzinfo | None) -> bool:
    # datetime.astimezone() attaches a fixed offset named after the system zone
    return isinstance(tz, timezone) and tz.tzname(None) in systime.tzname


def _at(day: date, anchor: time, now: datetime) -> datetime:
    wall = datetime.combine(day, anchor.replace(tzinfo=None))
    if _is_system_local(now.tzinfo):
        # Resolve the offset for `day` rather than reusing today's
        return wall.astimezone()
    return wall.replace(tzinfo=now.tzinfo)


def _month_day(year: int, month: int, day: int) -> date:
    last = calendar.monthrange(year, month)[1]
    return date(year, month, min(day, last))


def next_fire_time(
    frequency: Frequency,
    now: datetime,
    anchor: time,
    weekly_weekday: int = 6,
    monthly_day: int = 1,
) -> datetime | None:
    """
    Compute the next delivery time for a cadence.

    Args:
        frequency: Category cadence
        now: Current time; naive or aware. The result uses the same tzinfo, except
            that system-local fixed offsets get the offset in force on the fire date
        anchor: Time of day reminders fire
        weekly_weekday: Weekday for weekly reminders (Monday=0)
        monthly_day: Day of month for monthly reminders, clamped to month length

    Returns:
        The first matching time strictly after `now`, or None for Never
    """
    frequency = Frequency(frequency)
    today = now.date()

    if frequency == Frequency.NEVER:
        return None

    if frequency == Frequency.DAILY:
        candidate = _at(today, anchor, now)
        if candidate <= now:
            candidate = _at(today + timedelta(days=1), anchor, now)
        return candidate

    if frequency == Frequency.WEEKLY:
        days_ahead = (weekly_weekday - today.weekday()) % 7
        candidate = _at(today + timedelta(days=days_ahead), anchor, now)
        if candidate <= now:
            candidate = _at(today + timedelta(days=days_ahead + 7), anchor, now)
        return candidate

    # Monthly
    candidate = _at(_month_day(today.year, today.month, monthly_day), anchor, now)
    if candidate <= now:
        year, month = (today.year + 1, 1) if today.month == 12 else (today.year, today.month + 1)
        candidate = _at(_month_day(year, month, monthly_day), anchor, now)
    return candidate
