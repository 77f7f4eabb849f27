"""Tests for skinminder/notifications/scheduling.py"""

from datetime import datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

import pytest

from skinminder.config_models import NotificationsConfig
from skinminder.notifications.engine import clock_from_config
from skinminder.notifications.models import Frequency, NotificationCategory
from skinminder.notifications.scheduling import (
    DEFAULT_TEMPLATES,
    NotificationTemplate,
    ScheduleRules,
    next_fire_time,
)

UTC = ZoneInfo("UTC")
NINE = time(9, 0)


class TestDaily:
    def test_after_anchor_fires_tomorrow(self, morning_now):
        assert next_fire_time(Frequency.DAILY, morning_now, NINE) == datetime(2024, 5, 16, 9, 0, tzinfo=UTC)

    def test_before_anchor_fires_today(self, early_now):
        assert next_fire_time(Frequency.DAILY, early_now, NINE) == datetime(2024, 5, 15, 9, 0, tzinfo=UTC)

    def test_exactly_at_anchor_fires_tomorrow(self):
        now = datetime(2024, 5, 15, 9, 0, tzinfo=UTC)
        assert next_fire_time(Frequency.DAILY, now, NINE) == datetime(2024, 5, 16, 9, 0, tzinfo=UTC)

    def test_crosses_month_end(self):
        now = datetime(2024, 5, 31, 22, 0, tzinfo=UTC)
        assert next_fire_time(Frequency.DAILY, now, NINE) == datetime(2024, 6, 1, 9, 0, tzinfo=UTC)

    def test_keeps_timezone(self):
        tz = ZoneInfo("Australia/Sydney")
        now = datetime(2024, 5, 15, 10, 0, tzinfo=tz)
        fire_at = next_fire_time(Frequency.DAILY, now, NINE)
        assert fire_at.tzinfo is tz
        assert (fire_at.hour, fire_at.minute) == (9, 0)

    def test_naive_now_gives_naive_result(self):
        now = datetime(2024, 5, 15, 10, 0)
        assert next_fire_time(Frequency.DAILY, now, NINE) == datetime(2024, 5, 16, 9, 0)


class TestWeekly:
    def test_next_sunday(self, morning_now):
        # 2024-05-15 is a Wednesday
        assert next_fire_time(Frequency.WEEKLY, morning_now, NINE, weekly_weekday=6) == datetime(
            2024, 5, 19, 9, 0, tzinfo=UTC
        )

    def test_same_weekday_before_anchor_is_today(self, early_now):
        assert next_fire_time(Frequency.WEEKLY, early_now, NINE, weekly_weekday=2) == datetime(
            2024, 5, 15, 9, 0, tzinfo=UTC
        )

    def test_same_weekday_after_anchor_is_next_week(self, morning_now):
        assert next_fire_time(Frequency.WEEKLY, morning_now, NINE, weekly_weekday=2) == datetime(
            2024, 5, 22, 9, 0, tzinfo=UTC
        )


class TestMonthly:
    def test_next_first_of_month(self, morning_now):
        assert next_fire_time(Frequency.MONTHLY, morning_now, NINE, monthly_day=1) == datetime(
            2024, 6, 1, 9, 0, tzinfo=UTC
        )

    def test_later_this_month(self, morning_now):
        assert next_fire_time(Frequency.MONTHLY, morning_now, NINE, monthly_day=20) == datetime(
            2024, 5, 20, 9, 0, tzinfo=UTC
        )

    def test_december_rolls_to_january(self):
        now = datetime(2024, 12, 5, 12, 0, tzinfo=UTC)
        assert next_fire_time(Frequency.MONTHLY, now, NINE, monthly_day=1) == datetime(
            2025, 1, 1, 9, 0, tzinfo=UTC
        )

    def test_day_clamped_to_short_month(self):
        now = datetime(2024, 2, 10, 12, 0, tzinfo=UTC)
        assert next_fire_time(Frequency.MONTHLY, now, NINE, monthly_day=31) == datetime(
            2024, 2, 29, 9, 0, tzinfo=UTC
        )

    def test_clamped_day_passed_moves_to_next_month(self):
        now = datetime(2023, 2, 28, 12, 0, tzinfo=UTC)
        assert next_fire_time(Frequency.MONTHLY, now, NINE, monthly_day=31) == datetime(
            2023, 3, 31, 9, 0, tzinfo=UTC
        )


class TestNever:
    def test_never_has_no_fire_time(self, morning_now):
        assert next_fire_time(Frequency.NEVER, morning_now, NINE) is None


class TestScheduleRules:
    def test_rejects_bad_weekday(self):
        with pytest.raises(ValueError):
            ScheduleRules(weekly_weekday=7)

    def test_rejects_bad_month_day(self):
        with pytest.raises(ValueError):
            ScheduleRules(monthly_day=0)

    def test_template_falls_back_to_default(self):
        rules = ScheduleRules(templates={})
        assert rules.template_for(NotificationCategory.ROUTINE_REMINDER) == DEFAULT_TEMPLATES[
            NotificationCategory.ROUTINE_REMINDER
        ]

    def test_custom_template_used(self):
        custom = NotificationTemplate(title="SPF time", body="Reapply sunscreen")
        rules = ScheduleRules(templates={NotificationCategory.ROUTINE_REMINDER: custom})
        assert rules.template_for(NotificationCategory.ROUTINE_REMINDER) == custom

    def test_rules_use_their_anchors(self, morning_now):
        rules = ScheduleRules(weekly_weekday=0, monthly_day=15)
        assert rules.next_fire_time(Frequency.WEEKLY, morning_now, NINE) == datetime(2024, 5, 20, 9, 0, tzinfo=UTC)
        assert rules.next_fire_time(Frequency.MONTHLY, morning_now, NINE) == datetime(2024, 6, 15, 9, 0, tzinfo=UTC)


class TestCategoryAnchors:
    def test_default_anchors(self):
        rules = ScheduleRules()
        assert rules.anchor_for(NotificationCategory.DAILY_PHOTO_REMINDER, NINE) == NINE
        assert rules.anchor_for(NotificationCategory.ROUTINE_REMINDER, NINE) == time(18, 0)
        assert rules.anchor_for(NotificationCategory.PROGRESS_REMINDER, NINE) == time(10, 0)

    def test_preferred_time_only_moves_unanchored_categories(self):
        rules = ScheduleRules()
        evening = time(21, 15)
        assert rules.anchor_for(NotificationCategory.DAILY_PHOTO_REMINDER, evening) == evening
        assert rules.anchor_for(NotificationCategory.ROUTINE_REMINDER, evening) == time(18, 0)

    def test_no_anchors_means_everything_follows_preferred_time(self):
        rules = ScheduleRules(category_anchors={})
        for category in NotificationCategory:
            assert rules.anchor_for(category, NINE) == NINE


NEW_YORK = ZoneInfo("America/New_York")


class TestDaylightSaving:
    """The anchor is a local wall-clock time, whatever the offset on the fire date."""

    def test_zoneinfo_spring_forward(self):
        # Friday before the 2024-03-10 switch to EDT
        now = datetime(2024, 3, 8, 12, 0, tzinfo=NEW_YORK)
        fire_at = next_fire_time(Frequency.WEEKLY, now, NINE)

        assert fire_at == datetime(2024, 3, 10, 9, 0, tzinfo=NEW_YORK)
        assert fire_at.utcoffset() == timedelta(hours=-4)

    def test_system_local_offset_monthly(self, new_york_system_tz):
        # astimezone() gives a fixed EST offset; April 1st is in EDT
        now = datetime(2024, 3, 1, 10, 0).astimezone()
        fire_at = next_fire_time(Frequency.MONTHLY, now, NINE)

        local = fire_at.astimezone(NEW_YORK)
        assert (local.month, local.day, local.hour, local.minute) == (4, 1, 9, 0)
        assert fire_at.utcoffset() == timedelta(hours=-4)

    def test_system_local_offset_fall_back(self, new_york_system_tz):
        # Friday before the 2024-11-03 switch back to EST
        now = datetime(2024, 11, 1, 12, 0).astimezone()
        fire_at = next_fire_time(Frequency.WEEKLY, now, NINE)

        local = fire_at.astimezone(NEW_YORK)
        assert (local.day, local.hour) == (3, 9)
        assert fire_at.utcoffset() == timedelta(hours=-5)

    def test_explicit_fixed_offset_kept(self, new_york_system_tz):
        fixed = timezone(timedelta(hours=-5))
        now = datetime(2024, 3, 1, 10, 0, tzinfo=fixed)
        fire_at = next_fire_time(Frequency.MONTHLY, now, NINE)

        assert fire_at == datetime(2024, 4, 1, 9, 0, tzinfo=fixed)

    def test_default_clock_tracks_dst(self, new_york_system_tz):
        clock = clock_from_config(NotificationsConfig())
        local_zone = clock().tzinfo

        now = datetime(2024, 3, 8, 12, 0, tzinfo=local_zone)
        fire_at = next_fire_time(Frequency.WEEKLY, now, NINE)

        local = fire_at.astimezone(NEW_YORK)
        assert (local.day, local.hour) == (10, 9)

    def test_configured_timezone_clock(self):
        clock = clock_from_config(NotificationsConfig(schedule={"timezone": "America/New_York"}))
        assert clock().tzinfo == NEW_YORK
