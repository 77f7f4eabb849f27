"""
Tool: Notification Engine
Purpose: Caller-facing API tying preferences, authorization and delivery together

Usage:
    from skinminder.notifications.engine import NotificationEngine

    # Build once at app start and pass it to whatever needs it
    engine = NotificationEngine.create()
    await engine.refresh_authorization()

    engine.set_category_enabled(NotificationCategory.ROUTINE_REMINDER, True)
    if await engine.request_authorization():
        engine.send_test_notification(NotificationCategory.ROUTINE_REMINDER)

Every preference change is persisted first and then reconciled against the
cached authorization state, so pending reminders always match what the user
last chose.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, time
from pathlib import Path

from dateutil import tz

from skinminder.config_models import NotificationsConfig, load_notifications_config
from skinminder.notifications.authorization import (
    AuthorizationController,
    PermissionAuthority,
    StoredPermissionAuthority,
)
from skinminder.notifications.delivery import DeliveryAuthority, SqliteDeliveryAuthority
from skinminder.notifications.dispatcher import NotificationDispatcher
from skinminder.notifications.models import (
    AuthorizationState,
    Frequency,
    NotificationCategory,
    PreferenceSet,
    ReconcileReport,
    ScheduledDelivery,
)
from skinminder.notifications.preferences import PreferenceListener, PreferenceStore
from skinminder.notifications.scheduling import (
    DEFAULT_CATEGORY_ANCHORS,
    DEFAULT_TEMPLATES,
    NotificationTemplate,
    ScheduleRules,
)
from skinminder.notifications.storage import SqliteRecordStore
from skinminder.routines.parser import ParseResult, parse_routine_text

logger = logging.getLogger(__name__)


def rules_from_config(config: NotificationsConfig) -> ScheduleRules:
    """Build scheduling rules, letting configured copy and times override the defaults."""
    templates = dict(DEFAULT_TEMPLATES)
    for key, template in config.templates.items():
        try:
            category = NotificationCategory(key)
        except ValueError:
            logger.warning(f"Ignoring template for unknown category: {key}")
            continue
        templates[category] = NotificationTemplate(title=template.title, body=template.body)

    anchors = dict(DEFAULT_CATEGORY_ANCHORS)
    for key, anchor in config.schedule.category_anchors().items():
        try:
            category = NotificationCategory(key)
        except ValueError:
            logger.warning(f"Ignoring reminder time for unknown category: {key}")
            continue
        if anchor is None:
            # null means "follow the user's preferred time"
            anchors.pop(category, None)
        else:
            anchors[category] = anchor

    return ScheduleRules(
        weekly_weekday=config.schedule.weekly_weekday,
        monthly_day=config.schedule.monthly_day,
        templates=templates,
        category_anchors=anchors,
    )


def clock_from_config(config: NotificationsConfig) -> Callable[[], datetime]:
    """Clock in the configured zone, or the system zone with its DST rules."""
    zone = config.schedule.tzinfo() or tz.tzlocal()
    return lambda: datetime.now(zone)


class NotificationEngine:
    """One engine per running app, constructed explicitly at the composition root."""

    def __init__(
        self,
        store: PreferenceStore,
        authorization: AuthorizationController,
        dispatcher: NotificationDispatcher,
    ):
        self.store = store
        self.authorization = authorization
        self.dispatcher = dispatcher
        self.last_report: ReconcileReport | None = None

    @classmethod
    def create(
        cls,
        config: NotificationsConfig | None = None,
        db_path: Path | None = None,
        permission_authority: PermissionAuthority | None = None,
        delivery_authority: DeliveryAuthority | None = None,
        clock: Callable[[], datetime] | None = None,
    ) -> NotificationEngine:
        """
        Wire the default sqlite-backed engine.

        Args:
            config: Parsed args/notifications.yaml (loaded if omitted)
            db_path: Override for the database file
            permission_authority: Platform permission source (stored answer by default)
            delivery_authority: Platform delivery sink (sqlite by default)
            clock: Source of "now" (config timezone by default)
        """
        config = config or load_notifications_config()
        db_path = Path(db_path) if db_path else config.storage.resolved_db_path()

        records = SqliteRecordStore(db_path)
        store = PreferenceStore(
            records,
            key=config.storage.preferences_key,
            default_time=config.schedule.anchor(),
        )
        authorization = AuthorizationController(
            permission_authority
            or StoredPermissionAuthority(records, key=config.storage.authorization_key)
        )
        dispatcher = NotificationDispatcher(
            delivery_authority or SqliteDeliveryAuthority(db_path),
            rules=rules_from_config(config),
            clock=clock or clock_from_config(config),
            retry_on_failure=config.delivery.retry_on_failure,
        )
        return cls(store, authorization, dispatcher)

    # ─────────────────────────────────────────────────────────────────────
    # Preferences
    # ─────────────────────────────────────────────────────────────────────

    def load_preferences(self) -> PreferenceSet:
        return self.store.load()

    def set_category_enabled(self, category: NotificationCategory, enabled: bool) -> PreferenceSet:
        prefs = self.store.update(category, lambda setting: setting.with_enabled(enabled))
        self._reconcile(prefs)
        return prefs

    def set_category_frequency(self, category: NotificationCategory, frequency: Frequency) -> PreferenceSet:
        frequency = Frequency(frequency)
        prefs = self.store.update(category, lambda setting: setting.with_frequency(frequency))
        self._reconcile(prefs)
        return prefs

    def set_preferred_time(self, preferred_time: time) -> PreferenceSet:
        prefs = self.store.set_preferred_time(preferred_time)
        self._reconcile(prefs)
        return prefs

    def reset_preferences(self) -> PreferenceSet:
        prefs = self.store.reset()
        self._reconcile(prefs)
        return prefs

    def subscribe(self, listener: PreferenceListener) -> Callable[[], None]:
        """Get called with the new PreferenceSet after every change."""
        return self.store.subscribe(listener)

    # ─────────────────────────────────────────────────────────────────────
    # Authorization
    # ─────────────────────────────────────────────────────────────────────

    def current_authorization_state(self) -> AuthorizationState:
        return self.authorization.current_state()

    async def refresh_authorization(self) -> AuthorizationState:
        """Re-sync with the platform (e.g. on app foreground) and reconcile."""
        state = await self.authorization.refresh()
        self.reconcile()
        return state

    async def request_authorization(self) -> bool:
        granted = await self.authorization.request_authorization()
        self.reconcile()
        return granted

    # ─────────────────────────────────────────────────────────────────────
    # Scheduling
    # ─────────────────────────────────────────────────────────────────────

    def reconcile(self, now: datetime | None = None) -> ReconcileReport:
        return self._reconcile(self.store.load(), now=now)

    def _reconcile(self, prefs: PreferenceSet, now: datetime | None = None) -> ReconcileReport:
        self.last_report = self.dispatcher.reconcile(prefs, self.authorization.current_state(), now=now)
        return self.last_report

    def pending_notifications(self) -> list[ScheduledDelivery]:
        return self.dispatcher.pending()

    def cancel_all_notifications(self) -> int:
        """Drop every pending reminder. Preferences are unchanged, so the next reconcile restores them."""
        return self.dispatcher.cancel_all()

    # ─────────────────────────────────────────────────────────────────────
    # Immediate notifications
    # ─────────────────────────────────────────────────────────────────────

    def send_notification(self, title: str, body: str, category: NotificationCategory) -> str:
        return self.dispatcher.send_immediate(
            title,
            body,
            category,
            auth_state=self.authorization.current_state(),
        )

    def send_test_notification(self, category: NotificationCategory) -> str:
        """Send the category's reminder right now so the user can preview it."""
        template = self.dispatcher.rules.template_for(NotificationCategory(category))
        return self.send_notification(template.title, template.body, category)

    def notify_analysis_complete(self) -> str:
        return self.send_notification(
            "🔍 Your skin analysis is complete!",
            "New insights and recommendations are ready. Discover what your skin is telling you!",
            NotificationCategory.PROGRESS_REMINDER,
        )

    def notify_routine_missed(self) -> str:
        return self.send_notification(
            "⏰ Routine Reminder",
            "You haven't completed your skincare routine today. Don't forget to take care of your skin!",
            NotificationCategory.ROUTINE_REMINDER,
        )

    def notify_progress_milestone(self, score: int) -> str:
        return self.send_notification(
            "🎉 Congratulations!",
            f"Your skin health score reached {score}! Keep up the amazing work!",
            NotificationCategory.PROGRESS_REMINDER,
        )

    # ─────────────────────────────────────────────────────────────────────
    # Routine text
    # ─────────────────────────────────────────────────────────────────────

    @staticmethod
    def parse_routine_text(text: str) -> ParseResult:
        return parse_routine_text(text)
