"""
Tool: Notification Dispatcher
Purpose: Keep pending reminders in line with preferences and authorization

Usage:
    from skinminder.notifications.dispatcher import NotificationDispatcher

    dispatcher = NotificationDispatcher(SqliteDeliveryAuthority())
    report = dispatcher.reconcile(prefs, AuthorizationState.AUTHORIZED)
    dispatcher.send_immediate("Title", "Body", NotificationCategory.ROUTINE_REMINDER,
                              auth_state=AuthorizationState.AUTHORIZED)

Per-category lifecycle:
    Unscheduled -> Scheduled -> Fired -> (rescheduled on next reconcile)
    Scheduled -> Cancelled (category disabled, authorization revoked, cancel_all)
    Blocked applies to every category while not authorized; preferences are
    left alone so the next authorized reconcile restores everything.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from dateutil import tz

from skinminder.notifications.delivery import DeliveryAuthority
from skinminder.notifications.models import (
    AuthorizationState,
    DeliveryFailedError,
    Frequency,
    NotAuthorizedError,
    NotificationCategory,
    PreferenceSet,
    ReconcileOutcome,
    ReconcileReport,
    ScheduledDelivery,
)
from skinminder.notifications.scheduling import ScheduleRules

logger = logging.getLogger(__name__)


def _local_now() -> datetime:
    return datetime.now(tz.tzlocal())


class NotificationDispatcher:
    """Turns preferences and authorization into handed-off deliveries."""

    def __init__(
        self,
        authority: DeliveryAuthority,
        rules: ScheduleRules | None = None,
        clock: Callable[[], datetime] = _local_now,
        retry_on_failure: bool = True,
    ):
        self.authority = authority
        self.rules = rules or ScheduleRules()
        self.clock = clock
        self.retry_on_failure = retry_on_failure
        self._tracked: dict[NotificationCategory, dict[str, ScheduledDelivery]] = {
            category: {} for category in NotificationCategory
        }
        self._adopt_pending()

    def _adopt_pending(self) -> None:
        # Deliveries handed off by an earlier run are tracked so a restart does not duplicate them
        try:
            pending = self.authority.pending()
        except DeliveryFailedError as e:
            logger.warning(f"Could not read pending reminders, starting empty: {e}")
            return
        for delivery in pending:
            self._tracked[delivery.category][delivery.id] = delivery

    def tracked(self) -> dict[NotificationCategory, list[ScheduledDelivery]]:
        """Deliveries this dispatcher believes are pending, per category."""
        return {category: list(items.values()) for category, items in self._tracked.items()}

    # ─────────────────────────────────────────────────────────────────────
    # Reconcile
    # ─────────────────────────────────────────────────────────────────────

    def reconcile(
        self,
        prefs: PreferenceSet,
        auth_state: AuthorizationState,
        now: datetime | None = None,
    ) -> ReconcileReport:
        """
        Bring pending deliveries in line with `prefs` and `auth_state`.

        Calling again with the same inputs and clock changes nothing.

        Args:
            prefs: Preference snapshot
            auth_state: Authorization snapshot
            now: Reference time (defaults to the dispatcher clock)

        Returns:
            ReconcileReport with per-category outcomes and the delta
        """
        now = now or self.clock()
        auth_state = AuthorizationState(auth_state)
        report = ReconcileReport(auth_state=auth_state)

        if auth_state != AuthorizationState.AUTHORIZED:
            for category in NotificationCategory:
                tracked = self._tracked[category]
                report.cancelled.extend(tracked)
                tracked.clear()
                report.outcomes[category] = ReconcileOutcome.BLOCKED
            # Includes deliveries this process never adopted
            removed = self.authority.cancel_all()
            logger.info(f"Reminders blocked ({auth_state.value}); cancelled {removed} pending")
            return report

        for category, setting in prefs.items():
            if not setting.active:
                cancelled = self._cancel_category(category)
                report.cancelled.extend(cancelled)
                report.outcomes[category] = (
                    ReconcileOutcome.CANCELLED if cancelled else ReconcileOutcome.DISABLED
                )
                continue

            wanted = self._build_delivery(category, setting.frequency, prefs, now)
            tracked = self._tracked[category]

            for delivery_id, delivery in list(tracked.items()):
                if delivery != wanted:
                    self.authority.cancel_delivery(delivery_id)
                    del tracked[delivery_id]
                    report.cancelled.append(delivery_id)

            if wanted.id in tracked:
                report.outcomes[category] = ReconcileOutcome.UNCHANGED
                report.active[category] = tracked[wanted.id]
                continue

            try:
                self.authority.schedule_delivery(wanted)
            except DeliveryFailedError as e:
                logger.warning(f"Failed to schedule {category.value} reminder: {e}")
                report.outcomes[category] = ReconcileOutcome.FAILED
                continue

            tracked[wanted.id] = wanted
            report.scheduled.append(wanted)
            report.outcomes[category] = ReconcileOutcome.SCHEDULED
            report.active[category] = wanted

        if report.changed:
            logger.info(
                f"Reconciled reminders: {len(report.scheduled)} scheduled, "
                f"{len(report.cancelled)} cancelled"
            )
        return report

    def _build_delivery(
        self,
        category: NotificationCategory,
        frequency: Frequency,
        prefs: PreferenceSet,
        now: datetime,
    ) -> ScheduledDelivery:
        anchor = self.rules.anchor_for(category, prefs.preferred_time)
        fire_at = self.rules.next_fire_time(frequency, now, anchor)
        template = self.rules.template_for(category)
        return ScheduledDelivery.create(category, fire_at, template.title, template.body)

    def _cancel_category(self, category: NotificationCategory) -> list[str]:
        tracked = self._tracked[category]
        cancelled = []
        for delivery_id in list(tracked):
            self.authority.cancel_delivery(delivery_id)
            del tracked[delivery_id]
            cancelled.append(delivery_id)
        return cancelled

    # ─────────────────────────────────────────────────────────────────────
    # Immediate delivery
    # ─────────────────────────────────────────────────────────────────────

    def send_immediate(
        self,
        title: str,
        body: str,
        category: NotificationCategory,
        auth_state: AuthorizationState,
    ) -> str:
        """
        Deliver a one-shot reminder now, outside the schedule.

        Does not request permission and creates no bookkeeping entry.

        Returns:
            Id assigned by the delivery authority

        Raises:
            NotAuthorizedError: auth_state is not AUTHORIZED
            DeliveryFailedError: the authority failed (after one retry)
        """
        category = NotificationCategory(category)
        auth_state = AuthorizationState(auth_state)
        if auth_state != AuthorizationState.AUTHORIZED:
            logger.warning(f"Notification '{title}' not sent: {auth_state.value}")
            raise NotAuthorizedError(auth_state)

        try:
            return self.authority.deliver_now(title, body, category)
        except DeliveryFailedError as e:
            if not self.retry_on_failure:
                logger.error(f"Failed to send immediate notification '{title}': {e}")
                raise
            logger.warning(f"Immediate notification failed, retrying once: {e}")

        try:
            return self.authority.deliver_now(title, body, category)
        except DeliveryFailedError as e:
            logger.error(f"Failed to send immediate notification '{title}' after retry: {e}")
            raise

    # ─────────────────────────────────────────────────────────────────────
    # Utility
    # ─────────────────────────────────────────────────────────────────────

    def pending(self) -> list[ScheduledDelivery]:
        return self.authority.pending()

    def cancel_all(self) -> int:
        """Cancel every pending reminder, including ones this process did not schedule."""
        removed = self.authority.cancel_all()
        for tracked in self._tracked.values():
            tracked.clear()
        return removed
