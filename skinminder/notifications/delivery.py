"""
Tool: Reminder Delivery Authorities
Purpose: Hand scheduled and immediate reminders to whatever shows them

Usage:
    from skinminder.notifications.delivery import SqliteDeliveryAuthority

    authority = SqliteDeliveryAuthority()
    authority.schedule_delivery(delivery)
    authority.cancel_delivery(delivery.id)
    authority.deliver_now("Title", "Body", NotificationCategory.ROUTINE_REMINDER)

The sqlite authority keeps pending reminders in `scheduled_deliveries` and
records sends in `delivery_log`. Showing the reminder on a device is left to
the host app; here an immediate send is logged and recorded.
"""

from __future__ import annotations

import logging
import sqlite3
import uuid
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path

from skinminder import DB_PATH, get_connection
from skinminder.notifications.models import (
    DeliveryFailedError,
    NotificationCategory,
    ScheduledDelivery,
)

logger = logging.getLogger(__name__)


class DeliveryAuthority(ABC):
    """Platform component that owns pending and delivered reminders."""

    @abstractmethod
    def schedule_delivery(self, delivery: ScheduledDelivery) -> None:
        """Register a reminder to fire at delivery.fire_at."""

    @abstractmethod
    def cancel_delivery(self, delivery_id: str) -> None:
        """Remove a pending reminder. Unknown ids are ignored."""

    @abstractmethod
    def deliver_now(self, title: str, body: str, category: NotificationCategory) -> str:
        """Show a one-shot reminder right away and return its id."""

    @abstractmethod
    def pending(self) -> list[ScheduledDelivery]:
        """All reminders still waiting to fire, soonest first."""

    @abstractmethod
    def cancel_all(self) -> int:
        """Remove every pending reminder and return how many were removed."""


def generate_immediate_id() -> str:
    return f"immediate_{uuid.uuid4().hex[:12]}"


class SqliteDeliveryAuthority(DeliveryAuthority):
    """Delivery authority backed by the engine database."""

    def __init__(self, db_path: Path | None = None):
        self.db_path = Path(db_path or DB_PATH)

    def _connect(self) -> sqlite3.Connection:
        try:
            return get_connection(self.db_path)
        except (sqlite3.Error, OSError) as e:
            raise DeliveryFailedError(f"Delivery store unavailable: {e}") from e

    def schedule_delivery(self, delivery: ScheduledDelivery) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO scheduled_deliveries
                        (id, category, fire_at, title, body, created_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        delivery.id,
                        delivery.category.value,
                        delivery.fire_at.isoformat(),
                        delivery.title,
                        delivery.body,
                        datetime.now().isoformat(),
                    ),
                )
        except sqlite3.Error as e:
            raise DeliveryFailedError(f"Failed to schedule {delivery.id}: {e}") from e
        finally:
            conn.close()

        logger.info(f"Scheduled {delivery.category.value} reminder for {delivery.fire_at.isoformat()}")

    def cancel_delivery(self, delivery_id: str) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute("DELETE FROM scheduled_deliveries WHERE id = ?", (delivery_id,))
        except sqlite3.Error as e:
            raise DeliveryFailedError(f"Failed to cancel {delivery_id}: {e}") from e
        finally:
            conn.close()

        logger.debug(f"Cancelled reminder {delivery_id}")

    def deliver_now(self, title: str, body: str, category: NotificationCategory) -> str:
        delivery_id = generate_immediate_id()
        self._log(delivery_id, NotificationCategory(category), title, body, "sent")
        logger.info(f"Sent immediate notification: {title}")
        return delivery_id

    def pending(self) -> list[ScheduledDelivery]:
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute("SELECT id, category, fire_at, title, body FROM scheduled_deliveries")
            rows = cursor.fetchall()
        except sqlite3.Error as e:
            raise DeliveryFailedError(f"Failed to list pending reminders: {e}") from e
        finally:
            conn.close()

        deliveries = []
        for row in rows:
            try:
                deliveries.append(ScheduledDelivery.from_dict(dict(row)))
            except ValueError:
                logger.warning(f"Skipping unreadable pending reminder {row['id']}")
        return sorted(deliveries, key=lambda d: d.fire_at.timestamp())

    def cancel_all(self) -> int:
        conn = self._connect()
        try:
            with conn:
                cursor = conn.execute("DELETE FROM scheduled_deliveries")
                removed = cursor.rowcount
        except sqlite3.Error as e:
            raise DeliveryFailedError(f"Failed to cancel pending reminders: {e}") from e
        finally:
            conn.close()

        logger.info(f"Cancelled {removed} pending reminders")
        return removed

    def fire_due(self, now: datetime) -> list[ScheduledDelivery]:
        """
        Move reminders whose time has come from pending to the delivery log.

        Args:
            now: Current time, comparable with stored fire times

        Returns:
            The reminders that fired
        """
        due = [d for d in self.pending() if d.fire_at <= now]
        for delivery in due:
            self._log(delivery.id, delivery.category, delivery.title, delivery.body, "fired")
            self.cancel_delivery(delivery.id)
            logger.info(f"Fired {delivery.category.value} reminder: {delivery.title}")
        return due

    def history(self, limit: int = 50) -> list[dict]:
        """Most recent sent and fired reminders."""
        conn = self._connect()
        try:
            cursor = conn.cursor()
            cursor.execute(
                "SELECT * FROM delivery_log ORDER BY sent_at DESC LIMIT ?",
                (limit,),
            )
            rows = [dict(row) for row in cursor.fetchall()]
        except sqlite3.Error as e:
            raise DeliveryFailedError(f"Failed to read delivery log: {e}") from e
        finally:
            conn.close()
        return rows

    def _log(
        self,
        delivery_id: str,
        category: NotificationCategory,
        title: str,
        body: str,
        status: str,
    ) -> None:
        conn = self._connect()
        try:
            with conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO delivery_log (id, category, title, body, status, sent_at)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (delivery_id, category.value, title, body, status, datetime.now().isoformat()),
                )
        except sqlite3.Error as e:
            raise DeliveryFailedError(f"Failed to record delivery {delivery_id}: {e}") from e
        finally:
            conn.close()


class InMemoryDeliveryAuthority(DeliveryAuthority):
    """
    Recording authority for simulation and tests.

    `fail_next` makes that many upcoming deliver_now/schedule calls raise
    DeliveryFailedError.
    """

    def __init__(self):
        self.scheduled: dict[str, ScheduledDelivery] = {}
        self.sent: list[tuple[str, str, NotificationCategory]] = []
        self.schedule_calls = 0
        self.cancel_calls: list[str] = []
        self.fail_next = 0

    def _maybe_fail(self, what: str) -> None:
        if self.fail_next > 0:
            self.fail_next -= 1
            raise DeliveryFailedError(f"Simulated failure during {what}")

    def schedule_delivery(self, delivery: ScheduledDelivery) -> None:
        self._maybe_fail("schedule")
        self.schedule_calls += 1
        self.scheduled[delivery.id] = delivery

    def cancel_delivery(self, delivery_id: str) -> None:
        self.cancel_calls.append(delivery_id)
        self.scheduled.pop(delivery_id, None)

    def deliver_now(self, title: str, body: str, category: NotificationCategory) -> str:
        self._maybe_fail("deliver_now")
        self.sent.append((title, body, NotificationCategory(category)))
        return generate_immediate_id()

    def pending(self) -> list[ScheduledDelivery]:
        return sorted(self.scheduled.values(), key=lambda d: d.fire_at.timestamp())

    def cancel_all(self) -> int:
        removed = len(self.scheduled)
        self.cancel_calls.extend(self.scheduled)
        self.scheduled.clear()
        return removed
