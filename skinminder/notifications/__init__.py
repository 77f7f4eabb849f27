"""Local reminder preferences, authorization and scheduling."""

from skinminder.notifications.models import (
    AuthorizationState,
    CategorySetting,
    DeliveryFailedError,
    DispatchError,
    Frequency,
    NotAuthorizedError,
    NotificationCategory,
    PersistError,
    PreferenceSet,
    ReconcileOutcome,
    ReconcileReport,
    ScheduledDelivery,
)
from skinminder.notifications.storage import (
    MemoryRecordStore,
    RecordStore,
    SqliteRecordStore,
)
from skinminder.notifications.preferences import PreferenceStore
from skinminder.notifications.authorization import (
    AuthorizationController,
    PermissionAuthority,
    StaticPermissionAuthority,
    StoredPermissionAuthority,
)
from skinminder.notifications.delivery import (
    DeliveryAuthority,
    InMemoryDeliveryAuthority,
    SqliteDeliveryAuthority,
)
from skinminder.notifications.scheduling import (
    NotificationTemplate,
    ScheduleRules,
    next_fire_time,
)
from skinminder.notifications.dispatcher import NotificationDispatcher
from skinminder.notifications.engine import NotificationEngine

__all__ = [
    "AuthorizationState",
    "CategorySetting",
    "DeliveryFailedError",
    "DispatchError",
    "Frequency",
    "NotAuthorizedError",
    "NotificationCategory",
    "PersistError",
    "PreferenceSet",
    "ReconcileOutcome",
    "ReconcileReport",
    "ScheduledDelivery",
    "MemoryRecordStore",
    "RecordStore",
    "SqliteRecordStore",
    "PreferenceStore",
    "AuthorizationController",
    "PermissionAuthority",
    "StaticPermissionAuthority",
    "StoredPermissionAuthority",
    "DeliveryAuthority",
    "InMemoryDeliveryAuthority",
    "SqliteDeliveryAuthority",
    "NotificationTemplate",
    "ScheduleRules",
    "next_fire_time",
    "NotificationDispatcher",
    "NotificationEngine",
]
