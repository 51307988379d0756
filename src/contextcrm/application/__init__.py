"""Application layer: use cases, ports, and DTOs. Depends only on domain."""

from contextcrm.application.background import BACKGROUND_TASK_ID, BackgroundRegistrar
from contextcrm.application.contact_detector import (
    NOTIFICATION_ACTION,
    ContactChangeDetector,
    build_notification,
)
from contextcrm.application.dto import (
    BackgroundStatus,
    BackgroundTaskResult,
    CheckResult,
    NotificationRequest,
    PendingContact,
    PermissionStatus,
)
from contextcrm.application.errors import (
    BackgroundRegistrationError,
    ContactMonitorError,
    PermissionDenied,
    SnapshotReadError,
    StorageReadError,
    StorageWriteError,
)
from contextcrm.application.lifecycle import LifecycleScheduler
from contextcrm.application.monitor_service import ContactMonitorService
from contextcrm.application.ports import (
    BackgroundTaskApi,
    ContactSnapshotSource,
    KeyValueStore,
    NotificationDispatcher,
)
from contextcrm.application.settings import MonitorSettings
from contextcrm.application.stores import KnownContactStore, MonitoringStateStore

__all__ = [
    "BACKGROUND_TASK_ID",
    "BackgroundRegistrar",
    "BackgroundRegistrationError",
    "BackgroundStatus",
    "BackgroundTaskApi",
    "BackgroundTaskResult",
    "CheckResult",
    "ContactChangeDetector",
    "ContactMonitorError",
    "ContactMonitorService",
    "ContactSnapshotSource",
    "KeyValueStore",
    "KnownContactStore",
    "LifecycleScheduler",
    "MonitorSettings",
    "MonitoringStateStore",
    "NOTIFICATION_ACTION",
    "NotificationDispatcher",
    "NotificationRequest",
    "PendingContact",
    "PermissionDenied",
    "PermissionStatus",
    "SnapshotReadError",
    "StorageReadError",
    "StorageWriteError",
    "build_notification",
]
