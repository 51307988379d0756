"""
Context CRM contact monitor: clean-architecture layout.

- domain: entities (DeviceContact, AppState, MonitorState). No outer dependencies.
- application: use cases (ContactMonitorService, ContactChangeDetector, LifecycleScheduler,
  BackgroundRegistrar), ports, stores and DTOs.
- infrastructure: adapters (key/value stores, snapshot sources, notification dispatchers,
  background task runners).
"""

from contextcrm.application import (
    CheckResult,
    ContactChangeDetector,
    ContactMonitorService,
    KnownContactStore,
    LifecycleScheduler,
    MonitoringStateStore,
    MonitorSettings,
    PendingContact,
    PermissionDenied,
    PermissionStatus,
)
from contextcrm.domain import AppState, DeviceContact, MonitorState

__all__ = [
    "AppState",
    "CheckResult",
    "ContactChangeDetector",
    "ContactMonitorService",
    "DeviceContact",
    "KnownContactStore",
    "LifecycleScheduler",
    "MonitorSettings",
    "MonitorState",
    "MonitoringStateStore",
    "PendingContact",
    "PermissionDenied",
    "PermissionStatus",
]
