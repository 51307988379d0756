"""Contact monitor facade used by the UI/navigation layer. One instance per app, built by the composition root."""

import logging
from collections.abc import Callable

from contextcrm.application.background import BackgroundRegistrar
from contextcrm.application.contact_detector import ContactChangeDetector, NavigationCallback
from contextcrm.application.dto import CheckResult, PendingContact, PermissionStatus
from contextcrm.application.lifecycle import LifecycleScheduler
from contextcrm.application.ports import (
    BackgroundTaskApi,
    ContactSnapshotSource,
    KeyValueStore,
    NotificationDispatcher,
)
from contextcrm.application.settings import MonitorSettings
from contextcrm.application.stores import KnownContactStore, MonitoringStateStore
from contextcrm.domain import AppState, MonitorState

logger = logging.getLogger(__name__)


class ContactMonitorService:
    """Core flow: initialize -> warm-up poll -> monitoring; routes new contacts to navigation or notification."""

    def __init__(
        self,
        source: ContactSnapshotSource,
        storage: KeyValueStore,
        dispatcher: NotificationDispatcher,
        background_api: BackgroundTaskApi | None = None,
        *,
        settings: MonitorSettings | None = None,
        normalize_phone: Callable[[str], str | None] | None = None,
    ) -> None:
        self._settings = settings or MonitorSettings()
        self._source = source
        self._dispatcher = dispatcher
        self._monitoring_store = MonitoringStateStore(storage)
        self.detector = ContactChangeDetector(
            source,
            KnownContactStore(storage),
            dispatcher,
            normalize_phone=normalize_phone,
        )
        self.scheduler = LifecycleScheduler(self.detector, source, self._settings)
        self.background = BackgroundRegistrar(
            background_api,
            self.detector,
            min_interval_seconds=self._settings.background_interval,
            timeout_seconds=self._settings.background_timeout,
        )

    @property
    def state(self) -> MonitorState:
        return self.detector.state

    @property
    def is_monitoring(self) -> bool:
        return self.scheduler.running

    async def request_permissions(self) -> PermissionStatus:
        contacts = await self._source.request_permission()
        if not contacts:
            logger.warning("Contacts permission not granted")
        notifications = await self._dispatcher.request_permission()
        if not notifications:
            logger.warning("Notification permission not granted")
        return PermissionStatus(contacts=contacts, notifications=notifications)

    async def initialize(self) -> PermissionStatus:
        """Request permissions, load known ids, start polling and run the warm-up poll.

        Contacts found by the warm-up poll are recorded as known without being routed.
        Denied permissions are reported in the result, not raised.
        """
        permissions = await self.request_permissions()
        await self.detector.ensure_loaded()
        if self.detector.state is not MonitorState.MONITORING:
            self.detector.begin_warmup()
        await self._start()
        await self.detector.check_for_new_contacts()
        logger.info("Contact monitoring service initialized")
        return permissions

    async def start_monitoring(self) -> None:
        if self.detector.state is MonitorState.UNINITIALIZED:
            await self.initialize()
            return
        self.detector.resume()
        await self._start()

    async def _start(self) -> None:
        self.scheduler.start()
        await self._monitoring_store.save(True)

    async def stop_monitoring(self) -> None:
        """Stop polling and persist the disabled state. Idempotent; a tick in flight may still finish."""
        self.scheduler.stop()
        self.detector.suspend()
        await self._monitoring_store.save(False)
        logger.info("Contact monitoring stopped")

    async def set_monitoring_enabled(self, enabled: bool) -> PermissionStatus | None:
        """Settings toggle: enabling initializes and registers the background task; disabling undoes both."""
        if enabled:
            permissions = await self.initialize()
            await self.background.register()
            return permissions
        await self.stop_monitoring()
        await self.background.unregister()
        return None

    async def resume_if_enabled(self) -> bool:
        """On app startup, resume monitoring if the user left it enabled."""
        if not await self.get_monitoring_state():
            logger.info("Contact monitoring disabled; not resuming")
            return False
        await self.initialize()
        await self.background.register()
        return True

    async def get_monitoring_state(self) -> bool:
        return await self._monitoring_store.load()

    def set_navigation_callback(self, callback: NavigationCallback | None) -> None:
        self.detector.set_navigation_callback(callback)

    async def check_for_new_contacts(self) -> CheckResult:
        return await self.detector.check_for_new_contacts()

    async def test_notification(self) -> PendingContact:
        return await self.detector.test_notification()

    async def handle_app_state_change(self, app_state: AppState) -> None:
        await self.scheduler.handle_app_state_change(app_state)

    def handle_notification_response(self, data: dict | None) -> PendingContact | None:
        return self.detector.handle_notification_response(data)

    def acknowledge_navigation(self) -> PendingContact | None:
        return self.detector.acknowledge_navigation()

    def close(self) -> None:
        """Cancel timers without touching the persisted monitoring state (process shutdown)."""
        self.scheduler.stop()
