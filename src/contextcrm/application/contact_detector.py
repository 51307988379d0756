"""Contact change detection: diff device snapshots against known ids and route new contacts.

Routing sends a new contact straight to the navigation callback when the app is
in the foreground and a callback is registered. Otherwise the contact is queued
as pending and a local notification carrying the same projection is scheduled.
"""

import asyncio
import logging
from collections import deque
from collections.abc import Callable

from contextcrm.application.dto import CheckResult, NotificationRequest, PendingContact
from contextcrm.application.errors import PermissionDenied
from contextcrm.application.ports import ContactSnapshotSource, NotificationDispatcher
from contextcrm.application.state_machine import (
    INITIALIZE,
    START,
    STOP,
    WARMUP_COMPLETE,
    MonitorStateMachine,
)
from contextcrm.application.stores import KnownContactStore
from contextcrm.domain import AppState, DeviceContact, MonitorState

logger = logging.getLogger(__name__)

NavigationCallback = Callable[[PendingContact], None]

NOTIFICATION_ACTION = "capture_context"
NOTIFICATION_TITLE = "Add context?"

TEST_CONTACT = DeviceContact(
    id="test-123",
    name="Test Contact",
    phones=("+1234567890",),
    emails=("test@example.com",),
)


def build_notification(contact: PendingContact) -> NotificationRequest:
    return NotificationRequest(
        title=NOTIFICATION_TITLE,
        body=f"You just added {contact.name}. Capture context while it's fresh!",
        data={"action": NOTIFICATION_ACTION, "contactData": contact.to_payload()},
    )


class ContactChangeDetector:
    """Owns the known-id set, the pending queue and the navigation callback slot."""

    def __init__(
        self,
        source: ContactSnapshotSource,
        known_store: KnownContactStore,
        dispatcher: NotificationDispatcher,
        *,
        normalize_phone: Callable[[str], str | None] | None = None,
        machine: MonitorStateMachine | None = None,
    ) -> None:
        self._source = source
        self._known_store = known_store
        self._dispatcher = dispatcher
        self._normalize_phone = normalize_phone
        self._machine = machine or MonitorStateMachine()
        self._known: set[str] = set()
        self._loaded = False
        self._checking = False
        self._idle = asyncio.Event()
        self._idle.set()
        self._app_state = AppState.FOREGROUND
        self._navigation_callback: NavigationCallback | None = None
        self._pending: list[PendingContact] = []
        self._backlog: deque[PendingContact] = deque()

    @property
    def state(self) -> MonitorState:
        return self._machine.state

    @property
    def app_state(self) -> AppState:
        return self._app_state

    def set_app_state(self, app_state: AppState) -> None:
        self._app_state = AppState(app_state)

    @property
    def known_contact_ids(self) -> frozenset[str]:
        return frozenset(self._known)

    @property
    def pending(self) -> tuple[PendingContact, ...]:
        return tuple(self._pending)

    @property
    def has_pending(self) -> bool:
        return bool(self._pending)

    @property
    def backlog(self) -> tuple[PendingContact, ...]:
        return tuple(self._backlog)

    def set_navigation_callback(self, callback: NavigationCallback | None) -> None:
        """Register the single navigation listener. A later registration replaces the earlier one."""
        self._navigation_callback = callback

    # --- lifecycle ---

    async def ensure_loaded(self) -> None:
        if not self._loaded:
            self._known = await self._known_store.load()
            self._loaded = True

    def begin_warmup(self) -> bool:
        return self._machine.send(INITIALIZE)

    def resume(self) -> bool:
        return self._machine.send(START)

    def suspend(self) -> bool:
        return self._machine.send(STOP)

    # --- detection ---

    async def check_for_new_contacts(self) -> CheckResult:
        """Poll once. Never raises; a check already in flight makes this a no-op."""
        if self._checking:
            logger.debug("Previous contact check still running; skipping")
            return CheckResult(skipped=True)
        self._checking = True
        self._idle.clear()
        try:
            return await self._check()
        finally:
            self._checking = False
            self._idle.set()

    async def wait_idle(self) -> None:
        """Wait until no check is in flight."""
        await self._idle.wait()

    async def _check(self) -> CheckResult:
        await self.ensure_loaded()
        # A cold run with nothing known would otherwise report the whole address book.
        bootstrap = self.state is MonitorState.INITIALIZING or (
            self.state is MonitorState.UNINITIALIZED and not self._known
        )
        logger.debug(
            "Checking for new contacts (state=%s, known=%d)",
            self.state.value,
            len(self._known),
        )
        try:
            contacts = await self._source.list_contacts()
        except PermissionDenied as e:
            logger.warning("Skipping contact check: %s", e)
            return CheckResult(failed=True)
        except Exception:
            logger.exception("Error checking for new contacts")
            return CheckResult(failed=True)

        new_contacts: list[DeviceContact] = []
        for contact in contacts:
            if contact.id not in self._known:
                self._known.add(contact.id)
                new_contacts.append(contact)
        new_ids = [c.id for c in new_contacts]

        if new_contacts:
            logger.info(
                "Found %d new contact(s): %s",
                len(new_contacts),
                ", ".join(c.display_name for c in new_contacts),
            )
            await self._known_store.save(self._known)

        if bootstrap:
            if new_contacts:
                logger.info(
                    "Skipping notifications during initial load (%d contacts added to known list)",
                    len(new_contacts),
                )
            if self._machine.send(WARMUP_COMPLETE):
                logger.info("Initialization complete - now monitoring for new contacts")
            return CheckResult(new_contact_ids=new_ids, suppressed=True)

        for contact in new_contacts:
            await self.route(self._project(contact))
        return CheckResult(new_contact_ids=new_ids, routed=len(new_contacts))

    def _project(self, contact: DeviceContact) -> PendingContact:
        phone = contact.phones[0] if contact.phones else ""
        if phone and self._normalize_phone is not None:
            phone = self._normalize_phone(phone) or phone
        return PendingContact.from_device_contact(contact, phone=phone)

    # --- routing ---

    async def route(self, contact: PendingContact) -> None:
        callback = self._navigation_callback
        if self._app_state is AppState.FOREGROUND and callback is not None:
            logger.info("Opening context capture for %s", contact.name)
            self._navigate(callback, contact)
            return
        self._pending.append(contact)
        await self._notify(contact)

    async def _notify(self, contact: PendingContact) -> None:
        try:
            await self._dispatcher.schedule(build_notification(contact))
        except Exception:
            logger.exception("Failed to schedule notification for %s", contact.id)
            return
        logger.info("Notification sent for: %s", contact.name)

    def _navigate(self, callback: NavigationCallback, contact: PendingContact) -> bool:
        try:
            callback(contact)
        except Exception:
            logger.exception("Navigation callback failed for %s", contact.id)
            return False
        return True

    async def test_notification(self) -> PendingContact:
        """Route a fixed fake contact, for diagnostics. It is not added to the known set."""
        contact = self._project(TEST_CONTACT)
        await self.route(contact)
        return contact

    # --- delivery to the navigation layer ---

    def deliver_pending(self) -> PendingContact | None:
        """Empty the pending queue: the first entry is navigated to now, the rest wait in the backlog.

        Returns the delivered contact, or None if there was nothing to deliver or no callback.
        """
        callback = self._navigation_callback
        if not self._pending or callback is None:
            return None
        first, *rest = self._pending
        self._pending = []
        self._backlog.extend(rest)
        if rest:
            logger.info("%d more pending contact(s) waiting in backlog", len(rest))
        self._navigate(callback, first)
        return first

    def acknowledge_navigation(self) -> PendingContact | None:
        """The user dismissed the capture screen: deliver the next backlog entry, if any."""
        callback = self._navigation_callback
        if not self._backlog or callback is None:
            return None
        contact = self._backlog.popleft()
        self._navigate(callback, contact)
        return contact

    def handle_notification_response(self, data: dict | None) -> PendingContact | None:
        """Deliver the contact carried by a tapped notification.

        The same contact is removed from the pending queue and backlog so it is
        not delivered a second time on the next foreground transition.
        """
        if not isinstance(data, dict):
            return None
        if data.get("action", NOTIFICATION_ACTION) != NOTIFICATION_ACTION:
            return None
        try:
            contact = PendingContact.from_payload(data.get("contactData"))
        except ValueError as e:
            logger.warning("Ignoring notification response: %s", e)
            return None
        self._pending = [p for p in self._pending if p.id != contact.id]
        self._backlog = deque(p for p in self._backlog if p.id != contact.id)
        callback = self._navigation_callback
        if callback is None:
            logger.warning(
                "No navigation callback registered; keeping %s pending", contact.id
            )
            self._pending.append(contact)
            return None
        self._navigate(callback, contact)
        return contact
