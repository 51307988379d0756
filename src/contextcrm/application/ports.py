"""Application ports (interfaces). Implemented by infrastructure adapters."""

from collections.abc import Awaitable, Callable
from typing import Protocol

from contextcrm.application.dto import BackgroundTaskResult, NotificationRequest
from contextcrm.domain import DeviceContact

ChangeListener = Callable[[], None]
BackgroundCallback = Callable[[], Awaitable[BackgroundTaskResult]]


class ContactSnapshotSource(Protocol):
    """Reads the full current contact list from the host platform."""

    supports_change_events: bool

    async def request_permission(self) -> bool:
        """Ask for contacts access. Returns True if granted."""
        ...

    async def list_contacts(self) -> list[DeviceContact]:
        """Return every contact on the device. Raises PermissionDenied without access."""
        ...

    def subscribe(self, listener: ChangeListener) -> Callable[[], None]:
        """Call listener on the event loop when the contact list changes. Returns an unsubscribe function.
        Only meaningful when supports_change_events is True.
        """
        ...


class KeyValueStore(Protocol):
    """String-keyed, string-valued persistent storage."""

    async def get(self, key: str) -> str | None:
        ...

    async def set(self, key: str, value: str) -> None:
        ...


class NotificationDispatcher(Protocol):
    async def request_permission(self) -> bool:
        ...

    async def schedule(self, request: NotificationRequest) -> None:
        """Fire-and-forget local notification. request.data must survive until the user taps it."""
        ...


class BackgroundTaskApi(Protocol):
    """Host mechanism that runs a periodic task while the app is not in the foreground."""

    async def is_available(self) -> bool:
        ...

    async def register(
        self,
        task_id: str,
        *,
        min_interval_seconds: float,
        callback: BackgroundCallback,
    ) -> None:
        """Register callback to run at most every min_interval_seconds. Raises on failure."""
        ...

    async def unregister(self, task_id: str) -> None:
        ...

    async def is_registered(self, task_id: str) -> bool:
        ...
