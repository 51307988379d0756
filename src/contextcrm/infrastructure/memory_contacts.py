"""In-memory ContactSnapshotSource: a scriptable address book for tests and local runs."""

from collections.abc import Callable, Iterable

from contextcrm.application.errors import PermissionDenied
from contextcrm.domain import DeviceContact


class InMemoryContactSnapshotSource:
    """Contacts are kept in insertion order. Listeners fire on add/remove when change events are enabled."""

    def __init__(
        self,
        contacts: Iterable[DeviceContact] = (),
        *,
        permission_granted: bool = True,
        supports_change_events: bool = False,
    ) -> None:
        self._contacts: dict[str, DeviceContact] = {c.id: c for c in contacts}
        self.permission_granted = permission_granted
        self.supports_change_events = supports_change_events
        self.list_calls = 0
        self._listeners: list[Callable[[], None]] = []

    async def request_permission(self) -> bool:
        return self.permission_granted

    async def list_contacts(self) -> list[DeviceContact]:
        self.list_calls += 1
        if not self.permission_granted:
            raise PermissionDenied("contacts")
        return list(self._contacts.values())

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def add(self, contact: DeviceContact) -> None:
        self._contacts[contact.id] = contact
        self._notify()

    def remove(self, contact_id: str) -> None:
        if self._contacts.pop(contact_id, None) is not None:
            self._notify()

    def _notify(self) -> None:
        if not self.supports_change_events:
            return
        for listener in list(self._listeners):
            listener()
