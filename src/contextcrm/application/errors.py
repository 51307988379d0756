"""Failure conditions raised by ports. The monitor converts them into logged no-ops."""


class ContactMonitorError(Exception):
    """Base class for contact monitor failures."""


class PermissionDenied(ContactMonitorError):
    """The user has not granted access to a capability (contacts or notifications)."""

    def __init__(self, capability: str = "contacts") -> None:
        super().__init__(f"{capability} permission not granted")
        self.capability = capability


class SnapshotReadError(ContactMonitorError):
    """The platform contact list could not be read."""


class StorageReadError(ContactMonitorError):
    pass


class StorageWriteError(ContactMonitorError):
    pass


class BackgroundRegistrationError(ContactMonitorError):
    """The host refused or could not register a background task."""
