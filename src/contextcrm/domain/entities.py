"""Domain entities: DeviceContact, AppState and MonitorState."""

from dataclasses import dataclass, field
from enum import Enum

UNKNOWN_NAME = "Unknown"


class AppState(str, Enum):
    """Whether the host app is visible to the user."""

    FOREGROUND = "foreground"
    BACKGROUND = "background"


class MonitorState(str, Enum):
    """Lifecycle of the contact change detector."""

    UNINITIALIZED = "uninitialized"
    INITIALIZING = "initializing"
    MONITORING = "monitoring"
    SUSPENDED = "suspended"


@dataclass(frozen=True)
class DeviceContact:
    """
    One record of the device address book as read by a snapshot source.
    The id is platform-assigned and unique within the device's contact store.
    """

    id: str
    name: str | None = None
    phones: tuple[str, ...] = field(default_factory=tuple)
    emails: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self):
        if not self.id or not str(self.id).strip():
            raise ValueError("DeviceContact id must be non-empty.")
        object.__setattr__(self, "id", str(self.id))
        object.__setattr__(self, "phones", tuple(p for p in self.phones if p))
        object.__setattr__(self, "emails", tuple(e for e in self.emails if e))

    @property
    def display_name(self) -> str:
        return (self.name or "").strip() or UNKNOWN_NAME
