"""Data transfer objects passed between the monitor, its ports and the UI layer."""

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from contextcrm.domain import DeviceContact


@dataclass(frozen=True)
class PendingContact:
    """Projection of a newly detected contact, handed to navigation or carried by a notification."""

    id: str
    name: str
    phone: str = ""
    email: str = ""

    @classmethod
    def from_device_contact(
        cls, contact: DeviceContact, *, phone: str | None = None
    ) -> "PendingContact":
        """Project a device record. phone overrides the first stored number (e.g. normalized)."""
        if phone is None:
            phone = contact.phones[0] if contact.phones else ""
        return cls(
            id=contact.id,
            name=contact.display_name,
            phone=phone,
            email=contact.emails[0] if contact.emails else "",
        )

    def to_payload(self) -> dict[str, str]:
        return {"id": self.id, "name": self.name, "phone": self.phone, "email": self.email}

    @classmethod
    def from_payload(cls, payload: dict | str | None) -> "PendingContact":
        """Rebuild from a notification payload (dict or JSON string). Raises ValueError if unusable."""
        if isinstance(payload, str):
            try:
                payload = json.loads(payload)
            except ValueError as e:
                raise ValueError("Contact payload is not valid JSON.") from e
        if not isinstance(payload, dict):
            raise ValueError("Contact payload must be an object.")
        contact_id = str(payload.get("id") or "").strip()
        if not contact_id:
            raise ValueError("Contact payload has no id.")
        return cls(
            id=contact_id,
            name=str(payload.get("name") or "").strip() or "Unknown",
            phone=str(payload.get("phone") or ""),
            email=str(payload.get("email") or ""),
        )


@dataclass(frozen=True)
class NotificationRequest:
    title: str
    body: str
    data: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class CheckResult:
    """Outcome of one check_for_new_contacts call.

    skipped: a previous check was still in flight. failed: the snapshot could not be read.
    suppressed: new ids were recorded during warm-up without routing.
    """

    new_contact_ids: list[str] = field(default_factory=list)
    routed: int = 0
    suppressed: bool = False
    skipped: bool = False
    failed: bool = False


@dataclass(frozen=True)
class PermissionStatus:
    contacts: bool
    notifications: bool

    @property
    def granted(self) -> bool:
        return self.contacts and self.notifications


class BackgroundTaskResult(str, Enum):
    """Completion signal a background run reports to the host scheduler."""

    NEW_DATA = "new_data"
    NO_DATA = "no_data"
    FAILED = "failed"


@dataclass(frozen=True)
class BackgroundStatus:
    available: bool
    registered: bool
    supported: bool
