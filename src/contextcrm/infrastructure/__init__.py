"""Infrastructure layer: concrete implementations of application ports."""

from contextcrm.infrastructure.addressbook import AddressBookSnapshotSource
from contextcrm.infrastructure.background_tasks import (
    AsyncioBackgroundTaskApi,
    UnavailableBackgroundTaskApi,
)
from contextcrm.infrastructure.file_store import JsonFileKeyValueStore
from contextcrm.infrastructure.memory_contacts import InMemoryContactSnapshotSource
from contextcrm.infrastructure.memory_store import InMemoryKeyValueStore
from contextcrm.infrastructure.notifications import InMemoryNotificationDispatcher
from contextcrm.infrastructure.phone import normalize_phone, phone_normalizer
from contextcrm.infrastructure.telegram_dispatcher import TelegramNotificationDispatcher

__all__ = [
    "AddressBookSnapshotSource",
    "AsyncioBackgroundTaskApi",
    "InMemoryContactSnapshotSource",
    "InMemoryKeyValueStore",
    "InMemoryNotificationDispatcher",
    "JsonFileKeyValueStore",
    "TelegramNotificationDispatcher",
    "UnavailableBackgroundTaskApi",
    "normalize_phone",
    "phone_normalizer",
]
