"""Persisted monitor state: known contact ids and the monitoring toggle.

Both stores serialize to JSON under fixed keys of a KeyValueStore. Storage
failures never propagate: reads fall back to the empty state, writes are
dropped. Either way the failure is logged.
"""

import json
import logging
from collections.abc import Iterable

from contextcrm.application.ports import KeyValueStore

logger = logging.getLogger(__name__)

KNOWN_CONTACTS_KEY = "@context_crm:known_contacts"
MONITORING_ENABLED_KEY = "@context_crm:monitoring_enabled"


class KnownContactStore:
    """Set of contact ids already seen, saved in full on every mutation."""

    def __init__(self, storage: KeyValueStore, *, key: str = KNOWN_CONTACTS_KEY) -> None:
        self._storage = storage
        self._key = key

    async def load(self) -> set[str]:
        try:
            raw = await self._storage.get(self._key)
        except Exception:
            logger.exception("Failed to load known contacts")
            return set()
        if raw is None:
            logger.info("No known contacts stored; starting fresh")
            return set()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Known contacts entry is not valid JSON; starting fresh")
            return set()
        if not isinstance(data, list) or not all(isinstance(i, str) for i in data):
            logger.warning("Known contacts entry is not a list of ids; starting fresh")
            return set()
        ids = set(data)
        logger.info("Loaded %d known contacts from storage", len(ids))
        return ids

    async def save(self, ids: Iterable[str]) -> bool:
        """Overwrite the stored set. Returns False if the write was dropped."""
        try:
            await self._storage.set(self._key, json.dumps(sorted(ids)))
        except Exception:
            logger.exception("Failed to save known contacts")
            return False
        return True


class MonitoringStateStore:
    """Whether the user enabled monitoring. Defaults to False."""

    def __init__(
        self, storage: KeyValueStore, *, key: str = MONITORING_ENABLED_KEY
    ) -> None:
        self._storage = storage
        self._key = key

    async def load(self) -> bool:
        try:
            raw = await self._storage.get(self._key)
        except Exception:
            logger.exception("Failed to load monitoring state")
            return False
        if raw is None:
            return False
        try:
            value = json.loads(raw)
        except ValueError:
            logger.warning("Monitoring state entry is not valid JSON; assuming disabled")
            return False
        return value is True

    async def save(self, enabled: bool) -> bool:
        try:
            await self._storage.set(self._key, json.dumps(bool(enabled)))
        except Exception:
            logger.exception("Failed to save monitoring state")
            return False
        return True
