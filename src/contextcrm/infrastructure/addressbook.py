"""
ContactSnapshotSource backed by the macOS AddressBook database.

Reads the Core Data SQLite store(s) under ~/Library/Application Support/AddressBook
read-only. Contacts synced from iCloud or other accounts live in per-source
databases under Sources/<UUID>/; every source is read and merged.
"""

import asyncio
import logging
import sqlite3
from collections import defaultdict
from collections.abc import Callable
from pathlib import Path

from contextcrm.application.errors import PermissionDenied, SnapshotReadError
from contextcrm.domain import DeviceContact

logger = logging.getLogger(__name__)

ADDRESSBOOK_DIR = Path.home() / "Library/Application Support/AddressBook"
DB_NAME = "AddressBook-v22.abcddb"

_RECORDS_QUERY = """
SELECT Z_PK, ZUNIQUEID, ZFIRSTNAME, ZLASTNAME, ZORGANIZATION
FROM ZABCDRECORD
WHERE ZFIRSTNAME IS NOT NULL
   OR ZLASTNAME IS NOT NULL
   OR ZORGANIZATION IS NOT NULL
ORDER BY Z_PK
"""

_PHONES_QUERY = """
SELECT ZOWNER, ZFULLNUMBER FROM ZABCDPHONENUMBER
WHERE ZFULLNUMBER IS NOT NULL
ORDER BY Z_PK
"""

_EMAILS_QUERY = """
SELECT ZOWNER, ZADDRESS FROM ZABCDEMAILADDRESS
WHERE ZADDRESS IS NOT NULL
ORDER BY Z_PK
"""


def find_databases(root: Path = ADDRESSBOOK_DIR) -> list[Path]:
    """Return the root database (if present) followed by every per-source database."""
    dbs = []
    main_db = root / DB_NAME
    if main_db.exists():
        dbs.append(main_db)
    sources_dir = root / "Sources"
    if sources_dir.is_dir():
        dbs.extend(sorted(sources_dir.glob(f"*/{DB_NAME}")))
    return dbs


def _display_name(row: sqlite3.Row) -> str | None:
    name = " ".join(p for p in (row["ZFIRSTNAME"], row["ZLASTNAME"]) if p).strip()
    return name or (row["ZORGANIZATION"] or "").strip() or None


def read_contacts(db_path: Path) -> list[DeviceContact]:
    conn = sqlite3.connect(f"file:{db_path}?mode=ro", uri=True, timeout=5)
    conn.row_factory = sqlite3.Row
    try:
        records = conn.execute(_RECORDS_QUERY).fetchall()
        phones: dict[int, list[str]] = defaultdict(list)
        for row in conn.execute(_PHONES_QUERY):
            phones[row["ZOWNER"]].append(row["ZFULLNUMBER"])
        emails: dict[int, list[str]] = defaultdict(list)
        for row in conn.execute(_EMAILS_QUERY):
            emails[row["ZOWNER"]].append(row["ZADDRESS"])
    finally:
        conn.close()
    return [
        DeviceContact(
            id=row["ZUNIQUEID"] or f"{db_path.parent.name}:{row['Z_PK']}",
            name=_display_name(row),
            phones=tuple(phones.get(row["Z_PK"], ())),
            emails=tuple(emails.get(row["Z_PK"], ())),
        )
        for row in records
    ]


class AddressBookSnapshotSource:
    """Polled source; the AddressBook database offers no change notifications we can subscribe to."""

    supports_change_events = False

    def __init__(self, root: Path | str = ADDRESSBOOK_DIR) -> None:
        self._root = Path(root)

    async def request_permission(self) -> bool:
        """Access is granted by the OS (Full Disk Access), not by a prompt; report whether we can read."""
        try:
            await self.list_contacts()
        except (PermissionDenied, SnapshotReadError):
            return False
        return True

    async def list_contacts(self) -> list[DeviceContact]:
        return await asyncio.to_thread(self._list_contacts)

    def _list_contacts(self) -> list[DeviceContact]:
        dbs = find_databases(self._root)
        if not dbs:
            raise PermissionDenied("contacts")
        seen: dict[str, DeviceContact] = {}
        for db_path in dbs:
            try:
                contacts = read_contacts(db_path)
            except sqlite3.DatabaseError as e:
                if "authorization" in str(e).lower() or "unable to open" in str(e).lower():
                    raise PermissionDenied("contacts") from e
                raise SnapshotReadError(f"Cannot read {db_path}: {e}") from e
            for contact in contacts:
                seen.setdefault(contact.id, contact)
        logger.debug("Read %d contacts from %d AddressBook database(s)", len(seen), len(dbs))
        return list(seen.values())

    def subscribe(self, listener: Callable[[], None]) -> Callable[[], None]:
        return lambda: None
