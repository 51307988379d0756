"""JSON-file implementation of KeyValueStore. All keys live in one JSON object on disk."""

import asyncio
import json
from pathlib import Path

from contextcrm.application.errors import StorageReadError, StorageWriteError


class JsonFileKeyValueStore:
    """Survives process restarts. Every set rewrites the whole file."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)
        self._lock = asyncio.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def _read(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            obj = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise StorageReadError(f"Cannot read {self._path}: {e}") from e
        if not isinstance(obj, dict):
            raise StorageReadError(f"{self._path} does not hold a JSON object")
        return obj

    def _write(self, key: str, value: str) -> None:
        try:
            obj = self._read()
        except StorageReadError:
            # A corrupt file is replaced rather than blocking every future write.
            obj = {}
        obj[key] = value
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            self._path.write_text(json.dumps(obj), encoding="utf-8")
        except OSError as e:
            raise StorageWriteError(f"Cannot write {self._path}: {e}") from e

    async def get(self, key: str) -> str | None:
        obj = await asyncio.to_thread(self._read)
        value = obj.get(key)
        return value if isinstance(value, str) else None

    async def set(self, key: str, value: str) -> None:
        async with self._lock:
            await asyncio.to_thread(self._write, key, value)
