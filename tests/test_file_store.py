"""Tests for the JSON-file key/value store."""

import pytest

from contextcrm.application import KnownContactStore, StorageReadError
from contextcrm.infrastructure import JsonFileKeyValueStore


@pytest.mark.asyncio
async def test_missing_file_reads_none(tmp_path) -> None:
    store = JsonFileKeyValueStore(tmp_path / "state.json")
    assert await store.get("k") is None


@pytest.mark.asyncio
async def test_values_survive_new_instance(tmp_path) -> None:
    path = tmp_path / "nested" / "state.json"
    await JsonFileKeyValueStore(path).set("a", "1")
    await JsonFileKeyValueStore(path).set("b", "2")
    store = JsonFileKeyValueStore(path)
    assert await store.get("a") == "1"
    assert await store.get("b") == "2"


@pytest.mark.asyncio
async def test_corrupt_file_raises_on_read_and_is_replaced_on_write(tmp_path) -> None:
    path = tmp_path / "state.json"
    path.write_text("{oops", encoding="utf-8")
    store = JsonFileKeyValueStore(path)
    with pytest.raises(StorageReadError):
        await store.get("a")
    assert await KnownContactStore(store).load() == set()

    await store.set("a", "1")
    assert await store.get("a") == "1"


@pytest.mark.asyncio
async def test_known_contacts_persist_across_restart(tmp_path) -> None:
    path = tmp_path / "state.json"
    await KnownContactStore(JsonFileKeyValueStore(path)).save({"x", "y"})
    assert await KnownContactStore(JsonFileKeyValueStore(path)).load() == {"x", "y"}
