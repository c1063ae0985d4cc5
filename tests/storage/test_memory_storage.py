"""Tests for the in-memory storage backends."""

import pytest

from ryos_backup.base import Blob


@pytest.mark.asyncio
async def test_flat_storage_crud(flat_storage):
    await flat_storage.set("a", "1")
    await flat_storage.set("b", "2")
    assert await flat_storage.get("a") == "1"
    assert await flat_storage.get_all() == {"a": "1", "b": "2"}

    await flat_storage.delete("a")
    await flat_storage.delete("missing")
    assert await flat_storage.get("a") is None

    await flat_storage.clear()
    assert await flat_storage.get_all() == {}


@pytest.mark.asyncio
async def test_flat_storage_rejects_non_strings(flat_storage):
    with pytest.raises(TypeError):
        await flat_storage.set("a", 1)


@pytest.mark.asyncio
async def test_object_storage_cursor_is_ordered(object_storage):
    for key in ("c", "a", "b"):
        await object_storage.put("documents", key, {"name": key})

    assert [k async for k, _ in object_storage.open_cursor("documents")] == ["a", "b", "c"]


@pytest.mark.asyncio
async def test_object_storage_copies_values(object_storage):
    value = {"name": "a", "content": Blob(b"\x00")}
    await object_storage.put("images", "a", value)
    value["name"] = "changed"

    stored = await object_storage.get("images", "a")
    assert stored["name"] == "a"
    stored["name"] = "changed again"
    assert (await object_storage.get("images", "a"))["name"] == "a"


@pytest.mark.asyncio
async def test_object_storage_stores_are_isolated(object_storage):
    await object_storage.put("documents", "a", {})
    await object_storage.clear("images")
    assert await object_storage.get("documents", "a") == {}
    assert await object_storage.get("images", "a") is None


@pytest.mark.asyncio
async def test_object_storage_unknown_store(object_storage):
    with pytest.raises(KeyError):
        await object_storage.put("music", "a", {})
