"""Tests for snapshot building."""

import pytest
from unittest.mock import AsyncMock

from ryos_backup.backup.builder import SnapshotBuilder
from ryos_backup.backup.codec import decode_value
from ryos_backup.backup.compression import compress_stream, decompress_stream
from ryos_backup.backup.parser import parse_snapshot
from ryos_backup.backup.utils import iter_snapshot_json
from ryos_backup.base import Blob
from ryos_backup.exceptions import FlatStoreUnavailableError


@pytest.mark.asyncio
async def test_build_captures_everything(flat_storage, object_storage, populated_storage):
    result = await SnapshotBuilder(flat_storage, object_storage).build()
    snapshot = result.snapshot

    assert snapshot.version == 2
    assert snapshot.timestamp.endswith("Z")
    assert snapshot.flat_store["ryos:theme"] == "macosx"
    assert [r.key for r in snapshot.object_stores.documents] == [populated_storage["documents"]]
    image = snapshot.object_stores.images[0]
    assert image.value["content"].startswith("data:image/png;base64,")
    assert image.value["_isBlob_content"] is True
    assert result.failed_stores == []
    assert result.statistics == {
        "documents": 1, "images": 1, "trash": 0, "custom_wallpapers": 1, "settings": 2,
    }


@pytest.mark.asyncio
async def test_build_empty_storage(flat_storage, object_storage):
    result = await SnapshotBuilder(flat_storage, object_storage).build()
    assert result.snapshot.flat_store == {}
    assert sum(result.snapshot.object_stores.counts().values()) == 0


@pytest.mark.asyncio
async def test_build_degrades_when_a_store_fails(flat_storage, object_storage, populated_storage):
    original_cursor = object_storage.open_cursor

    def failing_cursor(store):
        if store == "images":
            raise OSError("store is corrupted")
        return original_cursor(store)

    object_storage.open_cursor = failing_cursor

    result = await SnapshotBuilder(flat_storage, object_storage).build()

    assert result.failed_stores == ["images"]
    assert result.snapshot.object_stores.images == []
    assert len(result.snapshot.object_stores.documents) == 1
    assert result.snapshot.flat_store["ryos:theme"] == "macosx"


@pytest.mark.asyncio
async def test_build_fails_without_flat_store(flat_storage, object_storage):
    flat_storage.get_all = AsyncMock(side_effect=OSError("denied"))
    with pytest.raises(FlatStoreUnavailableError):
        await SnapshotBuilder(flat_storage, object_storage).build()


@pytest.mark.asyncio
async def test_built_snapshot_survives_compressed_serialization(flat_storage, object_storage, populated_storage):
    snapshot = (await SnapshotBuilder(flat_storage, object_storage).build()).snapshot

    compressed = [c async for c in compress_stream(iter_snapshot_json(snapshot, chunk_size=64))]
    payload = b"".join([c async for c in decompress_stream(compressed, chunk_size=64)])
    restored = parse_snapshot(payload)

    assert restored == snapshot
    image = decode_value(restored.object_stores.images[0].value)
    original = await object_storage.get("images", populated_storage["images"])
    assert image["content"] == original["content"]
    assert isinstance(image["content"], Blob)
