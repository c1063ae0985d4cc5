"""Tests for legacy key migration."""

import json

import pytest

from ryos_backup._utils import is_record_id
from ryos_backup.backup.migration import LegacyKeyMigrator, MIGRATION_MARKER_KEY, link_entries
from ryos_backup.backup.models import FileMetadataStore, FormatKind, Snapshot
from ryos_backup.backup.parser import classify_format, parse_snapshot, read_file_metadata
from tests.utils import file_tree


def legacy_snapshot(flat_store=None, documents=None, images=None):
    return parse_snapshot(json.dumps({
        "version": 2,
        "flatStore": flat_store or {},
        "objectStores": {"documents": documents or [], "images": images or []},
    }))


def test_single_document_scenario():
    snapshot = legacy_snapshot(
        flat_store={"k1": "v1"},
        documents=[{"key": "a.txt", "value": {"name": "a.txt", "content": "hi"}}],
    )
    assert classify_format(snapshot) == FormatKind.LEGACY

    result = LegacyKeyMigrator().migrate(snapshot)

    records = result.snapshot.object_stores.documents
    assert len(records) == 1
    assert is_record_id(records[0].key)
    assert records[0].value["content"] == "hi"
    assert result.mapping == {"a.txt": [records[0].key]}
    assert result.migrated_records == 1
    # input left untouched
    assert snapshot.object_stores.documents[0].key == "a.txt"


def test_migration_completeness():
    names = [f"file{i}.txt" for i in range(5)]
    tree = file_tree(
        [("/Documents", "Documents", True, None)]
        + [(f"/Documents/{n}", n, False, None) for n in names]
    )
    snapshot = legacy_snapshot(
        flat_store={"ryos:files": tree},
        documents=[{"key": n, "value": {"name": n}} for n in names],
    )

    result = LegacyKeyMigrator().migrate(snapshot)

    keys = [r.key for r in result.snapshot.object_stores.documents]
    assert len(keys) == 5
    assert all(is_record_id(k) for k in keys)
    metadata = read_file_metadata(result.snapshot.flat_store)
    linked = {e.uuid for e in metadata.files()}
    assert linked == set(keys)
    assert metadata.state.items["/Documents"].uuid is None


def test_existing_identifiers_kept():
    existing = "7c9e6679-7425-40de-944b-e07fc1f90ae7"
    snapshot = legacy_snapshot(
        flat_store={"ryos:files": file_tree([("/Images/cat.png", "cat.png", False, None)])},
        images=[{"key": existing, "value": {"name": "cat.png"}}],
    )

    result = LegacyKeyMigrator().migrate(snapshot)

    assert result.migrated_records == 0
    assert [r.key for r in result.snapshot.object_stores.images] == [existing]
    metadata = read_file_metadata(result.snapshot.flat_store)
    assert metadata.state.items["/Images/cat.png"].uuid == existing


def test_unmatched_entry_gets_fresh_identifier():
    snapshot = legacy_snapshot(
        flat_store={"ryos:files": file_tree([("/Documents/ghost.txt", "ghost.txt", False, None)])},
    )
    result = LegacyKeyMigrator().migrate(snapshot)
    entry = read_file_metadata(result.snapshot.flat_store).state.items["/Documents/ghost.txt"]
    assert is_record_id(entry.uuid)


def test_link_entries_duplicate_names_consumed_once():
    metadata = FileMetadataStore.from_json(file_tree([
        ("/Documents/b/readme.txt", "readme.txt", False, None),
        ("/Documents/a/readme.txt", "readme.txt", False, None),
    ]))
    linked = link_entries(metadata, {"readme.txt": ["id-1", "id-2"]})

    assert linked == 2
    items = metadata.state.items
    assert items["/Documents/a/readme.txt"].uuid == "id-1"
    assert items["/Documents/b/readme.txt"].uuid == "id-2"


def test_link_entries_skips_directories_and_linked():
    metadata = FileMetadataStore.from_json(file_tree([
        ("/Documents", "Documents", True, None),
        ("/Documents/a.txt", "a.txt", False, "keep-me"),
    ]))
    assert link_entries(metadata, {"a.txt": ["other"]}) == 0
    assert metadata.state.items["/Documents/a.txt"].uuid == "keep-me"


@pytest.mark.asyncio
async def test_migrate_storage_in_place(flat_storage, object_storage):
    await object_storage.put("documents", "a.txt", {"name": "a.txt", "content": "hi"})
    await object_storage.put("images", "cat.png", {"name": "cat.png"})
    await flat_storage.set("ryos:files", file_tree([
        ("/Documents/a.txt", "a.txt", False, None),
        ("/Images/cat.png", "cat.png", False, None),
    ]))

    moved = await LegacyKeyMigrator().migrate_storage(object_storage, flat_storage)

    assert moved == 2
    docs = [(k, v) async for k, v in object_storage.open_cursor("documents")]
    assert len(docs) == 1 and is_record_id(docs[0][0])
    assert docs[0][1]["content"] == "hi"
    assert await object_storage.get("documents", "a.txt") is None

    metadata = FileMetadataStore.from_json(await flat_storage.get("ryos:files"))
    assert metadata.state.items["/Documents/a.txt"].uuid == docs[0][0]
    assert await flat_storage.get(MIGRATION_MARKER_KEY) == "true"


@pytest.mark.asyncio
async def test_migrate_storage_skips_when_marked(flat_storage, object_storage):
    await object_storage.put("documents", "a.txt", {"name": "a.txt"})
    await flat_storage.set(MIGRATION_MARKER_KEY, "true")

    assert await LegacyKeyMigrator().migrate_storage(object_storage, flat_storage) == 0
    assert await object_storage.get("documents", "a.txt") is not None

    assert await LegacyKeyMigrator().migrate_storage(object_storage, flat_storage, force=True) == 1


@pytest.mark.asyncio
async def test_migrate_storage_tolerates_vanished_keys(flat_storage, object_storage):
    """A key removed between enumeration and read counts as already migrated."""
    await object_storage.put("documents", "a.txt", {"name": "a.txt"})
    await object_storage.put("documents", "b.txt", {"name": "b.txt"})

    original_get = object_storage.get

    async def get_after_concurrent_migration(store, key):
        if key == "a.txt":
            await object_storage.delete(store, key)
        return await original_get(store, key)

    object_storage.get = get_after_concurrent_migration

    moved = await LegacyKeyMigrator().migrate_storage(object_storage, flat_storage)
    assert moved == 1
    keys = [k async for k, _ in object_storage.open_cursor("documents")]
    assert len(keys) == 1 and is_record_id(keys[0])


@pytest.mark.asyncio
async def test_marker_roundtrip(flat_storage):
    migrator = LegacyKeyMigrator()
    assert not await migrator.is_complete(flat_storage)
    await migrator.mark_complete(flat_storage)
    assert await migrator.is_complete(flat_storage)
