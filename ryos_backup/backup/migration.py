"""Migration from filename-keyed records to identifier-keyed records.

Older installs stored ``documents`` and ``images`` records under their
filename and linked file metadata by name. The current scheme keys every
record by a generated UUID and stores that UUID on the metadata entry.
"""

from collections import defaultdict, deque
from dataclasses import dataclass, field
from typing import Deque, Dict, List

from pydantic import ValidationError

from ..base import BaseFlatStorage, BaseObjectStorage
from .._utils import generate_record_id, is_record_id, logger
from .models import FileMetadataStore, Snapshot, StoreRecord
from .parser import FILE_METADATA_KEY, read_file_metadata

MIGRATION_MARKER_KEY = "ryos:indexeddb-uuid-migration-v1"
MIGRATED_STORES = ("documents", "images")


@dataclass
class MigrationResult:
    snapshot: Snapshot
    mapping: Dict[str, List[str]] = field(default_factory=dict)
    migrated_records: int = 0
    linked_entries: int = 0


def link_entries(metadata: FileMetadataStore, mapping: Dict[str, List[str]]) -> int:
    """Give every file entry lacking a ``uuid`` one from ``mapping``.

    Entries are visited in ascending path order and each consumes the first
    unused identifier for its name, so two same-named files in different
    folders never share a record. Entries without a match get a fresh
    identifier.

    Returns:
        Number of entries that received a uuid.
    """
    pending: Dict[str, Deque[str]] = {name: deque(ids) for name, ids in mapping.items()}
    linked = 0
    for path in sorted(metadata.state.items):
        entry = metadata.state.items[path]
        if entry.is_directory or entry.uuid:
            continue
        queue = pending.get(entry.name)
        entry.uuid = queue.popleft() if queue else generate_record_id()
        linked += 1
    return linked


class LegacyKeyMigrator:
    """Rewrite legacy record keys to generated identifiers."""

    def __init__(
        self,
        metadata_key: str = FILE_METADATA_KEY,
        marker_key: str = MIGRATION_MARKER_KEY,
    ):
        self.metadata_key = metadata_key
        self.marker_key = marker_key

    def migrate(self, snapshot: Snapshot) -> MigrationResult:
        """Migrate a parsed legacy snapshot into a staged copy.

        The input snapshot is left untouched.
        """
        staged = snapshot.model_copy(deep=True)
        mapping: Dict[str, List[str]] = defaultdict(list)
        # Records already keyed by identifier can still be claimed by name
        existing: Dict[str, List[str]] = defaultdict(list)
        migrated = 0

        for store in MIGRATED_STORES:
            rekeyed = []
            for record in staged.object_stores.get(store):
                if is_record_id(record.key):
                    existing[record.name].append(record.key)
                    rekeyed.append(record)
                    continue
                new_id = generate_record_id()
                mapping[record.key].append(new_id)
                rekeyed.append(StoreRecord(key=new_id, value=record.value))
                migrated += 1
            setattr(staged.object_stores, store, rekeyed)

        linked = 0
        metadata = read_file_metadata(staged.flat_store, self.metadata_key)
        if metadata is not None:
            linkable = {name: ids + existing.get(name, []) for name, ids in mapping.items()}
            for name, ids in existing.items():
                linkable.setdefault(name, ids)
            linked = link_entries(metadata, linkable)
            staged.flat_store[self.metadata_key] = metadata.to_json()

        logger.info(f"Migrated {migrated} legacy records, linked {linked} metadata entries")
        return MigrationResult(
            snapshot=staged,
            mapping=dict(mapping),
            migrated_records=migrated,
            linked_entries=linked,
        )

    async def migrate_storage(
        self,
        object_storage: BaseObjectStorage,
        flat_storage: BaseFlatStorage,
        force: bool = False,
    ) -> int:
        """Migrate live storage in place.

        Each legacy record is moved with get -> put under the new key ->
        delete the old key. A key that disappeared since enumeration was
        already migrated and is skipped.

        Returns:
            Number of records moved.
        """
        if not force and await self.is_complete(flat_storage):
            logger.info("UUID migration already complete, skipping")
            return 0

        mapping: Dict[str, List[str]] = defaultdict(list)
        moved = 0
        for store in MIGRATED_STORES:
            legacy_keys = [
                key async for key, _ in object_storage.open_cursor(store)
                if not is_record_id(key)
            ]
            for old_key in legacy_keys:
                value = await object_storage.get(store, old_key)
                if value is None:
                    logger.debug(f"{store}/{old_key} already migrated")
                    continue
                new_id = generate_record_id()
                await object_storage.put(store, new_id, value)
                await object_storage.delete(store, old_key)
                mapping[old_key].append(new_id)
                moved += 1

        raw = await flat_storage.get(self.metadata_key)
        if raw:
            try:
                metadata = FileMetadataStore.from_json(raw)
            except (ValidationError, ValueError) as e:
                logger.warning(f"Cannot link file metadata during migration: {e}")
            else:
                if link_entries(metadata, mapping):
                    await flat_storage.set(self.metadata_key, metadata.to_json())

        await self.mark_complete(flat_storage)
        logger.info(f"In-place UUID migration moved {moved} records")
        return moved

    async def is_complete(self, flat_storage: BaseFlatStorage) -> bool:
        return (await flat_storage.get(self.marker_key)) == "true"

    async def mark_complete(self, flat_storage: BaseFlatStorage) -> None:
        await flat_storage.set(self.marker_key, "true")
