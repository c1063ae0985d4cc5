"""Compose live storage into an in-memory snapshot."""

import asyncio
from dataclasses import dataclass, field
from typing import Dict, List, Tuple

from ..base import BaseFlatStorage, BaseObjectStorage, OBJECT_STORE_NAMES
from .._utils import logger, utc_now_iso
from ..exceptions import FlatStoreUnavailableError
from .models import ObjectStores, Snapshot, StoreRecord, SNAPSHOT_VERSION
from .stores import StoreReader


@dataclass
class BuildResult:
    snapshot: Snapshot
    failed_stores: List[str] = field(default_factory=list)

    @property
    def statistics(self) -> Dict[str, int]:
        stats = self.snapshot.object_stores.counts()
        stats["settings"] = len(self.snapshot.flat_store)
        return stats


class SnapshotBuilder:
    """Read the flat store and every object store into a fresh Snapshot."""

    def __init__(self, flat_storage: BaseFlatStorage, object_storage: BaseObjectStorage):
        self.flat_storage = flat_storage
        self.reader = StoreReader(object_storage)

    async def build(self) -> BuildResult:
        """Build a snapshot of the current storage state.

        Returns:
            BuildResult with the snapshot and the names of object stores that
            could not be read (their record lists are empty).

        Raises:
            FlatStoreUnavailableError: if the flat store cannot be read.
        """
        try:
            flat_store = await self.flat_storage.get_all()
        except Exception as e:
            logger.error(f"Flat store unreadable, aborting backup: {e}")
            raise FlatStoreUnavailableError(f"Cannot read settings store: {e}") from e

        results = await asyncio.gather(
            *(self._read_store(name) for name in OBJECT_STORE_NAMES)
        )

        stores = {}
        failed = []
        for name, (records, ok) in zip(OBJECT_STORE_NAMES, results):
            stores[name] = records
            if not ok:
                failed.append(name)

        snapshot = Snapshot(
            version=SNAPSHOT_VERSION,
            timestamp=utc_now_iso(),
            flat_store=dict(flat_store),
            object_stores=ObjectStores(**stores),
        )
        logger.info(
            f"Snapshot built: {len(flat_store)} settings, "
            f"{sum(len(r) for r in stores.values())} records"
        )
        return BuildResult(snapshot=snapshot, failed_stores=failed)

    async def _read_store(self, store: str) -> Tuple[List[StoreRecord], bool]:
        try:
            records = [record async for record in self.reader.read_all(store)]
        except Exception as e:
            logger.warning(f"Failed to read object store {store}, backing up without it: {e}")
            return [], False
        logger.debug(f"Read {len(records)} records from {store}")
        return records, True
