"""Post-restore consistency pass over the file-metadata tree."""

import posixpath
from typing import Dict, Iterable, List, Mapping, Optional, Set, Tuple

from pydantic import ValidationError

from ..base import BaseFlatStorage
from .._utils import generate_record_id, logger
from ..exceptions import MetadataReconcileError
from .models import (
    FileMetadataEntry,
    FileMetadataStore,
    LIBRARY_LOADED,
    LIBRARY_UNINITIALIZED,
    ReconcileReport,
    StoreRecord,
)
from .parser import FILE_METADATA_KEY

# path -> (name, icon)
WELL_KNOWN_DIRECTORIES: Dict[str, Tuple[str, str]] = {
    "/": ("/", "/icons/disk.png"),
    "/Applications": ("Applications", "/icons/applications.png"),
    "/Documents": ("Documents", "/icons/documents.png"),
    "/Images": ("Images", "/icons/images.png"),
    "/Music": ("Music", "/icons/sounds.png"),
    "/Sites": ("Sites", "/icons/sites.png"),
    "/Trash": ("Trash", "/icons/trash-empty.png"),
    "/Videos": ("Videos", "/icons/movies.png"),
}

# object store -> (folder, icon) for records that have no metadata entry
STORE_FOLDERS: Dict[str, Tuple[str, str]] = {
    "documents": ("/Documents", "/icons/file-text.png"),
    "images": ("/Images", "/icons/image.png"),
}


def ensure_well_known_directories(metadata: FileMetadataStore) -> List[str]:
    """Add any missing well-known directory entries. Returns created paths."""
    created = []
    for path, (name, icon) in WELL_KNOWN_DIRECTORIES.items():
        if path in metadata.state.items:
            continue
        metadata.state.items[path] = FileMetadataEntry(
            path=path,
            name=name,
            is_directory=True,
            type="directory",
            icon=icon,
            status="active",
        )
        created.append(path)
    return created


def _file_type(name: str) -> str:
    ext = posixpath.splitext(name)[1].lstrip(".").lower()
    return ext or "unknown"


def _unique_path(folder: str, name: str, taken: Mapping[str, object]) -> str:
    path = posixpath.join(folder, name)
    if path not in taken:
        return path
    stem, ext = posixpath.splitext(name)
    n = 2
    while posixpath.join(folder, f"{stem} ({n}){ext}") in taken:
        n += 1
    return posixpath.join(folder, f"{stem} ({n}){ext}")


class MetadataReconciler:
    """Guarantee metadata/object-store consistency after a restore.

    Works on a staged copy of the tree and commits it with a single write,
    only when something changed. Running it twice in a row is a no-op the
    second time.
    """

    def __init__(self, flat_storage: BaseFlatStorage, metadata_key: str = FILE_METADATA_KEY):
        self.flat_storage = flat_storage
        self.metadata_key = metadata_key

    async def reconcile(self, records_by_store: Mapping[str, Iterable[StoreRecord]]) -> ReconcileReport:
        """Reconcile the persisted tree against the restored records.

        Args:
            records_by_store: records of the object stores that were written
                successfully, by store name.

        Raises:
            MetadataReconcileError: if the persisted tree cannot be read or
                the staged tree cannot be committed.
        """
        current = await self._load()
        staged = current.model_copy(deep=True) if current is not None else FileMetadataStore()

        report = ReconcileReport()
        report.created_directories = ensure_well_known_directories(staged)
        self._link_records(staged, records_by_store, report)

        report.library_state = LIBRARY_LOADED if staged.files() else LIBRARY_UNINITIALIZED
        staged.state.library_state = report.library_state

        if current is None or staged.to_dict() != current.to_dict():
            try:
                await self.flat_storage.set(self.metadata_key, staged.to_json())
            except Exception as e:
                raise MetadataReconcileError(f"Cannot commit file metadata: {e}") from e
            report.changed = True

        logger.info(
            f"Metadata reconciled: {len(report.created_directories)} directories, "
            f"{len(report.linked_entries)} linked, {len(report.created_entries)} created, "
            f"libraryState={report.library_state}"
        )
        return report

    async def emergency_fallback(self, has_files: bool) -> ReconcileReport:
        """Force a definite ``libraryState`` after a failed reconciliation."""
        library_state = LIBRARY_LOADED if has_files else LIBRARY_UNINITIALIZED
        try:
            metadata = await self._load()
        except MetadataReconcileError:
            metadata = None
        if metadata is None:
            metadata = FileMetadataStore()
            ensure_well_known_directories(metadata)
        metadata.state.library_state = library_state

        logger.warning(f"Metadata reconciliation fallback: libraryState={library_state}")
        await self.flat_storage.set(self.metadata_key, metadata.to_json())
        return ReconcileReport(changed=True, library_state=library_state, fallback=True)

    async def _load(self) -> Optional[FileMetadataStore]:
        try:
            raw = await self.flat_storage.get(self.metadata_key)
        except Exception as e:
            raise MetadataReconcileError(f"Cannot read file metadata: {e}") from e
        if not raw:
            return None
        try:
            return FileMetadataStore.from_json(raw)
        except (ValidationError, ValueError) as e:
            raise MetadataReconcileError(f"File metadata is corrupt: {e}") from e

    def _link_records(
        self,
        metadata: FileMetadataStore,
        records_by_store: Mapping[str, Iterable[StoreRecord]],
        report: ReconcileReport,
    ) -> None:
        items = metadata.state.items
        referenced: Set[str] = {e.uuid for e in items.values() if e.uuid}

        unclaimed: List[Tuple[str, StoreRecord]] = []
        for store in STORE_FOLDERS:
            for record in records_by_store.get(store, ()):
                if record.key not in referenced:
                    unclaimed.append((store, record))

        # Entries without uuid take the first unclaimed record with their name
        claimed: Set[str] = set()
        for path in sorted(items):
            entry = items[path]
            if entry.is_directory or entry.uuid:
                continue
            match = next(
                (r for _, r in unclaimed if r.key not in claimed and r.name == entry.name),
                None,
            )
            entry.uuid = match.key if match is not None else generate_record_id()
            if match is not None:
                claimed.add(match.key)
            report.linked_entries.append(path)

        for store, record in unclaimed:
            if record.key in claimed:
                continue
            folder, icon = STORE_FOLDERS[store]
            path = _unique_path(folder, record.name, items)
            items[path] = FileMetadataEntry(
                path=path,
                name=posixpath.basename(path),
                is_directory=False,
                type=_file_type(record.name),
                icon=icon,
                status="active",
                uuid=record.key,
            )
            report.created_entries.append(path)
