"""Backup and restore orchestration for ryOS storage."""

from datetime import datetime, timezone
from pathlib import Path
from typing import AsyncIterator, List, Optional, Tuple

from pydantic import ValidationError

from ..base import BaseFlatStorage, BaseObjectStorage
from .._utils import logger
from ..config import BackupConfig
from .builder import SnapshotBuilder
from .compression import aiter_chunks, compress_stream, compression_available, decompress_stream, is_gzip
from .maintenance import SystemMaintenance
from .migration import LegacyKeyMigrator
from .models import BackupMetadata, RestoreReport, Snapshot
from .parser import parse_snapshot
from .restore import RestartTrigger, RestoreOrchestrator
from .utils import (
    COMPRESSED_SUFFIX,
    PLAIN_SUFFIX,
    artifact_filename,
    backup_id_from_filename,
    compute_checksum,
    generate_backup_id,
    is_compressed_name,
    iter_bytes,
    iter_file,
    iter_snapshot_json,
    write_chunks,
)


class BackupManager:
    """Create, list, restore and delete backup artifacts for one ryOS install."""

    def __init__(
        self,
        flat_storage: BaseFlatStorage,
        object_storage: BaseObjectStorage,
        config: Optional[BackupConfig] = None,
        restart_trigger: Optional[RestartTrigger] = None,
    ):
        """Initialize backup manager.

        Args:
            flat_storage: settings store (localStorage equivalent)
            object_storage: binary object stores (IndexedDB equivalent)
            config: backup configuration; defaults to BackupConfig()
            restart_trigger: called with a user-facing message after a
                restore, reset or format
        """
        self.flat_storage = flat_storage
        self.object_storage = object_storage
        self.config = config or BackupConfig()
        self.restart_trigger = restart_trigger
        self.backup_dir = Path(self.config.backup_dir)
        self.backup_dir.mkdir(parents=True, exist_ok=True)

        self.builder = SnapshotBuilder(flat_storage, object_storage)
        self.migrator = LegacyKeyMigrator(
            metadata_key=self.config.metadata_key,
            marker_key=self.config.migration_marker_key,
        )
        self.maintenance = SystemMaintenance(
            flat_storage,
            object_storage,
            restart_trigger=restart_trigger,
            metadata_key=self.config.metadata_key,
        )

    @property
    def compresses(self) -> bool:
        return self.config.compress and compression_available()

    async def create_backup(self, backup_id: Optional[str] = None) -> BackupMetadata:
        """Snapshot live storage into an artifact in ``backup_dir``.

        Args:
            backup_id: Optional custom backup ID. If None, generates timestamp-based ID.

        Returns:
            BackupMetadata with backup information

        Raises:
            FlatStoreUnavailableError: if the settings store cannot be read.
        """
        backup_id = backup_id or generate_backup_id(self.config.product_name)
        logger.info(f"Starting backup: {backup_id}")

        result = await self.builder.build()
        compressed = self.compresses
        if self.config.compress and not compressed:
            logger.warning("Compression unavailable, writing uncompressed artifact")

        filename = artifact_filename(backup_id, compressed)
        archive_path = self.backup_dir / filename
        size, checksum = await write_chunks(self._encode(result.snapshot, compressed), archive_path)

        # Save checksum alongside artifact for verification on restore
        with open(self._checksum_path(backup_id), "w") as f:
            f.write(checksum)

        metadata = BackupMetadata(
            backup_id=backup_id,
            filename=filename,
            created_at=datetime.now(timezone.utc),
            size_bytes=size,
            compressed=compressed,
            checksum=checksum,
            statistics=result.statistics,
            failed_stores=result.failed_stores,
        )
        # Listings read this instead of decompressing the artifact
        with open(self._metadata_path(backup_id), "w") as f:
            f.write(metadata.model_dump_json())

        if result.failed_stores:
            logger.warning(f"Backup {backup_id} is missing stores: {result.failed_stores}")
        logger.info(f"Backup complete: {backup_id} ({size:,} bytes)")
        return metadata

    async def stream_backup(self) -> Tuple[str, AsyncIterator[bytes]]:
        """Snapshot live storage for a direct download without touching disk.

        The snapshot is taken before returning, so a flat-store failure is
        raised here rather than in the middle of the stream.

        Returns:
            (suggested filename, async iterator of artifact chunks)
        """
        result = await self.builder.build()
        compressed = self.compresses
        backup_id = generate_backup_id(self.config.product_name)
        logger.info(f"Streaming backup: {backup_id}")
        return artifact_filename(backup_id, compressed), self._encode(result.snapshot, compressed)

    async def restore_backup(self, backup_id: str) -> RestoreReport:
        """Restore from a stored artifact.

        Raises:
            FileNotFoundError: if no artifact exists for ``backup_id``.
        """
        archive_path = await self.get_backup_path(backup_id)
        if archive_path is None:
            raise FileNotFoundError(f"Backup not found: {backup_id}")

        checksum_path = self._checksum_path(backup_id)
        if checksum_path.exists():
            stored_checksum = checksum_path.read_text().strip()
            computed_checksum = compute_checksum(archive_path)
            if computed_checksum == stored_checksum:
                logger.info(f"Artifact checksum verified: {stored_checksum}")
            else:
                logger.warning(f"Checksum mismatch! Expected: {stored_checksum}, Got: {computed_checksum}")

        logger.info(f"Starting restore: {backup_id}")
        return await self.restore_file(archive_path)

    async def restore_file(self, path: Path) -> RestoreReport:
        """Restore from an artifact file anywhere on disk."""
        path = Path(path)
        compressed = True if is_compressed_name(path.name) else None
        return await self._orchestrator().restore(
            iter_file(path, self.config.chunk_size), compressed=compressed
        )

    async def restore_bytes(self, data: bytes, filename: Optional[str] = None) -> RestoreReport:
        """Restore from an uploaded artifact.

        A ``.gz`` filename marks the payload as compressed; otherwise the gzip
        magic bytes decide.
        """
        compressed = True if filename and is_compressed_name(filename) else None
        return await self._orchestrator().restore(
            iter_bytes(data, self.config.chunk_size), compressed=compressed
        )

    async def list_backups(self) -> List[BackupMetadata]:
        """List all available backups, newest first.

        Backups written by this manager are listed from their metadata
        sidecar. Artifacts without one are parsed to count their records.
        Artifacts that cannot be read are logged and left out.
        """
        backups = []
        for archive_path in self._artifact_paths():
            backup_id = backup_id_from_filename(archive_path.name)
            metadata = self._read_metadata(backup_id, archive_path)
            if metadata is not None:
                backups.append(metadata)
                continue

            try:
                snapshot = await self._load_snapshot(archive_path)
            except Exception as e:
                logger.warning(f"Failed to read backup {archive_path.name}: {e}")
                continue

            checksum_path = self._checksum_path(backup_id)
            checksum = checksum_path.read_text().strip() if checksum_path.exists() else None
            stats = snapshot.object_stores.counts()
            stats["settings"] = len(snapshot.flat_store)

            backups.append(BackupMetadata(
                backup_id=backup_id,
                filename=archive_path.name,
                created_at=self._created_at(snapshot, archive_path),
                size_bytes=archive_path.stat().st_size,
                compressed=is_compressed_name(archive_path.name),
                checksum=checksum,
                statistics=stats,
            ))

        backups.sort(key=lambda b: b.created_at, reverse=True)
        return backups

    async def delete_backup(self, backup_id: str) -> bool:
        """Delete backup artifact.

        Returns:
            True if deleted, False if not found
        """
        archive_path = await self.get_backup_path(backup_id)
        if archive_path is None:
            return False

        archive_path.unlink()
        for sidecar in (self._checksum_path(backup_id), self._metadata_path(backup_id)):
            if sidecar.exists():
                sidecar.unlink()

        logger.info(f"Deleted backup: {backup_id}")
        return True

    async def get_backup_path(self, backup_id: str) -> Optional[Path]:
        """Get path to backup artifact, or None if not found."""
        for suffix in (COMPRESSED_SUFFIX, PLAIN_SUFFIX):
            archive_path = self.backup_dir / f"{backup_id}{suffix}"
            if archive_path.exists():
                return archive_path
        return None

    async def migrate_existing_storage(self, force: bool = False) -> int:
        """Boot-time migration of filename-keyed records in live storage."""
        return await self.migrator.migrate_storage(self.object_storage, self.flat_storage, force=force)

    async def reset_settings(self) -> None:
        await self.maintenance.reset_settings()

    async def format_file_system(self) -> None:
        await self.maintenance.format_file_system()

    # Private helper methods

    def _orchestrator(self) -> RestoreOrchestrator:
        return RestoreOrchestrator(
            self.flat_storage,
            self.object_storage,
            restart_trigger=self.restart_trigger,
            metadata_key=self.config.metadata_key,
            marker_key=self.config.migration_marker_key,
            write_attempts=self.config.write_attempts,
            chunk_size=self.config.chunk_size,
        )

    def _encode(self, snapshot: Snapshot, compressed: bool) -> AsyncIterator[bytes]:
        chunks = iter_snapshot_json(snapshot, self.config.chunk_size)
        if compressed:
            return compress_stream(chunks, self.config.compression_level)
        return aiter_chunks(chunks)

    async def _load_snapshot(self, archive_path: Path) -> Snapshot:
        with open(archive_path, "rb") as f:
            head = f.read(2)
        chunks = iter_file(archive_path, self.config.chunk_size)
        if is_gzip(head):
            payload = b"".join([chunk async for chunk in decompress_stream(chunks, self.config.chunk_size)])
        else:
            payload = b"".join(chunks)
        return parse_snapshot(payload)

    def _artifact_paths(self) -> List[Path]:
        paths = []
        for suffix in (COMPRESSED_SUFFIX, PLAIN_SUFFIX):
            paths.extend(self.backup_dir.glob(f"*{suffix}"))
        return sorted(paths)

    def _checksum_path(self, backup_id: str) -> Path:
        return self.backup_dir / f"{backup_id}.checksum"

    def _metadata_path(self, backup_id: str) -> Path:
        return self.backup_dir / f"{backup_id}.meta"

    def _read_metadata(self, backup_id: str, archive_path: Path) -> Optional[BackupMetadata]:
        metadata_path = self._metadata_path(backup_id)
        if not metadata_path.exists():
            return None
        try:
            metadata = BackupMetadata.model_validate_json(metadata_path.read_text())
        except (OSError, ValidationError) as e:
            logger.warning(f"Ignoring unreadable metadata for {backup_id}: {e}")
            return None
        if metadata.filename != archive_path.name:
            return None
        return metadata

    @staticmethod
    def _created_at(snapshot: Snapshot, archive_path: Path) -> datetime:
        if snapshot.timestamp:
            try:
                created = datetime.fromisoformat(snapshot.timestamp.replace("Z", "+00:00"))
            except ValueError:
                pass
            else:
                return created if created.tzinfo else created.replace(tzinfo=timezone.utc)
        return datetime.fromtimestamp(archive_path.stat().st_mtime, tz=timezone.utc)
