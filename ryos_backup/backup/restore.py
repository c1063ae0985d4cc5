"""Restore orchestration: artifact bytes -> live storage."""

import asyncio
import inspect
from typing import Awaitable, Callable, Dict, List, Optional, Union

from ..base import BaseFlatStorage, BaseObjectStorage, OBJECT_STORE_NAMES
from .._utils import logger
from ..exceptions import (
    CompressionUnavailable,
    DecompressionError,
    MetadataReconcileError,
    ParseError,
    StoreWriteError,
)
from .compression import ByteSource, aiter_chunks, decompress_stream, is_gzip
from .migration import LegacyKeyMigrator, MIGRATION_MARKER_KEY
from .models import (
    FormatKind,
    RestoreReport,
    RestoreState,
    Snapshot,
    StoreRecord,
    StoreWriteResult,
)
from .parser import FILE_METADATA_KEY, classify_format, parse_snapshot
from .reconcile import MetadataReconciler, STORE_FOLDERS
from .stores import StoreWriter

RestartTrigger = Callable[[str], Union[None, Awaitable[None]]]

RESTORE_RESTART_MESSAGE = "Restoring System..."


async def request_restart(trigger: Optional[RestartTrigger], message: str) -> None:
    """Ask the host to restart, showing `message` on the next boot."""
    if trigger is None:
        logger.info(f"Restart required: {message}")
        return
    outcome = trigger(message)
    if inspect.isawaitable(outcome):
        await outcome


class RestoreOrchestrator:
    """Drive one restore through decompress, parse, migrate, write, reconcile.

    Failures before the first store write leave storage untouched and end in
    ``FAILED``. Once writing starts the commit runs to completion even if the
    caller is cancelled; per-store failures are recorded and the remaining
    stores and the metadata reconciliation still run.
    """

    def __init__(
        self,
        flat_storage: BaseFlatStorage,
        object_storage: BaseObjectStorage,
        restart_trigger: Optional[RestartTrigger] = None,
        metadata_key: str = FILE_METADATA_KEY,
        marker_key: str = MIGRATION_MARKER_KEY,
        write_attempts: int = 3,
        chunk_size: int = 64 * 1024,
    ):
        self.flat_storage = flat_storage
        self.restart_trigger = restart_trigger
        self.metadata_key = metadata_key
        self.chunk_size = chunk_size
        self.writer = StoreWriter(object_storage, write_attempts=write_attempts)
        self.migrator = LegacyKeyMigrator(metadata_key=metadata_key, marker_key=marker_key)
        self.reconciler = MetadataReconciler(flat_storage, metadata_key=metadata_key)
        self.state = RestoreState.IDLE

    async def restore(self, source: ByteSource, compressed: Optional[bool] = None) -> RestoreReport:
        """Restore an artifact.

        Args:
            source: artifact bytes as a sync or async iterable of chunks.
            compressed: whether the artifact is gzip-compressed. ``None``
                sniffs the gzip magic bytes.

        Returns:
            RestoreReport; ``state`` is ``COMPLETE`` or ``FAILED``.
        """
        report = RestoreReport()
        self._transition(report, RestoreState.IDLE)

        try:
            payload = await self._read_payload(source, compressed, report)

            self._transition(report, RestoreState.PARSING)
            snapshot = parse_snapshot(payload)

            self._transition(report, RestoreState.CLASSIFYING)
            report.format = classify_format(snapshot, self.metadata_key)
            logger.info(f"Restoring {report.format.value} snapshot (version={snapshot.version})")

            if report.format == FormatKind.LEGACY:
                self._transition(report, RestoreState.MIGRATING)
                result = self.migrator.migrate(snapshot)
                snapshot = result.snapshot
                report.migrated = True
                report.migrated_records = result.migrated_records
        except DecompressionError as e:
            return self._fail(report, f"Backup file is damaged or incomplete: {e}")
        except CompressionUnavailable as e:
            return self._fail(report, f"Cannot decompress backup: {e}")
        except ParseError as e:
            return self._fail(report, f"Backup file is not a valid backup: {e}")

        await asyncio.shield(self._commit(snapshot, report))
        return report

    async def _read_payload(
        self,
        source: ByteSource,
        compressed: Optional[bool],
        report: RestoreReport,
    ) -> bytes:
        stream = aiter_chunks(source)
        head = b""
        async for head in stream:
            if head:
                break

        async def rejoined():
            if head:
                yield head
            async for chunk in stream:
                yield chunk

        if compressed is None:
            compressed = is_gzip(head)

        self._transition(report, RestoreState.DECOMPRESSING)
        body = decompress_stream(rejoined(), self.chunk_size) if compressed else rejoined()

        payload = bytearray()
        async for chunk in body:
            payload.extend(chunk)
        return bytes(payload)

    async def _commit(self, snapshot: Snapshot, report: RestoreReport) -> None:
        self._transition(report, RestoreState.WRITING_STORES)

        results = await asyncio.gather(
            *(self._write_store(name, snapshot.object_stores.get(name)) for name in OBJECT_STORE_NAMES)
        )
        for result in results:
            report.store_results[result.store] = result

        await self._write_flat_store(snapshot.flat_store, report)

        self._transition(report, RestoreState.RECONCILING_METADATA)
        restored = self._restored_records(snapshot, report)
        try:
            report.reconcile = await self.reconciler.reconcile(restored)
        except MetadataReconcileError as e:
            logger.error(f"Metadata reconciliation failed: {e}")
            has_files = any(restored.get(store) for store in STORE_FOLDERS)
            try:
                report.reconcile = await self.reconciler.emergency_fallback(has_files)
            except Exception as fallback_error:
                logger.error(f"Metadata fallback failed: {fallback_error}")
                report.error = f"File metadata could not be repaired: {fallback_error}"

        if report.migrated:
            try:
                await self.migrator.mark_complete(self.flat_storage)
            except Exception as e:
                logger.warning(f"Could not persist migration marker: {e}")

        self._transition(report, RestoreState.COMPLETE)
        report.restart_required = True
        if report.failed_stores:
            logger.warning(f"Restore completed with failed stores: {report.failed_stores}")
        else:
            logger.info("Restore complete")

        await request_restart(self.restart_trigger, RESTORE_RESTART_MESSAGE)

    async def _write_store(self, store: str, records: List[StoreRecord]) -> StoreWriteResult:
        try:
            return await self.writer.replace_all(store, records)
        except StoreWriteError as e:
            logger.error(str(e))
            return StoreWriteResult(store=store, error=str(e))

    async def _write_flat_store(self, flat_store: Dict[str, str], report: RestoreReport) -> None:
        for key, value in flat_store.items():
            try:
                await self.flat_storage.set(key, value)
            except Exception as e:
                logger.warning(f"Failed to restore setting {key}: {e}")
                report.failed_flat_keys.append(key)
                continue
            report.flat_keys_written += 1

    def _restored_records(self, snapshot: Snapshot, report: RestoreReport) -> Dict[str, List[StoreRecord]]:
        restored = {}
        for store, result in report.store_results.items():
            if result.error is not None:
                continue
            failed = set(result.failed_keys)
            restored[store] = [r for r in snapshot.object_stores.get(store) if r.key not in failed]
        return restored

    def _transition(self, report: RestoreReport, state: RestoreState) -> None:
        self.state = state
        report.state = state
        logger.debug(f"Restore state -> {state.value}")

    def _fail(self, report: RestoreReport, message: str) -> RestoreReport:
        self._transition(report, RestoreState.FAILED)
        report.error = message
        logger.error(f"Restore failed: {message}")
        return report
