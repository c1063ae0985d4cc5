"""Backup and restore API endpoints."""

from typing import List

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.responses import FileResponse, StreamingResponse

from ..config import settings
from ..dependencies import get_backup_manager
from ..models import ErrorResponse
from ..exceptions import BackupNotFoundError, RestoreFailedError, StorageUnavailableError, UploadTooLargeError
from ryos_backup._utils import logger
from ryos_backup.backup import BackupManager
from ryos_backup.backup.models import BackupMetadata, RestoreReport, RestoreState
from ryos_backup.backup.utils import is_compressed_name
from ryos_backup.exceptions import FlatStoreUnavailableError

router = APIRouter(prefix="/backup", tags=["backup"])


def _media_type(filename: str) -> str:
    return "application/gzip" if is_compressed_name(filename) else "application/json"


@router.post("", response_model=BackupMetadata)
async def create_backup(
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> BackupMetadata:
    """Create a backup artifact in the backup directory."""
    try:
        return await backup_manager.create_backup()
    except FlatStoreUnavailableError as e:
        logger.error(f"Backup failed: {e}")
        raise StorageUnavailableError("Settings store")


@router.get("", response_model=List[BackupMetadata])
async def list_backups(
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> List[BackupMetadata]:
    """List all available backups."""
    return await backup_manager.list_backups()


@router.get("/export")
async def export_backup(
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> StreamingResponse:
    """Stream a fresh artifact straight to the client."""
    try:
        filename, chunks = await backup_manager.stream_backup()
    except FlatStoreUnavailableError as e:
        logger.error(f"Export failed: {e}")
        raise StorageUnavailableError("Settings store")

    return StreamingResponse(
        chunks,
        media_type=_media_type(filename),
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{backup_id}/download")
async def download_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> FileResponse:
    """Download a stored backup artifact."""
    backup_path = await backup_manager.get_backup_path(backup_id)

    if not backup_path:
        raise BackupNotFoundError(backup_id)

    return FileResponse(
        path=backup_path,
        media_type=_media_type(backup_path.name),
        filename=backup_path.name,
        headers={"Content-Disposition": f"attachment; filename={backup_path.name}"}
    )


@router.post("/restore", response_model=RestoreReport, responses={400: {"model": ErrorResponse}})
async def restore_backup(
    file: UploadFile = File(...),
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> RestoreReport:
    """Restore from an uploaded artifact (.gz or .json).

    A restore that fails before any write answers 400 and leaves storage
    untouched. A completed restore may still list failed stores.
    """
    content = await file.read()
    if len(content) > settings.max_upload_bytes:
        raise UploadTooLargeError(settings.max_upload_bytes)

    logger.info(f"Uploaded backup file: {file.filename} ({len(content):,} bytes)")

    report = await backup_manager.restore_bytes(content, filename=file.filename)
    if report.state == RestoreState.FAILED:
        raise RestoreFailedError(report.error or "Restore failed")
    return report


@router.post("/{backup_id}/restore", response_model=RestoreReport)
async def restore_stored_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> RestoreReport:
    """Restore from an artifact already in the backup directory."""
    try:
        report = await backup_manager.restore_backup(backup_id)
    except FileNotFoundError:
        raise BackupNotFoundError(backup_id)
    if report.state == RestoreState.FAILED:
        raise RestoreFailedError(report.error or "Restore failed")
    return report


@router.delete("/{backup_id}")
async def delete_backup(
    backup_id: str,
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> dict:
    """Delete a backup artifact."""
    deleted = await backup_manager.delete_backup(backup_id)

    if not deleted:
        raise BackupNotFoundError(backup_id)

    return {"message": f"Backup deleted: {backup_id}"}
