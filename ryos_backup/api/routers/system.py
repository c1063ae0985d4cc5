"""Maintenance endpoints mirroring the Control Panels system actions."""

from fastapi import APIRouter, Depends

from ..dependencies import get_backup_manager
from ..models import ActionResponse
from ryos_backup.backup import BackupManager
from ryos_backup.backup.maintenance import FORMAT_RESTART_MESSAGE, RESET_RESTART_MESSAGE

router = APIRouter(prefix="/system", tags=["system"])


@router.post("/reset", response_model=ActionResponse)
async def reset_settings(
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> ActionResponse:
    """Clear all settings except the file-system metadata."""
    await backup_manager.reset_settings()
    return ActionResponse(message=RESET_RESTART_MESSAGE, restart_required=True)


@router.post("/format", response_model=ActionResponse)
async def format_file_system(
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> ActionResponse:
    """Delete every stored file and reset the file-system tree."""
    await backup_manager.format_file_system()
    return ActionResponse(message=FORMAT_RESTART_MESSAGE, restart_required=True)


@router.post("/migrate", response_model=ActionResponse)
async def migrate_storage(
    force: bool = False,
    backup_manager: BackupManager = Depends(get_backup_manager)
) -> ActionResponse:
    """Run the filename-to-identifier record migration on live storage."""
    moved = await backup_manager.migrate_existing_storage(force=force)
    return ActionResponse(message=f"Migrated {moved} records")
