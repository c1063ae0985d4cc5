"""Dependency injection for FastAPI."""

from typing import TYPE_CHECKING, List

from fastapi import Request

if TYPE_CHECKING:
    from ryos_backup.backup import BackupManager


async def get_backup_manager(request: Request) -> "BackupManager":
    """Get BackupManager instance from app state."""
    return request.app.state.backup_manager


async def get_restart_requests(request: Request) -> List[str]:
    """Restart messages raised since startup, oldest first."""
    return getattr(request.app.state, "restart_requests", [])
