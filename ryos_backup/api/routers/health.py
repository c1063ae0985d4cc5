"""Health check endpoints."""

import asyncio
from typing import Dict, List

from fastapi import APIRouter, Depends, HTTPException

from ..dependencies import get_backup_manager, get_restart_requests
from ..models import HealthStatus
from ryos_backup.backup import BackupManager

router = APIRouter(prefix="/health", tags=["health"])


async def check_flat_store(backup_manager: BackupManager) -> bool:
    """Check settings store connectivity."""
    storage = backup_manager.flat_storage
    if hasattr(storage, "check_health"):
        return await storage.check_health()
    await storage.get(backup_manager.config.metadata_key)
    return True


async def check_object_store(backup_manager: BackupManager) -> bool:
    """Check object store connectivity."""
    storage = backup_manager.object_storage
    if hasattr(storage, "check_health"):
        return await storage.check_health()
    return True  # Assume healthy for in-process storage


@router.get("", response_model=HealthStatus)
async def health_check(
    backup_manager: BackupManager = Depends(get_backup_manager),
    restart_requests: List[str] = Depends(get_restart_requests),
) -> HealthStatus:
    """Health of both storage backends."""
    flat_health, object_health = await asyncio.gather(
        check_flat_store(backup_manager),
        check_object_store(backup_manager),
        return_exceptions=True
    )

    # Handle exceptions from gather
    flat_ok = flat_health is True
    object_ok = object_health is True

    if flat_ok and object_ok:
        status = "healthy"
    elif not flat_ok and not object_ok:
        status = "unhealthy"
    else:
        status = "degraded"

    return HealthStatus(
        status=status,
        flat_store=flat_ok,
        object_store=object_ok,
        restart_pending=restart_requests[-1] if restart_requests else None,
    )


@router.get("/ready")
async def readiness_probe(
    backup_manager: BackupManager = Depends(get_backup_manager),
    restart_requests: List[str] = Depends(get_restart_requests),
) -> Dict[str, str]:
    """Kubernetes readiness probe."""
    health = await health_check(backup_manager, restart_requests)
    if health.status == "unhealthy":
        raise HTTPException(status_code=503, detail="Service not ready")
    return {"status": "ready"}


@router.get("/live")
async def liveness_probe() -> Dict[str, str]:
    """Kubernetes liveness probe."""
    return {"status": "alive"}
