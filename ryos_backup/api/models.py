"""Pydantic models for API requests and responses."""

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class HealthStatus(BaseModel):
    status: str  # "healthy", "degraded", "unhealthy"
    flat_store: bool
    object_store: bool
    restart_pending: Optional[str] = None
    timestamp: datetime = Field(default_factory=_now)


class ActionResponse(BaseModel):
    message: str
    restart_required: bool = False


class ErrorResponse(BaseModel):
    detail: str
    timestamp: datetime = Field(default_factory=_now)
