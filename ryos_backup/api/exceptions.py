"""Custom exceptions for FastAPI application."""

from fastapi import HTTPException
from starlette.status import (
    HTTP_400_BAD_REQUEST,
    HTTP_404_NOT_FOUND,
    HTTP_413_REQUEST_ENTITY_TOO_LARGE,
    HTTP_503_SERVICE_UNAVAILABLE,
)


class SnapshotAPIError(HTTPException):
    """Base exception for backup API errors."""
    pass


class BackupNotFoundError(SnapshotAPIError):
    def __init__(self, backup_id: str):
        super().__init__(HTTP_404_NOT_FOUND, f"Backup not found: {backup_id}")


class RestoreFailedError(SnapshotAPIError):
    def __init__(self, reason: str):
        super().__init__(HTTP_400_BAD_REQUEST, reason)


class UploadTooLargeError(SnapshotAPIError):
    def __init__(self, limit: int):
        super().__init__(HTTP_413_REQUEST_ENTITY_TOO_LARGE, f"Upload exceeds {limit:,} bytes")


class StorageUnavailableError(SnapshotAPIError):
    def __init__(self, backend: str):
        super().__init__(HTTP_503_SERVICE_UNAVAILABLE, f"{backend} backend temporarily unavailable")
