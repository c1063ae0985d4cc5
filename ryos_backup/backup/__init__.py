"""Snapshot backup and restore for ryOS storage."""

from .builder import SnapshotBuilder
from .maintenance import SystemMaintenance
from .manager import BackupManager
from .migration import LegacyKeyMigrator
from .models import (
    BackupMetadata,
    FormatKind,
    RestoreReport,
    RestoreState,
    Snapshot,
    StoreRecord,
)
from .reconcile import MetadataReconciler
from .restore import RestoreOrchestrator

__all__ = [
    "BackupManager",
    "BackupMetadata",
    "FormatKind",
    "LegacyKeyMigrator",
    "MetadataReconciler",
    "RestoreOrchestrator",
    "RestoreReport",
    "RestoreState",
    "Snapshot",
    "SnapshotBuilder",
    "StoreRecord",
    "SystemMaintenance",
]
