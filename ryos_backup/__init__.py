from .config import SnapshotEngineConfig, StorageConfig, BackupConfig
from .base import Blob, BaseFlatStorage, BaseObjectStorage

__version__ = "0.3.0"
__author__ = "ryOS contributors"
__url__ = "https://github.com/ryokun6/ryos"

__all__ = [
    "SnapshotEngineConfig",
    "StorageConfig",
    "BackupConfig",
    "Blob",
    "BaseFlatStorage",
    "BaseObjectStorage",
]
