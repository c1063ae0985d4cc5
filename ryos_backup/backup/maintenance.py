"""System reset and file-system format operations."""

from typing import Optional

from ..base import BaseFlatStorage, BaseObjectStorage, OBJECT_STORE_NAMES
from .._utils import logger
from .models import FileMetadataStore, LIBRARY_UNINITIALIZED
from .parser import FILE_METADATA_KEY
from .reconcile import ensure_well_known_directories
from .restore import RestartTrigger, request_restart

RESET_RESTART_MESSAGE = "Resetting System..."
FORMAT_RESTART_MESSAGE = "Formatting File System..."


class SystemMaintenance:
    """Destructive maintenance actions that end in a restart request."""

    def __init__(
        self,
        flat_storage: BaseFlatStorage,
        object_storage: BaseObjectStorage,
        restart_trigger: Optional[RestartTrigger] = None,
        metadata_key: str = FILE_METADATA_KEY,
    ):
        self.flat_storage = flat_storage
        self.object_storage = object_storage
        self.restart_trigger = restart_trigger
        self.metadata_key = metadata_key

    async def reset_settings(self) -> None:
        """Clear every setting except the file-metadata tree."""
        file_metadata = await self.flat_storage.get(self.metadata_key)
        await self.flat_storage.clear()
        if file_metadata is not None:
            await self.flat_storage.set(self.metadata_key, file_metadata)
        logger.info("Settings reset")
        await request_restart(self.restart_trigger, RESET_RESTART_MESSAGE)

    async def format_file_system(self) -> None:
        """Delete all stored files and reset the metadata tree to its defaults."""
        for store in OBJECT_STORE_NAMES:
            await self.object_storage.clear(store)

        metadata = FileMetadataStore()
        ensure_well_known_directories(metadata)
        metadata.state.library_state = LIBRARY_UNINITIALIZED
        await self.flat_storage.set(self.metadata_key, metadata.to_json())
        logger.info("File system formatted")
        await request_restart(self.restart_trigger, FORMAT_RESTART_MESSAGE)
