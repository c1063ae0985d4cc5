from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Tuple


OBJECT_STORE_NAMES = ("documents", "images", "trash", "custom_wallpapers")


@dataclass
class Blob:
    """Binary payload held in an object-store record field."""

    data: bytes
    type: str = "application/octet-stream"


@dataclass
class StorageNameSpace:
    namespace: str
    global_config: dict = field(default_factory=dict)

    async def index_done_callback(self):
        """Commit the storage operations after a batch of writes"""
        pass


@dataclass
class BaseFlatStorage(StorageNameSpace):
    """Flat string key/value settings store."""

    async def get_all(self) -> Dict[str, str]:
        raise NotImplementedError

    async def get(self, key: str) -> Optional[str]:
        raise NotImplementedError

    async def set(self, key: str, value: str) -> None:
        raise NotImplementedError

    async def delete(self, key: str) -> None:
        raise NotImplementedError

    async def clear(self) -> None:
        raise NotImplementedError


@dataclass
class BaseObjectStorage(StorageNameSpace):
    """Named object stores holding dict records, possibly with Blob fields.

    ``open_cursor`` yields ``(key, value)`` pairs in ascending key order.
    """

    def open_cursor(self, store: str) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        raise NotImplementedError

    async def clear(self, store: str) -> None:
        raise NotImplementedError

    async def put(self, store: str, key: str, value: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def get(self, store: str, key: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    async def delete(self, store: str, key: str) -> None:
        raise NotImplementedError

    def _check_store(self, store: str) -> None:
        if store not in OBJECT_STORE_NAMES:
            raise KeyError(f"Unknown object store: {store}")
