"""In-process storage backends, used for embedding and tests."""

import copy
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, Optional, Tuple

from ..base import BaseFlatStorage, BaseObjectStorage, OBJECT_STORE_NAMES


@dataclass
class MemoryFlatStorage(BaseFlatStorage):
    _data: Dict[str, str] = field(init=False, default_factory=dict)

    async def get_all(self) -> Dict[str, str]:
        return dict(self._data)

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Flat store values must be strings, got {type(value).__name__}")
        self._data[key] = value

    async def delete(self, key: str) -> None:
        self._data.pop(key, None)

    async def clear(self) -> None:
        self._data.clear()


@dataclass
class MemoryObjectStorage(BaseObjectStorage):
    _stores: Dict[str, Dict[str, Dict[str, Any]]] = field(init=False, default_factory=dict)

    def __post_init__(self):
        self._stores = {name: {} for name in OBJECT_STORE_NAMES}

    async def open_cursor(self, store: str) -> AsyncIterator[Tuple[str, Dict[str, Any]]]:
        self._check_store(store)
        # Snapshot the key list so writes during iteration do not break it
        for key in sorted(self._stores[store]):
            value = self._stores[store].get(key)
            if value is None:
                continue
            yield key, copy.deepcopy(value)

    async def clear(self, store: str) -> None:
        self._check_store(store)
        self._stores[store].clear()

    async def put(self, store: str, key: str, value: Dict[str, Any]) -> None:
        self._check_store(store)
        self._stores[store][key] = copy.deepcopy(value)

    async def get(self, store: str, key: str) -> Optional[Dict[str, Any]]:
        self._check_store(store)
        value = self._stores[store].get(key)
        return copy.deepcopy(value) if value is not None else None

    async def delete(self, store: str, key: str) -> None:
        self._check_store(store)
        self._stores[store].pop(key, None)
