import json
import os
from dataclasses import dataclass, field
from typing import Dict, Optional

from ..base import BaseFlatStorage
from .._utils import logger


def load_json(file_name):
    if not os.path.exists(file_name):
        return None
    with open(file_name, encoding="utf-8") as f:
        return json.load(f)


def write_json(json_obj, file_name):
    tmp_name = f"{file_name}.tmp"
    with open(tmp_name, "w", encoding="utf-8") as f:
        json.dump(json_obj, f, indent=2, ensure_ascii=False)
    os.replace(tmp_name, file_name)


@dataclass
class JsonFlatStorage(BaseFlatStorage):
    """Flat store persisted as a single JSON object on disk.

    Every mutation rewrites the file atomically (write to ``.tmp`` then
    ``os.replace``), so a crash never leaves a half-written settings file.
    """

    _data: Dict[str, str] = field(init=False, default_factory=dict)

    def __post_init__(self):
        working_dir = self.global_config.get("working_dir", "./ryos_data")
        os.makedirs(working_dir, exist_ok=True)
        self._file_name = os.path.join(working_dir, f"flat_store_{self.namespace}.json")
        self._data = load_json(self._file_name) or {}
        logger.info(f"Load flat store {self.namespace} with {len(self._data)} keys")

    async def get_all(self) -> Dict[str, str]:
        return dict(self._data)

    async def get(self, key: str) -> Optional[str]:
        return self._data.get(key)

    async def set(self, key: str, value: str) -> None:
        if not isinstance(value, str):
            raise TypeError(f"Flat store values must be strings, got {type(value).__name__}")
        self._data[key] = value
        await self.index_done_callback()

    async def delete(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            await self.index_done_callback()

    async def clear(self) -> None:
        self._data = {}
        await self.index_done_callback()

    async def index_done_callback(self):
        write_json(self._data, self._file_name)
