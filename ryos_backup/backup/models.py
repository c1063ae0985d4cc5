"""Data models for backup/restore operations."""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from ..base import OBJECT_STORE_NAMES

SNAPSHOT_VERSION = 2
FILE_METADATA_VERSION = 5
BLOB_MARKER_PREFIX = "_isBlob_"

LIBRARY_LOADED = "loaded"
LIBRARY_UNINITIALIZED = "uninitialized"


class BlobField(BaseModel):
    """Binary payload embedded as base64 text."""

    mime: str = "application/octet-stream"
    encoded: str = ""

    def to_data_url(self) -> str:
        return f"data:{self.mime};base64,{self.encoded}"


class StoreRecord(BaseModel):
    """One object-store record as carried inside a snapshot."""

    model_config = ConfigDict(extra="ignore")

    key: str
    value: Dict[str, Any] = Field(default_factory=dict)

    @property
    def blob_fields(self) -> List[str]:
        """Field names whose value is an encoded blob."""
        return [
            name[len(BLOB_MARKER_PREFIX):]
            for name, flag in self.value.items()
            if name.startswith(BLOB_MARKER_PREFIX) and flag is True
        ]

    @property
    def name(self) -> str:
        name = self.value.get("name")
        return name if isinstance(name, str) and name else self.key


class ObjectStores(BaseModel):
    """The four object stores of a snapshot, in store-native order."""

    model_config = ConfigDict(extra="ignore")

    documents: List[StoreRecord] = Field(default_factory=list)
    images: List[StoreRecord] = Field(default_factory=list)
    trash: List[StoreRecord] = Field(default_factory=list)
    custom_wallpapers: List[StoreRecord] = Field(default_factory=list)

    @field_validator("documents", "images", "trash", "custom_wallpapers", mode="before")
    @classmethod
    def _missing_store_is_empty(cls, v):
        return [] if v is None else v

    @field_validator("documents", "images", "trash", "custom_wallpapers")
    @classmethod
    def _unique_keys(cls, v: List[StoreRecord]):
        seen = set()
        for record in v:
            if record.key in seen:
                raise ValueError(f"duplicate record key: {record.key}")
            seen.add(record.key)
        return v

    def get(self, store: str) -> List[StoreRecord]:
        if store not in OBJECT_STORE_NAMES:
            raise KeyError(f"Unknown object store: {store}")
        return getattr(self, store)

    def items(self) -> Iterator[Tuple[str, List[StoreRecord]]]:
        for store in OBJECT_STORE_NAMES:
            yield store, getattr(self, store)

    def counts(self) -> Dict[str, int]:
        return {store: len(records) for store, records in self.items()}


class Snapshot(BaseModel):
    """Root artifact: flat settings store plus all object stores."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    version: Optional[int] = None
    timestamp: Optional[str] = None
    flat_store: Dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("flatStore", "localStorage", "flat_store"),
        serialization_alias="flatStore",
    )
    object_stores: ObjectStores = Field(
        default_factory=ObjectStores,
        validation_alias=AliasChoices("objectStores", "indexedDB", "object_stores"),
        serialization_alias="objectStores",
    )

    @field_validator("timestamp", mode="before")
    @classmethod
    def _timestamp_as_text(cls, v):
        if v is None or isinstance(v, str):
            return v
        return str(v)

    @field_validator("flat_store", mode="before")
    @classmethod
    def _flat_values_as_text(cls, v):
        if v is None:
            return {}
        if not isinstance(v, dict):
            return v
        return {
            key: value if isinstance(value, str) else json.dumps(value)
            for key, value in v.items()
            if value is not None
        }

    @field_validator("object_stores", mode="before")
    @classmethod
    def _missing_stores_are_empty(cls, v):
        return {} if v is None else v

    def to_document(self) -> Dict[str, Any]:
        """JSON-ready dict using the artifact's camelCase section names."""
        return self.model_dump(by_alias=True, mode="json")


class FileMetadataEntry(BaseModel):
    """One node of the file-metadata tree, keyed by path."""

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    path: str
    name: str
    is_directory: bool = Field(default=False, alias="isDirectory")
    type: Optional[str] = None
    icon: Optional[str] = None
    status: str = "active"
    uuid: Optional[str] = None


class FileMetadataState(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    items: Dict[str, FileMetadataEntry] = Field(default_factory=dict)
    library_state: str = Field(default=LIBRARY_UNINITIALIZED, alias="libraryState")


class FileMetadataStore(BaseModel):
    """Persisted file-metadata tree held under the reserved flat-store key."""

    model_config = ConfigDict(extra="allow")

    state: FileMetadataState = Field(default_factory=FileMetadataState)
    version: int = FILE_METADATA_VERSION

    @classmethod
    def from_json(cls, text: str) -> "FileMetadataStore":
        return cls.model_validate_json(text)

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    def files(self) -> List[FileMetadataEntry]:
        return [e for e in self.state.items.values() if not e.is_directory]


class FormatKind(str, Enum):
    CURRENT = "current"
    LEGACY = "legacy"


class RestoreState(str, Enum):
    IDLE = "idle"
    DECOMPRESSING = "decompressing"
    PARSING = "parsing"
    CLASSIFYING = "classifying"
    MIGRATING = "migrating"
    WRITING_STORES = "writing_stores"
    RECONCILING_METADATA = "reconciling_metadata"
    COMPLETE = "complete"
    FAILED = "failed"


class StoreWriteResult(BaseModel):
    store: str
    written: int = 0
    failed_keys: List[str] = Field(default_factory=list)
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None and not self.failed_keys


class ReconcileReport(BaseModel):
    changed: bool = False
    created_directories: List[str] = Field(default_factory=list)
    linked_entries: List[str] = Field(default_factory=list)
    created_entries: List[str] = Field(default_factory=list)
    library_state: str = LIBRARY_UNINITIALIZED
    fallback: bool = False


class RestoreReport(BaseModel):
    """Outcome of one restore run."""

    state: RestoreState = RestoreState.IDLE
    format: Optional[FormatKind] = None
    migrated: bool = False
    migrated_records: int = 0
    store_results: Dict[str, StoreWriteResult] = Field(default_factory=dict)
    flat_keys_written: int = 0
    failed_flat_keys: List[str] = Field(default_factory=list)
    reconcile: Optional[ReconcileReport] = None
    error: Optional[str] = None
    restart_required: bool = False

    @property
    def failed_stores(self) -> List[str]:
        return [name for name, result in self.store_results.items() if result.error is not None]


class BackupMetadata(BaseModel):
    """Backup metadata for listings and API responses."""

    backup_id: str
    filename: str
    created_at: datetime
    size_bytes: int
    compressed: bool
    checksum: Optional[str] = None
    statistics: Dict[str, int] = Field(default_factory=dict)
    failed_stores: List[str] = Field(default_factory=list)
