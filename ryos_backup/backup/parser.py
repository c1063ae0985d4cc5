"""Snapshot parsing and schema classification."""

import json
from typing import Dict, Optional, Union

from pydantic import ValidationError

from .._utils import is_record_id, logger
from ..exceptions import NotAnObjectError, NotJsonError, ParseError
from .models import FileMetadataStore, FormatKind, Snapshot, SNAPSHOT_VERSION

FILE_METADATA_KEY = "ryos:files"


def parse_snapshot(data: Union[bytes, str]) -> Snapshot:
    """Decode an uncompressed artifact payload into a Snapshot.

    Absent sections (flat store, any object store) default to empty.

    Raises:
        NotJsonError: payload is not UTF-8 JSON.
        NotAnObjectError: top-level JSON value is not an object.
        ParseError: a present section has an invalid shape.
    """
    try:
        text = data.decode("utf-8") if isinstance(data, (bytes, bytearray)) else data
        document = json.loads(text)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise NotJsonError(f"Backup is not valid JSON: {e}") from e

    if not isinstance(document, dict):
        raise NotAnObjectError(f"Backup must be a JSON object, got {type(document).__name__}")

    try:
        return Snapshot.model_validate(document)
    except ValidationError as e:
        raise ParseError(f"Backup has an invalid structure: {e.error_count()} errors, first: {e.errors()[0]['msg']}") from e


def read_file_metadata(
    flat_store: Dict[str, str],
    key: str = FILE_METADATA_KEY,
) -> Optional[FileMetadataStore]:
    """Load the file-metadata tree from a flat store mapping, if present and valid."""
    raw = flat_store.get(key)
    if not raw:
        return None
    try:
        return FileMetadataStore.from_json(raw)
    except (ValidationError, ValueError) as e:
        logger.warning(f"Ignoring unreadable file metadata under {key}: {e}")
        return None


def classify_format(snapshot: Snapshot, metadata_key: str = FILE_METADATA_KEY) -> FormatKind:
    """Decide whether a snapshot uses the legacy filename-keyed schema.

    Legacy when the version is absent or below 2, or when nothing in the file
    metadata carries a ``uuid`` although there are file entries or
    filename-keyed document/image records to link. Records already keyed by
    record id need no migration. Does not mutate the snapshot.
    """
    if snapshot.version is None or snapshot.version < SNAPSHOT_VERSION:
        return FormatKind.LEGACY

    metadata = read_file_metadata(snapshot.flat_store, metadata_key)
    entries = list(metadata.state.items.values()) if metadata else []
    if any(entry.uuid for entry in entries):
        return FormatKind.CURRENT

    # Directory-only trees carry no uuid in either schema
    if any(not entry.is_directory for entry in entries):
        return FormatKind.LEGACY
    records = snapshot.object_stores.documents + snapshot.object_stores.images
    if any(not is_record_id(record.key) for record in records):
        return FormatKind.LEGACY
    return FormatKind.CURRENT
