"""Error hierarchy for the snapshot engine."""

from typing import Optional


class SnapshotEngineError(Exception):
    """Base class for all backup/restore errors."""
    pass


class BlobDecodeError(SnapshotEngineError):
    """Encoded blob text is not valid under its declared encoding."""
    pass


MalformedBlob = BlobDecodeError


class CompressionUnavailable(SnapshotEngineError):
    pass


class DecompressionError(SnapshotEngineError):
    """Compressed stream is corrupt or truncated."""
    pass


class ParseError(SnapshotEngineError):
    """Artifact payload is not a valid snapshot envelope."""
    pass


class NotJsonError(ParseError):
    pass


class NotAnObjectError(ParseError):
    pass


class StoreReadError(SnapshotEngineError):
    def __init__(self, store: str, key: Optional[str] = None, reason: str = ""):
        self.store = store
        self.key = key
        self.reason = reason
        target = f"{store}/{key}" if key is not None else store
        super().__init__(f"Failed to read {target}: {reason}")


class StoreWriteError(SnapshotEngineError):
    def __init__(self, store: str, reason: str = ""):
        self.store = store
        self.reason = reason
        super().__init__(f"Failed to write store {store}: {reason}")


class FlatStoreUnavailableError(SnapshotEngineError):
    """The flat settings store could not be read; backups cannot proceed."""
    pass


class MetadataReconcileError(SnapshotEngineError):
    pass
