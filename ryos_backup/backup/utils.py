"""Utility functions for backup/restore operations."""

import hashlib
import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator, Tuple

from .._utils import logger
from .compression import ByteSource, aiter_chunks
from .models import Snapshot

COMPRESSED_SUFFIX = ".gz"
PLAIN_SUFFIX = ".json"


def generate_backup_id(product_name: str = "ryos") -> str:
    """Generate backup ID with timestamp.

    Returns:
        Backup ID in format: <product>-backup-YYYY-MM-DDTHH-MM-SS-ffffffZ
    """
    timestamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    return f"{product_name}-backup-{timestamp}"


def artifact_filename(backup_id: str, compressed: bool) -> str:
    return f"{backup_id}{COMPRESSED_SUFFIX if compressed else PLAIN_SUFFIX}"


def is_compressed_name(filename: str) -> bool:
    """The ``.gz`` extension signals a compressed artifact."""
    return filename.lower().endswith(COMPRESSED_SUFFIX)


def backup_id_from_filename(filename: str) -> str:
    name = Path(filename).name
    for suffix in (COMPRESSED_SUFFIX, PLAIN_SUFFIX):
        if name.lower().endswith(suffix):
            return name[: -len(suffix)]
    return name


def iter_bytes(data: bytes, chunk_size: int) -> Iterator[bytes]:
    for start in range(0, len(data), chunk_size):
        yield data[start:start + chunk_size]


def iter_snapshot_json(snapshot: Snapshot, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    """Serialize a snapshot as UTF-8 JSON in chunks of about ``chunk_size``."""
    encoder = json.JSONEncoder(ensure_ascii=False, separators=(",", ":"))
    buffer = []
    buffered = 0
    for piece in encoder.iterencode(snapshot.to_document()):
        data = piece.encode("utf-8")
        buffer.append(data)
        buffered += len(data)
        if buffered >= chunk_size:
            yield b"".join(buffer)
            buffer = []
            buffered = 0
    if buffer:
        yield b"".join(buffer)


def iter_file(file_path: Path, chunk_size: int = 64 * 1024) -> Iterator[bytes]:
    with open(file_path, "rb") as f:
        for chunk in iter(lambda: f.read(chunk_size), b""):
            yield chunk


def compute_checksum(file_path: Path) -> str:
    """Compute SHA-256 checksum of file.

    Returns:
        SHA-256 checksum as hex string with 'sha256:' prefix
    """
    sha256 = hashlib.sha256()
    for chunk in iter_file(file_path, 8192):
        sha256.update(chunk)
    return f"sha256:{sha256.hexdigest()}"


async def write_chunks(chunks: ByteSource, output_path: Path) -> Tuple[int, str]:
    """Stream chunks into a file.

    Returns:
        (size in bytes, 'sha256:' checksum of the written bytes)
    """
    sha256 = hashlib.sha256()
    size = 0
    tmp_path = output_path.with_name(output_path.name + ".part")
    try:
        with open(tmp_path, "wb") as f:
            async for chunk in aiter_chunks(chunks):
                f.write(chunk)
                sha256.update(chunk)
                size += len(chunk)
        tmp_path.replace(output_path)
    finally:
        if tmp_path.exists():
            tmp_path.unlink()

    logger.info(f"Artifact written: {output_path} ({size:,} bytes)")
    return size, f"sha256:{sha256.hexdigest()}"
