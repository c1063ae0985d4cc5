"""Lossless text encoding of binary record fields.

A binary field ``F`` is carried as a base64 data URL in ``value[F]`` with a
companion ``value["_isBlob_" + F] = True`` so decoders know which fields to
reverse.
"""

import base64
import binascii
from typing import Any, Dict

from ..base import Blob
from ..exceptions import BlobDecodeError
from .models import BLOB_MARKER_PREFIX, BlobField

DEFAULT_MIME = "application/octet-stream"


def encode(data: bytes, mime: str = DEFAULT_MIME) -> BlobField:
    """Encode raw bytes; output length is ``4 * ceil(len(data) / 3)``."""
    return BlobField(mime=mime or DEFAULT_MIME, encoded=base64.b64encode(bytes(data)).decode("ascii"))


def decode(field: BlobField) -> bytes:
    try:
        return base64.b64decode(field.encoded.encode("ascii"), validate=True)
    except (binascii.Error, ValueError, UnicodeEncodeError) as e:
        raise BlobDecodeError(f"Invalid base64 payload for {field.mime}: {e}") from e


def parse_data_url(text: str) -> BlobField:
    if not isinstance(text, str) or not text.startswith("data:"):
        raise BlobDecodeError("Blob field is not a data URL")
    header, sep, payload = text[len("data:"):].partition(",")
    if not sep or not header.endswith(";base64"):
        raise BlobDecodeError(f"Unsupported data URL header: {header[:64]!r}")
    mime = header[: -len(";base64")] or DEFAULT_MIME
    return BlobField(mime=mime, encoded=payload)


def is_binary(value: Any) -> bool:
    return isinstance(value, (Blob, bytes, bytearray, memoryview))


def encode_value(value: Dict[str, Any]) -> Dict[str, Any]:
    """Replace every binary field of a record value with its data URL."""
    encoded = {}
    for name, item in value.items():
        if name.startswith(BLOB_MARKER_PREFIX):
            continue
        if is_binary(item):
            field = encode(item.data, item.type) if isinstance(item, Blob) else encode(bytes(item))
            encoded[name] = field.to_data_url()
            encoded[BLOB_MARKER_PREFIX + name] = True
        else:
            encoded[name] = item
    return encoded


def decode_value(value: Dict[str, Any]) -> Dict[str, Any]:
    """Inverse of :func:`encode_value`; blob fields come back as :class:`Blob`."""
    blob_fields = {
        name[len(BLOB_MARKER_PREFIX):]
        for name, flag in value.items()
        if name.startswith(BLOB_MARKER_PREFIX) and flag is True
    }
    decoded = {}
    for name, item in value.items():
        if name.startswith(BLOB_MARKER_PREFIX):
            continue
        if name in blob_fields and item is not None:
            field = parse_data_url(item)
            decoded[name] = Blob(data=decode(field), type=field.mime)
        else:
            decoded[name] = item
    return decoded
