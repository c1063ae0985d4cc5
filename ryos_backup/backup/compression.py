"""Streaming gzip compression for backup artifacts.

Both directions are async generators pulling from a byte-chunk source. The
next input chunk is only read after the previous output chunk has been
handed to the consumer, so memory stays bounded by one chunk plus the
compressor's own window.
"""

from typing import AsyncIterable, AsyncIterator, Iterable, Union

try:
    import zlib
    ZLIB_AVAILABLE = True
except ImportError:
    ZLIB_AVAILABLE = False
    zlib = None

from ..exceptions import CompressionUnavailable, DecompressionError

GZIP_MAGIC = b"\x1f\x8b"
# 16 + MAX_WBITS selects gzip framing (header + CRC32/ISIZE trailer)
_GZIP_WBITS = 31

ByteSource = Union[Iterable[bytes], AsyncIterable[bytes]]


def compression_available() -> bool:
    return ZLIB_AVAILABLE


def is_gzip(prefix: bytes) -> bool:
    return prefix[:2] == GZIP_MAGIC


async def aiter_chunks(source: ByteSource) -> AsyncIterator[bytes]:
    """Iterate a sync or async chunk source uniformly."""
    if hasattr(source, "__aiter__"):
        async for chunk in source:
            yield chunk
    else:
        for chunk in source:
            yield chunk


async def compress_stream(source: ByteSource, level: int = 6) -> AsyncIterator[bytes]:
    """Gzip-compress a stream of byte chunks.

    Raises:
        CompressionUnavailable: if zlib is not present in this interpreter.
    """
    if not ZLIB_AVAILABLE:
        raise CompressionUnavailable("zlib is not available in this runtime")

    compressor = zlib.compressobj(level, zlib.DEFLATED, _GZIP_WBITS)
    async for chunk in aiter_chunks(source):
        if not chunk:
            continue
        out = compressor.compress(chunk)
        if out:
            yield out

    tail = compressor.flush()
    if tail:
        yield tail


async def decompress_stream(source: ByteSource, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
    """Inflate a gzip stream, yielding at most ``chunk_size`` bytes per step.

    Concatenated gzip members are decoded in sequence.

    Raises:
        DecompressionError: corrupt data, checksum/length mismatch, or a
            stream that ends before its trailer.
        CompressionUnavailable: if zlib is not present in this interpreter.
    """
    if not ZLIB_AVAILABLE:
        raise CompressionUnavailable("zlib is not available in this runtime")

    decompressor = zlib.decompressobj(_GZIP_WBITS)
    received = False

    async for chunk in aiter_chunks(source):
        data = chunk
        while data:
            received = True
            if decompressor.eof:
                decompressor = zlib.decompressobj(_GZIP_WBITS)
            try:
                out = decompressor.decompress(data, chunk_size)
            except zlib.error as e:
                raise DecompressionError(f"Corrupt compressed stream: {e}") from e
            if out:
                yield out
            data = decompressor.unused_data if decompressor.eof else decompressor.unconsumed_tail

    if not received:
        raise DecompressionError("Compressed stream is empty")

    try:
        tail = decompressor.flush()
    except zlib.error as e:
        raise DecompressionError(f"Corrupt compressed stream: {e}") from e
    if tail:
        yield tail

    if not decompressor.eof:
        raise DecompressionError("Compressed stream is truncated")
