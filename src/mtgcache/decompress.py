"""Incremental gzip decompression for downloaded MTGJSON files.

MTGJSON serves ``*.json.gz`` files as plain ``application/gzip`` bodies, so
the bytes are gunzipped here rather than by the HTTP transport.
:func:`gunzip_stream` works chunk by chunk so a large file (``AllPrintings``
is several hundred megabytes uncompressed) never has to sit in memory.
"""

from __future__ import annotations

import zlib
from typing import AsyncIterable, AsyncIterator

from mtgcache.exceptions import DecompressionError

GZIP_MAGIC = b"\x1f\x8b"

# Accept only the gzip container (no raw deflate / zlib headers).
_GZIP_WBITS = zlib.MAX_WBITS | 16


def is_gzip(data: bytes) -> bool:
    """Return True if *data* starts with the gzip magic number."""
    return data[:2] == GZIP_MAGIC


class _Gunzipper:
    """Stateful gzip decoder that handles concatenated members."""

    def __init__(self) -> None:
        self._decoder = zlib.decompressobj(_GZIP_WBITS)
        self._seen_input = False

    def feed(self, chunk: bytes) -> bytes:
        out = bytearray()
        while chunk:
            self._seen_input = True
            try:
                out += self._decoder.decompress(chunk)
            except zlib.error as exc:
                raise DecompressionError(f"Invalid gzip data: {exc}") from exc
            if not self._decoder.eof:
                break
            # A member ended; anything left over starts the next one.
            chunk = self._decoder.unused_data
            if chunk:
                self._decoder = zlib.decompressobj(_GZIP_WBITS)
        return bytes(out)

    def finish(self) -> bytes:
        if not self._seen_input:
            raise DecompressionError("Empty gzip stream")
        try:
            tail = self._decoder.flush()
        except zlib.error as exc:
            raise DecompressionError(f"Invalid gzip data: {exc}") from exc
        if not self._decoder.eof:
            raise DecompressionError("Truncated gzip stream")
        return tail


async def gunzip_stream(chunks: AsyncIterable[bytes]) -> AsyncIterator[bytes]:
    """Yield the decompressed form of a gzip byte stream.

    Raises:
        DecompressionError: If the data is not gzip, is corrupt, or ends
            before the final member is complete.
    """
    gunzipper = _Gunzipper()
    async for chunk in chunks:
        data = gunzipper.feed(chunk)
        if data:
            yield data
    tail = gunzipper.finish()
    if tail:
        yield tail


def gunzip_bytes(data: bytes) -> bytes:
    """Decompress a complete gzip payload held in memory."""
    gunzipper = _Gunzipper()
    return gunzipper.feed(data) + gunzipper.finish()
