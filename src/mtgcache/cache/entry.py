"""Single-file cache entry keyed by ``(directory, identifier)``.

A cache entry is one file whose modification time is the only metadata.
:meth:`CacheEntry.lookup` classifies it as fresh, stale or missing without
raising, :meth:`CacheEntry.read_text` returns ``None`` instead of raising
when the file cannot be read, and :meth:`CacheEntry.open_writer` replaces
the file through a temporary sibling so readers never see a partial
document.

The clock is injectable (epoch milliseconds) so freshness decisions can be
tested without sleeping.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import stat
import sys
import tempfile
import time
from pathlib import Path
from typing import AsyncIterable, BinaryIO, Callable, Iterator, Optional

from mtgcache.decompress import gunzip_bytes, is_gzip
from mtgcache.exceptions import CacheWriteError
from mtgcache.models import CacheLookup, CacheStatus, ResourceRequest

Clock = Callable[[], int]


def wall_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return time.time_ns() // 1_000_000


class CacheEntry:
    """The cached copy of one MTGJSON file.

    Args:
        path: Location of the cached document.
        clock: Returns "now" in epoch milliseconds. Defaults to
            :func:`wall_clock_ms`.

    Example::

        entry = CacheEntry.for_request(request)
        if entry.lookup(True, 3_600_000).status is CacheStatus.FRESH:
            text = entry.read_text()
    """

    def __init__(self, path: str | Path, clock: Optional[Clock] = None) -> None:
        self._path = Path(path)
        self._clock = clock or wall_clock_ms

    @classmethod
    def for_request(cls, request: ResourceRequest, clock: Optional[Clock] = None) -> CacheEntry:
        return cls(request.cache_path, clock=clock)

    @property
    def path(self) -> Path:
        return self._path

    def exists(self) -> bool:
        return self._path.is_file()

    def lookup(self, should_refresh: bool, refresh_interval_ms: int) -> CacheLookup:
        """Classify the cached file.

        Args:
            should_refresh: When ``False`` any readable file is fresh,
                whatever its age.
            refresh_interval_ms: Maximum age before the file is stale. The
                file is stale only when strictly older than this.

        Returns:
            A :class:`~mtgcache.models.CacheLookup`. Never raises; a file
            that cannot be stat'ed or read is reported as missing.
        """
        try:
            st = self._path.stat()
        except OSError:
            return CacheLookup(status=CacheStatus.MISSING, path=self._path)
        if not stat.S_ISREG(st.st_mode) or not os.access(self._path, os.R_OK):
            return CacheLookup(status=CacheStatus.MISSING, path=self._path)

        modified_ms = st.st_mtime_ns // 1_000_000
        age_ms = self._clock() - modified_ms
        status = CacheStatus.FRESH
        if should_refresh and age_ms > refresh_interval_ms:
            status = CacheStatus.STALE
        return CacheLookup(
            status=status, path=self._path, modified_ms=modified_ms, age_ms=age_ms
        )

    def read_text(self) -> Optional[str]:
        """Return the cached document as text, or ``None`` if it cannot be read.

        Files written by older tools may still hold the gzip-compressed
        body; those are gunzipped transparently.

        Raises:
            DecompressionError: If the file looks like gzip but is corrupt.
            UnicodeDecodeError: If the content is not UTF-8.
        """
        try:
            raw = self._path.read_bytes()
        except OSError:
            return None
        if is_gzip(raw):
            raw = gunzip_bytes(raw)
        return raw.decode("utf-8")

    @contextlib.contextmanager
    def open_writer(self) -> Iterator[BinaryIO]:
        """Open a binary stream that atomically replaces the cached file on success.

        Bytes go to a temporary file in the same directory. When the
        ``with`` block completes the temp file is fsync'ed and renamed over
        :attr:`path`; if the block raises, the temp file is deleted and the
        previous file (if any) is untouched.

        Raises:
            CacheWriteError: If the temp file cannot be created, written or
                renamed.
        """
        directory = self._path.parent
        try:
            fd = tempfile.NamedTemporaryFile(
                mode="wb",
                dir=directory,
                prefix=f".{self._path.name}.",
                suffix=".tmp",
                delete=False,
            )
        except OSError as exc:
            raise CacheWriteError(f"Cannot write to {directory}: {exc}") from exc

        tmp_path = fd.name
        try:
            try:
                yield fd
                fd.flush()
                os.fsync(fd.fileno())
            finally:
                fd.close()
            os.replace(tmp_path, self._path)
        except BaseException as exc:
            try:
                os.unlink(tmp_path)
            except OSError:
                pass
            if isinstance(exc, OSError):
                raise CacheWriteError(f"Failed writing {self._path}: {exc}") from exc
            raise

    async def write_from(self, chunks: AsyncIterable[bytes]) -> int:
        """Atomically replace the cached file with the bytes from *chunks*.

        Same guarantees as :meth:`open_writer`. Opening, every write and the
        final fsync and rename run in worker threads so the event loop is
        never blocked on disk I/O.

        Returns:
            The number of bytes written.

        Raises:
            CacheWriteError: If the file cannot be created, written or
                renamed.
        """
        writer = self.open_writer()
        fh = await asyncio.to_thread(writer.__enter__)
        size = 0
        try:
            async for data in chunks:
                await asyncio.to_thread(fh.write, data)
                size += len(data)
        except BaseException:
            if not await asyncio.to_thread(writer.__exit__, *sys.exc_info()):
                raise
        else:
            await asyncio.to_thread(writer.__exit__, None, None, None)
        return size

    def __repr__(self) -> str:
        return f"CacheEntry({str(self._path)!r})"
