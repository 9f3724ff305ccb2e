"""Fetch an MTGJSON file through a local single-file cache.

:class:`CachedFetcher` is the one component that does the work:

1. Derive the cache path ``<directory>/<identifier>.json.gz``.
2. Look the file up (fresh, stale or missing).
3. On a stale or missing file, GET ``<base_url>/<version>/<identifier>.json.gz``,
   gunzip the body and atomically replace the cached file with it.
4. Read the cached document and parse it as JSON.

The cached file holds the *decompressed* JSON document; the ``.json.gz``
name is kept so existing download directories stay valid.

The request's ``version_tag`` is not part of the filename. Fetching the
same identifier under two version tags into one directory therefore
overwrites the same file.
"""

from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any, Optional

import httpx

from mtgcache.cache import CacheEntry, Clock
from mtgcache.client import AsyncClient
from mtgcache.decompress import gunzip_stream
from mtgcache.exceptions import CacheWriteError, DecompressionError, ParseError
from mtgcache.models import (
    DEFAULT_REFRESH_INTERVAL_MS,
    DEFAULT_VERSION_TAG,
    CacheLookup,
    GlobalConfig,
    ResourceRequest,
)
from mtgcache.output import debug, info


class CachedFetcher:
    """Download-once, refresh-when-stale access to MTGJSON files.

    Args:
        config: Base URL and request settings. Defaults to
            :class:`~mtgcache.models.GlobalConfig` defaults.
        clock: Returns "now" in epoch milliseconds; used for staleness.
        transport: Optional :mod:`httpx` transport passed to the client.

    Example::

        fetcher = CachedFetcher()
        data = await fetcher.fetch(
            ResourceRequest(identifier="Standard", directory="/tmp/mtg")
        )
    """

    def __init__(
        self,
        config: Optional[GlobalConfig] = None,
        *,
        clock: Optional[Clock] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config or GlobalConfig()
        self._clock = clock
        self._transport = transport

    @property
    def config(self) -> GlobalConfig:
        return self._config

    def entry_for(self, request: ResourceRequest) -> CacheEntry:
        return CacheEntry.for_request(request, clock=self._clock)

    def lookup(self, request: ResourceRequest) -> CacheLookup:
        """Report the cache state for *request* without touching the network."""
        return self.entry_for(request).lookup(
            request.should_refresh, request.refresh_interval_ms
        )

    async def fetch(self, request: ResourceRequest) -> Any:
        """Return the parsed document, downloading it first if needed.

        Raises:
            RemoteStatusError: The server answered with a status other than 200.
            TransportError: The request failed at the network level.
            DecompressionError: The body was not a complete gzip stream.
            CacheWriteError: The document could not be written to disk or
                read back after writing.
            ParseError: The cached document is not valid JSON.
        """
        entry = self.entry_for(request)
        lookup = entry.lookup(request.should_refresh, request.refresh_interval_ms)

        if not lookup.needs_download:
            found, document = await self._load(entry)
            if found:
                debug(f"Cache hit: {entry.path} (age {lookup.age_ms} ms)")
                return document
            debug(f"Cache file {entry.path} unreadable, downloading again")
        else:
            debug(f"Cache {lookup.status.value}: {entry.path}")

        return await self._download_and_parse(request, entry)

    async def refresh(self, request: ResourceRequest) -> Any:
        """Download *request* unconditionally and return the parsed document."""
        return await self._download_and_parse(request, self.entry_for(request))

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    async def _download_and_parse(self, request: ResourceRequest, entry: CacheEntry) -> Any:
        await self._download(request, entry)
        found, document = await self._load(entry)
        if not found:
            raise CacheWriteError(f"Downloaded file {entry.path} could not be read back")
        return document

    async def _download(self, request: ResourceRequest, entry: CacheEntry) -> None:
        async with AsyncClient(self._config, transport=self._transport) as client:
            info(f"Downloading {client.url_for(request.remote_path)}")
            async with client.stream_get(request.remote_path) as chunks:
                size = await entry.write_from(gunzip_stream(chunks))
        debug(f"Wrote {size} bytes to {entry.path}")

    async def _load(self, entry: CacheEntry) -> tuple[bool, Any]:
        """Read and parse the cached document in a worker thread.

        Returns ``(False, None)`` when the file cannot be read.
        """

        def _sync_load() -> tuple[bool, Any]:
            text = self._read(entry)
            if text is None:
                return False, None
            return True, _parse(text, entry.path)

        return await asyncio.to_thread(_sync_load)

    @staticmethod
    def _read(entry: CacheEntry) -> Optional[str]:
        try:
            return entry.read_text()
        except UnicodeDecodeError as exc:
            raise ParseError(f"{entry.path} is not UTF-8 text: {exc}") from exc
        except DecompressionError as exc:
            raise ParseError(f"{entry.path} is a corrupt gzip file: {exc}") from exc


def _parse(text: str, path: Path) -> Any:
    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise ParseError(f"Invalid JSON in {path}: {exc}") from exc


# ------------------------------------------------------------------ #
# Convenience functions
# ------------------------------------------------------------------ #


async def fetch(
    identifier: str,
    directory: str | Path,
    version_tag: str = DEFAULT_VERSION_TAG,
    should_refresh: bool = False,
    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS,
    *,
    config: Optional[GlobalConfig] = None,
) -> Any:
    """Return the parsed MTGJSON file *identifier*, cached under *directory*.

    Args:
        identifier: MTGJSON file name without extension, e.g. ``"AllPrintings"``.
        directory: Existing, writable directory for the cached file.
        version_tag: MTGJSON API version, e.g. ``"v5"``.
        should_refresh: Re-download when the cached file is older than
            *refresh_interval_ms*. When ``False`` an existing file is always
            used.
        refresh_interval_ms: Maximum age of the cached file. Defaults to
            one day.
        config: Optional configuration (base URL, timeouts).
    """
    request = ResourceRequest(
        identifier=identifier,
        directory=Path(directory),
        version_tag=version_tag,
        should_refresh=should_refresh,
        refresh_interval_ms=refresh_interval_ms,
    )
    return await CachedFetcher(config).fetch(request)


def fetch_sync(
    identifier: str,
    directory: str | Path,
    version_tag: str = DEFAULT_VERSION_TAG,
    should_refresh: bool = False,
    refresh_interval_ms: int = DEFAULT_REFRESH_INTERVAL_MS,
    *,
    config: Optional[GlobalConfig] = None,
) -> Any:
    """Blocking wrapper around :func:`fetch` for code without an event loop."""
    return asyncio.run(
        fetch(
            identifier,
            directory,
            version_tag=version_tag,
            should_refresh=should_refresh,
            refresh_interval_ms=refresh_interval_ms,
            config=config,
        )
    )
