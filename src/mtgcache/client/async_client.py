"""Asynchronous HTTP client for downloading MTGJSON files.

This module provides :class:`AsyncClient`, a thin wrapper around
:class:`httpx.AsyncClient` that

- builds the transport from :class:`~mtgcache.models.GlobalConfig`
  (base URL, timeout, SSL verification, transparent redirects),
- streams the raw response body so large files are never buffered whole,
- maps any status other than 200 to
  :class:`~mtgcache.exceptions.RemoteStatusError` and network failures to
  :class:`~mtgcache.exceptions.TransportError`.

Requests are never retried.
"""

from __future__ import annotations

import contextlib
from typing import AsyncIterator, Optional

import httpx

from mtgcache import __version__
from mtgcache.exceptions import RemoteStatusError, TransportError
from mtgcache.models import GlobalConfig
from mtgcache.output import get_output


class AsyncClient:
    """Asynchronous download client.

    Must be used as an async context manager.

    Args:
        config: Supplies ``base_url`` and the ``request`` settings.
        transport: Optional :mod:`httpx` transport, e.g.
            :class:`httpx.MockTransport` in tests.

    Example::

        async with AsyncClient(config) as client:
            async with client.stream_get("/v5/Standard.json.gz") as chunks:
                async for chunk in chunks:
                    ...
    """

    def __init__(
        self,
        config: GlobalConfig,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._config = config
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    # ------------------------------------------------------------------ #
    # Async context manager
    # ------------------------------------------------------------------ #

    async def __aenter__(self) -> AsyncClient:
        request = self._config.request
        self._client = httpx.AsyncClient(
            base_url=self._config.base_url.rstrip("/"),
            timeout=request.timeout,
            verify=request.verify_ssl,
            follow_redirects=True,
            headers={"User-Agent": f"mtgcache/{__version__}"},
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *args: object) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    # ------------------------------------------------------------------ #
    # Public request methods
    # ------------------------------------------------------------------ #

    def url_for(self, path: str) -> str:
        """Full URL of *path* under the configured base URL."""
        return f"{self._config.base_url.rstrip('/')}{path}"

    @contextlib.asynccontextmanager
    async def stream_get(self, path: str) -> AsyncIterator[AsyncIterator[bytes]]:
        """Send a GET and yield an iterator over the raw body bytes.

        The status is checked before anything is yielded, so callers never
        see the body of a failed response.

        Args:
            path: URL path appended to the configured ``base_url``.

        Raises:
            RemoteStatusError: If the final response status is not 200.
            TransportError: On DNS, connection, read or timeout errors,
                including ones raised while the body is being read.
        """
        assert self._client is not None, "Client not initialised -- use as async context manager"

        url = self.url_for(path)
        get_output().debug(f"GET {url}")
        try:
            async with self._client.stream("GET", path) as response:
                if response.status_code != 200:
                    raise RemoteStatusError(response.status_code, url)
                yield self._iter_raw(response, url)
        except httpx.TransportError as exc:
            raise TransportError(f"Request to {url} failed: {exc}") from exc

    # ------------------------------------------------------------------ #
    # Private helpers
    # ------------------------------------------------------------------ #

    @staticmethod
    async def _iter_raw(response: httpx.Response, url: str) -> AsyncIterator[bytes]:
        """Yield undecoded body chunks, mapping mid-stream network errors.

        Responses built from in-memory content (mock transports, cached
        redirects) arrive already read; their body is yielded in one piece.
        """
        if response.is_stream_consumed:
            yield response.content
            return
        try:
            async for chunk in response.aiter_raw():
                yield chunk
        except httpx.TransportError as exc:
            raise TransportError(f"Download from {url} interrupted: {exc}") from exc
