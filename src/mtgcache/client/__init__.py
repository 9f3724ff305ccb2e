"""HTTP client module for mtgcache.

Provides :class:`AsyncClient`, which wraps :class:`httpx.AsyncClient` to
stream one MTGJSON file per request with status and transport errors
mapped onto the :mod:`mtgcache.exceptions` hierarchy.
"""

from mtgcache.client.async_client import AsyncClient

__all__ = ["AsyncClient"]
