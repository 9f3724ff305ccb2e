"""mtgcache -- download MTGJSON datasets once and keep a local copy fresh.

The package fetches a named MTGJSON file (``AllPrintings``, ``Standard``,
...) over HTTPS, gunzips it into a directory of your choice and re-reads it
from disk on later calls until it becomes older than a refresh interval.

Typical use::

    from mtgcache import fetch_sync

    data = fetch_sync("Standard", "/tmp/mtg", should_refresh=True)

Modules:
    fetcher: :class:`CachedFetcher` and the :func:`fetch` helpers.
    cache: The single-file cache entry with atomic writes.
    client: Async HTTP client backed by :mod:`httpx`.
    models: Pydantic models for requests, lookups and configuration.
    config: XDG-aware configuration loading and saving.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stdout/stderr formatting system with Rich support.
"""

__version__ = "0.1.0"

from mtgcache.fetcher import CachedFetcher, fetch, fetch_sync  # noqa: E402
from mtgcache.models import CacheLookup, CacheStatus, ResourceRequest  # noqa: E402

__all__ = [
    "CachedFetcher",
    "CacheLookup",
    "CacheStatus",
    "ResourceRequest",
    "fetch",
    "fetch_sync",
]
