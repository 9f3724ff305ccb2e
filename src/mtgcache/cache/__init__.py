"""Single-file local cache for downloaded MTGJSON documents.

This package provides :class:`CacheEntry`, the on-disk copy of one MTGJSON
file. Its location is ``<directory>/<identifier>.json.gz`` and its
modification time is the only freshness signal; there is no manifest or
index.

The entry is consumed by :class:`~mtgcache.fetcher.CachedFetcher`.
"""

from mtgcache.cache.entry import CacheEntry, Clock, wall_clock_ms

__all__ = ["CacheEntry", "Clock", "wall_clock_ms"]
