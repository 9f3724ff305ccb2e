"""Canonical Pydantic models shared across all mtgcache modules.

The models fall into two groups:

**Request and lookup models** -- built per call and never persisted:
    :class:`ResourceRequest`, :class:`CacheStatus` and :class:`CacheLookup`.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`RequestConfig`, :class:`OutputConfig`, :class:`FetchDefaults`
    and :class:`GlobalConfig`.
"""

from __future__ import annotations

import enum
from pathlib import Path
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_BASE_URL = "https://mtgjson.com/api"
DEFAULT_VERSION_TAG = "v5"
DEFAULT_REFRESH_INTERVAL_MS = 1000 * 60 * 60 * 24
ARTIFACT_SUFFIX = ".json.gz"


# --- Requests and cache lookups ---


class ResourceRequest(BaseModel):
    """A single request for an MTGJSON file.

    The local cache path depends only on ``directory`` and ``identifier``.
    ``version_tag`` selects the remote namespace but is not part of the
    filename, so two version tags for the same identifier share one file.

    Example::

        ResourceRequest(identifier="AllPrintings", directory="/tmp/mtg",
                        should_refresh=True)
    """

    model_config = ConfigDict(frozen=True)

    identifier: str = Field(min_length=1, description="Dataset name, e.g. AllPrintings")
    directory: Path = Field(description="Existing, writable download directory")
    version_tag: str = Field(default=DEFAULT_VERSION_TAG, min_length=1)
    should_refresh: bool = Field(
        default=False, description="Re-download once the file is older than the interval"
    )
    refresh_interval_ms: int = Field(default=DEFAULT_REFRESH_INTERVAL_MS, ge=0)

    @property
    def filename(self) -> str:
        return f"{self.identifier}{ARTIFACT_SUFFIX}"

    @property
    def cache_path(self) -> Path:
        """Deterministic on-disk location of the cached document."""
        return self.directory / self.filename

    @property
    def remote_path(self) -> str:
        """URL path relative to the configured base URL."""
        return f"/{self.version_tag}/{self.filename}"


class CacheStatus(str, enum.Enum):
    """Outcome of a cache lookup."""

    FRESH = "fresh"
    STALE = "stale"
    MISSING = "missing"


class CacheLookup(BaseModel):
    """Result of :meth:`~mtgcache.cache.CacheEntry.lookup`.

    ``modified_ms`` and ``age_ms`` are ``None`` when the file is missing.
    """

    status: CacheStatus
    path: Path
    modified_ms: Optional[int] = None
    age_ms: Optional[int] = None

    @property
    def needs_download(self) -> bool:
        return self.status is not CacheStatus.FRESH


# --- Configuration ---


class RequestConfig(BaseModel):
    """HTTP settings applied to every download."""

    timeout: float = Field(default=60.0, gt=0, description="Request timeout in seconds")
    verify_ssl: bool = Field(default=True, description="Verify SSL certificates")


class OutputConfig(BaseModel):
    """Default output format preferences stored in :class:`GlobalConfig`."""

    format: Literal["auto", "json", "plain", "rich"] = Field(
        default="auto", description="Output format: auto, json, plain, rich"
    )


class FetchDefaults(BaseModel):
    """Defaults used by the CLI when an option is not given."""

    directory: Optional[str] = Field(
        default=None, description="Download directory (defaults to the XDG cache dir)"
    )
    version_tag: str = DEFAULT_VERSION_TAG
    refresh_interval_ms: int = Field(default=DEFAULT_REFRESH_INTERVAL_MS, ge=0)


class GlobalConfig(BaseModel):
    """User-wide configuration persisted at ``~/.config/mtgcache/config.json``.

    Loaded and saved by :func:`~mtgcache.config.load_global_config` and
    :func:`~mtgcache.config.save_global_config`. See
    :func:`~mtgcache.config.resolve_config` for how environment variables
    and CLI flags override it.
    """

    base_url: str = Field(default=DEFAULT_BASE_URL, description="MTGJSON API root")
    defaults: FetchDefaults = Field(default_factory=FetchDefaults)
    request: RequestConfig = Field(default_factory=RequestConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)
