"""Fetch commands -- download, inspect and locate cached MTGJSON files.

Provides the ``mtgcache fetch``, ``mtgcache status`` and ``mtgcache path``
commands. All three resolve the download directory the same way: the
``--dir`` option, then ``$MTGCACHE_DIR`` / the config file, then the XDG
cache directory.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Optional

import typer

from mtgcache.output import format_response, print_data, print_table

if TYPE_CHECKING:
    from mtgcache.models import ResourceRequest


def _build_request(
    ctx: typer.Context,
    identifier: str,
    directory: Optional[str],
    version_tag: Optional[str],
    refresh: bool,
    refresh_interval: Optional[int],
) -> ResourceRequest:
    from pydantic import ValidationError

    from mtgcache.config import resolve_directory
    from mtgcache.exceptions import InvalidUsageError
    from mtgcache.models import ResourceRequest

    config = ctx.obj["config"]
    target = resolve_directory(config, directory)
    if not target.is_dir():
        raise InvalidUsageError(f"Directory does not exist: {target}")
    try:
        return ResourceRequest(
            identifier=identifier,
            directory=target,
            version_tag=version_tag or config.defaults.version_tag,
            should_refresh=refresh,
            refresh_interval_ms=(
                config.defaults.refresh_interval_ms
                if refresh_interval is None
                else refresh_interval
            ),
        )
    except ValidationError as exc:
        raise InvalidUsageError(f"Invalid request: {exc}") from None


def _summarise(document: Any) -> dict[str, Any]:
    """Top-level shape of an MTGJSON document (``meta`` plus data keys)."""
    if not isinstance(document, dict):
        return {"type": type(document).__name__}
    summary: dict[str, Any] = {}
    meta = document.get("meta")
    if isinstance(meta, dict):
        summary.update({f"meta.{k}": v for k, v in meta.items()})
    data = document.get("data")
    if isinstance(data, (dict, list)):
        summary["data.entries"] = len(data)
    summary["keys"] = ", ".join(sorted(document))
    return summary


def fetch_command(
    ctx: typer.Context,
    identifier: str = typer.Argument(help="MTGJSON file name, e.g. AllPrintings or Standard."),
    directory: Optional[str] = typer.Option(
        None, "--dir", "-d", help="Download directory (must exist)."
    ),
    version_tag: Optional[str] = typer.Option(
        None, "--version-tag", help="MTGJSON API version, e.g. v5."
    ),
    refresh: bool = typer.Option(
        False, "--refresh", "-r", help="Re-download when the cached file is stale."
    ),
    refresh_interval: Optional[int] = typer.Option(
        None, "--refresh-interval", min=0, help="Staleness window in milliseconds."
    ),
    summary: bool = typer.Option(
        False, "--summary", "-s", help="Print only the document's meta and size."
    ),
) -> None:
    """Fetch an MTGJSON file, using the cached copy when possible.

    Example::

        mtgcache fetch Standard --dir ./data --refresh
        mtgcache --json fetch AllPrintings --summary
    """
    from mtgcache.fetcher import CachedFetcher

    request = _build_request(ctx, identifier, directory, version_tag, refresh, refresh_interval)
    fetcher = CachedFetcher(ctx.obj["config"])
    document = asyncio.run(fetcher.fetch(request))
    format_response(_summarise(document) if summary else document)


def status_command(
    ctx: typer.Context,
    identifier: str = typer.Argument(help="MTGJSON file name."),
    directory: Optional[str] = typer.Option(None, "--dir", "-d", help="Download directory."),
    refresh_interval: Optional[int] = typer.Option(
        None, "--refresh-interval", min=0, help="Staleness window in milliseconds."
    ),
) -> None:
    """Show whether the cached copy of a file is fresh, stale or missing.

    Never touches the network.
    """
    from mtgcache.fetcher import CachedFetcher

    request = _build_request(ctx, identifier, directory, None, True, refresh_interval)
    lookup = CachedFetcher(ctx.obj["config"]).lookup(request)

    modified = ""
    if lookup.modified_ms is not None:
        modified = datetime.fromtimestamp(
            lookup.modified_ms / 1000, tz=timezone.utc
        ).isoformat(timespec="seconds")
    age = "" if lookup.age_ms is None else str(lookup.age_ms)
    print_table(
        ["identifier", "status", "path", "modified", "age_ms"],
        [[identifier, lookup.status.value, str(lookup.path), modified, age]],
        title="Cache status",
    )


def path_command(
    ctx: typer.Context,
    identifier: str = typer.Argument(help="MTGJSON file name."),
    directory: Optional[str] = typer.Option(None, "--dir", "-d", help="Download directory."),
) -> None:
    """Print the local cache path for a file."""
    request = _build_request(ctx, identifier, directory, None, False, None)
    print_data(str(request.cache_path))
