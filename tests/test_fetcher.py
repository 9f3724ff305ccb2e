"""Tests for CachedFetcher -- cache decisions, downloads and failures."""

from __future__ import annotations

import asyncio
import gzip
import json
import os
import threading
from pathlib import Path
from typing import Any

import httpx
import pytest

from mtgcache import fetcher as fetcher_module
from mtgcache.exceptions import (
    CacheWriteError,
    DecompressionError,
    ParseError,
    RemoteStatusError,
    TransportError,
)
from mtgcache.fetcher import CachedFetcher, fetch, fetch_sync
from mtgcache.models import CacheStatus, GlobalConfig, ResourceRequest

BASE_URL = "https://mtgjson.example/api"
MODIFIED_MS = 1_700_000_000_000
HOUR_MS = 3_600_000


def _config() -> GlobalConfig:
    return GlobalConfig(base_url=BASE_URL)


def _request(directory: Path, **kwargs: Any) -> ResourceRequest:
    kwargs.setdefault("identifier", "Standard")
    return ResourceRequest(directory=directory, **kwargs)


def _seed(path: Path, document: Any, modified_ms: int = MODIFIED_MS) -> None:
    path.write_text(json.dumps(document), encoding="utf-8")
    ns = modified_ms * 1_000_000
    os.utime(path, ns=(ns, ns))


def _run(fetcher: CachedFetcher, request: ResourceRequest) -> Any:
    return asyncio.run(fetcher.fetch(request))


# ---------------------------------------------------------------------------
# Cache misses
# ---------------------------------------------------------------------------


class TestMiss:
    @pytest.mark.parametrize("should_refresh", [True, False])
    def test_missing_file_triggers_one_fetch(
        self, download_dir, serve_document, sample_document, should_refresh: bool
    ) -> None:
        transport = serve_document(sample_document)
        fetcher = CachedFetcher(_config(), transport=transport)

        result = _run(fetcher, _request(download_dir, should_refresh=should_refresh))

        assert result == sample_document
        assert transport.call_count == 1
        assert str(transport.requests[0].url) == f"{BASE_URL}/v5/Standard.json.gz"

    def test_writes_decompressed_document(
        self, download_dir, serve_document, sample_document
    ) -> None:
        fetcher = CachedFetcher(_config(), transport=serve_document(sample_document))
        _run(fetcher, _request(download_dir))

        path = download_dir / "Standard.json.gz"
        assert json.loads(path.read_text(encoding="utf-8")) == sample_document
        assert list(download_dir.glob(".*.tmp")) == []

    def test_streamed_body_written_and_parsed(
        self, download_dir, stream_document, sample_document
    ) -> None:
        transport = stream_document(sample_document)
        result = _run(CachedFetcher(_config(), transport=transport), _request(download_dir))

        assert result == sample_document
        path = download_dir / "Standard.json.gz"
        assert json.loads(path.read_text(encoding="utf-8")) == sample_document
        assert list(download_dir.glob(".*.tmp")) == []

    def test_round_trip_matches_original_body(self, download_dir, make_transport) -> None:
        original = '{"meta": {"version": "5.2.2"}, "data": [1, 2.5, "x", null, true]}'
        transport = make_transport(
            lambda request: httpx.Response(200, content=gzip.compress(original.encode()))
        )
        result = _run(CachedFetcher(_config(), transport=transport), _request(download_dir))
        assert result == json.loads(original)

    def test_version_tag_selects_remote_namespace(
        self, download_dir, serve_document
    ) -> None:
        transport = serve_document()
        _run(
            CachedFetcher(_config(), transport=transport),
            _request(download_dir, identifier="AllPrintings", version_tag="v4"),
        )
        assert transport.requests[0].url.path == "/api/v4/AllPrintings.json.gz"

    def test_unreadable_fresh_file_downloads_again(
        self, download_dir, serve_document, sample_document, monkeypatch
    ) -> None:
        _seed(download_dir / "Standard.json.gz", {"old": True})
        transport = serve_document(sample_document)
        fetcher = CachedFetcher(_config(), transport=transport)

        calls = {"n": 0}
        original_read = fetcher_module.CacheEntry.read_text

        def flaky_read(self):
            calls["n"] += 1
            if calls["n"] == 1:
                return None
            return original_read(self)

        monkeypatch.setattr(fetcher_module.CacheEntry, "read_text", flaky_read)

        assert _run(fetcher, _request(download_dir)) == sample_document
        assert transport.call_count == 1


# ---------------------------------------------------------------------------
# Cache hits and staleness
# ---------------------------------------------------------------------------


class TestHit:
    def test_repeated_hits_do_not_fetch(self, download_dir, serve_document) -> None:
        cached = {"meta": {"version": "cached"}}
        _seed(download_dir / "Standard.json.gz", cached)
        transport = serve_document()
        fetcher = CachedFetcher(_config(), transport=transport)

        first = _run(fetcher, _request(download_dir))
        second = _run(fetcher, _request(download_dir))

        assert first == cached
        assert second == first
        assert transport.call_count == 0

    def test_old_file_used_when_refresh_disabled(self, download_dir, serve_document) -> None:
        _seed(download_dir / "Standard.json.gz", {"old": True}, modified_ms=0)
        transport = serve_document()
        fetcher = CachedFetcher(
            _config(), clock=lambda: MODIFIED_MS, transport=transport
        )
        assert _run(fetcher, _request(download_dir, should_refresh=False)) == {"old": True}
        assert transport.call_count == 0

    def test_stale_file_triggers_one_fetch(
        self, download_dir, serve_document, sample_document
    ) -> None:
        _seed(download_dir / "Standard.json.gz", {"old": True})
        transport = serve_document(sample_document)
        fetcher = CachedFetcher(
            _config(), clock=lambda: MODIFIED_MS + HOUR_MS + 1, transport=transport
        )
        request = _request(download_dir, should_refresh=True, refresh_interval_ms=HOUR_MS)

        assert _run(fetcher, request) == sample_document
        assert transport.call_count == 1

    def test_file_inside_window_not_fetched(self, download_dir, serve_document) -> None:
        _seed(download_dir / "Standard.json.gz", {"old": True})
        transport = serve_document()
        fetcher = CachedFetcher(
            _config(), clock=lambda: MODIFIED_MS + HOUR_MS - 1, transport=transport
        )
        request = _request(download_dir, should_refresh=True, refresh_interval_ms=HOUR_MS)

        assert _run(fetcher, request) == {"old": True}
        assert transport.call_count == 0

    def test_gzipped_cache_file_is_readable(self, download_dir, serve_document) -> None:
        path = download_dir / "Standard.json.gz"
        path.write_bytes(gzip.compress(b'{"compressed": true}'))
        transport = serve_document()
        result = _run(CachedFetcher(_config(), transport=transport), _request(download_dir))
        assert result == {"compressed": True}
        assert transport.call_count == 0


# ---------------------------------------------------------------------------
# Path determinism
# ---------------------------------------------------------------------------


class TestPaths:
    def test_cache_path(self, download_dir) -> None:
        request = _request(download_dir, identifier="AllPrintings")
        assert request.cache_path == download_dir / "AllPrintings.json.gz"

    def test_version_tags_share_one_cache_path(self, download_dir) -> None:
        v5 = _request(download_dir, version_tag="v5")
        v4 = _request(download_dir, version_tag="v4")
        assert v5.cache_path == v4.cache_path
        assert v5.remote_path != v4.remote_path

    def test_second_version_tag_overwrites_first(self, download_dir, make_transport) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            tag = request.url.path.split("/")[2]
            return httpx.Response(200, content=gzip.compress(json.dumps({"tag": tag}).encode()))

        fetcher = CachedFetcher(_config(), transport=make_transport(handler))
        asyncio.run(fetcher.refresh(_request(download_dir, version_tag="v4")))
        asyncio.run(fetcher.refresh(_request(download_dir, version_tag="v5")))

        path = download_dir / "Standard.json.gz"
        assert json.loads(path.read_text()) == {"tag": "v5"}
        assert [p.name for p in download_dir.iterdir()] == ["Standard.json.gz"]


# ---------------------------------------------------------------------------
# Lookup and refresh
# ---------------------------------------------------------------------------


class TestLookupAndRefresh:
    def test_lookup_has_no_network(self, download_dir, serve_document) -> None:
        transport = serve_document()
        fetcher = CachedFetcher(_config(), transport=transport)
        assert fetcher.lookup(_request(download_dir)).status is CacheStatus.MISSING
        assert transport.call_count == 0

    def test_refresh_ignores_fresh_cache(
        self, download_dir, serve_document, sample_document
    ) -> None:
        _seed(download_dir / "Standard.json.gz", {"old": True})
        transport = serve_document(sample_document)
        fetcher = CachedFetcher(_config(), clock=lambda: MODIFIED_MS, transport=transport)

        assert asyncio.run(fetcher.refresh(_request(download_dir))) == sample_document
        assert transport.call_count == 1

    def test_default_config(self) -> None:
        assert CachedFetcher().config.base_url == "https://mtgjson.com/api"


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestFailures:
    def test_404_raises_and_keeps_existing_file(self, download_dir, serve_document) -> None:
        path = download_dir / "Standard.json.gz"
        _seed(path, {"old": True})
        before = path.read_bytes()
        transport = serve_document(status_code=404)
        fetcher = CachedFetcher(
            _config(), clock=lambda: MODIFIED_MS + HOUR_MS + 1, transport=transport
        )
        request = _request(download_dir, should_refresh=True, refresh_interval_ms=HOUR_MS)

        with pytest.raises(RemoteStatusError) as exc_info:
            _run(fetcher, request)

        assert exc_info.value.status_code == 404
        assert path.read_bytes() == before
        assert transport.call_count == 1

    def test_404_on_miss_writes_nothing(self, download_dir, serve_document) -> None:
        with pytest.raises(RemoteStatusError):
            _run(CachedFetcher(_config(), transport=serve_document(status_code=404)),
                 _request(download_dir))
        assert list(download_dir.iterdir()) == []

    def test_transport_error(self, download_dir, make_transport) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection reset", request=request)

        with pytest.raises(TransportError):
            _run(CachedFetcher(_config(), transport=make_transport(handler)),
                 _request(download_dir))
        assert list(download_dir.iterdir()) == []

    def test_read_error_mid_body_keeps_previous_file(
        self, download_dir, stream_document
    ) -> None:
        path = download_dir / "Standard.json.gz"
        _seed(path, {"old": True})
        transport = stream_document(fail_after=32)

        with pytest.raises(TransportError):
            asyncio.run(
                CachedFetcher(_config(), transport=transport).refresh(_request(download_dir))
            )

        assert json.loads(path.read_text()) == {"old": True}
        assert [p.name for p in download_dir.iterdir()] == ["Standard.json.gz"]

    def test_unreadable_download_raises_cache_write_error(
        self, download_dir, serve_document, monkeypatch
    ) -> None:
        monkeypatch.setattr(fetcher_module.CacheEntry, "read_text", lambda self: None)
        with pytest.raises(CacheWriteError):
            _run(CachedFetcher(_config(), transport=serve_document()), _request(download_dir))

    def test_truncated_body_keeps_previous_file(self, download_dir, make_transport) -> None:
        path = download_dir / "Standard.json.gz"
        _seed(path, {"old": True})
        body = gzip.compress(b'{"new": true}' * 100)
        transport = make_transport(lambda request: httpx.Response(200, content=body[:-12]))

        with pytest.raises(DecompressionError):
            asyncio.run(
                CachedFetcher(_config(), transport=transport).refresh(_request(download_dir))
            )

        assert json.loads(path.read_text()) == {"old": True}
        assert list(download_dir.glob(".*.tmp")) == []

    def test_malformed_download_raises_parse_error(self, download_dir, make_transport) -> None:
        transport = make_transport(
            lambda request: httpx.Response(200, content=gzip.compress(b"{not json"))
        )
        with pytest.raises(ParseError):
            _run(CachedFetcher(_config(), transport=transport), _request(download_dir))
        # The file is written before parsing, matching download-then-read.
        assert (download_dir / "Standard.json.gz").read_text() == "{not json"

    def test_malformed_cache_raises_parse_error(self, download_dir, serve_document) -> None:
        (download_dir / "Standard.json.gz").write_text("[1, 2,", encoding="utf-8")
        transport = serve_document()
        with pytest.raises(ParseError):
            _run(CachedFetcher(_config(), transport=transport), _request(download_dir))
        assert transport.call_count == 0

    def test_binary_cache_raises_parse_error(self, download_dir, serve_document) -> None:
        (download_dir / "Standard.json.gz").write_bytes(b"\xff\xfe\x00")
        with pytest.raises(ParseError):
            _run(CachedFetcher(_config(), transport=serve_document()), _request(download_dir))

    def test_corrupt_gzip_cache_raises_parse_error(self, download_dir, serve_document) -> None:
        (download_dir / "Standard.json.gz").write_bytes(b"\x1f\x8b" + b"\x00" * 20)
        with pytest.raises(ParseError):
            _run(CachedFetcher(_config(), transport=serve_document()), _request(download_dir))


# ---------------------------------------------------------------------------
# Disk I/O runs off the event loop
# ---------------------------------------------------------------------------


class TestWorkerThreads:
    def test_cache_read_runs_in_worker_thread(self, download_dir, monkeypatch) -> None:
        _seed(download_dir / "Standard.json.gz", {"cached": True})
        original_read = fetcher_module.CacheEntry.read_text
        threads: list[int] = []

        def recording_read(self):
            threads.append(threading.get_ident())
            return original_read(self)

        monkeypatch.setattr(fetcher_module.CacheEntry, "read_text", recording_read)

        assert _run(CachedFetcher(_config()), _request(download_dir)) == {"cached": True}
        assert threads and threads[0] != threading.get_ident()

    def test_download_writes_in_worker_thread(
        self, download_dir, stream_document, sample_document, monkeypatch
    ) -> None:
        original_replace = os.replace
        threads: list[int] = []

        def recording_replace(src, dst):
            threads.append(threading.get_ident())
            return original_replace(src, dst)

        monkeypatch.setattr(os, "replace", recording_replace)
        transport = stream_document(sample_document)

        assert _run(CachedFetcher(_config(), transport=transport), _request(download_dir)) == (
            sample_document
        )
        assert len(threads) == 1
        assert threads[0] != threading.get_ident()


# ---------------------------------------------------------------------------
# Module-level helpers
# ---------------------------------------------------------------------------


class TestConvenienceFunctions:
    def test_fetch_uses_cache(self, download_dir) -> None:
        _seed(download_dir / "Standard.json.gz", {"cached": 1})
        assert asyncio.run(fetch("Standard", download_dir, config=_config())) == {"cached": 1}

    def test_fetch_sync_uses_cache(self, download_dir) -> None:
        _seed(download_dir / "Standard.json.gz", {"cached": 2})
        assert fetch_sync("Standard", str(download_dir), config=_config()) == {"cached": 2}

    def test_fetch_rejects_negative_interval(self, download_dir) -> None:
        with pytest.raises(ValueError):
            fetch_sync("Standard", download_dir, refresh_interval_ms=-1)

    def test_fetch_rejects_empty_identifier(self, download_dir) -> None:
        with pytest.raises(ValueError):
            fetch_sync("", download_dir)
