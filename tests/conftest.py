"""Shared test fixtures for mtgcache.

Provides fixtures for building gzip response bodies, recording mock HTTP
transports, isolated config environments, and managing output state.
These fixtures are automatically discovered by pytest and available to
all test modules without explicit imports.
"""

from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from mtgcache.output import OutputFormat, OutputManager, reset_output, set_output


SAMPLE_DOCUMENT: dict[str, Any] = {
    "meta": {"date": "2024-05-01", "version": "5.2.2+20240501"},
    "data": {
        "LEA": {"name": "Limited Edition Alpha", "totalSetSize": 295},
        "M21": {"name": "Core Set 2021", "totalSetSize": 397},
    },
}


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_output_between_tests() -> None:
    """Install a quiet output manager and reset it after every test.

    The OutputManager caches references to sys.stdout/sys.stderr at
    creation time, which go stale once a CliRunner invocation ends.
    """
    set_output(OutputManager(format=OutputFormat.PLAIN, no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Payload helpers
# ---------------------------------------------------------------------------


def gzip_json(document: Any) -> bytes:
    """Serialise *document* as JSON and gzip it, as MTGJSON serves files."""
    return gzip.compress(json.dumps(document).encode("utf-8"))


class RecordingTransport(httpx.MockTransport):
    """MockTransport that remembers every request it served."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []

        def _record(request: httpx.Request) -> httpx.Response:
            self.requests.append(request)
            return handler(request)

        super().__init__(_record)

    @property
    def call_count(self) -> int:
        return len(self.requests)


class ChunkedBody(httpx.AsyncByteStream):
    """Response body delivered in fixed-size chunks, like a real socket.

    When *fail_after* is set, :class:`httpx.ReadError` is raised once that
    many bytes have been sent.
    """

    def __init__(self, body: bytes, chunk_size: int = 16, fail_after: int | None = None) -> None:
        self.body = body
        self.chunk_size = chunk_size
        self.fail_after = fail_after

    async def __aiter__(self):
        sent = 0
        for start in range(0, len(self.body), self.chunk_size):
            if self.fail_after is not None and sent >= self.fail_after:
                raise httpx.ReadError("connection reset mid-body")
            chunk = self.body[start:start + self.chunk_size]
            sent += len(chunk)
            yield chunk
        if self.fail_after is not None and sent >= self.fail_after:
            raise httpx.ReadError("connection reset mid-body")


@pytest.fixture
def sample_document() -> dict[str, Any]:
    return json.loads(json.dumps(SAMPLE_DOCUMENT))


@pytest.fixture
def serve_document() -> Callable[..., RecordingTransport]:
    """Factory for a transport answering every GET with a gzipped document."""

    def _make(document: Any = SAMPLE_DOCUMENT, status_code: int = 200) -> RecordingTransport:
        body = gzip_json(document)
        return RecordingTransport(
            lambda request: httpx.Response(
                status_code,
                headers={"content-type": "application/gzip"},
                content=body if status_code == 200 else b"not found",
            )
        )

    return _make


@pytest.fixture
def chunked_body() -> type[ChunkedBody]:
    return ChunkedBody


@pytest.fixture
def stream_document() -> Callable[..., RecordingTransport]:
    """Factory for a transport streaming a gzipped document in chunks."""

    def _make(
        document: Any = SAMPLE_DOCUMENT, fail_after: int | None = None
    ) -> RecordingTransport:
        body = gzip_json(document)
        return RecordingTransport(
            lambda request: httpx.Response(
                200, stream=ChunkedBody(body, fail_after=fail_after)
            )
        )

    return _make


@pytest.fixture
def download_dir(tmp_path: Path) -> Path:
    path = tmp_path / "mtg"
    path.mkdir()
    return path


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate configuration to a temporary directory.

    Sets XDG_CONFIG_HOME, XDG_CACHE_HOME, and XDG_DATA_HOME to
    subdirectories of tmp_path and clears all MTGCACHE_* environment
    variables.
    """
    monkeypatch.setattr("mtgcache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))

    for var in ["MTGCACHE_BASE_URL", "MTGCACHE_DIR", "MTGCACHE_VERSION"]:
        monkeypatch.delenv(var, raising=False)

    monkeypatch.chdir(tmp_path)
    return tmp_path


@pytest.fixture
def cli_runner():
    """Typer CLI test runner."""
    from typer.testing import CliRunner

    return CliRunner()


@pytest.fixture
def make_transport() -> Callable[[Callable[[httpx.Request], httpx.Response]], RecordingTransport]:
    """Factory wrapping an arbitrary handler in a :class:`RecordingTransport`."""
    return RecordingTransport
