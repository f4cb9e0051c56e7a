"""Shared test fixtures for tilecache.

Provides a fake origin (an :class:`httpx.MockTransport` that counts calls
and can be switched offline), isolated storage under ``tmp_path``, and
output/config isolation. These fixtures are discovered by pytest and
available to all test modules without explicit imports.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Callable, Optional

import httpx
import pytest

from tilecache.cache import CacheStorage
from tilecache.models import CacheSettings
from tilecache.output import OutputManager, reset_output, set_output


TILE_URL = "https://tile.openstreetmap.org/3/4/2.png"
LEAFLET_JS = "https://unpkg.com/leaflet@1.9.4/dist/leaflet.js"
LEAFLET_CSS = "https://unpkg.com/leaflet@1.9.4/dist/leaflet.css"
OTHER_URL = "https://api.example.com/data.json"


class FakeOrigin:
    """Scriptable origin server.

    Every URL answers ``200`` with ``b"body:<url>"`` unless a status is set
    with :meth:`route`. URLs passed to :meth:`fail` (or every URL while
    :attr:`offline` is set) raise :class:`httpx.ConnectError`. URLs passed to
    :meth:`corrupt` answer 200 with a body labelled gzip that cannot be
    decoded.
    """

    def __init__(self) -> None:
        self.calls: list[httpx.Request] = []
        self.offline = False
        self._routes: dict[str, tuple[int, bytes]] = {}
        self._failing: set[str] = set()
        self._corrupt: set[str] = set()

    def route(self, url: str, status: int = 200, body: Optional[bytes] = None) -> None:
        self._routes[url] = (status, body if body is not None else f"body:{url}".encode())

    def fail(self, url: str) -> None:
        self._failing.add(url)

    def corrupt(self, url: str) -> None:
        self._corrupt.add(url)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.calls.append(request)
        url = str(request.url)
        if self.offline or url in self._failing:
            raise httpx.ConnectError("origin unreachable", request=request)
        if url in self._corrupt:
            return httpx.Response(
                200, headers={"content-encoding": "gzip"}, stream=httpx.ByteStream(b"junk")
            )
        status, body = self._routes.get(url, (200, f"body:{url}".encode()))
        return httpx.Response(status, content=body, headers={"content-type": "image/png"})

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.calls]


async def wait_until(predicate: Callable[[], bool], timeout: float = 2.0) -> None:
    """Poll *predicate* on the event loop until it holds."""

    async def _poll() -> None:
        while not predicate():
            await asyncio.sleep(0.001)

    await asyncio.wait_for(_poll(), timeout=timeout)


# ---------------------------------------------------------------------------
# Auto-reset global output state between tests
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _quiet_output() -> None:
    """Install a quiet, uncoloured OutputManager and reset it afterwards."""
    set_output(OutputManager(no_color=True, quiet=True))
    yield
    reset_output()


# ---------------------------------------------------------------------------
# Engine fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def origin() -> FakeOrigin:
    return FakeOrigin()


@pytest.fixture
def storage(tmp_path: Path) -> CacheStorage:
    """A storage registry rooted in a temporary directory."""
    s = CacheStorage(tmp_path / "generations")
    yield s
    s.close()


@pytest.fixture
def settings() -> CacheSettings:
    """Small-capacity settings precaching the two Leaflet assets."""
    return CacheSettings(
        cache_name="map-cache",
        max_items=5,
        precache_urls=[LEAFLET_CSS, LEAFLET_JS],
    )


# ---------------------------------------------------------------------------
# Config isolation fixture
# ---------------------------------------------------------------------------


@pytest.fixture
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Isolate XDG directories and TILECACHE_* variables to tmp_path."""
    monkeypatch.setattr("tilecache.config._is_xdg_platform", lambda: True)
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "config"))
    monkeypatch.setenv("XDG_CACHE_HOME", str(tmp_path / "cache"))
    monkeypatch.setenv("XDG_DATA_HOME", str(tmp_path / "data"))
    for var in [
        "TILECACHE_CACHE_NAME",
        "TILECACHE_MAX_ITEMS",
        "TILECACHE_BASE_URL",
        "TILECACHE_STRICT_PRECACHE",
    ]:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)
    return tmp_path
