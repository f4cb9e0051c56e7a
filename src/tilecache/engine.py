"""One-stop wiring of storage, generation manager and orchestrator.

:class:`TileCache` is what applications and the CLI use. Entering it runs
a full activation (new generation, precache, purge of the old ones); leaving
it drains background writes and closes the network transport::

    async with TileCache(settings, get_storage_dir()) as cache:
        async with cache.client() as client:
            await client.get("https://tile.openstreetmap.org/0/0/0.png")
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Optional

import httpx

from tilecache.cache.storage import CacheStorage
from tilecache.client.network import build_request, default_transport
from tilecache.client.orchestrator import FetchOrchestrator
from tilecache.client.transport import CachingTransport
from tilecache.generation import ActiveGeneration, GenerationManager
from tilecache.models import CacheSettings


class TileCache:
    """Activated cache engine, used as an async context manager.

    Args:
        settings: Resolved engine settings.
        storage: A :class:`CacheStorage` or a storage root directory.
        transport: Network transport shared by precache and request
            handling. Defaults to :func:`~tilecache.client.network.default_transport`.
        resume: Adopt the newest existing generation instead of activating
            a fresh one (see :meth:`GenerationManager.resume`).
    """

    def __init__(
        self,
        settings: CacheSettings,
        storage: CacheStorage | str | Path,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        resume: bool = False,
    ) -> None:
        self._settings = settings
        self._resume = resume
        self._storage = storage if isinstance(storage, CacheStorage) else CacheStorage(storage)
        self._transport = transport or default_transport()
        self._current = ActiveGeneration()
        self.manager = GenerationManager(
            self._storage, settings, transport=self._transport, current=self._current
        )
        self.orchestrator = FetchOrchestrator.from_settings(
            settings, self._current, transport=self._transport
        )

    async def __aenter__(self) -> TileCache:
        try:
            if self._resume:
                await self.manager.resume()
            else:
                await self.manager.activate()
        except BaseException:
            await self.aclose()
            raise
        return self

    async def __aexit__(self, *args: object) -> None:
        await self.aclose()

    @property
    def generation(self) -> Optional[str]:
        return self._current.name

    @property
    def storage(self) -> CacheStorage:
        return self._storage

    def client(self, **kwargs: Any) -> httpx.AsyncClient:
        """Return an :class:`httpx.AsyncClient` whose requests go through the cache."""
        kwargs.setdefault("timeout", self._settings.timeout)
        return httpx.AsyncClient(transport=CachingTransport(self.orchestrator), **kwargs)

    async def fetch(self, url: str) -> httpx.Response:
        """Fetch *url* through the cache (GET)."""
        return await self.orchestrator.handle(build_request(url, self._settings.timeout))

    def stats(self) -> dict[str, Any]:
        """Return the active generation, its size and the request counters."""
        store = self._current.snapshot()
        return {
            "generation": self.generation,
            "size": 0 if store is None else len(store),
            "max_items": self._settings.max_items,
            **self.orchestrator.stats(),
        }

    async def aclose(self) -> None:
        """Drain pending writes, close the transport and the open stores."""
        await self.orchestrator.aclose()
        self._storage.close()
