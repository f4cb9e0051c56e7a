"""httpx transport that routes every request through a :class:`FetchOrchestrator`.

This is the interception seam: any :class:`httpx.AsyncClient` built with
``transport=CachingTransport(orchestrator)`` gets cache-first GETs without
changing its call sites::

    async with httpx.AsyncClient(transport=CachingTransport(orchestrator)) as client:
        tile = await client.get("https://tile.openstreetmap.org/3/4/2.png")
"""

from __future__ import annotations

import httpx

from tilecache.client.orchestrator import FetchOrchestrator


class CachingTransport(httpx.AsyncBaseTransport):
    """Async transport delegating to a :class:`FetchOrchestrator`.

    Closing the transport drains pending cache writes. The orchestrator and
    its network transport stay open; they belong to whoever built them.
    """

    def __init__(self, orchestrator: FetchOrchestrator) -> None:
        self._orchestrator = orchestrator

    @property
    def orchestrator(self) -> FetchOrchestrator:
        return self._orchestrator

    async def handle_async_request(self, request: httpx.Request) -> httpx.Response:
        return await self._orchestrator.handle(request)

    async def aclose(self) -> None:
        await self._orchestrator.drain()
