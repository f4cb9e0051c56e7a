"""Cache-first fetch orchestration.

:class:`FetchOrchestrator` is the control path for every intercepted
request:

1. Non-GET requests go straight to the network; nothing is looked up,
   admitted or stored, and network errors propagate untouched.
2. GET requests lease the current generation's store and look up the
   request key. A hit is returned immediately, without a network call.
3. On a miss the request goes to the network. If the response passes the
   :class:`~tilecache.cache.AdmissionFilter`, a background task writes a
   copy and runs :func:`~tilecache.cache.evict_if_needed`; the response is
   returned without waiting for that write.
4. If the network fails and nothing was cached, a synthetic network-error
   response is returned (see :func:`~tilecache.client.response.network_error_response`).

Store failures never turn into request failures. A failed read is treated
as a miss and a failed write is reported and dropped.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any, Optional

import httpx

from tilecache.cache.admission import AdmissionFilter
from tilecache.cache.eviction import evict_if_needed
from tilecache.cache.store import Store, request_key
from tilecache.client.network import default_transport, fetch
from tilecache.client.response import (
    SOURCE_EXTENSION,
    entry_from_response,
    network_error_response,
    response_from_entry,
)
from tilecache.exceptions import NetworkError, StoreError
from tilecache.models import CacheEntry, CacheSettings
from tilecache.output import debug, warning

if TYPE_CHECKING:
    from tilecache.generation import ActiveGeneration


class FetchOrchestrator:
    """Serve GET requests cache-first with network fallback.

    Args:
        current: Cell holding the current generation. Read on every
            request, so generation switches take effect immediately.
        admission: Decides which network responses are stored.
        transport: Network transport to the origin.
        max_items: Capacity bound enforced after each write.

    Example::

        orchestrator = FetchOrchestrator(manager.current, AdmissionFilter(patterns))
        response = await orchestrator.handle(httpx.Request("GET", tile_url))
        await orchestrator.drain()   # wait for background cache writes
    """

    def __init__(
        self,
        current: ActiveGeneration,
        admission: AdmissionFilter,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        max_items: int = 100,
    ) -> None:
        self._current = current
        self._admission = admission
        self._transport = transport or default_transport()
        self._max_items = max_items
        self._pending: set[asyncio.Task[None]] = set()
        self._hits = 0
        self._misses = 0
        self._network_errors = 0
        self._writes = 0

    @classmethod
    def from_settings(
        cls,
        settings: CacheSettings,
        current: ActiveGeneration,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> FetchOrchestrator:
        return cls(
            current,
            AdmissionFilter(settings.cacheable_patterns),
            transport=transport,
            max_items=settings.max_items,
        )

    # ------------------------------------------------------------------ #
    # Request handling
    # ------------------------------------------------------------------ #

    async def handle(self, request: httpx.Request) -> httpx.Response:
        """Return a response for *request*, from the cache when possible.

        For GET requests this never raises for network or store failures.
        """
        if request.method.upper() != "GET":
            return await self._transport.handle_async_request(request)

        if self._current.snapshot() is None:
            debug(f"No active generation, bypassing cache: {request.url}")
            return await self._fetch_uncached(request)

        async with self._current.lease() as store:
            key = request_key(request)
            cached = await self._lookup(store, key)
            if cached is not None:
                self._hits += 1
                debug(f"Cache hit: {key}")
                return response_from_entry(cached, request)

            self._misses += 1
            debug(f"Cache miss: {key}")
            try:
                response = await fetch(self._transport, request)
            except NetworkError as exc:
                self._network_errors += 1
                debug(f"Network failure with no cached copy: {exc}")
                return network_error_response(request, exc)

            if self._admission.is_cacheable(request, response):
                self._schedule_write(store, entry_from_response(key, request, response))
            response.extensions[SOURCE_EXTENSION] = "network"
            return response

    async def _fetch_uncached(self, request: httpx.Request) -> httpx.Response:
        try:
            response = await fetch(self._transport, request)
        except NetworkError as exc:
            self._network_errors += 1
            return network_error_response(request, exc)
        response.extensions[SOURCE_EXTENSION] = "network"
        return response

    async def _lookup(self, store: Store, key: str) -> Optional[CacheEntry]:
        try:
            return await asyncio.to_thread(store.get, key)
        except StoreError as exc:
            warning(f"Cache read failed, treating as miss: {exc}")
            return None

    # ------------------------------------------------------------------ #
    # Background writes
    # ------------------------------------------------------------------ #

    def _schedule_write(self, store: Store, entry: CacheEntry) -> None:
        # The lease is taken before the caller's lease ends, so the store
        # cannot be destroyed before the write runs.
        store.acquire()
        task = asyncio.create_task(self._write(store, entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, store: Store, entry: CacheEntry) -> None:
        try:
            if store.retired:
                debug(f"Generation {store.name} retiring, dropping write of {entry.key}")
                return
            work = asyncio.ensure_future(
                asyncio.to_thread(self._put_and_evict, store, entry)
            )
            try:
                evicted = await asyncio.shield(work)
            except asyncio.CancelledError:
                # The worker thread cannot be interrupted; keep the lease
                # until its transaction has finished.
                await asyncio.wait([work])
                raise
            self._writes += 1
            for key in evicted:
                debug(f"Evicted {key}")
        except StoreError as exc:
            warning(f"Could not cache {entry.url}: {exc}")
        finally:
            store.release()

    def _put_and_evict(self, store: Store, entry: CacheEntry) -> list[str]:
        store.put(entry.key, entry)
        return evict_if_needed(store, self._max_items)

    async def drain(self) -> None:
        """Wait until every scheduled cache write has finished."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def aclose(self) -> None:
        """Finish pending writes and close the network transport."""
        await self.drain()
        await self._transport.aclose()

    def stats(self) -> dict[str, Any]:
        """Return request counters since construction."""
        return {
            "hits": self._hits,
            "misses": self._misses,
            "network_errors": self._network_errors,
            "writes": self._writes,
            "pending_writes": len(self._pending),
        }
