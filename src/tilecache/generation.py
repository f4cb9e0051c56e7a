"""Generation lifecycle: activation, precache, and purge of stale generations.

A *generation* is a complete, independently destroyable cache namespace.
Exactly one is current once activation completes. The lifecycle is a small
state machine::

    UNINITIALIZED --activate()--> ACTIVATING --precache ok--> ACTIVE
                                      |
                                      +--strict precache failure--> UNINITIALIZED

``ACTIVE`` is terminal for a :class:`GenerationManager`. A new deployment
builds a new manager over the same :class:`~tilecache.cache.CacheStorage`
and :class:`ActiveGeneration`; its activation publishes a fresh generation
and destroys every other one.

The current generation is published through :class:`ActiveGeneration`, a
single-writer reference cell. Request handlers never read it directly;
they take a lease via :meth:`ActiveGeneration.lease` so that a generation
being destroyed waits for them to finish.
"""

from __future__ import annotations

import asyncio
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

import httpx

from tilecache.cache.eviction import evict_if_needed
from tilecache.cache.storage import CacheStorage
from tilecache.cache.store import Store, request_key
from tilecache.client.network import build_request, default_transport, fetch
from tilecache.client.response import entry_from_response
from tilecache.exceptions import ActivationError, NetworkError, PrecacheFetchError, StoreError
from tilecache.models import CacheSettings, GenerationState
from tilecache.output import debug, info, warning


def generation_versions(storage: CacheStorage, cache_name: str) -> dict[int, str]:
    """Map version number to label for every ``<cache_name>-v<N>`` generation."""
    pattern = re.compile(rf"^{re.escape(cache_name)}-v(\d+)$")
    versions: dict[int, str] = {}
    for name in storage.names():
        match = pattern.match(name)
        if match:
            versions[int(match.group(1))] = name
    return versions


def latest_generation(storage: CacheStorage, cache_name: str) -> Optional[str]:
    """Return the highest-numbered generation named after *cache_name*, if any."""
    versions = generation_versions(storage, cache_name)
    return versions[max(versions)] if versions else None


class ActiveGeneration:
    """Reference cell holding the current generation's store.

    Only :class:`GenerationManager` calls :meth:`publish`. Readers use
    :meth:`snapshot` or, for anything that touches the store, :meth:`lease`.
    """

    def __init__(self) -> None:
        self._store: Optional[Store] = None

    def snapshot(self) -> Optional[Store]:
        """Return the current store, or ``None`` before the first activation."""
        return self._store

    @property
    def name(self) -> Optional[str]:
        return None if self._store is None else self._store.name

    def publish(self, store: Store) -> Optional[Store]:
        """Make *store* current and return the store it replaced."""
        previous, self._store = self._store, store
        return previous

    @asynccontextmanager
    async def lease(self) -> AsyncIterator[Store]:
        """Hold a lease on the current store for the duration of the block.

        Raises:
            ActivationError: If no generation has been activated yet.
        """
        store = self._store
        if store is None:
            raise ActivationError("No cache generation is active")
        store.acquire()
        try:
            yield store
        finally:
            store.release()


class GenerationManager:
    """Creates, precaches and publishes a generation, then purges the others.

    Args:
        storage: Generation registry shared by every manager of this cache.
        settings: Cache name prefix, precache list and capacity.
        transport: Network transport used for precache fetches.
        current: The cell to publish into. A fresh one is created when
            omitted; pass the same cell to successive managers so that the
            fetch orchestrator follows generation switches.
    """

    def __init__(
        self,
        storage: CacheStorage,
        settings: CacheSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        current: Optional[ActiveGeneration] = None,
    ) -> None:
        self._storage = storage
        self._settings = settings
        self._transport = transport or default_transport()
        self._current = current or ActiveGeneration()
        self._state = GenerationState.UNINITIALIZED
        self._generation: Optional[str] = None

    @property
    def state(self) -> GenerationState:
        return self._state

    @property
    def generation(self) -> Optional[str]:
        """Label of the generation this manager activated, once ``ACTIVE``."""
        return self._generation

    @property
    def current(self) -> ActiveGeneration:
        return self._current

    @property
    def storage(self) -> CacheStorage:
        return self._storage

    # ------------------------------------------------------------------ #
    # Activation
    # ------------------------------------------------------------------ #

    async def activate(self) -> str:
        """Run a full activation cycle and return the new generation label.

        Raises:
            ActivationError: If this manager has already been activated.
            PrecacheFetchError: In strict mode, when a precache URL fails.

        On any failure before the new generation is published (including
        store errors and cancellation) the half-built generation is
        destroyed and the manager returns to ``UNINITIALIZED``.
        """
        if self._state is not GenerationState.UNINITIALIZED:
            raise ActivationError(
                f"Generation manager is already {self._state.value}; "
                "create a new manager for a new deployment"
            )
        self._state = GenerationState.ACTIVATING
        name = self.next_generation_name()
        store = self._storage.open(name)
        info(f"Activating cache generation {name}")

        try:
            failures = await self._precache(store)
            evicted = await asyncio.to_thread(evict_if_needed, store, self._settings.max_items)
        except BaseException:
            # Nothing was published; drop the half-built generation.
            self._state = GenerationState.UNINITIALIZED
            await self._storage.delete(name)
            raise
        if evicted:
            debug(f"Precache exceeded capacity; evicted {len(evicted)} entries")

        self._current.publish(store)
        self._generation = name
        self._state = GenerationState.ACTIVE

        purged = await self.purge_stale()
        info(
            f"Generation {name} active: {len(store)} precached, "
            f"{len(failures)} failed, {len(purged)} stale generations purged"
        )
        return name

    async def resume(self) -> str:
        """Adopt the newest existing generation as-is, or activate if there is none.

        No precache and no purge happen when a generation is adopted. Used
        by short-lived operator commands that should read the cache a
        long-running deployment built rather than replace it.
        """
        if self._state is not GenerationState.UNINITIALIZED:
            raise ActivationError(f"Generation manager is already {self._state.value}")
        latest = self.latest_generation()
        if latest is None:
            return await self.activate()
        self._current.publish(self._storage.open(latest))
        self._generation = latest
        self._state = GenerationState.ACTIVE
        debug(f"Resumed cache generation {latest}")
        return latest

    def latest_generation(self) -> Optional[str]:
        """Return the highest-numbered existing generation with this prefix."""
        return latest_generation(self._storage, self._settings.cache_name)

    def next_generation_name(self) -> str:
        """Return ``<cache_name>-v<N>`` with N above every existing generation."""
        versions = generation_versions(self._storage, self._settings.cache_name)
        return f"{self._settings.cache_name}-v{max(versions, default=0) + 1}"

    async def purge_stale(self) -> list[str]:
        """Destroy every generation except the active one.

        Stores still leased by in-flight requests are destroyed once those
        requests finish.

        Returns:
            The purged generation labels.
        """
        stale = [name for name in self._storage.names() if name != self._generation]
        for name in stale:
            debug(f"Purging stale generation {name}")
        await asyncio.gather(*(self._storage.delete(name) for name in stale))
        return stale

    # ------------------------------------------------------------------ #
    # Precache
    # ------------------------------------------------------------------ #

    async def _precache(self, store: Store) -> list[PrecacheFetchError]:
        """Fetch and store every precache URL, in order.

        Returns the failures that were tolerated. In strict mode the first
        failure is raised instead.
        """
        failures: list[PrecacheFetchError] = []
        for url in self._settings.precache_urls:
            try:
                await self._precache_one(store, url)
            except PrecacheFetchError as exc:
                if self._settings.strict_precache:
                    raise
                warning(str(exc))
                failures.append(exc)
        return failures

    async def _precache_one(self, store: Store, url: str) -> None:
        resolved = self._resolve(url)
        request = build_request(resolved, self._settings.timeout)
        try:
            response = await fetch(self._transport, request)
        except NetworkError as exc:
            raise PrecacheFetchError(url, str(exc)) from exc
        if not response.is_success:
            raise PrecacheFetchError(url, f"HTTP {response.status_code}")

        key = request_key(request)
        try:
            await asyncio.to_thread(store.put, key, entry_from_response(key, request, response))
        except StoreError as exc:
            raise PrecacheFetchError(url, str(exc)) from exc
        debug(f"Precached {key}")

    def _resolve(self, url: str) -> str:
        """Resolve a relative precache URL against ``settings.base_url``."""
        if httpx.URL(url).is_absolute_url:
            return url
        if not self._settings.base_url:
            raise PrecacheFetchError(url, "relative URL and no base_url configured")
        return str(httpx.URL(self._settings.base_url).join(url))
