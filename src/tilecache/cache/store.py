"""Insertion-ordered persistent store for one cache generation.

Uses :class:`diskcache.Index` -- an ordered mapping backed by SQLite -- so
that enumeration order is insertion order and survives process restarts.
Individual ``get``/``put``/``delete`` calls are atomic; no cross-call
transaction is offered.

Cache keys are ``"GET <normalized url>"`` strings produced by
:func:`request_key`. Keys are stored readable rather than hashed so that
``tilecache keys`` can list them.

Each :class:`Store` also carries a lease count. Request handlers hold a
lease for as long as they use the store, and :meth:`Store.destroy` waits for
every lease to be released before deleting anything, so a generation switch
never pulls a store out from under an in-flight request.
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path
from typing import Optional

import diskcache
import httpx

from tilecache.exceptions import StoreError
from tilecache.models import CacheEntry, StoreStats


def normalize_url(url: httpx.URL | str) -> str:
    """Return *url* with lowercased scheme/host, no default port and no fragment.

    httpx already normalizes case and default ports while parsing; only the
    fragment has to be dropped here.
    """
    return str(httpx.URL(url)).partition("#")[0]


def request_key(request: httpx.Request) -> str:
    """Generate the cache key for *request* from its method and normalized URL."""
    return f"{request.method.upper()} {normalize_url(request.url)}"


class Store:
    """Persistent, insertion-ordered key to :class:`CacheEntry` map.

    Args:
        name: Generation label this store belongs to.
        directory: Directory holding the SQLite database. Created if missing.

    Example::

        store = Store("map-cache-v1", "/tmp/tilecache/map-cache-v1")
        store.put(key, entry)
        assert store.keys()[-1] == key
    """

    def __init__(self, name: str, directory: str | Path) -> None:
        self.name = name
        self._directory = Path(directory)
        self._index: Optional[diskcache.Index] = diskcache.Index(str(self._directory))
        self._leases = 0
        self._retired = False
        self._released = asyncio.Event()
        self._released.set()

    # ------------------------------------------------------------------ #
    # Entry operations
    # ------------------------------------------------------------------ #

    def get(self, key: str) -> Optional[CacheEntry]:
        """Look up *key*. Returns ``None`` on a miss or once destroyed."""
        index = self._index
        if index is None:
            return None
        try:
            data = index.get(key)
        except Exception as exc:
            raise StoreError(f"Read of {key!r} from {self.name} failed: {exc}") from exc
        if data is None:
            return None
        return CacheEntry.model_validate(data)

    def put(self, key: str, entry: CacheEntry) -> None:
        """Upsert *entry* under *key*, moving the key to the newest position.

        The removal of the old position and the insert happen in one
        transaction, so concurrent readers see either the old or the new
        entry, never neither.

        Raises:
            StoreError: If the store was destroyed or the write failed
                (e.g. disk full).
        """
        index = self._require_open()
        try:
            with index.transact():
                index.pop(key, None)
                index[key] = entry.model_dump()
        except Exception as exc:
            raise StoreError(f"Write of {key!r} to {self.name} failed: {exc}") from exc

    def keys(self) -> list[str]:
        """Return all keys in insertion order, oldest first."""
        index = self._index
        if index is None:
            return []
        return list(index.keys())

    def delete(self, key: str) -> None:
        """Remove *key* if present. Deleting a missing key is a no-op."""
        index = self._index
        if index is None:
            return
        try:
            index.pop(key, None)
        except Exception as exc:
            raise StoreError(f"Delete of {key!r} from {self.name} failed: {exc}") from exc

    def clear(self) -> None:
        """Remove every entry. A destroyed store is already empty."""
        index = self._index
        if index is None:
            return
        try:
            index.clear()
        except Exception as exc:
            raise StoreError(f"Clear of {self.name} failed: {exc}") from exc

    def __len__(self) -> int:
        return 0 if self._index is None else len(self._index)

    def __contains__(self, key: str) -> bool:
        return self._index is not None and key in self._index

    # ------------------------------------------------------------------ #
    # Leasing and lifecycle
    # ------------------------------------------------------------------ #

    @property
    def leases(self) -> int:
        return self._leases

    @property
    def retired(self) -> bool:
        """Whether :meth:`destroy` has been requested."""
        return self._retired

    @property
    def destroyed(self) -> bool:
        return self._index is None

    @property
    def directory(self) -> Path:
        return self._directory

    def acquire(self) -> None:
        """Take a lease. Destruction waits until every lease is released."""
        self._leases += 1
        self._released.clear()

    def release(self) -> None:
        """Give back a lease taken with :meth:`acquire`."""
        if self._leases == 0:
            raise StoreError(f"Lease released on {self.name} without being acquired")
        self._leases -= 1
        if self._leases == 0:
            self._released.set()

    async def destroy(self) -> None:
        """Retire the store, wait for outstanding leases, then delete it from disk.

        Safe to call more than once.
        """
        self._retired = True
        await self._released.wait()
        index = self._index
        if index is None:
            return
        self._index = None
        index.clear()
        index.cache.close()
        shutil.rmtree(self._directory, ignore_errors=True)

    def close(self) -> None:
        """Close the database connection without deleting any data."""
        if self._index is not None:
            self._index.cache.close()

    def stats(self) -> StoreStats:
        """Return a :class:`~tilecache.models.StoreStats` snapshot."""
        return StoreStats(
            name=self.name,
            size=len(self),
            leases=self._leases,
            destroyed=self.destroyed,
            directory=str(self._directory),
        )

    def _require_open(self) -> diskcache.Index:
        if self._index is None:
            raise StoreError(f"Store {self.name} has been destroyed")
        return self._index

    def __repr__(self) -> str:
        return f"Store(name={self.name!r}, size={len(self)}, leases={self._leases})"
