"""Generation-level view of the persistent cache: open, enumerate, delete.

Every generation lives in its own subdirectory of the storage root::

    <root>/
        map-cache-v1/     <- diskcache.Index of generation 1
        map-cache-v2/

:class:`CacheStorage` hands out one :class:`~tilecache.cache.store.Store`
object per generation name within a process, so that leases taken by
request handlers and the destruction performed by the generation manager
refer to the same object.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path
from typing import Any

from tilecache.cache.store import Store

logger = logging.getLogger(__name__)


class CacheStorage:
    """Registry of generation stores under a single root directory.

    Args:
        root: Storage root. Created if missing.
    """

    def __init__(self, root: str | Path) -> None:
        self._root = Path(root)
        self._root.mkdir(parents=True, exist_ok=True)
        self._open: dict[str, Store] = {}

    @property
    def root(self) -> Path:
        return self._root

    def open(self, name: str) -> Store:
        """Return the store for generation *name*, creating it if needed."""
        store = self._open.get(name)
        if store is None or store.destroyed:
            store = Store(name, self._root / name)
            self._open[name] = store
        return store

    def names(self) -> list[str]:
        """Enumerate existing generations (on disk or open), sorted by name."""
        on_disk = {p.name for p in self._root.iterdir() if p.is_dir()}
        in_memory = {name for name, store in self._open.items() if not store.destroyed}
        return sorted(on_disk | in_memory)

    def exists(self, name: str) -> bool:
        return name in self.names()

    async def delete(self, name: str) -> bool:
        """Destroy generation *name*, waiting for in-flight leases first.

        Returns:
            ``True`` if something was deleted, ``False`` if *name* did not
            exist.
        """
        store = self._open.pop(name, None)
        if store is not None:
            logger.debug("Destroying generation %s (%d leases held)", name, store.leases)
            await store.destroy()
            return True
        path = self._root / name
        if not path.is_dir():
            return False
        # Left behind by a previous process; nobody here can hold a lease.
        logger.debug("Removing stale generation directory %s", path)
        shutil.rmtree(path, ignore_errors=True)
        return True

    def stats(self) -> list[dict[str, Any]]:
        """Return name and entry count for every generation."""
        return [self.open(name).stats().model_dump() for name in self.names()]

    def close(self) -> None:
        """Close every open store without deleting data."""
        for store in self._open.values():
            store.close()
        self._open.clear()
