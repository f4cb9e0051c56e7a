"""FIFO capacity enforcement for a generation store.

Eviction consults only the store's insertion order: the first key returned
by :meth:`~tilecache.cache.store.Store.keys` is the oldest write. Reads
never reorder keys, so a frequently served tile is evicted just as early as
one that was never read again. Only :meth:`Store.put` moves a key, to the
newest position.
"""

from __future__ import annotations

from tilecache.cache.store import Store


def evict_if_needed(store: Store, max_items: int) -> list[str]:
    """Delete the oldest entries until *store* holds at most *max_items*.

    Loops rather than removing a single entry, so a store that was pushed
    several entries over the bound (a large precache list, or a burst of
    concurrent writes) is brought back under it in one call.

    Args:
        store: The store to trim.
        max_items: Capacity bound, at least 1.

    Returns:
        The evicted keys, oldest first. Empty when nothing was removed.
    """
    keys = store.keys()
    excess = len(keys) - max_items
    if excess <= 0:
        return []
    evicted = keys[:excess]
    for key in evicted:
        store.delete(key)
    return evicted
