"""Persistent cache primitives for tilecache.

This package holds the leaf components of the engine:

* :class:`Store` -- an insertion-ordered diskcache-backed map for one
  generation, with lease counting.
* :class:`CacheStorage` -- the generation-level registry (open, enumerate,
  delete).
* :func:`evict_if_needed` -- FIFO capacity enforcement.
* :class:`AdmissionFilter` -- the pure cacheability predicate.

The control path that ties them together lives in
:class:`~tilecache.client.orchestrator.FetchOrchestrator`.
"""

from tilecache.cache.admission import AdmissionFilter, substring_matcher
from tilecache.cache.eviction import evict_if_needed
from tilecache.cache.storage import CacheStorage
from tilecache.cache.store import Store, normalize_url, request_key

__all__ = [
    "AdmissionFilter",
    "CacheStorage",
    "Store",
    "evict_if_needed",
    "normalize_url",
    "request_key",
    "substring_matcher",
]
