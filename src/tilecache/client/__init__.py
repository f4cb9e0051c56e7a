"""Request interception for tilecache.

Classes:
    :class:`FetchOrchestrator` -- the cache-first control path.
    :class:`CachingTransport` -- an :class:`httpx.AsyncBaseTransport`
    that puts the orchestrator in front of any ``httpx.AsyncClient``.

Helpers in :mod:`tilecache.client.response` tell cached, network and
synthetic network-error responses apart.
"""

from tilecache.client.orchestrator import FetchOrchestrator
from tilecache.client.response import is_network_error, response_source
from tilecache.client.transport import CachingTransport

__all__ = ["CachingTransport", "FetchOrchestrator", "is_network_error", "response_source"]
