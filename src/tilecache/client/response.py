"""Conversions between :class:`httpx.Response` and stored cache entries.

Every response the engine hands back is tagged with where it came from in
``response.extensions["tilecache.source"]``:

* ``"cache"`` -- rebuilt from a stored :class:`~tilecache.models.CacheEntry`;
* ``"network"`` -- the origin's response, passed through;
* ``"error"`` -- a synthetic network-error response (status ``0``, empty
  body) produced when the origin could not be reached and nothing was
  cached. It is never stored.
"""

from __future__ import annotations

import httpx

from tilecache.models import CacheEntry

SOURCE_EXTENSION = "tilecache.source"
NETWORK_ERROR_EXTENSION = "tilecache.network_error"
NETWORK_ERROR_STATUS = 0

# The body is stored decoded, so transfer framing headers no longer apply.
_HOP_HEADERS = {"content-encoding", "content-length", "transfer-encoding"}


def entry_from_response(key: str, request: httpx.Request, response: httpx.Response) -> CacheEntry:
    """Snapshot a fully read *response* into a :class:`CacheEntry`."""
    headers = [
        (name, value)
        for name, value in response.headers.multi_items()
        if name.lower() not in _HOP_HEADERS
    ]
    return CacheEntry(
        key=key,
        url=str(request.url),
        status_code=response.status_code,
        headers=headers,
        content=response.content,
    )


def response_from_entry(entry: CacheEntry, request: httpx.Request) -> httpx.Response:
    """Rebuild an :class:`httpx.Response` from a stored entry."""
    return httpx.Response(
        status_code=entry.status_code,
        headers=entry.headers,
        content=entry.content,
        request=request,
        extensions={SOURCE_EXTENSION: "cache"},
    )


def network_error_response(request: httpx.Request, exc: BaseException) -> httpx.Response:
    """Build the synthetic response returned when the origin is unreachable."""
    return httpx.Response(
        status_code=NETWORK_ERROR_STATUS,
        request=request,
        extensions={SOURCE_EXTENSION: "error", NETWORK_ERROR_EXTENSION: str(exc)},
    )


def is_network_error(response: httpx.Response) -> bool:
    """Return ``True`` for the synthetic response built by :func:`network_error_response`."""
    return NETWORK_ERROR_EXTENSION in response.extensions


def response_source(response: httpx.Response) -> str:
    """Return ``"cache"``, ``"network"`` or ``"error"`` (``"network"`` if untagged)."""
    return response.extensions.get(SOURCE_EXTENSION, "network")
