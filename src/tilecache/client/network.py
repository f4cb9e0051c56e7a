"""Network collaborator: one fully read request/response exchange.

The origin is reached through any :class:`httpx.AsyncBaseTransport` -- the
real :class:`httpx.AsyncHTTPTransport` in production, an
:class:`httpx.MockTransport` in tests. Transport-level failures (timeouts,
refused connections, DNS errors) and undecodable bodies are mapped to
:class:`~tilecache.exceptions.NetworkError`. HTTP error statuses are *not*
failures here; a 404 is a perfectly good response.
"""

from __future__ import annotations

import httpx

from tilecache.exceptions import NetworkError


def default_transport() -> httpx.AsyncBaseTransport:
    """Return the transport used when none is injected. No automatic retries."""
    return httpx.AsyncHTTPTransport(retries=0)


def build_request(url: str, timeout: float, method: str = "GET") -> httpx.Request:
    """Build a request carrying its own timeout, for use without an AsyncClient."""
    return httpx.Request(
        method,
        url,
        extensions={"timeout": httpx.Timeout(timeout).as_dict()},
    )


async def fetch(transport: httpx.AsyncBaseTransport, request: httpx.Request) -> httpx.Response:
    """Send *request* through *transport* and read the whole body.

    Returns:
        The response with its body loaded and ``response.request`` set.

    Raises:
        NetworkError: If the exchange failed at the transport level or the
            body could not be read or decoded.
    """
    try:
        response = await transport.handle_async_request(request)
        try:
            await response.aread()
        finally:
            await response.aclose()
    except httpx.RequestError as exc:
        raise NetworkError(f"{request.method} {request.url} failed: {exc!r}") from exc
    response.request = request
    return response
