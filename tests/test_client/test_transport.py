"""Tests for the httpx interception seam and response conversions."""

from __future__ import annotations

import httpx
import pytest
import pytest_asyncio

from tilecache.client import CachingTransport, FetchOrchestrator, is_network_error, response_source
from tilecache.client.response import entry_from_response, response_from_entry
from tilecache.generation import ActiveGeneration, GenerationManager

from conftest import TILE_URL


@pytest_asyncio.fixture
async def orchestrator(storage, settings, origin) -> FetchOrchestrator:
    current = ActiveGeneration()
    await GenerationManager(storage, settings, transport=origin.transport(), current=current).activate()
    origin.calls.clear()
    return FetchOrchestrator.from_settings(settings, current, transport=origin.transport())


class TestCachingTransport:
    @pytest.mark.asyncio
    async def test_client_get_is_cache_first(self, orchestrator, origin) -> None:
        async with httpx.AsyncClient(transport=CachingTransport(orchestrator)) as client:
            first = await client.get(TILE_URL)
            await orchestrator.drain()
            second = await client.get(TILE_URL)

        assert first.status_code == second.status_code == 200
        assert second.content == first.content
        assert response_source(first) == "network"
        assert response_source(second) == "cache"
        assert len(origin.calls) == 1

    @pytest.mark.asyncio
    async def test_unreachable_origin_yields_status_zero(self, orchestrator, origin) -> None:
        origin.offline = True
        async with httpx.AsyncClient(transport=CachingTransport(orchestrator)) as client:
            response = await client.get(TILE_URL)

        assert response.status_code == 0
        assert is_network_error(response)

    @pytest.mark.asyncio
    async def test_close_drains_but_keeps_orchestrator_usable(self, orchestrator, origin) -> None:
        async with httpx.AsyncClient(transport=CachingTransport(orchestrator)) as client:
            await client.get(TILE_URL)
        assert orchestrator.stats()["pending_writes"] == 0
        assert orchestrator.stats()["writes"] == 1

        async with httpx.AsyncClient(transport=CachingTransport(orchestrator)) as client:
            response = await client.get(TILE_URL)
        assert response_source(response) == "cache"
        assert len(origin.calls) == 1


class TestResponseConversion:
    def test_entry_drops_transfer_headers(self) -> None:
        request = httpx.Request("GET", TILE_URL)
        response = httpx.Response(
            200,
            headers=[("content-type", "image/png"), ("x-cache", "a"), ("x-cache", "b")],
            content=b"png",
            request=request,
        )

        entry = entry_from_response("GET " + TILE_URL, request, response)

        assert entry.status_code == 200
        assert entry.content == b"png"
        assert ("content-length", "3") not in entry.headers
        assert entry.headers.count(("x-cache", "a")) == 1
        assert ("x-cache", "b") in entry.headers

    def test_rebuilt_response_carries_request_and_source(self) -> None:
        request = httpx.Request("GET", TILE_URL)
        original = httpx.Response(
            200, headers={"content-type": "image/png"}, content=b"png", request=request
        )
        entry = entry_from_response("GET " + TILE_URL, request, original)

        rebuilt = response_from_entry(entry, request)

        assert rebuilt.request is request
        assert rebuilt.content == b"png"
        assert rebuilt.headers["content-type"] == "image/png"
        assert response_source(rebuilt) == "cache"
        assert not is_network_error(rebuilt)

    def test_untagged_response_counts_as_network(self) -> None:
        assert response_source(httpx.Response(200)) == "network"
