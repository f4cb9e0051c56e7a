"""tilecache -- cache-first request interception for map tiles and static assets.

The engine sits between an HTTP client and the origin. GET requests are
served from a persistent, generation-scoped cache when a copy exists and
from the network otherwise; successful responses from allow-listed origins
(tile servers, the map library's CDN) are stored, and each generation is
bounded by FIFO eviction.

Typical use::

    from tilecache import CacheSettings, TileCache
    from tilecache.config import get_storage_dir

    async with TileCache(CacheSettings(), get_storage_dir()) as cache:
        async with cache.client() as client:
            await client.get("https://tile.openstreetmap.org/0/0/0.png")

Modules:
    app: Typer CLI entry point.
    cache: Store, storage registry, eviction and admission.
    client: Fetch orchestrator and the httpx caching transport.
    config: XDG-aware settings loading.
    engine: :class:`TileCache`, the wired-up engine.
    generation: Generation lifecycle and the current-generation cell.
    models: Pydantic models shared across the package.
    exceptions: Exception hierarchy with exit-code mapping.
    output: stderr diagnostics with Rich support.
"""

__version__ = "0.1.0"

from tilecache.engine import TileCache  # noqa: E402
from tilecache.models import CacheEntry, CacheSettings  # noqa: E402

__all__ = ["CacheEntry", "CacheSettings", "TileCache", "__version__"]
