"""Canonical Pydantic models shared across all tilecache modules.

**Configuration models** -- serialised as JSON in the user's config directory:
    :class:`CacheSettings`.

**Cache models** -- what the engine stores and reports:
    :class:`CacheEntry`, :class:`GenerationState`, and :class:`StoreStats`.

Entries are persisted as plain dicts (``model_dump()``) inside diskcache so
that the on-disk format does not depend on pickling the model class.
"""

from __future__ import annotations

import enum
import time
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


DEFAULT_PRECACHE_URLS = [
    "index.html",
    "https://unpkg.com/leaflet@1.9.4/dist/leaflet.css",
    "https://unpkg.com/leaflet@1.9.4/dist/leaflet.js",
]

DEFAULT_CACHEABLE_PATTERNS = [
    "tile.openstreetmap.org",
    "unpkg.com/leaflet",
]


# --- Configuration ---


class CacheSettings(BaseModel):
    """Engine configuration persisted at ``~/.config/tilecache/config.json``.

    Loaded by :func:`~tilecache.config.load_settings` and layered with
    environment overrides by :func:`~tilecache.config.resolve_settings`.
    These are deployment constants: the engine reads them once at
    construction time and never changes them at runtime.

    Example::

        CacheSettings(
            cache_name="map-cache",
            max_items=100,
            base_url="https://maps.example.com/",
        )
    """

    cache_name: str = Field(
        default="map-cache",
        min_length=1,
        description="Generation label prefix; generations are named '<cache_name>-v<N>'",
    )
    max_items: int = Field(
        default=100, ge=1, description="Maximum number of entries per generation"
    )
    precache_urls: list[str] = Field(
        default_factory=lambda: list(DEFAULT_PRECACHE_URLS),
        description="Resources fetched and stored on activation, in order",
    )
    cacheable_patterns: list[str] = Field(
        default_factory=lambda: list(DEFAULT_CACHEABLE_PATTERNS),
        description="URL substrings whose 200 responses are admitted to the cache",
    )
    base_url: Optional[str] = Field(
        default=None,
        description="Base for relative precache URLs (relative URLs are skipped when unset)",
    )
    strict_precache: bool = Field(
        default=False,
        description="Abort activation on the first failed precache fetch",
    )
    timeout: float = Field(default=30, gt=0, description="Network timeout in seconds")


# --- Cache models ---


class CacheEntry(BaseModel):
    """A stored response, immutable once written.

    ``headers`` is a list of ``(name, value)`` pairs so repeated headers and
    their order survive the round trip. ``stored_at`` is informational
    only; entries never expire.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    url: str
    status_code: int
    headers: list[tuple[str, str]] = Field(default_factory=list)
    content: bytes = b""
    stored_at: float = Field(default_factory=time.time)


class GenerationState(str, enum.Enum):
    """Lifecycle of a :class:`~tilecache.generation.GenerationManager`."""

    UNINITIALIZED = "uninitialized"
    ACTIVATING = "activating"
    ACTIVE = "active"


class StoreStats(BaseModel):
    """Point-in-time description of one generation's store."""

    name: str
    size: int
    leases: int
    destroyed: bool
    directory: str
