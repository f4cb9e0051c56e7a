"""Admission filter: which network responses may enter the cache.

A response is admitted only when the request was a ``GET``, the status is
exactly 200 (not any 2xx), and the request URL matches at least one
cacheable-origin pattern. Patterns map a label to a match function; the
default match function is plain substring containment, which is how the
tile-server and map-library CDN allow-list is expressed::

    AdmissionFilter(["tile.openstreetmap.org", "unpkg.com/leaflet"])
"""

from __future__ import annotations

from typing import Callable, Iterable, Mapping, Union

import httpx

UrlMatcher = Callable[[str], bool]

PatternSpec = Union[Mapping[str, UrlMatcher], Iterable[str]]


def substring_matcher(pattern: str) -> UrlMatcher:
    """Return a matcher that accepts any URL containing *pattern*."""

    def _match(url: str) -> bool:
        return pattern in url

    return _match


class AdmissionFilter:
    """Pure predicate deciding whether a (request, response) pair is cacheable.

    Args:
        patterns: Either a mapping of pattern label to match function, or
            an iterable of strings that each become a
            :func:`substring_matcher`.
    """

    def __init__(self, patterns: PatternSpec) -> None:
        if isinstance(patterns, Mapping):
            self._matchers: dict[str, UrlMatcher] = dict(patterns)
        else:
            self._matchers = {p: substring_matcher(p) for p in patterns}

    @property
    def patterns(self) -> list[str]:
        return list(self._matchers)

    def matches_origin(self, url: str) -> bool:
        """Return ``True`` if *url* matches any configured pattern."""
        return any(match(url) for match in self._matchers.values())

    def is_cacheable(self, request: httpx.Request, response: httpx.Response) -> bool:
        """Return ``True`` iff *response* to *request* may be stored."""
        if response.status_code != 200:
            return False
        if request.method.upper() != "GET":
            return False
        return self.matches_origin(str(request.url))

    __call__ = is_cacheable
