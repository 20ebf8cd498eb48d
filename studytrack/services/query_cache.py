"""In-process TTL cache for read-only taxonomy queries.

ENTRY LIFETIME
----------------
Every entry is stamped when it is stored.  A read older than the TTL is
a miss; stale entries are only physically removed by `cleanup()`, which
runs after every `set`:

  1. drop everything older than the TTL
  2. while still over `max_entries`, drop the oldest-inserted entry

Re-setting a key moves it to the back of the eviction order.  Reads do
not: this is insertion order, not access order.

Each cache belongs to one resource ("exams", "tree").  A write to a
resource calls `invalidate(resource)`, which empties that cache only.
The TTL is the safety net for writers that forget to.

This service exposes no taxonomy write endpoints, so nothing here calls
`invalidate()` or `taxonomy_changed()` yet; taxonomy is loaded out of
band and the TTL alone bounds staleness.  Whatever adds taxonomy writes
must call `taxonomy_changed()` after committing.

    cache = query_cache("exams")
    key = cache_key("exams", "active", 1, 10)
    payload = cache.get(key)
    if payload is None:
        payload = build()
        cache.set(key, payload)
"""

from __future__ import annotations

import logging
import time
from collections import OrderedDict
from collections.abc import Callable
from typing import Any

from studytrack.core.config import SETTINGS
from studytrack.core.metrics import CACHE_ENTRIES, CACHE_OPERATIONS

logger = logging.getLogger(__name__)


class QueryCache:
    def __init__(
        self,
        name: str,
        *,
        ttl_seconds: float,
        max_entries: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self.name = name
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[float, Any]] = OrderedDict()

    def get(self, key: str) -> Any | None:
        entry = self._entries.get(key)
        if entry is None or self._clock() - entry[0] >= self.ttl_seconds:
            CACHE_OPERATIONS.labels(cache=self.name, operation="miss").inc()
            return None
        CACHE_OPERATIONS.labels(cache=self.name, operation="hit").inc()
        return entry[1]

    def set(self, key: str, payload: Any) -> None:
        self._entries.pop(key, None)
        self._entries[key] = (self._clock(), payload)
        self.cleanup()

    def cleanup(self) -> None:
        now = self._clock()
        expired = [k for k, (at, _) in self._entries.items() if now - at >= self.ttl_seconds]
        for key in expired:
            del self._entries[key]
        if expired:
            CACHE_OPERATIONS.labels(cache=self.name, operation="expire").inc(len(expired))

        while len(self._entries) > self.max_entries:
            self._entries.popitem(last=False)
            CACHE_OPERATIONS.labels(cache=self.name, operation="evict").inc()

        CACHE_ENTRIES.labels(cache=self.name).set(len(self._entries))

    def clear(self) -> None:
        self._entries.clear()
        CACHE_ENTRIES.labels(cache=self.name).set(0)

    def keys(self) -> list[str]:
        return list(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: object) -> bool:
        return key in self._entries


def cache_key(resource: str, status: str, page: int | None = None, limit: int | None = None, **filters: Any) -> str:
    """Signature of a query: resource, status, pagination, then sorted filters."""
    parts = [resource, status.lower()]
    if page is not None:
        parts.append(str(page))
    if limit is not None:
        parts.append(str(limit))
    parts.extend(f"{k}={filters[k]}" for k in sorted(filters) if filters[k] is not None)
    return "-".join(parts)


# ---------------------------------------------------------------------------
# Process-wide registry, one cache per resource
# ---------------------------------------------------------------------------

_CACHES: dict[str, QueryCache] = {}


def query_cache(resource: str) -> QueryCache:
    cache = _CACHES.get(resource)
    if cache is None:
        cache = QueryCache(
            resource,
            ttl_seconds=SETTINGS.query_cache_ttl_seconds,
            max_entries=SETTINGS.query_cache_max_entries,
        )
        _CACHES[resource] = cache
    return cache


def invalidate(resource: str) -> None:
    cache = _CACHES.get(resource)
    if cache is not None and len(cache):
        logger.info("Query cache invalidated entries=%d", len(cache), extra={"cache": resource})
        CACHE_OPERATIONS.labels(cache=resource, operation="invalidate").inc()
        cache.clear()


def taxonomy_changed() -> None:
    """Every taxonomy read depends on the whole tree, so any change clears them all."""
    for resource in list(_CACHES):
        invalidate(resource)


def reset_caches() -> None:
    _CACHES.clear()


def cache_sizes() -> dict[str, int]:
    return {name: len(cache) for name, cache in _CACHES.items()}
