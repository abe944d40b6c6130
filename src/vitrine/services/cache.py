"""Query cache — short-lived cache of product list pages.

Learn: The catalog is read-heavy and write-light. Listing pages are cached
by a fingerprint of the query (category, store, search, page, page size)
for a few minutes.

Invalidation is global: every catalog mutation flushes the whole cache
before the write's HTTP response goes out. No read served after that
response can be older than the write.

Each flush also bumps a generation counter. A reader takes the generation
before it queries storage and hands it back to store(); if a flush happened
in between, the page it read may predate the write and is not cached.
"""

import asyncio
import time
from collections import OrderedDict
from typing import Callable, Optional

import structlog

from vitrine.catalog.taxonomy import ALL
from vitrine.schemas.product import ProductFilter, ProductPage

logger = structlog.get_logger()


def fingerprint(
    category: Optional[str] = None,
    store: Optional[str] = None,
    search: str = "",
    page: int = 1,
    page_size: int = 12,
) -> str:
    """Normalized cache key, e.g. "eletronicos-todas--1-12"."""
    return "-".join([
        (category or ALL).strip().lower(),
        (store or ALL).strip().lower(),
        (search or "").strip().lower(),
        str(page),
        str(page_size),
    ])


def filter_fingerprint(query: ProductFilter) -> str:
    return fingerprint(
        query.category, query.store, query.search, query.page, query.page_size
    )


class QueryCache:
    """TTL cache of ProductPage results, flushed on every catalog event."""

    def __init__(
        self,
        ttl_seconds: float = 300.0,
        max_entries: int = 1024,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.ttl_seconds = ttl_seconds
        self.max_entries = max_entries
        self._clock = clock
        self._entries: OrderedDict[str, tuple[ProductPage, float]] = OrderedDict()
        self._generation = 0
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    @property
    def generation(self) -> int:
        """Number of flushes so far. Take it before querying storage."""
        return self._generation

    async def lookup(self, key: str) -> Optional[ProductPage]:
        """Return the cached page, or None on a miss or an expired entry."""
        async with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            page, stored_at = entry
            if self._clock() - stored_at >= self.ttl_seconds:
                del self._entries[key]
                return None
            return page

    async def store(
        self, key: str, page: ProductPage, generation: Optional[int] = None
    ) -> bool:
        """Cache a page. Returns False (and caches nothing) when the cache was
        flushed after `generation` was taken.
        """
        async with self._lock:
            if generation is not None and generation != self._generation:
                logger.debug("cache.store_skipped", fingerprint=key)
                return False
            self._entries.pop(key, None)
            self._entries[key] = (page, self._clock())
            while len(self._entries) > self.max_entries:
                self._entries.popitem(last=False)
        return True

    async def invalidate_all(self) -> int:
        """Drop every entry. Returns how many were removed."""
        async with self._lock:
            removed = len(self._entries)
            self._entries.clear()
            self._generation += 1
        logger.debug("cache.invalidated", removed=removed)
        return removed
