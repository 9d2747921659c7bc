"""Time-boxed cache of window-filtered events.

Entries are keyed by the literal start/end strings of the requested window,
never by the view, so busy-block and day-availability requests for the same
window share one upstream fetch.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from ics_availability.calendar.models import AvailabilityWindow, CalendarEvent
from ics_availability.core.config_loader import DEFAULT_CACHE_TTL_SECONDS, MIN_CACHE_TTL_SECONDS
from ics_availability.core.kv_store import CacheStore

logger = logging.getLogger(__name__)

CACHE_PREFIX = "availability_cache:"

FetchFn = Callable[[], Awaitable[list[CalendarEvent]]]


class FeedCache:
    """Read-through cache in front of the feed fetch-and-parse step.

    Concurrent misses for the same key wait on a per-key lock, so at most one
    upstream fetch runs per window at a time. Failures propagate to the
    caller and are not cached.
    """

    def __init__(self, store: CacheStore, ttl_seconds: int = DEFAULT_CACHE_TTL_SECONDS):
        """Initialize cache.

        Args:
            store: Backing key/value store with TTL support
            ttl_seconds: Entry lifetime, raised to the 60 second minimum if lower
        """
        self.store = store
        self.ttl_seconds = max(MIN_CACHE_TTL_SECONDS, int(ttl_seconds))
        # key -> (lock, number of requests holding or awaiting it)
        self._locks: dict[str, tuple[asyncio.Lock, int]] = {}
        self.stats = {
            "hits": 0,
            "misses": 0,
            "fetches": 0,
            "fetch_failures": 0,
        }

    @staticmethod
    def cache_key(window: AvailabilityWindow) -> str:
        """Stable key for a window, derived from its literal date strings.

        Example:
            >>> FeedCache.cache_key(window)  # start_text="2025-11-10", end_text="2025-11-20"
            'availability_cache:<md5 of "2025-11-102025-11-20">'
        """
        # MD5 for key compaction only, not security
        digest = hashlib.md5((window.start_text + window.end_text).encode()).hexdigest()
        return CACHE_PREFIX + digest

    async def get_or_fetch(
        self, window: AvailabilityWindow, fetch_fn: FetchFn
    ) -> list[CalendarEvent]:
        """Return cached events for ``window`` or fetch, store and return them.

        Args:
            window: Requested window
            fetch_fn: Coroutine factory that fetches, parses and window-filters

        Raises:
            Whatever ``fetch_fn`` raises (typically UpstreamFetchError)
        """
        key = self.cache_key(window)

        cached = await self.store.get(key)
        if cached is not None:
            self.stats["hits"] += 1
            logger.debug("Cache hit for %s..%s", window.start_text, window.end_text)
            return cached

        lock = self._acquire_key_lock(key)
        try:
            async with lock:
                return await self._fill(key, window, fetch_fn)
        finally:
            self._release_key_lock(key)

    def _acquire_key_lock(self, key: str) -> asyncio.Lock:
        lock, users = self._locks.get(key, (None, 0))
        if lock is None:
            lock = asyncio.Lock()
        self._locks[key] = (lock, users + 1)
        return lock

    def _release_key_lock(self, key: str) -> None:
        lock, users = self._locks[key]
        if users <= 1:
            del self._locks[key]
        else:
            self._locks[key] = (lock, users - 1)

    async def _fill(
        self, key: str, window: AvailabilityWindow, fetch_fn: FetchFn
    ) -> list[CalendarEvent]:
        # Another request may have filled the entry while we waited
        cached = await self.store.get(key)
        if cached is not None:
            self.stats["hits"] += 1
            logger.debug("Cache filled while waiting for %s", key)
            return cached

        self.stats["misses"] += 1
        self.stats["fetches"] += 1
        logger.debug("Cache miss for %s..%s, fetching", window.start_text, window.end_text)
        try:
            events = await fetch_fn()
        except Exception:
            self.stats["fetch_failures"] += 1
            raise

        await self.store.set(key, events, self.ttl_seconds)
        logger.debug("Cached %d events for %ds", len(events), self.ttl_seconds)
        return events

    async def clear(self) -> int:
        """Remove every cached window; rate-limit counters are untouched."""
        removed = await self.store.delete_prefix(CACHE_PREFIX)
        logger.info("Cleared %d cached availability windows", removed)
        return removed

    def get_stats(self) -> dict[str, Any]:
        return dict(self.stats)
