"""TTL key/value storage used by the feed cache and the rate limiter.

The domain layer only depends on the two protocols below, so a shared store
(Redis, memcached, a database table) can replace the in-memory one when the
service runs as several processes. ``MemoryStore`` implements both protocols
for single-process deployments; every operation runs under one asyncio lock,
which makes "read-or-create" and "read-increment-or-initialize" atomic with
respect to concurrent requests on the event loop.
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_MAX_ENTRIES = 10_000


@dataclass(frozen=True)
class CounterState:
    """State of a fixed-window counter after an increment."""

    count: int
    expires_at: float
    reset_seconds: int


class CacheStore(Protocol):
    """get/set-with-ttl capability."""

    async def get(self, key: str) -> Optional[Any]:
        """Return the stored value, or None when absent or expired."""
        ...

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        """Store ``value`` under ``key`` for ``ttl_seconds``."""
        ...

    async def delete_prefix(self, prefix: str) -> int:
        """Delete every key starting with ``prefix``; return how many were removed."""
        ...


class CounterStore(Protocol):
    """increment-with-window capability."""

    async def increment_with_window(self, key: str, window_seconds: float) -> CounterState:
        """Increment the counter for ``key``.

        The first increment (or the first after the previous window lapsed)
        initializes the counter to 1 and anchors a new window of
        ``window_seconds``; later increments keep the original expiry.
        """
        ...


class MemoryStore:
    """In-process TTL store implementing CacheStore and CounterStore."""

    def __init__(
        self,
        clock: Callable[[], float] = time.monotonic,
        max_entries: int = DEFAULT_MAX_ENTRIES,
    ):
        """Initialize store.

        Args:
            clock: Monotonic seconds source (tests inject a fake clock)
            max_entries: Upper bound on live keys; oldest keys are evicted first
        """
        self._clock = clock
        self._max_entries = max_entries
        # key -> (value, expires_at)
        self._entries: dict[str, tuple[Any, float]] = {}
        self._lock = asyncio.Lock()

    def __len__(self) -> int:
        return len(self._entries)

    def _live(self, key: str, now: float) -> Optional[tuple[Any, float]]:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry[1] <= now:
            del self._entries[key]
            return None
        return entry

    def _make_room(self, now: float) -> None:
        if len(self._entries) < self._max_entries:
            return
        self._purge_expired(now)
        while len(self._entries) >= self._max_entries:
            oldest = next(iter(self._entries))
            del self._entries[oldest]
            logger.debug("Evicted key %s (store full)", oldest)

    def _purge_expired(self, now: float) -> int:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    async def get(self, key: str) -> Optional[Any]:
        async with self._lock:
            entry = self._live(key, self._clock())
            return None if entry is None else entry[0]

    async def set(self, key: str, value: Any, ttl_seconds: float) -> None:
        async with self._lock:
            now = self._clock()
            self._entries.pop(key, None)
            self._make_room(now)
            self._entries[key] = (value, now + ttl_seconds)

    async def delete(self, key: str) -> bool:
        async with self._lock:
            return self._entries.pop(key, None) is not None

    async def delete_prefix(self, prefix: str) -> int:
        async with self._lock:
            doomed = [key for key in self._entries if key.startswith(prefix)]
            for key in doomed:
                del self._entries[key]
            return len(doomed)

    async def increment_with_window(self, key: str, window_seconds: float) -> CounterState:
        async with self._lock:
            now = self._clock()
            entry = self._live(key, now)
            if entry is None:
                self._make_room(now)
                count, expires_at = 1, now + window_seconds
            else:
                count, expires_at = int(entry[0]) + 1, entry[1]
            self._entries[key] = (count, expires_at)
            reset_seconds = max(1, int(expires_at - now + 0.999))
            return CounterState(count=count, expires_at=expires_at, reset_seconds=reset_seconds)

    async def purge_expired(self) -> int:
        """Drop expired keys eagerly (reads already ignore them)."""
        async with self._lock:
            removed = self._purge_expired(self._clock())
            if removed:
                logger.debug("Purged %d expired keys", removed)
            return removed
