"""Unit tests for FeedCache."""

import asyncio
import datetime

import pytest

from ics_availability.calendar.models import AvailabilityWindow, CalendarEvent
from ics_availability.domain.feed_cache import CACHE_PREFIX, FeedCache
from ics_availability.exceptions import UpstreamFetchError

pytestmark = [pytest.mark.unit, pytest.mark.fast]

UTC = datetime.timezone.utc


def _window(start: str = "2025-11-10", end: str = "2025-11-20") -> AvailabilityWindow:
    return AvailabilityWindow(
        start=datetime.date.fromisoformat(start),
        end=datetime.date.fromisoformat(end),
        start_text=start,
        end_text=end,
    )


class CountingFetch:
    """fetch_fn double that counts invocations."""

    def __init__(self, events=None, error: Exception | None = None, delay: float = 0.0):
        self.calls = 0
        self.events = events if events is not None else [
            CalendarEvent(
                start=datetime.datetime(2025, 11, 15, 9, tzinfo=UTC),
                end=datetime.datetime(2025, 11, 15, 11, tzinfo=UTC),
            )
        ]
        self.error = error
        self.delay = delay

    async def __call__(self):
        self.calls += 1
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return self.events


class TestFeedCache:
    """Tests for read-through caching behaviour."""

    async def test_second_request_within_ttl_is_served_from_cache(self, store):
        cache = FeedCache(store, ttl_seconds=300)
        fetch = CountingFetch()

        first = await cache.get_or_fetch(_window(), fetch)
        second = await cache.get_or_fetch(_window(), fetch)

        assert fetch.calls == 1
        assert first == second
        assert cache.get_stats() == {"hits": 1, "misses": 1, "fetches": 1, "fetch_failures": 0}

    async def test_request_after_ttl_fetches_again(self, store, clock):
        cache = FeedCache(store, ttl_seconds=300)
        fetch = CountingFetch()

        await cache.get_or_fetch(_window(), fetch)
        clock.advance(299)
        await cache.get_or_fetch(_window(), fetch)
        assert fetch.calls == 1

        clock.advance(2)
        await cache.get_or_fetch(_window(), fetch)
        assert fetch.calls == 2

    async def test_empty_result_is_cached(self, store):
        cache = FeedCache(store)
        fetch = CountingFetch(events=[])
        await cache.get_or_fetch(_window(), fetch)
        await cache.get_or_fetch(_window(), fetch)
        assert fetch.calls == 1

    async def test_different_windows_use_different_keys(self, store):
        cache = FeedCache(store)
        fetch = CountingFetch()
        await cache.get_or_fetch(_window("2025-11-10", "2025-11-20"), fetch)
        await cache.get_or_fetch(_window("2025-11-10", "2025-11-21"), fetch)
        assert fetch.calls == 2

    async def test_failure_is_not_cached(self, store):
        cache = FeedCache(store)
        failing = CountingFetch(error=UpstreamFetchError(detail="HTTP 503", status_code=503))

        with pytest.raises(UpstreamFetchError):
            await cache.get_or_fetch(_window(), failing)

        ok = CountingFetch()
        events = await cache.get_or_fetch(_window(), ok)
        assert ok.calls == 1
        assert len(events) == 1
        assert cache.stats["fetch_failures"] == 1

    async def test_concurrent_misses_share_one_fetch(self, store):
        cache = FeedCache(store)
        fetch = CountingFetch(delay=0.01)

        results = await asyncio.gather(*(cache.get_or_fetch(_window(), fetch) for _ in range(5)))

        assert fetch.calls == 1
        assert all(r == results[0] for r in results)
        assert cache._locks == {}

    async def test_clear_removes_only_cache_entries(self, store):
        cache = FeedCache(store)
        await cache.get_or_fetch(_window(), CountingFetch())
        await store.increment_with_window("rate_limit:abc", 60)

        assert await cache.clear() == 1
        assert len(store) == 1

        fetch = CountingFetch()
        await cache.get_or_fetch(_window(), fetch)
        assert fetch.calls == 1

    def test_ttl_has_minimum(self, store):
        assert FeedCache(store, ttl_seconds=10).ttl_seconds == 60

    def test_cache_key_depends_only_on_window_strings(self):
        key = FeedCache.cache_key(_window())
        assert key.startswith(CACHE_PREFIX)
        assert key == FeedCache.cache_key(_window())
        assert key != FeedCache.cache_key(_window("2025-11-11", "2025-11-20"))
