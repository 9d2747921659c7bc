"""Unit tests for the in-memory TTL store."""

import pytest

from ics_availability.core.kv_store import MemoryStore

pytestmark = [pytest.mark.unit, pytest.mark.fast]


class TestMemoryStore:
    async def test_get_missing_returns_none(self, store):
        assert await store.get("nope") is None

    async def test_set_get_and_expiry(self, store, clock):
        await store.set("k", [1, 2], ttl_seconds=10)
        assert await store.get("k") == [1, 2]
        clock.advance(10)
        assert await store.get("k") is None
        assert len(store) == 0

    async def test_delete_prefix(self, store):
        await store.set("a:1", 1, 60)
        await store.set("a:2", 2, 60)
        await store.set("b:1", 3, 60)
        assert await store.delete_prefix("a:") == 2
        assert await store.get("b:1") == 3

    async def test_increment_with_window(self, store, clock):
        first = await store.increment_with_window("c", 60)
        assert (first.count, first.reset_seconds) == (1, 60)

        clock.advance(15)
        second = await store.increment_with_window("c", 60)
        assert second.count == 2
        assert second.expires_at == first.expires_at
        assert second.reset_seconds == 45

        clock.advance(45)
        third = await store.increment_with_window("c", 60)
        assert third.count == 1

    async def test_oldest_entries_evicted_when_full(self, clock):
        store = MemoryStore(clock=clock, max_entries=2)
        await store.set("one", 1, 60)
        await store.set("two", 2, 60)
        await store.set("three", 3, 60)
        assert await store.get("one") is None
        assert await store.get("three") == 3
        assert len(store) == 2

    async def test_purge_expired(self, store, clock):
        await store.set("short", 1, 5)
        await store.set("long", 2, 500)
        clock.advance(6)
        assert await store.purge_expired() == 1
        assert await store.delete("long")
        assert not await store.delete("long")
