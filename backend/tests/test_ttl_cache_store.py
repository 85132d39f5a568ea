from __future__ import annotations

import pytest

from catalog_filters.core.exceptions import CacheStoreFailure
from catalog_filters.services.cache.kv_stores import InMemoryKeyValueStore
from catalog_filters.services.cache.ttl_store import STORE_EXPIRY_GRACE_SECONDS, CacheEntryStatus, TTLCacheStore
from fakes import FailingKeyValueStore


@pytest.mark.asyncio
async def test_set_then_get_round_trip(cache: TTLCacheStore) -> None:
    assert await cache.set("listing_p1", [{"image_no": "1"}], ttl_seconds=60)
    assert await cache.get("listing_p1") == [{"image_no": "1"}]
    assert cache.stats()["hits"] == 1


@pytest.mark.asyncio
async def test_expired_entry_is_evicted_on_read(cache: TTLCacheStore, kv_store, clock) -> None:
    await cache.set("listing_p1", {"n": 1}, ttl_seconds=60)

    clock.advance(60)
    assert await cache.get("listing_p1") == {"n": 1}

    clock.advance(1)
    assert await cache.get("listing_p1") is None
    assert await kv_store.get("listing_p1") is None
    assert cache.stats()["misses"] == 1


@pytest.mark.asyncio
async def test_default_ttl_applies_when_none_given(kv_store, clock) -> None:
    cache = TTLCacheStore(kv_store, default_ttl_seconds=10, clock=clock)
    await cache.set("k", "v")
    entry = await cache.get_entry("k")
    assert entry.expires_at == clock.now + 10


@pytest.mark.asyncio
async def test_evict_by_prefix_removes_only_matching_keys(cache: TTLCacheStore, kv_store) -> None:
    for key in ("listing_p1", "listing_p2", "other_x"):
        await cache.set(key, key)

    evicted = await cache.evict_by_prefix("listing_")

    assert evicted == 2
    assert sorted(await kv_store.list_keys()) == ["other_x"]


@pytest.mark.asyncio
async def test_evict_by_prefix_rejects_empty_prefix(cache: TTLCacheStore) -> None:
    with pytest.raises(ValueError):
        await cache.evict_by_prefix("")


@pytest.mark.asyncio
async def test_corrupt_entry_reads_as_miss_and_is_dropped(cache: TTLCacheStore, kv_store) -> None:
    await kv_store.set("broken", "{not json")
    assert await cache.get("broken") is None
    assert await kv_store.get("broken") is None


@pytest.mark.asyncio
async def test_store_failures_degrade_to_miss_and_noop(clock) -> None:
    cache = TTLCacheStore(FailingKeyValueStore(), clock=clock)

    assert await cache.get("anything") is None
    assert await cache.set("anything", 1) is False
    await cache.remove("anything")
    assert await cache.age_seconds("anything") is None


@pytest.mark.asyncio
async def test_prefix_eviction_surfaces_store_failure(clock) -> None:
    cache = TTLCacheStore(FailingKeyValueStore(fail_on=("list_keys",)), clock=clock)
    with pytest.raises(CacheStoreFailure) as exc_info:
        await cache.evict_by_prefix("listing_")
    assert exc_info.value.operation == "list_keys"


@pytest.mark.asyncio
async def test_status_reports_age(cache: TTLCacheStore, clock) -> None:
    await cache.set("filter_cache_categories", [])
    clock.advance(90)

    statuses = await cache.status(["filter_cache_categories", "filter_cache_routes"])

    assert statuses == {
        "filter_cache_categories": CacheEntryStatus(exists=True, age_seconds=90),
        "filter_cache_routes": CacheEntryStatus(exists=False, age_seconds=None),
    }


@pytest.mark.asyncio
async def test_prefix_eviction_continues_past_failed_key(clock) -> None:
    store = FailingKeyValueStore(fail_on=(), fail_keys=("listing_p2",))
    cache = TTLCacheStore(store, clock=clock)
    for key in ("listing_p1", "listing_p2", "listing_p3", "other_x"):
        await cache.set(key, key)

    with pytest.raises(CacheStoreFailure) as exc_info:
        await cache.evict_by_prefix("listing_")

    assert exc_info.value.evicted == 2
    assert "listing_p2" in str(exc_info.value)
    assert sorted(await store.list_keys()) == ["listing_p2", "other_x"]


@pytest.mark.asyncio
async def test_store_expiry_outlives_envelope(clock) -> None:
    class RecordingStore(InMemoryKeyValueStore):
        def __init__(self) -> None:
            super().__init__()
            self.ttls = {}

        async def set(self, key, value, ttl_seconds=None) -> None:
            self.ttls[key] = ttl_seconds
            await super().set(key, value, ttl_seconds)

    store = RecordingStore()
    cache = TTLCacheStore(store, default_ttl_seconds=300, clock=clock)

    await cache.set("listing_p1", [1])
    await cache.set("listing_p2", [2], ttl_seconds=30)

    assert store.ttls["listing_p1"] == 300 + STORE_EXPIRY_GRACE_SECONDS
    assert store.ttls["listing_p2"] == 30 + STORE_EXPIRY_GRACE_SECONDS
