from __future__ import annotations

import pytest

from catalog_filters.services.cache.kv_stores import InMemoryKeyValueStore
from catalog_filters.services.cache.ttl_store import TTLCacheStore
from fakes import FakeClock, FakeQueryService


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def kv_store() -> InMemoryKeyValueStore:
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(kv_store: InMemoryKeyValueStore, clock: FakeClock) -> TTLCacheStore:
    return TTLCacheStore(kv_store, default_ttl_seconds=3600, clock=clock)


@pytest.fixture
def query_service() -> FakeQueryService:
    return FakeQueryService(count=42)
