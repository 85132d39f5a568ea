from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from catalog_filters.core.config import Settings, settings as default_settings
from catalog_filters.services.cache.invalidator import CatalogCacheInvalidator, listing_key_prefixes
from catalog_filters.services.cache.kv_stores import InMemoryKeyValueStore, RedisKeyValueStore
from catalog_filters.services.cache.ttl_store import TTLCacheStore
from catalog_filters.services.catalog.facet_options import FacetOptionRegistry
from catalog_filters.services.catalog.listing import CatalogListingService
from catalog_filters.services.contracts import KeyValueStore, QueryExecutionService
from catalog_filters.services.filters.composer import MatchMode
from catalog_filters.services.filters.session import FilterSessionController


@dataclass
class FilterRuntime:
    cache: TTLCacheStore
    registry: FacetOptionRegistry
    listing: CatalogListingService
    controller: FilterSessionController

    async def aclose(self) -> None:
        await self.controller.close()
        close = getattr(self.cache.store, "close", None)
        if close is not None:
            await close()


def build_key_value_store(config: Settings) -> KeyValueStore:
    backend = str(config.CACHE_BACKEND or "memory").strip().lower()
    if backend == "redis":
        return RedisKeyValueStore(config.CACHE_REDIS_URL, namespace=config.CACHE_REDIS_NAMESPACE)
    if backend != "memory":
        raise ValueError(f"unsupported CACHE_BACKEND: {config.CACHE_BACKEND!r}")
    return InMemoryKeyValueStore()


def build_runtime(
    query_service: Optional[QueryExecutionService] = None,
    *,
    store: Optional[KeyValueStore] = None,
    config: Optional[Settings] = None,
) -> FilterRuntime:
    config = config or default_settings
    if query_service is None:
        from catalog_filters.db.session import get_session_factory
        from catalog_filters.services.catalog.query_service import SqlCatalogQueryService

        query_service = SqlCatalogQueryService(get_session_factory())

    cache = TTLCacheStore(
        store if store is not None else build_key_value_store(config),
        default_ttl_seconds=config.LISTING_CACHE_TTL_SECONDS,
    )
    registry = FacetOptionRegistry(
        query_service,
        cache,
        cache_prefix=config.FILTER_OPTIONS_CACHE_PREFIX,
        ttl_seconds=config.FILTER_OPTIONS_CACHE_TTL_SECONDS,
    )
    listing = CatalogListingService(
        query_service,
        cache,
        key_prefix=config.LISTING_CACHE_PREFIX,
        ttl_seconds=config.LISTING_CACHE_TTL_SECONDS,
        total_ttl_seconds=config.TOTAL_COUNT_CACHE_TTL_SECONDS,
        default_page_size=config.LISTING_DEFAULT_PAGE_SIZE,
        max_page_size=config.LISTING_MAX_PAGE_SIZE,
    )
    invalidator = CatalogCacheInvalidator(cache, prefixes=listing_key_prefixes(config.LISTING_CACHE_PREFIX))
    controller = FilterSessionController(
        query_service,
        invalidator,
        mode=MatchMode.strict if config.FILTER_STRICT_MATCHING else MatchMode.loose,
        debounce_seconds=max(0, config.FILTER_ESTIMATE_DEBOUNCE_MS) / 1000.0,
        baseline_provider=listing.get_total_count,
        commit_listeners=[listing],
    )
    return FilterRuntime(cache=cache, registry=registry, listing=listing, controller=controller)
