from __future__ import annotations

from typing import Sequence, Tuple

from catalog_filters.core.exceptions import CacheStoreFailure
from catalog_filters.core.logging import get_logger
from catalog_filters.services.cache.ttl_store import TTLCacheStore

logger = get_logger(__name__)

LISTING_PAGE_FAMILY = "photos_page_"
CATEGORY_PAGE_FAMILY = "category_"


def listing_key_prefixes(listing_prefix: str) -> Tuple[str, ...]:
    return (f"{listing_prefix}{LISTING_PAGE_FAMILY}", f"{listing_prefix}{CATEGORY_PAGE_FAMILY}")


class CatalogCacheInvalidator:
    """Evicts the catalog listing cache families after a filter commit."""

    def __init__(self, cache: TTLCacheStore, *, prefixes: Sequence[str]) -> None:
        self.cache = cache
        self.prefixes = tuple(p for p in prefixes if p)

    async def invalidate(self) -> int:
        evicted = 0
        for prefix in self.prefixes:
            try:
                evicted += await self.cache.evict_by_prefix(prefix)
            except CacheStoreFailure as exc:
                evicted += exc.evicted
                # Keys that could not be removed survive until they expire.
                logger.warning(
                    "catalog cache invalidation failed for prefix",
                    extra={"event": "cache_store_failure", "prefix": prefix, "error": str(exc)},
                )
        logger.info(
            "catalog cache invalidated",
            extra={"event": "catalog_cache_invalidated", "evicted": evicted, "prefixes": list(self.prefixes)},
        )
        return evicted
