from __future__ import annotations

from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

from catalog_filters.core.logging import get_logger
from catalog_filters.services.cache.invalidator import CATEGORY_PAGE_FAMILY, LISTING_PAGE_FAMILY
from catalog_filters.services.cache.ttl_store import TTLCacheStore
from catalog_filters.services.contracts import QueryExecutionService
from catalog_filters.services.filters.predicate import IDENTITY, Equals, Predicate
from catalog_filters.utils.pagination import clamp_page_size, compute_total_pages, page_offset

logger = get_logger(__name__)

TOTAL_COUNT_KEY = "total_photo_count"


class CatalogListingService:
    """Paged catalog reads under the last committed filter predicate, cached per page."""

    def __init__(
        self,
        query_service: QueryExecutionService,
        cache: TTLCacheStore,
        *,
        key_prefix: str = "api_cache_",
        ttl_seconds: float = 3600,
        total_ttl_seconds: float = 3600,
        default_page_size: int = 10,
        max_page_size: int = 50,
    ) -> None:
        self.query_service = query_service
        self.cache = cache
        self.key_prefix = key_prefix
        self.ttl_seconds = ttl_seconds
        self.total_ttl_seconds = total_ttl_seconds
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self._predicate: Predicate = IDENTITY
        self._commit_generation = 0

    @property
    def committed_predicate(self) -> Predicate:
        return self._predicate

    async def on_commit(self, predicate: Predicate) -> None:
        self._predicate = predicate
        self._commit_generation += 1
        logger.info("listing predicate committed: %s", predicate.describe())

    def page_key(self, page: int, limit: int) -> str:
        return f"{self.key_prefix}{LISTING_PAGE_FAMILY}{page}_limit_{limit}"

    def category_key(self, category: str, page: int, limit: int) -> str:
        return f"{self.key_prefix}{CATEGORY_PAGE_FAMILY}{category.lower()}_page_{page}_limit_{limit}"

    def page_size(self, limit: Optional[int]) -> int:
        return clamp_page_size(limit or self.default_page_size, self.max_page_size)

    async def _read_page(
        self,
        key: str,
        predicate: Predicate,
        page: int,
        limit: int,
        *,
        use_cache: bool,
        force_fresh: bool,
    ) -> List[Dict[str, Any]]:
        generation = self._commit_generation
        where = predicate.describe()
        if use_cache and not force_fresh:
            cached = await self.cache.get(key)
            # Pages are stored with the filters they were read under; any other filter is a miss.
            if isinstance(cached, dict) and cached.get("where") == where:
                return list(cached.get("rows") or [])
        rows = await self.query_service.execute(
            predicate, limit=limit, offset=page_offset(page, limit), order_by="-date_taken"
        )
        # Same JSON-safe shape whether the page came from the cache or the database.
        rows = jsonable_encoder(list(rows or []))
        if not (use_cache and rows):
            return rows
        if generation != self._commit_generation:
            # A commit landed while this page was read; the key now belongs to the new predicate.
            logger.debug("not caching page read under superseded filters key=%s", key)
            return rows
        await self.cache.set(key, {"where": where, "rows": rows}, self.ttl_seconds)
        return rows

    async def get_page(
        self,
        page: int = 1,
        limit: Optional[int] = None,
        *,
        use_cache: bool = True,
        force_fresh: bool = False,
    ) -> List[Dict[str, Any]]:
        page = max(1, int(page))
        size = self.page_size(limit)
        return await self._read_page(
            self.page_key(page, size), self._predicate, page, size,
            use_cache=use_cache, force_fresh=force_fresh,
        )

    async def get_category_page(
        self,
        category: str,
        page: int = 1,
        limit: Optional[int] = None,
        *,
        use_cache: bool = True,
        force_fresh: bool = False,
    ) -> List[Dict[str, Any]]:
        clean = str(category or "").strip()
        if not clean:
            raise ValueError("category is required")
        page = max(1, int(page))
        size = self.page_size(limit)
        predicate = Predicate(self._predicate.clauses + (Equals("category", clean),))
        return await self._read_page(
            self.category_key(clean, page, size), predicate, page, size,
            use_cache=use_cache, force_fresh=force_fresh,
        )

    async def get_total_count(self, *, use_cache: bool = True, force_fresh: bool = False) -> int:
        """Unfiltered catalog size; the estimator reports it when no facet is set."""
        key = f"{self.key_prefix}{TOTAL_COUNT_KEY}"
        if use_cache and not force_fresh:
            cached = await self.cache.get(key)
            if cached is not None:
                return int(cached)
        total = int(await self.query_service.execute(IDENTITY, count_only=True))
        if use_cache:
            await self.cache.set(key, total, self.total_ttl_seconds)
        return total

    async def get_page_count(self, limit: Optional[int] = None) -> int:
        total = await self.query_service.execute(self._predicate, count_only=True)
        return compute_total_pages(int(total), self.page_size(limit))
