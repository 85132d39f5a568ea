from __future__ import annotations

import asyncio
import enum
import time
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from catalog_filters.core.exceptions import OptionLoadFailure, UnknownFacetError
from catalog_filters.core.logging import get_logger
from catalog_filters.schemas.filters import FACETS, REFERENCE_FACETS, FacetKind, FacetOption, resolve_facet_name
from catalog_filters.services.cache.ttl_store import CacheEntryStatus, TTLCacheStore
from catalog_filters.services.contracts import QueryExecutionService

logger = get_logger(__name__)


class FacetLoadState(str, enum.Enum):
    unloaded = "unloaded"
    loading = "loading"
    loaded = "loaded"
    failed = "failed"


@dataclass(frozen=True)
class _LoadedOptions:
    options: Tuple[FacetOption, ...]
    expires_at: float


class FacetOptionRegistry:
    """Loads and remembers the selectable values of each reference facet.

    A facet is fetched at most once while its cache entry is fresh. Concurrent
    callers share one in-flight fetch. A failed fetch leaves the facet in the
    ``failed`` state; the next call retries.
    """

    def __init__(
        self,
        query_service: QueryExecutionService,
        cache: TTLCacheStore,
        *,
        cache_prefix: str = "filter_cache_",
        ttl_seconds: float = 24 * 60 * 60,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.query_service = query_service
        self.cache = cache
        self.cache_prefix = cache_prefix
        self.ttl_seconds = max(1.0, float(ttl_seconds))
        self._clock = clock
        self._loaded: Dict[str, _LoadedOptions] = {}
        self._inflight: Dict[str, asyncio.Task] = {}
        self._failures: Dict[str, str] = {}
        self.fetch_count = 0

    @staticmethod
    def _facet(facet: str) -> str:
        name = resolve_facet_name(facet)
        if FACETS[name].kind != FacetKind.reference:
            raise UnknownFacetError(facet)
        return name

    def cache_key(self, facet: str) -> str:
        name = self._facet(facet)
        return f"{self.cache_prefix}{FACETS[name].options_cache_name}"

    def _fresh(self, name: str) -> Optional[_LoadedOptions]:
        loaded = self._loaded.get(name)
        if loaded is None:
            return None
        if self._clock() > loaded.expires_at:
            self._loaded.pop(name, None)
            return None
        return loaded

    def is_loaded(self, facet: str) -> bool:
        return self._fresh(self._facet(facet)) is not None

    def status(self, facet: str) -> FacetLoadState:
        name = self._facet(facet)
        if name in self._inflight:
            return FacetLoadState.loading
        if self._fresh(name) is not None:
            return FacetLoadState.loaded
        if name in self._failures:
            return FacetLoadState.failed
        return FacetLoadState.unloaded

    def last_error(self, facet: str) -> Optional[str]:
        return self._failures.get(self._facet(facet))

    async def load_options(self, facet: str) -> List[FacetOption]:
        name = self._facet(facet)
        loaded = self._fresh(name)
        if loaded is not None:
            return list(loaded.options)

        task = self._inflight.get(name)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._fetch(name))
            self._inflight[name] = task
            task.add_done_callback(lambda done, key=name: self._release(key, done))
        options = await asyncio.shield(task)
        return list(options)

    def _release(self, name: str, task: asyncio.Task) -> None:
        if self._inflight.get(name) is task:
            self._inflight.pop(name, None)
        if not task.cancelled():
            # Mark the exception retrieved when every waiter went away.
            task.exception()

    async def _fetch(self, name: str) -> Tuple[FacetOption, ...]:
        key = self.cache_key(name)
        entry = await self.cache.get_entry(key)
        if entry is not None:
            try:
                options = tuple(FacetOption.model_validate(item) for item in entry.payload)
            except (ValidationError, TypeError):
                logger.warning("ignoring malformed cached options for %s", name)
            else:
                self._remember(name, options, entry.expires_at)
                return options

        self.fetch_count += 1
        try:
            raw = await self.query_service.load_facet_options(name)
            options = tuple(FacetOption.model_validate(item) for item in raw)
        except Exception as exc:
            self._failures[name] = str(exc)
            self._loaded.pop(name, None)
            logger.warning(
                "facet option load failed",
                extra={"event": "option_load_failed", "facet": name, "error": str(exc)},
            )
            raise OptionLoadFailure(name, str(exc)) from exc

        if options:
            await self.cache.set(key, [option.model_dump() for option in options], self.ttl_seconds)
        self._remember(name, options, self._clock() + self.ttl_seconds)
        return options

    def _remember(self, name: str, options: Tuple[FacetOption, ...], expires_at: float) -> None:
        self._failures.pop(name, None)
        self._loaded[name] = _LoadedOptions(options=options, expires_at=expires_at)

    async def preload(self, facets: Optional[Iterable[str]] = None) -> Dict[str, List[FacetOption]]:
        """Load several facets concurrently. Facets that fail are left out of the result."""
        names = [self._facet(f) for f in (facets if facets is not None else REFERENCE_FACETS)]
        results = await asyncio.gather(*(self.load_options(n) for n in names), return_exceptions=True)
        loaded: Dict[str, List[FacetOption]] = {}
        for name, result in zip(names, results):
            if isinstance(result, OptionLoadFailure):
                continue
            if isinstance(result, BaseException):
                raise result
            loaded[name] = result
        return loaded

    async def clear(self, facet: Optional[str] = None) -> None:
        names = [self._facet(facet)] if facet is not None else list(REFERENCE_FACETS)
        for name in names:
            self._loaded.pop(name, None)
            self._failures.pop(name, None)
            await self.cache.remove(self.cache_key(name))

    async def cache_status(self) -> Dict[str, CacheEntryStatus]:
        keys = {name: self.cache_key(name) for name in REFERENCE_FACETS}
        statuses = await self.cache.status(keys.values())
        return {name: statuses[key] for name, key in keys.items()}
