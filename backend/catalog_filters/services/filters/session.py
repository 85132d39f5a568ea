from __future__ import annotations

import asyncio
import uuid
from dataclasses import dataclass, field
from typing import Awaitable, Callable, Dict, List, Optional, Sequence

from catalog_filters.core.exceptions import SessionNotFoundError
from catalog_filters.core.logging import get_logger
from catalog_filters.schemas.filters import FilterState, ResultCountEstimate
from catalog_filters.services.cache.invalidator import CatalogCacheInvalidator
from catalog_filters.services.contracts import CommitListener, QueryExecutionService
from catalog_filters.services.filters.composer import MatchMode, compose
from catalog_filters.services.filters.dirty_state import DirtyStateTracker
from catalog_filters.services.filters.estimator import DebouncedCountEstimator, EstimateCallback
from catalog_filters.services.filters.predicate import Predicate

logger = get_logger(__name__)

FilterSessionHandle = str
BaselineProvider = Callable[[], Awaitable[int]]


@dataclass
class FilterSession:
    handle: FilterSessionHandle
    committed: FilterState
    draft: FilterState
    estimator: DebouncedCountEstimator
    tracker: DirtyStateTracker
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)

    @property
    def estimate(self) -> ResultCountEstimate:
        return self.estimator.estimate

    @property
    def is_dirty(self) -> bool:
        return self.tracker.is_dirty(self.draft)

    @property
    def can_apply(self) -> bool:
        return self.tracker.can_apply(
            self.draft, self.estimate, estimate_current=not self.estimator.debounce_armed
        )

    @property
    def can_reset(self) -> bool:
        return self.tracker.can_reset(self.draft)


class FilterSessionController:
    """Public entrypoint for the filter UI: open, edit, apply, reset and close sessions."""

    def __init__(
        self,
        query_service: QueryExecutionService,
        invalidator: CatalogCacheInvalidator,
        *,
        mode: MatchMode = MatchMode.loose,
        debounce_seconds: float = 0.5,
        baseline_provider: Optional[BaselineProvider] = None,
        commit_listeners: Sequence[CommitListener] = (),
    ) -> None:
        self.query_service = query_service
        self.invalidator = invalidator
        self.mode = mode
        self.debounce_seconds = debounce_seconds
        self.baseline_provider = baseline_provider
        self.commit_listeners: List[CommitListener] = list(commit_listeners)
        self._sessions: Dict[FilterSessionHandle, FilterSession] = {}

    @property
    def open_sessions(self) -> int:
        return len(self._sessions)

    async def _baseline_total(self) -> Optional[int]:
        if self.baseline_provider is None:
            return None
        try:
            return int(await self.baseline_provider())
        except Exception as exc:
            logger.warning("baseline total unavailable; estimating without it: %s", exc)
            return None

    async def open_session(self, committed: Optional[FilterState] = None) -> FilterSessionHandle:
        committed = committed if committed is not None else FilterState()
        estimator = DebouncedCountEstimator(
            self.query_service,
            delay_seconds=self.debounce_seconds,
            mode=self.mode,
            baseline_total=await self._baseline_total(),
        )
        handle = uuid.uuid4().hex
        session = FilterSession(
            handle=handle,
            committed=committed,
            draft=committed,
            estimator=estimator,
            tracker=DirtyStateTracker(committed),
        )
        self._sessions[handle] = session
        estimator.on_filter_state_changed(committed)
        logger.info("filter session opened %s with %d active facets", handle, committed.active_count())
        return handle

    def get_session(self, handle: FilterSessionHandle) -> FilterSession:
        session = self._sessions.get(handle)
        if session is None:
            raise SessionNotFoundError(handle)
        return session

    def edit_facet(self, handle: FilterSessionHandle, facet: str, value) -> FilterState:
        session = self.get_session(handle)
        session.draft = session.draft.with_facet(facet, value)
        session.estimator.on_filter_state_changed(session.draft)
        return session.draft

    def get_estimate(self, handle: FilterSessionHandle) -> ResultCountEstimate:
        return self.get_session(handle).estimate

    def is_dirty(self, handle: FilterSessionHandle) -> bool:
        return self.get_session(handle).is_dirty

    def can_apply(self, handle: FilterSessionHandle) -> bool:
        return self.get_session(handle).can_apply

    def can_reset(self, handle: FilterSessionHandle) -> bool:
        return self.get_session(handle).can_reset

    def predicate(self, handle: FilterSessionHandle, *, committed: bool = False) -> Predicate:
        session = self.get_session(handle)
        return compose(session.committed if committed else session.draft, mode=self.mode)

    def subscribe(self, handle: FilterSessionHandle, callback: EstimateCallback) -> Callable[[], None]:
        return self.get_session(handle).estimator.subscribe(callback)

    async def apply(self, handle: FilterSessionHandle) -> FilterState:
        session = self.get_session(handle)
        async with session.lock:
            draft = session.draft
            if draft == session.committed:
                session.tracker.snapshot(session.committed)
                return session.committed

            session.committed = draft
            session.tracker.snapshot(draft)
            evicted = await self.invalidator.invalidate()
            predicate = compose(draft, mode=self.mode)
            for listener in self.commit_listeners:
                try:
                    await listener.on_commit(predicate)
                except Exception as exc:
                    logger.warning("commit listener %r failed: %s", listener, exc)
            logger.info(
                "filter session applied",
                extra={
                    "event": "session_applied",
                    "session": handle,
                    "active_facets": list(draft.active_facets()),
                    "evicted": evicted,
                },
            )
            return draft

    def reset(self, handle: FilterSessionHandle) -> FilterState:
        session = self.get_session(handle)
        session.draft = FilterState()
        session.tracker.snapshot(session.draft)
        session.estimator.on_filter_state_changed(session.draft)
        return session.draft

    async def wait_idle(self, handle: FilterSessionHandle) -> None:
        await self.get_session(handle).estimator.wait_idle()

    async def close_session(self, handle: FilterSessionHandle) -> None:
        session = self._sessions.pop(handle, None)
        if session is None:
            raise SessionNotFoundError(handle)
        await session.estimator.close()
        logger.info("filter session closed %s", handle)

    async def close(self) -> None:
        for handle in list(self._sessions):
            await self.close_session(handle)
