from __future__ import annotations

import asyncio
from typing import Callable, List, Optional, Set

from catalog_filters.core.exceptions import EstimateFailure
from catalog_filters.core.logging import get_logger
from catalog_filters.schemas.filters import EstimateStatus, FilterState, ResultCountEstimate
from catalog_filters.services.contracts import QueryExecutionService
from catalog_filters.services.filters.composer import MatchMode, compose
from catalog_filters.services.filters.predicate import Predicate

logger = get_logger(__name__)

EstimateCallback = Callable[[ResultCountEstimate], None]


class DebouncedCountEstimator:
    """Estimates how many catalog rows the in-progress filter state matches.

    Every change restarts a quiescence timer; only the last change of a burst issues
    a count query. Each issued query carries the generation it was issued under and
    its answer is published only if no newer query has been issued since. Superseded
    queries are left to finish and ignored on arrival.
    """

    def __init__(
        self,
        query_service: QueryExecutionService,
        *,
        delay_seconds: float = 0.5,
        mode: MatchMode = MatchMode.loose,
        baseline_total: Optional[int] = None,
    ) -> None:
        self.query_service = query_service
        self.delay_seconds = max(0.0, float(delay_seconds))
        self.mode = mode
        self._baseline_total = baseline_total
        self._generation = 0
        self._estimate = ResultCountEstimate(
            status=EstimateStatus.pending, count=baseline_total, generation=0
        )
        self._timer: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._subscribers: List[EstimateCallback] = []
        self._closed = False
        self.requests_issued = 0

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def estimate(self) -> ResultCountEstimate:
        return self._estimate

    @property
    def debounce_armed(self) -> bool:
        """True between a state change and the moment its estimate is issued."""
        return self._timer is not None and not self._timer.done()

    @property
    def baseline_total(self) -> Optional[int]:
        return self._baseline_total

    def set_baseline(self, total: Optional[int]) -> None:
        self._baseline_total = None if total is None else max(0, int(total))

    def subscribe(self, callback: EstimateCallback) -> Callable[[], None]:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def on_filter_state_changed(self, state: FilterState) -> None:
        if self._closed:
            raise RuntimeError("estimator is closed")
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = asyncio.get_running_loop().create_task(self._debounce(state))

    async def _debounce(self, state: FilterState) -> None:
        await asyncio.sleep(self.delay_seconds)
        self._fire(state)

    def _fire(self, state: FilterState) -> None:
        self._generation += 1
        generation = self._generation

        if not state.has_active_facets() and self._baseline_total is not None:
            self._publish(
                ResultCountEstimate(
                    status=EstimateStatus.ready,
                    count=self._baseline_total,
                    generation=generation,
                )
            )
            return

        self._publish(
            ResultCountEstimate(
                status=EstimateStatus.pending,
                count=self._estimate.count,
                generation=generation,
            )
        )
        predicate = compose(state, mode=self.mode)
        self.requests_issued += 1
        task = asyncio.get_running_loop().create_task(self._request(generation, predicate))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _request(self, generation: int, predicate: Predicate) -> None:
        try:
            count = int(await self.query_service.execute(predicate, count_only=True))
        except Exception as exc:
            failure = EstimateFailure(generation, str(exc))
            if generation != self._generation:
                logger.debug("ignoring failure of superseded estimate: %s", failure)
                return
            logger.warning(
                "result count estimate failed",
                extra={"event": "estimate_failed", "generation": generation, "error": str(exc)},
            )
            self._publish(
                ResultCountEstimate(
                    status=EstimateStatus.error,
                    count=self._estimate.count,
                    generation=generation,
                    error=str(failure),
                )
            )
            return

        if predicate.is_identity:
            self._baseline_total = count
        if generation != self._generation:
            logger.debug(
                "discarding superseded estimate",
                extra={"event": "estimate_superseded", "generation": generation, "latest": self._generation},
            )
            return
        self._publish(ResultCountEstimate(status=EstimateStatus.ready, count=count, generation=generation))

    def _publish(self, estimate: ResultCountEstimate) -> None:
        if self._closed:
            return
        self._estimate = estimate
        for callback in list(self._subscribers):
            try:
                callback(estimate)
            except Exception:
                logger.exception("estimate subscriber raised")

    def _pending_tasks(self) -> List[asyncio.Task]:
        tasks = [task for task in self._inflight if not task.done()]
        if self._timer is not None and not self._timer.done():
            tasks.append(self._timer)
        return tasks

    async def wait_idle(self) -> None:
        """Wait until no debounce timer is armed and no estimate is in flight."""
        while True:
            pending = self._pending_tasks()
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def close(self) -> None:
        self._closed = True
        pending = self._pending_tasks()
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        self._subscribers.clear()
