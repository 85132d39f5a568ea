from __future__ import annotations

from typing import Optional, Tuple

from catalog_filters.schemas.filters import (
    FACET_ORDER,
    EstimateStatus,
    FilterState,
    ResultCountEstimate,
)


class DirtyStateTracker:
    """Compares the in-progress state with the snapshot taken at open, reset or apply."""

    def __init__(self, baseline: Optional[FilterState] = None) -> None:
        self._baseline = baseline if baseline is not None else FilterState()

    @property
    def baseline(self) -> FilterState:
        return self._baseline

    def snapshot(self, state: FilterState) -> None:
        self._baseline = state

    def is_dirty(self, current: FilterState) -> bool:
        return current.fingerprint() != self._baseline.fingerprint()

    def changed_facets(self, current: FilterState) -> Tuple[str, ...]:
        before = dict(self._baseline.fingerprint())
        after = dict(current.fingerprint())
        return tuple(name for name in FACET_ORDER if before.get(name) != after.get(name))

    def can_apply(
        self, current: FilterState, estimate: ResultCountEstimate, *, estimate_current: bool = True
    ) -> bool:
        """``estimate_current`` is False while the estimate still describes an earlier draft."""
        if not self.is_dirty(current):
            return False
        if not estimate_current:
            return True
        no_results = estimate.status == EstimateStatus.ready and estimate.count == 0
        return not (no_results and current.has_active_facets())

    def can_reset(self, current: FilterState) -> bool:
        return self.is_dirty(current)
