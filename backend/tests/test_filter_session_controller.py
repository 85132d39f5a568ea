from __future__ import annotations

import asyncio

import pytest

from catalog_filters.core.exceptions import InvalidRangeFacet, SessionNotFoundError, UnknownFacetError
from catalog_filters.schemas.filters import EstimateStatus, FilterState
from catalog_filters.services.cache.invalidator import CatalogCacheInvalidator, listing_key_prefixes
from catalog_filters.services.cache.ttl_store import TTLCacheStore
from catalog_filters.services.catalog.listing import CatalogListingService
from catalog_filters.services.filters.composer import MatchMode
from catalog_filters.services.filters.predicate import ContainsSubstring, Equals, Predicate
from catalog_filters.services.filters.session import FilterSessionController
from fakes import FailingKeyValueStore, FakeQueryService, wait_for

TOTAL = 500


def _count(predicate) -> int:
    if predicate.is_identity:
        return TOTAL
    if "Nowhere" in predicate.describe():
        return 0
    return 17


@pytest.fixture
def service() -> FakeQueryService:
    return FakeQueryService(counter=_count)


@pytest.fixture
def listing(service, cache) -> CatalogListingService:
    return CatalogListingService(service, cache)


@pytest.fixture
def controller(service, cache, listing) -> FilterSessionController:
    return FilterSessionController(
        service,
        CatalogCacheInvalidator(cache, prefixes=listing_key_prefixes("api_cache_")),
        debounce_seconds=0,
        baseline_provider=listing.get_total_count,
        commit_listeners=[listing],
    )


@pytest.mark.asyncio
async def test_open_session_reports_baseline_total(controller, service) -> None:
    handle = await controller.open_session()
    await controller.wait_idle(handle)

    estimate = controller.get_estimate(handle)
    assert estimate.status == EstimateStatus.ready
    assert estimate.count == TOTAL
    assert len(service.count_calls) == 1
    assert not controller.is_dirty(handle)
    assert not controller.can_apply(handle)
    await controller.close()


@pytest.mark.asyncio
async def test_edit_marks_dirty_and_refreshes_estimate(controller) -> None:
    handle = await controller.open_session()
    draft = controller.edit_facet(handle, "location", {"id": "l1", "name": "Crewe"})
    await controller.wait_idle(handle)

    assert draft.location.name == "Crewe"
    assert controller.get_estimate(handle).count == 17
    assert controller.is_dirty(handle)
    assert controller.can_apply(handle)
    assert controller.can_reset(handle)
    assert controller.predicate(handle).clauses == (ContainsSubstring("location", "Crewe"),)
    assert controller.predicate(handle, committed=True).is_identity
    await controller.close()


@pytest.mark.asyncio
async def test_zero_result_draft_cannot_be_applied(controller) -> None:
    handle = await controller.open_session()
    controller.edit_facet(handle, "location", {"id": "l0", "name": "Nowhere"})
    await controller.wait_idle(handle)

    assert controller.get_estimate(handle).count == 0
    assert controller.is_dirty(handle)
    assert not controller.can_apply(handle)
    await controller.close()


@pytest.mark.asyncio
async def test_apply_commits_invalidates_and_notifies_listing(controller, cache, kv_store, listing) -> None:
    await cache.set("api_cache_photos_page_1_limit_10", [{"image_no": "1"}])
    await cache.set("api_cache_category_steam_page_1_limit_10", [{"image_no": "2"}])
    await cache.set("filter_cache_categories", [{"id": "c1", "name": "Steam"}])
    handle = await controller.open_session()
    controller.edit_facet(handle, "category", {"id": "c1", "name": "Steam"})
    await controller.wait_idle(handle)

    committed = await controller.apply(handle)

    assert committed.category.id == "c1"
    assert controller.get_session(handle).committed == committed
    assert not controller.is_dirty(handle)
    assert listing.committed_predicate.clauses == (Equals("category", "Steam"),)
    remaining = await kv_store.list_keys()
    assert "api_cache_photos_page_1_limit_10" not in remaining
    assert "api_cache_category_steam_page_1_limit_10" not in remaining
    assert "filter_cache_categories" in remaining
    await controller.close()


@pytest.mark.asyncio
async def test_apply_without_changes_leaves_cache_alone(controller, cache, kv_store) -> None:
    handle = await controller.open_session()
    await cache.set("api_cache_photos_page_1_limit_10", [{"image_no": "1"}])

    committed = await controller.apply(handle)

    assert committed == FilterState()
    assert "api_cache_photos_page_1_limit_10" in await kv_store.list_keys()
    await controller.close()


@pytest.mark.asyncio
async def test_reset_clears_draft_but_not_committed(controller) -> None:
    start = FilterState().with_facet("gauge", "Narrow")
    handle = await controller.open_session(start)
    controller.edit_facet(handle, "country", "Wales")

    draft = controller.reset(handle)
    await controller.wait_idle(handle)

    assert draft == FilterState()
    assert controller.get_session(handle).committed == start
    assert not controller.is_dirty(handle)
    assert controller.get_estimate(handle).count == TOTAL

    committed = await controller.apply(handle)
    assert committed == FilterState()
    await controller.close()


@pytest.mark.asyncio
async def test_opening_with_committed_state_is_clean(controller) -> None:
    start = FilterState.from_mapping({"worksNumber": "1234"})
    handle = await controller.open_session(start)
    await controller.wait_idle(handle)

    assert not controller.is_dirty(handle)
    assert controller.get_estimate(handle).count == 17
    await controller.close()


@pytest.mark.asyncio
async def test_invalid_edits_leave_draft_untouched(controller) -> None:
    handle = await controller.open_session()
    with pytest.raises(UnknownFacetError):
        controller.edit_facet(handle, "colour", "red")
    with pytest.raises(InvalidRangeFacet):
        controller.edit_facet(handle, "dateRange", {"start": "2001-01-01", "end": "2000-01-01"})

    assert controller.get_session(handle).draft == FilterState()
    await controller.close()


@pytest.mark.asyncio
async def test_strict_mode_is_passed_to_composition(service, cache) -> None:
    controller = FilterSessionController(
        service,
        CatalogCacheInvalidator(cache, prefixes=listing_key_prefixes("api_cache_")),
        mode=MatchMode.strict,
        debounce_seconds=0,
    )
    handle = await controller.open_session()
    controller.edit_facet(handle, "photographer", {"id": "p1", "name": "Ivo Peters"})

    assert controller.predicate(handle).clauses == (Equals("photographer", "Ivo Peters"),)
    await controller.close()


@pytest.mark.asyncio
async def test_baseline_failure_still_opens_session(service, cache) -> None:
    async def broken_total() -> int:
        raise ConnectionError("db down")

    controller = FilterSessionController(
        service,
        CatalogCacheInvalidator(cache, prefixes=listing_key_prefixes("api_cache_")),
        debounce_seconds=0,
        baseline_provider=broken_total,
    )
    handle = await controller.open_session()
    await controller.wait_idle(handle)

    assert controller.get_estimate(handle).count == TOTAL
    await controller.close()


@pytest.mark.asyncio
async def test_sessions_are_independent_and_closable(controller) -> None:
    first = await controller.open_session()
    second = await controller.open_session()
    controller.edit_facet(first, "country", "Wales")

    assert controller.is_dirty(first)
    assert not controller.is_dirty(second)
    assert controller.open_sessions == 2

    await controller.close_session(first)
    with pytest.raises(SessionNotFoundError):
        controller.get_session(first)
    with pytest.raises(SessionNotFoundError):
        await controller.close_session(first)
    await controller.close()
    assert controller.open_sessions == 0


class HeldInvalidator:
    def __init__(self) -> None:
        self.calls = 0
        self.release = asyncio.Event()

    async def invalidate(self) -> int:
        self.calls += 1
        await self.release.wait()
        return 0


class RecordingListener:
    def __init__(self) -> None:
        self.predicates = []

    async def on_commit(self, predicate) -> None:
        self.predicates.append(predicate)


@pytest.mark.asyncio
async def test_concurrent_applies_commit_once(service) -> None:
    invalidator = HeldInvalidator()
    listener = RecordingListener()
    controller = FilterSessionController(
        service, invalidator, debounce_seconds=0, commit_listeners=[listener]
    )
    handle = await controller.open_session()
    draft = controller.edit_facet(handle, "country", "Wales")

    first = asyncio.create_task(controller.apply(handle))
    second = asyncio.create_task(controller.apply(handle))
    await wait_for(lambda: invalidator.calls == 1)
    await asyncio.sleep(0.01)
    assert not second.done()
    assert listener.predicates == []

    invalidator.release.set()
    results = await asyncio.gather(first, second)

    assert results == [draft, draft]
    assert invalidator.calls == 1
    assert listener.predicates == [Predicate((Equals("country", "Wales"),))]
    await controller.close()


@pytest.mark.asyncio
async def test_apply_queued_behind_another_sees_its_commit(service) -> None:
    invalidator = HeldInvalidator()
    listener = RecordingListener()
    controller = FilterSessionController(
        service, invalidator, debounce_seconds=0, commit_listeners=[listener]
    )
    handle = await controller.open_session()
    controller.edit_facet(handle, "country", "Wales")

    first = asyncio.create_task(controller.apply(handle))
    await wait_for(lambda: invalidator.calls == 1)
    latest = controller.edit_facet(handle, "country", "Scotland")
    second = asyncio.create_task(controller.apply(handle))

    invalidator.release.set()
    await asyncio.gather(first, second)

    assert controller.get_session(handle).committed == latest
    assert invalidator.calls == 2
    assert [p.clauses for p in listener.predicates] == [
        (Equals("country", "Wales"),),
        (Equals("country", "Scotland"),),
    ]
    assert not controller.is_dirty(handle)
    await controller.close()


@pytest.mark.asyncio
async def test_apply_survives_cache_store_failure(service, clock) -> None:
    cache = TTLCacheStore(FailingKeyValueStore(fail_on=("list_keys",)), clock=clock)
    listener = RecordingListener()
    controller = FilterSessionController(
        service,
        CatalogCacheInvalidator(cache, prefixes=listing_key_prefixes("api_cache_")),
        debounce_seconds=0,
        commit_listeners=[listener],
    )
    handle = await controller.open_session()
    draft = controller.edit_facet(handle, "gauge", "Narrow")

    committed = await controller.apply(handle)

    assert committed == draft
    assert controller.get_session(handle).committed == draft
    assert listener.predicates == [Predicate((Equals("gauge", "Narrow"),))]
    await controller.close()


@pytest.mark.asyncio
async def test_zero_result_gate_ignores_estimate_of_previous_draft(controller) -> None:
    handle = await controller.open_session()
    controller.edit_facet(handle, "location", {"id": "l0", "name": "Nowhere"})
    await controller.wait_idle(handle)
    assert not controller.can_apply(handle)

    controller.edit_facet(handle, "location", {"id": "l1", "name": "Crewe"})
    assert controller.get_estimate(handle).count == 0
    assert controller.can_apply(handle)

    await controller.wait_idle(handle)
    assert controller.get_estimate(handle).count == 17
    assert controller.can_apply(handle)
    await controller.close()
