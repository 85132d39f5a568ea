from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Response, status

from catalog_filters.api.deps import get_controller
from catalog_filters.core.exceptions import (
    InvalidFacetException,
    InvalidFacetValue,
    SessionNotFoundError,
    SessionNotFoundException,
    UnknownFacetError,
)
from catalog_filters.schemas.filters import FilterState
from catalog_filters.schemas.session import (
    ApplyResponse,
    FacetEditRequest,
    FilterSessionView,
    PredicateView,
)
from catalog_filters.services.filters.predicate import Predicate
from catalog_filters.services.filters.session import FilterSession, FilterSessionController

router = APIRouter()


def _state_dict(state: FilterState) -> Dict[str, Any]:
    return state.model_dump(mode="json", exclude_none=True)


def _predicate_view(predicate: Predicate) -> PredicateView:
    return PredicateView(description=predicate.describe(), expression=predicate.to_dict())


def _session_view(controller: FilterSessionController, session: FilterSession) -> FilterSessionView:
    return FilterSessionView(
        session_id=session.handle,
        committed=_state_dict(session.committed),
        draft=_state_dict(session.draft),
        estimate=session.estimate,
        is_dirty=session.is_dirty,
        can_apply=session.can_apply,
        can_reset=session.can_reset,
        active_count=session.draft.active_count(),
        predicate=_predicate_view(controller.predicate(session.handle)),
    )


def _lookup(controller: FilterSessionController, session_id: str) -> FilterSession:
    try:
        return controller.get_session(session_id)
    except SessionNotFoundError as exc:
        raise SessionNotFoundException(str(exc)) from exc


@router.post("", response_model=FilterSessionView, status_code=status.HTTP_201_CREATED)
async def open_filter_session(
    committed: Optional[Dict[str, Any]] = Body(default=None),
    controller: FilterSessionController = Depends(get_controller),
) -> FilterSessionView:
    try:
        state = FilterState.from_mapping(committed)
    except (UnknownFacetError, InvalidFacetValue) as exc:
        raise InvalidFacetException(str(exc)) from exc
    handle = await controller.open_session(state)
    return _session_view(controller, controller.get_session(handle))


@router.get("/{session_id}", response_model=FilterSessionView)
async def read_filter_session(
    session_id: str,
    controller: FilterSessionController = Depends(get_controller),
) -> FilterSessionView:
    return _session_view(controller, _lookup(controller, session_id))


@router.put("/{session_id}/facets/{facet}", response_model=FilterSessionView)
async def edit_facet(
    session_id: str,
    facet: str,
    body: FacetEditRequest,
    controller: FilterSessionController = Depends(get_controller),
) -> FilterSessionView:
    session = _lookup(controller, session_id)
    try:
        controller.edit_facet(session_id, facet, body.value)
    except (UnknownFacetError, InvalidFacetValue) as exc:
        raise InvalidFacetException(str(exc)) from exc
    return _session_view(controller, session)


@router.post("/{session_id}/apply", response_model=ApplyResponse)
async def apply_filters(
    session_id: str,
    controller: FilterSessionController = Depends(get_controller),
) -> ApplyResponse:
    _lookup(controller, session_id)
    committed = await controller.apply(session_id)
    return ApplyResponse(
        session_id=session_id,
        committed=_state_dict(committed),
        predicate=_predicate_view(controller.predicate(session_id, committed=True)),
    )


@router.post("/{session_id}/reset", response_model=FilterSessionView)
async def reset_filters(
    session_id: str,
    controller: FilterSessionController = Depends(get_controller),
) -> FilterSessionView:
    session = _lookup(controller, session_id)
    controller.reset(session_id)
    return _session_view(controller, session)


@router.delete("/{session_id}", status_code=status.HTTP_204_NO_CONTENT)
async def close_filter_session(
    session_id: str,
    controller: FilterSessionController = Depends(get_controller),
) -> Response:
    try:
        await controller.close_session(session_id)
    except SessionNotFoundError as exc:
        raise SessionNotFoundException(str(exc)) from exc
    return Response(status_code=status.HTTP_204_NO_CONTENT)
