from typing import Any, Dict, List, Optional

from pydantic import BaseModel

from catalog_filters.schemas.filters import FacetOption, ResultCountEstimate


class FacetEditRequest(BaseModel):
    value: Any = None


class PredicateView(BaseModel):
    description: str
    expression: Dict[str, Any]


class FilterSessionView(BaseModel):
    session_id: str
    committed: Dict[str, Any]
    draft: Dict[str, Any]
    estimate: ResultCountEstimate
    is_dirty: bool
    can_apply: bool
    can_reset: bool
    active_count: int
    predicate: PredicateView


class ApplyResponse(BaseModel):
    session_id: str
    committed: Dict[str, Any]
    predicate: PredicateView


class FacetOptionsResponse(BaseModel):
    facet: str
    options: List[FacetOption]


class CatalogPageResponse(BaseModel):
    page: int
    limit: int
    total_pages: Optional[int] = None
    items: List[Dict[str, Any]]
