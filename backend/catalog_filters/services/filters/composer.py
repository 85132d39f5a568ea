"""Compile a FilterState into the backend predicate.

Pure and deterministic: facets are visited in ``FACET_ORDER`` and every clause is
an immutable value, so equal states always produce equal predicates.
"""
from __future__ import annotations

import enum
from typing import Any, Dict, List, Optional

from catalog_filters.schemas.filters import FACET_ORDER, DateRange, FacetOption, FilterState
from catalog_filters.services.filters.predicate import (
    Clause,
    ContainsSubstring,
    Equals,
    JsonArrayContains,
    Or,
    Predicate,
    Range,
)


class MatchMode(str, enum.Enum):
    strict = "strict"
    loose = "loose"


DATE_FIELD = "date_taken"
BUILDERS_FIELD = "builders"

# Reference facets matched on the display name.
NAME_FIELDS: Dict[str, str] = {
    "category": "category",
    "organisation": "organisation",
    "location": "location",
    "photographer": "photographer",
    "collection": "collection",
    "gauge": "gauge",
    "route": "route",
    "country": "country",
    "organisation_type": "organisation_type",
}
# Matched by substring instead of equality in loose mode.
LOOSE_NAME_FACETS = frozenset({"organisation", "location", "photographer", "collection"})

# Code columns matched by substring on the option id, not the name.
CODE_FIELDS: Dict[str, str] = {
    "industry_type": "type_of_industry",
    "active_area": "active_area",
    "corporate_body": "corporate_body",
    "facility": "facility",
}

TEXT_FIELDS: Dict[str, str] = {
    "description": "description",
    "image_no": "image_no",
}

SEARCH_QUERY_FIELDS = ("description", "category", "photographer", "location", "organisation")


def compose(state: FilterState, *, mode: MatchMode = MatchMode.loose) -> Predicate:
    clauses: List[Clause] = []
    for facet in FACET_ORDER:
        value = getattr(state, facet)
        if value is None:
            continue
        clause = compile_facet(facet, value, mode=mode)
        if clause is not None:
            clauses.append(clause)
    return Predicate(tuple(clauses))


def compile_facet(facet: str, value: Any, *, mode: MatchMode = MatchMode.loose) -> Optional[Clause]:
    if facet in NAME_FIELDS:
        option: FacetOption = value
        field = NAME_FIELDS[facet]
        if mode == MatchMode.loose and facet in LOOSE_NAME_FACETS:
            return ContainsSubstring(field, option.name)
        return Equals(field, option.name)
    if facet in CODE_FIELDS:
        return ContainsSubstring(CODE_FIELDS[facet], value.id)
    if facet in TEXT_FIELDS:
        return ContainsSubstring(TEXT_FIELDS[facet], value)
    if facet == "builder":
        return Or(
            (
                JsonArrayContains(BUILDERS_FIELD, "builder_id", value.id),
                JsonArrayContains(BUILDERS_FIELD, "builder_name", value.name),
            )
        )
    if facet == "works_number":
        return JsonArrayContains(BUILDERS_FIELD, "works_number", value)
    if facet == "search_query":
        return Or(tuple(ContainsSubstring(field, value) for field in SEARCH_QUERY_FIELDS))
    if facet == "date_range":
        date_range: DateRange = value
        if date_range.is_empty():
            return None
        return Range(DATE_FIELD, low=date_range.start, high=date_range.end)
    raise ValueError(f"no compilation rule for facet {facet!r}")
