from __future__ import annotations

from datetime import date

import pytest

from catalog_filters.schemas.filters import FilterState
from catalog_filters.services.filters.composer import MatchMode, compose
from catalog_filters.services.filters.predicate import (
    IDENTITY,
    ContainsSubstring,
    Equals,
    JsonArrayContains,
    Or,
    Predicate,
    Range,
)


def test_empty_state_compiles_to_identity() -> None:
    predicate = compose(FilterState())
    assert predicate == IDENTITY
    assert predicate.is_identity
    assert predicate.describe() == "TRUE"


def test_category_and_open_ended_date_range() -> None:
    state = FilterState.from_mapping(
        {
            "category": {"id": "c1", "name": "Steam"},
            "dateRange": {"start": "1950-01-01", "end": None},
        }
    )

    predicate = compose(state)

    assert predicate == Predicate(
        (
            Equals("category", "Steam"),
            Range("date_taken", low=date(1950, 1, 1), high=None),
        )
    )
    assert predicate.describe() == (
        "Equals(category, 'Steam') AND Range(date_taken, low='1950-01-01', high=None)"
    )


def test_works_number_alone() -> None:
    predicate = compose(FilterState.from_mapping({"worksNumber": "12345"}))
    assert predicate.clauses == (JsonArrayContains("builders", "works_number", "12345"),)


def test_compose_is_deterministic_regardless_of_edit_order() -> None:
    first = (
        FilterState()
        .with_facet("description", "tank engine")
        .with_facet("country", "Wales")
        .with_facet("category", {"id": "c1", "name": "Steam"})
    )
    second = (
        FilterState()
        .with_facet("category", {"id": "c1", "name": "Steam"})
        .with_facet("description", "tank engine")
        .with_facet("country", "Wales")
    )

    assert compose(first) == compose(second)
    assert [type(c) for c in compose(first).clauses] == [Equals, Equals, ContainsSubstring]


@pytest.mark.parametrize("facet", ["organisation", "location", "photographer", "collection"])
def test_name_facets_follow_match_mode(facet: str) -> None:
    state = FilterState().with_facet(facet, {"id": "x1", "name": "Bagnall"})

    assert compose(state, mode=MatchMode.loose).clauses == (ContainsSubstring(facet, "Bagnall"),)
    assert compose(state, mode=MatchMode.strict).clauses == (Equals(facet, "Bagnall"),)


@pytest.mark.parametrize("facet", ["gauge", "route", "country", "organisation_type"])
def test_single_column_facets_match_exactly_in_both_modes(facet: str) -> None:
    state = FilterState().with_facet(facet, "Standard")
    for mode in MatchMode:
        assert compose(state, mode=mode).clauses == (Equals(facet, "Standard"),)


@pytest.mark.parametrize(
    "facet,column",
    [
        ("industry_type", "type_of_industry"),
        ("active_area", "active_area"),
        ("corporate_body", "corporate_body"),
        ("facility", "facility"),
    ],
)
def test_code_facets_match_substring_of_option_id(facet: str, column: str) -> None:
    state = FilterState().with_facet(facet, {"id": "NCB", "name": "National Coal Board"})
    assert compose(state).clauses == (ContainsSubstring(column, "NCB"),)


def test_builder_matches_id_or_name() -> None:
    state = FilterState().with_facet("builder", {"id": "b12", "name": "Hunslet"})
    assert compose(state).clauses == (
        Or(
            (
                JsonArrayContains("builders", "builder_id", "b12"),
                JsonArrayContains("builders", "builder_name", "Hunslet"),
            )
        ),
    )


def test_search_query_spans_text_columns() -> None:
    predicate = compose(FilterState().with_facet("searchQuery", "Pannier"))
    (clause,) = predicate.clauses
    assert isinstance(clause, Or)
    assert [c.field for c in clause.clauses] == [
        "description",
        "category",
        "photographer",
        "location",
        "organisation",
    ]
    assert all(c.text == "Pannier" for c in clause.clauses)


def test_text_facets_use_substring_match() -> None:
    state = FilterState().with_facet("description", "shed").with_facet("imageNo", "0042")
    assert compose(state).clauses == (
        ContainsSubstring("description", "shed"),
        ContainsSubstring("image_no", "0042"),
    )


def test_predicate_to_dict_is_json_ready() -> None:
    state = FilterState.from_mapping({"dateRange": {"start": "1960-05-01", "end": "1960-06-01"}})
    assert compose(state).to_dict() == {
        "op": "and",
        "clauses": [
            {"op": "range", "field": "date_taken", "low": "1960-05-01", "high": "1960-06-01"}
        ],
    }
