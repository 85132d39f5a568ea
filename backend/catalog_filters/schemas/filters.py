from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Mapping, Optional, Tuple

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from catalog_filters.core.exceptions import InvalidFacetValue, InvalidRangeFacet, UnknownFacetError


class FacetKind(str, enum.Enum):
    reference = "reference"
    text = "text"
    range = "range"


@dataclass(frozen=True)
class FacetSpec:
    name: str
    kind: FacetKind
    options_cache_name: Optional[str] = None

    @property
    def alias(self) -> str:
        return to_camel(self.name)


# Canonical facet order. Predicates are always compiled in this order.
FACET_SPECS: Tuple[FacetSpec, ...] = (
    FacetSpec("category", FacetKind.reference, "categories"),
    FacetSpec("organisation", FacetKind.reference, "organisations"),
    FacetSpec("location", FacetKind.reference, "locations"),
    FacetSpec("photographer", FacetKind.reference, "photographers"),
    FacetSpec("collection", FacetKind.reference, "collections"),
    FacetSpec("date_range", FacetKind.range),
    FacetSpec("gauge", FacetKind.reference, "gauges"),
    FacetSpec("search_query", FacetKind.text),
    FacetSpec("country", FacetKind.reference, "countries"),
    FacetSpec("organisation_type", FacetKind.reference, "organisation_types"),
    FacetSpec("industry_type", FacetKind.reference, "industry_types"),
    FacetSpec("active_area", FacetKind.reference, "active_areas"),
    FacetSpec("route", FacetKind.reference, "routes"),
    FacetSpec("corporate_body", FacetKind.reference, "corporate_bodies"),
    FacetSpec("facility", FacetKind.reference, "facilities"),
    FacetSpec("description", FacetKind.text),
    FacetSpec("builder", FacetKind.reference, "builders"),
    FacetSpec("works_number", FacetKind.text),
    FacetSpec("image_no", FacetKind.text),
)

FACETS: Dict[str, FacetSpec] = {spec.name: spec for spec in FACET_SPECS}
FACET_ORDER: Tuple[str, ...] = tuple(spec.name for spec in FACET_SPECS)
REFERENCE_FACETS: Tuple[str, ...] = tuple(s.name for s in FACET_SPECS if s.kind == FacetKind.reference)
TEXT_FACETS: Tuple[str, ...] = tuple(s.name for s in FACET_SPECS if s.kind == FacetKind.text)

_FACET_LOOKUP: Dict[str, str] = {}
for _spec in FACET_SPECS:
    _FACET_LOOKUP[_spec.name] = _spec.name
    _FACET_LOOKUP[_spec.alias] = _spec.name


def resolve_facet_name(name: str) -> str:
    """Map a snake_case or camelCase facet name to its canonical name."""
    canonical = _FACET_LOOKUP.get(str(name or "").strip())
    if canonical is None:
        raise UnknownFacetError(str(name))
    return canonical


class FacetOption(BaseModel):
    """One selectable value of a reference facet. Two options are equal when their ids are."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str

    @field_validator("id", "name", mode="before")
    @classmethod
    def coerce_text(cls, value: Any) -> str:
        if value is None:
            raise ValueError("must not be null")
        return str(value)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FacetOption):
            return NotImplemented
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)


class DateRange(BaseModel):
    model_config = ConfigDict(frozen=True)

    start: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("start", "startDate", "start_date")
    )
    end: Optional[date] = Field(
        default=None, validation_alias=AliasChoices("end", "endDate", "end_date")
    )

    @model_validator(mode="after")
    def check_bounds(self) -> "DateRange":
        if self.start is not None and self.end is not None and self.start > self.end:
            raise ValueError("start must not be after end")
        return self

    def is_empty(self) -> bool:
        return self.start is None and self.end is None


class FilterState(BaseModel):
    """Immutable snapshot of every facet. Edits go through ``with_facet`` and return a new state."""

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )

    category: Optional[FacetOption] = None
    organisation: Optional[FacetOption] = None
    location: Optional[FacetOption] = None
    photographer: Optional[FacetOption] = None
    collection: Optional[FacetOption] = None
    date_range: Optional[DateRange] = None
    gauge: Optional[FacetOption] = None
    search_query: Optional[str] = None
    country: Optional[FacetOption] = None
    organisation_type: Optional[FacetOption] = None
    industry_type: Optional[FacetOption] = None
    active_area: Optional[FacetOption] = None
    route: Optional[FacetOption] = None
    corporate_body: Optional[FacetOption] = None
    facility: Optional[FacetOption] = None
    description: Optional[str] = None
    builder: Optional[FacetOption] = None
    works_number: Optional[str] = None
    image_no: Optional[str] = None

    @field_validator(*REFERENCE_FACETS, mode="before")
    @classmethod
    def coerce_reference(cls, value: Any) -> Any:
        # Single-column facets (gauge, country, ...) use the raw value as id and name.
        if isinstance(value, str):
            clean = value.strip()
            return {"id": clean, "name": clean} if clean else None
        return value

    @field_validator(*TEXT_FACETS, mode="before")
    @classmethod
    def normalize_text(cls, value: Any) -> Optional[str]:
        if value is None:
            return None
        if isinstance(value, bool) or not isinstance(value, (str, int)):
            raise ValueError("expected text")
        clean = str(value).strip()
        return clean or None

    @field_validator("date_range")
    @classmethod
    def drop_empty_range(cls, value: Optional[DateRange]) -> Optional[DateRange]:
        if value is not None and value.is_empty():
            return None
        return value

    @classmethod
    def from_mapping(cls, data: Optional[Mapping[str, Any]]) -> "FilterState":
        """Build a state from user input, translating validation errors into facet errors."""
        values: Dict[str, Any] = {}
        for key, value in (data or {}).items():
            values[resolve_facet_name(key)] = value
        return cls._validated(values)

    @classmethod
    def _validated(cls, values: Dict[str, Any]) -> "FilterState":
        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            first = exc.errors()[0]
            loc = first.get("loc") or ("",)
            facet = _FACET_LOOKUP.get(str(loc[0]), str(loc[0]))
            message = str(first.get("msg") or "invalid value")
            if facet == "date_range":
                raise InvalidRangeFacet(facet, message) from exc
            raise InvalidFacetValue(facet, message) from exc

    def with_facet(self, name: str, value: Any) -> "FilterState":
        facet = resolve_facet_name(name)
        values = self.facet_values()
        values[facet] = value
        return self._validated(values)

    def facet_values(self) -> Dict[str, Any]:
        return {name: getattr(self, name) for name in FACET_ORDER}

    def active_facets(self) -> Tuple[str, ...]:
        return tuple(name for name in FACET_ORDER if getattr(self, name) is not None)

    def has_active_facets(self) -> bool:
        return bool(self.active_facets())

    def active_count(self) -> int:
        return len(self.active_facets())

    def fingerprint(self) -> Tuple[Tuple[str, Any], ...]:
        """Canonical, hashable form: reference facets by id, ranges by bounds."""
        out = []
        for name in self.active_facets():
            value = getattr(self, name)
            if isinstance(value, FacetOption):
                out.append((name, value.id))
            elif isinstance(value, DateRange):
                out.append((name, (value.start, value.end)))
            else:
                out.append((name, value))
        return tuple(out)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, FilterState):
            return NotImplemented
        return self.fingerprint() == other.fingerprint()

    def __hash__(self) -> int:
        return hash(self.fingerprint())


class EstimateStatus(str, enum.Enum):
    pending = "pending"
    ready = "ready"
    error = "error"


class ResultCountEstimate(BaseModel):
    model_config = ConfigDict(frozen=True)

    status: EstimateStatus = EstimateStatus.pending
    count: Optional[int] = None
    generation: int = 0
    error: Optional[str] = None
