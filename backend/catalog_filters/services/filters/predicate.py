from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, Optional, Tuple, Union


def _render_value(value: Any) -> str:
    if isinstance(value, date):
        return repr(value.isoformat())
    return repr(value)


def _json_value(value: Any) -> Any:
    if isinstance(value, date):
        return value.isoformat()
    return value


@dataclass(frozen=True)
class Equals:
    field: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"op": "eq", "field": self.field, "value": _json_value(self.value)}

    def describe(self) -> str:
        return f"Equals({self.field}, {_render_value(self.value)})"


@dataclass(frozen=True)
class ContainsSubstring:
    field: str
    text: str
    case_insensitive: bool = True

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": "contains",
            "field": self.field,
            "value": self.text,
            "case_insensitive": self.case_insensitive,
        }

    def describe(self) -> str:
        return f"ContainsSubstring({self.field}, {_render_value(self.text)})"


@dataclass(frozen=True)
class Range:
    field: str
    low: Optional[Any] = None
    high: Optional[Any] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "op": "range",
            "field": self.field,
            "low": _json_value(self.low),
            "high": _json_value(self.high),
        }

    def describe(self) -> str:
        return f"Range({self.field}, low={_render_value(self.low)}, high={_render_value(self.high)})"


@dataclass(frozen=True)
class JsonArrayContains:
    """Matches rows whose JSON array column holds an object with ``{key: value}``."""

    field: str
    key: str
    value: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"op": "json_array_contains", "field": self.field, "key": self.key, "value": self.value}

    def describe(self) -> str:
        return f"JsonArrayContains({self.field}, {self.key!r}, {_render_value(self.value)})"


@dataclass(frozen=True)
class Or:
    clauses: Tuple["Clause", ...]

    def to_dict(self) -> Dict[str, Any]:
        return {"op": "or", "clauses": [clause.to_dict() for clause in self.clauses]}

    def describe(self) -> str:
        return "(" + " OR ".join(clause.describe() for clause in self.clauses) + ")"


Clause = Union[Equals, ContainsSubstring, Range, JsonArrayContains, Or]


@dataclass(frozen=True)
class Predicate:
    """Top-level conjunction. No clauses means the identity predicate (matches everything)."""

    clauses: Tuple[Clause, ...] = ()

    @property
    def is_identity(self) -> bool:
        return not self.clauses

    def to_dict(self) -> Dict[str, Any]:
        return {"op": "and", "clauses": [clause.to_dict() for clause in self.clauses]}

    def describe(self) -> str:
        if self.is_identity:
            return "TRUE"
        return " AND ".join(clause.describe() for clause in self.clauses)


IDENTITY = Predicate()
