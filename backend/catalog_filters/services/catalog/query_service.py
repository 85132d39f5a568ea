from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional, Union

from sqlalchemy import Select, and_, func, or_, select, true
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from catalog_filters.core.logging import get_logger
from catalog_filters.models.catalog import CatalogPhoto
from catalog_filters.models.lookups import (
    Builder,
    Collection,
    Country,
    Location,
    Organisation,
    Photographer,
    Route,
)
from catalog_filters.schemas.filters import resolve_facet_name
from catalog_filters.services.filters.predicate import (
    Clause,
    ContainsSubstring,
    Equals,
    JsonArrayContains,
    Or,
    Predicate,
    Range,
)

logger = get_logger(__name__)

CATALOG_COLUMNS: Dict[str, Any] = {
    column.name: getattr(CatalogPhoto, column.name) for column in CatalogPhoto.__table__.columns
}

DEFAULT_ORDER_BY = "-date_taken"

# Facets whose options come from a lookup table of {id, name} records.
TABLE_OPTION_SOURCES: Dict[str, Any] = {
    "photographer": Photographer,
    "location": Location,
    "organisation": Organisation,
    "collection": Collection,
    "country": Country,
    "route": Route,
    "builder": Builder,
}

# Facets whose options are the distinct non-null values of one column.
DISTINCT_OPTION_SOURCES: Dict[str, Any] = {
    "category": CatalogPhoto.category,
    "gauge": CatalogPhoto.gauge,
    "active_area": CatalogPhoto.active_area,
    "corporate_body": CatalogPhoto.corporate_body,
    "facility": CatalogPhoto.facility,
    "industry_type": CatalogPhoto.type_of_industry,
    "organisation_type": Organisation.type,
}


def _column(field: str):
    column = CATALOG_COLUMNS.get(field)
    if column is None:
        raise ValueError(f"unknown catalog field: {field!r}")
    return column


def _escape_like(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _like_condition(column, text: str, *, case_insensitive: bool = True):
    pattern = f"%{_escape_like(text.lower() if case_insensitive else text)}%"
    if case_insensitive:
        return func.lower(func.coalesce(column, "")).like(pattern, escape="\\")
    return func.coalesce(column, "").like(pattern, escape="\\")


def clause_to_sql(clause: Clause) -> ColumnElement:
    if isinstance(clause, Equals):
        return _column(clause.field) == clause.value
    if isinstance(clause, ContainsSubstring):
        return _like_condition(_column(clause.field), clause.text, case_insensitive=clause.case_insensitive)
    if isinstance(clause, Range):
        column = _column(clause.field)
        bounds = []
        if clause.low is not None:
            bounds.append(column >= clause.low)
        if clause.high is not None:
            bounds.append(column <= clause.high)
        return and_(*bounds) if bounds else true()
    if isinstance(clause, JsonArrayContains):
        return _column(clause.field).contains([{clause.key: clause.value}])
    if isinstance(clause, Or):
        return or_(*(clause_to_sql(inner) for inner in clause.clauses))
    raise TypeError(f"unsupported clause: {clause!r}")


def predicate_to_sql(predicate: Predicate) -> ColumnElement:
    if predicate.is_identity:
        return true()
    return and_(*(clause_to_sql(clause) for clause in predicate.clauses))


def _order_clause(order_by: Optional[str]):
    raw = str(order_by or DEFAULT_ORDER_BY).strip()
    descending = raw.startswith("-")
    column = _column(raw.lstrip("-"))
    return column.desc() if descending else column.asc()


class SqlCatalogQueryService:
    """Runs compiled predicates against the catalog view."""

    def __init__(self, session_factory: Callable[[], AsyncSession]):
        self.session_factory = session_factory

    @staticmethod
    def build_count(predicate: Predicate) -> Select:
        return select(func.count()).select_from(CatalogPhoto).where(predicate_to_sql(predicate))

    @staticmethod
    def build_rows(
        predicate: Predicate,
        *,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> Select:
        stmt = (
            select(*CatalogPhoto.__table__.columns)
            .where(predicate_to_sql(predicate))
            .order_by(_order_clause(order_by))
        )
        if offset:
            stmt = stmt.offset(max(0, int(offset)))
        if limit is not None:
            stmt = stmt.limit(max(1, int(limit)))
        return stmt

    async def execute(
        self,
        predicate: Predicate,
        *,
        count_only: bool = False,
        limit: Optional[int] = None,
        offset: Optional[int] = None,
        order_by: Optional[str] = None,
    ) -> Union[int, List[Dict[str, Any]]]:
        logger.debug("catalog query count_only=%s where=%s", count_only, predicate.describe())
        async with self.session_factory() as session:
            if count_only:
                result = await session.execute(self.build_count(predicate))
                return int(result.scalar_one() or 0)
            stmt = self.build_rows(predicate, limit=limit, offset=offset, order_by=order_by)
            result = await session.execute(stmt)
            return [dict(row) for row in result.mappings().all()]

    @staticmethod
    def _map_record(facet: str, record: Any) -> Dict[str, Any]:
        if facet == "organisation":
            return {"id": str(record.id), "name": record.name or "Unnamed", "type": record.type}
        if facet == "builder":
            return {"id": str(record.id), "name": record.name or record.code or "Unnamed"}
        return {"id": str(record.id), "name": record.name or ""}

    async def load_facet_options(self, facet: str) -> List[Dict[str, Any]]:
        name = resolve_facet_name(facet)
        async with self.session_factory() as session:
            model = TABLE_OPTION_SOURCES.get(name)
            if model is not None:
                result = await session.execute(select(model).order_by(model.name))
                return [self._map_record(name, record) for record in result.scalars().all()]

            column = DISTINCT_OPTION_SOURCES.get(name)
            if column is None:
                raise ValueError(f"facet {facet!r} has no option source")
            stmt = select(column).where(column.is_not(None)).distinct().order_by(column)
            result = await session.execute(stmt)
            values = [str(value) for value in result.scalars().all() if value]
            return [{"id": value, "name": value} for value in values]
