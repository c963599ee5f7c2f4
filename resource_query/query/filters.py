"""Compile a client's JSON filter object into SQLAlchemy predicates.

Filters come from the ``filter`` query parameter, e.g.::

    {"q": "tesla", "status": "Active", "year_gte": 2020, "tags": ["a", "b"],
     "owner.name_like": "smith"}

Malformed input never raises: unknown fields, invalid names, uncoercible
values and unparsable JSON are dropped so a listing keeps working while
clients and schemas evolve independently. Keys in dot notation that point at
a declared joined column are returned separately as :class:`JoinedFilter`
objects for the repository to apply through a join.
"""
import json
import math
import operator as op
import uuid
from dataclasses import dataclass
from typing import Any, Callable

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnElement

from resource_query.config.settings import Settings, get_settings
from resource_query.core.backend import DatabaseBackend
from resource_query.core.logging import get_logger
from resource_query.query.search import (
    build_fulltext_condition,
    build_like_condition,
    escape_literal,
    sanitize_search_query,
    text_expression,
)
from resource_query.resources.catalog import ColumnCatalog, ColumnKind, ColumnRef, MatchStrategy
from resource_query.resources.joins import RelationshipGraph
from resource_query.schemas.datetime import parse_datetime
from resource_query.schemas.filtering import FilterOperator, JoinedFilter, split_operator

logger = get_logger(__name__)

SEARCH_KEY = "q"
IDS_KEY = "ids"

_COMPARATORS: dict[FilterOperator, Callable[[Any, Any], Any]] = {
    FilterOperator.EQ: op.eq,
    FilterOperator.NEQ: op.ne,
    FilterOperator.GT: op.gt,
    FilterOperator.GTE: op.ge,
    FilterOperator.LT: op.lt,
    FilterOperator.LTE: op.le,
}

_TRUE_STRINGS = {"true", "1"}
_FALSE_STRINGS = {"false", "0"}


@dataclass(frozen=True)
class ParsedFilters:
    condition: ColumnElement[bool]
    joined_filters: tuple[JoinedFilter, ...] = ()

    @property
    def has_joined_filters(self) -> bool:
        return bool(self.joined_filters)


def parse_filter_json(filter_str: str | None) -> dict[str, Any]:
    if not filter_str:
        return {}
    try:
        parsed = json.loads(filter_str)
    except ValueError as exc:
        logger.warning("filter_json_invalid", error=str(exc))
        return {}
    if not isinstance(parsed, dict):
        logger.warning("filter_json_not_object", received=type(parsed).__name__)
        return {}
    return parsed


def is_valid_field_name(field_name: str, settings: Settings) -> bool:
    return (
        bool(field_name)
        and len(field_name) <= settings.max_field_name_length
        and not field_name.startswith("_")
        and ".." not in field_name
    )


def coerce_bool(value: Any) -> bool | None:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        lowered = value.strip().lower()
        if lowered in _TRUE_STRINGS:
            return True
        if lowered in _FALSE_STRINGS:
            return False
    return None


def coerce_number(value: Any) -> int | float | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value if math.isfinite(value) else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            pass
        try:
            number = float(text)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def coerce_uuid(value: Any) -> uuid.UUID | None:
    if not isinstance(value, str):
        return None
    try:
        return uuid.UUID(value.strip())
    except ValueError:
        return None


class FilterCompiler:
    """Compiles filter objects for one resource and backend.

    Instances hold only immutable inputs and may be shared between requests.
    """

    def __init__(
        self,
        catalog: ColumnCatalog,
        backend: DatabaseBackend,
        *,
        graph: RelationshipGraph | None = None,
        resource: str = "",
        settings: Settings | None = None,
    ):
        self.catalog = catalog
        self.backend = backend
        self.graph = graph or RelationshipGraph()
        self.resource = resource
        self.settings = settings or get_settings()

    def compile(self, filter_str: str | None) -> ParsedFilters:
        clauses: list[ColumnElement[bool]] = []
        joined: list[JoinedFilter] = []

        for key, value in parse_filter_json(filter_str).items():
            if key == SEARCH_KEY:
                clause = self._search(value)
            elif key == IDS_KEY:
                clause = self._ids(value)
            elif not is_valid_field_name(key, self.settings):
                logger.warning("filter_field_rejected", field=key[:100], resource=self.resource)
                continue
            else:
                base, operator, explicit = self._split_key(key)
                if "." in base:
                    joined_filter = self._joined(base, operator, value)
                    if joined_filter is not None:
                        joined.append(joined_filter)
                    continue
                column = self.catalog.filterable_column(base)
                if column is None:
                    logger.debug("filter_field_dropped", field=key, resource=self.resource)
                    continue
                clause = self._leaf(column, operator, explicit, value)

            if clause is not None:
                clauses.append(clause)

        condition = sa.and_(*clauses) if clauses else sa.true()
        return ParsedFilters(condition=condition, joined_filters=tuple(joined))

    def _split_key(self, key: str) -> tuple[str, FilterOperator, bool]:
        # A column literally named like "<x>_lt" matches before suffix parsing.
        if self.catalog.filterable_column(key) is not None:
            return key, FilterOperator.EQ, False
        return split_operator(key)

    def _clean_string(self, value: str) -> str | None:
        if len(value) > self.settings.max_filter_value_length:
            logger.warning("filter_value_too_long", length=len(value), resource=self.resource)
            return None
        return value.strip()

    def _search(self, value: Any) -> ColumnElement[bool] | None:
        if not isinstance(value, str) or not value.strip():
            return None

        fulltext = build_fulltext_condition(
            value,
            self.catalog.fulltext,
            self.backend,
            resource=self.resource,
            settings=self.settings,
        )
        if fulltext is not None:
            return fulltext

        escaped = sanitize_search_query(value, self.settings.max_search_query_length, self.backend)
        likes = [
            build_like_condition(text_expression(column, self.backend), escaped)
            for column in self.catalog.filterable
        ]
        return sa.or_(*likes) if likes else None

    def _ids(self, value: Any) -> ColumnElement[bool]:
        id_column = self.catalog.id
        values = value if isinstance(value, list) else [value]
        coerced = [v for v in (self._coerce_scalar(id_column, item) for item in values) if v is not None]
        return id_column.sql().in_(coerced)

    def _joined(self, path: str, operator: FilterOperator, value: Any) -> JoinedFilter | None:
        join_field, column = path.split(".", 1)
        if self.graph.joined_filterable(join_field, column) is None:
            logger.debug("joined_filter_dropped", path=path, resource=self.resource)
            return None

        if value is None:
            operator = FilterOperator.IS_NULL
        elif isinstance(value, list):
            operator = FilterOperator.IN
        elif isinstance(value, str):
            value = self._clean_string(value)
            if value is None:
                return None
        elif isinstance(value, dict):
            return None
        return JoinedFilter(join_field=join_field, column=column, operator=operator, value=value)

    def _leaf(
        self,
        column: ColumnRef,
        operator: FilterOperator,
        explicit: bool,
        value: Any,
    ) -> ColumnElement[bool] | None:
        col = column.sql()
        if value is None:
            return col.is_not(None) if operator is FilterOperator.NEQ else col.is_(None)
        if isinstance(value, list):
            return self._in(column, value)
        if isinstance(value, dict):
            return None
        if isinstance(value, str):
            value = self._clean_string(value)
            if value is None:
                return None

        if column.match is MatchStrategy.BOOLEAN:
            return self._boolean(col, operator, value)
        if column.match is MatchStrategy.ORDERED:
            return self._ordered(column, operator, value)
        if column.match is MatchStrategy.ENUM:
            return self._enum(column, value)
        if column.match is MatchStrategy.UUID:
            return self._uuid(col, operator, value)
        return self._text(column, operator, explicit, value)

    def _in(self, column: ColumnRef, values: list[Any]) -> ColumnElement[bool] | None:
        coerced = [v for v in (self._coerce_scalar(column, item) for item in values) if v is not None]
        if not coerced:
            return None
        return column.sql().in_(coerced)

    def _coerce_scalar(self, column: ColumnRef, value: Any) -> Any:
        if value is None or isinstance(value, (list, dict)):
            return None
        if isinstance(value, str):
            value = self._clean_string(value)
            if value is None:
                return None

        if column.kind is ColumnKind.UUID:
            return coerce_uuid(value)
        if column.kind is ColumnKind.NUMBER:
            return coerce_number(value)
        if column.kind is ColumnKind.BOOLEAN:
            return coerce_bool(value)
        if column.kind is ColumnKind.TEMPORAL:
            return self._coerce_temporal(value)
        if isinstance(value, bool):
            return None
        value = str(value)
        if column.kind is ColumnKind.ENUM:
            return column.normalize_enum(value) or value
        return value

    @staticmethod
    def _coerce_temporal(value: Any) -> Any:
        if not isinstance(value, str):
            return None
        try:
            return parse_datetime(value)
        except ValueError:
            return None

    @staticmethod
    def _boolean(col: sa.ColumnElement, operator: FilterOperator, value: Any) -> ColumnElement[bool] | None:
        flag = coerce_bool(value)
        if flag is None:
            return None
        if operator is FilterOperator.EQ:
            return col == flag
        if operator is FilterOperator.NEQ:
            return col != flag
        return None

    def _ordered(self, column: ColumnRef, operator: FilterOperator, value: Any) -> ColumnElement[bool] | None:
        comparator = _COMPARATORS.get(operator)
        if comparator is None:
            return None
        if column.kind is ColumnKind.TEMPORAL:
            coerced = self._coerce_temporal(value)
        else:
            coerced = coerce_number(value)
        if coerced is None:
            return None
        return comparator(column.sql(), coerced)

    def _enum(self, column: ColumnRef, value: Any) -> ColumnElement[bool] | None:
        if isinstance(value, bool) or not isinstance(value, (str, int, float)):
            return None
        value = str(value)
        if not value:
            return None

        canonical = column.normalize_enum(value)
        col = column.sql()
        expr = sa.cast(col, sa.Text) if self.backend is DatabaseBackend.POSTGRES else col
        if canonical is not None:
            return expr == canonical
        if self.catalog.enum_case_sensitive:
            return expr == value
        return sa.func.upper(expr) == value.upper()

    @staticmethod
    def _uuid(col: sa.ColumnElement, operator: FilterOperator, value: Any) -> ColumnElement[bool] | None:
        parsed = coerce_uuid(value)
        if parsed is None:
            return None
        if operator is FilterOperator.EQ:
            return col == parsed
        if operator is FilterOperator.NEQ:
            return col != parsed
        return None

    def _text(
        self,
        column: ColumnRef,
        operator: FilterOperator,
        explicit: bool,
        value: Any,
    ) -> ColumnElement[bool] | None:
        if isinstance(value, bool):
            return None
        value = str(value)
        col = column.sql()

        if operator is FilterOperator.LIKE:
            if not value:
                return None
            return build_like_condition(column.quoted_identifier(self.backend), escape_literal(value, self.backend))
        if explicit:
            return _COMPARATORS[operator](col, value)
        if not value:
            return col == ""
        if column.match is MatchStrategy.SUBSTRING:
            return build_like_condition(column.quoted_identifier(self.backend), escape_literal(value, self.backend))
        return sa.func.upper(col) == value.upper()


def compile_filters(
    filter_str: str | None,
    catalog: ColumnCatalog,
    backend: DatabaseBackend,
    *,
    graph: RelationshipGraph | None = None,
    resource: str = "",
    settings: Settings | None = None,
) -> ParsedFilters:
    """Compile a raw ``filter`` parameter into main and joined filters."""
    compiler = FilterCompiler(catalog, backend, graph=graph, resource=resource, settings=settings)
    return compiler.compile(filter_str)


def apply_filters(
    filter_str: str | None,
    catalog: ColumnCatalog,
    backend: DatabaseBackend,
    *,
    settings: Settings | None = None,
) -> ColumnElement[bool]:
    """Compile a raw ``filter`` parameter, keeping only the main condition."""
    return compile_filters(filter_str, catalog, backend, settings=settings).condition
