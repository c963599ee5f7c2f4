"""Resolve sort parameters.

Two dialects are accepted: ``sortBy=col&order=ASC`` and the combined
``sort=["col", "ASC"]`` (a bare ``sort=col`` is read like ``sortBy``). The
explicit ``sortBy`` form wins when both are present.
"""
import json
from dataclasses import dataclass
from enum import Enum
from typing import Union

from sqlalchemy.sql.elements import UnaryExpression

from resource_query.resources.catalog import ColumnCatalog, ColumnRef
from resource_query.resources.joins import RelationshipGraph
from resource_query.schemas.filtering import FilterOptions

DEFAULT_SORT_ORDER = "ASC"


class SortDirection(str, Enum):
    ASC = "ASC"
    DESC = "DESC"


def parse_direction(order: str | None) -> SortDirection:
    """``ASC`` in any case is ascending; every other value is descending."""
    if order is not None and order.strip().upper() == "ASC":
        return SortDirection.ASC
    return SortDirection.DESC


@dataclass(frozen=True)
class ColumnSort:
    column: ColumnRef
    direction: SortDirection

    is_joined = False

    def order_by(self) -> UnaryExpression:
        col = self.column.sql()
        return col.asc() if self.direction is SortDirection.ASC else col.desc()


@dataclass(frozen=True)
class JoinedSort:
    join_field: str
    column: str
    direction: SortDirection

    is_joined = True

    @property
    def path(self) -> str:
        return f"{self.join_field}.{self.column}"


SortConfig = Union[ColumnSort, JoinedSort]


def _parse_json_sort(sort: str, default_column: str) -> tuple[str, str]:
    defaults = (default_column, DEFAULT_SORT_ORDER)
    try:
        parsed = json.loads(sort)
    except ValueError:
        return defaults
    if not isinstance(parsed, list) or not all(isinstance(item, str) for item in parsed):
        return defaults
    column = parsed[0] if len(parsed) > 0 else default_column
    order = parsed[1] if len(parsed) > 1 else DEFAULT_SORT_ORDER
    return column, order


def _raw_sort(options: FilterOptions, default_column: str) -> tuple[str, str]:
    if options.sort_by:
        return options.sort_by, options.order if options.order is not None else DEFAULT_SORT_ORDER
    if options.sort:
        sort = options.sort.strip()
        if sort.startswith("["):
            return _parse_json_sort(sort, default_column)
        return sort, options.order if options.order is not None else DEFAULT_SORT_ORDER
    return default_column, DEFAULT_SORT_ORDER


def resolve_sort(
    options: FilterOptions,
    catalog: ColumnCatalog,
    default_column: str | None = None,
    graph: RelationshipGraph | None = None,
) -> SortConfig:
    """Resolve the requested ordering against a resource's sortable columns.

    An unknown column falls back to the default column; the requested
    direction is kept either way.
    """
    default = catalog.sortable_column(default_column) if default_column else None
    if default is None:
        default = catalog.id

    column_name, order = _raw_sort(options, default.name)
    direction = parse_direction(order)

    if "." in column_name and graph is not None:
        join_field, joined_column = column_name.split(".", 1)
        if graph.joined_sortable(join_field, joined_column) is not None:
            return JoinedSort(join_field=join_field, column=joined_column, direction=direction)

    column = catalog.sortable_column(column_name) or default
    return ColumnSort(column=column, direction=direction)
