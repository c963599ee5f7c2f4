"""Request parameter compilers: filters, free-text search and sorting."""
from resource_query.query.filters import FilterCompiler, ParsedFilters, apply_filters, compile_filters
from resource_query.query.search import build_fulltext_condition
from resource_query.query.sort import (
    ColumnSort,
    JoinedSort,
    SortConfig,
    SortDirection,
    parse_direction,
    resolve_sort,
)

__all__ = [
    "ColumnSort",
    "FilterCompiler",
    "JoinedSort",
    "ParsedFilters",
    "SortConfig",
    "SortDirection",
    "apply_filters",
    "build_fulltext_condition",
    "compile_filters",
    "parse_direction",
    "resolve_sort",
]
