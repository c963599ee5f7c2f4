"""Backend-specific free-text search predicates.

Search and LIKE predicates are rendered as SQL text with the (trimmed,
length-capped, quote-escaped) search term inlined next to column identifiers
quoted for the target backend.
"""
from functools import lru_cache
from typing import Sequence

import sqlalchemy as sa
from sqlalchemy.sql.elements import TextClause

from resource_query.config.settings import Settings, get_settings
from resource_query.core.backend import DatabaseBackend
from resource_query.core.logging import get_logger
from resource_query.resources.catalog import ColumnKind, ColumnRef

logger = get_logger(__name__)


def escape_literal(value: str, backend: DatabaseBackend) -> str:
    """Escape a value for inlining inside a single-quoted SQL text literal.

    Colons are escaped for ``sqlalchemy.text`` so they are never read as
    bind parameters; MySQL also treats backslash as an escape character.
    """
    if backend is DatabaseBackend.MYSQL:
        value = value.replace("\\", "\\\\")
    return value.replace("'", "''").replace(":", "\\:")


def sanitize_search_query(query: str, max_length: int, backend: DatabaseBackend) -> str:
    """Cap, trim and escape a term destined for a SQL string literal."""
    return escape_literal(query[:max_length].strip(), backend)


def text_expression(column: ColumnRef, backend: DatabaseBackend) -> str:
    """SQL text for a column as a string, casting non-text kinds."""
    if column.kind is ColumnKind.TEXT:
        return column.quoted_identifier(backend)
    return f"CAST({column.quoted_identifier(backend)} AS {backend.text_cast_type})"


def build_like_condition(expression: str, escaped_value: str) -> TextClause:
    """Case-insensitive substring match of an already escaped value."""
    return sa.text(f"UPPER({expression}) LIKE UPPER('%{escaped_value}%')")


@lru_cache(maxsize=None)
def _warn_slow_fallback(resource: str, backend: str, column_count: int) -> None:
    logger.warning(
        "fulltext_fallback_in_use",
        resource=resource,
        backend=backend,
        column_count=column_count,
        hint="PostgreSQL with pg_trgm performs fulltext search far better",
    )


def _postgres_condition(query: str, columns: Sequence[ColumnRef], settings: Settings) -> TextClause:
    concat_sql = " || ' ' || ".join(
        f"COALESCE({c.quoted_identifier(DatabaseBackend.POSTGRES)}::text, '')" for c in columns
    )
    return sa.text(
        f"(UPPER({concat_sql}) LIKE UPPER('%{query}%') "
        f"OR SIMILARITY({concat_sql}, '{query}') > {settings.similarity_threshold})"
    )


def _fallback_condition(query: str, columns: Sequence[ColumnRef], backend: DatabaseBackend) -> TextClause:
    parts = [f"CAST({c.quoted_identifier(backend)} AS {backend.text_cast_type})" for c in columns]
    if backend is DatabaseBackend.MYSQL:
        # MySQL reads || as logical OR unless PIPES_AS_CONCAT is set
        concat_sql = f"CONCAT_WS(' ', {', '.join(parts)})"
    else:
        concat_sql = " || ' ' || ".join(parts)
    return build_like_condition(concat_sql, query)


def build_fulltext_condition(
    query: str,
    columns: Sequence[ColumnRef],
    backend: DatabaseBackend,
    *,
    resource: str = "",
    settings: Settings | None = None,
) -> TextClause | None:
    """Build one search predicate over the fulltext columns of a resource.

    Returns ``None`` when there is nothing to search, letting the caller fall
    back to per-column matching.
    """
    settings = settings or get_settings()
    if not columns or not isinstance(query, str):
        return None

    escaped = sanitize_search_query(query, settings.max_search_query_length, backend)
    if not escaped:
        return None

    if backend is DatabaseBackend.POSTGRES:
        return _postgres_condition(escaped, columns, settings)

    if len(columns) > settings.fulltext_fallback_warning_columns:
        _warn_slow_fallback(resource, backend.value, len(columns))
    return _fallback_condition(escaped, columns, backend)
