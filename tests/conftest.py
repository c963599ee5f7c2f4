"""
Shared fixtures for the query engine tests.

Provides:
- Engine settings with test-friendly limits
- A product column catalog covering every column kind
- SQL rendering helper for compiled predicates
"""
import pytest
from sqlalchemy.dialects import mysql, postgresql, sqlite

from resource_query.config.settings import Settings
from resource_query.core.backend import DatabaseBackend
from resource_query.resources.catalog import ColumnCatalog, ColumnKind, ColumnRef

DIALECTS = {
    DatabaseBackend.POSTGRES: postgresql.dialect(),
    DatabaseBackend.MYSQL: mysql.dialect(),
    DatabaseBackend.SQLITE: sqlite.dialect(),
}


@pytest.fixture
def settings() -> Settings:
    """Settings independent of the environment."""
    return Settings(
        database_backend="sqlite",
        default_join_depth=1,
        max_join_depth=5,
        max_field_name_length=100,
        max_filter_value_length=10_000,
        max_search_query_length=10_000,
        default_page_size=10,
        max_page_size=1_000,
    )


@pytest.fixture
def product_catalog() -> ColumnCatalog:
    return ColumnCatalog([
        ColumnRef("id", ColumnKind.NUMBER),
        ColumnRef("name", ColumnKind.TEXT, fulltext=True),
        ColumnRef("description", ColumnKind.TEXT, fulltext=True, sortable=False),
        ColumnRef("sku", ColumnKind.TEXT, like_by_default=False),
        ColumnRef("status", ColumnKind.ENUM, enum_values=("Active", "Discontinued")),
        ColumnRef("price", ColumnKind.NUMBER),
        ColumnRef("in_stock", ColumnKind.BOOLEAN),
        ColumnRef("created_at", ColumnKind.TEMPORAL),
        ColumnRef("external_id", ColumnKind.UUID),
        ColumnRef("internal_note", ColumnKind.TEXT, filterable=False, sortable=False),
    ])


@pytest.fixture
def render():
    """Render a SQLAlchemy clause as SQL text with values inlined."""

    def _render(clause, backend: DatabaseBackend = DatabaseBackend.SQLITE) -> str:
        compiled = clause.compile(dialect=DIALECTS[backend], compile_kwargs={"literal_binds": True})
        return str(compiled)

    return _render


@pytest.fixture
def bound_params():
    """Bound parameter values of a compiled clause."""

    def _params(clause, backend: DatabaseBackend = DatabaseBackend.SQLITE) -> list:
        return list(clause.compile(dialect=DIALECTS[backend]).params.values())

    return _params
