"""Per-resource column metadata.

A :class:`ColumnCatalog` is built once when a resource is defined and is
read-only afterwards. Each :class:`ColumnRef` resolves its filter strategy at
construction so request handling never re-derives it from the column kind.
"""
import re
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType
from typing import Iterable, Iterator, Mapping

import sqlalchemy as sa
from sqlalchemy.sql.elements import ColumnClause

from resource_query.core.backend import DatabaseBackend
from resource_query.core.exceptions import ResourceDefinitionError

_IDENTIFIER_RE = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")


class ColumnKind(str, Enum):
    TEXT = "text"
    NUMBER = "number"
    BOOLEAN = "boolean"
    ENUM = "enum"
    TEMPORAL = "temporal"
    UUID = "uuid"


class MatchStrategy(str, Enum):
    """How an un-suffixed filter value is compared against a column."""
    SUBSTRING = "substring"
    EXACT_TEXT = "exact_text"
    ENUM = "enum"
    BOOLEAN = "boolean"
    ORDERED = "ordered"
    UUID = "uuid"


_SQL_TYPES: dict[ColumnKind, type[sa.types.TypeEngine]] = {
    ColumnKind.TEXT: sa.String,
    ColumnKind.NUMBER: sa.types.NullType,
    ColumnKind.BOOLEAN: sa.Boolean,
    ColumnKind.ENUM: sa.String,
    ColumnKind.TEMPORAL: sa.DateTime,
    ColumnKind.UUID: sa.Uuid,
}


def _resolve_match(kind: ColumnKind, like_by_default: bool) -> MatchStrategy:
    if kind is ColumnKind.TEXT:
        return MatchStrategy.SUBSTRING if like_by_default else MatchStrategy.EXACT_TEXT
    if kind is ColumnKind.ENUM:
        return MatchStrategy.ENUM
    if kind is ColumnKind.BOOLEAN:
        return MatchStrategy.BOOLEAN
    if kind is ColumnKind.UUID:
        return MatchStrategy.UUID
    return MatchStrategy.ORDERED


@dataclass(frozen=True)
class ColumnRef:
    name: str
    kind: ColumnKind = ColumnKind.TEXT
    identifier: str = ""
    sortable: bool = True
    filterable: bool = True
    fulltext: bool = False
    like_by_default: bool | None = None
    enum_values: tuple[str, ...] = ()
    table: str | None = None
    match: MatchStrategy = field(init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.identifier:
            object.__setattr__(self, "identifier", self.name)
        for part in filter(None, (self.identifier, self.table)):
            if not _IDENTIFIER_RE.match(part):
                raise ResourceDefinitionError(f"Invalid SQL identifier for column {self.name!r}: {part!r}")
        if self.like_by_default is None:
            object.__setattr__(self, "like_by_default", self.kind is ColumnKind.TEXT)
        object.__setattr__(self, "enum_values", tuple(self.enum_values))
        object.__setattr__(self, "match", _resolve_match(self.kind, bool(self.like_by_default)))

    @property
    def qualified_identifier(self) -> str:
        """Dotted identifier as declared, unquoted."""
        return f"{self.table}.{self.identifier}" if self.table else self.identifier

    def quoted_identifier(self, backend: DatabaseBackend) -> str:
        """Qualified identifier quoted for the backend, safe to inline into SQL text."""
        parts = [self.table, self.identifier] if self.table else [self.identifier]
        return ".".join(backend.quote_identifier(part) for part in parts)

    @property
    def sql_type(self) -> sa.types.TypeEngine:
        return _SQL_TYPES[self.kind]()

    def sql(self) -> ColumnClause:
        column = sa.column(self.identifier, self.sql_type)
        if self.table:
            return sa.table(self.table, column).c[self.identifier]
        return column

    def normalize_enum(self, value: str) -> str | None:
        """Map a display value onto the canonical enum member, ignoring case."""
        wanted = value.casefold()
        for member in self.enum_values:
            if member.casefold() == wanted:
                return member
        return None


class ColumnCatalog:
    """Immutable name -> :class:`ColumnRef` mapping for one resource."""

    __slots__ = ("_columns", "_id_column", "_fulltext_language", "_enum_case_sensitive")

    def __init__(
        self,
        columns: Iterable[ColumnRef],
        *,
        id_column: str = "id",
        table: str | None = None,
        fulltext_language: str = "english",
        enum_case_sensitive: bool = False,
    ):
        by_name: dict[str, ColumnRef] = {}
        for column in columns:
            if column.name in by_name:
                raise ResourceDefinitionError(f"Duplicate column {column.name!r}")
            if table and column.table is None:
                column = replace(column, table=table)
            by_name[column.name] = column

        if id_column not in by_name:
            raise ResourceDefinitionError(f"Id column {id_column!r} is not declared")

        self._columns: Mapping[str, ColumnRef] = MappingProxyType(by_name)
        self._id_column = id_column
        self._fulltext_language = fulltext_language
        self._enum_case_sensitive = enum_case_sensitive

    def __contains__(self, name: object) -> bool:
        return name in self._columns

    def __iter__(self) -> Iterator[ColumnRef]:
        return iter(self._columns.values())

    def __len__(self) -> int:
        return len(self._columns)

    def get(self, name: str) -> ColumnRef | None:
        return self._columns.get(name)

    @property
    def columns(self) -> Mapping[str, ColumnRef]:
        return self._columns

    @property
    def id(self) -> ColumnRef:
        return self._columns[self._id_column]

    @property
    def fulltext_language(self) -> str:
        return self._fulltext_language

    @property
    def enum_case_sensitive(self) -> bool:
        return self._enum_case_sensitive

    @property
    def filterable(self) -> tuple[ColumnRef, ...]:
        return tuple(c for c in self._columns.values() if c.filterable)

    @property
    def sortable(self) -> tuple[ColumnRef, ...]:
        return tuple(c for c in self._columns.values() if c.sortable)

    @property
    def fulltext(self) -> tuple[ColumnRef, ...]:
        return tuple(c for c in self._columns.values() if c.fulltext)

    def filterable_column(self, name: str) -> ColumnRef | None:
        column = self._columns.get(name)
        return column if column is not None and column.filterable else None

    def sortable_column(self, name: str) -> ColumnRef | None:
        column = self._columns.get(name)
        return column if column is not None and column.sortable else None
