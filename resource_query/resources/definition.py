from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable

import sqlalchemy as sa
from pydantic import BaseModel

from resource_query.core.exceptions import ResourceDefinitionError
from resource_query.resources.catalog import ColumnCatalog
from resource_query.resources.joins import RelationshipGraph

if TYPE_CHECKING:
    from resource_query.repositories.base import ResourceRepository


def row_to_mapping(row: Any) -> dict[str, Any]:
    """Read the already-loaded column values of a fetched row.

    Works for plain mappings, SQLAlchemy ``Row`` objects, mapped ORM instances
    and simple attribute objects. ORM relationship attributes are never
    touched, so no lazy load is triggered.
    """
    if isinstance(row, Mapping):
        return dict(row)
    if hasattr(row, "_mapping"):
        return dict(row._mapping)

    state = sa.inspect(row, raiseerr=False)
    if state is not None and hasattr(state, "mapper"):
        return {
            attr.key: state.dict[attr.key]
            for attr in state.mapper.column_attrs
            if attr.key in state.dict
        }

    return {k: v for k, v in vars(row).items() if not k.startswith("_")}


@dataclass(frozen=True, eq=False)
class Resource:
    """Runtime definition of one exposed resource.

    Built once at startup; the catalog and join graph are shared read-only by
    every request.
    """
    name: str
    catalog: ColumnCatalog
    response_model: type[BaseModel]
    repository_factory: Callable[[Any], "ResourceRepository"]
    joins: RelationshipGraph = field(default_factory=RelationshipGraph)
    list_model: type[BaseModel] | None = None
    singular_name: str = ""
    default_sort: str | None = None

    def __post_init__(self) -> None:
        if not self.singular_name:
            object.__setattr__(self, "singular_name", self.name)
        if self.default_sort is None:
            object.__setattr__(self, "default_sort", self.catalog.id.name)
        if self.catalog.sortable_column(self.default_sort) is None:
            raise ResourceDefinitionError(
                f"Default sort column {self.default_sort!r} of {self.name!r} is not sortable"
            )
        clashing = self.joins.field_names & set(self.catalog.columns)
        if clashing:
            raise ResourceDefinitionError(
                f"Join fields of {self.name!r} shadow columns: {', '.join(sorted(clashing))}"
            )
        self._check_join_fields(self.response_model, self.joins.field_names)
        if self.list_model is not None:
            self._check_join_fields(self.list_model, {join.name for join in self.joins.for_list()})

    def _check_join_fields(self, model: type[BaseModel], names: set[str] | frozenset[str]) -> None:
        missing = set(names) - set(model.model_fields)
        if missing:
            raise ResourceDefinitionError(
                f"{model.__name__} of {self.name!r} has no field for joins: {', '.join(sorted(missing))}"
            )

    def repository(self, session: Any) -> "ResourceRepository":
        return self.repository_factory(session)

    def _values(self, row: Any) -> dict[str, Any]:
        values = row_to_mapping(row)
        for join_field in self.joins.field_names:
            values.pop(join_field, None)
        return values

    def build_entity(self, row: Any) -> BaseModel:
        """Full representation of a row, with every join field at its zero value."""
        return self.response_model.model_validate(self._values(row))

    def build_list_entity(self, row: Any) -> BaseModel:
        model = self.list_model or self.response_model
        return model.model_validate(self._values(row))
