"""Relationship declarations.

Each :class:`JoinSpec` is the inclusion and recursion policy for one
relationship field. A :class:`RelationshipGraph` holds the specs of one
resource. Graphs may reference each other in cycles; the per-field depth is
the only thing that bounds loading.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import TYPE_CHECKING, Callable, Iterable, Iterator, Union

from resource_query.config.settings import Settings
from resource_query.core.exceptions import ResourceDefinitionError

if TYPE_CHECKING:
    from resource_query.resources.definition import Resource

ResourceRef = Union["Resource", Callable[[], "Resource"]]


class Cardinality(str, Enum):
    ONE = "one"
    MANY = "many"


@dataclass(frozen=True)
class JoinSpec:
    name: str
    target: ResourceRef
    cardinality: Cardinality = Cardinality.MANY
    on_one: bool = True
    on_all: bool = False
    depth: int | None = None
    relation: str = ""
    filterable_columns: tuple[str, ...] = ()
    sortable_columns: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not (self.on_one or self.on_all):
            raise ResourceDefinitionError(f"Join {self.name!r} applies to neither single nor list fetches")
        if self.depth is not None and self.depth < 0:
            raise ResourceDefinitionError(f"Join {self.name!r} has negative depth {self.depth}")
        if not self.relation:
            object.__setattr__(self, "relation", self.name)
        object.__setattr__(self, "filterable_columns", tuple(self.filterable_columns))
        object.__setattr__(self, "sortable_columns", tuple(self.sortable_columns))

    @cached_property
    def resource(self) -> Resource:
        """The target resource, resolved on first access and cached."""
        from resource_query.resources.definition import Resource

        target = self.target
        if not isinstance(target, Resource):
            target = target()
        if not isinstance(target, Resource):
            raise ResourceDefinitionError(f"Join {self.name!r} does not resolve to a Resource")
        return target

    @property
    def is_many(self) -> bool:
        return self.cardinality is Cardinality.MANY

    def effective_depth(self, settings: Settings) -> int:
        depth = settings.default_join_depth if self.depth is None else self.depth
        return min(depth, settings.max_join_depth)

    def is_filterable(self, column: str) -> bool:
        return column in self.filterable_columns

    def is_sortable(self, column: str) -> bool:
        return column in self.sortable_columns


class RelationshipGraph:
    """Immutable set of join specs for one resource, keyed by field name."""

    __slots__ = ("_joins",)

    def __init__(self, joins: Iterable[JoinSpec] = ()):
        by_name: dict[str, JoinSpec] = {}
        for join in joins:
            if join.name in by_name:
                raise ResourceDefinitionError(f"Duplicate join field {join.name!r}")
            by_name[join.name] = join
        self._joins = tuple(by_name.values())

    def __iter__(self) -> Iterator[JoinSpec]:
        return iter(self._joins)

    def __len__(self) -> int:
        return len(self._joins)

    def __bool__(self) -> bool:
        return bool(self._joins)

    def get(self, name: str) -> JoinSpec | None:
        for join in self._joins:
            if join.name == name:
                return join
        return None

    @property
    def field_names(self) -> frozenset[str]:
        return frozenset(join.name for join in self._joins)

    def for_single(self) -> tuple[JoinSpec, ...]:
        return tuple(j for j in self._joins if j.on_one or j.on_all)

    def for_list(self) -> tuple[JoinSpec, ...]:
        return tuple(j for j in self._joins if j.on_all)

    def joined_filterable(self, join_field: str, column: str) -> JoinSpec | None:
        join = self.get(join_field)
        return join if join is not None and join.is_filterable(column) else None

    def joined_sortable(self, join_field: str, column: str) -> JoinSpec | None:
        join = self.get(join_field)
        return join if join is not None and join.is_sortable(column) else None
