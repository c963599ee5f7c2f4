"""Populate relationship fields of built entities.

Loading is a walk over the join graph carrying a remaining depth budget. A
root field starts with its declared depth (or the default), capped by
``max_join_depth``; each hop passes ``budget - 1`` on to the related
entities, whose own list-applicable joins can only lower it further. Cycles
between resources are therefore safe without a visited set.

Loading is best effort: a relation that cannot be fetched leaves its field at
the zero value, and a related row that does not validate is skipped.
"""
from typing import Any, Iterable

from pydantic import BaseModel, ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from resource_query.config.settings import Settings, get_settings
from resource_query.core.logging import get_logger
from resource_query.repositories.base import ResourceRepository
from resource_query.resources.definition import Resource
from resource_query.resources.joins import JoinSpec

logger = get_logger(__name__)


def _as_rows(related: Any) -> list[Any]:
    if related is None:
        return []
    if isinstance(related, (list, tuple)):
        return list(related)
    return [related]


class RelationshipLoader:
    """Loads join fields for one request; hops run sequentially on one session."""

    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self._session = session
        self._settings = settings or get_settings()
        self._repositories: dict[int, ResourceRepository] = {}

    def _repository(self, resource: Resource) -> ResourceRepository:
        key = id(resource)
        if key not in self._repositories:
            self._repositories[key] = resource.repository(self._session)
        return self._repositories[key]

    def root_budget(self, resource: Resource, join: JoinSpec) -> int:
        requested = self._settings.default_join_depth if join.depth is None else join.depth
        if requested > self._settings.max_join_depth:
            logger.warning(
                "join_depth_capped",
                resource=resource.name,
                field=join.name,
                requested=requested,
                max_depth=self._settings.max_join_depth,
            )
        return join.effective_depth(self._settings)

    async def load_one(self, resource: Resource, entity: BaseModel, row: Any) -> BaseModel:
        """Single-entity mode: every join declared for single or list fetches."""
        for join in resource.joins.for_single():
            await self._load_field(resource, entity, row, join, self.root_budget(resource, join))
        return entity

    async def load_many(
        self,
        resource: Resource,
        pairs: Iterable[tuple[BaseModel, Any]],
    ) -> list[BaseModel]:
        """List mode: only joins declared for list fetches; the rest stay empty."""
        budgets = [(join, self.root_budget(resource, join)) for join in resource.joins.for_list()]
        entities = []
        for entity, row in pairs:
            for join, budget in budgets:
                await self._load_field(resource, entity, row, join, budget)
            entities.append(entity)
        return entities

    async def _load_field(
        self,
        resource: Resource,
        entity: BaseModel,
        row: Any,
        join: JoinSpec,
        budget: int,
    ) -> None:
        try:
            related = _as_rows(await self._repository(resource).fetch_related(row, join.relation))
        except Exception as exc:
            # Field keeps its zero value; the parent is still returned
            logger.warning(
                "relationship_load_fallback",
                resource=resource.name,
                field=join.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        target = join.resource
        children = []
        for related_row in related:
            child = await self._build_related(target, related_row, budget - 1)
            if child is not None:
                children.append(child)

        if join.is_many:
            setattr(entity, join.name, children)
        else:
            setattr(entity, join.name, children[0] if children else None)

    async def _build_related(self, target: Resource, row: Any, remaining: int) -> BaseModel | None:
        try:
            entity = target.build_entity(row)
        except ValidationError as exc:
            logger.warning(
                "related_entity_skipped",
                resource=target.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return None
        if remaining > 0:
            await self._load_nested(target, entity, row, remaining)
        return entity

    async def _load_nested(self, target: Resource, entity: BaseModel, row: Any, budget: int) -> None:
        for join in target.joins.for_list():
            nested_budget = budget if join.depth is None else min(budget, join.depth)
            await self._load_field(target, entity, row, join, nested_budget)
