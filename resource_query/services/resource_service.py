"""Query facade for one resource.

Compiles request parameters, fetches the page and its total, then loads the
relationship fields of the returned entities.
"""
from dataclasses import replace
from typing import Any, Sequence

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.sql.elements import ColumnElement

from resource_query.config.settings import Settings
from resource_query.core.backend import DatabaseBackend
from resource_query.core.exceptions import QueryExecutionError
from resource_query.core.logging import get_logger
from resource_query.core.pagination import parse_pagination
from resource_query.query.filters import compile_filters
from resource_query.query.sort import JoinedSort, SortConfig, resolve_sort
from resource_query.resources.definition import Resource
from resource_query.schemas.filtering import FilterOptions, JoinedFilter
from resource_query.schemas.pagination import PageResult, ResourcePage
from resource_query.services.base import BaseService
from resource_query.services.relationship_loader import RelationshipLoader

logger = get_logger(__name__)


class ResourceQueryService(BaseService):
    def __init__(self, resource: Resource, session: AsyncSession, settings: Settings | None = None):
        super().__init__(session, settings)
        self.resource = resource
        self._repository = resource.repository(session)
        self._loader = RelationshipLoader(session, self._settings)

    @property
    def backend(self) -> DatabaseBackend:
        backend = getattr(self._repository, "backend", None)
        if backend is None:
            return DatabaseBackend(self._settings.database_backend)
        return DatabaseBackend(backend)

    def _relation_filters(self, joined_filters: Sequence[JoinedFilter]) -> list[JoinedFilter]:
        """Map join field names onto the relationship names the repository knows."""
        mapped = []
        for joined_filter in joined_filters:
            join = self.resource.joins.get(joined_filter.join_field)
            if join is None:
                continue
            mapped.append(joined_filter.model_copy(update={"join_field": join.relation}))
        return mapped

    def _relation_sort(self, sort: SortConfig) -> SortConfig:
        if isinstance(sort, JoinedSort):
            join = self.resource.joins.get(sort.join_field)
            if join is not None:
                return replace(sort, join_field=join.relation)
        return sort

    def _query_failed(self, operation: str, exc: Exception) -> QueryExecutionError:
        logger.error(
            "resource_query_failed",
            resource=self.resource.name,
            operation=operation,
            error=str(exc),
            error_type=type(exc).__name__,
        )
        return QueryExecutionError(self.resource.name)

    async def get_all(
        self,
        condition: ColumnElement[bool],
        sort: SortConfig,
        offset: int,
        limit: int,
        joined_filters: Sequence[JoinedFilter] = (),
    ) -> list[BaseModel]:
        """Fetch one page of list representations with list-mode relationships loaded."""
        try:
            rows = await self._repository.fetch_all(
                condition,
                self._relation_sort(sort),
                offset,
                limit,
                self._relation_filters(joined_filters),
            )
        except SQLAlchemyError as exc:
            raise self._query_failed("get_all", exc) from exc

        pairs = [(self.resource.build_list_entity(row), row) for row in rows]
        return await self._loader.load_many(self.resource, pairs)

    async def get_one(self, id: Any) -> BaseModel:
        """Fetch the full representation of one entity.

        Raises:
            NotFoundError: If no row has the given id
            QueryExecutionError: If the persistence layer fails
        """
        try:
            row = await self._repository.fetch_one(id)
        except SQLAlchemyError as exc:
            raise self._query_failed("get_one", exc) from exc

        row = self._ensure_found(row, self.resource.singular_name, id)
        entity = self.resource.build_entity(row)
        return await self._loader.load_one(self.resource, entity, row)

    async def total_count(
        self,
        condition: ColumnElement[bool],
        joined_filters: Sequence[JoinedFilter] = (),
    ) -> int:
        """Count matching rows; a failing count is logged and reported as 0."""
        try:
            return await self._repository.count(condition, self._relation_filters(joined_filters))
        except Exception as exc:
            logger.error(
                "resource_count_failed",
                resource=self.resource.name,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return 0

    async def list(self, options: FilterOptions) -> ResourcePage[BaseModel]:
        parsed = compile_filters(
            options.filter,
            self.resource.catalog,
            self.backend,
            graph=self.resource.joins,
            resource=self.resource.name,
            settings=self._settings,
        )
        sort = resolve_sort(options, self.resource.catalog, self.resource.default_sort, self.resource.joins)
        page = parse_pagination(options, self._settings)

        items = await self.get_all(parsed.condition, sort, page.offset, page.limit, parsed.joined_filters)
        total = await self.total_count(parsed.condition, parsed.joined_filters)

        return ResourcePage(
            items=items,
            page=PageResult(offset=page.offset, limit=page.limit, total=total, resource=self.resource.name),
        )
