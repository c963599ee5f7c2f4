from __future__ import annotations

import operator as op
from collections import defaultdict
from typing import Any, Sequence

import sqlalchemy as sa
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import RelationshipProperty, with_parent
from sqlalchemy.orm.attributes import InstrumentedAttribute
from sqlalchemy.sql.elements import ColumnElement

from resource_query.core.backend import DatabaseBackend
from resource_query.query.sort import ColumnSort, SortConfig, SortDirection
from resource_query.repositories.base import ResourceRepository
from resource_query.schemas.filtering import FilterOperator, JoinedFilter

_COMPARATORS = {
    FilterOperator.EQ: op.eq,
    FilterOperator.NEQ: op.ne,
    FilterOperator.GT: op.gt,
    FilterOperator.GTE: op.ge,
    FilterOperator.LT: op.lt,
    FilterOperator.LTE: op.le,
}


def joined_predicate(column: Any, joined_filter: JoinedFilter) -> ColumnElement[bool] | None:
    value = joined_filter.value
    operator = joined_filter.operator
    if operator is FilterOperator.IS_NULL:
        return column.is_(None)
    if operator is FilterOperator.IN:
        values = [v for v in value if v is not None and not isinstance(v, (list, dict))]
        return column.in_(values) if values else None
    if operator is FilterOperator.LIKE:
        return func.upper(column).like(f"%{str(value).upper()}%")
    return _COMPARATORS[operator](column, value)


class SQLAlchemyResourceRepository(ResourceRepository[Any, Any]):
    """Async SQLAlchemy implementation over one mapped model class."""

    def __init__(self, session: AsyncSession, model: type):
        self._session = session
        self._model = model

    @property
    def backend(self) -> DatabaseBackend:
        return DatabaseBackend.from_dialect(self._session.get_bind().dialect.name)

    def _relationship(self, relation: str) -> InstrumentedAttribute:
        attr = getattr(self._model, relation, None)
        if not isinstance(getattr(attr, "property", None), RelationshipProperty):
            raise ValueError(f"{self._model.__name__} has no relationship {relation!r}")
        return attr

    def _apply_joined_filters(self, stmt: sa.Select, joined_filters: Sequence[JoinedFilter]) -> sa.Select:
        by_relation: dict[str, list[JoinedFilter]] = defaultdict(list)
        for joined_filter in joined_filters:
            by_relation[joined_filter.join_field].append(joined_filter)

        for relation, filters in by_relation.items():
            attr = self._relationship(relation)
            target = attr.property.mapper.class_
            predicates = [
                predicate
                for predicate in (joined_predicate(getattr(target, f.column), f) for f in filters)
                if predicate is not None
            ]
            if not predicates:
                continue
            # EXISTS keeps one row per parent even for collections
            if attr.property.uselist:
                stmt = stmt.where(attr.any(sa.and_(*predicates)))
            else:
                stmt = stmt.where(attr.has(sa.and_(*predicates)))
        return stmt

    def _order_by(self, sort: SortConfig) -> list[Any]:
        if isinstance(sort, ColumnSort):
            clauses = [sort.order_by()]
        else:
            prop = self._relationship(sort.join_field).property
            target_column = getattr(prop.mapper.class_, sort.column)
            aggregate = func.min if sort.direction is SortDirection.ASC else func.max
            subquery = select(aggregate(target_column)).where(prop.primaryjoin)
            if prop.secondary is not None:
                subquery = subquery.where(prop.secondaryjoin)
            value = subquery.correlate(self._model).scalar_subquery()
            clauses = [value.asc() if sort.direction is SortDirection.ASC else value.desc()]

        # Primary key as tie-breaker keeps offset pagination stable
        clauses.extend(sa.inspect(self._model).primary_key)
        return clauses

    async def fetch_all(
        self,
        condition: ColumnElement[bool],
        sort: SortConfig,
        offset: int,
        limit: int,
        joined_filters: Sequence[JoinedFilter] = (),
    ) -> list[Any]:
        stmt = self._apply_joined_filters(select(self._model).where(condition), joined_filters)
        stmt = stmt.order_by(*self._order_by(sort)).offset(offset).limit(limit)
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def fetch_one(self, id: Any) -> Any | None:
        return await self._session.get(self._model, id)

    async def count(
        self,
        condition: ColumnElement[bool],
        joined_filters: Sequence[JoinedFilter] = (),
    ) -> int:
        stmt = self._apply_joined_filters(
            select(func.count()).select_from(self._model).where(condition),
            joined_filters,
        )
        result = await self._session.execute(stmt)
        return int(result.scalar_one())

    async def fetch_related(self, row: Any, relation: str) -> Sequence[Any] | Any | None:
        attr = self._relationship(relation)
        target = attr.property.mapper.class_
        stmt = select(target).where(with_parent(row, attr)).order_by(*sa.inspect(target).primary_key)
        if self.backend is DatabaseBackend.POSTGRES:
            # A failed statement aborts the whole transaction on PostgreSQL
            async with self._session.begin_nested():
                result = await self._session.execute(stmt)
        else:
            result = await self._session.execute(stmt)
        rows = list(result.scalars().all())
        if attr.property.uselist:
            return rows
        return rows[0] if rows else None
