from abc import ABC, abstractmethod
from typing import Any, Generic, Sequence, TypeVar

from sqlalchemy.sql.elements import ColumnElement

from resource_query.core.backend import DatabaseBackend
from resource_query.query.sort import SortConfig
from resource_query.schemas.filtering import JoinedFilter

RowT = TypeVar("RowT")
IdT = TypeVar("IdT")


class ResourceRepository(ABC, Generic[RowT, IdT]):
    """Persistence collaborator consumed by the query engine.

    Joined filters and joined sorts arrive with ``join_field`` already mapped
    to the relationship name the repository understands.
    """

    @property
    @abstractmethod
    def backend(self) -> DatabaseBackend:
        ...

    @abstractmethod
    async def fetch_all(
        self,
        condition: ColumnElement[bool],
        sort: SortConfig,
        offset: int,
        limit: int,
        joined_filters: Sequence[JoinedFilter] = (),
    ) -> list[RowT]:
        ...

    @abstractmethod
    async def fetch_one(self, id: IdT) -> RowT | None:
        ...

    @abstractmethod
    async def count(
        self,
        condition: ColumnElement[bool],
        joined_filters: Sequence[JoinedFilter] = (),
    ) -> int:
        ...

    @abstractmethod
    async def fetch_related(self, row: RowT, relation: str) -> Sequence[Any] | Any | None:
        """Rows related to ``row`` through ``relation``: a sequence or a single row/None."""
        ...
