from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from resource_query.config.settings import Settings, get_settings
from resource_query.core.exceptions import NotFoundError


class BaseService:
    def __init__(self, session: AsyncSession, settings: Settings | None = None):
        self._session = session
        self._settings = settings or get_settings()

    @staticmethod
    def _ensure_found[T](row: T | None, entity: str, id: Any, error_msg: str | None = None) -> T:
        if row is None:
            raise NotFoundError(
                entity,
                error_msg or f"{entity} {id} not found",
                {"id": str(id)}
            )
        return row
