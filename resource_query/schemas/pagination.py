from typing import Generic, TypeVar
from pydantic import BaseModel, Field, ConfigDict

T = TypeVar('T')

class PageRequest(BaseModel):
    model_config = ConfigDict(frozen=True)
    offset: int = Field(default=0, ge=0)
    limit: int = Field(default=10, ge=1)

class PageResult(BaseModel):
    """Pagination window of one listing, rendered as a Content-Range value."""
    model_config = ConfigDict(frozen=True)
    offset: int
    limit: int
    total: int
    resource: str

    @property
    def content_range(self) -> str:
        from resource_query.core.pagination import calculate_content_range
        return calculate_content_range(self.offset, self.limit, self.total, self.resource)

    @property
    def headers(self) -> dict[str, str]:
        return {"Content-Range": self.content_range}

class ResourcePage(BaseModel, Generic[T]):
    model_config = ConfigDict(arbitrary_types_allowed=True)
    items: list[T]
    page: PageResult

    @property
    def content_range(self) -> str:
        return self.page.content_range

    @property
    def headers(self) -> dict[str, str]:
        return self.page.headers
