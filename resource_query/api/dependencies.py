"""Shared dependencies for listing routes."""
from fastapi import Query, Response

from resource_query.schemas.filtering import FilterOptions
from resource_query.schemas.pagination import ResourcePage


async def get_filter_options(
    filter: str | None = Query(default=None, description='JSON object, e.g. {"q": "term", "price_gte": 10}'),
    sort: str | None = Query(default=None, description='["column", "ASC"] or a bare column name'),
    sort_by: str | None = Query(default=None, alias="sortBy"),
    order: str | None = Query(default=None),
    range: str | None = Query(default=None, description="Inclusive [start, end] window"),
    page: int | None = Query(default=None),
    per_page: int | None = Query(default=None, alias="perPage"),
) -> FilterOptions:
    """Collect listing query parameters.

    Values are passed through untouched; parsing and clamping happen in the
    query compilers so malformed input degrades instead of failing the request.

    Example:
        ```python
        @router.get("/products")
        async def list_products(
            options: FilterOptions = Depends(get_filter_options),
            db: AsyncSession = Depends(get_db),
        ):
            ...
        ```
    """
    return FilterOptions(
        filter=filter,
        sort=sort,
        sort_by=sort_by,
        order=order,
        range=range,
        page=page,
        per_page=per_page,
    )


def set_content_range(response: Response, page: ResourcePage) -> None:
    """Copy the Content-Range header of a listing onto the outgoing response."""
    response.headers.update(page.headers)
