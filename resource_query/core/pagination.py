import json
from typing import Any

from resource_query.config.settings import Settings, get_settings
from resource_query.schemas.filtering import FilterOptions
from resource_query.schemas.pagination import PageRequest


def _clamp_limit(limit: int, settings: Settings) -> int:
    return max(1, min(limit, settings.max_page_size))


def parse_range(range_str: str | None, settings: Settings | None = None) -> tuple[int, int]:
    """Parse an inclusive ``[start, end]`` range into (offset, limit).

    Missing or malformed ranges fall back to the first default-sized page.
    """
    settings = settings or get_settings()
    default = (0, settings.default_page_size)
    if not range_str:
        return default
    try:
        bounds: Any = json.loads(range_str)
    except ValueError:
        return default
    if (
        not isinstance(bounds, list)
        or len(bounds) != 2
        or not all(isinstance(b, int) and not isinstance(b, bool) for b in bounds)
    ):
        return default

    start = max(bounds[0], 0)
    end = max(bounds[1], start)
    return start, _clamp_limit(end - start + 1, settings)


def parse_pagination(options: FilterOptions, settings: Settings | None = None) -> PageRequest:
    """Resolve page/perPage or range parameters into an offset and limit.

    Page parameters take precedence whenever either of them is present; pages
    are 0-based.
    """
    settings = settings or get_settings()
    if options.page is not None or options.per_page is not None:
        page = max(options.page or 0, 0)
        per_page = options.per_page if options.per_page is not None else settings.default_page_size
        per_page = _clamp_limit(per_page, settings)
        return PageRequest(offset=page * per_page, limit=per_page)

    offset, limit = parse_range(options.range, settings)
    return PageRequest(offset=offset, limit=limit)


def sanitize_resource_name(resource_name: str) -> str:
    """Keep only printable ASCII so the name is safe inside a header value."""
    cleaned = "".join(ch for ch in resource_name if " " <= ch <= "~").strip()
    return cleaned or "items"


def calculate_content_range(offset: int, limit: int, total_count: int, resource_name: str) -> str:
    """Render ``"<resource> <offset>-<last>/<total>"`` for a listing window."""
    offset = max(offset, 0)
    limit = max(limit, 1)
    total_count = max(total_count, 0)
    last = min(offset + limit - 1, total_count)
    return f"{sanitize_resource_name(resource_name)} {offset}-{last}/{total_count}"


def content_range_headers(offset: int, limit: int, total_count: int, resource_name: str) -> dict[str, str]:
    return {"Content-Range": calculate_content_range(offset, limit, total_count, resource_name)}
