from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FilterOperator(str, Enum):
    EQ = "eq"
    NEQ = "neq"
    GT = "gt"
    GTE = "gte"
    LT = "lt"
    LTE = "lte"
    LIKE = "like"
    IN = "in"
    IS_NULL = "is_null"

    @property
    def suffix(self) -> str:
        """Key suffix that selects this operator, empty for the implicit ones."""
        if self in (FilterOperator.IN, FilterOperator.IS_NULL):
            return ""
        return f"_{self.value}"


# Longest suffixes first so "_gte" wins over "_gt".
OPERATOR_SUFFIXES: tuple[tuple[str, FilterOperator], ...] = (
    ("_gte", FilterOperator.GTE),
    ("_lte", FilterOperator.LTE),
    ("_neq", FilterOperator.NEQ),
    ("_like", FilterOperator.LIKE),
    ("_gt", FilterOperator.GT),
    ("_lt", FilterOperator.LT),
    ("_eq", FilterOperator.EQ),
)


def split_operator(key: str) -> tuple[str, FilterOperator, bool]:
    """Split a filter key into (base field, operator, explicit).

    ``explicit`` is False when no suffix matched and EQ is the default.
    """
    for suffix, operator in OPERATOR_SUFFIXES:
        if key.endswith(suffix) and len(key) > len(suffix):
            return key[: -len(suffix)], operator, True
    return key, FilterOperator.EQ, False


class JoinedFilter(BaseModel):
    """A filter on a related resource's column, expressed in dot notation."""
    model_config = ConfigDict(frozen=True)

    join_field: str
    column: str
    operator: FilterOperator
    value: Any = None

    @property
    def path(self) -> str:
        return f"{self.join_field}.{self.column}"


class FilterOptions(BaseModel):
    """Raw listing parameters as they arrive on the query string."""
    model_config = ConfigDict(populate_by_name=True)

    filter: str | None = None
    sort: str | None = None
    sort_by: str | None = Field(default=None, alias="sortBy")
    order: str | None = None
    range: str | None = None
    page: int | None = None
    per_page: int | None = Field(default=None, alias="perPage")
