"""Declarative filtering, sorting, pagination and relationship loading for REST listings."""
from resource_query.resources import ColumnCatalog, ColumnKind, ColumnRef, JoinSpec, RelationshipGraph, Resource
from resource_query.schemas.filtering import FilterOptions
from resource_query.services.resource_service import ResourceQueryService

__version__ = "0.1.0"

__all__ = [
    "ColumnCatalog",
    "ColumnKind",
    "ColumnRef",
    "FilterOptions",
    "JoinSpec",
    "RelationshipGraph",
    "Resource",
    "ResourceQueryService",
]
