"""Resource definitions: column catalogs, join graphs and the resources built from them."""
from resource_query.resources.catalog import ColumnCatalog, ColumnKind, ColumnRef, MatchStrategy
from resource_query.resources.definition import Resource, row_to_mapping
from resource_query.resources.joins import Cardinality, JoinSpec, RelationshipGraph

__all__ = [
    "Cardinality",
    "ColumnCatalog",
    "ColumnKind",
    "ColumnRef",
    "JoinSpec",
    "MatchStrategy",
    "RelationshipGraph",
    "Resource",
    "row_to_mapping",
]
