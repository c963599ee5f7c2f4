"""Repositories package."""
from resource_query.repositories.base import ResourceRepository
from resource_query.repositories.sqlalchemy_repository import SQLAlchemyResourceRepository

__all__ = [
    "ResourceRepository",
    "SQLAlchemyResourceRepository",
]
