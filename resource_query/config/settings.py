"""Engine configuration settings."""
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Engine settings loaded from environment variables."""

    # Application
    app_name: str = "resource-query"
    debug: bool = False

    # Backend used when the persistence collaborator does not report one
    database_backend: Literal["postgres", "mysql", "sqlite"] = "postgres"

    # Relationship loading
    default_join_depth: int = 1
    max_join_depth: int = 5  # Declared depths above this are capped

    # Filter safety limits
    max_field_name_length: int = 100
    max_filter_value_length: int = 10_000
    max_search_query_length: int = 10_000

    # Fulltext search
    similarity_threshold: float = 0.1  # pg_trgm SIMILARITY() cut-off
    fulltext_fallback_warning_columns: int = 3

    # Pagination
    default_page_size: int = 10
    max_page_size: int = 1_000

    class Config:
        env_prefix = "RESOURCE_QUERY_"
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
