"""Engine configuration module.

- **settings.py**: Environment-based settings (Pydantic BaseSettings)
  - Join depth limits, filter safety limits, pagination defaults
  - Loaded from the environment (``RESOURCE_QUERY_`` prefix) or a .env file
"""
from resource_query.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
