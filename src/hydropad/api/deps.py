"""
Dependency wiring for the hydropad API.

Provides:
- Environment-based configuration (loaded once per process)
- The process-wide rainfall cache backed by SQLite
"""

from functools import lru_cache

from hydropad.config import HydropadConfig, config_from_env
from hydropad.core.cache import SqliteStorage, TableCache
from hydropad.core.rainfall import make_cache


@lru_cache(maxsize=1)
def get_config() -> HydropadConfig:
    """
    Load configuration from HYDROPAD_* environment variables.

    Returns:
        HydropadConfig shared by all requests
    """
    return config_from_env()


def build_rainfall_cache(config: HydropadConfig) -> TableCache:
    """
    Create the rainfall cache persisted to the configured SQLite file.

    Args:
        config: Configuration holding the cache path and rainfall settings

    Returns:
        TableCache hydrated from the database
    """
    return make_cache(config.rainfall, storage=SqliteStorage(config.cache_db))
