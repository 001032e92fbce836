"""
Configuration management for hydropad.

This module provides Pydantic-based configuration schemas for validating
and loading TOML configuration files and HYDROPAD_* environment overrides.

Key exports:
- HydropadConfig: Root configuration
- load_config(): Load and validate a TOML configuration file
- config_from_env(): Build configuration from environment variables
"""

from .defaults import (
    DEFAULT_CACHE_DB,
    DEFAULT_PROXY_BASE,
    ENV_CACHE_DB,
    ENV_CONFIG_PATH,
    ENV_CORS_ORIGINS,
    ENV_LOG_FILE,
    ENV_PROXY_BASE,
    ENV_TIMEOUT,
    PREVIEW_LENGTH,
)
from .schema import (
    DelineationSettings,
    EndpointSettings,
    FetchSettings,
    HydropadConfig,
    LandUseSettings,
    RainfallSettings,
    SnapSettings,
    config_from_env,
    load_config,
)

__all__ = [
    # Models
    "HydropadConfig",
    "FetchSettings",
    "EndpointSettings",
    "SnapSettings",
    "DelineationSettings",
    "RainfallSettings",
    "LandUseSettings",
    # Loaders
    "load_config",
    "config_from_env",
    # Defaults
    "DEFAULT_CACHE_DB",
    "DEFAULT_PROXY_BASE",
    "PREVIEW_LENGTH",
    # Environment variables
    "ENV_CONFIG_PATH",
    "ENV_CACHE_DB",
    "ENV_PROXY_BASE",
    "ENV_TIMEOUT",
    "ENV_LOG_FILE",
    "ENV_CORS_ORIGINS",
]
