"""
Pydantic models for hydropad configuration files.

This module defines the configuration schema using Pydantic v2. It validates
TOML configuration files and provides type-safe access to configuration values.

The configuration hierarchy:
- HydropadConfig (hydropad.toml): Root configuration
- FetchSettings: Timeouts, retry/backoff and proxy used by every upstream call
- EndpointSettings: Base URLs of the upstream geospatial services
- SnapSettings / DelineationSettings: Flowline snapping and cascade behaviour
- RainfallSettings: Rainfall fallbacks and the stale-data cache
- LandUseSettings: Land-cover sampling
"""

import logging
import os
import tomllib
from pathlib import Path

from pydantic import BaseModel, Field, field_validator, model_validator

from .defaults import (
    DEFAULT_BACKOFF_S,
    DEFAULT_BATCH_SIZE,
    DEFAULT_CACHE_DB,
    DEFAULT_CACHE_MAX_ENTRIES,
    DEFAULT_CACHE_TTL_DAYS,
    DEFAULT_HSG,
    DEFAULT_MAX_SNAP_DISTANCE_M,
    DEFAULT_PROXY_BASE,
    DEFAULT_RAINFALL_NAMESPACE,
    DEFAULT_RETRIES,
    DEFAULT_SAMPLE_COUNT,
    DEFAULT_SEARCH_RADIUS_M,
    DEFAULT_SYNTHETIC_HALF_WIDTH_M,
    DEFAULT_TIER_TIMEOUT_S,
    DEFAULT_TIMEOUT_S,
    DEFAULT_USER_AGENT,
    ENV_CACHE_DB,
    ENV_CONFIG_PATH,
    ENV_PROXY_BASE,
    ENV_TIMEOUT,
    HYDROGRAPHY_WFS_URL,
    HYDROSHARE_WFS_URL,
    NLCD_WMS_URL,
    NLDI_BASE_URL,
    NLDI_SPLIT_CATCHMENT_URL,
    NOAA_HDSC_URL,
    REVERSE_GEOCODE_URL,
    STREAMSTATS_WATERSHED_URL,
)

logger = logging.getLogger(__name__)

VALID_HSG = ("A", "B", "C", "D")


class FetchSettings(BaseModel):
    """Settings shared by every outbound request."""

    timeout_s: float = Field(default=DEFAULT_TIMEOUT_S, gt=0, description="Per-request timeout in seconds")
    retries: int = Field(default=DEFAULT_RETRIES, ge=0, description="Extra attempts against the fallback proxy")
    backoff_s: float = Field(default=DEFAULT_BACKOFF_S, ge=0, description="Base delay for exponential backoff")
    proxy_base: str = Field(default=DEFAULT_PROXY_BASE, description="CORS-bridging proxy taking ?url=<target>")
    try_direct: bool = Field(default=True, description="Call the target URL directly before using the proxy")
    user_agent: str = Field(default=DEFAULT_USER_AGENT)

    @field_validator("proxy_base")
    @classmethod
    def validate_proxy_base(cls, v: str) -> str:
        """Ensure the proxy base is an absolute http(s) URL."""
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"proxy_base must be an http(s) URL, got '{v}'")
        return v


class EndpointSettings(BaseModel):
    """Base URLs of the upstream services."""

    noaa_hdsc: str = NOAA_HDSC_URL
    streamstats: str = STREAMSTATS_WATERSHED_URL
    nldi: str = NLDI_BASE_URL
    nldi_split_catchment: str = NLDI_SPLIT_CATCHMENT_URL
    hydroshare_wfs: str = HYDROSHARE_WFS_URL
    hydrography_wfs: str = HYDROGRAPHY_WFS_URL
    nlcd_wms: str = NLCD_WMS_URL
    reverse_geocode: str = REVERSE_GEOCODE_URL


class SnapSettings(BaseModel):
    """Nearest-reach search limits."""

    search_radius_m: float = Field(default=DEFAULT_SEARCH_RADIUS_M, gt=0)
    max_snap_distance_m: float = Field(default=DEFAULT_MAX_SNAP_DISTANCE_M, gt=0)

    @model_validator(mode="after")
    def validate_distance_within_radius(self) -> "SnapSettings":
        """A snap can never be farther than the area that was searched."""
        if self.max_snap_distance_m > self.search_radius_m:
            raise ValueError(
                f"max_snap_distance_m ({self.max_snap_distance_m}) cannot exceed "
                f"search_radius_m ({self.search_radius_m})"
            )
        return self


class DelineationSettings(BaseModel):
    """Watershed cascade behaviour."""

    synthetic_half_width_m: float = Field(default=DEFAULT_SYNTHETIC_HALF_WIDTH_M, gt=0)
    synthetic_fallback: bool = Field(default=True, description="Finish with a square buffer when every service fails")
    tier_timeout_s: float = Field(default=DEFAULT_TIER_TIMEOUT_S, gt=0)


class RainfallSettings(BaseModel):
    """Rainfall fallbacks and cache sizing."""

    synthetic_fallback: bool = True
    cache_namespace: str = DEFAULT_RAINFALL_NAMESPACE
    cache_max_entries: int = Field(default=DEFAULT_CACHE_MAX_ENTRIES, gt=0)
    cache_ttl_days: float = Field(default=DEFAULT_CACHE_TTL_DAYS, gt=0)


class LandUseSettings(BaseModel):
    """Land-cover sampling."""

    sample_count: int = Field(default=DEFAULT_SAMPLE_COUNT, gt=0)
    batch_size: int = Field(default=DEFAULT_BATCH_SIZE, gt=0)
    default_hsg: str = DEFAULT_HSG

    @field_validator("default_hsg")
    @classmethod
    def validate_hsg(cls, v: str) -> str:
        """Hydrologic soil groups are A through D."""
        v = v.strip().upper()
        if v not in VALID_HSG:
            raise ValueError(f"default_hsg must be one of {VALID_HSG}, got '{v}'")
        return v


class HydropadConfig(BaseModel):
    """Root configuration loaded from hydropad.toml."""

    fetch: FetchSettings = Field(default_factory=FetchSettings)
    endpoints: EndpointSettings = Field(default_factory=EndpointSettings)
    snapping: SnapSettings = Field(default_factory=SnapSettings)
    delineation: DelineationSettings = Field(default_factory=DelineationSettings)
    rainfall: RainfallSettings = Field(default_factory=RainfallSettings)
    landuse: LandUseSettings = Field(default_factory=LandUseSettings)
    cache_db: str = Field(default=DEFAULT_CACHE_DB, description="SQLite file backing the local cache")

    @field_validator("cache_db")
    @classmethod
    def validate_cache_db(cls, v: str) -> str:
        """Validate cache path is not empty."""
        if not v or not v.strip():
            raise ValueError("cache_db cannot be empty")
        return v.strip()


def load_config(config_path: Path) -> HydropadConfig:
    """
    Load and validate a hydropad configuration file.

    Args:
        config_path: Path to the TOML configuration file

    Returns:
        Validated HydropadConfig instance

    Raises:
        FileNotFoundError: If the config file doesn't exist
        ValueError: If the TOML file is malformed
        pydantic.ValidationError: If the configuration is invalid

    Example:
        >>> config = load_config(Path("hydropad.toml"))
        >>> config.fetch.retries
        2
    """
    if not config_path.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_path}")

    logger.info(f"Loading configuration from: {config_path}")

    try:
        with config_path.open("rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ValueError(f"Invalid TOML in configuration file: {e}") from e

    return HydropadConfig.model_validate(data)


def config_from_env() -> HydropadConfig:
    """
    Build the configuration from HYDROPAD_* environment variables.

    HYDROPAD_CONFIG points at an optional TOML file; HYDROPAD_CACHE_DB,
    HYDROPAD_PROXY_BASE and HYDROPAD_TIMEOUT override single values on top of it.
    """
    config_path = os.getenv(ENV_CONFIG_PATH)
    config = load_config(Path(config_path)) if config_path else HydropadConfig()

    overrides: dict = {}
    fetch_overrides: dict = {}

    cache_db = os.getenv(ENV_CACHE_DB)
    if cache_db:
        overrides["cache_db"] = cache_db

    proxy_base = os.getenv(ENV_PROXY_BASE)
    if proxy_base:
        fetch_overrides["proxy_base"] = proxy_base

    timeout = os.getenv(ENV_TIMEOUT)
    if timeout:
        try:
            fetch_overrides["timeout_s"] = float(timeout)
        except ValueError as e:
            raise ValueError(f"{ENV_TIMEOUT} must be a number of seconds, got '{timeout}'") from e

    if fetch_overrides:
        overrides["fetch"] = {**config.fetch.model_dump(), **fetch_overrides}

    if not overrides:
        return config

    return HydropadConfig.model_validate({**config.model_dump(), **overrides})
