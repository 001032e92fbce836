"""
Watershed delineation cascade for single outlet points.

This module resolves a basin polygon for a clicked point by trying several
independent providers in strict priority order and returning the first
non-empty result:
1. Snap the point to a flowline (fine hydrography search, then NLDI position)
2. StreamStats, keyed by the region code of the point
3. NLDI split catchment at the snapped point
4. NLDI basin for the snapped reach
5. HydroShare NHDPlus HR catchment for the snapped reach
6. A synthetic square buffer around the input point

Each tier is a plain async function taking a DelineationContext and
returning a FeatureCollection or None. Errors raised by a tier are logged
and treated as "no result"; caller cancellation always propagates.
"""

import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from hydropad.config import HydropadConfig
from hydropad.core.flowline import FlowlineReference, snap_to_flowline
from hydropad.core.geometry import compute_area_acres, compute_area_sq_meters, square_buffer
from hydropad.fetch.exceptions import FetchCancelled, UpstreamError
from hydropad.fetch.http_client import UpstreamSession
from hydropad.services.geocoding import fetch_region_code
from hydropad.services.hydroshare import fetch_catchment
from hydropad.services.nldi import fetch_basin, fetch_split_catchment
from hydropad.services.streamstats import fetch_watershed

logger = logging.getLogger(__name__)


class DelineationError(Exception):
    """Raised when every delineation tier failed."""

    pass


@dataclass
class DelineationContext:
    """Inputs shared by all cascade tiers."""

    session: UpstreamSession
    lat: float
    lon: float
    config: HydropadConfig = field(default_factory=HydropadConfig)
    flowline: FlowlineReference | None = None

    @property
    def comid(self) -> str | None:
        return self.flowline.comid if self.flowline else None

    @property
    def timeout(self) -> float:
        return self.config.delineation.tier_timeout_s


@dataclass
class WatershedResult:
    """Result from delineating a single watershed."""

    basin: dict  # GeoJSON FeatureCollection
    source: str  # tier that produced the basin
    comid: str | None = None
    flowline: FlowlineReference | None = None
    failures: list[tuple[str, str]] = field(default_factory=list)

    @property
    def is_synthetic(self) -> bool:
        return self.source == "synthetic"

    @property
    def area_sq_meters(self) -> float:
        return compute_area_sq_meters(self.basin)

    @property
    def area_acres(self) -> float:
        return compute_area_acres(self.basin)


Tier = Callable[[DelineationContext], Awaitable[dict | None]]


async def streamstats_tier(ctx: DelineationContext) -> dict | None:
    """Primary basin service; skipped when the point has no region code."""
    endpoints = ctx.config.endpoints
    rcode = await fetch_region_code(ctx.session, ctx.lat, ctx.lon, endpoint=endpoints.reverse_geocode, timeout=ctx.timeout)
    if not rcode:
        logger.info(f"No StreamStats region for ({ctx.lat}, {ctx.lon}); skipping StreamStats")
        return None
    return await fetch_watershed(ctx.session, ctx.lat, ctx.lon, rcode, endpoint=endpoints.streamstats, timeout=ctx.timeout)


async def split_catchment_tier(ctx: DelineationContext) -> dict | None:
    """Split catchment at the snapped point, which is guaranteed to sit on a flowline."""
    if ctx.flowline is None:
        return None
    return await fetch_split_catchment(
        ctx.session,
        ctx.flowline.snapped_lat,
        ctx.flowline.snapped_lon,
        comid=ctx.comid,
        endpoint=ctx.config.endpoints.nldi_split_catchment,
        timeout=ctx.timeout,
    )


async def nldi_basin_tier(ctx: DelineationContext) -> dict | None:
    """Basin by the snapped reach identifier."""
    if ctx.comid is None:
        return None
    return await fetch_basin(ctx.session, ctx.comid, base_url=ctx.config.endpoints.nldi, timeout=ctx.timeout)


async def hydroshare_tier(ctx: DelineationContext) -> dict | None:
    """Alternate WFS catchment filtered by the snapped reach identifier."""
    if ctx.comid is None:
        return None
    return await fetch_catchment(ctx.session, ctx.comid, endpoint=ctx.config.endpoints.hydroshare_wfs, timeout=ctx.timeout)


async def synthetic_tier(ctx: DelineationContext) -> dict | None:
    """Square buffer around the input point; always produces geometry when enabled."""
    settings = ctx.config.delineation
    if not settings.synthetic_fallback:
        return None
    return square_buffer(ctx.lat, ctx.lon, settings.synthetic_half_width_m)


DEFAULT_TIERS: list[tuple[str, Tier]] = [
    ("streamstats", streamstats_tier),
    ("nldi_split", split_catchment_tier),
    ("nldi_basin", nldi_basin_tier),
    ("hydroshare", hydroshare_tier),
    ("synthetic", synthetic_tier),
]


def validate_coordinates(lat: float, lon: float) -> None:
    """
    Raises:
        ValueError: Latitude or longitude is non-finite or out of range
    """
    if not (math.isfinite(lat) and math.isfinite(lon)):
        raise ValueError("Latitude and longitude must be finite numbers")
    if not -90 <= lat <= 90:
        raise ValueError(f"Latitude {lat} is outside [-90, 90]")
    if not -180 <= lon <= 180:
        raise ValueError(f"Longitude {lon} is outside [-180, 180]")


async def snap_step(ctx: DelineationContext) -> FlowlineReference | None:
    """Snap to a flowline; failure leaves the reach-dependent tiers without input."""
    try:
        return await snap_to_flowline(
            ctx.session,
            ctx.lat,
            ctx.lon,
            snapping=ctx.config.snapping,
            endpoints=ctx.config.endpoints,
            timeout=ctx.timeout,
        )
    except FetchCancelled:
        raise
    except UpstreamError as e:
        logger.warning(f"Flowline snapping failed for ({ctx.lat}, {ctx.lon}): {e}")
        return None


async def delineate(
    session: UpstreamSession,
    lat: float,
    lon: float,
    config: HydropadConfig | None = None,
    tiers: list[tuple[str, Tier]] | None = None,
) -> WatershedResult:
    """
    Delineate the watershed draining to a point.

    Args:
        session: Upstream session shared by every tier
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        config: Configuration; defaults are used when omitted
        tiers: Ordered ``(name, tier)`` pairs replacing the default cascade

    Returns:
        WatershedResult whose ``source`` names the tier that produced the basin

    Raises:
        ValueError: Invalid coordinates
        DelineationError: Every tier failed or returned no polygon
        FetchCancelled: The session's cancel token was set

    Example:
        >>> async with open_session() as session:
        ...     result = await delineate(session, 40.44, -79.99)
        >>> result.source
        'streamstats'
    """
    validate_coordinates(lat, lon)
    ctx = DelineationContext(session=session, lat=lat, lon=lon, config=config or HydropadConfig())
    ctx.flowline = await snap_step(ctx)

    failures: list[tuple[str, str]] = []
    for name, tier in tiers or DEFAULT_TIERS:
        try:
            basin = await tier(ctx)
        except FetchCancelled:
            raise
        except (UpstreamError, ValueError) as e:
            logger.warning(f"Delineation tier '{name}' failed for ({lat}, {lon}): {e}")
            failures.append((name, str(e)))
            continue

        if basin and basin.get("features"):
            logger.info(f"Delineated ({lat}, {lon}) with tier '{name}' ({len(basin['features'])} features)")
            return WatershedResult(basin=basin, source=name, comid=ctx.comid, flowline=ctx.flowline, failures=failures)

        logger.info(f"Delineation tier '{name}' returned no basin for ({lat}, {lon})")
        failures.append((name, "no result"))

    summary = "; ".join(f"{name}: {reason}" for name, reason in failures)
    raise DelineationError(f"Unable to delineate a basin for ({lat}, {lon}). {summary}")
