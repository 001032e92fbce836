"""
End-to-end watershed analysis.

Chains the data-acquisition layer with the hydrologic calculations:
delineate -> area -> rainfall -> duration/ARI selection -> optional land-use
sampling and composite CN -> runoff estimates.
"""

import logging
import math
from dataclasses import dataclass, field

import numpy as np

from hydropad.config import HydropadConfig
from hydropad.core.cache import TableCache
from hydropad.core.curve_number import LandUseItem, composite_cn
from hydropad.core.delineate import WatershedResult, delineate
from hydropad.core.landuse import sample_land_use, to_land_use_items
from hydropad.core.rainfall import RainfallResult, fetch_rainfall, select_depth
from hydropad.core.runoff import RunoffResult, compute_runoff, duration_hours
from hydropad.fetch.http_client import UpstreamSession

logger = logging.getLogger(__name__)

DEFAULT_CN = 75


@dataclass
class AnalysisResult:
    """Everything computed for one outlet point."""

    lat: float
    lon: float
    watershed: WatershedResult
    area_sq_meters: float
    area_acres: float
    rainfall: RainfallResult
    duration: str
    ari: str
    depth_in: float
    intensity_in_hr: float | None
    cn: float
    runoff: RunoffResult
    land_use: dict[str, int] = field(default_factory=dict)
    land_use_items: list[LandUseItem] = field(default_factory=list)


def intensity_for(depth_in: float, duration: str) -> float | None:
    """Average intensity in in/hr for a depth over a duration label; None if unknown."""
    hours = duration_hours(duration)
    if hours is None or not math.isfinite(depth_in):
        return None
    return depth_in / hours


async def analyze(
    session: UpstreamSession,
    lat: float,
    lon: float,
    config: HydropadConfig | None = None,
    cache: TableCache | None = None,
    duration: str | None = None,
    ari: str | None = None,
    cn: float | None = None,
    sample_landuse: bool = False,
    rng: np.random.Generator | None = None,
) -> AnalysisResult:
    """
    Run the full analysis for a point.

    Args:
        session: Upstream session
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        config: Configuration
        cache: Rainfall cache
        duration: Duration label; defaults to the first in the table
        ari: Recurrence interval; defaults to the first in the table
        cn: Curve number override; otherwise derived from land use, else 75
        sample_landuse: Sample land cover and blend a composite CN
        rng: Random generator for land-cover sampling

    Raises:
        ValueError: Invalid coordinates
        SelectionError: The duration or ARI is not in the rainfall table
        DelineationError: No delineation tier produced a basin
        RainfallError: No rainfall source produced a table
    """
    config = config or HydropadConfig()

    watershed = await delineate(session, lat, lon, config=config)
    area_sq_meters = watershed.area_sq_meters
    area_acres = watershed.area_acres

    rainfall = await fetch_rainfall(
        session, lat, lon, cache=cache, settings=config.rainfall, endpoints=config.endpoints
    )
    duration, ari, depth_in = select_depth(rainfall.table, duration, ari)
    intensity = intensity_for(depth_in, duration)

    land_use: dict[str, int] = {}
    items: list[LandUseItem] = []
    if sample_landuse:
        land_use = await sample_land_use(
            session, watershed.basin, settings=config.landuse, endpoints=config.endpoints, rng=rng
        )
        items = to_land_use_items(land_use, hsg=config.landuse.default_hsg)

    if cn is None:
        cn = composite_cn(items, DEFAULT_CN)

    runoff = compute_runoff(depth_in, intensity, cn, area_acres)
    logger.info(
        f"Analysis for ({lat}, {lon}): source={watershed.source}, area={area_acres:.1f} ac, "
        f"P={depth_in} in ({duration}, {ari}-yr), CN={cn}, Q={runoff.runoff_depth_in:.2f} in"
    )

    return AnalysisResult(
        lat=lat,
        lon=lon,
        watershed=watershed,
        area_sq_meters=area_sq_meters,
        area_acres=area_acres,
        rainfall=rainfall,
        duration=duration,
        ari=ari,
        depth_in=depth_in,
        intensity_in_hr=intensity,
        cn=cn,
        runoff=runoff,
        land_use=land_use,
        land_use_items=items,
    )
