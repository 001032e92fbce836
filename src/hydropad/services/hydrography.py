"""
Vector hydrography (NHDPlus flowline network) WFS client.

Returns every flowline segment intersecting a square search window around a
point, which the flowline snapper then ranks by distance.
"""

import logging
import math
from urllib.parse import urlencode

from hydropad.config.defaults import HYDROGRAPHY_WFS_URL
from hydropad.core.geometry import METERS_PER_DEGREE_LAT
from hydropad.fetch.http_client import JSON_ACCEPT, UpstreamSession
from hydropad.fetch.normalize import normalize_feature_collection

logger = logging.getLogger(__name__)

FLOWLINE_TYPE_NAME = "wmadata:nhdflowline_network"
LINE_TYPES = ("LineString", "MultiLineString")


def search_bbox(lat: float, lon: float, radius_m: float) -> tuple[float, float, float, float]:
    """Square ``(min_lon, min_lat, max_lon, max_lat)`` window of a given radius."""
    delta_lat = radius_m / METERS_PER_DEGREE_LAT
    meters_per_degree_lon = max(math.cos(math.radians(lat)) * METERS_PER_DEGREE_LAT, 1e-6)
    delta_lon = radius_m / meters_per_degree_lon
    return lon - delta_lon, lat - delta_lat, lon + delta_lon, lat + delta_lat


def build_flowline_url(lat: float, lon: float, radius_m: float, endpoint: str = HYDROGRAPHY_WFS_URL) -> str:
    min_lon, min_lat, max_lon, max_lat = search_bbox(lat, lon, radius_m)
    params = {
        "service": "WFS",
        "version": "1.0.0",
        "request": "GetFeature",
        "typeName": FLOWLINE_TYPE_NAME,
        "outputFormat": "application/json",
        "srsName": "EPSG:4326",
        "bbox": f"{min_lon:.6f},{min_lat:.6f},{max_lon:.6f},{max_lat:.6f}",
    }
    return f"{endpoint}?{urlencode(params)}"


async def fetch_nearby_flowlines(
    session: UpstreamSession,
    lat: float,
    lon: float,
    radius_m: float,
    endpoint: str = HYDROGRAPHY_WFS_URL,
    timeout: float | None = None,
) -> list[dict]:
    """
    Fetch flowline segments within a search radius of a point.

    Returns:
        Line features that carry a geometry; may be empty
    """
    url = build_flowline_url(lat, lon, radius_m, endpoint)
    response = await session.get(url, headers={"Accept": JSON_ACCEPT}, timeout=timeout)
    fc = normalize_feature_collection(response.content, response.headers.get("content-type"), label="Hydrography WFS")

    lines = [
        f
        for f in fc["features"]
        if isinstance(f, dict) and isinstance(f.get("geometry"), dict) and f["geometry"].get("type") in LINE_TYPES
    ]
    logger.debug(f"Hydrography WFS returned {len(lines)} flowlines within {radius_m:.0f} m of ({lat}, {lon})")
    return lines
