"""
USGS StreamStats watershed client.

StreamStats delineates a full upstream basin for a point inside a supported
region (a US state code such as ``PA``). The GeoJSON endpoint answers with a
named-result array; the basin polygon lives under the ``globalwatershed``
entry.
"""

import logging
from urllib.parse import urlencode

from hydropad.config.defaults import STREAMSTATS_WATERSHED_URL
from hydropad.core.geometry import tag_collection
from hydropad.fetch.http_client import JSON_ACCEPT, UpstreamSession
from hydropad.fetch.normalize import normalize_feature_collection

logger = logging.getLogger(__name__)

SOURCE = "streamstats"
WATERSHED_RESULT_NAME = "globalwatershed"


def _flag(value: bool) -> str:
    return "true" if value else "false"


def build_watershed_url(
    lat: float,
    lon: float,
    rcode: str | None = None,
    include_parameters: bool = True,
    include_features: bool = True,
    simplify: bool = True,
    endpoint: str = STREAMSTATS_WATERSHED_URL,
) -> str:
    """Build the watershed.geojson query for a point."""
    params: dict[str, str] = {}
    if rcode:
        params["rcode"] = rcode
    params["xlocation"] = str(lon)
    params["ylocation"] = str(lat)
    params["crs"] = "4326"
    params["includeparameters"] = _flag(include_parameters)
    params["includefeatures"] = _flag(include_features)
    params["simplify"] = _flag(simplify)
    return f"{endpoint}?{urlencode(params)}"


async def fetch_watershed(
    session: UpstreamSession,
    lat: float,
    lon: float,
    rcode: str,
    endpoint: str = STREAMSTATS_WATERSHED_URL,
    timeout: float | None = None,
) -> dict | None:
    """
    Delineate a basin with StreamStats.

    Args:
        session: Upstream session
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        rcode: StreamStats region code (two-letter state code)
        endpoint: watershed.geojson endpoint
        timeout: Per-request timeout override in seconds

    Returns:
        FeatureCollection of basin polygons tagged ``streamstats``, or None
        when StreamStats returned no polygon

    Raises:
        FetchError: Every request attempt failed
        ShapeError: The payload held no FeatureCollection
    """
    url = build_watershed_url(lat, lon, rcode, endpoint=endpoint)
    response = await session.get(url, headers={"Accept": JSON_ACCEPT}, timeout=timeout)
    fc = normalize_feature_collection(
        response.content,
        response.headers.get("content-type"),
        result_name=WATERSHED_RESULT_NAME,
        label="StreamStats",
    )

    basin = tag_collection(fc, SOURCE)
    if not basin["features"]:
        logger.info(f"StreamStats returned no basin polygon for ({lat}, {lon}) in region {rcode}")
        return None
    return basin
