"""
HydroShare GeoServer catchment client.

The NHDPlus HR catchment layer is exposed over WFS 2.0 and filtered by the
integer ``FEATUREID`` of a reach. Responses use the layer's own schema, so
only polygonal features are kept and each one is tagged with the reach
identifier and the ``hydroshare`` source.
"""

import logging
from urllib.parse import urlencode

from hydropad.config.defaults import HYDROSHARE_WFS_URL
from hydropad.core.geometry import tag_collection
from hydropad.fetch.http_client import JSON_ACCEPT, UpstreamSession
from hydropad.fetch.normalize import normalize_feature_collection

logger = logging.getLogger(__name__)

SOURCE = "hydroshare"
CATCHMENT_TYPE_NAME = "NHDPlus_HR:NHDPlusCatchment"


def build_catchment_url(comid: str | int, endpoint: str = HYDROSHARE_WFS_URL) -> str:
    """
    Build a WFS GetFeature query for one catchment.

    Raises:
        ValueError: comid is not an integer feature id
    """
    feature_id = int(str(comid).strip())
    params = {
        "service": "WFS",
        "version": "2.0.0",
        "request": "GetFeature",
        "typeNames": CATCHMENT_TYPE_NAME,
        "outputFormat": "application/json",
        "cql_filter": f"FEATUREID={feature_id}",
    }
    return f"{endpoint}?{urlencode(params)}"


def normalize_catchments(fc: dict, comid: str | int) -> dict:
    """Keep Polygon/MultiPolygon features and tag them with the reach id and source."""
    return tag_collection(fc, SOURCE, comid=str(comid))


async def fetch_catchment(
    session: UpstreamSession,
    comid: str | int,
    endpoint: str = HYDROSHARE_WFS_URL,
    timeout: float | None = None,
) -> dict | None:
    """
    Fetch the catchment polygon for a reach.

    Returns:
        FeatureCollection tagged ``hydroshare``, or None if the layer had no polygon
    """
    url = build_catchment_url(comid, endpoint)
    response = await session.get(url, headers={"Accept": JSON_ACCEPT}, timeout=timeout)
    fc = normalize_feature_collection(response.content, response.headers.get("content-type"), label="HydroShare WFS")

    catchments = normalize_catchments(fc, comid)
    if not catchments["features"]:
        logger.info(f"HydroShare has no catchment polygon for FEATUREID={comid}")
        return None
    return catchments
