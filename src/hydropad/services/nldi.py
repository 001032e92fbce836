"""
USGS Network-Linked Data Index (NLDI) client.

Provides:
- Coarse flowline lookup by position (``/comid/position``)
- Basin polygon by reach identifier (``/comid/{comid}/basin``)
- Split catchment at a point on a flowline (pygeoapi process)
- Upstream tributary navigation (``/navigate/UT/flowlines``)
"""

import logging
from urllib.parse import urlencode

from hydropad.config.defaults import NLDI_BASE_URL, NLDI_SPLIT_CATCHMENT_URL
from hydropad.core.geometry import extract_comid, tag_collection
from hydropad.fetch.exceptions import SnapError
from hydropad.fetch.http_client import JSON_ACCEPT, UpstreamSession
from hydropad.fetch.normalize import normalize_feature_collection

logger = logging.getLogger(__name__)

SOURCE = "nldi"
SPLIT_FEATURE_PREFERENCE = ("drainageBasin", "splitCatchment")
DEFAULT_UPSTREAM_DISTANCE_KM = 25


def position_url(lat: float, lon: float, base_url: str = NLDI_BASE_URL) -> str:
    params = {"f": "json", "coords": f"POINT({lon} {lat})"}
    return f"{base_url}/comid/position?{urlencode(params)}"


def basin_url(comid: str | int, base_url: str = NLDI_BASE_URL) -> str:
    return f"{base_url}/comid/{comid}/basin?f=json"


def upstream_url(comid: str | int, distance_km: float = DEFAULT_UPSTREAM_DISTANCE_KM, base_url: str = NLDI_BASE_URL) -> str:
    return f"{base_url}/comid/{comid}/navigate/UT/flowlines?distance={distance_km:g}&f=json"


async def _get_collection(session: UpstreamSession, url: str, label: str, timeout: float | None) -> dict:
    response = await session.get(url, headers={"Accept": JSON_ACCEPT}, timeout=timeout)
    return normalize_feature_collection(response.content, response.headers.get("content-type"), label=label)


async def fetch_position_flowline(
    session: UpstreamSession,
    lat: float,
    lon: float,
    base_url: str = NLDI_BASE_URL,
    timeout: float | None = None,
) -> dict:
    """
    Find the flowline whose catchment contains a point.

    Returns:
        Flowline Feature with ``comid`` and ``source`` properties set

    Raises:
        SnapError: No flowline, or a flowline without an identifier, was returned
        FetchError / ShapeError: The request or payload failed
    """
    fc = await _get_collection(session, position_url(lat, lon, base_url), "NLDI position", timeout)
    feature = next((f for f in fc["features"] if isinstance(f, dict) and f.get("geometry")), None)
    if feature is None:
        raise SnapError(f"NLDI did not return a flowline near ({lat}, {lon})")

    properties = dict(feature.get("properties") or {})
    comid = extract_comid(properties)
    if not comid:
        raise SnapError("NLDI response was missing the COMID identifier for the snapped flowline")

    properties["comid"] = comid
    properties["source"] = SOURCE
    return {"type": "Feature", "geometry": feature["geometry"], "properties": properties}


async def fetch_basin(
    session: UpstreamSession,
    comid: str | int,
    base_url: str = NLDI_BASE_URL,
    timeout: float | None = None,
) -> dict | None:
    """
    Fetch the full upstream basin draining to a reach.

    Returns:
        FeatureCollection tagged ``nldi``, or None when NLDI has no polygon
    """
    fc = await _get_collection(session, basin_url(comid, base_url), "NLDI basin", timeout)
    basin = tag_collection(fc, SOURCE, comid=str(comid))
    return basin if basin["features"] else None


def _split_catchment_payload(lat: float, lon: float, upstream: bool = True) -> dict:
    return {
        "inputs": [
            {"id": "lat", "type": "text/plain", "value": str(lat)},
            {"id": "lon", "type": "text/plain", "value": str(lon)},
            {"id": "upstream", "type": "text/plain", "value": "true" if upstream else "false"},
        ]
    }


def _pick_split_feature(fc: dict) -> list[dict]:
    features = [f for f in fc["features"] if isinstance(f, dict)]
    for wanted in SPLIT_FEATURE_PREFERENCE:
        chosen = [f for f in features if f.get("id") == wanted or (f.get("properties") or {}).get("id") == wanted]
        if chosen:
            return chosen
    return features


async def fetch_split_catchment(
    session: UpstreamSession,
    lat: float,
    lon: float,
    comid: str | None = None,
    endpoint: str = NLDI_SPLIT_CATCHMENT_URL,
    timeout: float | None = None,
) -> dict | None:
    """
    Split the local catchment at a point and return the upstream drainage basin.

    The point should already sit on a flowline. The process answers with up
    to three features (``catchment``, ``splitCatchment``, ``drainageBasin``);
    the drainage basin is preferred, then the split catchment.

    Returns:
        FeatureCollection tagged ``nldi``, or None when no polygon was returned
    """
    response = await session.post_json(endpoint, _split_catchment_payload(lat, lon), timeout=timeout)
    fc = normalize_feature_collection(response.content, response.headers.get("content-type"), label="NLDI split catchment")
    chosen = {"type": "FeatureCollection", "features": _pick_split_feature(fc)}
    basin = tag_collection(chosen, SOURCE, comid=comid)
    return basin if basin["features"] else None


async def get_upstream_flowlines(
    session: UpstreamSession,
    comid: str | int,
    distance_km: float = DEFAULT_UPSTREAM_DISTANCE_KM,
    base_url: str = NLDI_BASE_URL,
    timeout: float | None = None,
) -> dict:
    """Navigate upstream tributaries from a reach and return their flowlines."""
    return await _get_collection(session, upstream_url(comid, distance_km, base_url), "NLDI upstream flowlines", timeout)
