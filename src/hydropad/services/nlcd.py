"""
NLCD land-cover classification client.

Queries the MRLC GeoServer WMS with ``GetFeatureInfo`` over a 2x2 pixel
window centred on a point and reads the NLCD class from ``PALETTE_INDEX``.
"""

import logging
from urllib.parse import urlencode

from hydropad.config.defaults import NLCD_WMS_URL
from hydropad.fetch.exceptions import FetchCancelled, UpstreamError
from hydropad.fetch.http_client import JSON_ACCEPT, UpstreamSession
from hydropad.fetch.normalize import parse_json_body

logger = logging.getLogger(__name__)

NLCD_LAYER = "NLCD_2021_Land_Cover_L48"
PIXEL_BUFFER_DEG = 0.0001

# NLCD class -> TR-55 category id
NLCD_TO_TR55 = {
    21: "open_space_good",  # Developed, Open Space
    22: "residential_1_2",  # Developed, Low Intensity
    23: "residential_1_8",  # Developed, Medium Intensity
    24: "impervious",  # Developed, High Intensity
    41: "woods_good",  # Deciduous Forest
    42: "woods_good",  # Evergreen Forest
    43: "woods_good",  # Mixed Forest
    52: "woods_poor",  # Shrub/Scrub
    71: "pasture_good",  # Grassland/Herbaceous
    81: "pasture_good",  # Pasture/Hay
    82: "meadow",  # Cultivated Crops
    90: "woods_fair",  # Woody Wetlands
    95: "meadow",  # Emergent Herbaceous Wetlands
}


def build_feature_info_url(lon: float, lat: float, endpoint: str = NLCD_WMS_URL) -> str:
    bbox = f"{lon - PIXEL_BUFFER_DEG},{lat - PIXEL_BUFFER_DEG},{lon + PIXEL_BUFFER_DEG},{lat + PIXEL_BUFFER_DEG}"
    params = {
        "SERVICE": "WMS",
        "VERSION": "1.1.1",
        "REQUEST": "GetFeatureInfo",
        "FORMAT": "image/png",
        "TRANSPARENT": "true",
        "QUERY_LAYERS": NLCD_LAYER,
        "LAYERS": NLCD_LAYER,
        "INFO_FORMAT": "application/json",
        "SRS": "EPSG:4326",
        "BBOX": bbox,
        "WIDTH": "2",
        "HEIGHT": "2",
        "X": "1",
        "Y": "1",
    }
    return f"{endpoint}?{urlencode(params)}"


def category_for_class(nlcd_class: int | None) -> str | None:
    """Map an NLCD class code to a TR-55 category id; None if unmapped."""
    if nlcd_class is None:
        return None
    return NLCD_TO_TR55.get(nlcd_class)


def _palette_index(payload: object) -> int | None:
    if not isinstance(payload, dict):
        return None
    features = payload.get("features")
    if not isinstance(features, list) or not features or not isinstance(features[0], dict):
        return None
    value = (features[0].get("properties") or {}).get("PALETTE_INDEX")
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


async def fetch_nlcd_class(
    session: UpstreamSession,
    lon: float,
    lat: float,
    endpoint: str = NLCD_WMS_URL,
) -> int | None:
    """
    Classify one point.

    Failures are not raised: the caller discards unclassified points, so a
    failed query simply yields None.
    """
    try:
        response = await session.get(build_feature_info_url(lon, lat, endpoint), headers={"Accept": JSON_ACCEPT})
        payload = parse_json_body(response.content, response.headers.get("content-type"))
    except FetchCancelled:
        raise
    except UpstreamError as e:
        logger.debug(f"NLCD query failed at ({lat}, {lon}): {e}")
        return None

    nlcd_class = _palette_index(payload)
    if nlcd_class is None:
        logger.debug(f"NLCD returned no class at ({lat}, {lon})")
    return nlcd_class
