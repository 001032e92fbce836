"""
Flowline snapping.

Moves a clicked point onto the stream network before delineation:
1. Fine search: fetch every flowline segment in a window around the point
   and take the closest point on the closest segment, rejecting matches
   farther than the maximum snap distance.
2. Coarse lookup: ask NLDI which flowline's catchment contains the point.

The result always carries a reach identifier; a reach without one is a
failure, not a partial success.
"""

import logging
from dataclasses import dataclass, field

import pyproj
import shapely.ops
from shapely.geometry import Point, shape

from hydropad.config import EndpointSettings, SnapSettings
from hydropad.core.geometry import extract_comid
from hydropad.fetch.exceptions import FetchCancelled, SnapError, UpstreamError
from hydropad.fetch.http_client import UpstreamSession
from hydropad.services.hydrography import fetch_nearby_flowlines
from hydropad.services.nldi import fetch_position_flowline

logger = logging.getLogger(__name__)

_GEOD = pyproj.Geod(ellps="WGS84")


@dataclass
class FlowlineReference:
    """A reach the input point was snapped to."""

    comid: str
    geometry: dict
    snapped_lat: float
    snapped_lon: float
    distance_m: float
    method: str  # "hydrography" or "nldi"
    name: str | None = None
    reachcode: str | None = None
    properties: dict = field(default_factory=dict)

    def to_feature(self) -> dict:
        """GeoJSON Feature of the snapped flowline."""
        properties = {
            **self.properties,
            "comid": self.comid,
            "source": self.method,
            "snapped_lat": self.snapped_lat,
            "snapped_lon": self.snapped_lon,
            "distance_m": self.distance_m,
        }
        if self.name:
            properties["name"] = self.name
        if self.reachcode:
            properties["reachcode"] = self.reachcode
        return {"type": "Feature", "geometry": self.geometry, "properties": properties}


def nearest_point_on_line(geometry: dict, lat: float, lon: float) -> tuple[float, float, float]:
    """
    Closest point on a line geometry to a given point.

    Returns:
        Tuple of ``(snapped_lat, snapped_lon, distance_m)``; the distance is
        geodesic on the WGS84 ellipsoid
    """
    line = shape(geometry)
    _, nearest = shapely.ops.nearest_points(Point(lon, lat), line)
    _, _, distance = _GEOD.inv(lon, lat, nearest.x, nearest.y)
    return nearest.y, nearest.x, abs(distance)


def _reference_from_feature(feature: dict, lat: float, lon: float, method: str) -> FlowlineReference | None:
    properties = dict(feature.get("properties") or {})
    comid = extract_comid(properties)
    if not comid:
        return None
    snapped_lat, snapped_lon, distance = nearest_point_on_line(feature["geometry"], lat, lon)
    return FlowlineReference(
        comid=comid,
        geometry=feature["geometry"],
        snapped_lat=snapped_lat,
        snapped_lon=snapped_lon,
        distance_m=distance,
        method=method,
        name=properties.get("gnis_name") or properties.get("name"),
        reachcode=properties.get("reachcode"),
        properties=properties,
    )


def closest_flowline(features: list[dict], lat: float, lon: float, max_distance_m: float) -> FlowlineReference | None:
    """
    Pick the nearest identified flowline within a distance limit.

    Segments without a reach identifier or with malformed geometry are skipped.
    """
    best: FlowlineReference | None = None
    for feature in features:
        try:
            candidate = _reference_from_feature(feature, lat, lon, "hydrography")
        except (ValueError, TypeError, AttributeError, KeyError) as e:
            logger.debug(f"Skipping malformed flowline segment: {e}")
            continue
        if candidate is None or candidate.distance_m > max_distance_m:
            continue
        if best is None or candidate.distance_m < best.distance_m:
            best = candidate
    return best


async def snap_fine(
    session: UpstreamSession,
    lat: float,
    lon: float,
    snapping: SnapSettings,
    endpoints: EndpointSettings,
    timeout: float | None = None,
) -> FlowlineReference | None:
    """Nearest-segment search against the hydrography WFS."""
    features = await fetch_nearby_flowlines(
        session, lat, lon, snapping.search_radius_m, endpoint=endpoints.hydrography_wfs, timeout=timeout
    )
    return closest_flowline(features, lat, lon, snapping.max_snap_distance_m)


async def snap_coarse(
    session: UpstreamSession,
    lat: float,
    lon: float,
    endpoints: EndpointSettings,
    timeout: float | None = None,
) -> FlowlineReference:
    """
    Position-indexed lookup against NLDI.

    Raises:
        SnapError: NLDI returned no flowline, or one without an identifier
    """
    feature = await fetch_position_flowline(session, lat, lon, base_url=endpoints.nldi, timeout=timeout)
    try:
        reference = _reference_from_feature(feature, lat, lon, "nldi")
    except (ValueError, TypeError, AttributeError) as e:
        raise SnapError(f"NLDI flowline geometry could not be read: {e}") from e
    if reference is None:
        raise SnapError("NLDI flowline has no reach identifier")
    return reference


async def snap_to_flowline(
    session: UpstreamSession,
    lat: float,
    lon: float,
    snapping: SnapSettings | None = None,
    endpoints: EndpointSettings | None = None,
    timeout: float | None = None,
) -> FlowlineReference:
    """
    Snap a point to the stream network.

    Args:
        session: Upstream session
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        snapping: Search radius and maximum snap distance
        endpoints: Service URLs
        timeout: Per-request timeout override in seconds

    Returns:
        FlowlineReference from the fine search, or from the coarse lookup
        if the fine search errored or found nothing in range

    Raises:
        SnapError: Both methods failed
        FetchCancelled: The session's cancel token was set
    """
    snapping = snapping or SnapSettings()
    endpoints = endpoints or EndpointSettings()

    fine_failure = "no flowline within range"
    try:
        reference = await snap_fine(session, lat, lon, snapping, endpoints, timeout)
        if reference is not None:
            logger.info(
                f"Snapped ({lat}, {lon}) to reach {reference.comid} "
                f"{reference.distance_m:.1f} m away via hydrography search"
            )
            return reference
    except FetchCancelled:
        raise
    except UpstreamError as e:
        fine_failure = str(e)
        logger.warning(f"Fine flowline search failed for ({lat}, {lon}): {e}")

    try:
        reference = await snap_coarse(session, lat, lon, endpoints, timeout)
    except FetchCancelled:
        raise
    except UpstreamError as e:
        raise SnapError(f"Could not snap ({lat}, {lon}) to a flowline: fine search: {fine_failure}; NLDI: {e}") from e

    logger.info(f"Snapped ({lat}, {lon}) to reach {reference.comid} via NLDI position lookup")
    return reference
