"""
GeoJSON geometry helpers for watershed feature collections.

Provides the small set of geometric operations the pipeline needs:
- Filtering and tagging Polygon/MultiPolygon features by provider
- Geodesic area on the WGS84 ellipsoid
- A synthetic square buffer around a point
- Bounding boxes and outer-ring point-in-polygon tests for sampling
"""

import logging
import math
from typing import Any

import pyproj
from shapely.geometry import Point, Polygon, shape

logger = logging.getLogger(__name__)

SQ_METERS_TO_ACRES = 0.000247105
METERS_PER_DEGREE_LAT = 111_320.0
POLYGON_TYPES = ("Polygon", "MultiPolygon")
MAX_DELTA_LON = 90.0

_GEOD = pyproj.Geod(ellps="WGS84")


def polygon_features(fc: dict) -> list[dict]:
    """Features of a collection with a non-null Polygon or MultiPolygon geometry."""
    features = []
    for feature in fc.get("features") or []:
        if not isinstance(feature, dict):
            continue
        geometry = feature.get("geometry")
        if isinstance(geometry, dict) and geometry.get("type") in POLYGON_TYPES and geometry.get("coordinates"):
            features.append(feature)
    return features


def tag_collection(fc: dict, source: str, comid: str | None = None) -> dict:
    """
    Keep only polygonal features and tag each with its provider.

    Args:
        fc: Provider FeatureCollection
        source: Provider tag stored in each feature's ``source`` property
        comid: Reach identifier used when a feature carries none of its own

    Returns:
        New FeatureCollection; empty when the provider returned no polygons
    """
    features = []
    for feature in polygon_features(fc):
        properties = dict(feature.get("properties") or {})
        feature_comid = extract_comid(properties) or comid
        if feature_comid is not None:
            properties["comid"] = feature_comid
        properties["source"] = source
        features.append({"type": "Feature", "geometry": feature["geometry"], "properties": properties})
    return {"type": "FeatureCollection", "features": features}


def extract_comid(properties: Any) -> str | None:
    """Pull a reach identifier out of provider-specific property names."""
    if not isinstance(properties, dict):
        return None
    for key in ("identifier", "comid", "featureid", "featureId", "FEATUREID", "COMID"):
        value = properties.get(key)
        if value is not None and value != "":
            return str(value)
    return None


def compute_area_sq_meters(fc: dict) -> float:
    """
    Calculate the geodesic area of all polygonal features in m².

    Holes are subtracted. Features with null or non-polygonal geometry are
    ignored rather than raising.
    """
    total = 0.0
    for feature in polygon_features(fc):
        try:
            geom = shape(feature["geometry"])
        except (ValueError, TypeError, AttributeError) as e:
            logger.warning(f"Skipping malformed geometry in area computation: {e}")
            continue
        area, _ = _GEOD.geometry_area_perimeter(geom)
        total += abs(area)
    return max(0.0, total)


def compute_area_acres(fc: dict) -> float:
    """Area of all polygonal features in acres."""
    return compute_area_sq_meters(fc) * SQ_METERS_TO_ACRES


def square_buffer(lat: float, lon: float, half_size_m: float, source: str = "synthetic") -> dict:
    """
    Build a square polygon of a given half-width centred on a point.

    Within two half-widths of a pole the square is shifted toward the
    equator, so its poleward edge stays one half-width short of the pole.

    Args:
        lat: Latitude in decimal degrees
        lon: Longitude in decimal degrees
        half_size_m: Half of the square's side length in meters
        source: Provider tag written to the feature

    Returns:
        FeatureCollection holding one Polygon feature
    """
    delta_lat = half_size_m / METERS_PER_DEGREE_LAT
    # Keep the ring off the pole
    limit = max(0.0, 90.0 - 2 * delta_lat)
    centre_lat = max(-limit, min(limit, lat))
    meters_per_degree_lon = math.cos(math.radians(centre_lat)) * METERS_PER_DEGREE_LAT
    delta_lon = half_size_m / meters_per_degree_lon if meters_per_degree_lon > 1e-9 else MAX_DELTA_LON
    delta_lon = min(delta_lon, MAX_DELTA_LON)

    north, south = centre_lat + delta_lat, centre_lat - delta_lat
    east, west = lon + delta_lon, lon - delta_lon
    ring = [[west, south], [west, north], [east, north], [east, south], [west, south]]

    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {"type": "Polygon", "coordinates": [ring]},
                "properties": {"source": source, "notes": "Square buffer around input point"},
            }
        ],
    }


def _outer_rings(geometry: dict) -> list[list]:
    if geometry["type"] == "Polygon":
        return [geometry["coordinates"][0]]
    return [polygon[0] for polygon in geometry["coordinates"] if polygon]


def bounding_box(fc: dict) -> tuple[float, float, float, float] | None:
    """
    Bounding box ``(min_lon, min_lat, max_lon, max_lat)`` of all outer rings.

    Returns None when the collection has no polygonal geometry.
    """
    xs: list[float] = []
    ys: list[float] = []
    for feature in polygon_features(fc):
        for ring in _outer_rings(feature["geometry"]):
            for x, y, *_ in ring:
                xs.append(x)
                ys.append(y)
    if not xs:
        return None
    return min(xs), min(ys), max(xs), max(ys)


def outer_ring_polygons(fc: dict) -> list[Polygon]:
    """Shapely polygons built from outer rings only; holes are dropped."""
    polygons = []
    for feature in polygon_features(fc):
        for ring in _outer_rings(feature["geometry"]):
            if len(ring) >= 4:
                polygons.append(Polygon([(x, y) for x, y, *_ in ring]))
    return polygons


def contains_point(polygons: list[Polygon], lon: float, lat: float) -> bool:
    """True if the point lies inside any of the given outer-ring polygons."""
    point = Point(lon, lat)
    return any(polygon.contains(point) for polygon in polygons)
