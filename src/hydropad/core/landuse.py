"""
Land-cover sampling inside a watershed.

Draws uniformly random points within the watershed's bounding box, keeps
those inside an outer ring, classifies each against the NLCD raster service
in small concurrent batches, and aggregates the mapped TR-55 categories into
integer percentages summing to 100.
"""

import asyncio
import logging
import math

import numpy as np

from hydropad.config import EndpointSettings, LandUseSettings
from hydropad.core.curve_number import LandUseItem
from hydropad.core.geometry import bounding_box, contains_point, outer_ring_polygons
from hydropad.fetch.http_client import UpstreamSession
from hydropad.services.nlcd import category_for_class, fetch_nlcd_class

logger = logging.getLogger(__name__)

MAX_ATTEMPTS_FACTOR = 10


def generate_sample_points(
    fc: dict,
    count: int,
    rng: np.random.Generator | None = None,
) -> list[tuple[float, float]]:
    """
    Random ``(lon, lat)`` points inside the watershed's outer rings.

    Holes are ignored. At most ``count * 10`` candidates are drawn, so fewer
    than ``count`` points are returned when the polygon covers a small part
    of its bounding box.
    """
    bbox = bounding_box(fc)
    if bbox is None or count <= 0:
        return []
    polygons = outer_ring_polygons(fc)
    if not polygons:
        return []

    rng = rng if rng is not None else np.random.default_rng()
    min_x, min_y, max_x, max_y = bbox

    points: list[tuple[float, float]] = []
    attempts = 0
    while len(points) < count and attempts < count * MAX_ATTEMPTS_FACTOR:
        lon = min_x + rng.random() * (max_x - min_x)
        lat = min_y + rng.random() * (max_y - min_y)
        if contains_point(polygons, lon, lat):
            points.append((lon, lat))
        attempts += 1

    logger.debug(f"Generated {len(points)} sample points in {attempts} attempts")
    return points


def percentages_from_counts(counts: dict[str, int]) -> dict[str, int]:
    """
    Turn category hit counts into integer percentages summing to exactly 100.

    The rounding remainder is added to the first category. Returns an empty
    dict when there are no hits.
    """
    total = sum(counts.values())
    if total == 0:
        return {}

    percentages = {category: int(math.floor(n / total * 100 + 0.5)) for category, n in counts.items()}
    diff = 100 - sum(percentages.values())
    if diff:
        first = next(iter(percentages))
        percentages[first] += diff
    return percentages


async def sample_land_use(
    session: UpstreamSession,
    watershed: dict,
    settings: LandUseSettings | None = None,
    endpoints: EndpointSettings | None = None,
    rng: np.random.Generator | None = None,
) -> dict[str, int]:
    """
    Sample land cover inside a watershed.

    Args:
        session: Upstream session
        watershed: Watershed FeatureCollection
        settings: Sample count and batch size
        endpoints: Service URLs
        rng: Random generator, for reproducible sampling

    Returns:
        Mapping of TR-55 category id to percentage; empty when no point
        could be classified
    """
    settings = settings or LandUseSettings()
    endpoints = endpoints or EndpointSettings()

    points = generate_sample_points(watershed, settings.sample_count, rng)
    if not points:
        logger.warning("No sample points fell inside the watershed")
        return {}

    counts: dict[str, int] = {}
    for start in range(0, len(points), settings.batch_size):
        batch = points[start : start + settings.batch_size]
        classes = await asyncio.gather(
            *(fetch_nlcd_class(session, lon, lat, endpoint=endpoints.nlcd_wms) for lon, lat in batch)
        )
        for nlcd_class in classes:
            category = category_for_class(nlcd_class)
            if category is not None:
                counts[category] = counts.get(category, 0) + 1

    valid = sum(counts.values())
    logger.info(f"Classified {valid} of {len(points)} land-cover samples")
    return percentages_from_counts(counts)


def to_land_use_items(percentages: dict[str, int], hsg: str = "C") -> list[LandUseItem]:
    """Land-use items for a sampled percentage mapping, all in one soil group."""
    return [LandUseItem(category_id=category, hsg=hsg, percentage=pct) for category, pct in percentages.items()]
