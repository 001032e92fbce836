"""
Clients for the upstream geospatial and hydrologic services.

Each module wraps one provider and returns data in the common shapes used by
hydropad.core: GeoJSON FeatureCollections tagged with a ``source`` property,
flowline Features, or a parsed RainfallTable.
"""

from .geocoding import fetch_region_code, offline_region_code
from .hydrography import fetch_nearby_flowlines
from .hydroshare import fetch_catchment
from .nlcd import NLCD_TO_TR55, category_for_class, fetch_nlcd_class
from .nldi import fetch_basin, fetch_position_flowline, fetch_split_catchment, get_upstream_flowlines
from .noaa import RainfallRow, RainfallTable, fetch_table, parse_rainfall_text
from .streamstats import fetch_watershed

__all__ = [
    "RainfallTable",
    "RainfallRow",
    "parse_rainfall_text",
    "fetch_table",
    "fetch_watershed",
    "fetch_region_code",
    "offline_region_code",
    "fetch_position_flowline",
    "fetch_split_catchment",
    "fetch_basin",
    "get_upstream_flowlines",
    "fetch_catchment",
    "fetch_nearby_flowlines",
    "fetch_nlcd_class",
    "category_for_class",
    "NLCD_TO_TR55",
]
