"""
Core watershed analysis for hydropad.

This package contains:
- GeoJSON geometry helpers and geodesic area (geometry)
- Flowline snapping (flowline)
- The watershed delineation cascade (delineate)
- The namespaced TTL cache (cache)
- Rainfall lookup with synthetic and stale-cache fallbacks (rainfall)
- Land-cover sampling (landuse)
- TR-55 curve numbers, runoff formulas and SWMM export
- The end-to-end analysis pipeline (pipeline)

Only the modules without upstream-service dependencies are re-exported here;
import flowline, delineate, rainfall, landuse and pipeline from their modules.
"""

from .cache import MemoryStorage, SqliteStorage, TableCache
from .curve_number import TR55_CATEGORIES, LandUseItem, composite_cn, get_cn
from .geometry import compute_area_acres, compute_area_sq_meters, square_buffer
from .runoff import RunoffResult, compute_runoff, rational_peak_cfs, runoff_depth_cn, runoff_volume_acft
from .swmm import SwmmSubcatchment, format_swmm_inp, subcatchment_from_watershed, write_swmm_inp

__all__ = [
    # Cache
    "TableCache",
    "SqliteStorage",
    "MemoryStorage",
    # Curve numbers
    "TR55_CATEGORIES",
    "LandUseItem",
    "get_cn",
    "composite_cn",
    # Geometry
    "compute_area_sq_meters",
    "compute_area_acres",
    "square_buffer",
    # Runoff
    "RunoffResult",
    "compute_runoff",
    "runoff_depth_cn",
    "runoff_volume_acft",
    "rational_peak_cfs",
    # SWMM export
    "SwmmSubcatchment",
    "subcatchment_from_watershed",
    "format_swmm_inp",
    "write_swmm_inp",
]
