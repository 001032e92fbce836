"""
API routes for the hydropad service.
"""

import time

from fastapi import APIRouter, Query, Response

from hydropad import __version__
from hydropad.api.deps import build_rainfall_cache, get_config
from hydropad.api.exceptions import APIErrorCode, APIException, error_code_for
from hydropad.api.logging_config import log_request, setup_logging
from hydropad.api.models import (
    AnalyzeRequest,
    AnalyzeResponse,
    DelineateResponse,
    LandUseItemModel,
    LandUseRequest,
    LandUseResponse,
    PointRequest,
    RainfallResponse,
    SwmmExportRequest,
    analysis_to_response,
    rainfall_to_response,
    watershed_to_response,
)
from hydropad.core.curve_number import composite_cn
from hydropad.core.delineate import delineate as delineate_watershed
from hydropad.core.geometry import polygon_features
from hydropad.core.landuse import sample_land_use, to_land_use_items
from hydropad.core.pipeline import analyze as run_analysis
from hydropad.core.rainfall import SelectionError, fetch_rainfall
from hydropad.core.swmm import format_swmm_inp, subcatchment_from_watershed
from hydropad.fetch.http_client import open_session
from hydropad.services.nldi import get_upstream_flowlines

router = APIRouter()
config = get_config()
rainfall_cache = build_rainfall_cache(config)
api_logger = setup_logging()


def _log_error(endpoint: str, lat: float | None, lon: float | None, start_time: float, exc: Exception) -> None:
    log_request(
        api_logger,
        endpoint=endpoint,
        lat=lat,
        lon=lon,
        status="ERROR",
        duration_seconds=time.time() - start_time,
        error_code=error_code_for(exc).value,
    )


def _log_success(endpoint: str, lat: float | None, lon: float | None, start_time: float, source: str | None) -> None:
    log_request(
        api_logger,
        endpoint=endpoint,
        lat=lat,
        lon=lon,
        status="SUCCESS",
        duration_seconds=time.time() - start_time,
        source=source,
    )


@router.post("/delineate", response_model=DelineateResponse)
async def delineate(request: PointRequest) -> DelineateResponse:
    """
    Delineate the watershed draining to the given point.

    Returns the basin FeatureCollection tagged with the provider tier that
    produced it, the snapped reach and the basin area.
    """
    start_time = time.time()
    try:
        async with open_session(config.fetch) as session:
            result = await delineate_watershed(session, request.lat, request.lon, config=config)
    except Exception as e:
        _log_error("delineate", request.lat, request.lon, start_time, e)
        raise

    _log_success("delineate", request.lat, request.lon, start_time, result.source)
    return watershed_to_response(result)


@router.get("/rainfall", response_model=RainfallResponse)
async def rainfall(
    lat: float = Query(ge=-90, le=90, description="Latitude in decimal degrees"),
    lon: float = Query(ge=-180, le=180, description="Longitude in decimal degrees"),
) -> RainfallResponse:
    """
    Precipitation-frequency table for a point.

    Falls back to a synthetic table, then to a stale cached table, when NOAA
    is unavailable.
    """
    start_time = time.time()
    try:
        async with open_session(config.fetch) as session:
            result = await fetch_rainfall(
                session, lat, lon, cache=rainfall_cache, settings=config.rainfall, endpoints=config.endpoints
            )
    except Exception as e:
        _log_error("rainfall", lat, lon, start_time, e)
        raise

    _log_success("rainfall", lat, lon, start_time, result.source + (" (stale)" if result.stale else ""))
    return rainfall_to_response(result)


@router.post("/landuse", response_model=LandUseResponse)
async def landuse(request: LandUseRequest) -> LandUseResponse:
    """
    Sample NLCD land cover inside a watershed.

    Returns TR-55 category percentages, land-use items in the default soil
    group, and the composite curve number (None when nothing was classified).
    """
    start_time = time.time()
    if not polygon_features(request.watershed):
        raise APIException(
            APIErrorCode.NO_WATERSHED,
            "Watershed has no Polygon or MultiPolygon features to sample",
            http_status=422,
        )

    try:
        async with open_session(config.fetch) as session:
            percentages = await sample_land_use(
                session, request.watershed, settings=config.landuse, endpoints=config.endpoints
            )
    except Exception as e:
        _log_error("landuse", None, None, start_time, e)
        raise

    items = to_land_use_items(percentages, hsg=config.landuse.default_hsg)
    _log_success("landuse", None, None, start_time, "nlcd")
    return LandUseResponse(
        percentages=percentages,
        items=[LandUseItemModel(**vars(item)) for item in items],
        composite_cn=composite_cn(items, None),
    )


@router.post("/analyze", response_model=AnalyzeResponse)
async def analyze(request: AnalyzeRequest) -> AnalyzeResponse:
    """
    Run the full analysis: delineation, rainfall, optional land use, runoff.
    """
    start_time = time.time()
    try:
        async with open_session(config.fetch) as session:
            result = await run_analysis(
                session,
                request.lat,
                request.lon,
                config=config,
                cache=rainfall_cache,
                duration=request.duration,
                ari=request.ari,
                cn=request.cn,
                sample_landuse=request.sample_land_use,
            )
    except SelectionError as e:
        _log_error("analyze", request.lat, request.lon, start_time, e)
        raise APIException(APIErrorCode.INVALID_SELECTION, str(e), http_status=400) from e
    except ValueError as e:
        _log_error("analyze", request.lat, request.lon, start_time, e)
        raise APIException(APIErrorCode.INVALID_COORDINATES, str(e), http_status=400) from e
    except Exception as e:
        _log_error("analyze", request.lat, request.lon, start_time, e)
        raise

    _log_success("analyze", request.lat, request.lon, start_time, result.watershed.source)
    return analysis_to_response(result)


@router.post("/export/swmm")
async def export_swmm(request: SwmmExportRequest) -> Response:
    """
    Export a single-subcatchment SWMM input file.

    Returns:
        ``text/plain`` attachment named ``watershed.inp``
    """
    subcatchment = subcatchment_from_watershed(request.area_acres, request.cn)
    return Response(
        content=format_swmm_inp(subcatchment),
        media_type="text/plain",
        headers={"Content-Disposition": 'attachment; filename="watershed.inp"'},
    )


@router.get("/flowlines/{comid}/upstream")
async def upstream_flowlines(comid: int, distance_km: float = Query(default=25, gt=0, le=500)) -> dict:
    """Upstream tributary flowlines of a reach, as a GeoJSON FeatureCollection."""
    start_time = time.time()
    try:
        async with open_session(config.fetch) as session:
            fc = await get_upstream_flowlines(session, comid, distance_km=distance_km, base_url=config.endpoints.nldi)
    except Exception as e:
        _log_error("upstream", None, None, start_time, e)
        raise

    _log_success("upstream", None, None, start_time, "nldi")
    return fc


@router.get("/health")
async def health() -> dict:
    """
    Health check endpoint.

    Returns API status, version, and configuration.
    """
    return {
        "status": "healthy",
        "version": __version__,
        "proxy_base": config.fetch.proxy_base,
        "rainfall_cache_entries": len(rainfall_cache),
    }
