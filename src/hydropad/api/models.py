"""
Pydantic models for the hydropad API request/response schemas.

This module defines the data models used for API communication, including
request validation and response serialization. All models use Pydantic v2
for data validation and serialization.
"""

import math

from pydantic import BaseModel, Field

from hydropad.core.delineate import WatershedResult
from hydropad.core.pipeline import AnalysisResult
from hydropad.core.rainfall import RainfallResult


def _finite_or_none(value: float | None) -> float | None:
    if value is None or not math.isfinite(value):
        return None
    return value


class PointRequest(BaseModel):
    """Request model for point-based operations."""

    lat: float = Field(ge=-90, le=90, description="Latitude in decimal degrees")
    lon: float = Field(ge=-180, le=180, description="Longitude in decimal degrees")


class AnalyzeRequest(PointRequest):
    """Request model for the full analysis."""

    duration: str | None = Field(default=None, description="Duration label, e.g. '24-hr'")
    ari: str | None = Field(default=None, description="Average recurrence interval in years")
    cn: float | None = Field(default=None, gt=0, le=100, description="Curve number override")
    sample_land_use: bool = Field(default=False, description="Sample NLCD land cover for a composite CN")


class LandUseRequest(BaseModel):
    """Request model for land-cover sampling."""

    watershed: dict = Field(description="Watershed GeoJSON FeatureCollection")


class SwmmExportRequest(BaseModel):
    """Request model for SWMM export."""

    area_acres: float = Field(ge=0, description="Subcatchment area in acres")
    cn: float = Field(gt=0, le=100, description="Curve number")


class FlowlineInfo(BaseModel):
    comid: str
    method: str
    snapped_lat: float
    snapped_lon: float
    distance_m: float
    name: str | None = None
    feature: dict


class DelineateResponse(BaseModel):
    """Success response for watershed delineation."""

    status: str = "success"
    source: str
    comid: str | None = None
    synthetic: bool
    area_sq_meters: float
    area_acres: float
    watershed: dict
    flowline: FlowlineInfo | None = None


class RainfallResponse(BaseModel):
    """Rainfall table with its provenance."""

    status: str = "success"
    source: str
    stale: bool
    aris: list[str]
    durations: list[str]
    table: dict


class LandUseItemModel(BaseModel):
    id: str
    category_id: str
    hsg: str
    percentage: float


class LandUseResponse(BaseModel):
    status: str = "success"
    percentages: dict[str, int]
    items: list[LandUseItemModel]
    composite_cn: float | None = None


class RunoffModel(BaseModel):
    runoff_depth_in: float
    runoff_volume_acft: float
    runoff_coefficient: float
    peak_flow_cfs: float


class AnalyzeResponse(BaseModel):
    """Full pipeline result."""

    status: str = "success"
    delineation: DelineateResponse
    rainfall: RainfallResponse
    duration: str
    ari: str
    depth_in: float | None
    intensity_in_hr: float | None
    cn: float
    runoff: RunoffModel
    land_use: dict[str, int]


class ErrorResponse(BaseModel):
    """Error response for failed requests."""

    status: str = "error"
    error_code: str
    error_message: str


def watershed_to_response(result: WatershedResult) -> DelineateResponse:
    """
    Convert a WatershedResult dataclass to a DelineateResponse.

    Args:
        result: The cascade result

    Returns:
        DelineateResponse with the GeoJSON FeatureCollection and area
    """
    flowline = None
    if result.flowline is not None:
        flowline = FlowlineInfo(
            comid=result.flowline.comid,
            method=result.flowline.method,
            snapped_lat=result.flowline.snapped_lat,
            snapped_lon=result.flowline.snapped_lon,
            distance_m=result.flowline.distance_m,
            name=result.flowline.name,
            feature=result.flowline.to_feature(),
        )

    return DelineateResponse(
        source=result.source,
        comid=result.comid,
        synthetic=result.is_synthetic,
        area_sq_meters=result.area_sq_meters,
        area_acres=result.area_acres,
        watershed=result.basin,
        flowline=flowline,
    )


def rainfall_to_response(result: RainfallResult) -> RainfallResponse:
    return RainfallResponse(
        source=result.source,
        stale=result.stale,
        aris=list(result.table.aris),
        durations=result.table.durations(),
        table=result.table.to_dict(),
    )


def analysis_to_response(result: AnalysisResult) -> AnalyzeResponse:
    delineation = watershed_to_response(result.watershed)
    return AnalyzeResponse(
        delineation=delineation,
        rainfall=rainfall_to_response(result.rainfall),
        duration=result.duration,
        ari=result.ari,
        depth_in=_finite_or_none(result.depth_in),
        intensity_in_hr=_finite_or_none(result.intensity_in_hr),
        cn=result.cn,
        runoff=RunoffModel(
            runoff_depth_in=result.runoff.runoff_depth_in,
            runoff_volume_acft=result.runoff.runoff_volume_acft,
            runoff_coefficient=result.runoff.runoff_coefficient,
            peak_flow_cfs=result.runoff.peak_flow_cfs,
        ),
        land_use=result.land_use,
    )
