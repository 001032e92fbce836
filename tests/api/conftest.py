"""
Shared pytest fixtures for API module tests.

Provides fixtures for testing the FastAPI endpoints with the analysis layer
mocked out, plus canned results for the mocked calls to return.
"""

import os
import tempfile
from collections.abc import Generator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

# The routes module builds its rainfall cache at import time
os.environ.setdefault("HYDROPAD_CACHE_DB", str(Path(tempfile.mkdtemp()) / "api-test.db"))

from fastapi.testclient import TestClient  # noqa: E402

from hydropad.api import routes  # noqa: E402
from hydropad.api.main import create_app  # noqa: E402
from hydropad.core.cache import MemoryStorage  # noqa: E402
from hydropad.core.delineate import WatershedResult  # noqa: E402
from hydropad.core.flowline import FlowlineReference  # noqa: E402
from hydropad.core.pipeline import AnalysisResult  # noqa: E402
from hydropad.core.rainfall import RainfallResult, make_cache  # noqa: E402
from hydropad.core.runoff import compute_runoff  # noqa: E402
from hydropad.services.noaa import RainfallRow, RainfallTable  # noqa: E402


@pytest.fixture
def mock_watershed(square_basin: dict) -> WatershedResult:
    """A delineation produced by the NLDI basin tier."""
    return WatershedResult(
        basin=square_basin,
        source="nldi_basin",
        comid="4487566",
        flowline=FlowlineReference(
            comid="4487566",
            geometry={"type": "LineString", "coordinates": [[-80.0, 39.99], [-80.0, 40.01]]},
            snapped_lat=40.0,
            snapped_lon=-80.0,
            distance_m=25.0,
            method="hydrography",
            name="Nine Mile Run",
        ),
        failures=[("streamstats", "StreamStats responded with 500"), ("nldi_split", "no result")],
    )


@pytest.fixture
def mock_rainfall() -> RainfallResult:
    """A NOAA rainfall table with one unparsed cell."""
    table = RainfallTable(
        aris=["2", "10", "100"],
        rows=[
            RainfallRow("1-hr", {"2": 1.1, "10": 1.6, "100": 2.5}),
            RainfallRow("24-hr", {"2": 2.6, "10": 3.7, "100": float("nan")}),
        ],
    )
    return RainfallResult(table=table, source="noaa")


@pytest.fixture
def mock_analysis(mock_watershed: WatershedResult, mock_rainfall: RainfallResult) -> AnalysisResult:
    """A full analysis using the 24-hr, 10-year depth."""
    area_acres = mock_watershed.area_acres
    return AnalysisResult(
        lat=40.0,
        lon=-80.0,
        watershed=mock_watershed,
        area_sq_meters=mock_watershed.area_sq_meters,
        area_acres=area_acres,
        rainfall=mock_rainfall,
        duration="24-hr",
        ari="10",
        depth_in=3.7,
        intensity_in_hr=3.7 / 24,
        cn=80,
        runoff=compute_runoff(3.7, 3.7 / 24, 80, area_acres),
        land_use={"woods_good": 60, "meadow": 40},
    )


@pytest.fixture
def test_client(
    mock_watershed: WatershedResult,
    mock_rainfall: RainfallResult,
    mock_analysis: AnalysisResult,
) -> Generator[TestClient, None, None]:
    """
    Create a FastAPI TestClient with mocked dependencies.

    Patches:
    - delineate_watershed: Returns mock_watershed
    - fetch_rainfall: Returns mock_rainfall
    - run_analysis: Returns mock_analysis
    - sample_land_use: Returns a two-category mapping
    - get_upstream_flowlines: Returns an empty FeatureCollection

    Also resets the module-level rainfall cache for isolation.
    """
    with (
        patch("hydropad.api.routes.delineate_watershed", new=AsyncMock(return_value=mock_watershed)),
        patch("hydropad.api.routes.fetch_rainfall", new=AsyncMock(return_value=mock_rainfall)),
        patch("hydropad.api.routes.run_analysis", new=AsyncMock(return_value=mock_analysis)),
        patch(
            "hydropad.api.routes.sample_land_use",
            new=AsyncMock(return_value={"woods_good": 50, "impervious": 50}),
        ),
        patch(
            "hydropad.api.routes.get_upstream_flowlines",
            new=AsyncMock(return_value={"type": "FeatureCollection", "features": []}),
        ),
    ):
        # Reset module-level state for test isolation
        routes.rainfall_cache = make_cache(routes.config.rainfall, storage=MemoryStorage())

        app = create_app()
        yield TestClient(app)
