"""
Tests for the watershed delineation cascade.

Every upstream client used by the tiers is patched with an AsyncMock at the
name the cascade module imported, so the tests exercise the ordering and
error handling without network access.
"""

from collections.abc import Iterator
from contextlib import ExitStack
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hydropad.config import HydropadConfig
from hydropad.core.delineate import DEFAULT_TIERS, DelineationError, delineate
from hydropad.core.flowline import FlowlineReference
from hydropad.fetch.exceptions import FetchCancelled, FetchError, ShapeError, SnapError

MODULE = "hydropad.core.delineate"


def _basin(source: str) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [
            {
                "type": "Feature",
                "geometry": {
                    "type": "Polygon",
                    "coordinates": [[[-80.01, 39.99], [-80.01, 40.01], [-79.99, 40.01], [-79.99, 39.99], [-80.01, 39.99]]],
                },
                "properties": {"source": source},
            }
        ],
    }


@pytest.fixture
def flowline() -> FlowlineReference:
    return FlowlineReference(
        comid="4487566",
        geometry={"type": "LineString", "coordinates": [[-80.0, 39.99], [-80.0, 40.01]]},
        snapped_lat=40.0,
        snapped_lon=-80.0,
        distance_m=12.5,
        method="hydrography",
    )


@pytest.fixture
def services(flowline: FlowlineReference) -> Iterator[dict[str, AsyncMock]]:
    """Patch every upstream call; by default every provider returns nothing."""
    mocks = {
        "snap_to_flowline": AsyncMock(return_value=flowline),
        "fetch_region_code": AsyncMock(return_value="PA"),
        "fetch_watershed": AsyncMock(return_value=None),
        "fetch_split_catchment": AsyncMock(return_value=None),
        "fetch_basin": AsyncMock(return_value=None),
        "fetch_catchment": AsyncMock(return_value=None),
    }
    with ExitStack() as stack:
        for name, mock in mocks.items():
            stack.enter_context(patch(f"{MODULE}.{name}", new=mock))
        yield mocks


class TestCascadeOrder:
    """Tests for strict tier priority."""

    def test_default_tier_order(self) -> None:
        """Tiers run in a fixed priority order ending in the synthetic buffer."""
        assert [name for name, _ in DEFAULT_TIERS] == ["streamstats", "nldi_split", "nldi_basin", "hydroshare", "synthetic"]

    async def test_streamstats_success_short_circuits(self, services: dict[str, AsyncMock]) -> None:
        """A StreamStats basin is returned and no later tier is called."""
        services["fetch_watershed"].return_value = _basin("streamstats")

        result = await delineate(MagicMock(), 40.0, -80.0)

        assert result.source == "streamstats"
        assert result.comid == "4487566"
        assert result.failures == []
        services["fetch_watershed"].assert_awaited_once()
        assert services["fetch_watershed"].await_args.args[3] == "PA"
        services["fetch_split_catchment"].assert_not_called()
        services["fetch_basin"].assert_not_called()
        services["fetch_catchment"].assert_not_called()

    async def test_falls_through_to_split_catchment(self, services: dict[str, AsyncMock]) -> None:
        """A StreamStats failure moves on to the split catchment at the snapped point."""
        services["fetch_watershed"].side_effect = FetchError("StreamStats responded with 500")
        services["fetch_split_catchment"].return_value = _basin("nldi")

        result = await delineate(MagicMock(), 40.0003, -80.0002)

        assert result.source == "nldi_split"
        assert result.failures == [("streamstats", "StreamStats responded with 500")]
        args = services["fetch_split_catchment"].await_args
        assert args.args[1:3] == (40.0, -80.0)
        assert args.kwargs["comid"] == "4487566"

    async def test_falls_through_to_basin_then_hydroshare(self, services: dict[str, AsyncMock]) -> None:
        """Empty and failing tiers are recorded in order until one succeeds."""
        services["fetch_split_catchment"].side_effect = ShapeError("NLDI split catchment was not a GeoJSON FeatureCollection")
        services["fetch_basin"].return_value = {"type": "FeatureCollection", "features": []}
        services["fetch_catchment"].return_value = _basin("hydroshare")

        result = await delineate(MagicMock(), 40.0, -80.0)

        assert result.source == "hydroshare"
        assert [name for name, _ in result.failures] == ["streamstats", "nldi_split", "nldi_basin"]
        services["fetch_catchment"].assert_awaited_once()
        assert services["fetch_catchment"].await_args.args[1] == "4487566"

    async def test_no_region_skips_streamstats(self, services: dict[str, AsyncMock]) -> None:
        """Outside a StreamStats region the service is never called."""
        services["fetch_region_code"].return_value = None
        services["fetch_basin"].return_value = _basin("nldi")

        result = await delineate(MagicMock(), 40.0, -80.0)

        assert result.source == "nldi_basin"
        services["fetch_watershed"].assert_not_called()


class TestSyntheticFallback:
    """Tests for the last-resort tier."""

    async def test_synthetic_when_everything_fails(self, services: dict[str, AsyncMock]) -> None:
        """When every service fails a square buffer is returned."""
        for name in ("fetch_watershed", "fetch_split_catchment", "fetch_basin", "fetch_catchment"):
            services[name].side_effect = FetchError(f"{name} failed")

        result = await delineate(MagicMock(), 40.0, -80.0)

        assert result.source == "synthetic"
        assert result.is_synthetic
        assert result.basin["features"][0]["properties"]["source"] == "synthetic"
        assert len(result.failures) == 4
        # default half width is 750 m, so about 2.25 km²
        assert result.area_sq_meters == pytest.approx(2.25e6, rel=0.03)

    async def test_snap_failure_skips_reach_tiers(self, services: dict[str, AsyncMock]) -> None:
        """Without a snapped reach the reach-dependent tiers return nothing."""
        services["snap_to_flowline"].side_effect = SnapError("Could not snap")

        result = await delineate(MagicMock(), 40.0, -80.0)

        assert result.source == "synthetic"
        assert result.comid is None
        assert result.flowline is None
        services["fetch_split_catchment"].assert_not_called()
        services["fetch_basin"].assert_not_called()
        services["fetch_catchment"].assert_not_called()

    async def test_exhaustion_raises(self, services: dict[str, AsyncMock]) -> None:
        """With the synthetic tier disabled, exhaustion is an error naming every tier."""
        config = HydropadConfig.model_validate({"delineation": {"synthetic_fallback": False}})
        services["fetch_watershed"].side_effect = FetchError("StreamStats down")

        with pytest.raises(DelineationError) as exc_info:
            await delineate(MagicMock(), 40.0, -80.0, config=config)

        message = str(exc_info.value)
        assert message.startswith("Unable to delineate a basin for (40.0, -80.0).")
        assert "streamstats: StreamStats down" in message
        assert "synthetic: no result" in message


class TestErrors:
    """Tests for input validation and cancellation."""

    @pytest.mark.parametrize(("lat", "lon"), [(91.0, 0.0), (0.0, -181.0), (float("nan"), 0.0)])
    async def test_invalid_coordinates(self, services: dict[str, AsyncMock], lat: float, lon: float) -> None:
        """Out-of-range or non-finite coordinates are rejected before any request."""
        with pytest.raises(ValueError):
            await delineate(MagicMock(), lat, lon)

        services["snap_to_flowline"].assert_not_called()

    async def test_cancellation_propagates(self, services: dict[str, AsyncMock]) -> None:
        """A cancellation inside a tier stops the cascade."""
        services["fetch_watershed"].side_effect = FetchCancelled("cancelled by the caller")

        with pytest.raises(FetchCancelled):
            await delineate(MagicMock(), 40.0, -80.0)

        services["fetch_split_catchment"].assert_not_called()

    async def test_cancellation_during_snap_propagates(self, services: dict[str, AsyncMock]) -> None:
        """A cancellation while snapping is not treated as a snap failure."""
        services["snap_to_flowline"].side_effect = FetchCancelled("cancelled by the caller")

        with pytest.raises(FetchCancelled):
            await delineate(MagicMock(), 40.0, -80.0)

    async def test_custom_tiers(self, services: dict[str, AsyncMock]) -> None:
        """A caller-supplied tier list replaces the default cascade."""

        async def only_tier(ctx):
            return _basin("custom")

        result = await delineate(MagicMock(), 40.0, -80.0, tiers=[("custom", only_tier)])

        assert result.source == "custom"
        services["fetch_watershed"].assert_not_called()
