"""
Tests for flowline snapping.
"""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from hydropad.config import SnapSettings
from hydropad.core.flowline import closest_flowline, nearest_point_on_line, snap_to_flowline
from hydropad.fetch.exceptions import FetchCancelled, FetchError, SnapError


def _line(comid, lon: float, name: str | None = None) -> dict:
    """North-south flowline at a fixed longitude around latitude 40."""
    properties = {"comid": comid} if comid is not None else {}
    if name:
        properties["gnis_name"] = name
    return {
        "type": "Feature",
        "geometry": {"type": "LineString", "coordinates": [[lon, 39.99], [lon, 40.01]]},
        "properties": properties,
    }


class TestNearestPoint:
    """Tests for point-to-line projection."""

    def test_projection_onto_line(self) -> None:
        """The snapped point lies on the line at the point's latitude."""
        snapped_lat, snapped_lon, distance = nearest_point_on_line(_line(1, -80.0)["geometry"], 40.0, -79.999)

        assert snapped_lat == pytest.approx(40.0)
        assert snapped_lon == pytest.approx(-80.0)
        # 0.001 degrees of longitude at 40N is about 85 m
        assert distance == pytest.approx(85.4, abs=1.0)


class TestClosestFlowline:
    """Tests for ranking candidate segments."""

    def test_nearest_identified_segment_wins(self) -> None:
        """The closest segment with a COMID is chosen."""
        features = [_line(1, -80.002), _line(2, -80.0005, name="Nine Mile Run"), _line(None, -80.0001)]

        reference = closest_flowline(features, 40.0, -80.0, max_distance_m=500)

        assert reference.comid == "2"
        assert reference.name == "Nine Mile Run"
        assert reference.method == "hydrography"

    def test_distance_limit(self) -> None:
        """Segments beyond the maximum snap distance are ignored."""
        assert closest_flowline([_line(1, -80.01)], 40.0, -80.0, max_distance_m=100) is None

    def test_malformed_segments_are_skipped(self) -> None:
        """A segment with unreadable geometry does not abort the search."""
        broken = {"type": "Feature", "geometry": {"type": "LineString", "coordinates": []}, "properties": {"comid": 9}}

        reference = closest_flowline([broken, _line(3, -80.001)], 40.0, -80.0, max_distance_m=500)

        assert reference.comid == "3"

    def test_to_feature(self) -> None:
        """The reference serializes as a tagged GeoJSON Feature."""
        reference = closest_flowline([_line(3, -80.001)], 40.0, -80.0, max_distance_m=500)

        feature = reference.to_feature()

        assert feature["properties"]["comid"] == "3"
        assert feature["properties"]["source"] == "hydrography"
        assert feature["properties"]["distance_m"] == reference.distance_m


class TestSnapToFlowline:
    """Tests for the fine-then-coarse snapping strategy."""

    async def test_fine_search_wins(self) -> None:
        """A segment in range from the WFS is used without asking NLDI."""
        with (
            patch("hydropad.core.flowline.fetch_nearby_flowlines", new=AsyncMock(return_value=[_line(5, -80.001)])),
            patch("hydropad.core.flowline.fetch_position_flowline", new=AsyncMock()) as mock_position,
        ):
            reference = await snap_to_flowline(MagicMock(), 40.0, -80.0)

        assert reference.comid == "5"
        mock_position.assert_not_called()

    async def test_falls_back_to_nldi_when_nothing_in_range(self) -> None:
        """With no segment in range the NLDI position lookup is used."""
        nldi_feature = _line("4487566", -80.0)
        with (
            patch("hydropad.core.flowline.fetch_nearby_flowlines", new=AsyncMock(return_value=[])),
            patch("hydropad.core.flowline.fetch_position_flowline", new=AsyncMock(return_value=nldi_feature)),
        ):
            reference = await snap_to_flowline(MagicMock(), 40.0, -80.0001, snapping=SnapSettings())

        assert reference.comid == "4487566"
        assert reference.method == "nldi"

    async def test_falls_back_to_nldi_when_wfs_fails(self) -> None:
        """A WFS error is logged and the coarse lookup still runs."""
        with (
            patch("hydropad.core.flowline.fetch_nearby_flowlines", new=AsyncMock(side_effect=FetchError("WFS down"))),
            patch("hydropad.core.flowline.fetch_position_flowline", new=AsyncMock(return_value=_line("7", -80.0))),
        ):
            reference = await snap_to_flowline(MagicMock(), 40.0, -80.0)

        assert reference.comid == "7"

    async def test_both_methods_fail(self) -> None:
        """When both fail the error names both reasons."""
        with (
            patch("hydropad.core.flowline.fetch_nearby_flowlines", new=AsyncMock(side_effect=FetchError("WFS down"))),
            patch(
                "hydropad.core.flowline.fetch_position_flowline",
                new=AsyncMock(side_effect=SnapError("NLDI did not return a flowline")),
            ),
        ):
            with pytest.raises(SnapError) as exc_info:
                await snap_to_flowline(MagicMock(), 40.0, -80.0)

        assert "WFS down" in str(exc_info.value)
        assert "NLDI did not return a flowline" in str(exc_info.value)

    async def test_cancellation_propagates(self) -> None:
        """Cancellation during the fine search is not converted into a fallback."""
        with (
            patch("hydropad.core.flowline.fetch_nearby_flowlines", new=AsyncMock(side_effect=FetchCancelled("stop"))),
            patch("hydropad.core.flowline.fetch_position_flowline", new=AsyncMock()) as mock_position,
        ):
            with pytest.raises(FetchCancelled):
                await snap_to_flowline(MagicMock(), 40.0, -80.0)

        mock_position.assert_not_called()
