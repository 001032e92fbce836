"""
Tests for land-cover sampling.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock, patch

import numpy as np
import pytest

from hydropad.config import LandUseSettings
from hydropad.core.geometry import contains_point, outer_ring_polygons, square_buffer
from hydropad.core.landuse import (
    generate_sample_points,
    percentages_from_counts,
    sample_land_use,
    to_land_use_items,
)

FETCH_CLASS = "hydropad.core.landuse.fetch_nlcd_class"


@pytest.fixture
def watershed() -> dict:
    return square_buffer(40.0, -80.0, 1000.0)


class TestGenerateSamplePoints:
    """Tests for rejection sampling inside the watershed."""

    def test_points_fall_inside(self, watershed: dict) -> None:
        """Every generated point lies inside the polygon."""
        points = generate_sample_points(watershed, 25, np.random.default_rng(42))
        polygons = outer_ring_polygons(watershed)

        assert len(points) == 25
        assert all(contains_point(polygons, lon, lat) for lon, lat in points)

    def test_seeded_generator_is_reproducible(self, watershed: dict) -> None:
        """The same seed gives the same points."""
        first = generate_sample_points(watershed, 10, np.random.default_rng(7))
        second = generate_sample_points(watershed, 10, np.random.default_rng(7))

        assert first == second

    def test_attempts_are_bounded(self) -> None:
        """A sliver polygon yields fewer points rather than looping forever."""
        sliver = {
            "type": "FeatureCollection",
            "features": [
                {
                    "type": "Feature",
                    "geometry": {"type": "Polygon", "coordinates": [[[0, 0], [10, 10], [10, 10.0001], [0, 0]]]},
                    "properties": {},
                }
            ],
        }

        points = generate_sample_points(sliver, 20, np.random.default_rng(1))

        assert len(points) < 20

    def test_no_polygon(self) -> None:
        """An empty collection yields no points."""
        assert generate_sample_points({"type": "FeatureCollection", "features": []}, 10) == []


class TestPercentages:
    """Tests for integer percentage aggregation."""

    def test_sum_is_exactly_100(self) -> None:
        """Rounding remainders go to the first category."""
        percentages = percentages_from_counts({"woods_good": 1, "meadow": 1, "impervious": 1})

        assert percentages == {"woods_good": 34, "meadow": 33, "impervious": 33}

    def test_half_rounds_up(self) -> None:
        """Exact halves round up before the remainder is applied."""
        percentages = percentages_from_counts({"a": 1, "b": 7})

        # 12.5 -> 13 and 87.5 -> 88, so the first category gives one back
        assert percentages == {"a": 12, "b": 88}

    def test_no_hits(self) -> None:
        """No classified points gives an empty mapping."""
        assert percentages_from_counts({}) == {}

    def test_items_share_one_soil_group(self) -> None:
        """Land-use items carry the given soil group."""
        items = to_land_use_items({"woods_good": 60, "meadow": 40}, hsg="B")

        assert [(i.category_id, i.hsg, i.percentage) for i in items] == [("woods_good", "B", 60), ("meadow", "B", 40)]


class TestSampleLandUse:
    """Tests for batched classification."""

    async def test_classified_points_become_percentages(self, watershed: dict) -> None:
        """Mapped classes are counted; unmapped and failed points are discarded."""
        classes = [41, 41, 21, 11, None, 41, 82, 41]
        settings = LandUseSettings(sample_count=8, batch_size=3)

        with patch(FETCH_CLASS, new=AsyncMock(side_effect=classes)) as mock_fetch:
            percentages = await sample_land_use(MagicMock(), watershed, settings=settings, rng=np.random.default_rng(3))

        assert mock_fetch.await_count == 8
        # 4 woods, 1 open space, 1 meadow out of 6 classified points; 67 + 17 + 17 overshoots by one
        assert percentages == {"woods_good": 66, "open_space_good": 17, "meadow": 17}
        assert sum(percentages.values()) == 100

    async def test_nothing_classified(self, watershed: dict) -> None:
        """When no point could be classified the result is empty."""
        settings = LandUseSettings(sample_count=5, batch_size=5)

        with patch(FETCH_CLASS, new=AsyncMock(return_value=None)):
            assert await sample_land_use(MagicMock(), watershed, settings=settings) == {}

    async def test_empty_watershed(self) -> None:
        """A watershed without polygons makes no requests."""
        with patch(FETCH_CLASS, new=AsyncMock()) as mock_fetch:
            result = await sample_land_use(MagicMock(), {"type": "FeatureCollection", "features": []})

        assert result == {}
        mock_fetch.assert_not_called()

    async def test_batches_run_concurrently_and_in_sequence(self, watershed: dict) -> None:
        """At most batch_size queries are in flight, and a batch starts only after the previous one resolved."""
        settings = LandUseSettings(sample_count=5, batch_size=2)
        in_flight = 0
        peak = 0
        events: list[tuple[str, int]] = []
        call_index = 0

        async def classify(session, lon, lat, endpoint=None):
            nonlocal in_flight, peak, call_index
            index = call_index
            call_index += 1
            in_flight += 1
            peak = max(peak, in_flight)
            events.append(("start", index))
            await asyncio.sleep(0.01)
            events.append(("end", index))
            in_flight -= 1
            return 41

        with patch(FETCH_CLASS, new=classify):
            percentages = await sample_land_use(MagicMock(), watershed, settings=settings, rng=np.random.default_rng(5))

        assert percentages == {"woods_good": 100}
        assert call_index == 5
        assert peak == 2

        # Batches are [0, 1], [2, 3], [4]: every query of a batch ends before the next batch starts
        batches = [[0, 1], [2, 3], [4]]
        for previous, following in zip(batches, batches[1:]):
            last_end = max(events.index(("end", i)) for i in previous)
            first_start = min(events.index(("start", i)) for i in following)
            assert last_end < first_start
        # Both queries of the first batch were started before either finished
        assert events.index(("start", 1)) < events.index(("end", 0))
