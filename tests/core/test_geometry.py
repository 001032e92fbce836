"""
Tests for GeoJSON geometry helpers.
"""

import pytest

from hydropad.core.geometry import (
    bounding_box,
    compute_area_acres,
    compute_area_sq_meters,
    contains_point,
    extract_comid,
    outer_ring_polygons,
    polygon_features,
    square_buffer,
    tag_collection,
)

RING_WITH_HOLE = {
    "type": "Polygon",
    "coordinates": [
        [[0.0, 0.0], [0.0, 1.0], [1.0, 1.0], [1.0, 0.0], [0.0, 0.0]],
        [[0.4, 0.4], [0.6, 0.4], [0.6, 0.6], [0.4, 0.6], [0.4, 0.4]],
    ],
}


def _fc(*geometries) -> dict:
    return {
        "type": "FeatureCollection",
        "features": [{"type": "Feature", "geometry": g, "properties": {}} for g in geometries],
    }


class TestSquareBuffer:
    """Tests for the synthetic square buffer."""

    def test_buffer_is_centred_polygon(self) -> None:
        """The buffer is one closed Polygon around the point."""
        fc = square_buffer(40.0, -80.0, 500.0)

        feature = fc["features"][0]
        ring = feature["geometry"]["coordinates"][0]
        assert feature["geometry"]["type"] == "Polygon"
        assert feature["properties"]["source"] == "synthetic"
        assert ring[0] == ring[-1]
        min_lon, min_lat, max_lon, max_lat = bounding_box(fc)
        assert (min_lon + max_lon) / 2 == pytest.approx(-80.0)
        assert (min_lat + max_lat) / 2 == pytest.approx(40.0)

    def test_buffer_area(self) -> None:
        """A 500 m half-width gives roughly a 1 km² square."""
        area = compute_area_sq_meters(square_buffer(40.0, -80.0, 500.0))

        assert 0 < area < 5e6
        assert area == pytest.approx(1e6, rel=0.02)

    def test_buffer_at_pole_does_not_divide_by_zero(self) -> None:
        """At the pole the longitude span collapses instead of failing."""
        fc = square_buffer(90.0, 0.0, 100.0)

        assert fc["features"][0]["geometry"]["type"] == "Polygon"

    @pytest.mark.parametrize("lat", [90.0, 89.9999, 89.995, -90.0, -89.9999])
    def test_polar_buffer_has_positive_area(self, lat: float) -> None:
        """Near the poles the ring stays off the pole and keeps a real area."""
        fc = square_buffer(lat, 10.0, 500.0)

        min_lon, min_lat, max_lon, max_lat = bounding_box(fc)
        assert -90 < min_lat < max_lat < 90
        assert max_lon - min_lon <= 180
        assert 0 < compute_area_sq_meters(fc) < 5e6

    def test_buffer_away_from_poles_is_not_shifted(self) -> None:
        """Latitudes short of the polar margin keep the square centred on the point."""
        min_lon, min_lat, max_lon, max_lat = bounding_box(square_buffer(89.9, 10.0, 500.0))

        assert (min_lat + max_lat) / 2 == pytest.approx(89.9)


class TestArea:
    """Tests for geodesic area."""

    def test_null_geometry_is_zero(self) -> None:
        """Features without geometry contribute nothing."""
        fc = {"type": "FeatureCollection", "features": [{"type": "Feature", "geometry": None, "properties": {}}]}

        assert compute_area_sq_meters(fc) == 0.0

    def test_holes_are_subtracted(self) -> None:
        """A polygon with a hole is smaller than its outer ring."""
        outer_only = {"type": "Polygon", "coordinates": [RING_WITH_HOLE["coordinates"][0]]}

        assert compute_area_sq_meters(_fc(RING_WITH_HOLE)) < compute_area_sq_meters(_fc(outer_only))

    def test_acres(self) -> None:
        """Acres use the square-meter conversion factor."""
        fc = square_buffer(40.0, -80.0, 500.0)

        assert compute_area_acres(fc) == pytest.approx(compute_area_sq_meters(fc) * 0.000247105)

    def test_ring_orientation_does_not_matter(self) -> None:
        """Clockwise and counter-clockwise rings give the same positive area."""
        ring = RING_WITH_HOLE["coordinates"][0]
        ccw = {"type": "Polygon", "coordinates": [list(reversed(ring))]}
        cw = {"type": "Polygon", "coordinates": [ring]}

        assert compute_area_sq_meters(_fc(cw)) == pytest.approx(compute_area_sq_meters(_fc(ccw)))


class TestTagging:
    """Tests for provider tagging."""

    def test_non_polygons_are_dropped(self) -> None:
        """Only Polygon and MultiPolygon features survive."""
        fc = _fc(RING_WITH_HOLE, {"type": "Point", "coordinates": [0, 0]}, None)

        tagged = tag_collection(fc, "nldi", comid="123")

        assert len(tagged["features"]) == 1
        assert tagged["features"][0]["properties"] == {"comid": "123", "source": "nldi"}

    def test_feature_comid_wins_over_fallback(self) -> None:
        """A feature's own identifier is kept."""
        fc = {
            "type": "FeatureCollection",
            "features": [{"type": "Feature", "geometry": RING_WITH_HOLE, "properties": {"FEATUREID": 42}}],
        }

        tagged = tag_collection(fc, "hydroshare", comid="999")

        assert tagged["features"][0]["properties"]["comid"] == "42"

    @pytest.mark.parametrize(
        ("properties", "expected"),
        [
            ({"identifier": "4487566"}, "4487566"),
            ({"comid": 4487566}, "4487566"),
            ({"featureId": "7"}, "7"),
            ({"COMID": 8}, "8"),
            ({"comid": ""}, None),
            ({}, None),
            (None, None),
        ],
    )
    def test_extract_comid(self, properties, expected) -> None:
        """Identifiers are found under provider-specific names."""
        assert extract_comid(properties) == expected


class TestPointInPolygon:
    """Tests for bounding boxes and outer-ring containment."""

    def test_bounding_box(self) -> None:
        """The box spans every outer ring."""
        assert bounding_box(_fc(RING_WITH_HOLE)) == (0.0, 0.0, 1.0, 1.0)
        assert bounding_box(_fc()) is None

    def test_holes_are_ignored_for_containment(self) -> None:
        """A point inside a hole still counts as inside the outer ring."""
        polygons = outer_ring_polygons(_fc(RING_WITH_HOLE))

        assert contains_point(polygons, 0.5, 0.5)
        assert contains_point(polygons, 0.1, 0.1)
        assert not contains_point(polygons, 1.5, 0.5)

    def test_multipolygon(self) -> None:
        """Every part of a MultiPolygon is considered."""
        multi = {
            "type": "MultiPolygon",
            "coordinates": [
                [[[0, 0], [0, 1], [1, 1], [1, 0], [0, 0]]],
                [[[5, 5], [5, 6], [6, 6], [6, 5], [5, 5]]],
            ],
        }
        fc = _fc(multi)

        assert len(polygon_features(fc)) == 1
        assert contains_point(outer_ring_polygons(fc), 5.5, 5.5)
        assert bounding_box(fc) == (0, 0, 6, 6)
