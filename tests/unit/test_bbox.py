"""
Unit tests for bounding box parsing, clamping and projection.
"""

import math

import pytest

from lifeline_shared.errors import InvalidBbox, ValidationError
from lifeline_shared.geo import (
    bbox_to_query_param,
    centroid,
    clamp_to_world,
    contains,
    parse_bbox,
    to_web_mercator,
)


class TestParseBbox:
    """Test bbox parsing"""

    @pytest.mark.parametrize(
        "raw",
        [
            "-90.7,32.6,-90.1,33.1",
            "-180,-90,180,90",
            "0,0,0,0",
            "-88.123456,30.5,-88.0001,30.75",
        ],
    )
    def test_query_param_round_trip(self, raw):
        """parse -> serialize -> parse yields the identical tuple"""
        bbox = parse_bbox(raw)
        assert parse_bbox(bbox_to_query_param(bbox)) == bbox

    def test_integral_values_serialize_without_decimal(self):
        assert bbox_to_query_param((-180.0, -90.0, 180.0, 90.0)) == "-180,-90,180,90"

    def test_whitespace_is_tolerated(self):
        assert parse_bbox(" -90.7, 32.6 ,-90.1,33.1 ") == (-90.7, 32.6, -90.1, 33.1)

    def test_accepts_sequence(self):
        assert parse_bbox([1, 2, 3, 4]) == (1.0, 2.0, 3.0, 4.0)

    @pytest.mark.parametrize("raw", ["", "1,2,3", "1,2,3,4,5", "a,b,c,d", "1,2,3,nan", "1,2,inf,4"])
    def test_invalid_values_raise(self, raw):
        with pytest.raises(InvalidBbox):
            parse_bbox(raw)

    def test_invalid_bbox_is_a_validation_error(self):
        """Route handlers map it to 400"""
        with pytest.raises(ValidationError) as exc_info:
            parse_bbox("1,2")
        assert exc_info.value.status_code == 400
        assert exc_info.value.code == "BAD_REQUEST"


class TestClampToWorld:
    """Test coordinate clamping"""

    def test_clamps_out_of_range(self):
        assert clamp_to_world((-999, -999, 999, 999)) == (-180, -90, 180, 90)

    def test_in_range_unchanged(self):
        bbox = (-90.7, 32.6, -90.1, 33.1)
        assert clamp_to_world(bbox) == bbox

    def test_inverted_box_stays_inverted(self):
        """No reordering: min > max passes through"""
        assert clamp_to_world((10, 10, -10, -10)) == (10, 10, -10, -10)


class TestGeometryHelpers:
    def test_centroid(self):
        assert centroid((-10, -20, 10, 20)) == (0, 0)

    def test_contains_is_inclusive(self):
        bbox = (0, 0, 1, 1)
        assert contains(bbox, (0, 0))
        assert contains(bbox, (1, 1))
        assert not contains(bbox, (1.01, 0.5))

    def test_web_mercator_origin(self):
        x, y = to_web_mercator(0, 0)
        assert x == pytest.approx(0)
        assert y == pytest.approx(0, abs=1e-6)

    def test_web_mercator_known_point(self):
        x, y = to_web_mercator(-90, 45)
        assert x == pytest.approx(-10018754.17, rel=1e-6)
        assert y == pytest.approx(5621521.49, rel=1e-6)

    def test_web_mercator_pole_is_finite(self):
        _, y = to_web_mercator(0, 90)
        assert math.isfinite(y)
