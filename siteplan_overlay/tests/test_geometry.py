from __future__ import annotations

import math

import pytest

from siteplan_overlay.geometry import (
    Affine,
    BoundingBox,
    bounding_box_of,
    format_points,
    parse_point_token,
    parse_points,
)


def test_bounding_box_skips_non_finite_points():
    points = [(0, 0), (10, 5), (math.nan, 3), (math.inf, 1), ("2", "-4"), ("x", 9)]
    box = bounding_box_of(points)
    assert (box.min_x, box.min_y, box.max_x, box.max_y) == (0.0, -4.0, 10.0, 5.0)


@pytest.mark.parametrize(
    "points",
    [
        [(3.5, 2.0)],
        [(0, 0), (1, 1), (-2, 7.5), (4, -3)],
        [(-100.25, 50), (math.nan, 0), (20, 20), (20, -1e6)],
    ],
)
def test_bounding_box_contains_points_and_touches_each_edge(points):
    box = bounding_box_of(points)
    finite = [(float(x), float(y)) for x, y in points if math.isfinite(x) and math.isfinite(y)]
    for x, y in finite:
        assert box.min_x <= x <= box.max_x
        assert box.min_y <= y <= box.max_y
    assert any(x == box.min_x for x, _ in finite)
    assert any(x == box.max_x for x, _ in finite)
    assert any(y == box.min_y for _, y in finite)
    assert any(y == box.max_y for _, y in finite)


def test_bounding_box_of_nothing_finite_is_undefined():
    box = bounding_box_of([(math.nan, 1), ("a", "b"), (1,)])
    assert box.min_x == math.inf and box.max_x == -math.inf
    assert box.is_empty
    assert box.is_degenerate


def test_degenerate_box_detection():
    assert BoundingBox.from_rect(0, 0, 0, 10).is_degenerate
    assert BoundingBox.from_rect(0, 0, 10, -1).is_degenerate
    assert not BoundingBox.from_rect(5, 5, 1, 1).is_degenerate


def test_union_ignores_empty_boxes():
    box = BoundingBox.from_rect(0, 0, 10, 10)
    assert box.union(BoundingBox.empty()) == box
    assert BoundingBox.empty().union(box) == box
    merged = box.union(BoundingBox.from_rect(-5, 2, 1, 20))
    assert merged.as_rect() == (-5.0, 0.0, 15.0, 22.0)


def test_parse_points_drops_malformed_tokens():
    points = parse_points("1,2  3,4 bad 5,x 6,7,8 NaN,1 9,10\n11.5,-2e1")
    assert points == [(1.0, 2.0), (3.0, 4.0), (9.0, 10.0), (11.5, -20.0)]


@pytest.mark.parametrize("value", [None, 12, ["1,2"], ""])
def test_parse_points_non_text_is_empty(value):
    assert parse_points(value) == []


def test_parse_point_token():
    assert parse_point_token("1.5,2") == (1.5, 2.0)
    assert parse_point_token("1.5") is None
    assert parse_point_token("inf,2") is None


def test_format_points_prints_integral_values_plainly():
    assert format_points([(100.0, 100.0), (150.0, 100.5), (-3.25, 0.0)]) == "100,100 150,100.5 -3.25,0"


def test_affine_multiply_applies_right_operand_first():
    matrix = Affine.translation(10, 0).multiply(Affine.scaling(2))
    assert matrix.map(1, 1) == (12.0, 2.0)


def test_affine_inverse_round_trip():
    matrix = Affine(a=2.0, b=0.5, c=-1.0, d=3.0, e=4.0, f=5.0)
    inverse = matrix.inverted()
    assert inverse is not None
    x, y = inverse.map(*matrix.map(7.0, -3.0))
    assert math.isclose(x, 7.0, abs_tol=1e-9)
    assert math.isclose(y, -3.0, abs_tol=1e-9)


def test_singular_affine_has_no_inverse():
    assert Affine(a=0.0, d=0.0).inverted() is None
    assert Affine(a=1.0, b=2.0, c=2.0, d=4.0).inverted() is None


def test_map_box_of_rotation_covers_corners():
    box = Affine.rotation(math.pi / 2).map_box(BoundingBox.from_rect(0, 0, 10, 5))
    assert math.isclose(box.min_x, -5.0, abs_tol=1e-9)
    assert math.isclose(box.max_x, 0.0, abs_tol=1e-9)
    assert math.isclose(box.min_y, 0.0, abs_tol=1e-9)
    assert math.isclose(box.max_y, 10.0, abs_tol=1e-9)
