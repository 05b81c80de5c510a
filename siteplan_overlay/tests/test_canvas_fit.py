from __future__ import annotations

import math

import pytest

from siteplan_overlay.canvas_fit import compute_canvas_fit
from siteplan_overlay.geometry import BoundingBox


def test_wide_artwork_is_letterboxed_vertically():
    fit = compute_canvas_fit(800, 800, BoundingBox.from_rect(0, 0, 400, 200))
    assert fit.scale == 2.0
    assert fit.scaled_size == (800.0, 400.0)
    assert fit.offset == (0.0, 200.0)


def test_tall_artwork_is_pillarboxed_horizontally():
    fit = compute_canvas_fit(1000, 500, BoundingBox.from_rect(0, 0, 100, 100))
    assert fit.scale == 5.0
    assert fit.offset == (250.0, 0.0)


def test_affine_maps_artwork_origin_to_offset():
    box = BoundingBox.from_rect(100, 50, 200, 100)
    fit = compute_canvas_fit(400, 400, box)
    matrix = fit.as_affine()
    assert matrix.map(100, 50) == (0.0, 100.0)
    x, y = matrix.map(300, 150)
    assert math.isclose(x, 400.0)
    assert math.isclose(y, 300.0)


def test_degenerate_box_uses_unit_scale():
    fit = compute_canvas_fit(640, 480, BoundingBox.empty())
    assert fit.scale == 1.0
    assert fit.as_affine().map(10, 20) == (10.0, 20.0)


@pytest.mark.parametrize("size", [(0, 100), (100, -1)])
def test_non_positive_canvas_is_rejected(size):
    with pytest.raises(ValueError):
        compute_canvas_fit(size[0], size[1], BoundingBox.from_rect(0, 0, 10, 10))
