"""Helpers for fitting the artwork box into the canvas widget."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Tuple

from siteplan_overlay.geometry import Affine, BoundingBox

_EPSILON = 1e-9


@dataclass(frozen=True)
class CanvasFit:
    """Resolved scale/offset for showing the artwork box inside the widget."""

    scale: float
    offset: Tuple[float, float]
    scaled_size: Tuple[float, float]
    source: BoundingBox

    def as_affine(self) -> Affine:
        """Matrix mapping canvas (artwork) units onto widget pixels."""

        offset_x, offset_y = self.offset
        return Affine(
            a=self.scale,
            d=self.scale,
            e=offset_x - self.source.x * self.scale,
            f=offset_y - self.source.y * self.scale,
        )


def _normalise_dimensions(width: float, height: float) -> Tuple[float, float]:
    if width <= 0 or height <= 0:
        raise ValueError("canvas dimensions must be positive")
    return float(width), float(height)


def compute_canvas_fit(width: float, height: float, box: BoundingBox) -> CanvasFit:
    """Uniformly scale ``box`` to fit entirely within the widget and centre it.

    Mirrors SVG ``preserveAspectRatio="xMidYMid meet"``: letter-/pillarboxing
    appears on whichever axis has spare room.
    """

    view_w, view_h = _normalise_dimensions(width, height)
    if box.is_degenerate:
        return CanvasFit(scale=1.0, offset=(0.0, 0.0), scaled_size=(view_w, view_h), source=BoundingBox.from_rect(0.0, 0.0, view_w, view_h))
    scale = min(view_w / box.width, view_h / box.height)
    scale = max(scale, _EPSILON)
    scaled_w = box.width * scale
    scaled_h = box.height * scale
    offset_x = (view_w - scaled_w) / 2.0
    offset_y = (view_h - scaled_h) / 2.0
    return CanvasFit(
        scale=scale,
        offset=(offset_x, offset_y),
        scaled_size=(scaled_w, scaled_h),
        source=box,
    )
