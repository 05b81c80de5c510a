"""Similarity transform that fits independently authored polygons onto the artwork."""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from siteplan_overlay.geometry import BoundingBox, Point, bounding_box_of

_LOGGER = logging.getLogger("SitePlanOverlay.Alignment")


@dataclass(frozen=True)
class FineTuneConfig:
    """Manual correction applied after the automatic fit."""

    scale: float = 1.0
    dx: float = 0.0
    dy: float = 0.0
    rotate_deg: float = 0.0


IDENTITY_FINE_TUNE = FineTuneConfig()


@dataclass(frozen=True)
class SourcePolygon:
    polygon_id: str
    points: Tuple[Point, ...]


@dataclass(frozen=True)
class RenderedPolygon:
    polygon_id: str
    points: Tuple[Point, ...]


@dataclass(frozen=True)
class AlignmentTransform:
    scale: float
    translate_x: float
    translate_y: float
    rotate_radians: float = 0.0
    center_x: float = 0.0
    center_y: float = 0.0
    offset_x: float = 0.0
    offset_y: float = 0.0


@dataclass(frozen=True)
class AlignmentResult:
    polygons: List[RenderedPolygon]
    transform: Optional[AlignmentTransform]
    source_box: BoundingBox

    @property
    def mapped(self) -> bool:
        return self.transform is not None


def compute_transform(
    source_box: BoundingBox,
    dest_box: BoundingBox,
    fine_tune: FineTuneConfig = IDENTITY_FINE_TUNE,
) -> Optional[AlignmentTransform]:
    """Fit ``source_box`` inside ``dest_box`` with a uniform scale.

    Returns ``None`` when the source box is degenerate; callers then pass the
    source polygons through untouched.
    """

    if source_box.is_degenerate:
        return None
    raw_scale = min(dest_box.width / source_box.width, dest_box.height / source_box.height)
    scale = raw_scale * fine_tune.scale
    if not math.isfinite(scale) or scale <= 0.0:
        return None

    scaled_width = source_box.width * scale
    scaled_height = source_box.height * scale
    translate_x = dest_box.x + (dest_box.width - scaled_width) / 2.0 - source_box.min_x * scale
    translate_y = dest_box.y + (dest_box.height - scaled_height) / 2.0 - source_box.min_y * scale
    center_x, center_y = dest_box.center

    return AlignmentTransform(
        scale=scale,
        translate_x=translate_x,
        translate_y=translate_y,
        rotate_radians=math.radians(fine_tune.rotate_deg) if fine_tune.rotate_deg else 0.0,
        center_x=center_x,
        center_y=center_y,
        offset_x=fine_tune.dx,
        offset_y=fine_tune.dy,
    )


def map_point(transform: AlignmentTransform, x: float, y: float) -> Point:
    # scale + centring translate, then rotate about the artwork centre, then pixel offset
    mapped_x = x * transform.scale + transform.translate_x
    mapped_y = y * transform.scale + transform.translate_y
    if transform.rotate_radians:
        cos_v = math.cos(transform.rotate_radians)
        sin_v = math.sin(transform.rotate_radians)
        rel_x = mapped_x - transform.center_x
        rel_y = mapped_y - transform.center_y
        mapped_x = rel_x * cos_v - rel_y * sin_v + transform.center_x
        mapped_y = rel_x * sin_v + rel_y * cos_v + transform.center_y
    return mapped_x + transform.offset_x, mapped_y + transform.offset_y


def apply_transform(transform: Optional[AlignmentTransform], polygon: SourcePolygon) -> RenderedPolygon:
    if transform is None:
        return RenderedPolygon(polygon.polygon_id, tuple(polygon.points))
    return RenderedPolygon(
        polygon.polygon_id,
        tuple(map_point(transform, x, y) for x, y in polygon.points),
    )


def polygons_box(polygons: Iterable[SourcePolygon]) -> BoundingBox:
    return bounding_box_of(point for polygon in polygons for point in polygon.points)


def remap_polygons(
    polygons: Sequence[SourcePolygon],
    dest_box: BoundingBox,
    fine_tune: FineTuneConfig = IDENTITY_FINE_TUNE,
) -> AlignmentResult:
    """Map every polygon onto ``dest_box``, order-preserving and 1:1."""

    source_box = polygons_box(polygons)
    transform = compute_transform(source_box, dest_box, fine_tune)
    if transform is None:
        if polygons:
            _LOGGER.warning(
                "Polygon extent %s cannot be mapped onto artwork %s; rendering %d polygons in source coordinates",
                source_box.as_rect(),
                dest_box.as_rect(),
                len(polygons),
            )
        return AlignmentResult([apply_transform(None, polygon) for polygon in polygons], None, source_box)
    _LOGGER.debug(
        "Alignment scale=%.6f translate=(%.3f, %.3f) rotate=%.4frad offset=(%.3f, %.3f) for %d polygons",
        transform.scale,
        transform.translate_x,
        transform.translate_y,
        transform.rotate_radians,
        transform.offset_x,
        transform.offset_y,
        len(polygons),
    )
    return AlignmentResult([apply_transform(transform, polygon) for polygon in polygons], transform, source_box)
