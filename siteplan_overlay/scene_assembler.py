"""Combine aligned polygons with status records into drawable stand shapes."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple

from siteplan_overlay.alignment import AlignmentResult, FineTuneConfig, SourcePolygon, remap_polygons
from siteplan_overlay.geometry import BoundingBox, Point
from siteplan_overlay.settings import OverlaySettings
from siteplan_overlay.status_records import UNKNOWN, StatusRecord, lookup_record

_LOGGER = logging.getLogger("SitePlanOverlay.Scene")


@dataclass(frozen=True)
class StandShape:
    shape_id: str
    points: Tuple[Point, ...]
    record: Optional[StatusRecord]
    status: str
    color: str


@dataclass(frozen=True)
class AssembledScene:
    shapes: List[StandShape]
    alignment: AlignmentResult

    def by_id(self) -> Dict[str, StandShape]:
        shapes: Dict[str, StandShape] = {}
        for shape in self.shapes:
            shapes.setdefault(shape.shape_id, shape)
        return shapes


def assemble_scene(
    polygons: Sequence[SourcePolygon],
    records: Mapping[str, StatusRecord],
    artwork_box: BoundingBox,
    settings: OverlaySettings,
    fine_tune: Optional[FineTuneConfig] = None,
) -> AssembledScene:
    """Align ``polygons`` to the artwork and attach status/colour to each."""

    alignment = remap_polygons(polygons, artwork_box, fine_tune if fine_tune is not None else settings.fine_tune)
    shapes: List[StandShape] = []
    missing = 0
    for rendered in alignment.polygons:
        record = lookup_record(records, rendered.polygon_id)
        status = record.status if record is not None else UNKNOWN
        if record is None:
            missing += 1
        shapes.append(
            StandShape(
                shape_id=rendered.polygon_id,
                points=rendered.points,
                record=record,
                status=status,
                color=settings.color_for(status),
            )
        )
    if missing:
        _LOGGER.debug("%d of %d stands have no status record", missing, len(shapes))
    return AssembledScene(shapes=shapes, alignment=alignment)
