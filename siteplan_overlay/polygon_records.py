"""Stand polygons authored in their own coordinate space (``polygons.json``)."""
from __future__ import annotations

import json
import logging
from typing import Any, List

from siteplan_overlay.alignment import SourcePolygon
from siteplan_overlay.geometry import parse_points
from siteplan_overlay.record_fetch import SourceError, fetch_text

_LOGGER = logging.getLogger("SitePlanOverlay.Sources")


def parse_polygon_document(data: Any) -> List[SourcePolygon]:
    """Convert ``{"polygons": [{"id": ..., "points": "x,y x,y"}]}`` into polygons.

    Malformed point tokens are dropped; a polygon with no usable points is kept
    with an empty point sequence.
    """

    if not isinstance(data, dict):
        return []
    entries = data.get("polygons")
    if not isinstance(entries, list):
        return []
    polygons: List[SourcePolygon] = []
    for index, entry in enumerate(entries):
        if not isinstance(entry, dict):
            _LOGGER.debug("Skipping polygon entry %d: not an object", index)
            continue
        raw_id = entry.get("id")
        polygon_id = "" if raw_id is None else str(raw_id).strip()
        raw_points = entry.get("points")
        points = parse_points(raw_points)
        if isinstance(raw_points, str):
            token_count = len(raw_points.split())
            if token_count != len(points):
                _LOGGER.debug(
                    "Polygon %s: dropped %d malformed point tokens",
                    polygon_id or f"#{index}",
                    token_count - len(points),
                )
        polygons.append(SourcePolygon(polygon_id, tuple(points)))
    return polygons


def parse_polygon_text(text: str) -> List[SourcePolygon]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        _LOGGER.warning("Polygons JSON is not valid (%s); check for trailing commas or stray text", exc)
        return []
    return parse_polygon_document(data)


def load_polygons(location: str, *, timeout: float = 10.0) -> List[SourcePolygon]:
    """Read polygons from a URL or file; any failure yields an empty list."""

    if not location:
        return []
    try:
        fetched = fetch_text(location, timeout=timeout)
    except SourceError as exc:
        _LOGGER.warning("Polygon source unavailable: %s", exc)
        return []
    polygons = parse_polygon_text(fetched.text)
    _LOGGER.debug("Loaded %d polygons from %s", len(polygons), fetched.location or location)
    return polygons
