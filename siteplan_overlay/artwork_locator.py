"""Locate the authoritative site-plan artwork inside the scene."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Optional, Protocol, Tuple, Iterator

from siteplan_overlay.geometry import BoundingBox

_LOGGER = logging.getLogger("SitePlanOverlay.Artwork")

SITE_PLAN_ID = "siteplan"


class SceneQuery(Protocol):
    """Queries the locator needs from a scene graph (see :class:`SvgScene`)."""

    @property
    def root(self): ...

    def find_by_id(self, node_id: str): ...

    def iter_nodes(self, tag: Optional[str] = None) -> Iterator: ...

    def closest_group(self, node): ...

    def local_size(self, node) -> Tuple[float, float]: ...

    def bounding_box_of(self, node) -> BoundingBox: ...

    def view_region(self) -> BoundingBox: ...


class ArtworkTier(str, Enum):
    SITE_PLAN = "site_plan"
    LARGEST_IMAGE = "largest_image"
    CLIP_PATH = "clip_path"
    SCENE_ROOT = "scene_root"
    VIEW_REGION_FALLBACK = "view_region_fallback"


@dataclass(frozen=True)
class ArtworkMatch:
    node: object
    tier: ArtworkTier


@dataclass(frozen=True)
class ArtworkLocation:
    box: BoundingBox
    tier: ArtworkTier
    node_id: Optional[str] = None


def locate_artwork_node(scene: SceneQuery) -> ArtworkMatch:
    """Pick the artwork node using the first matching rule.

    1. the element with id ``siteplan``;
    2. the largest ``<image>`` by its own width x height (its enclosing group
       when it has one);
    3. the first group carrying a ``clip-path``;
    4. the scene root.
    """

    node = scene.find_by_id(SITE_PLAN_ID)
    if node is not None:
        return ArtworkMatch(node, ArtworkTier.SITE_PLAN)

    images = list(scene.iter_nodes("image"))
    if images:
        best = images[0]
        best_area = _area(scene, best)
        for image in images[1:]:
            area = _area(scene, image)
            if area > best_area:
                best, best_area = image, area
        container = scene.closest_group(best)
        return ArtworkMatch(container if container is not None else best, ArtworkTier.LARGEST_IMAGE)

    for group in scene.iter_nodes("g"):
        if group.get("clip-path"):
            return ArtworkMatch(group, ArtworkTier.CLIP_PATH)

    return ArtworkMatch(scene.root, ArtworkTier.SCENE_ROOT)


def locate_artwork_box(scene: SceneQuery) -> ArtworkLocation:
    """Return the artwork box, falling back to the view region when degenerate."""

    match = locate_artwork_node(scene)
    node_id = getattr(match.node, "node_id", None)
    box = scene.bounding_box_of(match.node)
    if box.is_degenerate:
        region = scene.view_region()
        _LOGGER.debug(
            "Artwork node (tier=%s id=%s) has degenerate box %s; using view region %s",
            match.tier.value,
            node_id,
            box.as_rect(),
            region.as_rect(),
        )
        return ArtworkLocation(region, ArtworkTier.VIEW_REGION_FALLBACK, node_id)
    _LOGGER.debug("Artwork located via %s (id=%s) box=%s", match.tier.value, node_id, box.as_rect())
    return ArtworkLocation(box, match.tier, node_id)


def _area(scene: SceneQuery, node) -> float:
    width, height = scene.local_size(node)
    return width * height
