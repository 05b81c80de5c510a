"""Minimal SVG scene graph used to locate the site-plan artwork.

Only the pieces needed for bounding-box queries are modelled: element tags,
ids, attributes, ``transform`` matrices and the root view region. Boxes are
reported in each node's own user space, the same way a browser's ``getBBox``
does, so a group's box includes its children's transforms but not its own.
"""
from __future__ import annotations

import logging
import math
import re
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional, Set, Tuple

from svgpathtools import parse_path

from siteplan_overlay.geometry import Affine, BoundingBox, bounding_box_of, parse_points

_LOGGER = logging.getLogger("SitePlanOverlay.Scene")

DEFAULT_VIEW_REGION = BoundingBox.from_rect(0.0, 0.0, 100.0, 100.0)

_TRANSFORM_RE = re.compile(r"(matrix|translate|scale|rotate|skewX|skewY)\s*\(([^)]*)\)")
_NUMBER_SPLIT = re.compile(r"[\s,]+")
_LENGTH_RE = re.compile(r"^\s*([-+]?(?:\d+\.?\d*|\.\d+)(?:[eE][-+]?\d+)?)")
_CONTAINER_TAGS = {"svg", "g", "a", "switch", "symbol"}
_SKIPPED_TAGS = {"defs", "clipPath", "mask", "metadata", "title", "desc", "style", "pattern", "linearGradient", "radialGradient"}


def _local_tag(tag: str) -> str:
    if "}" in tag:
        return tag.rsplit("}", 1)[1]
    return tag


def _local_attributes(raw: Dict[str, str]) -> Dict[str, str]:
    return {_local_tag(key): value for key, value in raw.items()}


def parse_length(value: Optional[str], default: float = 0.0) -> float:
    """Parse an SVG length, ignoring the unit suffix (``"120px"`` -> 120.0)."""

    if value is None:
        return default
    match = _LENGTH_RE.match(str(value))
    if not match:
        return default
    try:
        result = float(match.group(1))
    except ValueError:
        return default
    return result if math.isfinite(result) else default


def parse_transform(value: Optional[str]) -> Affine:
    """Parse an SVG ``transform`` attribute into a single matrix."""

    matrix = Affine.identity()
    if not value:
        return matrix
    for name, raw_args in _TRANSFORM_RE.findall(value):
        try:
            args = [float(token) for token in _NUMBER_SPLIT.split(raw_args.strip()) if token]
        except ValueError:
            _LOGGER.debug("Ignoring malformed transform component %s(%s)", name, raw_args)
            continue
        step: Optional[Affine] = None
        if name == "matrix" and len(args) == 6:
            step = Affine(*args)
        elif name == "translate" and args:
            step = Affine.translation(args[0], args[1] if len(args) > 1 else 0.0)
        elif name == "scale" and args:
            step = Affine.scaling(args[0], args[1] if len(args) > 1 else None)
        elif name == "rotate" and args:
            rotation = Affine.rotation(math.radians(args[0]))
            if len(args) == 3:
                cx, cy = args[1], args[2]
                rotation = Affine.translation(cx, cy).multiply(rotation).multiply(Affine.translation(-cx, -cy))
            step = rotation
        elif name == "skewX" and args:
            step = Affine(c=math.tan(math.radians(args[0])))
        elif name == "skewY" and args:
            step = Affine(b=math.tan(math.radians(args[0])))
        if step is None:
            _LOGGER.debug("Ignoring transform component %s with %d args", name, len(args))
            continue
        matrix = matrix.multiply(step)
    return matrix


@dataclass(eq=False)
class SceneNode:
    tag: str
    node_id: Optional[str] = None
    attributes: Dict[str, str] = field(default_factory=dict)
    transform: Affine = field(default_factory=Affine.identity)
    children: List["SceneNode"] = field(default_factory=list)
    parent: Optional["SceneNode"] = None

    def get(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def iter(self) -> Iterator["SceneNode"]:
        yield self
        for child in self.children:
            yield from child.iter()

    def closest(self, tag: str) -> Optional["SceneNode"]:
        """Nearest ancestor-or-self with ``tag`` (like DOM ``closest``)."""

        node: Optional[SceneNode] = self
        while node is not None:
            if node.tag == tag:
                return node
            node = node.parent
        return None


class SvgScene:
    """Scene query over a parsed SVG document."""

    def __init__(self, root: SceneNode) -> None:
        self._root = root
        self._by_id: Dict[str, SceneNode] = {}
        for node in root.iter():
            if node.node_id and node.node_id not in self._by_id:
                self._by_id[node.node_id] = node

    @classmethod
    def from_string(cls, text: str) -> "SvgScene":
        element = ET.fromstring(text)
        return cls(_build_node(element, None))

    @classmethod
    def from_file(cls, path: Path) -> "SvgScene":
        tree = ET.parse(path)
        return cls(_build_node(tree.getroot(), None))

    @property
    def root(self) -> SceneNode:
        return self._root

    def find_by_id(self, node_id: str) -> Optional[SceneNode]:
        return self._by_id.get(node_id)

    def iter_nodes(self, tag: Optional[str] = None) -> Iterator[SceneNode]:
        for node in self._root.iter():
            if tag is None or node.tag == tag:
                yield node

    def view_region(self) -> BoundingBox:
        """Root ``viewBox``, else ``0 0 width height``, else a 100x100 default."""

        view_box = self._root.get("viewBox")
        if view_box:
            try:
                values = [float(token) for token in _NUMBER_SPLIT.split(view_box.strip()) if token]
            except ValueError:
                values = []
            if len(values) == 4 and all(math.isfinite(v) for v in values):
                return BoundingBox.from_rect(*values)
            _LOGGER.debug("Ignoring malformed viewBox %r", view_box)
        width = parse_length(self._root.get("width"), 0.0)
        height = parse_length(self._root.get("height"), 0.0)
        if width > 0.0 and height > 0.0:
            return BoundingBox.from_rect(0.0, 0.0, width, height)
        return DEFAULT_VIEW_REGION

    def closest_group(self, node: SceneNode) -> Optional[SceneNode]:
        """Nearest enclosing <g> of ``node``, not counting the node itself."""

        return node.parent.closest("g") if node.parent is not None else None

    def local_size(self, node: SceneNode) -> Tuple[float, float]:
        return parse_length(node.get("width"), 0.0), parse_length(node.get("height"), 0.0)

    def bounding_box_of(self, node: SceneNode) -> BoundingBox:
        return _node_box(node, self.find_by_id)


def _build_node(element: ET.Element, parent: Optional[SceneNode]) -> SceneNode:
    attributes = _local_attributes(dict(element.attrib))
    node = SceneNode(
        tag=_local_tag(element.tag),
        node_id=attributes.get("id"),
        attributes=attributes,
        transform=parse_transform(attributes.get("transform")),
        parent=parent,
    )
    for child in element:
        if not isinstance(child.tag, str):
            continue
        node.children.append(_build_node(child, node))
    return node


def _path_box(data: Optional[str]) -> BoundingBox:
    if not data or not data.strip():
        return BoundingBox.empty()
    try:
        path = parse_path(data)
    except (ValueError, IndexError) as exc:
        _LOGGER.debug("Ignoring unparsable path data (%s)", exc)
        return BoundingBox.empty()
    if len(path) == 0:
        return BoundingBox.empty()
    min_x, max_x, min_y, max_y = path.bbox()
    return BoundingBox(float(min_x), float(min_y), float(max_x), float(max_y))


def _node_box(
    node: SceneNode,
    lookup: Optional[Callable[[str], Optional[SceneNode]]] = None,
    _active: Optional[Set[int]] = None,
) -> BoundingBox:
    tag = node.tag
    if tag in _SKIPPED_TAGS:
        return BoundingBox.empty()
    active = _active if _active is not None else set()
    if id(node) in active:
        return BoundingBox.empty()
    if tag in _CONTAINER_TAGS:
        active.add(id(node))
        box = BoundingBox.empty()
        for child in node.children:
            child_box = _node_box(child, lookup, active)
            if child_box.is_empty:
                continue
            box = box.union(child.transform.map_box(child_box))
        active.discard(id(node))
        return box
    if tag == "use":
        return _use_box(node, lookup, active)
    if tag in {"image", "rect", "foreignObject"}:
        width = parse_length(node.get("width"), 0.0)
        height = parse_length(node.get("height"), 0.0)
        if width <= 0.0 or height <= 0.0:
            # unsized boxes are not rendered
            return BoundingBox.empty()
        x = parse_length(node.get("x"), 0.0)
        y = parse_length(node.get("y"), 0.0)
        return BoundingBox.from_rect(x, y, width, height)
    if tag == "path":
        return _path_box(node.get("d"))
    if tag in {"polygon", "polyline"}:
        return bounding_box_of(parse_points(node.get("points") or ""))
    if tag == "circle":
        cx = parse_length(node.get("cx"), 0.0)
        cy = parse_length(node.get("cy"), 0.0)
        radius = parse_length(node.get("r"), 0.0)
        return BoundingBox(cx - radius, cy - radius, cx + radius, cy + radius)
    if tag == "ellipse":
        cx = parse_length(node.get("cx"), 0.0)
        cy = parse_length(node.get("cy"), 0.0)
        rx = parse_length(node.get("rx"), 0.0)
        ry = parse_length(node.get("ry"), 0.0)
        return BoundingBox(cx - rx, cy - ry, cx + rx, cy + ry)
    if tag == "line":
        return bounding_box_of(
            [
                (parse_length(node.get("x1"), 0.0), parse_length(node.get("y1"), 0.0)),
                (parse_length(node.get("x2"), 0.0), parse_length(node.get("y2"), 0.0)),
            ]
        )
    return BoundingBox.empty()


def _use_box(
    node: SceneNode,
    lookup: Optional[Callable[[str], Optional[SceneNode]]],
    active: Set[int],
) -> BoundingBox:
    """Box of the referenced element, shifted by the ``use`` element's x/y."""

    href = (node.get("href") or "").strip()
    if lookup is None or not href.startswith("#"):
        return BoundingBox.empty()
    target = lookup(href[1:])
    if target is None:
        _LOGGER.debug("Ignoring <use> with unknown reference %s", href)
        return BoundingBox.empty()
    active.add(id(node))
    target_box = _node_box(target, lookup, active)
    active.discard(id(node))
    if target_box.is_empty:
        return target_box
    offset = Affine.translation(parse_length(node.get("x"), 0.0), parse_length(node.get("y"), 0.0))
    return offset.multiply(target.transform).map_box(target_box)
