"""Point, bounding-box and matrix helpers shared by the overlay (no Qt types)."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Iterable, List, Optional, Sequence, Tuple

Point = Tuple[float, float]

_EPSILON = 1e-12


def _finite_float(value: Any) -> Optional[float]:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(result):
        return None
    return result


@dataclass(frozen=True)
class BoundingBox:
    """Axis-aligned box stored as min/max corners.

    A box built from zero finite points keeps the ``+inf``/``-inf`` corners of
    :meth:`empty`; callers should check :attr:`is_degenerate` and fall back.
    """

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def empty(cls) -> "BoundingBox":
        return cls(math.inf, math.inf, -math.inf, -math.inf)

    @classmethod
    def from_rect(cls, x: float, y: float, width: float, height: float) -> "BoundingBox":
        return cls(float(x), float(y), float(x) + float(width), float(y) + float(height))

    @property
    def x(self) -> float:
        return self.min_x

    @property
    def y(self) -> float:
        return self.min_y

    @property
    def width(self) -> float:
        return self.max_x - self.min_x

    @property
    def height(self) -> float:
        return self.max_y - self.min_y

    @property
    def center(self) -> Point:
        return (self.min_x + self.width / 2.0, self.min_y + self.height / 2.0)

    @property
    def is_empty(self) -> bool:
        return not (math.isfinite(self.min_x) and math.isfinite(self.max_x))

    @property
    def is_degenerate(self) -> bool:
        width = self.width
        height = self.height
        if not (math.isfinite(width) and math.isfinite(height)):
            return True
        return width <= 0.0 or height <= 0.0

    def corners(self) -> List[Point]:
        return [
            (self.min_x, self.min_y),
            (self.max_x, self.min_y),
            (self.max_x, self.max_y),
            (self.min_x, self.max_y),
        ]

    def union(self, other: "BoundingBox") -> "BoundingBox":
        if other.is_empty:
            return self
        if self.is_empty:
            return other
        return BoundingBox(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def as_rect(self) -> Tuple[float, float, float, float]:
        return (self.x, self.y, self.width, self.height)


def bounding_box_of(points: Iterable[Sequence[Any]]) -> BoundingBox:
    """Return the minimal box covering every point with two finite coordinates."""

    min_x = min_y = math.inf
    max_x = max_y = -math.inf
    for point in points:
        try:
            raw_x, raw_y = point[0], point[1]
        except (TypeError, IndexError, KeyError):
            continue
        x = _finite_float(raw_x)
        y = _finite_float(raw_y)
        if x is None or y is None:
            continue
        if x < min_x:
            min_x = x
        if y < min_y:
            min_y = y
        if x > max_x:
            max_x = x
        if y > max_y:
            max_y = y
    return BoundingBox(min_x, min_y, max_x, max_y)


def parse_point_token(token: str) -> Optional[Point]:
    parts = token.split(",")
    if len(parts) != 2:
        return None
    x = _finite_float(parts[0])
    y = _finite_float(parts[1])
    if x is None or y is None:
        return None
    return (x, y)


def parse_points(text: Any) -> List[Point]:
    """Parse ``"x,y x,y ..."`` text, dropping tokens that are not two finite numbers."""

    if not isinstance(text, str):
        return []
    points: List[Point] = []
    for token in text.split():
        point = parse_point_token(token)
        if point is not None:
            points.append(point)
    return points


def _format_number(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return repr(float(value))


def format_points(points: Iterable[Point]) -> str:
    return " ".join(f"{_format_number(x)},{_format_number(y)}" for x, y in points)


@dataclass(frozen=True)
class Affine:
    """2D affine matrix in SVG/Qt order: ``x' = a*x + c*y + e``, ``y' = b*x + d*y + f``."""

    a: float = 1.0
    b: float = 0.0
    c: float = 0.0
    d: float = 1.0
    e: float = 0.0
    f: float = 0.0

    @classmethod
    def identity(cls) -> "Affine":
        return cls()

    @classmethod
    def translation(cls, tx: float, ty: float) -> "Affine":
        return cls(e=float(tx), f=float(ty))

    @classmethod
    def scaling(cls, sx: float, sy: Optional[float] = None) -> "Affine":
        return cls(a=float(sx), d=float(sx if sy is None else sy))

    @classmethod
    def rotation(cls, radians: float) -> "Affine":
        cos_v = math.cos(radians)
        sin_v = math.sin(radians)
        return cls(a=cos_v, b=sin_v, c=-sin_v, d=cos_v)

    def map(self, x: float, y: float) -> Point:
        return (self.a * x + self.c * y + self.e, self.b * x + self.d * y + self.f)

    def multiply(self, other: "Affine") -> "Affine":
        """Return ``self x other``: ``other`` is applied first, then ``self``."""

        return Affine(
            a=self.a * other.a + self.c * other.b,
            b=self.b * other.a + self.d * other.b,
            c=self.a * other.c + self.c * other.d,
            d=self.b * other.c + self.d * other.d,
            e=self.a * other.e + self.c * other.f + self.e,
            f=self.b * other.e + self.d * other.f + self.f,
        )

    def determinant(self) -> float:
        return self.a * self.d - self.b * self.c

    def inverted(self) -> Optional["Affine"]:
        det = self.determinant()
        if not math.isfinite(det) or abs(det) < _EPSILON:
            return None
        inv_a = self.d / det
        inv_b = -self.b / det
        inv_c = -self.c / det
        inv_d = self.a / det
        return Affine(
            a=inv_a,
            b=inv_b,
            c=inv_c,
            d=inv_d,
            e=-(inv_a * self.e + inv_c * self.f),
            f=-(inv_b * self.e + inv_d * self.f),
        )

    def map_box(self, box: BoundingBox) -> BoundingBox:
        if box.is_empty:
            return box
        return bounding_box_of(self.map(x, y) for x, y in box.corners())
