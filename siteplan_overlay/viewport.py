"""Pan/zoom state for the site-plan canvas, decoupled from Qt widgets.

Three coordinate spaces are involved:

* screen: widget pixels, as delivered by pointer events;
* canvas: artwork units of the canvas root; the widget's own on-screen matrix
  (letterboxing, device scaling) maps canvas onto screen;
* scene: units inside the viewport layer, ``canvas = scene * scale + translate``.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from typing import Callable, Optional

from siteplan_overlay.geometry import Affine, Point

_LOGGER = logging.getLogger("SitePlanOverlay.Viewport")

DEFAULT_MIN_SCALE = 0.7
DEFAULT_MAX_SCALE = 4.0
DEFAULT_BUTTON_STEP = 0.25
DEFAULT_WHEEL_RATE = 0.0015
# Qt reports wheel rotation in eighths of a degree (120 per notch). The wheel
# rate is tuned for pixel deltas of roughly 100 per notch.
_ANGLE_UNITS_PER_NOTCH = 120.0
_PIXELS_PER_NOTCH = 100.0

ScreenMatrixFn = Callable[[], Optional[Affine]]


@dataclass
class ViewportState:
    scale: float = 1.0
    translate_x: float = 0.0
    translate_y: float = 0.0


class ViewportController:
    """Owns the single :class:`ViewportState` for one canvas."""

    def __init__(
        self,
        *,
        min_scale: float = DEFAULT_MIN_SCALE,
        max_scale: float = DEFAULT_MAX_SCALE,
        screen_matrix_fn: Optional[ScreenMatrixFn] = None,
        on_change: Optional[Callable[[ViewportState], None]] = None,
        button_step: float = DEFAULT_BUTTON_STEP,
        wheel_rate: float = DEFAULT_WHEEL_RATE,
    ) -> None:
        if min_scale <= 0.0 or max_scale < min_scale:
            raise ValueError("zoom limits must satisfy 0 < min_scale <= max_scale")
        self._min_scale = float(min_scale)
        self._max_scale = float(max_scale)
        self._screen_matrix_fn = screen_matrix_fn
        self._on_change = on_change
        self._button_step = float(button_step)
        self._wheel_rate = float(wheel_rate)
        self._state = ViewportState()

    @property
    def state(self) -> ViewportState:
        return replace(self._state)

    @property
    def scale(self) -> float:
        return self._state.scale

    @property
    def min_scale(self) -> float:
        return self._min_scale

    @property
    def max_scale(self) -> float:
        return self._max_scale

    @property
    def can_pan(self) -> bool:
        return self._state.scale > 1.001

    def set_screen_matrix_fn(self, fn: Optional[ScreenMatrixFn]) -> None:
        self._screen_matrix_fn = fn

    def set_on_change(self, fn: Optional[Callable[[ViewportState], None]]) -> None:
        self._on_change = fn

    def as_affine(self) -> Affine:
        """Scene -> canvas matrix (``translate(tx ty) scale(s)``)."""

        state = self._state
        return Affine(a=state.scale, d=state.scale, e=state.translate_x, f=state.translate_y)

    # Coordinate conversion ------------------------------------------------

    def _screen_matrix(self) -> Affine:
        if self._screen_matrix_fn is None:
            return Affine.identity()
        matrix = self._screen_matrix_fn()
        return matrix if matrix is not None else Affine.identity()

    def screen_to_canvas(self, screen_x: float, screen_y: float) -> Point:
        inverse = self._screen_matrix().inverted()
        if inverse is None:
            _LOGGER.debug("Screen matrix is singular; treating screen coordinates as canvas coordinates")
            return (screen_x, screen_y)
        return inverse.map(screen_x, screen_y)

    def screen_to_scene(self, screen_x: float, screen_y: float) -> Point:
        canvas_x, canvas_y = self.screen_to_canvas(screen_x, screen_y)
        state = self._state
        return (
            (canvas_x - state.translate_x) / state.scale,
            (canvas_y - state.translate_y) / state.scale,
        )

    def scene_to_screen(self, scene_x: float, scene_y: float) -> Point:
        canvas_x, canvas_y = self.as_affine().map(scene_x, scene_y)
        return self._screen_matrix().map(canvas_x, canvas_y)

    # Mutations ------------------------------------------------------------

    def zoom_at(self, screen_x: float, screen_y: float, log_delta: float) -> bool:
        """Zoom by ``exp(log_delta)`` keeping the scene point under the pointer fixed.

        Returns False when nothing changed (non-finite input, or already at the
        clamped limit).
        """

        if not all(math.isfinite(value) for value in (screen_x, screen_y, log_delta)):
            return False
        state = self._state
        factor = math.exp(log_delta)
        new_scale = min(self._max_scale, max(self._min_scale, state.scale * factor))
        if new_scale == state.scale:
            return False
        canvas_x, canvas_y = self.screen_to_canvas(screen_x, screen_y)
        scene_x = (canvas_x - state.translate_x) / state.scale
        scene_y = (canvas_y - state.translate_y) / state.scale
        state.translate_x = canvas_x - scene_x * new_scale
        state.translate_y = canvas_y - scene_y * new_scale
        state.scale = new_scale
        self._notify()
        return True

    def zoom_in_at_center(self, width: float, height: float) -> bool:
        return self.zoom_at(width / 2.0, height / 2.0, self._button_step)

    def zoom_out_at_center(self, width: float, height: float) -> bool:
        return self.zoom_at(width / 2.0, height / 2.0, -self._button_step)

    def wheel_log_delta(self, angle_delta_y: float) -> float:
        """Convert a Qt wheel angle delta into a zoom ``log_delta`` (wheel up zooms in)."""

        return (angle_delta_y / _ANGLE_UNITS_PER_NOTCH) * _PIXELS_PER_NOTCH * self._wheel_rate

    def pan(self, dx: float, dy: float) -> None:
        """Shift the scene by screen-space deltas; the pan position is unbounded."""

        if not (math.isfinite(dx) and math.isfinite(dy)):
            return
        if dx == 0.0 and dy == 0.0:
            return
        self._state.translate_x += dx
        self._state.translate_y += dy
        self._notify()

    def reset(self) -> None:
        self._state = ViewportState()
        self._notify()

    def _notify(self) -> None:
        if self._on_change is not None:
            self._on_change(self.state)
