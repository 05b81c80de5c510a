"""Hover/lock state machine for stand shapes plus canvas pan arbitration.

Events are plain dataclasses so the whole flow can be driven without a live
UI. Shapes capture the pointer on press; while a pointer is captured the
canvas pan handler never sees its move/up events.
"""
from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, Optional, Protocol, Tuple, Union

from siteplan_overlay.viewport import ViewportController

_LOGGER = logging.getLogger("SitePlanOverlay.Interaction")

DEFAULT_CLICK_TOLERANCE = 6.0
PRIMARY_BUTTON = 0
ESCAPE_KEY = "Escape"


class ShapeDisplay(str, Enum):
    IDLE = "idle"
    HOVERED = "hovered"
    LOCKED = "locked"
    LOCKED_HOVERED = "locked+hovered"


@dataclass(frozen=True)
class PointerEnter:
    shape_id: str


@dataclass(frozen=True)
class PointerLeave:
    shape_id: str


@dataclass(frozen=True)
class PointerDown:
    pointer_id: int
    x: float
    y: float
    target: Optional[str] = None  # shape id when the press landed in the shapes layer
    button: int = PRIMARY_BUTTON


@dataclass(frozen=True)
class PointerMove:
    pointer_id: int
    x: float
    y: float


@dataclass(frozen=True)
class PointerUp:
    pointer_id: int
    x: float
    y: float


@dataclass(frozen=True)
class PointerCancel:
    pointer_id: int


@dataclass(frozen=True)
class KeyPress:
    key: str


InteractionEvent = Union[PointerEnter, PointerLeave, PointerDown, PointerMove, PointerUp, PointerCancel, KeyPress]


class DetailSink(Protocol):
    def show_details(self, shape_id: str, locked: bool) -> None: ...

    def clear_details(self) -> None: ...


@dataclass
class InteractionState:
    locked_shape_id: Optional[str] = None


@dataclass(frozen=True)
class _Press:
    shape_id: str
    x: float
    y: float


class PanGestureHandler:
    """Drag-to-pan on the canvas background."""

    def __init__(
        self,
        viewport: ViewportController,
        *,
        on_grab_changed: Optional[Callable[[bool], None]] = None,
    ) -> None:
        self._viewport = viewport
        self._on_grab_changed = on_grab_changed
        self._pointer_id: Optional[int] = None
        self._last: Tuple[float, float] = (0.0, 0.0)

    @property
    def active(self) -> bool:
        return self._pointer_id is not None

    def pointer_down(self, event: PointerDown) -> bool:
        if event.target is not None:
            # presses inside the shapes layer belong to the shape
            return False
        if event.button != PRIMARY_BUTTON:
            return False
        self._pointer_id = event.pointer_id
        self._last = (event.x, event.y)
        self._set_grab(True)
        return True

    def pointer_move(self, event: PointerMove) -> bool:
        if self._pointer_id is None or event.pointer_id != self._pointer_id:
            return False
        dx = event.x - self._last[0]
        dy = event.y - self._last[1]
        self._last = (event.x, event.y)
        self._viewport.pan(dx, dy)
        return True

    def pointer_up(self, pointer_id: int) -> bool:
        if self._pointer_id is None or pointer_id != self._pointer_id:
            return False
        self._pointer_id = None
        self._set_grab(False)
        return True

    def _set_grab(self, grabbing: bool) -> None:
        if self._on_grab_changed is not None:
            self._on_grab_changed(grabbing)


class InteractionController:
    """Routes pointer/keyboard events to shapes and the pan handler."""

    def __init__(
        self,
        *,
        detail_sink: Optional[DetailSink] = None,
        pan_handler: Optional[PanGestureHandler] = None,
        on_active_changed: Optional[Callable[[Optional[str]], None]] = None,
        click_tolerance: float = DEFAULT_CLICK_TOLERANCE,
        state: Optional[InteractionState] = None,
    ) -> None:
        self._detail_sink = detail_sink
        self._pan_handler = pan_handler
        self._on_active_changed = on_active_changed
        self._click_tolerance = max(0.0, float(click_tolerance))
        self._state = state if state is not None else InteractionState()
        self._captures: Dict[int, _Press] = {}
        self._pointer_over: Optional[str] = None

    @property
    def state(self) -> InteractionState:
        return self._state

    @property
    def locked_shape_id(self) -> Optional[str]:
        return self._state.locked_shape_id

    @property
    def click_tolerance(self) -> float:
        return self._click_tolerance

    def capture_owner(self, pointer_id: int) -> Optional[str]:
        press = self._captures.get(pointer_id)
        return press.shape_id if press is not None else None

    def display_state(self, shape_id: str) -> ShapeDisplay:
        locked_id = self._state.locked_shape_id
        locked = locked_id == shape_id
        hovered = self._pointer_over == shape_id and (locked_id is None or locked)
        if locked and hovered:
            return ShapeDisplay.LOCKED_HOVERED
        if locked:
            return ShapeDisplay.LOCKED
        if hovered:
            return ShapeDisplay.HOVERED
        return ShapeDisplay.IDLE

    def dispatch(self, event: InteractionEvent) -> None:
        if isinstance(event, PointerEnter):
            self._handle_enter(event.shape_id)
        elif isinstance(event, PointerLeave):
            self._handle_leave(event.shape_id)
        elif isinstance(event, PointerDown):
            self._handle_down(event)
        elif isinstance(event, PointerMove):
            self._handle_move(event)
        elif isinstance(event, PointerUp):
            self._handle_up(event)
        elif isinstance(event, PointerCancel):
            self._handle_cancel(event.pointer_id)
        elif isinstance(event, KeyPress):
            self._handle_key(event.key)
        else:
            _LOGGER.debug("Ignoring unsupported interaction event %r", event)

    def reset(self) -> None:
        """Forget gestures and the lock; used when shapes are replaced on reload."""

        self._captures.clear()
        self._pointer_over = None
        if self._state.locked_shape_id is not None:
            self._state.locked_shape_id = None
            self._notify_active(None)

    # Hover ----------------------------------------------------------------

    def _handle_enter(self, shape_id: str) -> None:
        self._pointer_over = shape_id
        locked_id = self._state.locked_shape_id
        if locked_id is None or locked_id == shape_id:
            self._show(shape_id, locked_id == shape_id)

    def _handle_leave(self, shape_id: str) -> None:
        if self._pointer_over == shape_id:
            self._pointer_over = None
        if self._state.locked_shape_id is None:
            self._clear()

    # Press / release ------------------------------------------------------

    def _handle_down(self, event: PointerDown) -> None:
        if event.target is None:
            if self._pan_handler is not None:
                self._pan_handler.pointer_down(event)
            return
        # capture first so the pan handler never sees this stream
        self._captures[event.pointer_id] = _Press(event.target, event.x, event.y)

    def _handle_move(self, event: PointerMove) -> None:
        if event.pointer_id in self._captures:
            return
        if self._pan_handler is not None:
            self._pan_handler.pointer_move(event)

    def _handle_up(self, event: PointerUp) -> None:
        press = self._captures.pop(event.pointer_id, None)
        if press is None:
            if self._pan_handler is not None:
                self._pan_handler.pointer_up(event.pointer_id)
            return
        distance = math.hypot(event.x - press.x, event.y - press.y)
        if not math.isfinite(distance) or distance > self._click_tolerance:
            _LOGGER.debug("Gesture on %s moved %.1fpx; treating as drag", press.shape_id, distance)
            return
        self._toggle_lock(press.shape_id)

    def _handle_cancel(self, pointer_id: int) -> None:
        if self._captures.pop(pointer_id, None) is not None:
            return
        if self._pan_handler is not None:
            self._pan_handler.pointer_up(pointer_id)

    def _handle_key(self, key: str) -> None:
        if key != ESCAPE_KEY or self._state.locked_shape_id is None:
            return
        _LOGGER.debug("Escape pressed; unlocking %s", self._state.locked_shape_id)
        self._unlock()

    # Lock -----------------------------------------------------------------

    def _toggle_lock(self, shape_id: str) -> None:
        if self._state.locked_shape_id == shape_id:
            _LOGGER.debug("Unlocking %s", shape_id)
            self._unlock()
            return
        _LOGGER.debug("Locking %s (previous=%s)", shape_id, self._state.locked_shape_id)
        self._state.locked_shape_id = shape_id
        self._show(shape_id, True)
        self._notify_active(shape_id)

    def _unlock(self) -> None:
        self._state.locked_shape_id = None
        self._pointer_over = None
        self._clear()
        self._notify_active(None)

    def _show(self, shape_id: str, locked: bool) -> None:
        if self._detail_sink is not None:
            self._detail_sink.show_details(shape_id, locked)

    def _clear(self) -> None:
        if self._state.locked_shape_id is not None:
            return
        if self._detail_sink is not None:
            self._detail_sink.clear_details()

    def _notify_active(self, shape_id: Optional[str]) -> None:
        if self._on_active_changed is not None:
            self._on_active_changed(shape_id)
