from __future__ import annotations

import types

import pytest

from siteplan_overlay.interaction import (
    InteractionController,
    KeyPress,
    PanGestureHandler,
    PointerCancel,
    PointerDown,
    PointerEnter,
    PointerLeave,
    PointerMove,
    PointerUp,
    ShapeDisplay,
)
from siteplan_overlay.viewport import ViewportController


class _RecordingSink:
    def __init__(self) -> None:
        self.calls = []

    def show_details(self, shape_id, locked):
        self.calls.append(("show", shape_id, locked))

    def clear_details(self):
        self.calls.append(("clear",))


def _build(click_tolerance: float = 6.0):
    calls = types.SimpleNamespace(active=[], grabs=[])
    viewport = ViewportController()
    sink = _RecordingSink()
    pan = PanGestureHandler(viewport, on_grab_changed=calls.grabs.append)
    controller = InteractionController(
        detail_sink=sink,
        pan_handler=pan,
        on_active_changed=calls.active.append,
        click_tolerance=click_tolerance,
    )
    return controller, viewport, sink, pan, calls


def _click(controller, shape_id, *, pointer_id=1, start=(10.0, 10.0), end=None):
    end = end or start
    controller.dispatch(PointerDown(pointer_id, start[0], start[1], target=shape_id))
    controller.dispatch(PointerMove(pointer_id, end[0], end[1]))
    controller.dispatch(PointerUp(pointer_id, end[0], end[1]))


def test_hover_shows_and_clears_details_when_unlocked():
    controller, _, sink, _, _ = _build()
    controller.dispatch(PointerEnter("A"))
    assert controller.display_state("A") is ShapeDisplay.HOVERED
    controller.dispatch(PointerLeave("A"))
    assert controller.display_state("A") is ShapeDisplay.IDLE
    assert sink.calls == [("show", "A", False), ("clear",)]


@pytest.mark.parametrize(
    "end, toggles",
    [
        ((10.0, 10.0), True),
        ((16.0, 10.0), True),
        ((14.0, 14.0), True),
        ((16.01, 10.0), False),
        ((15.0, 15.0), False),
        ((40.0, -3.0), False),
    ],
)
def test_click_tolerance_decides_lock_toggle(end, toggles):
    controller, _, _, _, calls = _build()
    _click(controller, "A", end=end)
    if toggles:
        assert controller.locked_shape_id == "A"
        assert calls.active == ["A"]
    else:
        assert controller.locked_shape_id is None
        assert calls.active == []


def test_second_click_on_locked_shape_unlocks():
    controller, _, sink, _, calls = _build()
    _click(controller, "A")
    _click(controller, "A")
    assert controller.locked_shape_id is None
    assert calls.active == ["A", None]
    assert sink.calls[-1] == ("clear",)


def test_lock_is_exclusive_and_follows_latest_click():
    controller, _, _, _, calls = _build()
    _click(controller, "A")
    _click(controller, "B", start=(50.0, 50.0))
    assert controller.locked_shape_id == "B"
    assert controller.display_state("A") is ShapeDisplay.IDLE
    assert controller.display_state("B") is ShapeDisplay.LOCKED
    assert calls.active == ["A", "B"]


def test_hover_is_suppressed_for_other_shapes_while_locked():
    controller, _, sink, _, _ = _build()
    _click(controller, "A")
    sink.calls.clear()
    controller.dispatch(PointerEnter("B"))
    controller.dispatch(PointerLeave("B"))
    assert sink.calls == []
    assert controller.display_state("B") is ShapeDisplay.IDLE


def test_locked_shape_can_also_be_hovered():
    controller, _, sink, _, _ = _build()
    controller.dispatch(PointerEnter("A"))
    _click(controller, "A")
    assert controller.display_state("A") is ShapeDisplay.LOCKED_HOVERED
    controller.dispatch(PointerLeave("A"))
    assert controller.display_state("A") is ShapeDisplay.LOCKED
    controller.dispatch(PointerEnter("A"))
    assert sink.calls[-1] == ("show", "A", True)


def test_escape_unlocks_regardless_of_pointer_position():
    controller, _, sink, _, calls = _build()
    controller.dispatch(PointerEnter("A"))
    _click(controller, "A")
    controller.dispatch(KeyPress("Escape"))
    assert controller.locked_shape_id is None
    assert controller.display_state("A") is ShapeDisplay.IDLE
    assert calls.active == ["A", None]
    assert sink.calls[-1] == ("clear",)


def test_escape_without_lock_and_other_keys_are_ignored():
    controller, _, sink, _, calls = _build()
    controller.dispatch(KeyPress("Escape"))
    _click(controller, "A")
    controller.dispatch(KeyPress("Enter"))
    assert controller.locked_shape_id == "A"
    assert calls.active == ["A"]


def test_shape_press_captures_pointer_so_canvas_never_pans():
    controller, viewport, _, pan, calls = _build()
    controller.dispatch(PointerDown(7, 100.0, 100.0, target="A"))
    assert controller.capture_owner(7) == "A"
    controller.dispatch(PointerMove(7, 160.0, 130.0))
    controller.dispatch(PointerUp(7, 160.0, 130.0))
    assert viewport.state.translate_x == 0.0 and viewport.state.translate_y == 0.0
    assert pan.active is False
    assert calls.grabs == []
    assert controller.locked_shape_id is None
    assert controller.capture_owner(7) is None


def test_background_drag_pans_by_screen_deltas():
    controller, viewport, _, pan, calls = _build()
    controller.dispatch(PointerDown(1, 10.0, 10.0))
    assert pan.active
    controller.dispatch(PointerMove(1, 15.0, 7.0))
    controller.dispatch(PointerMove(1, 25.0, 17.0))
    controller.dispatch(PointerUp(1, 25.0, 17.0))
    state = viewport.state
    assert (state.translate_x, state.translate_y) == (15.0, 7.0)
    assert calls.grabs == [True, False]
    assert controller.locked_shape_id is None


def test_pan_ignores_non_primary_buttons():
    controller, viewport, _, pan, _ = _build()
    controller.dispatch(PointerDown(1, 10.0, 10.0, button=2))
    controller.dispatch(PointerMove(1, 40.0, 40.0))
    assert pan.active is False
    assert viewport.state.translate_x == 0.0


def test_duplicate_pointer_up_is_idempotent():
    controller, _, _, _, calls = _build()
    controller.dispatch(PointerDown(1, 10.0, 10.0, target="A"))
    controller.dispatch(PointerUp(1, 10.0, 10.0))
    controller.dispatch(PointerUp(1, 10.0, 10.0))
    controller.dispatch(PointerUp(1, 10.0, 10.0))
    assert controller.locked_shape_id == "A"
    assert calls.active == ["A"]


def test_cancel_releases_capture_without_toggle():
    controller, _, _, _, calls = _build()
    controller.dispatch(PointerDown(3, 10.0, 10.0, target="A"))
    controller.dispatch(PointerCancel(3))
    controller.dispatch(PointerUp(3, 10.0, 10.0))
    assert controller.capture_owner(3) is None
    assert controller.locked_shape_id is None
    assert calls.active == []


def test_cancel_ends_background_pan():
    controller, _, _, pan, calls = _build()
    controller.dispatch(PointerDown(2, 0.0, 0.0))
    controller.dispatch(PointerCancel(2))
    assert pan.active is False
    assert calls.grabs == [True, False]


def test_reset_drops_lock_and_notifies():
    controller, _, _, _, calls = _build()
    _click(controller, "A")
    controller.reset()
    assert controller.locked_shape_id is None
    assert calls.active == ["A", None]


def test_custom_tolerance_is_honoured():
    controller, _, _, _, _ = _build(click_tolerance=2.0)
    _click(controller, "A", end=(13.0, 10.0))
    assert controller.locked_shape_id is None
    assert controller.click_tolerance == 2.0
