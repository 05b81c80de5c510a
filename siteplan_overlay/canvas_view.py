"""QGraphicsView hosting the site plan artwork and the stand polygons.

Item hierarchy (all transforms are parent-relative)::

    scene (widget pixels)
      canvas root      canvas fit: artwork units -> widget pixels
        viewport layer translate(tx ty) scale(s)
          artwork      QGraphicsSvgItem, mapped onto SVG user units
          stand layer  StandPolygonItem per stand
"""
from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterable, Optional

from PyQt6.QtCore import QPointF, QRectF, Qt
from PyQt6.QtGui import QBrush, QColor, QPainter, QPen, QPolygonF, QTransform
from PyQt6.QtSvg import QSvgRenderer
from PyQt6.QtSvgWidgets import QGraphicsSvgItem
from PyQt6.QtWidgets import QGraphicsItem, QGraphicsPolygonItem, QGraphicsScene, QGraphicsView

from siteplan_overlay.artwork_locator import ArtworkLocation, ArtworkTier, locate_artwork_box
from siteplan_overlay.canvas_fit import CanvasFit, compute_canvas_fit
from siteplan_overlay.geometry import Affine
from siteplan_overlay.interaction import (
    ESCAPE_KEY,
    DetailSink,
    InteractionController,
    InteractionEvent,
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
from siteplan_overlay.scene_assembler import StandShape
from siteplan_overlay.scene_graph import DEFAULT_VIEW_REGION, SvgScene
from siteplan_overlay.settings import OverlaySettings
from siteplan_overlay.viewport import ViewportController, ViewportState

_LOGGER = logging.getLogger("SitePlanOverlay.Canvas")

MOUSE_POINTER_ID = 1
_BUTTON_CODES = {
    Qt.MouseButton.LeftButton: 0,
    Qt.MouseButton.MiddleButton: 1,
    Qt.MouseButton.RightButton: 2,
}


def affine_to_qtransform(matrix: Affine) -> QTransform:
    return QTransform(matrix.a, matrix.b, matrix.c, matrix.d, matrix.e, matrix.f)


def qtransform_to_affine(transform: QTransform) -> Affine:
    return Affine(
        a=transform.m11(),
        b=transform.m12(),
        c=transform.m21(),
        d=transform.m22(),
        e=transform.dx(),
        f=transform.dy(),
    )


def _color(value: str, opacity: float) -> QColor:
    color = QColor(value)
    if not color.isValid():
        color = QColor("#9ea3a8")
    color.setAlphaF(min(1.0, max(0.0, opacity)))
    return color


class _LayerItem(QGraphicsItem):
    """Paint-less grouping item; unlike QGraphicsItemGroup it leaves child events alone."""

    def __init__(self, parent: Optional[QGraphicsItem] = None) -> None:
        super().__init__(parent)
        self.setFlag(QGraphicsItem.GraphicsItemFlag.ItemHasNoContents, True)

    def boundingRect(self) -> QRectF:  # type: ignore[override]
        return QRectF()

    def paint(self, painter, option, widget=None) -> None:  # type: ignore[override]
        return


class StandPolygonItem(QGraphicsPolygonItem):
    """One stand polygon, styled from its status colour and display state."""

    def __init__(self, shape: StandShape, settings: OverlaySettings, parent: Optional[QGraphicsItem] = None) -> None:
        polygon = QPolygonF([QPointF(x, y) for x, y in shape.points])
        super().__init__(polygon, parent)
        self.shape_id = shape.shape_id
        self.stand = shape
        self._settings = settings
        self._display = ShapeDisplay.IDLE
        self.setAcceptHoverEvents(False)
        self.apply_display(ShapeDisplay.IDLE)

    @property
    def display(self) -> ShapeDisplay:
        return self._display

    def apply_display(self, display: ShapeDisplay) -> None:
        self._display = display
        settings = self._settings
        if display in (ShapeDisplay.LOCKED, ShapeDisplay.LOCKED_HOVERED):
            pen = QPen(_color(settings.stroke_color, 1.0))
            pen.setWidthF(settings.stroke_width * 2.0)
            fill_opacity = min(1.0, settings.fill_opacity + 0.25)
        elif display == ShapeDisplay.HOVERED:
            pen = QPen(_color(settings.stroke_color, min(1.0, settings.stroke_opacity * 2.0)))
            pen.setWidthF(settings.stroke_width * 1.5)
            fill_opacity = min(1.0, settings.fill_opacity + 0.15)
        else:
            pen = QPen(_color(settings.stroke_color, settings.stroke_opacity))
            pen.setWidthF(settings.stroke_width)
            fill_opacity = settings.fill_opacity
        pen.setCosmetic(True)
        pen.setJoinStyle(Qt.PenJoinStyle.RoundJoin)
        self.setPen(pen)
        self.setBrush(QBrush(_color(self.stand.color, fill_opacity)))


def load_artwork_scene(path: Path) -> Optional[SvgScene]:
    try:
        return SvgScene.from_file(path)
    except (OSError, ET.ParseError) as exc:
        _LOGGER.warning("Artwork %s could not be read: %s", path, exc)
        return None


class SitePlanView(QGraphicsView):
    """Canvas widget: routes pointer input into the interaction controller."""

    def __init__(
        self,
        settings: OverlaySettings,
        *,
        detail_sink: Optional[DetailSink] = None,
        parent=None,
    ) -> None:
        super().__init__(parent)
        self._settings = settings
        self._graphics_scene = QGraphicsScene(self)
        self.setScene(self._graphics_scene)
        self.setHorizontalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setVerticalScrollBarPolicy(Qt.ScrollBarPolicy.ScrollBarAlwaysOff)
        self.setAlignment(Qt.AlignmentFlag.AlignLeft | Qt.AlignmentFlag.AlignTop)
        self.setTransformationAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setResizeAnchor(QGraphicsView.ViewportAnchor.NoAnchor)
        self.setRenderHint(QPainter.RenderHint.Antialiasing, True)
        self.setFocusPolicy(Qt.FocusPolicy.StrongFocus)
        self.setMouseTracking(True)

        self._canvas_root = _LayerItem()
        self._graphics_scene.addItem(self._canvas_root)
        self._viewport_layer = _LayerItem(self._canvas_root)
        self._stand_layer = _LayerItem(self._viewport_layer)
        self._stand_layer.setZValue(1.0)
        self._artwork_item: Optional[QGraphicsSvgItem] = None
        self._renderer: Optional[QSvgRenderer] = None
        self._items: Dict[str, StandPolygonItem] = {}
        self._hovered: Optional[str] = None
        self._artwork = ArtworkLocation(DEFAULT_VIEW_REGION, ArtworkTier.VIEW_REGION_FALLBACK, None)
        self._fit: CanvasFit = compute_canvas_fit(max(self.width(), 1), max(self.height(), 1), self._artwork.box)

        self.viewport_controller = ViewportController(
            min_scale=settings.min_scale,
            max_scale=settings.max_scale,
            screen_matrix_fn=self.screen_matrix,
            on_change=self._apply_viewport_state,
            button_step=settings.zoom_button_step,
            wheel_rate=settings.wheel_zoom_rate,
        )
        self._pan_handler = PanGestureHandler(self.viewport_controller, on_grab_changed=self._set_grabbing)
        self.interaction = InteractionController(
            detail_sink=detail_sink,
            pan_handler=self._pan_handler,
            on_active_changed=self._on_active_changed,
            click_tolerance=settings.click_tolerance,
        )
        self._refresh_cursor()

    # Collaborator wiring ---------------------------------------------------

    @property
    def pan_handler(self) -> PanGestureHandler:
        return self._pan_handler

    @property
    def artwork(self) -> ArtworkLocation:
        return self._artwork

    @property
    def canvas_fit(self) -> CanvasFit:
        return self._fit

    def stand_items(self) -> Dict[str, StandPolygonItem]:
        return dict(self._items)

    def screen_matrix(self) -> Affine:
        """Canvas units -> widget pixels, including the view's own transform."""

        return qtransform_to_affine(self.viewportTransform()).multiply(self._fit.as_affine())

    # Content ---------------------------------------------------------------

    def load_artwork(self, path: Path) -> ArtworkLocation:
        """Show the SVG at ``path`` and locate the artwork box used for alignment."""

        if self._artwork_item is not None:
            self._graphics_scene.removeItem(self._artwork_item)
            self._artwork_item = None
        scene = load_artwork_scene(path)
        if scene is None:
            self._artwork = ArtworkLocation(DEFAULT_VIEW_REGION, ArtworkTier.VIEW_REGION_FALLBACK, None)
            self._update_fit()
            return self._artwork

        renderer = QSvgRenderer(str(path))
        if renderer.isValid():
            item = QGraphicsSvgItem()
            item.setSharedRenderer(renderer)
            item.setParentItem(self._viewport_layer)
            item.setTransform(affine_to_qtransform(self._svg_item_matrix(scene, renderer)))
            item.setZValue(0.0)
            self._renderer = renderer
            self._artwork_item = item
        else:
            _LOGGER.warning("Qt could not render artwork %s; stands will be drawn without it", path)
        self._artwork = locate_artwork_box(scene)
        _LOGGER.info(
            "Artwork box %s via %s",
            tuple(round(v, 2) for v in self._artwork.box.as_rect()),
            self._artwork.tier.value,
        )
        self._update_fit()
        return self._artwork

    @staticmethod
    def _svg_item_matrix(scene: SvgScene, renderer: QSvgRenderer) -> Affine:
        # the item paints the view region into (0, 0, defaultSize)
        region = scene.view_region()
        size = renderer.defaultSize()
        if size.width() <= 0 or size.height() <= 0 or region.is_degenerate:
            return Affine.identity()
        return Affine.translation(region.x, region.y).multiply(
            Affine.scaling(region.width / size.width(), region.height / size.height())
        )

    def set_shapes(self, shapes: Iterable[StandShape]) -> None:
        for item in self._items.values():
            self._graphics_scene.removeItem(item)
        self._items = {}
        self._hovered = None
        self.interaction.reset()
        for shape in shapes:
            if not shape.points:
                continue
            if shape.shape_id in self._items:
                _LOGGER.debug("Duplicate stand id %s; keeping the first polygon", shape.shape_id)
                continue
            self._items[shape.shape_id] = StandPolygonItem(shape, self._settings, self._stand_layer)
        _LOGGER.debug("Canvas now shows %d stands", len(self._items))

    def refresh_styles(self) -> None:
        for shape_id, item in self._items.items():
            display = self.interaction.display_state(shape_id)
            if display != item.display:
                item.apply_display(display)

    # Viewport --------------------------------------------------------------

    def zoom_in(self) -> bool:
        return self.viewport_controller.zoom_in_at_center(self.viewport().width(), self.viewport().height())

    def zoom_out(self) -> bool:
        return self.viewport_controller.zoom_out_at_center(self.viewport().width(), self.viewport().height())

    def reset_zoom(self) -> None:
        self.viewport_controller.reset()

    def _apply_viewport_state(self, state: ViewportState) -> None:
        self._viewport_layer.setTransform(affine_to_qtransform(self.viewport_controller.as_affine()))
        self._refresh_cursor()

    def _update_fit(self) -> None:
        width = max(self.viewport().width(), 1)
        height = max(self.viewport().height(), 1)
        self._graphics_scene.setSceneRect(QRectF(0.0, 0.0, float(width), float(height)))
        self._fit = compute_canvas_fit(width, height, self._artwork.box)
        self._canvas_root.setTransform(affine_to_qtransform(self._fit.as_affine()))

    def _on_active_changed(self, shape_id: Optional[str]) -> None:
        _LOGGER.debug("Active stand is now %s", shape_id)
        self.refresh_styles()

    def _set_grabbing(self, grabbing: bool) -> None:
        if grabbing:
            self.viewport().setCursor(Qt.CursorShape.ClosedHandCursor)
        else:
            self._refresh_cursor()

    def _refresh_cursor(self) -> None:
        if self._pan_handler.active:
            return
        shape = Qt.CursorShape.OpenHandCursor if self.viewport_controller.can_pan else Qt.CursorShape.ArrowCursor
        self.viewport().setCursor(shape)

    # Event routing ---------------------------------------------------------

    def _dispatch(self, event: InteractionEvent) -> None:
        self.interaction.dispatch(event)
        self.refresh_styles()

    def _shape_at(self, pos) -> Optional[str]:
        for item in self.items(pos):
            if isinstance(item, StandPolygonItem):
                return item.shape_id
        return None

    def _update_hover(self, shape_id: Optional[str]) -> None:
        if shape_id == self._hovered:
            return
        previous = self._hovered
        self._hovered = shape_id
        if previous is not None:
            self._dispatch(PointerLeave(previous))
        if shape_id is not None:
            self._dispatch(PointerEnter(shape_id))

    def resizeEvent(self, event) -> None:  # type: ignore[override]
        super().resizeEvent(event)
        self._update_fit()

    def mousePressEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        button = _BUTTON_CODES.get(event.button(), 3)
        target = self._shape_at(pos.toPoint())
        self.setFocus(Qt.FocusReason.MouseFocusReason)
        self._dispatch(PointerDown(MOUSE_POINTER_ID, pos.x(), pos.y(), target=target, button=button))
        event.accept()

    def mouseMoveEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        # a shape holding the pointer keeps hover until release
        if self.interaction.capture_owner(MOUSE_POINTER_ID) is None and not self._pan_handler.active:
            self._update_hover(self._shape_at(pos.toPoint()))
        self._dispatch(PointerMove(MOUSE_POINTER_ID, pos.x(), pos.y()))
        event.accept()

    def mouseReleaseEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        self._dispatch(PointerUp(MOUSE_POINTER_ID, pos.x(), pos.y()))
        self._update_hover(self._shape_at(pos.toPoint()))
        event.accept()

    def mouseDoubleClickEvent(self, event) -> None:  # type: ignore[override]
        self.mousePressEvent(event)

    def wheelEvent(self, event) -> None:  # type: ignore[override]
        pos = event.position()
        delta = self.viewport_controller.wheel_log_delta(float(event.angleDelta().y()))
        if delta:
            self.viewport_controller.zoom_at(pos.x(), pos.y(), delta)
        event.accept()

    def leaveEvent(self, event) -> None:  # type: ignore[override]
        if self.interaction.capture_owner(MOUSE_POINTER_ID) is None:
            self._update_hover(None)
        super().leaveEvent(event)

    def focusOutEvent(self, event) -> None:  # type: ignore[override]
        if self._pan_handler.active or self.interaction.capture_owner(MOUSE_POINTER_ID) is not None:
            self._dispatch(PointerCancel(MOUSE_POINTER_ID))
        super().focusOutEvent(event)

    def press_escape(self) -> None:
        self._dispatch(KeyPress(ESCAPE_KEY))

    def keyPressEvent(self, event) -> None:  # type: ignore[override]
        if event.key() == Qt.Key.Key_Escape:
            self.press_escape()
            event.accept()
            return
        super().keyPressEvent(event)

