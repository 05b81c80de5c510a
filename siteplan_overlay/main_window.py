"""Top-level window: canvas, zoom buttons, detail panel and last-updated line."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Dict, Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QKeySequence, QShortcut
from PyQt6.QtWidgets import (
    QHBoxLayout,
    QLabel,
    QMainWindow,
    QPushButton,
    QSizePolicy,
    QVBoxLayout,
    QWidget,
)

from siteplan_overlay.canvas_view import SitePlanView
from siteplan_overlay.details_presenter import IDLE_TEXT, DetailsPresenter
from siteplan_overlay.last_updated import LastUpdatedTracker
from siteplan_overlay.scene_assembler import AssembledScene, assemble_scene
from siteplan_overlay.settings import OverlaySettings
from siteplan_overlay.source_loader import LoadedSources
from siteplan_overlay.status_records import StatusRecord, lookup_record

_LOGGER = logging.getLogger("SitePlanOverlay.Window")

_DETAILS_WIDTH = 320


class SitePlanWindow(QMainWindow):
    """Hosts the canvas and reacts to record sources once they arrive."""

    def __init__(self, settings: OverlaySettings, tracker: Optional[LastUpdatedTracker] = None) -> None:
        super().__init__()
        self._settings = settings
        self._tracker = tracker
        self._records: Dict[str, StatusRecord] = {}
        self._scene: Optional[AssembledScene] = None
        self.setWindowTitle("Site plan")

        self.details_label = QLabel(IDLE_TEXT)
        self.details_label.setTextFormat(Qt.TextFormat.RichText)
        self.details_label.setWordWrap(True)
        self.details_label.setAlignment(Qt.AlignmentFlag.AlignTop | Qt.AlignmentFlag.AlignLeft)
        self.details_label.setFixedWidth(_DETAILS_WIDTH)
        self.details_label.setSizePolicy(QSizePolicy.Policy.Fixed, QSizePolicy.Policy.Expanding)

        self.presenter = DetailsPresenter(
            set_text_fn=self.details_label.setText,
            lookup_fn=self._lookup,
            colors=settings.colors,
            columns=settings.columns,
        )
        self.view = SitePlanView(settings, detail_sink=self.presenter)

        cached_text = tracker.display_text if tracker is not None else None
        self.last_updated_label = QLabel(cached_text or "")
        self.status_label = QLabel("")

        self.zoom_in_button = QPushButton("+")
        self.zoom_out_button = QPushButton("−")
        self.zoom_reset_button = QPushButton("Reset")
        self.zoom_in_button.setToolTip("Zoom in")
        self.zoom_out_button.setToolTip("Zoom out")
        self.zoom_reset_button.setToolTip("Reset view")
        self.zoom_in_button.clicked.connect(self.view.zoom_in)
        self.zoom_out_button.clicked.connect(self.view.zoom_out)
        self.zoom_reset_button.clicked.connect(self.view.reset_zoom)

        # Escape unlocks regardless of which widget has focus
        self.escape_shortcut = QShortcut(QKeySequence(Qt.Key.Key_Escape), self)
        self.escape_shortcut.setContext(Qt.ShortcutContext.ApplicationShortcut)
        self.escape_shortcut.activated.connect(self.view.press_escape)

        buttons = QHBoxLayout()
        buttons.addWidget(self.zoom_in_button)
        buttons.addWidget(self.zoom_out_button)
        buttons.addWidget(self.zoom_reset_button)
        buttons.addStretch(1)
        buttons.addWidget(self.status_label)

        canvas_column = QVBoxLayout()
        canvas_column.addLayout(buttons)
        canvas_column.addWidget(self.view, 1)
        canvas_column.addWidget(self.last_updated_label)

        layout = QHBoxLayout()
        layout.addLayout(canvas_column, 1)
        layout.addWidget(self.details_label)

        central = QWidget(self)
        central.setLayout(layout)
        self.setCentralWidget(central)
        self.resize(1200, 800)

    @property
    def scene(self) -> Optional[AssembledScene]:
        return self._scene

    def load_artwork(self, path: Path) -> None:
        self.view.load_artwork(path)

    def set_status_text(self, text: str) -> None:
        self.status_label.setText(text)

    def apply_sources(self, sources: LoadedSources) -> None:
        """Align the polygons to the artwork and draw them; runs on the UI thread."""

        self._records = dict(sources.table.records)
        self._scene = assemble_scene(
            sources.polygons,
            self._records,
            self.view.artwork.box,
            self._settings,
        )
        self.view.set_shapes(self._scene.shapes)
        if self._tracker is not None and sources.sheet_fetch is not None:
            display = self._tracker.observe(sources.sheet_fetch, sources.table.sheet_updated)
            if display is not None:
                self.last_updated_label.setText(display)
        _LOGGER.debug("Applied sources: %d shapes, %d records", len(self._scene.shapes), len(self._records))

    def _lookup(self, shape_id: str) -> Optional[StatusRecord]:
        return lookup_record(self._records, shape_id)
