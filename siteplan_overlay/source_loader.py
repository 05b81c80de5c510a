"""Background loader that fetches both record sources and hands them to Qt."""
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import List, Optional

from PyQt6.QtCore import QObject, pyqtSignal

from siteplan_overlay.alignment import SourcePolygon
from siteplan_overlay.polygon_records import load_polygons
from siteplan_overlay.record_fetch import FetchedText
from siteplan_overlay.settings import OverlaySettings
from siteplan_overlay.status_records import StatusTable, load_status_table

_LOGGER = logging.getLogger("SitePlanOverlay.Loader")


@dataclass(frozen=True)
class LoadedSources:
    table: StatusTable = field(default_factory=StatusTable)
    polygons: List[SourcePolygon] = field(default_factory=list)
    sheet_fetch: Optional[FetchedText] = None


async def gather_sources(settings: OverlaySettings) -> LoadedSources:
    """Fetch the sheet and polygons concurrently; each one fails on its own."""

    columns = settings.columns
    sheet_task = asyncio.to_thread(
        load_status_table,
        settings.sheet_url,
        timeout=settings.fetch_timeout,
        id_column=columns.stand_id,
        status_column=columns.status,
        updated_column=columns.updated,
    )
    polygons_task = asyncio.to_thread(load_polygons, settings.polygons_location, timeout=settings.fetch_timeout)
    sheet_result, polygons_result = await asyncio.gather(sheet_task, polygons_task, return_exceptions=True)

    table = StatusTable()
    fetched: Optional[FetchedText] = None
    if isinstance(sheet_result, BaseException):
        _LOGGER.warning("Status sheet load failed: %s", sheet_result)
    else:
        table, fetched = sheet_result
    polygons: List[SourcePolygon] = []
    if isinstance(polygons_result, BaseException):
        _LOGGER.warning("Polygon load failed: %s", polygons_result)
    else:
        polygons = polygons_result
    return LoadedSources(table=table, polygons=polygons, sheet_fetch=fetched)


class SourceLoader(QObject):
    """Runs :func:`gather_sources` on a worker thread and emits the result."""

    loaded = pyqtSignal(object)
    status_changed = pyqtSignal(str)

    def __init__(self, settings: OverlaySettings) -> None:
        super().__init__()
        self._settings = settings
        self._thread: Optional[threading.Thread] = None
        self._stop_event = threading.Event()

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._thread_main, name="SitePlan-Loader", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=5.0)
        self._thread = None

    # Background thread ----------------------------------------------------

    def _thread_main(self) -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        try:
            loop.run_until_complete(self._run())
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()

    async def _run(self) -> None:
        self.status_changed.emit("Loading stand data…")
        sources = await gather_sources(self._settings)
        if self._stop_event.is_set():
            _LOGGER.debug("Loader stopped before results were delivered")
            return
        _LOGGER.info(
            "Loaded %d status records and %d polygons",
            len(sources.table.records),
            len(sources.polygons),
        )
        self.status_changed.emit("")
        self.loaded.emit(sources)
