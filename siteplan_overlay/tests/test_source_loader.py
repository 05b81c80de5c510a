from __future__ import annotations

import asyncio

from siteplan_overlay import source_loader
from siteplan_overlay.alignment import SourcePolygon
from siteplan_overlay.record_fetch import FetchedText
from siteplan_overlay.settings import ColumnNames, OverlaySettings
from siteplan_overlay.status_records import parse_status_table


def test_gather_sources_combines_both_sources(monkeypatch):
    calls = {}
    table = parse_status_table("Stand,State\nA1,Available\n", id_column="Stand", status_column="State")
    fetched = FetchedText("Stand,State\nA1,Available\n", etag="v1")

    def fake_table(location, *, timeout, id_column, status_column, updated_column):
        calls["sheet"] = (location, timeout, id_column, status_column, updated_column)
        return table, fetched

    def fake_polygons(location, *, timeout):
        calls["polygons"] = (location, timeout)
        return [SourcePolygon("A1", ((0.0, 0.0), (1.0, 1.0)))]

    monkeypatch.setattr(source_loader, "load_status_table", fake_table)
    monkeypatch.setattr(source_loader, "load_polygons", fake_polygons)
    settings = OverlaySettings(
        sheet_url="https://sheet.example/csv",
        polygons_location="/data/polygons.json",
        fetch_timeout=3.0,
        columns=ColumnNames(stand_id="Stand", status="State"),
    )

    sources = asyncio.run(source_loader.gather_sources(settings))

    assert calls["sheet"] == ("https://sheet.example/csv", 3.0, "Stand", "State", "LastUpdated")
    assert calls["polygons"] == ("/data/polygons.json", 3.0)
    assert sources.table is table
    assert sources.sheet_fetch is fetched
    assert [p.polygon_id for p in sources.polygons] == ["A1"]


def test_gather_sources_isolates_failures(monkeypatch, caplog):
    def broken_table(location, **kwargs):
        raise RuntimeError("sheet exploded")

    def fake_polygons(location, *, timeout):
        return [SourcePolygon("B2", ((0.0, 0.0),))]

    monkeypatch.setattr(source_loader, "load_status_table", broken_table)
    monkeypatch.setattr(source_loader, "load_polygons", fake_polygons)

    with caplog.at_level("WARNING", logger="SitePlanOverlay.Loader"):
        sources = asyncio.run(source_loader.gather_sources(OverlaySettings()))

    assert sources.table.records == {}
    assert sources.sheet_fetch is None
    assert [p.polygon_id for p in sources.polygons] == ["B2"]
    assert any("sheet exploded" in record.getMessage() for record in caplog.records)


def test_gather_sources_with_both_sources_failing(monkeypatch):
    def broken(location, **kwargs):
        raise OSError("offline")

    monkeypatch.setattr(source_loader, "load_status_table", broken)
    monkeypatch.setattr(source_loader, "load_polygons", broken)

    sources = asyncio.run(source_loader.gather_sources(OverlaySettings()))

    assert sources.table.records == {}
    assert sources.polygons == []
