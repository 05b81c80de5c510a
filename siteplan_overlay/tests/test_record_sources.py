from __future__ import annotations

import json

import pytest
import requests

from siteplan_overlay import polygon_records, status_records
from siteplan_overlay.record_fetch import FetchedText, SourceError, fetch_text, is_remote
from siteplan_overlay.status_records import (
    AVAILABLE,
    RESERVED,
    UNAVAILABLE,
    UNKNOWN,
    classify_status,
    lookup_record,
    normalize_id,
    parse_status_table,
)

SHEET = (
    "StandID,Status,Size,Price,LastUpdated\n"
    "A1,Available,450,R 1 200 000,2025-01-31 13:32\n"
    "a2 ,  Reserved  ,300,,\n"
    "B7,Unavailable,,\"R 900,000\",\n"
    ",Available,1,1,\n"
    "C3,N/A\n"
)


class DummyResponse:
    def __init__(self, text="", headers=None, error=None):
        self.text = text
        self.headers = headers or {}
        self._error = error
        self.closed = False

    def raise_for_status(self):
        if self._error is not None:
            raise self._error

    def close(self):
        self.closed = True


class DummySession:
    def __init__(self, response=None, exc=None):
        self.headers = {}
        self.calls = []
        self._response = response
        self._exc = exc

    def get(self, url, headers=None, timeout=None):
        self.calls.append((url, headers, timeout))
        if self._exc is not None:
            raise self._exc
        return self._response

    def close(self):
        pass


@pytest.mark.parametrize(
    "text, expected",
    [
        ("  Reserved  ", RESERVED),
        ("Pending", RESERVED),
        ("pending review", UNKNOWN),
        ("N/A", UNKNOWN),
        ("AVAILABLE", AVAILABLE),
        ("avail.", AVAILABLE),
        ("Unavailable", UNAVAILABLE),
        ("unavail - sold", UNAVAILABLE),
        ("", UNKNOWN),
        (None, UNKNOWN),
    ],
)
def test_classify_status(text, expected):
    assert classify_status(text) == expected


def test_normalize_id():
    assert normalize_id("  Stand-A1 ") == "stand-a1"
    assert normalize_id(None) == ""
    assert normalize_id(12) == "12"


def test_parse_status_table_builds_normalized_map():
    table = parse_status_table(SHEET)
    assert set(table.records) == {"a1", "a2", "b7", "c3"}
    a2 = table.records["a2"]
    assert a2.record_id == "a2"
    assert a2.status == RESERVED
    assert a2.raw_status == "  Reserved  "
    assert table.records["b7"].status == UNAVAILABLE
    assert dict(table.records["b7"].attributes)["Price"] == "R 900,000"
    assert table.records["c3"].status == UNKNOWN
    assert table.headers == ("StandID", "Status", "Size", "Price", "LastUpdated")
    assert table.sheet_updated == "2025-01-31 13:32"


def test_short_rows_are_padded_with_empty_values():
    table = parse_status_table(SHEET)
    attributes = dict(table.records["c3"].attributes)
    assert attributes["Size"] == ""
    assert attributes["LastUpdated"] == ""


def test_extra_cells_on_every_row_are_ignored():
    table = parse_status_table("StandID,Status\nA1,Reserved,note\nB2,Available,other,more\n")
    assert set(table.records) == {"a1", "b2"}
    assert table.records["a1"].record_id == "A1"
    assert table.records["a1"].status == RESERVED
    assert table.records["a1"].attributes == (("StandID", "A1"), ("Status", "Reserved"))


def test_single_long_row_keeps_the_rest_of_the_sheet():
    table = parse_status_table("StandID,Status\nA1,Available\nA2,Reserved,note\n")
    assert table.records["a1"].status == AVAILABLE
    assert table.records["a2"].status == RESERVED
    assert dict(table.records["a2"].attributes) == {"StandID": "A2", "Status": "Reserved"}


def test_header_matching_is_case_insensitive():
    table = parse_status_table("standid,STATUS\nX9,available\n")
    assert table.records["x9"].status == AVAILABLE


def test_missing_id_column_yields_empty_map():
    table = parse_status_table("Name,Status\nfoo,Available\n")
    assert table.records == {}


def test_missing_status_column_classifies_unknown():
    table = parse_status_table("StandID,Size\nA1,20\n")
    assert table.records["a1"].status == UNKNOWN


@pytest.mark.parametrize("text", ["", "   \n", None])
def test_empty_sheet_is_empty_table(text):
    assert parse_status_table(text).records == {}


def test_lookup_strips_stand_prefix():
    table = parse_status_table(SHEET)
    assert lookup_record(table.records, "Stand-A1").record_id == "A1"
    assert lookup_record(table.records, "A1").record_id == "A1"
    assert lookup_record(table.records, "stand-zz") is None
    assert lookup_record(table.records, None) is None


def test_fetch_text_reads_local_files(tmp_path):
    path = tmp_path / "sheet.csv"
    path.write_text("\ufeffStandID,Status\n", encoding="utf-8")
    fetched = fetch_text(str(path))
    assert fetched.text == "StandID,Status\n"
    assert fetched.last_modified == "" and fetched.etag == ""


def test_fetch_text_missing_file_raises_source_error(tmp_path):
    with pytest.raises(SourceError):
        fetch_text(str(tmp_path / "missing.csv"))


def test_fetch_text_uses_no_cache_request_and_keeps_validators():
    response = DummyResponse("a,b\n", headers={"Last-Modified": "Fri, 31 Jan 2025 11:32:00 GMT", "ETag": '"v1"'})
    session = DummySession(response)
    fetched = fetch_text("https://example.test/sheet.csv", timeout=4.0, session=session)
    url, headers, timeout = session.calls[0]
    assert url == "https://example.test/sheet.csv"
    assert headers["Cache-Control"] == "no-cache"
    assert timeout == 4.0
    assert fetched == FetchedText("a,b\n", "Fri, 31 Jan 2025 11:32:00 GMT", '"v1"', "https://example.test/sheet.csv")
    assert response.closed


@pytest.mark.parametrize(
    "session",
    [
        DummySession(exc=requests.ConnectionError("offline")),
        DummySession(DummyResponse(error=requests.HTTPError("404"))),
    ],
)
def test_fetch_text_wraps_request_failures(session):
    with pytest.raises(SourceError):
        fetch_text("http://example.test/sheet.csv", session=session)


def test_is_remote():
    assert is_remote("https://docs.example/pub?output=csv")
    assert not is_remote("polygons.json")
    assert not is_remote("C:/data/polygons.json")


def test_load_status_table_absorbs_upstream_failure(monkeypatch):
    def failing_fetch(location, timeout):
        raise SourceError("boom")

    monkeypatch.setattr(status_records, "fetch_text", failing_fetch)
    table, fetched = status_records.load_status_table("https://example.test/sheet.csv")
    assert table.records == {}
    assert fetched is None


def test_load_status_table_without_location_is_empty():
    table, fetched = status_records.load_status_table("")
    assert table.records == {} and fetched is None


def test_parse_polygon_document_keeps_order_and_empty_polygons():
    data = {
        "polygons": [
            {"id": "stand-B", "points": "0,0 10,0 oops 10,10"},
            {"id": "stand-A", "points": "junk"},
            {"id": "stand-C"},
            "not-an-object",
            {"id": 42, "points": "1,1 2,2"},
        ]
    }
    polygons = polygon_records.parse_polygon_document(data)
    assert [p.polygon_id for p in polygons] == ["stand-B", "stand-A", "stand-C", "42"]
    assert polygons[0].points == ((0.0, 0.0), (10.0, 0.0), (10.0, 10.0))
    assert polygons[1].points == ()
    assert polygons[2].points == ()


@pytest.mark.parametrize("data", [None, [], {"polygons": {"id": "x"}}, {"other": []}])
def test_parse_polygon_document_rejects_non_list(data):
    assert polygon_records.parse_polygon_document(data) == []


def test_invalid_polygon_json_is_logged_and_empty(caplog):
    with caplog.at_level("WARNING", logger="SitePlanOverlay.Sources"):
        assert polygon_records.parse_polygon_text('{"polygons": [,]}') == []
    assert any("not valid" in record.getMessage() for record in caplog.records)


def test_load_polygons_from_file(tmp_path):
    path = tmp_path / "polygons.json"
    path.write_text(json.dumps({"polygons": [{"id": "A", "points": "0,0 1,0 1,1"}]}), encoding="utf-8")
    polygons = polygon_records.load_polygons(str(path))
    assert len(polygons) == 1 and polygons[0].polygon_id == "A"


def test_load_polygons_failure_is_empty(tmp_path):
    assert polygon_records.load_polygons(str(tmp_path / "absent.json")) == []
    assert polygon_records.load_polygons("") == []
