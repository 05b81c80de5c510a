"""Stand status records parsed from the published sheet (CSV)."""
from __future__ import annotations

import io
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple

import pandas as pd
from pandas.errors import EmptyDataError, ParserError

from siteplan_overlay.record_fetch import FetchedText, SourceError, fetch_text

_LOGGER = logging.getLogger("SitePlanOverlay.Sources")

AVAILABLE = "available"
RESERVED = "reserved"
UNAVAILABLE = "unavailable"
UNKNOWN = "unknown"
STATUS_KEYS = (AVAILABLE, RESERVED, UNAVAILABLE, UNKNOWN)


def normalize_id(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip().lower()


def classify_status(text: Any) -> str:
    token = normalize_id(text)
    if token.startswith("avail"):
        return AVAILABLE
    if token.startswith("reser") or token == "pending":
        return RESERVED
    if token.startswith("unavail"):
        return UNAVAILABLE
    return UNKNOWN


@dataclass(frozen=True)
class StatusRecord:
    record_id: str
    status: str
    raw_status: str
    attributes: Tuple[Tuple[str, str], ...] = ()


@dataclass(frozen=True)
class StatusTable:
    records: Dict[str, StatusRecord] = field(default_factory=dict)
    headers: Tuple[str, ...] = ()
    sheet_updated: Optional[str] = None


def lookup_record(records: Mapping[str, StatusRecord], shape_id: Optional[str]) -> Optional[StatusRecord]:
    """Find a record by shape id, also trying the id without a ``stand-`` prefix."""

    key = normalize_id(shape_id)
    record = records.get(key)
    if record is not None:
        return record
    if key.startswith("stand-"):
        return records.get(key[len("stand-"):])
    return None


def _find_column(headers: Tuple[str, ...], name: str) -> int:
    wanted = normalize_id(name)
    for index, header in enumerate(headers):
        if normalize_id(header) == wanted:
            return index
    return -1


def parse_status_table(
    text: str,
    *,
    id_column: str = "StandID",
    status_column: str = "Status",
    updated_column: str = "LastUpdated",
) -> StatusTable:
    """Parse the sheet CSV into records keyed by normalised stand id."""

    if not text or not text.strip():
        return StatusTable()
    try:
        width = len(pd.read_csv(io.StringIO(text), nrows=0).columns)
        # extra cells past the header are dropped, never shifted into an index
        frame = pd.read_csv(
            io.StringIO(text),
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            index_col=False,
            engine="python",
            on_bad_lines=lambda fields: fields[:width],
        )
    except (EmptyDataError, ParserError) as exc:
        _LOGGER.warning("Status sheet could not be parsed: %s", exc)
        return StatusTable()

    headers = tuple(str(column).strip() for column in frame.columns)
    id_index = _find_column(headers, id_column)
    status_index = _find_column(headers, status_column)
    updated_index = _find_column(headers, updated_column)
    if id_index < 0:
        _LOGGER.warning("Status sheet has no %r column (headers=%s)", id_column, ", ".join(headers))
        return StatusTable(headers=headers)

    sheet_updated: Optional[str] = None
    records: Dict[str, StatusRecord] = {}
    for row in frame.itertuples(index=False, name=None):
        # short rows come back padded with NaN
        values = tuple("" if pd.isna(value) else str(value) for value in row)
        if sheet_updated is None and updated_index >= 0 and values[updated_index].strip():
            sheet_updated = values[updated_index]
        raw_id = values[id_index]
        if not raw_id.strip():
            continue
        raw_status = values[status_index] if status_index >= 0 else ""
        records[normalize_id(raw_id)] = StatusRecord(
            record_id=raw_id.strip(),
            status=classify_status(raw_status),
            raw_status=raw_status,
            attributes=tuple(zip(headers, values)),
        )
    _LOGGER.debug("Parsed %d status records from sheet", len(records))
    return StatusTable(records=records, headers=headers, sheet_updated=sheet_updated)


def load_status_table(
    location: str,
    *,
    timeout: float = 10.0,
    id_column: str = "StandID",
    status_column: str = "Status",
    updated_column: str = "LastUpdated",
) -> Tuple[StatusTable, Optional[FetchedText]]:
    """Fetch and parse the sheet; an unavailable sheet yields an empty table."""

    if not location:
        return StatusTable(), None
    try:
        fetched = fetch_text(location, timeout=timeout)
    except SourceError as exc:
        _LOGGER.warning("Status source unavailable: %s", exc)
        return StatusTable(), None
    table = parse_status_table(
        fetched.text,
        id_column=id_column,
        status_column=status_column,
        updated_column=updated_column,
    )
    return table, fetched
