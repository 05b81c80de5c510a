"""Formats the stand detail panel shown beside the site plan."""
from __future__ import annotations

import html
from dataclasses import dataclass
from typing import Callable, Mapping, Optional, Tuple

from siteplan_overlay.settings import ColumnNames
from siteplan_overlay.status_records import UNKNOWN, StatusRecord, normalize_id

IDLE_TEXT = "Hover over a stand on the map to see its details here."
LOCK_HINT = "Locked. Click the stand again to unlock or press esc."
NO_DATA_TEXT = "No extra data in sheet for this stand."
SIZE_SUFFIX = " m²"
_PILL_ALPHA = 0x22 / 255


@dataclass(frozen=True)
class StandDetails:
    stand_id: str
    status: str
    raw_status: str
    attributes: Tuple[Tuple[str, str], ...]
    has_record: bool


def details_for(shape_id: str, record: Optional[StatusRecord]) -> StandDetails:
    if record is None:
        return StandDetails(shape_id, UNKNOWN, "", (), False)
    return StandDetails(record.record_id or shape_id, record.status, record.raw_status, record.attributes, True)


def _stand_label(stand_id: str) -> str:
    return stand_id.strip() or "(unknown)"


def _row(label: str, value_html: str) -> str:
    return f"<tr><td>{html.escape(label)}:</td><td>{value_html}</td></tr>"


def _tint(color: str, alpha: float) -> str:
    """Hex colour as a translucent ``rgba()``; anything else is returned unchanged."""

    value = color.strip().lstrip("#")
    if len(value) == 3:
        value = "".join(ch * 2 for ch in value)
    if len(value) != 6:
        return color
    try:
        red, green, blue = (int(value[i : i + 2], 16) for i in (0, 2, 4))
    except ValueError:
        return color
    return f"rgba({red}, {green}, {blue}, {alpha:.2f})"


def _status_label(details: StandDetails) -> str:
    raw = details.raw_status.strip()
    return raw or details.status


def format_details_html(
    details: StandDetails,
    *,
    locked: bool,
    colors: Mapping[str, str],
    columns: ColumnNames = ColumnNames(),
) -> str:
    """Render one stand as an HTML fragment for a rich-text label."""

    color = colors.get(details.status) or colors.get(UNKNOWN, "#9ea3a8")
    pill = (
        f'<span style="background-color:{html.escape(_tint(color, _PILL_ALPHA))};color:#000000;">'
        f"&nbsp;{html.escape(_status_label(details))}&nbsp;</span>"
    )
    rows = [
        _row("Stand", f"<b>{html.escape(_stand_label(details.stand_id))}</b>"),
        _row("Status", pill),
    ]
    hidden = {normalize_id(columns.stand_id), normalize_id(columns.status)}
    size_key = normalize_id(columns.size)
    for name, value in details.attributes:
        key = normalize_id(name)
        if key in hidden:
            continue
        text = str(value).strip()
        if key == size_key and text:
            text = f"{text}{SIZE_SUFFIX}"
        rows.append(_row(name, html.escape(text)))
    parts = ["<table>" + "".join(rows) + "</table>"]
    if not details.has_record:
        parts.append(f"<div><i>{html.escape(NO_DATA_TEXT)}</i></div>")
    if locked:
        parts.append(f"<div><small>{html.escape(LOCK_HINT)}</small></div>")
    return "".join(parts)


class DetailsPresenter:
    """Implements the interaction detail sink on top of a text callback."""

    def __init__(
        self,
        *,
        set_text_fn: Callable[[str], None],
        lookup_fn: Callable[[str], Optional[StatusRecord]],
        colors: Mapping[str, str],
        columns: ColumnNames = ColumnNames(),
    ) -> None:
        self._set_text = set_text_fn
        self._lookup = lookup_fn
        self._colors = dict(colors)
        self._columns = columns
        self._text = IDLE_TEXT

    @property
    def text(self) -> str:
        return self._text

    def show_details(self, shape_id: str, locked: bool) -> None:
        details = details_for(shape_id, self._lookup(shape_id))
        self._publish(format_details_html(details, locked=locked, colors=self._colors, columns=self._columns))

    def clear_details(self) -> None:
        self._publish(IDLE_TEXT)

    def _publish(self, text: str) -> None:
        if text == self._text:
            return
        self._text = text
        self._set_text(text)
