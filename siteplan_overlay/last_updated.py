"""Tracks the "last updated" line so it only changes when the published sheet does."""
from __future__ import annotations

import hashlib
import json
import logging
from datetime import datetime, timedelta, timezone, tzinfo
from email.utils import parsedate_to_datetime
from pathlib import Path
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from siteplan_overlay.record_fetch import FetchedText

_LOGGER = logging.getLogger("SitePlanOverlay.LastUpdated")

LAST_UPDATED_CACHE_FILENAME = "siteplan_last_updated.json"
DISPLAY_TIMEZONE = "Africa/Johannesburg"
_CACHE_VERSION = 1


def _display_zone() -> tzinfo:
    try:
        return ZoneInfo(DISPLAY_TIMEZONE)
    except ZoneInfoNotFoundError:
        # SAST has no daylight saving
        return timezone(timedelta(hours=2), "SAST")


def compute_signature(fetched: FetchedText) -> str:
    """Prefer HTTP validators; hash the body when the server sends none."""

    if fetched.last_modified or fetched.etag:
        return f"hdr:{fetched.last_modified}|{fetched.etag}"
    digest = hashlib.sha256(fetched.text.encode("utf-8")).hexdigest()
    return f"sha256:{digest}"


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    try:
        parsed = datetime.fromisoformat(text.replace(" ", "T", 1))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(text)
        except (TypeError, ValueError, IndexError):
            return None
        if parsed is None:
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=_display_zone())
    return parsed


def format_last_updated(value: Any, now: Optional[datetime] = None) -> str:
    moment = parse_timestamp(value)
    if moment is None:
        moment = now if now is not None else datetime.now(timezone.utc)
    local = moment.astimezone(_display_zone())
    return f"Last updated {local.day:02d} {local:%B %Y, %H:%M} SAST"


def _default_state() -> Dict[str, Any]:
    return {"version": _CACHE_VERSION, "signature": None, "display": None}


class LastUpdatedTracker:
    """Remembers the sheet signature and the text last shown for it."""

    def __init__(self, path: Path) -> None:
        self._path = path
        self._state = self._load()

    @property
    def display_text(self) -> Optional[str]:
        value = self._state.get("display")
        return value if isinstance(value, str) and value else None

    @property
    def signature(self) -> Optional[str]:
        value = self._state.get("signature")
        return value if isinstance(value, str) else None

    def observe(
        self,
        fetched: FetchedText,
        sheet_value: Optional[str],
        *,
        now: Optional[datetime] = None,
    ) -> Optional[str]:
        """Record a fetch; returns the new display text when the sheet changed."""

        signature = compute_signature(fetched)
        if signature == self.signature:
            return None
        display = format_last_updated(sheet_value or fetched.last_modified or "", now)
        self._state["signature"] = signature
        self._state["display"] = display
        self._write()
        _LOGGER.debug("Sheet signature changed (%s); display now %r", signature[:24], display)
        return display

    def _load(self) -> Dict[str, Any]:
        try:
            raw = json.loads(self._path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return _default_state()
        except (OSError, json.JSONDecodeError) as exc:
            _LOGGER.debug("Failed to load last-updated cache: %s", exc)
            return _default_state()
        if not isinstance(raw, dict):
            return _default_state()
        state = _default_state()
        state["signature"] = raw.get("signature") if isinstance(raw.get("signature"), str) else None
        state["display"] = raw.get("display") if isinstance(raw.get("display"), str) else None
        return state

    def _write(self) -> bool:
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(self._state, indent=2, sort_keys=True), encoding="utf-8")
            tmp_path.replace(self._path)
            return True
        except OSError as exc:
            _LOGGER.debug("Failed to write last-updated cache: %s", exc)
            return False


def resolve_cache_path(root: Optional[Path] = None) -> Path:
    base = root if root is not None else Path.home() / ".cache" / "siteplan-overlay"
    return base / LAST_UPDATED_CACHE_FILENAME
