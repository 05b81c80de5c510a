"""Fetch record-source documents over HTTP or from local files."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from urllib.parse import urlparse

import requests
from requests import exceptions as requests_exceptions

from siteplan_overlay.version import __version__

_DEFAULT_USER_AGENT = f"SitePlanOverlay/{__version__}"


class SourceError(RuntimeError):
    """A record source could not be read."""


@dataclass(frozen=True)
class FetchedText:
    text: str
    last_modified: str = ""
    etag: str = ""
    location: str = ""


def is_remote(location: str) -> bool:
    return urlparse(location).scheme in {"http", "https"}


def fetch_text(location: str, *, timeout: float = 10.0, session: Optional[requests.Session] = None) -> FetchedText:
    """Return the document at ``location`` (URL or filesystem path)."""

    location = (location or "").strip()
    if not location:
        raise SourceError("No source location configured")
    if not is_remote(location):
        return _read_local(location)

    owned_session = session is None
    http = session if session is not None else requests.Session()
    response = None
    try:
        response = http.get(
            location,
            headers={"User-Agent": _DEFAULT_USER_AGENT, "Cache-Control": "no-cache", "Pragma": "no-cache"},
            timeout=timeout,
        )
        response.raise_for_status()
        return FetchedText(
            text=response.text,
            last_modified=response.headers.get("Last-Modified", "") or "",
            etag=response.headers.get("ETag", "") or "",
            location=location,
        )
    except requests_exceptions.RequestException as exc:
        raise SourceError(f"Request for {location} failed: {exc}") from exc
    finally:
        if response is not None:
            response.close()
        if owned_session:
            http.close()


def _read_local(location: str) -> FetchedText:
    path = Path(location).expanduser()
    try:
        text = path.read_text(encoding="utf-8-sig")
    except (FileNotFoundError, OSError, UnicodeDecodeError) as exc:
        raise SourceError(f"Unable to read {path}: {exc}") from exc
    return FetchedText(text=text, location=str(path))
