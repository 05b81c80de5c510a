"""Static configuration for the site plan overlay, read once at startup."""
from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from siteplan_overlay.alignment import FineTuneConfig
from siteplan_overlay.interaction import DEFAULT_CLICK_TOLERANCE
from siteplan_overlay.status_records import AVAILABLE, RESERVED, UNAVAILABLE, UNKNOWN
from siteplan_overlay.viewport import DEFAULT_BUTTON_STEP, DEFAULT_MAX_SCALE, DEFAULT_MIN_SCALE, DEFAULT_WHEEL_RATE

_LOGGER = logging.getLogger("SitePlanOverlay.Settings")

SETTINGS_FILENAME = "siteplan_settings.json"
ENV_SHEET_URL = "SITEPLAN_SHEET_URL"
ENV_POLYGONS = "SITEPLAN_POLYGONS"
ENV_ARTWORK = "SITEPLAN_ARTWORK"


def _default_colors() -> Dict[str, str]:
    return {
        AVAILABLE: "#2ecc71",
        RESERVED: "#f4b400",
        UNAVAILABLE: "#d93025",
        UNKNOWN: "#9ea3a8",
    }


@dataclass(frozen=True)
class ColumnNames:
    stand_id: str = "StandID"
    status: str = "Status"
    size: str = "Size"
    price: str = "Price"
    updated: str = "LastUpdated"


@dataclass(frozen=True)
class OverlaySettings:
    """Values that shape rendering, alignment and interaction."""

    sheet_url: str = ""
    polygons_location: str = "polygons.json"
    artwork_path: str = "siteplan.svg"
    fetch_timeout: float = 10.0
    columns: ColumnNames = field(default_factory=ColumnNames)
    colors: Dict[str, str] = field(default_factory=_default_colors)
    fill_opacity: float = 0.35
    stroke_color: str = "#000000"
    stroke_opacity: float = 0.35
    stroke_width: float = 1.0
    fine_tune: FineTuneConfig = field(default_factory=lambda: FineTuneConfig(scale=0.744, dx=475.0, dy=-105.0, rotate_deg=0.0))
    min_scale: float = DEFAULT_MIN_SCALE
    max_scale: float = DEFAULT_MAX_SCALE
    zoom_button_step: float = DEFAULT_BUTTON_STEP
    wheel_zoom_rate: float = DEFAULT_WHEEL_RATE
    click_tolerance: float = DEFAULT_CLICK_TOLERANCE
    log_retention: int = 5

    def color_for(self, status: str) -> str:
        return self.colors.get(status) or self.colors.get(UNKNOWN) or _default_colors()[UNKNOWN]


def _float(value: Any, fallback: float) -> float:
    if value is None:
        return fallback
    try:
        result = float(value)
    except (TypeError, ValueError):
        return fallback
    if result != result or result in (float("inf"), float("-inf")):
        return fallback
    return result


def _int(value: Any, fallback: int) -> int:
    if value is None:
        return fallback
    try:
        return int(value)
    except (TypeError, ValueError):
        return fallback


def _str(value: Any, fallback: str) -> str:
    if value is None:
        return fallback
    text = str(value).strip()
    return text or fallback


def settings_from_mapping(data: Mapping[str, Any]) -> OverlaySettings:
    """Build settings from a decoded JSON object, keeping defaults for bad values."""

    defaults = OverlaySettings()

    columns_raw = data.get("columns")
    columns = defaults.columns
    if isinstance(columns_raw, dict):
        columns = ColumnNames(
            stand_id=_str(columns_raw.get("id"), columns.stand_id),
            status=_str(columns_raw.get("status"), columns.status),
            size=_str(columns_raw.get("size"), columns.size),
            price=_str(columns_raw.get("price"), columns.price),
            updated=_str(columns_raw.get("updated"), columns.updated),
        )

    colors = dict(defaults.colors)
    colors_raw = data.get("colors")
    if isinstance(colors_raw, dict):
        for key, value in colors_raw.items():
            if isinstance(value, str) and value.strip():
                colors[str(key).strip().lower()] = value.strip()

    fine_tune = defaults.fine_tune
    tweak_raw = data.get("align_tweak")
    if isinstance(tweak_raw, dict):
        scale = _float(tweak_raw.get("scale"), fine_tune.scale)
        if scale <= 0.0:
            _LOGGER.warning("Ignoring non-positive align_tweak.scale=%s", scale)
            scale = fine_tune.scale
        fine_tune = FineTuneConfig(
            scale=scale,
            dx=_float(tweak_raw.get("dx"), fine_tune.dx),
            dy=_float(tweak_raw.get("dy"), fine_tune.dy),
            rotate_deg=_float(tweak_raw.get("rotateDeg", tweak_raw.get("rotate_deg")), fine_tune.rotate_deg),
        )

    min_scale = _float(data.get("min_scale"), defaults.min_scale)
    max_scale = _float(data.get("max_scale"), defaults.max_scale)
    if min_scale <= 0.0 or max_scale < min_scale:
        _LOGGER.warning("Ignoring invalid zoom limits min=%s max=%s", min_scale, max_scale)
        min_scale, max_scale = defaults.min_scale, defaults.max_scale

    return OverlaySettings(
        sheet_url=_str(data.get("sheet_url"), defaults.sheet_url),
        polygons_location=_str(data.get("polygons"), defaults.polygons_location),
        artwork_path=_str(data.get("artwork"), defaults.artwork_path),
        fetch_timeout=max(0.5, _float(data.get("fetch_timeout"), defaults.fetch_timeout)),
        columns=columns,
        colors=colors,
        fill_opacity=min(1.0, max(0.0, _float(data.get("fill_opacity"), defaults.fill_opacity))),
        stroke_color=_str(data.get("stroke_color"), defaults.stroke_color),
        stroke_opacity=min(1.0, max(0.0, _float(data.get("stroke_opacity"), defaults.stroke_opacity))),
        stroke_width=max(0.0, _float(data.get("stroke_width"), defaults.stroke_width)),
        fine_tune=fine_tune,
        min_scale=min_scale,
        max_scale=max_scale,
        zoom_button_step=_float(data.get("zoom_button_step"), defaults.zoom_button_step),
        wheel_zoom_rate=_float(data.get("wheel_zoom_rate"), defaults.wheel_zoom_rate),
        click_tolerance=max(0.0, _float(data.get("click_tolerance"), defaults.click_tolerance)),
        log_retention=max(1, _int(data.get("log_retention"), defaults.log_retention)),
    )


def load_settings(settings_path: Optional[Path]) -> OverlaySettings:
    """Read settings JSON if it exists, then apply environment overrides."""

    data: Dict[str, Any] = {}
    if settings_path is not None:
        try:
            raw = settings_path.read_text(encoding="utf-8")
        except (FileNotFoundError, OSError):
            raw = ""
        if raw:
            try:
                loaded = json.loads(raw)
            except json.JSONDecodeError as exc:
                _LOGGER.warning("Settings file %s is not valid JSON (%s); using defaults", settings_path, exc)
                loaded = {}
            if isinstance(loaded, dict):
                data = loaded
    settings = settings_from_mapping(data)
    if settings_path is not None:
        settings = _resolve_relative(settings, settings_path.parent)
    return apply_env_overrides(settings, os.environ)


def apply_env_overrides(settings: OverlaySettings, env: Mapping[str, str]) -> OverlaySettings:
    overrides: Dict[str, str] = {}
    if env.get(ENV_SHEET_URL):
        overrides["sheet_url"] = env[ENV_SHEET_URL].strip()
    if env.get(ENV_POLYGONS):
        overrides["polygons_location"] = env[ENV_POLYGONS].strip()
    if env.get(ENV_ARTWORK):
        overrides["artwork_path"] = env[ENV_ARTWORK].strip()
    if not overrides:
        return settings
    _LOGGER.debug("Applied environment overrides: %s", ", ".join(sorted(overrides)))
    return replace(settings, **overrides)


def _resolve_relative(settings: OverlaySettings, base: Path) -> OverlaySettings:
    """Resolve local source paths against the settings file's folder."""

    def _resolve(location: str) -> str:
        if not location or "://" in location:
            return location
        path = Path(location).expanduser()
        if path.is_absolute():
            return str(path)
        return str((base / path).resolve())

    return replace(
        settings,
        polygons_location=_resolve(settings.polygons_location),
        artwork_path=_resolve(settings.artwork_path),
    )
