"""Command-line entry point: load settings, set up logging and run the window."""
from __future__ import annotations

import argparse
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional

from PyQt6.QtWidgets import QApplication

from siteplan_overlay.last_updated import LastUpdatedTracker, resolve_cache_path
from siteplan_overlay.logging_utils import ROOT_LOGGER_NAME, configure_logging
from siteplan_overlay.main_window import SitePlanWindow
from siteplan_overlay.settings import SETTINGS_FILENAME, OverlaySettings, load_settings
from siteplan_overlay.source_loader import SourceLoader
from siteplan_overlay.version import DEV_MODE_ENV_VAR, __version__, is_dev_build

_LOGGER = logging.getLogger(ROOT_LOGGER_NAME)


def resolve_settings_path(args_settings: Optional[str]) -> Path:
    if args_settings:
        return Path(args_settings).expanduser().resolve()
    return (Path.cwd() / SETTINGS_FILENAME).resolve()


def apply_cli_overrides(settings: OverlaySettings, args: argparse.Namespace) -> OverlaySettings:
    overrides = {}
    if args.artwork:
        overrides["artwork_path"] = str(Path(args.artwork).expanduser().resolve())
    if args.polygons:
        overrides["polygons_location"] = args.polygons
    if args.sheet_url:
        overrides["sheet_url"] = args.sheet_url
    return replace(settings, **overrides) if overrides else settings


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Interactive site plan with live stand availability")
    parser.add_argument("--settings", help=f"Path to {SETTINGS_FILENAME} (default: current directory)")
    parser.add_argument("--artwork", help="SVG site plan artwork")
    parser.add_argument("--polygons", help="polygons.json path or URL")
    parser.add_argument("--sheet-url", help="Published status sheet (CSV) URL or path")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    debug_enabled = is_dev_build(__version__)
    settings_path = resolve_settings_path(args.settings)
    settings = apply_cli_overrides(load_settings(settings_path), args)
    configure_logging(debug_enabled=debug_enabled, retention=settings.log_retention)
    if not debug_enabled:
        _LOGGER.info("Release mode; export %s=1 for verbose logs", DEV_MODE_ENV_VAR)

    _LOGGER.info("Starting site plan overlay %s (pid=%s)", __version__, os.getpid())
    _LOGGER.debug(
        "Loaded settings from %s: artwork=%s polygons=%s sheet=%s",
        settings_path,
        settings.artwork_path,
        settings.polygons_location,
        settings.sheet_url or "<none>",
    )

    app = QApplication(sys.argv)
    tracker = LastUpdatedTracker(resolve_cache_path())
    window = SitePlanWindow(settings, tracker)
    window.load_artwork(Path(settings.artwork_path))

    loader = SourceLoader(settings)
    loader.loaded.connect(window.apply_sources)
    loader.status_changed.connect(window.set_status_text)

    window.show()
    loader.start()

    exit_code = app.exec()
    loader.stop()
    _LOGGER.info("Site plan overlay exiting with code %s", exit_code)
    return int(exit_code)
