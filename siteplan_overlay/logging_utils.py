from __future__ import annotations

import logging
import os
import tempfile
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

ROOT_LOGGER_NAME = "SitePlanOverlay"
LOG_DIR_ENV_VAR = "SITEPLAN_OVERLAY_LOG_DIR"
LOG_FILENAME = "siteplan-overlay.log"
_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


def resolve_logs_dir(log_dir_name: str = "siteplan-overlay") -> Path:
    """
    Resolve the directory to store overlay logs.

    Strategy:
    - Use SITEPLAN_OVERLAY_LOG_DIR if set.
    - Fall back to XDG state/cache locations, then `cwd/logs/<log_dir_name>`.
    - Final fallback: tempdir/<log_dir_name>.
    """
    targets = []

    env_override = os.environ.get(LOG_DIR_ENV_VAR)
    if env_override:
        targets.append(Path(env_override).expanduser())

    state_home = Path(os.environ.get("XDG_STATE_HOME", Path.home() / ".local" / "state"))
    cache_home = Path(os.environ.get("XDG_CACHE_HOME", Path.home() / ".cache"))
    targets.append(state_home / log_dir_name)
    targets.append(cache_home / log_dir_name)
    targets.append(Path.cwd() / "logs" / log_dir_name)

    for target in targets:
        try:
            target.mkdir(parents=True, exist_ok=True)
            return target
        except OSError:
            continue

    temp_fallback = Path(tempfile.gettempdir()) / log_dir_name
    temp_fallback.mkdir(parents=True, exist_ok=True)
    return temp_fallback


def build_rotating_file_handler(
    log_dir: Path,
    filename: str,
    *,
    retention: int = 5,
    max_bytes: int = 512 * 1024,
    formatter: Optional[logging.Formatter] = None,
) -> logging.Handler:
    """Construct a rotating file handler; ``retention`` counts the live file."""
    retention = max(1, retention)
    backup_count = max(0, retention - 1)
    log_dir.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(
        log_dir / filename,
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )
    if formatter is not None:
        handler.setFormatter(formatter)
    return handler


def resolve_log_level(debug_enabled: bool) -> int:
    return logging.DEBUG if debug_enabled else logging.INFO


def configure_logging(
    *,
    debug_enabled: bool,
    retention: int = 5,
    log_dir: Optional[Path] = None,
    console: bool = True,
) -> logging.Logger:
    """Attach file (and optionally console) handlers to the package root logger."""

    logger = logging.getLogger(ROOT_LOGGER_NAME)
    logger.setLevel(resolve_log_level(debug_enabled))
    logger.propagate = False
    for existing in list(logger.handlers):
        logger.removeHandler(existing)
        existing.close()

    formatter = logging.Formatter(_LOG_FORMAT)
    target_dir = log_dir if log_dir is not None else resolve_logs_dir()
    try:
        file_handler = build_rotating_file_handler(target_dir, LOG_FILENAME, retention=retention, formatter=formatter)
    except OSError as exc:
        file_handler = None
        logging.getLogger(ROOT_LOGGER_NAME).warning("File logging disabled: %s", exc)
    if file_handler is not None:
        logger.addHandler(file_handler)
    if console:
        stream_handler = logging.StreamHandler()
        stream_handler.setFormatter(formatter)
        logger.addHandler(stream_handler)
    return logger
