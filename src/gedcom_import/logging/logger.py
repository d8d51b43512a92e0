"""
Logging setup shared by every ``gedcom_import`` component.

Records go to three places:

* ``logs/<file>`` (``logging.file`` in the YAML config), the master log that
  receives everything under the ``gedcom_import`` logger;
* ``logs/gedcom_import.<component>.log``, one file per component logger;
* stderr, at WARNING unless ``debug`` is set or the CLI asks for more.

Handlers are attached once per process. ``logging.rotate`` switches the file
handlers to ``RotatingFileHandler``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from gedcom_import.config import get_config
from gedcom_import.utils.pathing import resolve_project_path

BASE_LOGGER_NAME = "gedcom_import"
LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

ROTATE_MAX_BYTES = 5 * 1024 * 1024
ROTATE_BACKUPS = 5


@dataclass
class _LogSettings:
    directory: Path
    master_file: str
    level: int
    console_level: int
    rotate: bool


_settings: Optional[_LogSettings] = None
_console: Optional[logging.Handler] = None


def _read_settings() -> _LogSettings:
    cfg = get_config()
    section = cfg.logging
    level = getattr(logging, str(section.get("level", "INFO")).upper(), logging.INFO)
    if cfg.debug:
        level = logging.DEBUG
    directory = resolve_project_path(section.get("dir") or cfg.paths.get("logs_dir") or "logs")
    return _LogSettings(
        directory=directory,
        master_file=section.get("file", "gedcom_import.log"),
        level=level,
        console_level=logging.DEBUG if cfg.debug else logging.WARNING,
        rotate=bool(section.get("rotate", False)),
    )


def _file_handler(path: Path, settings: _LogSettings) -> logging.Handler:
    path.parent.mkdir(parents=True, exist_ok=True)
    if settings.rotate:
        handler: logging.Handler = RotatingFileHandler(
            path, maxBytes=ROTATE_MAX_BYTES, backupCount=ROTATE_BACKUPS, encoding="utf-8"
        )
    else:
        handler = logging.FileHandler(path, encoding="utf-8")
    handler.setLevel(settings.level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    return handler


def _base_logger() -> logging.Logger:
    global _settings, _console

    base = logging.getLogger(BASE_LOGGER_NAME)
    if _settings is not None:
        return base

    _settings = _read_settings()
    base.setLevel(_settings.level)
    base.propagate = False
    base.addHandler(_file_handler(_settings.directory / _settings.master_file, _settings))

    _console = logging.StreamHandler()
    _console.setLevel(_settings.console_level)
    _console.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    base.addHandler(_console)
    return base


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Logger for one component.

    Short names ("matcher", "session_store") are placed under the
    ``gedcom_import`` logger so their records also reach the master log and the
    console. The first call for a name attaches its own log file.
    """
    base = _base_logger()
    if not name or name == BASE_LOGGER_NAME:
        return base

    qualified = name if name.startswith(BASE_LOGGER_NAME + ".") else f"{BASE_LOGGER_NAME}.{name}"
    logger = logging.getLogger(qualified)
    if not any(getattr(h, "component_file", False) for h in logger.handlers):
        handler = _file_handler(_settings.directory / f"{qualified}.log", _settings)
        handler.component_file = True  # type: ignore[attr-defined]
        logger.addHandler(handler)
    logger.setLevel(_settings.level)
    logger.propagate = True
    return logger


def set_console_level(level: int) -> None:
    """Change how much reaches stderr (the CLI's --verbose lowers it to INFO)."""
    _base_logger()
    _console.setLevel(level)
