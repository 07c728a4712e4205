"""Logging for builds: one console format, an optional rotating build log.

Every logger lives under the ``assetflow`` namespace
(``assetflow.<command>.<task>``), so the level and the build log are set once
on that parent and apply to every task.
"""

from __future__ import annotations

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
import os


ROOT = "assetflow"
LEVEL_ENV = "ASSETFLOW_LOG_LEVEL"
_FORMAT = "%(asctime)s | %(name)s | %(levelname)s | %(message)s"
# one line per request / per change batch at INFO
_CHATTY = ("werkzeug", "watchfiles.main")

_configured = False


def parse_level(value: str | int | None, default: int = logging.INFO) -> int:
    """Accept ``"debug"``, ``"INFO"``, ``10`` or ``None``; unknown names fall back to `default`."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    value = value.strip()
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def _ensure_base_logger() -> None:
    global _configured
    if _configured:
        return
    logging.basicConfig(level=logging.WARNING, format=_FORMAT)
    logging.getLogger(ROOT).setLevel(parse_level(os.getenv(LEVEL_ENV)))
    for name in _CHATTY:
        logging.getLogger(name).setLevel(logging.WARNING)
    _configured = True


def configure(level: str | int | None = None) -> int:
    """Set the level of every build logger; `None` keeps ``$ASSETFLOW_LOG_LEVEL``."""
    _ensure_base_logger()
    root = logging.getLogger(ROOT)
    if level is not None:
        root.setLevel(parse_level(level, default=root.level))
    return root.level


def attach_log_file(path: Path, max_bytes: int = 1_000_000, backups: int = 3) -> RotatingFileHandler:
    """Copy all build logging into a rotating file; attaching the same path twice is a no-op."""
    _ensure_base_logger()
    root = logging.getLogger(ROOT)
    target = str(Path(path).resolve())
    for h in root.handlers:
        if isinstance(h, RotatingFileHandler) and h.baseFilename == target:
            return h
    Path(target).parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(target, maxBytes=max_bytes, backupCount=backups, encoding="utf-8")
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)
    return handler


def get_logger(name: str) -> logging.Logger:
    _ensure_base_logger()
    return logging.getLogger(name)
