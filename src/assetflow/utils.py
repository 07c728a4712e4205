from __future__ import annotations

"""Small helpers for reading paths and settings out of build params."""

from pathlib import Path
from typing import Dict

from .selectors import FileSelector


def _get(d: Dict, *keys, default=None):
    cur = d
    for k in keys:
        if not isinstance(cur, dict):
            return default
        cur = cur.get(k)
        if cur is None:
            return default
    return cur


def project_root(p: Dict) -> Path:
    return Path(_get(p, "project", "root", default="."))


def _under_root(p: Dict, rel: str) -> Path:
    path = Path(rel)
    return path if path.is_absolute() else project_root(p) / path


def output_dir(p: Dict) -> Path:
    return _under_root(p, _get(p, "project", "output_dir", default="dist"))


def assets_dir(p: Dict) -> Path:
    return _under_root(p, _get(p, "project", "assets_dir", default="dist/assets"))


def runs_dir(p: Dict) -> Path | None:
    rel = _get(p, "project", "runs_dir")
    return _under_root(p, rel) if rel else None


def selector(p: Dict, key: str) -> FileSelector:
    return FileSelector(_get(p, "sources", key, default=[]))


def server_setting(p: Dict, key: str, default=None):
    return _get(p, "server", key, default=default)


def tool(p: Dict, key: str, default=None):
    return _get(p, "tools", key, default=default)


def log_file(p: Dict) -> Path | None:
    rel = _get(p, "project", "log_file")
    return _under_root(p, rel) if rel else None
