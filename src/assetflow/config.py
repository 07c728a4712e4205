"""Build configuration: built-in defaults, an optional YAML file, env overrides.

The defaults reproduce the classic layout::

    app/scss, app/js, app/js/components, app/templates, app/images, src/svg
      -> dist/ (html), dist/assets/ (css, js), dist/assets/{images,svg,webp}
"""

from __future__ import annotations

import copy
import os
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .errors import ConfigError


DEFAULT_CONFIG_FILE = "assetflow.yaml"

DEFAULTS: dict = {
    "project": {
        "root": ".",
        "output_dir": "dist",
        "assets_dir": "dist/assets",
        "runs_dir": ".assetflow/runs",
        "log_file": None,
    },
    "sources": {
        "styles": ["app/scss/style.scss", "app/scss/components/**/*.scss"],
        "app": ["app/js/app.js"],
        "components": ["app/js/components/**.js"],
        "html": ["app/templates/*.html"],
        "images": ["app/images/**/*"],
        "webp": ["app/images/**/*", "!app/images/favicon/**/*"],
        "svg": ["src/svg/**/*"],
        # resolved against the output directory, not the project root
        "minify_js": ["**/*.js", "!**/*.min.js"],
        "minify_css": ["**/*.css", "!**/*.min.css"],
    },
    "watch": [
        {"patterns": ["app/templates/**/*.html"], "task": "html", "reload": "page"},
        {"patterns": ["app/scss/**/*.scss"], "task": "styles", "reload": "css"},
        # NOTE: the exclusion points at src/js while the watched tree is app/js,
        # so component edits also rebuild app.js. Kept as shipped.
        {
            "patterns": ["app/js/**/*.js", "!src/js/{components,components/**}"],
            "task": "app",
            "reload": "page",
        },
        {"patterns": ["app/js/components/**/*.js"], "task": "components", "reload": "page"},
    ],
    "server": {
        "host": "localhost",
        "port": 8080,
        "live_port": 35729,
        "index": "index.html",
    },
    "tools": {
        "esbuild": "esbuild",
        "sass_output_style": "expanded",
        "jpeg_quality": 85,
        "webp_quality": 80,
    },
}

_ENV_OVERRIDES = {
    "ASSETFLOW_PORT": ("server", "port", int),
    "ASSETFLOW_LIVE_PORT": ("server", "live_port", int),
    "ASSETFLOW_HOST": ("server", "host", str),
    "ASSETFLOW_ESBUILD": ("tools", "esbuild", str),
}


def deep_merge(base: dict, override: dict) -> dict:
    """Return a copy of `base` with `override` merged in (dicts recurse, the rest replaces)."""
    out = copy.deepcopy(base)
    for k, v in (override or {}).items():
        if isinstance(v, dict) and isinstance(out.get(k), dict):
            out[k] = deep_merge(out[k], v)
        else:
            out[k] = copy.deepcopy(v)
    return out


def load_config(path: str | Path | None = None, *, use_env: bool = True) -> dict:
    """Load params for a build.

    With no path, `assetflow.yaml` in the working directory is used when it
    exists; otherwise the defaults apply unchanged. A relative
    `project.root` in a config file is resolved against the file's folder.
    """
    user: dict = {}
    base_dir = Path.cwd()
    if path is None and Path(DEFAULT_CONFIG_FILE).is_file():
        path = DEFAULT_CONFIG_FILE
    if path is not None:
        p = Path(path)
        if not p.is_file():
            raise ConfigError(f"Config file not found: {p}")
        try:
            with open(p, "r", encoding="utf-8") as f:
                user = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigError(f"Invalid YAML in {p}: {e}") from e
        if not isinstance(user, dict):
            raise ConfigError(f"Top level of {p} must be a mapping")
        base_dir = p.resolve().parent

    params = deep_merge(DEFAULTS, user)
    root = Path(params["project"]["root"])
    if not root.is_absolute():
        params["project"]["root"] = str((base_dir / root).resolve())

    if use_env:
        load_dotenv(override=False)
        _apply_env(params)
    return params


def _apply_env(params: dict) -> None:
    for var, (section, key, cast) in _ENV_OVERRIDES.items():
        raw = os.getenv(var)
        if raw is None or raw.strip() == "":
            continue
        try:
            params[section][key] = cast(raw)
        except ValueError as e:
            raise ConfigError(f"{var}={raw!r} is not a valid {cast.__name__}") from e
