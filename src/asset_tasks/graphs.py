"""Static table of CLI commands and the task graphs they run."""

from __future__ import annotations

from typing import Any, Dict, List

from assetflow.core import Node, TaskSpec, parallel, series, spec_of
from assetflow.errors import ConfigError
from assetflow.utils import _get
from assetflow.selectors import FileSelector
from assetflow.watch import WatchBinding

from .clean import clean
from .dev import reload, serve, watch_files
from .html import html
from .images import images, svg, webp
from .minify import minify_css, minify_js
from .scripts import app, components
from .styles import styles


REGISTRY: Dict[str, TaskSpec] = {
    spec.name: spec
    for spec in (
        spec_of(fn)
        for fn in (
            clean,
            styles,
            app,
            components,
            html,
            images,
            webp,
            svg,
            minify_js,
            minify_css,
            reload,
            serve,
            watch_files,
        )
    )
}

BUILD = series(
    clean,
    parallel(html, styles, app, components, images, webp, svg, name="assets"),
    name="build",
)

COMMANDS: Dict[str, Node] = {
    "clean": spec_of(clean),
    "styles": spec_of(styles),
    "app": spec_of(app),
    "components": spec_of(components),
    "html": spec_of(html),
    "images": spec_of(images),
    "webp": spec_of(webp),
    "svg": spec_of(svg),
    "build": BUILD,
    "serve": series(BUILD, serve, watch_files, name="serve"),
    "watch": series(BUILD, watch_files, name="watch"),
    "production": series(BUILD, parallel(minify_css, minify_js, name="minify"), name="production"),
}

DEFAULT_COMMAND = "build"


def validate_commands(commands: Dict[str, Node] = COMMANDS) -> None:
    """Every task reachable from a command must be a registered task."""
    for command, node in commands.items():
        for leaf in node.leaves():
            if REGISTRY.get(leaf.name) is not leaf:
                raise ConfigError(f"Command {command!r} uses unregistered task {leaf.name!r}")


def bindings_from_config(params: Dict[str, Any]) -> List[WatchBinding]:
    bindings: List[WatchBinding] = []
    for i, entry in enumerate(_get(params, "watch", default=[]) or []):
        name = entry.get("task")
        if name not in REGISTRY:
            raise ConfigError(f"watch[{i}] refers to unknown task {name!r}")
        try:
            bindings.append(
                WatchBinding(
                    name=entry.get("name", name),
                    selector=FileSelector(entry.get("patterns", [])),
                    task=REGISTRY[name],
                    reload=entry.get("reload", "page"),
                )
            )
        except ValueError as e:
            raise ConfigError(f"watch[{i}]: {e}") from e
    return bindings
