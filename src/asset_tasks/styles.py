"""Compile Sass entry points to CSS with a source map next to each file.

`app/scss/style.scss` and every stylesheet under `app/scss/components/`
become one `.css` file (plus `.css.map`) in the assets directory. Partials
(`_name.scss`) are only pulled in through `@use`/`@import` and produce no
output of their own.
"""

from __future__ import annotations

from pathlib import Path, PurePosixPath
from typing import Any, Dict

import sass

from assetflow import task
from assetflow.invoker import run_transform
from assetflow.selectors import SourceFile
from assetflow.utils import assets_dir, project_root, selector, tool


def compile_stylesheet(source: SourceFile, dest: Path, output_style: str = "expanded"):
    if source.name.startswith("_"):
        return []
    css_rel = source.relative.with_suffix(".css")
    map_rel = PurePosixPath(f"{css_rel}.map")
    css, source_map = sass.compile(
        filename=str(source.path),
        output_style=output_style,
        include_paths=[str(source.path.parent)],
        source_map_filename=str(dest / map_rel),
        output_filename_hint=str(dest / css_rel),
        source_map_contents=True,
    )
    return [(css_rel, css.encode("utf-8")), (map_rel, source_map.encode("utf-8"))]


@task(name="styles")
async def styles(params: Dict[str, Any]):
    """Compile Sass sources to CSS + source maps."""
    dest = assets_dir(params)
    style = tool(params, "sass_output_style", default="expanded")
    await run_transform(
        "styles",
        selector(params, "styles"),
        project_root(params),
        dest,
        lambda src: compile_stylesheet(src, dest, style),
    )
