"""Production minification of the built CSS and JS.

Each `name.css` / `name.js` in the output tree gets a `name.min.css` /
`name.min.js` sibling; the unminified files stay in place.
"""

from __future__ import annotations

from typing import Any, Dict, List

import rcssmin
import rjsmin

from assetflow import task
from assetflow.invoker import run_transform
from assetflow.selectors import SourceFile
from assetflow.utils import output_dir, selector


def _minified_name(source: SourceFile, ext: str):
    return source.relative.with_name(f"{source.relative.stem}.min{ext}")


def minify_js_file(source: SourceFile) -> List:
    text = source.path.read_text(encoding="utf-8")
    return [(_minified_name(source, ".js"), rjsmin.jsmin(text).encode("utf-8"))]


def minify_css_file(source: SourceFile) -> List:
    text = source.path.read_text(encoding="utf-8")
    return [(_minified_name(source, ".css"), rcssmin.cssmin(text).encode("utf-8"))]


@task(name="minify-js")
async def minify_js(params: Dict[str, Any]):
    """Write a .min.js next to every built script."""
    out = output_dir(params)
    await run_transform("minify-js", selector(params, "minify_js"), out, out, minify_js_file)


@task(name="minify-css")
async def minify_css(params: Dict[str, Any]):
    """Write a .min.css next to every built stylesheet."""
    out = output_dir(params)
    await run_transform("minify-css", selector(params, "minify_css"), out, out, minify_css_file)
