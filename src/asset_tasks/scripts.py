"""Bundle JavaScript with esbuild.

esbuild is a standalone executable; it writes the bundle and its source map
straight into the assets directory, so the transforms only report the paths.
"""

from __future__ import annotations

import shutil
import subprocess
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List

from assetflow import task
from assetflow.errors import TransformError
from assetflow.invoker import run_transform
from assetflow.selectors import SourceFile
from assetflow.utils import assets_dir, project_root, selector, tool


def _esbuild_executable(task_name: str, configured: str) -> str:
    exe = shutil.which(configured)
    if exe is None:
        raise TransformError(
            task_name,
            None,
            f"esbuild executable not found ({configured!r}); install esbuild or set tools.esbuild",
        )
    return exe


def bundle(
    task_name: str,
    source: SourceFile,
    dest: Path,
    esbuild: str,
    outfile: str | None = None,
) -> List:
    out_rel = PurePosixPath(outfile) if outfile else source.relative.with_suffix(".js")
    out_path = dest / Path(*out_rel.parts)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    cmd = [
        _esbuild_executable(task_name, esbuild),
        str(source.path),
        "--bundle",
        "--sourcemap",
        f"--outfile={out_path}",
        "--log-level=warning",
    ]
    result = subprocess.run(cmd, capture_output=True, text=True)
    if result.returncode != 0:
        raise TransformError(task_name, source.path, result.stderr.strip() or "esbuild failed")
    return [(out_rel, None), (PurePosixPath(f"{out_rel}.map"), None)]


@task(name="app")
async def app(params: Dict[str, Any]):
    """Bundle the main application script into app.js."""
    dest = assets_dir(params)
    esbuild = tool(params, "esbuild", default="esbuild")
    await run_transform(
        "app",
        selector(params, "app"),
        project_root(params),
        dest,
        lambda src: bundle("app", src, dest, esbuild, outfile="app.js"),
    )


@task(name="components")
async def components(params: Dict[str, Any]):
    """Bundle every component script into its own file."""
    dest = assets_dir(params)
    esbuild = tool(params, "esbuild", default="esbuild")
    await run_transform(
        "components",
        selector(params, "components"),
        project_root(params),
        dest,
        lambda src: bundle("components", src, dest, esbuild),
    )
