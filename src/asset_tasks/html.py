from __future__ import annotations

from typing import Any, Dict

from assetflow import task
from assetflow.invoker import passthrough, run_transform
from assetflow.utils import output_dir, project_root, selector


@task(name="html")
async def html(params: Dict[str, Any]):
    """Copy the HTML templates to the output root."""
    await run_transform(
        "html", selector(params, "html"), project_root(params), output_dir(params), passthrough
    )
