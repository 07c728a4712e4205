"""Empty the output directory."""

from __future__ import annotations

import shutil
from typing import Any, Dict

from assetflow import task
from assetflow.logging import get_logger
from assetflow.utils import output_dir


@task(name="clean")
def clean(params: Dict[str, Any]):
    """Remove everything inside the output directory (the directory itself stays)."""
    logger = get_logger("assetflow.tasks.clean")
    out = output_dir(params)
    if not out.exists():
        out.mkdir(parents=True)
        logger.debug("Created empty %s", out)
        return
    removed = 0
    for entry in out.iterdir():
        if entry.is_dir() and not entry.is_symlink():
            shutil.rmtree(entry)
        else:
            entry.unlink()
        removed += 1
    logger.info("Removed %d entr%s from %s", removed, "y" if removed == 1 else "ies", out)
