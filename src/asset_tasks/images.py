"""Image tasks: optimized copies, WebP renditions and SVG copies.

Raster work is done with Pillow. Optimized files never end up larger than
their source; when re-encoding does not help, the original bytes are kept.
"""

from __future__ import annotations

import io
from pathlib import PurePosixPath
from typing import Any, Dict, List

from PIL import Image, UnidentifiedImageError

from assetflow import task
from assetflow.invoker import passthrough, run_transform
from assetflow.logging import get_logger
from assetflow.selectors import SourceFile
from assetflow.utils import assets_dir, project_root, selector, tool


OPTIMIZABLE = {".png", ".jpg", ".jpeg", ".gif"}
WEBP_INPUTS = {".png", ".jpg", ".jpeg", ".tif", ".tiff", ".webp"}

logger = get_logger("assetflow.tasks.images")


def _open(source: SourceFile) -> Image.Image:
    try:
        return Image.open(source.path)
    except UnidentifiedImageError as e:
        # surfaced as a transform error rather than a filesystem one
        raise ValueError(f"not a readable image: {source.relative}") from e


def optimize_image(source: SourceFile, jpeg_quality: int = 85) -> List:
    suffix = source.path.suffix.lower()
    original = source.path.read_bytes()
    if suffix not in OPTIMIZABLE:
        return [(source.relative, original)]

    buf = io.BytesIO()
    with _open(source) as img:
        fmt = img.format
        if fmt == "JPEG":
            img.save(buf, "JPEG", optimize=True, quality=jpeg_quality, progressive=True)
        elif fmt == "GIF":
            img.save(buf, "GIF", optimize=True, save_all=getattr(img, "is_animated", False))
        else:
            img.save(buf, fmt or "PNG", optimize=True)
    data = buf.getvalue()
    if len(data) >= len(original):
        return [(source.relative, original)]
    logger.debug("%s: %d -> %d bytes", source.relative, len(original), len(data))
    return [(source.relative, data)]


def to_webp(source: SourceFile, quality: int = 80) -> List:
    if source.path.suffix.lower() not in WEBP_INPUTS:
        logger.debug("Skipping %s (no WebP conversion for this format)", source.relative)
        return []
    buf = io.BytesIO()
    with _open(source) as img:
        if img.mode not in ("RGB", "RGBA"):
            has_alpha = "A" in img.mode or "transparency" in img.info
            img = img.convert("RGBA" if has_alpha else "RGB")
        img.save(buf, "WEBP", quality=quality)
    return [(PurePosixPath(source.relative).with_suffix(".webp"), buf.getvalue())]


@task(name="images")
async def images(params: Dict[str, Any]):
    """Optimize raster images into assets/images."""
    quality = int(tool(params, "jpeg_quality", default=85))
    await run_transform(
        "images",
        selector(params, "images"),
        project_root(params),
        assets_dir(params) / "images",
        lambda src: optimize_image(src, quality),
    )


@task(name="webp")
async def webp(params: Dict[str, Any]):
    """Create WebP renditions of the images into assets/webp."""
    quality = int(tool(params, "webp_quality", default=80))
    await run_transform(
        "webp",
        selector(params, "webp"),
        project_root(params),
        assets_dir(params) / "webp",
        lambda src: to_webp(src, quality),
    )


@task(name="svg")
async def svg(params: Dict[str, Any]):
    """Copy SVG sources into assets/svg."""
    await run_transform(
        "svg",
        selector(params, "svg"),
        project_root(params),
        assets_dir(params) / "svg",
        passthrough,
    )
