"""Run one external transformation over a file-set selector."""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import Callable, Iterable, Optional, Tuple

from .errors import BuildError, SourceError, TransformError
from .logging import get_logger
from .selectors import FileSelector, SourceFile


# A transform maps one source file to zero or more (relative output path, bytes).
# Tools that write their own output files report them with `None` as data.
Output = Tuple[PurePosixPath, Optional[bytes]]
TransformFn = Callable[[SourceFile], Iterable[Output]]


def passthrough(source: SourceFile) -> list[Output]:
    """Copy a file unchanged."""
    return [(source.relative, source.path.read_bytes())]


async def run_transform(
    name: str,
    selector: FileSelector,
    root: Path,
    dest: Path,
    fn: TransformFn,
) -> list[Path]:
    """Apply `fn` to every file `selector` picks under `root`, writing into `dest`.

    Files are processed one after another in a worker thread each; the call
    returns only once every output is on disk.
    """
    logger = get_logger(f"assetflow.invoker.{name}")
    sources = await asyncio.to_thread(selector.expand, root)
    if not sources:
        logger.debug("No files matched %s", selector)
        return []

    written: list[Path] = []
    for source in sources:
        written.extend(await asyncio.to_thread(_apply, name, source, dest, fn))
    logger.info("%s: %d file(s) -> %d output(s) in %s", name, len(sources), len(written), dest)
    return written


def _apply(name: str, source: SourceFile, dest: Path, fn: TransformFn) -> list[Path]:
    try:
        outputs = list(fn(source))
    except BuildError:
        raise
    except OSError as e:
        raise SourceError(name, source.path, f"{type(e).__name__}: {e}") from e
    except Exception as e:
        raise TransformError(name, source.path, f"{type(e).__name__}: {e}") from e

    written: list[Path] = []
    for rel, data in outputs:
        out_path = dest / Path(*PurePosixPath(rel).parts)
        if data is None:
            written.append(out_path)
            continue
        try:
            out_path.parent.mkdir(parents=True, exist_ok=True)
            out_path.write_bytes(data)
        except OSError as e:
            raise SourceError(name, out_path, f"cannot write output: {e}") from e
        written.append(out_path)
    return written
