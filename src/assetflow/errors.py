"""Exceptions raised while building assets."""

from __future__ import annotations

from pathlib import Path


class BuildError(Exception):
    """Base class for every failure surfaced by a task."""


class ConfigError(BuildError):
    pass


class TransformError(BuildError):
    """An external transformation rejected its input."""

    def __init__(self, task: str, source: Path | str | None, message: str):
        self.task = task
        self.source = source
        where = f" ({source})" if source else ""
        super().__init__(f"[{task}]{where} {message}")


class SourceError(TransformError):
    """Reading a source or writing an output failed at the filesystem level."""


class ListenError(BuildError):
    """The dev server could not bind its socket."""


class TaskGroupError(BuildError):
    """One or more branches of a parallel group failed."""

    def __init__(self, group: str, errors: list[BaseException]):
        self.group = group
        self.errors = list(errors)
        lines = "; ".join(str(e) or type(e).__name__ for e in self.errors)
        super().__init__(f"{len(self.errors)} task(s) failed in {group}: {lines}")
