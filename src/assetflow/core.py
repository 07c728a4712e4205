from __future__ import annotations

import asyncio
import functools
import inspect
import itertools
import json
import sys
import time
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Awaitable, Callable, Union

from .errors import TaskGroupError
from .logging import get_logger
from . import utils


TaskFn = Callable[..., Awaitable[None]]

_run_seq = itertools.count(1)


@dataclass(frozen=True)
class TaskSpec:
    name: str
    fn: TaskFn
    description: str = ""

    async def run(self, params: dict, record: "RunRecord") -> None:
        step_logger = get_logger(f"assetflow.{record.graph}.{self.name}")
        step_logger.info("Starting '%s'", self.name)
        started = time.perf_counter()
        try:
            await self.fn(params=params)
        except Exception as e:
            elapsed = time.perf_counter() - started
            step_logger.exception("'%s' errored after %.2fs: %s", self.name, elapsed, e)
            record.steps.append(
                {"name": self.name, "status": "error", "error": str(e), "seconds": round(elapsed, 3)}
            )
            raise
        elapsed = time.perf_counter() - started
        step_logger.info("Finished '%s' after %.2fs", self.name, elapsed)
        record.steps.append({"name": self.name, "status": "ok", "seconds": round(elapsed, 3)})

    def describe(self, depth: int = 0) -> list[str]:
        return ["  " * depth + f"- {self.name}"]

    def leaves(self) -> list["TaskSpec"]:
        return [self]


def task(name: str, description: str | None = None):
    """Decorator to declare a task on a function.

    The wrapped function receives the build params as its only keyword
    argument, ``params``. Plain functions are run in a worker thread so that
    blocking work never stalls the event loop; coroutine functions are
    awaited directly.
    """

    def deco(fn: Callable[..., Any]):
        if inspect.iscoroutinefunction(fn):
            runner = fn
        else:

            @functools.wraps(fn)
            async def runner(params: dict) -> None:
                await asyncio.to_thread(fn, params=params)

        doc = description if description is not None else (inspect.getdoc(fn) or "")
        spec = TaskSpec(name=name, fn=runner, description=doc.splitlines()[0] if doc else "")
        setattr(fn, "_task_spec", spec)
        return fn

    return deco


def spec_of(obj: Any) -> "Node":
    """Return the graph node behind a decorated function, TaskSpec or group."""
    if isinstance(obj, (TaskSpec, Series, Parallel)):
        return obj
    spec = getattr(obj, "_task_spec", None)
    if isinstance(spec, TaskSpec):
        return spec
    raise TypeError(f"Not a task or task group: {obj!r}")


class _Group:
    kind = "group"

    def __init__(self, *children: Any, name: str | None = None):
        if not children:
            raise ValueError(f"{self.kind}() needs at least one task")
        self.children: tuple[Node, ...] = tuple(spec_of(c) for c in children)
        self.name = name or f"<{self.kind}>"

    def __repr__(self) -> str:
        inner = ", ".join(getattr(c, "name", "?") for c in self.children)
        return f"{type(self).__name__}({inner})"

    def describe(self, depth: int = 0) -> list[str]:
        lines = ["  " * depth + f"{self.kind}:"]
        for child in self.children:
            lines.extend(child.describe(depth + 1))
        return lines

    def leaves(self) -> list[TaskSpec]:
        out: list[TaskSpec] = []
        for child in self.children:
            out.extend(child.leaves())
        return out


class Series(_Group):
    """Children run strictly one after another; the first failure stops the rest."""

    kind = "series"

    async def run(self, params: dict, record: "RunRecord") -> None:
        for child in self.children:
            await child.run(params, record)


class Parallel(_Group):
    """Children start together; every child finishes before failures are reported."""

    kind = "parallel"

    async def run(self, params: dict, record: "RunRecord") -> None:
        results = await asyncio.gather(
            *(child.run(params, record) for child in self.children),
            return_exceptions=True,
        )
        errors: list[BaseException] = []
        for res in results:
            if not isinstance(res, BaseException):
                continue
            if not isinstance(res, Exception):
                raise res
            if isinstance(res, TaskGroupError):
                errors.extend(res.errors)
            else:
                errors.append(res)
        if errors:
            raise TaskGroupError(self.name, errors)


Node = Union[TaskSpec, Series, Parallel]


def series(*children: Any, name: str | None = None) -> Series:
    return Series(*children, name=name)


def parallel(*children: Any, name: str | None = None) -> Parallel:
    return Parallel(*children, name=name)


@dataclass
class RunRecord:
    graph: str
    run_id: str
    steps: list[dict] = field(default_factory=list)
    status: str = "running"
    error: str | None = None

    def to_dict(self) -> dict:
        return {
            "graph": self.graph,
            "run_id": self.run_id,
            "status": self.status,
            "error": self.error,
            "steps": self.steps,
            "python": sys.version,
        }


def new_run_id() -> str:
    """Timestamp to the microsecond plus a per-process sequence number."""
    return f"{datetime.now().strftime('%Y%m%d-%H%M%S-%f')}-{next(_run_seq):04d}"


async def run_graph(node: Any, params: dict, name: str = "build") -> RunRecord:
    """Execute a task graph to completion and return its run record.

    Failures are re-raised after the record has been written to
    ``<runs_dir>/<name>/<run_id>/state.json`` (when a runs dir is configured).
    """
    node = spec_of(node)
    logger = get_logger(f"assetflow.{name}")
    record = RunRecord(graph=name, run_id=new_run_id())
    logger.info("Running '%s': %s", name, " → ".join(t.name for t in node.leaves()))
    try:
        await node.run(params, record)
    except Exception as e:
        record.status = "error"
        record.error = str(e)
        _write_state(utils.runs_dir(params), record)
        raise
    record.status = "ok"
    _write_state(utils.runs_dir(params), record)
    return record


def _write_state(runs_dir: Path | None, record: RunRecord) -> None:
    if runs_dir is None:
        return
    run_dir = runs_dir / record.graph / record.run_id
    run_dir.mkdir(parents=True, exist_ok=True)
    with open(run_dir / "state.json", "w", encoding="utf-8") as f:
        json.dump(record.to_dict(), f, indent=2)
