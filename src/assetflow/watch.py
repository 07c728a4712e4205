"""Re-run tasks when their sources change, then tell browsers to reload.

Every binding is its own little state machine (idle -> running -> reloading ->
idle). Change batches come from ``watchfiles.awatch``, which already coalesces
bursts of events, and each batch starts at most one run per matching binding.
Runs of different bindings never wait on each other.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Iterable

from watchfiles import awatch

from .core import Node, run_graph, spec_of
from .logging import get_logger
from .selectors import FileSelector
from .server import ReloadChannel, active_channel


log = get_logger("assetflow.watch")

IDLE = "idle"
RUNNING = "running"
RELOADING = "reloading"


@dataclass(frozen=True)
class WatchBinding:
    name: str
    selector: FileSelector
    task: Node
    reload: str | None = "page"  # "page", "css" or None

    def __post_init__(self):
        if self.reload not in ("page", "css", None):
            raise ValueError(f"Unknown reload mode for {self.name}: {self.reload!r}")
        object.__setattr__(self, "task", spec_of(self.task))


class WatchLoop:
    def __init__(
        self,
        bindings: Iterable[WatchBinding],
        params: dict,
        root: Path,
        channel: Callable[[], ReloadChannel | None] = active_channel,
    ):
        self.bindings = list(bindings)
        self.params = params
        self.root = Path(root)
        self._channel = channel
        self.state: dict[str, str] = {b.name: IDLE for b in self.bindings}
        self.runs: dict[str, int] = {b.name: 0 for b in self.bindings}
        self._inflight: set[asyncio.Task] = set()

    def watch_paths(self) -> list[Path]:
        """Existing directories that cover every binding's selector."""
        out: list[Path] = []
        for b in self.bindings:
            for base in b.selector.bases:
                path = self.root / base if base else self.root
                while not path.exists() and path != self.root:
                    path = path.parent
                if path not in out:
                    out.append(path)
        # drop paths nested in another watched path
        return [p for p in out if not any(o != p and o in p.parents for o in out)]

    def dispatch(self, changed: Iterable[str | Path]) -> list[asyncio.Task]:
        """Start a run for each binding that selects one of the changed paths."""
        changed = list(changed)
        started: list[asyncio.Task] = []
        for binding in self.bindings:
            hits = [p for p in changed if binding.selector.matches(p, self.root)]
            if not hits:
                continue
            log.info("%s changed -> %s", Path(hits[0]).name, binding.name)
            t = asyncio.create_task(self._run_binding(binding, hits))
            self._inflight.add(t)
            t.add_done_callback(self._inflight.discard)
            started.append(t)
        return started

    async def _run_binding(self, binding: WatchBinding, hits: list[Any]) -> None:
        self.state[binding.name] = RUNNING
        self.runs[binding.name] += 1
        try:
            await run_graph(binding.task, self.params, name=f"watch.{binding.name}")
        except Exception:
            # keep watching; the next change gets another try
            log.exception("Rebuild for %s failed", binding.name)
            self.state[binding.name] = IDLE
            return
        self.state[binding.name] = RELOADING
        try:
            channel = self._channel()
            if channel is not None and binding.reload is not None:
                path = Path(hits[0]).name if binding.reload == "css" else None
                channel.broadcast_reload(path, css=binding.reload == "css")
        finally:
            self.state[binding.name] = IDLE

    async def drain(self) -> None:
        """Wait for every run started so far."""
        while self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def run(self, stop_event: asyncio.Event | None = None) -> None:
        paths = self.watch_paths()
        log.info("Watching %s", ", ".join(str(p) for p in paths))
        async for changes in awatch(*paths, stop_event=stop_event):
            self.dispatch(path for _, path in changes)
