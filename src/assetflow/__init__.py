"""Front-end asset build orchestrator.

Provides Task primitives, series/parallel composition, a watch loop and a
live-reload dev server. The actual transformations are delegated to libsass,
esbuild, Pillow and the minifiers.
"""

from .core import TaskSpec, parallel, run_graph, series, task  # re-export for convenience

__all__ = ["TaskSpec", "task", "series", "parallel", "run_graph"]
