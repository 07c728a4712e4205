"""Long-running tasks: the dev server, the watch loop and the reload trigger."""

from __future__ import annotations

from typing import Any, Dict

from assetflow import task
from assetflow.logging import get_logger
from assetflow.server import DevServer, active_channel
from assetflow.utils import output_dir, project_root, server_setting
from assetflow.watch import WatchLoop


logger = get_logger("assetflow.tasks.dev")


@task(name="serve")
async def serve(params: Dict[str, Any]):
    """Serve the output directory with live reload; completes once listening."""
    root = output_dir(params)
    root.mkdir(parents=True, exist_ok=True)
    server = DevServer(
        root,
        host=server_setting(params, "host", "localhost"),
        port=int(server_setting(params, "port", 8080)),
        live_port=int(server_setting(params, "live_port", 35729)),
        index=server_setting(params, "index", "index.html"),
    )
    await server.start()


@task(name="reload")
def reload(params: Dict[str, Any]):
    """Tell connected browsers to reload (no-op without a running dev server)."""
    channel = active_channel()
    if channel is None:
        logger.debug("No live-reload channel; skipping reload")
        return
    channel.broadcast_reload()


@task(name="watch-files")
async def watch_files(params: Dict[str, Any]):
    """Rebuild on source changes until the process exits."""
    # imported here: graphs imports this module
    from .graphs import bindings_from_config

    loop = WatchLoop(bindings_from_config(params), params, project_root(params))
    await loop.run()
