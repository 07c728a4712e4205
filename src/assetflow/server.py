"""Development server: static files for the output root plus a live-reload channel.

Two Flask apps run on werkzeug's threaded server, each in a daemon thread:

- the static app serves the output directory with caching disabled and injects
  the live-reload client script into HTML pages;
- the channel app (on its own port) serves that script and an
  ``/events`` Server-Sent Events stream that receives reload instructions.
"""

from __future__ import annotations

import asyncio
import json
import queue
import re
import threading
from dataclasses import dataclass, field
from pathlib import Path

from flask import Flask, Response, abort, redirect, send_file
from flask_cors import CORS
from werkzeug.security import safe_join
from werkzeug.serving import BaseWSGIServer, make_server

from .errors import ListenError
from .logging import get_logger


log = get_logger("assetflow.server")

_active: "ReloadChannel | None" = None
_active_lock = threading.Lock()

NO_CACHE_HEADERS = {
    "Cache-Control": "no-store, no-cache, must-revalidate, max-age=0",
    "Pragma": "no-cache",
    "Expires": "0",
}

LIVERELOAD_JS = """\
(function () {
  if (!window.EventSource) { return; }
  var base = document.currentScript ? document.currentScript.src.replace(/\\/livereload\\.js.*$/, "") : "";
  var source = new EventSource(base + "/events");
  function refreshStyles() {
    var links = document.querySelectorAll('link[rel="stylesheet"]');
    for (var i = 0; i < links.length; i++) {
      var href = links[i].href.replace(/[?&]livereload=\\d+/, "");
      links[i].href = href + (href.indexOf("?") >= 0 ? "&" : "?") + "livereload=" + Date.now();
    }
  }
  source.onmessage = function (event) {
    var msg = JSON.parse(event.data);
    if (msg.command !== "reload") { return; }
    if (msg.liveCSS) { refreshStyles(); } else { window.location.reload(); }
  };
})();
"""


@dataclass(eq=False)
class Subscription:
    channel: "ReloadChannel"
    client_id: int
    messages: "queue.Queue[dict]" = field(default_factory=queue.Queue)

    def events(self, keepalive: float = 15.0):
        """Yield queued messages, or None every `keepalive` seconds of silence."""
        while self.channel.is_connected(self):
            try:
                yield self.messages.get(timeout=keepalive)
            except queue.Empty:
                yield None


class ReloadChannel:
    """Set of connected browser clients that can be told to reload."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._clients: dict[int, Subscription] = {}
        self._next_id = 0

    @property
    def client_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def on_client_connect(self) -> Subscription:
        with self._lock:
            self._next_id += 1
            sub = Subscription(channel=self, client_id=self._next_id)
            self._clients[sub.client_id] = sub
        log.debug("Live-reload client %d connected", sub.client_id)
        return sub

    def disconnect(self, sub: Subscription) -> None:
        with self._lock:
            self._clients.pop(sub.client_id, None)
        log.debug("Live-reload client %d disconnected", sub.client_id)

    def is_connected(self, sub: Subscription) -> bool:
        with self._lock:
            return sub.client_id in self._clients

    def broadcast_reload(self, path: str | None = None, *, css: bool = False) -> int:
        """Queue a reload for every connected client; returns how many were notified."""
        message = {"command": "reload", "path": path, "liveCSS": css}
        with self._lock:
            clients = list(self._clients.values())
        for sub in clients:
            sub.messages.put(message)
        log.info("Reload%s sent to %d client(s)", " (css)" if css else "", len(clients))
        return len(clients)


def active_channel() -> ReloadChannel | None:
    with _active_lock:
        return _active


def _set_active(channel: ReloadChannel | None) -> None:
    global _active
    with _active_lock:
        _active = channel


def inject_script(html: str, script_url: str) -> str:
    tag = f'<script src="{script_url}"></script>'
    matches = list(re.finditer(r"</body\s*>", html, flags=re.IGNORECASE))
    if not matches:
        return html + tag
    pos = matches[-1].start()
    return html[:pos] + tag + html[pos:]


def create_static_app(root: Path, index: str = "index.html", script_url: str | None = None) -> Flask:
    app = Flask("assetflow.static", static_folder=None)
    root = Path(root).resolve()

    @app.route("/", defaults={"path": ""})
    @app.route("/<path:path>")
    def serve_file(path: str):
        target_str = safe_join(str(root), path) if path else str(root)
        if target_str is None:
            abort(404)
        target = Path(target_str)
        if target.is_dir():
            if path and not path.endswith("/"):
                return redirect(f"/{path}/")
            target = target / index
        if not target.is_file():
            abort(404)
        if script_url and target.suffix.lower() in (".html", ".htm"):
            html = target.read_text(encoding="utf-8", errors="replace")
            return Response(inject_script(html, script_url), mimetype="text/html")
        return send_file(target, conditional=False, etag=False, max_age=0)

    @app.after_request
    def no_cache(resp: Response) -> Response:
        resp.headers.update(NO_CACHE_HEADERS)
        return resp

    return app


def create_channel_app(channel: ReloadChannel, keepalive: float = 15.0) -> Flask:
    app = Flask("assetflow.livereload", static_folder=None)
    CORS(app)

    @app.route("/livereload.js")
    def client_script():
        return Response(LIVERELOAD_JS, mimetype="application/javascript")

    @app.route("/events")
    def events():
        sub = channel.on_client_connect()

        def stream():
            try:
                yield "retry: 1000\n\n"
                for msg in sub.events(keepalive):
                    if msg is None:
                        yield ": ping\n\n"
                    else:
                        yield f"data: {json.dumps(msg)}\n\n"
            finally:
                channel.disconnect(sub)

        return Response(stream(), mimetype="text/event-stream", headers=NO_CACHE_HEADERS)

    return app


class DevServer:
    def __init__(
        self,
        root: Path,
        host: str = "localhost",
        port: int = 8080,
        live_port: int = 35729,
        index: str = "index.html",
    ):
        self.root = Path(root)
        self.host = host
        self.port = port
        self.live_port = live_port
        self.index = index
        self.channel: ReloadChannel | None = None
        self._servers: list[BaseWSGIServer] = []

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}/"

    async def start(self) -> None:
        """Bind both sockets and start serving; returns once they accept connections."""
        channel = ReloadChannel()
        live = await asyncio.to_thread(self._bind, create_channel_app(channel), self.live_port)
        self.live_port = live.server_port
        script_url = f"http://{self.host}:{self.live_port}/livereload.js"
        static_app = create_static_app(self.root, self.index, script_url)
        try:
            static = await asyncio.to_thread(self._bind, static_app, self.port)
        except ListenError:
            live.server_close()
            raise
        self.port = static.server_port
        self._servers = [static, live]
        for srv in self._servers:
            threading.Thread(target=srv.serve_forever, daemon=True).start()
        self.channel = channel
        _set_active(channel)
        log.info("Serving %s at %s (live reload on port %d)", self.root, self.url, self.live_port)

    def _bind(self, app: Flask, port: int) -> BaseWSGIServer:
        try:
            return make_server(self.host, port, app, threaded=True)
        # werkzeug reports bind failures by exiting
        except (OSError, SystemExit) as e:
            raise ListenError(f"Cannot listen on {self.host}:{port}: {e}") from e

    def stop(self) -> None:
        for srv in self._servers:
            srv.shutdown()
            srv.server_close()
        self._servers = []
        if self.channel is not None and active_channel() is self.channel:
            _set_active(None)
        self.channel = None
