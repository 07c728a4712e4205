# tests/test_watch.py

from __future__ import annotations

import asyncio

import pytest

import asset_tasks.dev
from asset_tasks.dev import reload
from asset_tasks.graphs import bindings_from_config
from asset_tasks.html import html
from assetflow.core import run_graph, series, task
from assetflow.errors import ConfigError, TransformError
from assetflow.selectors import FileSelector
from assetflow.watch import IDLE, WatchBinding, WatchLoop

from .fakes import FakeChannel


def make_loop(params, project, channel):
    return WatchLoop(bindings_from_config(params), params, project.root, channel=lambda: channel)


def test_default_bindings(params) -> None:
    bindings = bindings_from_config(params)
    assert [(b.name, b.task.name, b.reload) for b in bindings] == [
        ("html", "html", "page"),
        ("styles", "styles", "css"),
        ("app", "app", "page"),
        ("components", "components", "page"),
    ]


def test_unknown_task_in_watch_config(params) -> None:
    params["watch"] = [{"patterns": ["x/**"], "task": "nope"}]
    with pytest.raises(ConfigError):
        bindings_from_config(params)


def test_bad_reload_mode(params) -> None:
    params["watch"] = [{"patterns": ["x/**"], "task": "html", "reload": "sometimes"}]
    with pytest.raises(ConfigError):
        bindings_from_config(params)


@pytest.mark.asyncio
async def test_template_change_recopies_templates_and_reloads_once(project, params) -> None:
    page = project.write("app/templates/index.html", "<p>v1</p>")
    project.write("app/scss/style.scss", "a { color: red; }")
    channel = FakeChannel()
    loop = make_loop(params, project, channel)

    page.write_text("<p>v2</p>", encoding="utf-8")
    started = loop.dispatch([str(page)])
    await asyncio.gather(*started)

    assert len(started) == 1
    assert loop.runs == {"html": 1, "styles": 0, "app": 0, "components": 0}
    assert channel.broadcasts == [(None, False)]
    assert (project.dist / "index.html").read_text(encoding="utf-8") == "<p>v2</p>"
    assert not (project.assets / "style.css").exists()
    assert loop.state["html"] == IDLE


@pytest.mark.asyncio
async def test_style_change_injects_css(project, params) -> None:
    sheet = project.write("app/scss/style.scss", "a { color: red; }")
    channel = FakeChannel()
    loop = make_loop(params, project, channel)

    await asyncio.gather(*loop.dispatch([sheet]))

    assert loop.runs["styles"] == 1
    assert channel.broadcasts == [("style.scss", True)]
    assert (project.assets / "style.css").exists()


def test_component_change_matches_app_and_components(project, params) -> None:
    loop = make_loop(params, project, FakeChannel())
    changed = project.root / "app/js/components/menu.js"
    hits = [b.name for b in loop.bindings if b.selector.matches(changed, project.root)]
    assert hits == ["app", "components"]


@pytest.mark.asyncio
async def test_unrelated_change_starts_nothing(project, params) -> None:
    loop = make_loop(params, project, FakeChannel())
    assert loop.dispatch([project.root / "dist/index.html", project.root / "README.md"]) == []


@pytest.mark.asyncio
async def test_failed_rebuild_stays_idle_without_reload(project, params) -> None:
    calls = []

    @task(name="flaky")
    async def flaky(params):
        calls.append(1)
        if len(calls) == 1:
            raise TransformError("flaky", None, "syntax error")

    channel = FakeChannel()
    binding = WatchBinding(name="flaky", selector=FileSelector(["src/**/*.txt"]), task=flaky)
    loop = WatchLoop([binding], params, project.root, channel=lambda: channel)

    await asyncio.gather(*loop.dispatch(["src/a.txt"]))
    assert loop.state["flaky"] == IDLE
    assert channel.broadcasts == []

    await asyncio.gather(*loop.dispatch(["src/a.txt"]))
    assert loop.runs["flaky"] == 2
    assert channel.broadcasts == [(None, False)]


@pytest.mark.asyncio
async def test_bindings_run_independently(project, params) -> None:
    release = asyncio.Event()
    order = []

    @task(name="slow")
    async def slow(params):
        await release.wait()
        order.append("slow")

    @task(name="quick")
    async def quick(params):
        order.append("quick")

    loop = WatchLoop(
        [
            WatchBinding(name="slow", selector=FileSelector("a/*"), task=slow, reload=None),
            WatchBinding(name="quick", selector=FileSelector("b/*"), task=quick, reload=None),
        ],
        params,
        project.root,
        channel=lambda: None,
    )
    loop.dispatch(["a/1"])
    loop.dispatch(["b/1"])
    await asyncio.sleep(0.05)
    assert order == ["quick"]
    release.set()
    await loop.drain()
    assert order == ["quick", "slow"]


def test_watch_paths_fall_back_to_existing_parents(project, params) -> None:
    project.write("app/templates/index.html")
    project.write("app/scss/style.scss")
    loop = make_loop(params, project, FakeChannel())
    # app/js is missing, so "app" is watched and covers the other trees
    assert loop.watch_paths() == [project.root / "app"]


def test_watch_paths_drop_nested_directories(project, params) -> None:
    project.write("app/templates/index.html")
    project.write("app/scss/style.scss")
    project.write("app/js/components/menu.js")
    loop = make_loop(params, project, FakeChannel())
    assert loop.watch_paths() == [
        project.root / "app/templates",
        project.root / "app/scss",
        project.root / "app/js",
    ]


@pytest.mark.asyncio
async def test_reload_task_broadcasts_on_active_channel(project, params, monkeypatch) -> None:
    channel = FakeChannel()
    monkeypatch.setattr(asset_tasks.dev, "active_channel", lambda: channel)
    project.write("app/templates/index.html", "<p>hi</p>")
    await run_graph(series(html, reload), params, name="html-reload")
    assert (project.dist / "index.html").exists()
    assert channel.broadcasts == [(None, False)]


@pytest.mark.asyncio
async def test_reload_task_without_server_is_a_no_op(params, monkeypatch) -> None:
    monkeypatch.setattr(asset_tasks.dev, "active_channel", lambda: None)
    record = await run_graph(reload, params, name="reload")
    assert [s["status"] for s in record.steps] == ["ok"]
