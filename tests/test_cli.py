# tests/test_cli.py

from __future__ import annotations

import logging
from pathlib import Path

from typer.testing import CliRunner

from assetflow.cli import app


runner = CliRunner()


def write_config(root: Path, extra: str = "") -> Path:
    cfg = root / "assetflow.yaml"
    cfg.write_text(f"project:\n  root: .\n{extra}", encoding="utf-8")
    return cfg


def test_list_shows_graphs() -> None:
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "build:" in result.output
    assert "parallel:" in result.output
    assert "- watch-files" in result.output


def test_clean_command(project) -> None:
    project.write("dist/old.css", "x")
    cfg = write_config(project.root)
    result = runner.invoke(app, ["clean", "--config", str(cfg)])
    assert result.exit_code == 0
    assert project.dist_files() == []


def test_default_command_builds(project) -> None:
    project.write("app/templates/index.html", "<p>hi</p>")
    cfg = write_config(project.root)
    result = runner.invoke(app, ["--config", str(cfg)])
    assert result.exit_code == 0
    assert project.dist_files() == ["index.html"]


def test_failing_build_exits_non_zero(project) -> None:
    project.write("app/js/app.js", "console.log(1);")
    cfg = write_config(project.root, "tools:\n  esbuild: esbuild-that-does-not-exist\n")
    result = runner.invoke(app, ["build", "-c", str(cfg)])
    assert result.exit_code == 1


def test_missing_config_exits_non_zero(tmp_path: Path) -> None:
    result = runner.invoke(app, ["html", "--config", str(tmp_path / "nope.yaml")])
    assert result.exit_code == 1
    assert "Config error" in result.output


def test_config_before_subcommand_applies(tmp_path: Path, monkeypatch) -> None:
    site = tmp_path / "site"
    site.mkdir()
    (site / "app/templates").mkdir(parents=True)
    (site / "app/templates/index.html").write_text("<p>site</p>", encoding="utf-8")
    cfg = write_config(site)
    elsewhere = tmp_path / "elsewhere"
    (elsewhere / "dist").mkdir(parents=True)
    (elsewhere / "dist/keep.txt").write_text("keep", encoding="utf-8")
    monkeypatch.chdir(elsewhere)

    result = runner.invoke(app, ["--config", str(cfg), "html"])
    assert result.exit_code == 0
    assert (site / "dist/index.html").read_text(encoding="utf-8") == "<p>site</p>"
    assert not (elsewhere / ".assetflow").exists()

    result = runner.invoke(app, ["-c", str(cfg), "clean"])
    assert result.exit_code == 0
    assert (elsewhere / "dist/keep.txt").exists()
    assert not (site / "dist/index.html").exists()


def test_subcommand_config_wins_over_group_config(tmp_path: Path) -> None:
    first = tmp_path / "first"
    second = tmp_path / "second"
    for root in (first, second):
        (root / "app/templates").mkdir(parents=True)
        (root / "app/templates/index.html").write_text(root.name, encoding="utf-8")
    result = runner.invoke(
        app, ["-c", str(write_config(first)), "html", "-c", str(write_config(second))]
    )
    assert result.exit_code == 0
    assert (second / "dist/index.html").exists()
    assert not (first / "dist").exists()


def test_failures_are_logged_with_traceback(project, caplog) -> None:
    project.write("app/scss/style.scss", "body { color: $nope; ")
    cfg = write_config(project.root)
    with caplog.at_level(logging.INFO):
        result = runner.invoke(app, ["styles", "-c", str(cfg)])
    assert result.exit_code == 1
    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert errors
    assert all(r.exc_info for r in errors)
    assert any(r.name == "assetflow.styles.styles" for r in errors)
