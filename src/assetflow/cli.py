from __future__ import annotations

import asyncio
from typing import Optional

import typer

from .config import load_config
from .core import run_graph
from . import utils
from .errors import BuildError, ConfigError
from .logging import attach_log_file, configure, get_logger


app = typer.Typer(add_completion=False, help="Front-end asset build pipeline")
log = get_logger("assetflow.cli")

COMMAND_HELP = {
    "clean": "Empty the output directory.",
    "styles": "Compile Sass to CSS with source maps.",
    "app": "Bundle the main application script.",
    "components": "Bundle each component script.",
    "html": "Copy HTML templates.",
    "images": "Optimize images.",
    "webp": "Create WebP renditions of images.",
    "svg": "Copy SVG files.",
    "build": "Clean, then build every asset type in parallel (the default).",
    "serve": "Build, start the dev server and rebuild on changes.",
    "watch": "Build, then rebuild on changes (no server).",
    "production": "Build, then write minified copies of all CSS and JS.",
}

ConfigOption = typer.Option(None, "--config", "-c", help="Path to YAML config (default: ./assetflow.yaml if present)")


def _commands():
    from asset_tasks.graphs import COMMANDS, validate_commands

    try:
        validate_commands()
    except ConfigError as e:
        typer.echo(f"Invalid command table: {e}", err=True)
        raise typer.Exit(code=1)
    return COMMANDS


def run_command(command: str, config: Optional[str] = None) -> None:
    """Run one named command; exits with code 1 when anything in its graph fails."""
    commands = _commands()
    if command not in commands:
        typer.echo(f"Unknown command: {command}", err=True)
        raise typer.Exit(code=1)
    try:
        params = load_config(config)
        if utils.log_file(params):
            attach_log_file(utils.log_file(params))
        if command in ("serve", "watch"):
            from asset_tasks.graphs import bindings_from_config

            bindings_from_config(params)
    except ConfigError as e:
        typer.echo(f"Config error: {e}", err=True)
        raise typer.Exit(code=1)

    try:
        asyncio.run(run_graph(commands[command], params, name=command))
    except BuildError as e:
        log.error("'%s' failed: %s", command, e, exc_info=True)
        raise typer.Exit(code=1)
    except KeyboardInterrupt:
        log.info("Interrupted")
        raise typer.Exit(code=130)
    except Exception:  # noqa: BLE001
        log.exception("'%s' crashed", command)
        raise typer.Exit(code=1)


def _register(command: str, help_text: str) -> None:
    def cmd(ctx: typer.Context, config: Optional[str] = ConfigOption):
        # `assetflow -c site.yaml html` puts the option on the group
        run_command(command, config or (ctx.obj or {}).get("config"))

    cmd.__name__ = command.replace("-", "_")
    app.command(command, help=help_text)(cmd)


for _name, _help in COMMAND_HELP.items():
    _register(_name, _help)


@app.callback(invoke_without_command=True)
def default(
    ctx: typer.Context,
    config: Optional[str] = ConfigOption,
    log_level: Optional[str] = typer.Option(
        None, "--log-level", help="debug, info, warning or error (default: $ASSETFLOW_LOG_LEVEL or info)"
    ),
):
    """With no command, run the full build."""
    configure(log_level)
    ctx.obj = {"config": config}
    if ctx.invoked_subcommand is None:
        from asset_tasks.graphs import DEFAULT_COMMAND

        run_command(DEFAULT_COMMAND, config)


@app.command("list")
def list_commands():
    """List commands and the task graphs they run."""
    commands = _commands()
    for name in sorted(commands):
        typer.echo(f"{name}:")
        for line in commands[name].describe(1):
            typer.echo(line)


def main():  # pragma: no cover
    app()


if __name__ == "__main__":  # pragma: no cover
    main()
