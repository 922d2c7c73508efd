# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Main CLI entry point for scriptrunner.

Thin operator surface: loads config, builds the service, renders output.
No domain logic lives here.
"""

import logging
from typing import Optional

import typer

from scriptrunner import __version__
from scriptrunner.config import load_config
from scriptrunner.errors import ConfigError
from scriptrunner.service import ScriptRunnerService


app = typer.Typer(
    name="scriptrunner",
    help="Run parameterised operational scripts from a git repository",
    no_args_is_help=True,
)


def build_service(ctx: typer.Context) -> ScriptRunnerService:
    """Create the service lazily from the config selected on the command line."""
    obj = ctx.ensure_object(dict)
    if "service" not in obj:
        try:
            config = load_config(obj.get("config_path"))
        except (FileNotFoundError, ConfigError) as e:
            typer.echo(f"Config error: {e}", err=True)
            raise typer.Exit(1)
        obj["service"] = ScriptRunnerService.from_config(config)
    return obj["service"]


@app.callback()
def main_callback(
    ctx: typer.Context,
    config: Optional[str] = typer.Option(None, "--config", "-c", help="Path to config file"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
):
    """Discover, validate and run scripts stored in git."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.ensure_object(dict)
    ctx.obj["config_path"] = config


@app.command()
def version():
    """Show version information."""
    typer.echo(f"scriptrunner version {__version__}")


@app.command()
def cleanup(
    ctx: typer.Context,
    max_age: int = typer.Option(3600, "--max-age", help="Remove temp folders older than this many seconds"),
):
    """Remove orphaned temporary script folders."""
    service = build_service(ctx)
    removed = service.storage.cleanup_orphans(max_age)
    typer.echo(f"Removed {len(removed)} orphaned temp folder(s)")


# Static command groups
from scriptrunner.commands import config as config_commands  # noqa: E402
from scriptrunner.commands import history, script  # noqa: E402

app.add_typer(config_commands.app, name="config")
app.add_typer(script.app, name="script")
app.add_typer(history.app, name="history")


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
