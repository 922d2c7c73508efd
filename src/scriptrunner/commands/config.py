# Copyright 2025 Ben Mensi
# SPDX-License-Identifier: Apache-2.0

"""
Config command for scriptrunner.

Provides configuration validation.
"""

import typer

from scriptrunner.config import config_path, load_config
from scriptrunner.errors import ConfigError

app = typer.Typer(help="Manage and validate configuration")


@app.command()
def validate(
    ctx: typer.Context,
    path: str = typer.Option(None, "--config", "-c", help="Path to config file"),
):
    """
    Validate configuration file.

    Checks that the config file parses and that every section has the
    expected shape.
    """
    path = path or (ctx.obj or {}).get("config_path")
    typer.echo("Validating configuration...")
    typer.echo()

    try:
        config = load_config(path)
    except FileNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except ConfigError as e:
        typer.echo(f"Validation failed: {e}", err=True)
        raise typer.Exit(1)

    repo = config.script_repo
    typer.echo(f"Config file: {config_path(path)}")
    typer.echo(f"Provider: {repo.provider}")
    if repo.active.repo_url:
        typer.echo(f"Repository: {repo.active.repo_url} ({repo.active.branch})")
    else:
        typer.echo("Warning: no repository URL configured", err=True)
    if not repo.active.resolve_pat():
        typer.echo("Warning: no access token resolved", err=True)
    typer.echo(f"SQL connections: {', '.join(config.sql_connections) or 'none'}")
    typer.echo(f"Max concurrent executions: {config.execution.max_concurrent_executions}")
    typer.echo()
    typer.echo("Configuration validation complete!")
