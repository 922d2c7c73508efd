"""
Script commands for scriptrunner.

List, inspect and run scripts from the configured repository.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import getpass
from typing import Dict, List, Optional

import typer

from scriptrunner.errors import (
    GitCommandError,
    ParameterValidationError,
    ResolutionError,
    ScriptNotFoundError,
)
from scriptrunner.scripts import describe_parameters

app = typer.Typer(help="List, inspect and run repository scripts")


def _service(ctx: typer.Context):
    from scriptrunner.cli import build_service

    return build_service(ctx)


def _parse_kv_args(args: Optional[List[str]]) -> Dict[str, str]:
    """Parse key=value arguments into a parameter bag.

    Values stay strings; the parameter contract decides their type.
    """
    result: Dict[str, str] = {}
    for arg in args or []:
        if "=" not in arg:
            raise typer.BadParameter(f"expected key=value, got: {arg}")
        key, value = arg.split("=", 1)
        result[key.strip()] = value
    return result


def _repository_error(e: Exception) -> None:
    typer.echo(f"Repository error: {e}", err=True)
    raise typer.Exit(1)


@app.command("list")
def list_command(ctx: typer.Context):
    """List all scripts on the configured branch.

    Examples:
        scriptrunner script list
    """
    try:
        scripts = _service(ctx).list_scripts()
    except (GitCommandError, ResolutionError) as e:
        _repository_error(e)

    if not scripts:
        typer.echo("No scripts found.")
        return

    typer.echo("Available scripts:\n")
    for script in sorted(scripts, key=lambda s: (s.category.lower(), s.id.lower())):
        kind = "sql" if script.is_database_script else "ps1"
        typer.echo(f"  {script.id} [{script.category}] ({kind})")
        typer.echo(f"    {script.name}")
        if script.description:
            typer.echo(f"    {script.description}")
        typer.echo()


@app.command("info")
def info_command(
    ctx: typer.Context,
    script_id: str = typer.Argument(..., help="Script id"),
):
    """Show metadata and the parameter contract for a script."""
    try:
        script = _service(ctx).get_script(script_id)
    except ScriptNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except (GitCommandError, ResolutionError) as e:
        _repository_error(e)

    typer.echo(f"Script: {script.id}")
    typer.echo(f"  Name: {script.name}")
    typer.echo(f"  Category: {script.category}")
    if script.description:
        typer.echo(f"  Description: {script.description}")
    typer.echo(f"  Path: {script.source_path}")
    typer.echo(f"  Kind: {'database' if script.is_database_script else 'powershell'}")
    params = describe_parameters(script)
    if not params:
        return
    typer.echo()
    typer.echo("Parameters:")
    for name, info in params.items():
        flag = " (required)" if info["required"] else ""
        typer.echo(f"  {name}: {info['type']}{flag}")
        if info["default"]:
            typer.echo(f"    Default: {info['default']}")
        if info["enum_values"]:
            typer.echo(f"    Values: {', '.join(info['enum_values'])}")
        if info["help_text"]:
            typer.echo(f"    {info['help_text']}")


@app.command("content")
def content_command(
    ctx: typer.Context,
    script_id: str = typer.Argument(..., help="Script id"),
):
    """Print the raw text of a script."""
    try:
        typer.echo(_service(ctx).get_content(script_id))
    except ScriptNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except (GitCommandError, ResolutionError) as e:
        _repository_error(e)


@app.command("run")
def run_command(
    ctx: typer.Context,
    script_id: str = typer.Argument(..., help="Script id"),
    args: Optional[List[str]] = typer.Argument(None, help="key=value script parameters"),
    user: Optional[str] = typer.Option(None, "--user", "-u", help="Record the run under this user"),
):
    """Validate parameters and run a script.

    Examples:
        scriptrunner script run purge-sessions OlderThanDays=30
        scriptrunner script run export-report Format=csv --user ops
    """
    service = _service(ctx)
    parameters = _parse_kv_args(args)
    try:
        execution_id = service.execute(script_id, parameters, user or getpass.getuser())
    except ScriptNotFoundError as e:
        typer.echo(f"Error: {e}", err=True)
        raise typer.Exit(1)
    except ParameterValidationError as e:
        typer.echo(f"Invalid parameters: {e}", err=True)
        raise typer.Exit(2)
    except (GitCommandError, ResolutionError) as e:
        _repository_error(e)

    typer.echo(f"Execution: {execution_id}")
    record = service.wait(execution_id)
    service.close()
    if record is None:
        typer.echo("Execution did not finish", err=True)
        raise typer.Exit(1)
    typer.echo(f"Status: {record.status.value} (exit code {record.exit_code})")
    if record.stdout:
        typer.echo(record.stdout)
    if record.stderr:
        typer.echo(record.stderr, err=True)
    raise typer.Exit(0 if record.exit_code == 0 else 1)
