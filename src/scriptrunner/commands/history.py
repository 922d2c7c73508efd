"""
History commands for scriptrunner.

Read back execution records written by the dispatcher.

Copyright 2025 Ben Mensi
Licensed under the Apache License, Version 2.0
"""

import typer

app = typer.Typer(help="Inspect execution history")


def _service(ctx: typer.Context):
    from scriptrunner.cli import build_service

    return build_service(ctx)


@app.command("list")
def list_command(
    ctx: typer.Context,
    limit: int = typer.Option(20, "--limit", "-n", help="Number of records to show"),
):
    """List recent executions, newest first."""
    records = _service(ctx).history.query(limit=limit)
    if not records:
        typer.echo("No executions recorded.")
        return
    for record in records:
        started = record.started_at.strftime("%Y-%m-%d %H:%M:%S")
        typer.echo(
            f"{record.execution_id}  {started}  {record.status.value:<9} "
            f"{record.exit_code:>4}  {record.script_id}  ({record.ran_by_user})"
        )


@app.command("show")
def show_command(
    ctx: typer.Context,
    execution_id: str = typer.Argument(..., help="Execution id"),
):
    """Show one execution with its captured output."""
    record = _service(ctx).history.get(execution_id)
    if record is None:
        typer.echo(f"Error: execution not found: {execution_id}", err=True)
        raise typer.Exit(1)

    typer.echo(f"Execution: {record.execution_id}")
    typer.echo(f"  Script: {record.script_id} ({record.script_name})")
    typer.echo(f"  Ran by: {record.ran_by_user}")
    typer.echo(f"  Status: {record.status.value}")
    typer.echo(f"  Exit code: {record.exit_code}")
    typer.echo(f"  Started: {record.started_at.isoformat()}")
    if record.finished_at:
        typer.echo(f"  Finished: {record.finished_at.isoformat()}")
    typer.echo(f"  Parameters: {record.parameters_json}")
    if record.stdout:
        typer.echo()
        typer.echo("STDOUT:")
        typer.echo(record.stdout)
    if record.stderr:
        typer.echo()
        typer.echo("STDERR:")
        typer.echo(record.stderr)
