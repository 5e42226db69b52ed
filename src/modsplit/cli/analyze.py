"""Analyze command: report violations without touching the tree."""

import json
from pathlib import Path

import typer

from .. import api
from . import app
from ._common import console, handle_errors, resolve_config, violation_table


@app.command()
def analyze(
    ctx: typer.Context,
    path: Path = typer.Argument(
        Path("."),
        help="Root of the Cargo project",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    json_output: bool = typer.Option(
        False,
        "--json",
        help="Output in machine-readable JSON format",
    ),
):
    """
    Report modularity violations.

    Exits 1 when any violation is found.

    [bold cyan]Examples:[/bold cyan]

      modsplit analyze .

      modsplit analyze path/to/workspace --json
    """
    with handle_errors(ctx):
        config = resolve_config(ctx, path)
        violations = api.analyze(str(path), config=config)

    if json_output:
        payload = {"count": len(violations), "violations": [v.to_dict() for v in violations]}
        typer.echo(json.dumps(payload, indent=2))
    elif violations:
        console.print(violation_table(violations))
        console.print(f"\n[bold]{len(violations)}[/bold] violations")
    else:
        console.print("[green]No violations found.[/green]")
    raise typer.Exit(1 if violations else 0)
