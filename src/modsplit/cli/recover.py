"""Recover command: roll back transactions interrupted by a crash."""

from pathlib import Path

import typer

from .. import api
from . import app
from ._common import console, handle_errors


@app.command()
def recover(
    ctx: typer.Context,
    path: Path = typer.Argument(
        Path("."),
        help="Root of the Cargo project",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
):
    """Restore the tree from journals of interrupted refactors."""
    with handle_errors(ctx):
        recovered = api.recover(str(path))
    if recovered:
        for txn_id in recovered:
            console.print(f"Rolled back transaction [bold]{txn_id}[/bold]")
    else:
        console.print("[green]Nothing to recover.[/green]")
