"""Check command: exit status only, for CI."""

from pathlib import Path

import typer

from .. import api
from . import app
from ._common import console, handle_errors, resolve_config


@app.command()
def check(
    ctx: typer.Context,
    path: Path = typer.Argument(
        Path("."),
        help="Root of the Cargo project",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
):
    """Exit 0 when the project has no violations, 1 otherwise."""
    with handle_errors(ctx):
        config = resolve_config(ctx, path)
        code = api.check(str(path), config=config)
    if code:
        console.print("[red]Modularity violations found.[/red] Run [bold]modsplit analyze[/bold].")
    raise typer.Exit(code)
