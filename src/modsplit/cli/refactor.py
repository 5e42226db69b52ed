"""Refactor command: plan and apply (or preview) fixes."""

from pathlib import Path

import typer

from .. import api
from ..refactor import RefactorResult
from . import app
from ._common import console, handle_errors, resolve_config, violation_table


def _print_result(result: RefactorResult, dry_run: bool) -> None:
    if not result.operations and not result.cargo_changes:
        console.print("[green]Nothing to do.[/green]")
    else:
        heading = "Planned operations" if dry_run else "Applied operations"
        console.print(f"[bold]{heading}[/bold]")
        for line in result.operations + result.cargo_changes:
            console.print(f"  {line}", highlight=False)
    if dry_run:
        for diff in result.diffs:
            typer.echo(diff, nl=not diff.endswith("\n"))
    for violation, reason in result.unresolved:
        console.print(f"[yellow]Unresolved[/yellow] {violation.message}: {reason}", highlight=False)
    if result.remaining:
        title = "Would remain" if dry_run else "Remaining violations"
        console.print(violation_table(result.remaining, title=title))
    if result.transaction_id:
        console.print(f"Transaction [bold]{result.transaction_id}[/bold] committed")


@app.command()
def refactor(
    ctx: typer.Context,
    path: Path = typer.Argument(
        Path("."),
        help="Root of the Cargo project",
        exists=True,
        file_okay=False,
        dir_okay=True,
    ),
    dry_run: bool = typer.Option(
        False,
        "--dry-run",
        help="Show unified diffs instead of changing files",
    ),
):
    """
    Fix violations with file-level refactors, as one atomic transaction.

    [bold cyan]Examples:[/bold cyan]

      modsplit refactor . --dry-run

      modsplit -v refactor path/to/workspace
    """
    with handle_errors(ctx):
        config = resolve_config(ctx, path)
        result = api.refactor(str(path), dry_run=dry_run, config=config)
    _print_result(result, dry_run)
