"""CLI entry point — registers all subcommands."""

from pathlib import Path
from typing import Optional

import typer

from .. import __version__
from ..logging_config import setup_logging
from ._common import console

app = typer.Typer(
    name="modsplit",
    help="modsplit - Rust workspace modularity checker and refactoring tool",
    add_completion=False,
    rich_markup_mode="rich",
)


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"modsplit {__version__}")
        raise typer.Exit(0)


@app.callback()
def callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable debug logging",
    ),
    quiet: bool = typer.Option(
        False,
        "--quiet",
        "-q",
        help="Only log errors",
    ),
    config: Optional[Path] = typer.Option(
        None,
        "-c",
        "--config",
        help="Configuration file (TOML)",
        exists=True,
        file_okay=True,
        dir_okay=False,
        readable=True,
    ),
    log_file: Optional[Path] = typer.Option(
        None,
        "--log-file",
        help="Also append log records to this file",
        dir_okay=False,
    ),
    version: bool = typer.Option(
        False,
        "--version",
        help="Show version and exit",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Find and fix structural modularity problems in Cargo workspaces."""
    log_path = str(log_file) if log_file else None
    setup_logging(verbose=verbose, quiet=quiet, log_file=log_path)
    ctx.obj = {"config": config, "verbose": verbose, "quiet": quiet, "log_file": log_path}


# Import subcommands to register them
from .analyze import analyze as _analyze  # noqa: F401, E402
from .check import check as _check  # noqa: F401, E402
from .recover import recover as _recover  # noqa: F401, E402
from .refactor import refactor as _refactor  # noqa: F401, E402


def main() -> None:
    app()
