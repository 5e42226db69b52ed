"""Shared CLI helpers."""

from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List

import typer
from rich.console import Console
from rich.table import Table

from ..config import ModularityConfig, load_config
from ..exceptions import ModsplitError
from ..logging_config import get_logger, setup_logging
from ..rules import Severity, Violation

console = Console()
logger = get_logger(__name__)

_SEVERITY_STYLE = {Severity.ERROR: "red", Severity.WARNING: "yellow", Severity.INFO: "dim"}


def resolve_config(ctx: typer.Context, path: Path) -> ModularityConfig:
    """Build configuration from the global CLI options."""
    obj = ctx.obj or {}
    config = load_config(
        path.resolve(),
        obj.get("config"),
        verbose=obj.get("verbose", False),
        quiet=obj.get("quiet", False),
    )
    if config.verbosity != "normal" and not (obj.get("verbose") or obj.get("quiet")):
        setup_logging(log_file=obj.get("log_file"), verbosity=config.verbosity)
    return config


@contextmanager
def handle_errors(ctx: typer.Context) -> Iterator[None]:
    """Map modsplit errors to their exit codes."""
    try:
        yield
    except typer.Exit:
        raise
    except ModsplitError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(int(e.exit_code))
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        raise typer.Exit(130)
    except Exception as e:
        logger.exception("Unexpected error")
        console.print(f"[red]Unexpected error:[/red] {e}")
        if (ctx.obj or {}).get("verbose"):
            console.print_exception()
        raise typer.Exit(1)


def violation_table(violations: List[Violation], title: str = "Violations") -> Table:
    table = Table(title=title, show_lines=False)
    table.add_column("Severity")
    table.add_column("Rule")
    table.add_column("Location")
    table.add_column("Message")
    for v in violations:
        style = _SEVERITY_STYLE[v.severity]
        table.add_row(
            f"[{style}]{v.severity.name}[/{style}]",
            v.kind.value,
            f"{v.location.file}:{v.location.line_start}",
            v.message,
        )
    return table
