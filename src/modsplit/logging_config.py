"""
Logging configuration for modsplit.

Log records go to stderr through rich so that stdout stays clean for
``--json`` output and unified diffs. Records emitted while a transaction
is open carry its ID, so a log file can be matched against the journal
left under ``.modsplit/txn/<id>/`` when a rollback fails.
"""

import logging
from typing import Any, MutableMapping, Optional, Tuple

from rich.console import Console
from rich.logging import RichHandler

# Chatty libraries whose INFO records (one per HTTP request) drown ours.
_QUIET_LIBRARIES = ("httpx", "httpcore")

_VERBOSITY_LEVELS = {
    "quiet": logging.ERROR,
    "normal": logging.WARNING,
    "verbose": logging.DEBUG,
}


def resolve_level(verbose: bool = False, quiet: bool = False, verbosity: Optional[str] = None) -> int:
    """Log level from CLI flags, falling back to the configured verbosity.

    Flags win over the configuration; ``--quiet`` wins over ``--verbose``.
    """
    if quiet:
        return logging.ERROR
    if verbose:
        return logging.DEBUG
    return _VERBOSITY_LEVELS.get(verbosity or "normal", logging.WARNING)


def setup_logging(
    verbose: bool = False,
    quiet: bool = False,
    log_file: Optional[str] = None,
    verbosity: Optional[str] = None,
) -> logging.Logger:
    """
    Configure the ``modsplit`` logger hierarchy.

    Args:
        verbose: Enable DEBUG level logging
        quiet: Suppress all but ERROR level logging
        log_file: Optional file path that also receives every record
        verbosity: Configured verbosity ("quiet", "normal", "verbose"),
            used when neither flag is given

    Returns:
        Configured logger instance for modsplit
    """
    level = resolve_level(verbose, quiet, verbosity)
    debug = level <= logging.DEBUG

    handlers = [
        RichHandler(
            console=Console(stderr=True),
            rich_tracebacks=True,
            tracebacks_show_locals=debug,
            markup=False,
            show_time=debug,
            show_path=debug,
        )
    ]
    if log_file:
        file_handler = logging.FileHandler(log_file, mode="a")
        file_handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s", datefmt="%Y-%m-%d %H:%M:%S"
            )
        )
        handlers.append(file_handler)

    logging.basicConfig(level=level, format="%(message)s", datefmt="[%X]", handlers=handlers, force=True)

    for library in _QUIET_LIBRARIES:
        logging.getLogger(library).setLevel(logging.DEBUG if debug else logging.WARNING)

    logger = logging.getLogger("modsplit")
    logger.setLevel(level)
    return logger


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a logger instance for a specific module.

    Args:
        name: Module name (e.g., 'modsplit.rules.engine')
              If None, returns the root modsplit logger
    """
    if name is None:
        return logging.getLogger("modsplit")

    if not name.startswith("modsplit"):
        name = f"modsplit.{name}"

    return logging.getLogger(name)


class TransactionLogger(logging.LoggerAdapter):
    """Prefixes messages with the transaction ID and exposes it as ``record.txn_id``."""

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> Tuple[Any, MutableMapping[str, Any]]:
        txn_id = self.extra["txn_id"]
        kwargs.setdefault("extra", {})["txn_id"] = txn_id
        return f"[txn {txn_id}] {msg}", kwargs


def transaction_logger(logger: logging.Logger, txn_id: str) -> TransactionLogger:
    return TransactionLogger(logger, {"txn_id": txn_id})
