"""
modsplit - modularity rules and structural refactoring for Rust workspaces.

Finds oversized crates, modules and files and misplaced declarations, and
fixes them with file-level moves applied as one atomic transaction.
"""

__version__ = "0.1.0"

from .api import analyze, check, recover, refactor
from .config import ModularityConfig, load_config
from .refactor import RefactorResult
from .rules import Violation

__all__ = [
    "analyze",  # Main entry points
    "refactor",
    "check",
    "recover",
    "ModularityConfig",
    "load_config",
    "RefactorResult",
    "Violation",
]
