"""Refactor patterns: each turns one kind of violation into a plan."""

from .base import PlanContext, Pattern
from .clean_entry_files import CleanEntryFilesPattern
from .distribute_loc import DistributeLocPattern
from .registry import PATTERNS, get_patterns, select
from .split_crate import SplitCratePattern
from .split_module import SplitModulePattern

__all__ = [
    "Pattern",
    "PlanContext",
    "PATTERNS",
    "get_patterns",
    "select",
    "SplitCratePattern",
    "SplitModulePattern",
    "CleanEntryFilesPattern",
    "DistributeLocPattern",
]
