"""Violation rule engine."""

from .engine import evaluate
from .external import parse_diagnostics, run_external_tool
from .models import Location, RuleKind, Severity, Violation
from .rules import Component, components, entry_file_offenders

__all__ = [
    "evaluate",
    "run_external_tool",
    "parse_diagnostics",
    "Violation",
    "Location",
    "RuleKind",
    "Severity",
    "Component",
    "components",
    "entry_file_offenders",
]
