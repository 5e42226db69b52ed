"""Immutable Rust project model and its derivation from disk."""

from .builder import build_project
from .entities import (
    ENTRY_FILE_NAMES,
    Crate,
    CrateKind,
    CrateMetrics,
    Item,
    Module,
    ModuleKind,
    ModuleMetrics,
    Project,
    Span,
)
from .manifest import Manifest, read_manifest

__all__ = [
    "build_project",
    "ENTRY_FILE_NAMES",
    "Project",
    "Crate",
    "CrateKind",
    "CrateMetrics",
    "Module",
    "ModuleKind",
    "ModuleMetrics",
    "Item",
    "Span",
    "Manifest",
    "read_manifest",
]
