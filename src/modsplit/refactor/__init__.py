"""Refactor execution: validation, ordering, journaled commit, dry-run diffs."""

from .cargo import apply_cargo_change
from .executor import execute, prepare
from .journal import Journal, pending_journals, recover
from .lock import ProjectLock
from .models import (
    AddDependency,
    AddWorkspaceMember,
    CargoChange,
    CreateDirectory,
    CreateFile,
    DeleteFile,
    FileOperation,
    Mode,
    ModifyFile,
    MovedItem,
    MovedItemTable,
    MoveFile,
    RefactorPlan,
    RefactorResult,
    RemoveWorkspaceMember,
    TextChange,
    UpdateDependencyPath,
)
from .ordering import order_steps
from .text import apply_changes
from .validation import Step, Transaction, merge_plans, validate

__all__ = [
    "execute",
    "prepare",
    "recover",
    "pending_journals",
    "Journal",
    "ProjectLock",
    "apply_cargo_change",
    "apply_changes",
    "order_steps",
    "merge_plans",
    "validate",
    "Step",
    "Transaction",
    "TextChange",
    "CreateFile",
    "DeleteFile",
    "ModifyFile",
    "MoveFile",
    "CreateDirectory",
    "FileOperation",
    "AddWorkspaceMember",
    "RemoveWorkspaceMember",
    "AddDependency",
    "UpdateDependencyPath",
    "CargoChange",
    "MovedItem",
    "MovedItemTable",
    "RefactorPlan",
    "RefactorResult",
    "Mode",
]
