"""Refactor exceptions: planning, validation and the commit protocol."""

from pathlib import Path
from typing import List, Optional

from .base import ModsplitError
from .taxonomy import ExitCode


class RefactorError(ModsplitError):
    """Base class for refactor-related errors."""
    pass


class PlanningError(RefactorError):
    """Raised when a pattern cannot produce a valid plan for a violation."""

    def __init__(self, pattern: str, reason: str):
        super().__init__(
            f"Cannot plan {pattern}: {reason}",
            details={"pattern": pattern},
        )
        self.pattern = pattern
        self.reason = reason


class ConflictError(RefactorError):
    """Raised when queued operations are incompatible. Nothing was applied."""

    exit_code = ExitCode.CONFLICT

    def __init__(self, reason: str, paths: Optional[List[str]] = None):
        details = {"reason": reason}
        if paths:
            details["paths"] = ", ".join(paths)
        super().__init__("Refactor aborted: conflicting operations", details=details)
        self.reason = reason
        self.paths = paths or []


class ProjectLockedError(RefactorError):
    """Raised when another process holds the project lock."""

    exit_code = ExitCode.CONFLICT

    def __init__(self, lock_path: Path):
        super().__init__(
            "Project is locked by another modsplit process",
            details={"lock": str(lock_path)},
        )
        self.lock_path = lock_path


class CommitIoError(RefactorError):
    """Raised when a step failed mid-commit and the tree was restored."""

    exit_code = ExitCode.ROLLED_BACK

    def __init__(self, step: str, reason: str, restored: bool = True):
        super().__init__(
            f"Commit failed at {step}; changes rolled back",
            details={"reason": reason, "restored": str(restored).lower()},
        )
        self.step = step
        self.reason = reason
        self.restored = restored


class CommitValidationError(CommitIoError):
    """Raised when the re-derived model shows new structural issues."""

    def __init__(self, issues: List[str]):
        super().__init__("post-commit validation", "; ".join(issues))
        self.issues = issues


class RollbackFailure(RefactorError):
    """Raised when rollback itself failed. The journal must be replayed by hand."""

    exit_code = ExitCode.ROLLBACK_FAILED

    def __init__(self, journal_dir: Path, reason: str):
        super().__init__(
            "Rollback failed; restore manually from the journal",
            details={"journal": str(journal_dir), "reason": reason},
        )
        self.journal_dir = journal_dir
        self.reason = reason
