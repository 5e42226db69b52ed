"""Transactional execution of refactor plans.

Pipeline: merge -> validate -> reference fixup -> validate again -> order
-> (dry run: render diffs | apply: journal + commit + re-derive model).

Every mutation is journaled before it happens. A failing step, or new
structural issues in the re-derived model, rolls the whole transaction
back; the tree is then byte-identical to what it was before the call.
"""

from __future__ import annotations

import os
import signal
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator, List, Optional, Sequence, Tuple

from ..config import DEFAULT_CONFIG, ModularityConfig
from ..exceptions import CommitIoError, CommitValidationError, ModsplitError
from ..file_ops import atomic_write_text, move_path, read_text, remove_path
from ..logging_config import get_logger, transaction_logger
from ..model import Project, build_project
from .cargo import apply_cargo_change
from .diff import render_diffs
from .journal import Journal
from .lock import ProjectLock
from .models import (
    CreateDirectory,
    CreateFile,
    DeleteFile,
    Mode,
    ModifyFile,
    MoveFile,
    RefactorPlan,
    RefactorResult,
)
from .ordering import order_steps
from .text import apply_changes
from .validation import Step, Transaction, merge_plans, validate

logger = get_logger(__name__)

FIXUP_PATTERN = "reference_fixup"


def prepare(
    plans: Sequence[RefactorPlan], root: Path, project: Project
) -> Tuple[Transaction, List[Step]]:
    """Validate plans, add reference fixups and compute the step order.

    Raises:
        SecurityError: If a path leaves the project root
        ConflictError: If operations are incompatible
    """
    from ..fixup import build_fixups

    plans = list(plans)
    transaction = validate(merge_plans(plans), root)
    fixups = build_fixups(project, transaction.moved_items, transaction.moves)
    if fixups:
        logger.debug(f"Reference fixup adds {len(fixups)} file modifications")
        fixup_plan = RefactorPlan(
            pattern=FIXUP_PATTERN,
            description="rewrite references to moved items",
            operations=tuple(fixups),
        )
        transaction = validate(merge_plans(plans + [fixup_plan]), root)
    return transaction, order_steps(transaction.steps)


def execute(
    plans: Sequence[RefactorPlan],
    project_root: Path,
    mode: Mode = Mode.APPLY,
    config: Optional[ModularityConfig] = None,
    project: Optional[Project] = None,
) -> RefactorResult:
    """Apply (or preview) ``plans`` as one all-or-nothing transaction.

    Args:
        plans: Plans to combine, in priority order
        project_root: Root of the Cargo project
        mode: APPLY mutates the tree, DRY_RUN only renders diffs
        config: Configuration used to re-derive the model after commit
        project: Model the plans were computed from (rebuilt when omitted)

    Raises:
        SecurityError, ConflictError: Nothing was applied
        ProjectLockedError: Another process holds the lock
        CommitIoError, CommitValidationError: Applied steps were rolled back
        RollbackFailure: Rollback failed; the journal location is attached
    """
    config = config or DEFAULT_CONFIG
    root = Path(project_root).resolve()
    result = RefactorResult(mode=mode)
    if not plans:
        return result

    with ProjectLock(root, shared=mode is Mode.DRY_RUN):
        if project is None:
            project = build_project(root, config)
        transaction, steps = prepare(plans, root, project)
        result.operations = [s.describe() for s in steps if not s.is_cargo]
        result.cargo_changes = [s.describe() for s in steps if s.is_cargo]
        result.resolved = list(transaction.resolves)

        if mode is Mode.DRY_RUN:
            result.diffs = render_diffs(steps, root)
            return result

        result.transaction_id = _commit(steps, root, project, config, transaction.description)
    logger.info(f"Applied {len(steps)} operations in transaction {result.transaction_id}")
    return result


def _commit(
    steps: List[Step], root: Path, before: Project, config: ModularityConfig, description: str
) -> str:
    journal = Journal.begin(root, description)
    log = transaction_logger(logger, journal.txn_id)
    with _deferred_sigint():
        current = None
        try:
            for current in steps:
                _apply_step(current, root, journal)
        except (OSError, ModsplitError) as e:
            failed = current.describe() if current is not None else "begin"
            log.error(f"Step '{failed}' failed: {e}; rolling back")
            _rollback(journal)
            raise CommitIoError(failed, str(e))

        issues = _new_issues(root, config, before)
        if issues:
            log.error(f"Re-derived model has {len(issues)} new issues; rolling back")
            _rollback(journal)
            raise CommitValidationError(issues)
        journal.commit()
    journal.discard()
    log.debug(f"Committed {len(steps)} steps")
    return journal.txn_id


def _apply_step(step: Step, root: Path, journal: Journal) -> None:
    """Journal, then perform, one step."""
    action = step.action
    if isinstance(action, CreateDirectory):
        journal.mkdir(action.path)
        os.mkdir(root / action.path)
    elif isinstance(action, CreateFile):
        journal.created(action.path)
        atomic_write_text(root / action.path, action.content)
    elif isinstance(action, ModifyFile):
        journal.snapshot(action.path)
        target = root / action.path
        atomic_write_text(target, apply_changes(read_text(target), action.changes))
    elif isinstance(action, MoveFile):
        journal.moved(action.source, action.destination)
        move_path(root / action.source, root / action.destination)
    elif isinstance(action, DeleteFile):
        journal.snapshot(action.path)
        remove_path(root / action.path)
    else:
        journal.snapshot(action.manifest)
        target = root / action.manifest
        atomic_write_text(target, apply_cargo_change(read_text(target), action))


def _rollback(journal: Journal) -> None:
    # RollbackFailure propagates and the journal stays for `modsplit recover`
    journal.rollback()
    journal.discard()


def _new_issues(root: Path, config: ModularityConfig, before: Project) -> List[str]:
    try:
        after = build_project(root, config)
    except ModsplitError as e:
        return [str(e)]
    known = set(before.issues)
    return [issue for issue in after.issues if issue not in known]


@contextmanager
def _deferred_sigint() -> Iterator[None]:
    """Hold back Ctrl-C until the block finishes, then re-raise it."""
    if threading.current_thread() is not threading.main_thread():
        yield
        return
    received: List[int] = []
    previous = signal.signal(signal.SIGINT, lambda signum, _frame: received.append(signum))
    try:
        yield
    finally:
        signal.signal(signal.SIGINT, previous)
    if received:
        raise KeyboardInterrupt
