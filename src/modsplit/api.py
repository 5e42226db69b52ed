"""Public API for modsplit.

Example:
    >>> from modsplit import analyze, refactor
    >>>
    >>> violations = analyze("/path/to/workspace")
    >>> preview = refactor("/path/to/workspace", dry_run=True)
    >>> print("\\n".join(preview.diffs))
    >>> result = refactor("/path/to/workspace", max_loc_per_file=300)
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import List, Optional, Sequence, Tuple

from .config import ModularityConfig, load_config
from .exceptions import (
    ConflictError,
    FileAccessError,
    OracleError,
    ParsingError,
    PlanningError,
    ProjectNotFoundError,
)
from .logging_config import get_logger
from .model import Project, build_project
from .oracle import GroupingOracle
from .patterns import Pattern, PlanContext, get_patterns, select
from .refactor import (
    Mode,
    ProjectLock,
    RefactorPlan,
    RefactorResult,
    execute,
    pending_journals,
    prepare,
)
from .refactor import recover as recover_journals
from .rules import Violation, evaluate, run_external_tool

logger = get_logger(__name__)


def _project_root(path: str) -> Path:
    root = Path(path).resolve()
    if not root.is_dir():
        raise ProjectNotFoundError(root, "not a directory")
    if not (root / "Cargo.toml").is_file():
        raise ProjectNotFoundError(root, "no Cargo.toml at the project root")
    return root


def _config(
    root: Path, config: Optional[ModularityConfig], config_file: Optional[Path], overrides
) -> ModularityConfig:
    if config is not None:
        return config
    return load_config(root, Path(config_file) if config_file else None, **overrides)


def _recover_pending(root: Path) -> None:
    """Roll back interrupted transactions before reading the tree."""
    if not pending_journals(root):
        return
    with ProjectLock(root):
        recover_journals(root)


def _violations(project: Project, root: Path, config: ModularityConfig) -> List[Violation]:
    return evaluate(project, config, run_external_tool(root, config))


def analyze(
    path: str = ".",
    config: Optional[ModularityConfig] = None,
    config_file: Optional[Path] = None,
    **overrides,
) -> List[Violation]:
    """Derive the project model and return every violation, most severe first.

    Args:
        path: Root of the Cargo project
        config: Ready configuration (skips file and environment discovery)
        config_file: Optional explicit config file path
        **overrides: Configuration overrides (e.g. ``max_loc_per_file=300``)

    Raises:
        ProjectNotFoundError: If ``path`` is not a Cargo project
        ConfigurationError: If configuration is invalid
        ExternalToolError: If a required external tool is unavailable
        ProjectLockedError: If a refactor is running
    """
    root = _project_root(path)
    config = _config(root, config, config_file, overrides)
    _recover_pending(root)
    with ProjectLock(root, shared=True):
        project = build_project(root, config)
        for issue in project.issues:
            logger.warning(f"Model issue: {issue}")
        return _violations(project, root, config)


def _make_oracle(config: ModularityConfig) -> Optional[GroupingOracle]:
    if not config.oracle.enabled:
        return None
    try:
        return GroupingOracle(config.oracle)
    except OracleError as e:
        logger.warning(f"Grouping oracle disabled: {e}")
        return None


def plan_violations(
    project: Project,
    violations: Sequence[Violation],
    patterns: Sequence[Pattern],
    context: PlanContext,
    workers: Optional[int] = None,
) -> Tuple[List[RefactorPlan], List[Tuple[Violation, str]]]:
    """Plan every violation in parallel; results keep violation order.

    Returns:
        (plans, unresolved violations with the reason)
    """

    def plan_one(violation: Violation):
        pattern = select(violation, patterns)
        if pattern is None:
            return None, "no pattern handles this violation"
        try:
            return pattern.plan(project, violation, context), None
        except PlanningError as e:
            logger.info(f"{violation.kind.value}: {e}")
            return None, e.reason
        except (ParsingError, FileAccessError) as e:
            logger.warning(f"{violation.kind.value}: {e}")
            return None, f"cannot read {e.filepath}: {e.reason}"

    plans: List[RefactorPlan] = []
    unresolved: List[Tuple[Violation, str]] = []
    with ThreadPoolExecutor(max_workers=workers) as executor:
        for violation, (plan, reason) in zip(violations, executor.map(plan_one, violations)):
            if plan is None:
                unresolved.append((violation, reason))
            else:
                plans.append(plan)
    return plans, unresolved


def select_compatible(
    plans: Sequence[RefactorPlan], root: Path, project: Project
) -> Tuple[List[RefactorPlan], List[Tuple[Violation, str]]]:
    """Keep plans in order while they (and their reference fixups) stay compatible.

    A plan that conflicts with the ones already kept is deferred to the
    next run.
    """
    kept: List[RefactorPlan] = []
    deferred: List[Tuple[Violation, str]] = []
    for plan in plans:
        try:
            prepare(kept + [plan], root, project)
        except ConflictError as e:
            logger.info(f"Deferring {plan.pattern} plan: {e.reason}")
            deferred.extend((v, f"deferred: {e.reason}") for v in plan.resolves)
            continue
        kept.append(plan)
    return kept, deferred


def refactor(
    path: str = ".",
    dry_run: bool = False,
    config: Optional[ModularityConfig] = None,
    config_file: Optional[Path] = None,
    **overrides,
) -> RefactorResult:
    """Plan fixes for every violation and apply them as one transaction.

    With ``dry_run`` nothing is written; the result carries unified diffs.

    Raises:
        ProjectNotFoundError, ConfigurationError: Nothing was read or written
        SecurityError: A plan left the project root; nothing was applied
        ProjectLockedError: Another process holds the project lock
        CommitIoError, CommitValidationError: The transaction was rolled back
        RollbackFailure: Rollback failed; run ``modsplit recover``
    """
    root = _project_root(path)
    config = _config(root, config, config_file, overrides)
    patterns = get_patterns(config.pattern_order)
    mode = Mode.DRY_RUN if dry_run else Mode.APPLY

    if dry_run:
        _recover_pending(root)
    with ProjectLock(root, shared=dry_run):
        if not dry_run:
            recover_journals(root)
        project = build_project(root, config)
        violations = _violations(project, root, config)
        context = PlanContext(config=config, oracle=_make_oracle(config))
        plans, unresolved = plan_violations(
            project, violations, patterns, context, config.max_workers
        )
        plans, deferred = select_compatible(plans, root, project)

        result = execute(plans, root, mode, config, project)
        result.unresolved = unresolved + deferred
        if result.applied:
            result.remaining = _violations(build_project(root, config), root, config)
        else:
            resolved = {v.key for v in result.resolved}
            result.remaining = [v for v in violations if v.key not in resolved]
    logger.info(
        f"{len(result.resolved)} violations resolved, {len(result.unresolved)} unresolved, "
        f"{len(result.remaining)} remaining"
    )
    return result


def check(
    path: str = ".",
    config: Optional[ModularityConfig] = None,
    config_file: Optional[Path] = None,
    **overrides,
) -> int:
    """0 when the project has no violations, 1 otherwise."""
    return 1 if analyze(path, config, config_file, **overrides) else 0


def recover(path: str = ".") -> List[str]:
    """Roll back interrupted transactions; returns their IDs.

    Raises:
        ProjectLockedError: If another process holds the lock
        RollbackFailure: If a transaction cannot be undone
    """
    root = _project_root(path)
    with ProjectLock(root):
        return recover_journals(root)
