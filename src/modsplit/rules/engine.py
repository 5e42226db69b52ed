"""Rule evaluation over an immutable project model."""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from typing import Iterable, List, Optional

from ..config import DEFAULT_CONFIG, ModularityConfig
from ..logging_config import get_logger
from ..model import Crate, Project
from .models import Violation
from .rules import CRATE_RULES, PROJECT_RULES

logger = get_logger(__name__)


def evaluate(
    project: Project,
    config: Optional[ModularityConfig] = None,
    external: Iterable[Violation] = (),
) -> List[Violation]:
    """Evaluate every rule and return violations in a stable order.

    Sorted by severity (most severe first), file, line, rule kind and
    finally message, so identical inputs always give identical output.
    ``external`` diagnostics are passed through unchanged.
    """
    config = config or DEFAULT_CONFIG
    violations: List[Violation] = []
    for rule in PROJECT_RULES:
        violations.extend(rule.check(project, config))

    with ThreadPoolExecutor(max_workers=config.max_workers) as executor:
        for crate_violations in executor.map(lambda c: _evaluate_crate(c, config), project.crates):
            violations.extend(crate_violations)

    violations.extend(external)
    violations.sort(key=lambda v: v.sort_key())
    logger.debug(f"Evaluated {len(project.crates)} crates: {len(violations)} violations")
    return violations


def _evaluate_crate(crate: Crate, config: ModularityConfig) -> List[Violation]:
    found: List[Violation] = []
    for rule in CRATE_RULES:
        found.extend(rule.check(crate, config))
    return found
