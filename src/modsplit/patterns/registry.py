"""Pattern registry.

Patterns are tried in the configured order; the first one whose
``matches`` accepts a violation plans it.
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence

from ..config import DEFAULT_PATTERN_ORDER
from ..exceptions import ConfigurationError
from ..rules.models import Violation
from .base import Pattern
from .clean_entry_files import CleanEntryFilesPattern
from .distribute_loc import DistributeLocPattern
from .split_crate import SplitCratePattern
from .split_module import SplitModulePattern

PATTERNS: Dict[str, Pattern] = {
    p.name: p
    for p in (
        SplitCratePattern(),
        SplitModulePattern(),
        CleanEntryFilesPattern(),
        DistributeLocPattern(),
    )
}


def get_patterns(order: Sequence[str] = DEFAULT_PATTERN_ORDER) -> List[Pattern]:
    """Patterns in ``order``.

    Raises:
        ConfigurationError: If ``order`` names an unknown pattern
    """
    patterns = []
    for name in order:
        if name not in PATTERNS:
            raise ConfigurationError(
                f"Unknown pattern '{name}' in pattern_order",
                details={"known": ", ".join(sorted(PATTERNS))},
            )
        patterns.append(PATTERNS[name])
    return patterns


def select(violation: Violation, patterns: Sequence[Pattern]) -> Optional[Pattern]:
    for pattern in patterns:
        if pattern.matches(violation):
            return pattern
    return None
