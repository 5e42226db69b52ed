"""Protocol shared by refactor patterns."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Protocol

from ..config import DEFAULT_CONFIG, ModularityConfig
from ..model import Project
from ..refactor.models import RefactorPlan
from ..rules.models import Violation

if TYPE_CHECKING:
    from ..oracle import GroupingOracle


@dataclass(frozen=True)
class PlanContext:
    """Read-only inputs a planner may consult besides the model."""

    config: ModularityConfig = DEFAULT_CONFIG
    oracle: Optional["GroupingOracle"] = None


class Pattern(Protocol):
    """Patterns read the model (NEVER write) and return a plan.

    ``plan`` raises PlanningError when no valid transformation exists.
    """

    name: str
    description: str

    def matches(self, violation: Violation) -> bool: ...

    def plan(self, project: Project, violation: Violation, context: PlanContext) -> RefactorPlan: ...
