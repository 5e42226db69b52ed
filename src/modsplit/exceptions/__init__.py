"""Exception hierarchy for modsplit."""

from .analysis import (
    AnalysisError,
    ExternalToolError,
    FileAccessError,
    OracleError,
    ParsingError,
    ProjectNotFoundError,
)
from .base import ModsplitError
from .config import ConfigurationError, InvalidConfigError, SecurityError
from .refactor import (
    CommitIoError,
    CommitValidationError,
    ConflictError,
    PlanningError,
    ProjectLockedError,
    RefactorError,
    RollbackFailure,
)
from .taxonomy import ExitCode

__all__ = [
    "ExitCode",
    "ModsplitError",
    "AnalysisError",
    "ProjectNotFoundError",
    "FileAccessError",
    "ParsingError",
    "ExternalToolError",
    "OracleError",
    "ConfigurationError",
    "InvalidConfigError",
    "SecurityError",
    "RefactorError",
    "PlanningError",
    "ConflictError",
    "ProjectLockedError",
    "CommitIoError",
    "CommitValidationError",
    "RollbackFailure",
]
