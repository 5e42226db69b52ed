"""Analysis-related exceptions: project discovery, parsing, collaborators."""

from pathlib import Path
from typing import Optional

from .base import ModsplitError
from .taxonomy import ExitCode


class AnalysisError(ModsplitError):
    """Base class for analysis-related errors."""
    pass


class ProjectNotFoundError(AnalysisError):
    """Raised when the project root or its Cargo manifest is missing."""

    def __init__(self, path: Path, reason: str):
        super().__init__(
            f"Project not found: {path}",
            details={"path": str(path), "reason": reason},
        )
        self.path = path
        self.reason = reason


class FileAccessError(AnalysisError):
    """Raised when a file cannot be accessed or read."""

    def __init__(self, filepath: Path, reason: str):
        super().__init__(
            f"Cannot access file: {filepath}",
            details={"filepath": str(filepath), "reason": reason},
        )
        self.filepath = filepath
        self.reason = reason


class ParsingError(AnalysisError):
    """Raised when file content cannot be parsed."""

    def __init__(self, filepath: Path, reason: str, line: Optional[int] = None):
        details = {"filepath": str(filepath), "reason": reason}
        if line is not None:
            details["line"] = str(line)
        super().__init__(f"Failed to parse {filepath}", details=details)
        self.filepath = filepath
        self.reason = reason
        self.line = line


class ExternalToolError(AnalysisError):
    """Raised when the external analysis tool cannot run or its output is unusable."""

    exit_code = ExitCode.TOOL_UNAVAILABLE

    def __init__(self, tool: str, reason: str):
        super().__init__(
            f"External tool unavailable: {tool}",
            details={"tool": tool, "reason": reason},
        )
        self.tool = tool
        self.reason = reason


class OracleError(AnalysisError):
    """Raised when the grouping oracle fails, times out or answers nonsense."""

    def __init__(self, reason: str, attempts: int = 0):
        super().__init__(
            "Grouping oracle unavailable",
            details={"reason": reason, "attempts": str(attempts)},
        )
        self.reason = reason
        self.attempts = attempts
