"""Process exit codes shared by the API and the CLI.

Exit Code Convention:
    0 - success, no violations
    1 - violations found (analyze/check) or a generic fatal error
    2 - refactor aborted before any mutation (conflict, unsafe path)
    3 - refactor rolled back after a failed commit
    4 - external analysis tool unavailable
    5 - rollback failed, manual restore required
"""

from enum import IntEnum


class ExitCode(IntEnum):
    """Structured exit codes for the command surface."""

    OK = 0
    VIOLATIONS = 1
    FAILURE = 1
    CONFLICT = 2
    ROLLED_BACK = 3
    TOOL_UNAVAILABLE = 4
    ROLLBACK_FAILED = 5
