"""Tests for the exception hierarchy and its exit codes."""

from pathlib import Path

import pytest

from modsplit.exceptions import (
    CommitIoError,
    CommitValidationError,
    ConfigurationError,
    ConflictError,
    ExitCode,
    ExternalToolError,
    InvalidConfigError,
    ModsplitError,
    OracleError,
    ParsingError,
    PlanningError,
    ProjectLockedError,
    ProjectNotFoundError,
    RollbackFailure,
    SecurityError,
)


class TestExitCodes:
    @pytest.mark.parametrize(
        "error, code",
        [
            (ProjectNotFoundError(Path("/x"), "no Cargo.toml"), ExitCode.FAILURE),
            (ParsingError(Path("src/lib.rs"), "unbalanced braces", line=3), ExitCode.FAILURE),
            (InvalidConfigError("max_loc_per_file", 0, "must be a positive integer"), ExitCode.FAILURE),
            (PlanningError("split_module", "nothing to move"), ExitCode.FAILURE),
            (OracleError("timed out", attempts=4), ExitCode.FAILURE),
            (ConflictError("overlapping changes", ["src/lib.rs"]), ExitCode.CONFLICT),
            (SecurityError("Path escapes the project root", Path("../x")), ExitCode.CONFLICT),
            (ProjectLockedError(Path(".modsplit/lock")), ExitCode.CONFLICT),
            (CommitIoError("create src/a.rs", "disk full"), ExitCode.ROLLED_BACK),
            (CommitValidationError(["src/lib.rs: file not found for module 'x'"]), ExitCode.ROLLED_BACK),
            (ExternalToolError("cargo", "not installed"), ExitCode.TOOL_UNAVAILABLE),
            (RollbackFailure(Path(".modsplit/txn/1"), "permission denied"), ExitCode.ROLLBACK_FAILED),
        ],
    )
    def test_codes(self, error, code):
        assert isinstance(error, ModsplitError)
        assert error.exit_code == code

    def test_violations_and_failure_share_a_code(self):
        assert ExitCode.VIOLATIONS == ExitCode.FAILURE == 1
        assert ExitCode.OK == 0


class TestMessages:
    def test_details_are_rendered(self):
        error = ParsingError(Path("src/lib.rs"), "unbalanced braces", line=3)
        assert str(error) == "Failed to parse src/lib.rs (filepath=src/lib.rs, reason=unbalanced braces, line=3)"

    def test_conflict_message_is_fixed(self):
        error = ConflictError("two operations create the same file", ["src/a.rs"])
        assert error.message == "Refactor aborted: conflicting operations"
        assert error.details["paths"] == "src/a.rs"

    def test_commit_validation_lists_issues(self):
        error = CommitValidationError(["a", "b"])
        assert error.reason == "a; b"
        assert error.restored

    def test_security_error_is_a_configuration_error(self):
        assert isinstance(SecurityError("escape"), ConfigurationError)
