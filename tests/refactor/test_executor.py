"""Tests for transactional execution: dry runs, commit and rollback."""

import pytest

from modsplit.exceptions import (
    CommitIoError,
    CommitValidationError,
    ConflictError,
    ExitCode,
    RollbackFailure,
    SecurityError,
)
from modsplit.refactor import (
    CreateDirectory,
    CreateFile,
    DeleteFile,
    Mode,
    ModifyFile,
    MovedItemTable,
    MoveFile,
    RefactorPlan,
    TextChange,
    execute,
    pending_journals,
)
from modsplit.refactor import executor as executor_module
from modsplit.refactor import journal as journal_module
from modsplit.refactor import recover


@pytest.fixture
def root(make_project, manifest):
    return make_project(
        {
            "Cargo.toml": manifest("solo"),
            "src/lib.rs": "//! Lib.\n",
            "src/notes.txt": "notes\n",
            "src/obsolete.txt": "old\n",
        }
    )


def five_operations():
    return RefactorPlan(
        pattern="test",
        description="five operations",
        operations=(
            CreateDirectory("src/extra"),
            CreateFile("src/extra/gen.rs", "pub fn g() {}\n"),
            ModifyFile("src/lib.rs", (TextChange(1, 1, ("// edited",)),)),
            MoveFile("src/notes.txt", "src/notes.md"),
            DeleteFile("src/obsolete.txt"),
        ),
    )


def fail_on_call(monkeypatch, number):
    """Make the ``number``-th applied step raise before it touches the disk."""
    original = executor_module._apply_step
    calls = {"n": 0}

    def apply(step, root, journal):
        calls["n"] += 1
        if calls["n"] == number:
            raise OSError("disk full")
        original(step, root, journal)

    monkeypatch.setattr(executor_module, "_apply_step", apply)


class TestDryRun:
    def test_renders_one_diff_per_step(self, root, snapshot):
        before = snapshot(root)
        result = execute([five_operations()], root, Mode.DRY_RUN)
        assert snapshot(root) == before
        assert not result.applied
        assert result.operations == [
            "mkdir src/extra",
            "create src/extra/gen.rs",
            "modify src/lib.rs (1 changes)",
            "move src/notes.txt -> src/notes.md",
            "delete src/obsolete.txt",
        ]
        mkdir, create, modify, move, delete = result.diffs
        assert mkdir == "new directory src/extra/\n"
        assert create.startswith("--- /dev/null\n+++ b/src/extra/gen.rs\n")
        assert "+pub fn g() {}\n" in create
        assert modify.startswith("--- a/src/lib.rs\n+++ b/src/lib.rs\n")
        assert "+// edited\n" in modify
        assert move == "rename from src/notes.txt\nrename to src/notes.md\n"
        assert delete.startswith("--- a/src/obsolete.txt\n+++ /dev/null\n")

    def test_diffs_are_deterministic(self, root):
        first = execute([five_operations()], root, Mode.DRY_RUN)
        second = execute([five_operations()], root, Mode.DRY_RUN)
        assert first.diffs == second.diffs

    def test_no_plans(self, root):
        result = execute([], root, Mode.DRY_RUN)
        assert result.operations == []
        assert result.diffs == []


class TestCommit:
    def test_applies_every_step(self, root):
        result = execute([five_operations()], root)
        assert result.applied
        assert result.transaction_id
        assert (root / "src/extra/gen.rs").read_text() == "pub fn g() {}\n"
        assert (root / "src/lib.rs").read_text() == "//! Lib.\n// edited\n"
        assert (root / "src/notes.md").read_text() == "notes\n"
        assert not (root / "src/notes.txt").exists()
        assert not (root / "src/obsolete.txt").exists()
        assert pending_journals(root) == []

    def test_failed_step_rolls_back(self, root, snapshot, monkeypatch):
        before = snapshot(root)
        fail_on_call(monkeypatch, 4)
        with pytest.raises(CommitIoError) as exc_info:
            execute([five_operations()], root)
        assert exc_info.value.step == "move src/notes.txt -> src/notes.md"
        assert exc_info.value.exit_code == ExitCode.ROLLED_BACK
        assert snapshot(root) == before
        assert pending_journals(root) == []

    def test_new_model_issues_roll_back(self, root, snapshot):
        before = snapshot(root)
        plan = RefactorPlan(
            pattern="test",
            description="declare a missing module",
            operations=(ModifyFile("src/lib.rs", (TextChange(1, 1, ("mod ghost;",)),)),),
        )
        with pytest.raises(CommitValidationError) as exc_info:
            execute([plan], root)
        assert any("ghost" in issue for issue in exc_info.value.issues)
        assert snapshot(root) == before

    def test_rollback_failure_leaves_journal_for_recovery(self, root, snapshot, monkeypatch):
        before = snapshot(root)
        with monkeypatch.context() as m:
            fail_on_call(m, 4)
            m.setattr(journal_module, "remove_path", _refuse)
            with pytest.raises(RollbackFailure) as exc_info:
                execute([five_operations()], root)
        assert exc_info.value.exit_code == ExitCode.ROLLBACK_FAILED
        assert len(pending_journals(root)) == 1

        assert len(recover(root)) == 1
        assert snapshot(root) == before

    def test_conflicts_are_reported_before_any_write(self, root, snapshot):
        before = snapshot(root)
        plan = RefactorPlan(
            pattern="test",
            description="clash",
            operations=(CreateFile("src/lib.rs", ""),),
        )
        with pytest.raises(ConflictError):
            execute([plan], root)
        assert snapshot(root) == before

    def test_paths_outside_the_root_are_refused(self, root, snapshot):
        before = snapshot(root)
        plan = RefactorPlan(pattern="test", description="escape", operations=(CreateFile("../evil.rs", ""),))
        with pytest.raises(SecurityError):
            execute([plan], root)
        assert snapshot(root) == before


class TestReferenceFixup:
    def test_unexported_moves_are_rewritten(self, make_project, manifest):
        root = make_project(
            {
                "Cargo.toml": manifest("solo"),
                "src/lib.rs": "mod a;\nmod b;\n",
                "src/a.rs": "pub fn f() {}\n",
                "src/b.rs": "use crate::a::f;\n\npub fn g() {\n    crate::a::f();\n}\n",
            }
        )
        moved = MovedItemTable()
        moved.add("solo::a::f", "solo::c::f", reexported=False)
        plan = RefactorPlan(
            pattern="test",
            description="move f",
            operations=(
                CreateFile("src/c.rs", "pub fn f() {}\n"),
                ModifyFile("src/lib.rs", (TextChange(2, 2, ("mod c;",)),), ("src/c.rs",)),
                ModifyFile("src/a.rs", (TextChange(0, 1, ()),)),
            ),
            moved_items=moved,
        )
        execute([plan], root)
        assert (root / "src/b.rs").read_text() == (
            "use crate::c::f;\n\npub fn g() {\n    crate::c::f();\n}\n"
        )


def _refuse(path):
    raise OSError(f"cannot remove {path}")
