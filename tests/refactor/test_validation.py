"""Tests for merging plans and rejecting incompatible operations."""

import pytest

from modsplit.exceptions import ConflictError, SecurityError
from modsplit.refactor import (
    AddWorkspaceMember,
    CreateDirectory,
    CreateFile,
    DeleteFile,
    ModifyFile,
    MovedItemTable,
    MoveFile,
    RefactorPlan,
    TextChange,
    merge_plans,
    validate,
)


def plan(*operations, cargo=(), moved=None, description="plan"):
    return RefactorPlan(
        pattern="test",
        description=description,
        operations=tuple(operations),
        cargo_changes=tuple(cargo),
        moved_items=moved or MovedItemTable(),
    )


@pytest.fixture
def root(make_project):
    return make_project(
        {
            "Cargo.toml": '[workspace]\nmembers = ["crates/a"]\n',
            "src/lib.rs": "mod a;\nmod b;\n",
            "src/a.rs": "fn a() {}\n",
            "notes.txt": "notes\n",
        }
    )


def check(root, *plans):
    return validate(merge_plans(list(plans)), root)


class TestMergePlans:
    def test_cargo_changes_follow_file_operations(self):
        first = plan(CreateDirectory("x"), cargo=[AddWorkspaceMember("Cargo.toml", "x")], description="one")
        second = plan(CreateFile("y.rs", ""), description="two")
        transaction = merge_plans([first, second])
        assert [s.key for s in transaction.steps] == [(0, 0), (0, 1), (1, 0)]
        assert [s.is_cargo for s in transaction.steps] == [False, True, False]
        assert transaction.description == "one; two"

    def test_moved_item_tables_must_agree(self):
        left = MovedItemTable()
        left.add("c::a::f", "c::x::f")
        right = MovedItemTable()
        right.add("c::b::f", "c::x::f")
        with pytest.raises(ConflictError):
            merge_plans([plan(moved=left), plan(moved=right)])


class TestValidate:
    def test_duplicate_and_existing_directories_dropped(self, root):
        transaction = check(
            root,
            plan(CreateDirectory("src/new"), CreateDirectory("src")),
            plan(CreateDirectory("src/new")),
        )
        assert [s.action for s in transaction.steps] == [CreateDirectory("src/new")]

    def test_modifications_of_one_file_are_merged(self, root):
        transaction = check(
            root,
            plan(ModifyFile("src/lib.rs", (TextChange(0, 1, ("mod x;",)),), ("src/x.rs",))),
            plan(ModifyFile("src/lib.rs", (TextChange(2, 2, ("mod y;",)),), ("src/y.rs",))),
        )
        [step] = transaction.steps
        assert step.key == (0, 0)
        assert len(step.action.changes) == 2
        assert step.action.depends_on == ("src/x.rs", "src/y.rs")

    def test_overlap_across_plans(self, root):
        with pytest.raises(ConflictError):
            check(
                root,
                plan(ModifyFile("src/lib.rs", (TextChange(0, 2, ()),))),
                plan(ModifyFile("src/lib.rs", (TextChange(1, 2, ("x",)),))),
            )

    def test_line_counts_follow_created_content(self, root):
        create = CreateFile("src/new.rs", "a\nb\n")
        check(root, plan(create, ModifyFile("src/new.rs", (TextChange(1, 2, ("B",)),))))
        with pytest.raises(ConflictError):
            check(root, plan(create, ModifyFile("src/new.rs", (TextChange(2, 3, ("C",)),))))

    def test_move_destination_can_be_modified(self, root):
        check(
            root,
            plan(MoveFile("src/a.rs", "src/c.rs"), ModifyFile("src/c.rs", (TextChange(0, 1, ()),))),
        )

    @pytest.mark.parametrize(
        "operations, reason",
        [
            ((CreateFile("src/a.rs", ""),), "already exists"),
            ((CreateFile("src/n.rs", ""), CreateFile("src/n.rs", "x")), "same file"),
            ((MoveFile("src/missing.rs", "src/m.rs"),), "does not exist"),
            ((MoveFile("notes.txt", "src/a.rs"),), "already exists"),
            ((MoveFile("src/a.rs", "src/x.rs"), MoveFile("src/a.rs", "src/y.rs")), "moved twice"),
            ((MoveFile("src/a.rs", "src/x.rs"), CreateFile("src/x.rs", "")), "move destination"),
            ((DeleteFile("src/missing.rs"),), "does not exist"),
            ((DeleteFile("src/a.rs"), ModifyFile("src/a.rs", ())), "deleted and modified"),
            ((MoveFile("src", "lib"), ModifyFile("src/lib.rs", ())), "moved-away"),
            ((CreateFile("src/deep/x.rs", ""),), "parent directory"),
            ((CreateDirectory("notes.txt"),), "over file"),
            ((ModifyFile("src/ghost.rs", ()),), "does not exist"),
        ],
    )
    def test_conflicts(self, root, operations, reason):
        with pytest.raises(ConflictError) as exc_info:
            check(root, plan(*operations))
        assert reason in exc_info.value.reason

    def test_parent_created_in_same_transaction(self, root):
        check(root, plan(CreateFile("src/deep/x.rs", ""), CreateDirectory("src/deep")))

    @pytest.mark.parametrize("path", ["../outside.rs", "/etc/passwd", ".modsplit/lock", "src/../../x"])
    def test_paths_must_stay_inside_root(self, root, path):
        with pytest.raises(SecurityError):
            check(root, plan(CreateFile(path, "")))

    def test_nothing_touches_disk(self, root, snapshot):
        before = snapshot(root)
        check(root, plan(CreateDirectory("src/new"), CreateFile("src/new/x.rs", "x\n")))
        assert snapshot(root) == before
