"""Tests for rewriting references to moved items."""

import pytest

from modsplit.config import ModularityConfig
from modsplit.fixup import build_fixups
from modsplit.fixup.references import FixupContext, rewrite_text
from modsplit.model import build_project
from modsplit.refactor import ModifyFile, MovedItemTable, TextChange


def table(*entries):
    moved = MovedItemTable()
    for source, destination, reexported in entries:
        moved.add(source, destination, reexported)
    return moved


def context(pre, post=None, crates=("solo",), post_crates=None, moved=None):
    return FixupContext(
        pre_module=pre,
        post_module=post or pre,
        crate_names=frozenset(crates),
        post_crate_names=frozenset(post_crates or crates),
        table=moved or MovedItemTable(),
    )


UNEXPORTED = table(("solo::a::f", "solo::c::f", False))


class TestRewriteText:
    def test_use_and_qualified_paths(self):
        text = "use crate::a::f;\n\npub fn g() {\n    crate::a::f();\n}\n"
        changes = rewrite_text(text, context(("solo", "b"), moved=UNEXPORTED))
        assert changes == [
            TextChange(0, 1, ("use crate::c::f;",)),
            TextChange(3, 4, ("    crate::c::f();",)),
        ]

    def test_comments_and_literals_are_left_alone(self):
        text = 'pub fn g() {\n    // crate::a::f\n    let s = "crate::a::f";\n    crate::a::f();\n}\n'
        changes = rewrite_text(text, context(("solo", "b"), moved=UNEXPORTED))
        assert changes == [TextChange(3, 4, ("    crate::c::f();",))]

    def test_group_is_split_by_parent(self):
        text = "use crate::a::{f, h}; // both\n"
        changes = rewrite_text(text, context(("solo", "b"), moved=UNEXPORTED))
        assert changes == [TextChange(0, 1, ("use crate::c::f;", "use crate::a::h; // both"))]

    def test_reexported_move_needs_no_rewrite(self):
        moved = table(("solo::a::f", "solo::a::part2::f", True))
        text = "use crate::a::f;\n\npub fn g() {\n    crate::a::f();\n}\n"
        assert rewrite_text(text, context(("solo", "b"), moved=moved)) == []

    def test_file_moving_to_a_new_crate(self):
        moved = table(
            ("big::alpha", "big_alpha::alpha", True),
            ("big::beta", "big_beta::beta", True),
        )
        text = (
            "use crate::beta::b;\n"
            "use super::beta;\n"
            "use std::fmt;\n"
            "\n"
            "pub fn a() {\n"
            "    crate::beta::b();\n"
            "    self::helper();\n"
            "}\n"
            "\n"
            "fn helper() {}\n"
        )
        ctx = context(
            ("big", "alpha"),
            post=("big_alpha", "alpha"),
            crates=("big",),
            post_crates=("big", "big_alpha", "big_beta"),
            moved=moved,
        )
        assert rewrite_text(text, ctx) == [
            TextChange(0, 1, ("use big_beta::beta::b;",)),
            TextChange(1, 2, ("use big_beta::beta;",)),
            TextChange(5, 6, ("    big_beta::beta::b();",)),
        ]


class TestBuildFixups:
    @pytest.fixture
    def project(self, make_project, manifest):
        root = make_project(
            {
                "Cargo.toml": manifest("solo"),
                "src/lib.rs": "mod a;\nmod b;\n",
                "src/a.rs": "pub fn f() {}\n",
                "src/b.rs": "use crate::a::f;\n",
            }
        )
        return build_project(root, ModularityConfig(workers=2))

    def test_targets_post_move_paths(self, project):
        fixups = build_fixups(project, UNEXPORTED, [("src/b.rs", "src/inner/b.rs")])
        assert fixups == [ModifyFile("src/inner/b.rs", (TextChange(0, 1, ("use crate::c::f;",)),))]

    def test_nothing_moved(self, project):
        assert build_fixups(project, MovedItemTable(), []) == []
