"""Tests for moving items out of entry files."""

from dataclasses import replace

import pytest

from modsplit.exceptions import PlanningError
from modsplit.model import build_project
from modsplit.patterns import CleanEntryFilesPattern, PlanContext
from modsplit.patterns.clean_entry_files import assign_stems
from modsplit.refactor import CreateFile, ModifyFile, TextChange, apply_changes
from modsplit.rules import RuleKind, entry_file_offenders, evaluate

LIB = """
//! Demo crate.

mod util;

pub use util::helper;

/// Configuration.
#[derive(Debug)]
pub struct Config {
    name: String,
}

impl Config {
    fn label(&self) -> &str {
        &self.name
    }
}

pub fn run() {
    helper();
}
"""


def entry_plans(root, config):
    project = build_project(root, config)
    pattern = CleanEntryFilesPattern()
    return [
        pattern.plan(project, v, PlanContext(config=config))
        for v in evaluate(project, config)
        if v.kind is RuleKind.ITEM_IN_ENTRY_FILE
    ]


@pytest.fixture
def demo(make_project, manifest):
    return make_project(
        {
            "Cargo.toml": manifest("demo"),
            "src/lib.rs": LIB,
            "src/util.rs": "pub fn helper() {}\n",
        }
    )


class TestCleanEntryFiles:
    def test_struct_moves_with_its_impl(self, demo, make_config):
        config_plan, _ = entry_plans(demo, make_config())
        create, modify = config_plan.operations
        assert create == CreateFile(
            "src/config.rs",
            "use super::*;\n\n"
            "/// Configuration.\n"
            "#[derive(Debug)]\n"
            "pub struct Config {\n"
            "    pub(super) name: String,\n"
            "}\n\n"
            "impl Config {\n"
            "    pub(super) fn label(&self) -> &str {\n"
            "        &self.name\n"
            "    }\n"
            "}\n",
        )
        assert modify == ModifyFile(
            "src/lib.rs",
            (
                TextChange(6, 11, ("mod config;", "pub use config::Config;")),
                TextChange(12, 18, ()),
            ),
            ("src/config.rs",),
        )
        assert config_plan.moved_items.get("demo::Config").destination == "demo::config::Config"

    def test_function_gets_its_own_file(self, demo, make_config):
        _, run_plan = entry_plans(demo, make_config())
        create, modify = run_plan.operations
        assert create == CreateFile("src/run.rs", "use super::*;\n\npub fn run() {\n    helper();\n}\n")
        assert modify.changes == (TextChange(18, 21, ("mod run;", "pub use run::run;")),)

    def test_both_plans_leave_only_declarations(self, demo, make_config):
        plans = entry_plans(demo, make_config())
        text = (demo / "src/lib.rs").read_text()
        changes = [c for plan in plans for c in plan.operations[-1].changes]
        assert apply_changes(text, sorted(changes, key=lambda c: c.start)) == (
            "//! Demo crate.\n\nmod util;\n\npub use util::helper;\n\n"
            "mod config;\npub use config::Config;\n\nmod run;\npub use run::run;\n"
        )

    def test_appends_to_existing_child_module(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": manifest("demo"),
                "src/lib.rs": "mod helper;\n\npub fn helper() {}\n",
                "src/helper.rs": "pub fn other() {}\n",
            }
        )
        [plan] = entry_plans(root, make_config())
        append, modify = plan.operations
        assert append.path == "src/helper.rs"
        text = (root / "src/helper.rs").read_text()
        assert apply_changes(text, append.changes) == (
            "use super::*;\n\npub fn other() {}\n\npub fn helper() {}\n"
        )
        assert modify == ModifyFile(
            "src/lib.rs", (TextChange(2, 3, ("pub use helper::helper;",)),), ()
        )

    def test_trait_takes_impls_of_types_that_stay(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": manifest("demo"),
                "src/lib.rs": """
                    mod circle;

                    pub trait Shape {
                        fn area(&self) -> f64;
                    }

                    impl Shape for circle::Circle {
                        fn area(&self) -> f64 {
                            1.0
                        }
                    }
                """,
                "src/circle.rs": "pub struct Circle;\n",
            }
        )
        [plan] = entry_plans(root, make_config())
        create, modify = plan.operations
        assert create.path == "src/shape.rs"
        assert "impl Shape for circle::Circle {\n    fn area" in create.content
        assert [(c.start, c.end) for c in modify.changes] == [(2, 5), (6, 11)]

    def test_item_already_moved(self, demo, make_config):
        config = make_config()
        project = build_project(demo, config)
        violation = next(v for v in evaluate(project, config) if v.kind is RuleKind.ITEM_IN_ENTRY_FILE)
        gone = replace(violation, location=replace(violation.location, item="demo::Gone"))
        with pytest.raises(PlanningError):
            CleanEntryFilesPattern().plan(project, gone, PlanContext(config=config))


class TestAssignStems:
    def _stems(self, root, config):
        module = build_project(root, config).crates[0].root_module
        offenders = entry_file_offenders(module, config)
        return {item.name: stem for item, stem in zip(offenders, assign_stems(module, offenders, root).values())}

    def test_keywords_are_suffixed(self, make_project, manifest, make_config):
        root = make_project({"Cargo.toml": manifest("demo"), "src/lib.rs": "pub struct Type;\n"})
        assert self._stems(root, make_config()) == {"Type": ("type_2", False)}

    def test_inline_module_names_are_taken(self, make_project, manifest, make_config):
        root = make_project(
            {"Cargo.toml": manifest("demo"), "src/lib.rs": "mod config {}\n\npub struct Config;\n"}
        )
        assert self._stems(root, make_config()) == {"Config": ("config_2", False)}

    def test_camel_case_and_stray_files(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": manifest("demo"),
                "src/lib.rs": "pub struct HttpServer;\n",
                "src/http_server.rs": "// not declared\n",
            }
        )
        assert self._stems(root, make_config()) == {"HttpServer": ("http_server_2", False)}
