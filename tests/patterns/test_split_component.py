"""Tests for regrouping the crates of a crowded directory."""

import pytest

from modsplit.config import ModularityConfig, ThresholdConfig
from modsplit.exceptions import PlanningError
from modsplit.model import build_project
from modsplit.patterns import PlanContext, SplitCratePattern
from modsplit.refactor import (
    AddWorkspaceMember,
    CreateDirectory,
    MoveFile,
    RemoveWorkspaceMember,
    UpdateDependencyPath,
)
from modsplit.rules import RuleKind, evaluate


def plan_for(root, config):
    project = build_project(root, config)
    [violation] = [v for v in evaluate(project, config) if v.kind is RuleKind.TOO_MANY_CRATES]
    return SplitCratePattern().plan(project, violation, PlanContext(config=config))


@pytest.fixture
def make_component(make_project, manifest):
    def make(members):
        files = {"Cargo.toml": "[workspace]\nmembers = [%s]\n" % ", ".join(f'"{m}"' for m in members)}
        files["crates/a/Cargo.toml"] = manifest("a")
        files["crates/b/Cargo.toml"] = manifest("b", {"a": "../a"})
        files["crates/c/Cargo.toml"] = manifest("c", {"a": "../a"})
        for name in ("a", "b", "c"):
            files[f"crates/{name}/src/lib.rs"] = "//! doc\n"
        return make_project(files)

    return make


class TestComponentSplit:
    def test_dependents_follow_their_dependency(self, make_component, make_config):
        root = make_component(["crates/a", "crates/b", "crates/c"])
        plan = plan_for(root, make_config(max_crates_per_component=2))
        assert plan.operations == (
            CreateDirectory("crates/crates_a"),
            MoveFile("crates/a", "crates/crates_a/a"),
            MoveFile("crates/b", "crates/crates_a/b"),
            CreateDirectory("crates/crates_c"),
            MoveFile("crates/c", "crates/crates_c/c"),
        )
        assert plan.cargo_changes == (
            RemoveWorkspaceMember("Cargo.toml", "crates/a"),
            RemoveWorkspaceMember("Cargo.toml", "crates/b"),
            RemoveWorkspaceMember("Cargo.toml", "crates/c"),
            AddWorkspaceMember("Cargo.toml", "crates/crates_a/a"),
            AddWorkspaceMember("Cargo.toml", "crates/crates_a/b"),
            AddWorkspaceMember("Cargo.toml", "crates/crates_c/c"),
            UpdateDependencyPath("crates/crates_c/c/Cargo.toml", "a", "../../crates_a/a"),
        )

    def test_glob_member_replaced_when_all_matches_move(self, make_component, make_config):
        plan = plan_for(make_component(["crates/*"]), make_config(max_crates_per_component=2))
        members = [c for c in plan.cargo_changes if not isinstance(c, UpdateDependencyPath)]
        assert members[0] == RemoveWorkspaceMember("Cargo.toml", "crates/*")
        assert len(members) == 4

    def test_configured_component_is_left_alone(self, make_component):
        config = ModularityConfig(
            thresholds=ThresholdConfig(max_crates_per_component=2),
            components={"crates": ("a", "b", "c")},
            workers=2,
        )
        with pytest.raises(PlanningError) as exc_info:
            plan_for(make_component(["crates/*"]), config)
        assert "configured" in exc_info.value.reason
