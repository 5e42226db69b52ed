"""Tests for deriving the project model from disk."""

import pytest

from modsplit.exceptions import ProjectNotFoundError
from modsplit.model import CrateKind, ModuleKind, build_project


@pytest.fixture
def workspace(make_project, manifest):
    return make_project(
        {
            "Cargo.toml": '[workspace]\nmembers = ["crates/*"]\n',
            "crates/core/Cargo.toml": manifest("core-lib"),
            "crates/core/src/lib.rs": "pub mod net;\nmod util;\n",
            "crates/core/src/net.rs": """
                pub mod tcp;

                use self::tcp::Stream;

                pub fn connect() -> Stream {
                    Stream::new()
                }
            """,
            "crates/core/src/net/tcp.rs": """
                pub struct Stream;

                impl Stream {
                    pub fn new() -> Self {
                        Stream
                    }
                }
            """,
            "crates/core/src/util/mod.rs": "pub fn helper() {}\n",
            "crates/app/Cargo.toml": manifest("app", {"core-lib": "../core"}),
            "crates/app/src/main.rs": """
                use core_lib::net;

                fn main() {
                    net::connect();
                }
            """,
        }
    )


class TestWorkspaceDiscovery:
    """Members are expanded from globs in sorted order."""

    def test_crates_and_kinds(self, workspace, make_config):
        project = build_project(workspace, make_config())
        assert [c.name for c in project.crates] == ["app", "core-lib"]
        assert project.has_workspace
        assert project.members == ("crates/app", "crates/core")
        app, core = project.crates
        assert app.kind is CrateKind.BINARY
        assert core.kind is CrateKind.LIBRARY
        assert core.lib_name == "core_lib"
        assert core.root == "crates/core"
        assert core.manifest == "crates/core/Cargo.toml"

    def test_module_tree(self, workspace, make_config):
        core = build_project(workspace, make_config()).crate("core-lib")
        assert core.metrics.module_count == 3
        assert [m.path for m in core.modules] == [
            "core_lib",
            "core_lib::net",
            "core_lib::net::tcp",
            "core_lib::util",
        ]
        util = core.root_module.child("util")
        assert util.kind is ModuleKind.ENTRY
        assert util.file == "crates/core/src/util/mod.rs"
        net = core.root_module.child("net")
        assert net.kind is ModuleKind.FILE
        assert net.child_dir == "crates/core/src/net"

    def test_item_ids(self, workspace, make_config):
        items = build_project(workspace, make_config()).items()
        assert "core_lib::net::connect" in items
        assert "core_lib::net::tcp::Stream" in items
        assert "core_lib::net::tcp::impl@3" in items
        assert items["core_lib::net::tcp::impl@3"].self_type == "Stream"

    def test_dependency_dirs(self, workspace, make_config):
        app = build_project(workspace, make_config()).crate("app")
        assert app.dependency_dirs() == {"core-lib": "crates/core"}


class TestReferences:
    def test_reference_through_self_import(self, workspace, make_config):
        items = build_project(workspace, make_config()).items()
        assert items["core_lib::net::connect"].references == {"core_lib::net::tcp::Stream"}

    def test_reference_across_crates(self, workspace, make_config):
        items = build_project(workspace, make_config()).items()
        assert items["app::main"].references == {"core_lib::net::connect"}

    def test_glob_import_and_local_items(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": manifest("solo"),
                "src/lib.rs": """
                    mod util;
                    use crate::util::*;

                    pub fn run() {
                        helper();
                        local();
                    }

                    fn local() {}
                """,
                "src/util.rs": "pub fn helper() {}\n",
            }
        )
        items = build_project(root, make_config()).items()
        assert items["solo::run"].references == {"solo::util::helper", "solo::local"}


class TestModelIssues:
    """Per-file problems are recorded and the file is left out."""

    def test_single_package_root(self, make_project, manifest, make_config):
        root = make_project({"Cargo.toml": manifest("solo"), "src/main.rs": "fn main() {}\n"})
        project = build_project(root, make_config())
        assert project.crates[0].root == ""
        assert not project.has_workspace
        assert project.issues == ()

    def test_missing_module_file(self, make_project, manifest, make_config):
        root = make_project({"Cargo.toml": manifest("solo"), "src/lib.rs": "mod ghost;\n"})
        project = build_project(root, make_config())
        assert project.issues == ("src/lib.rs: file not found for module 'ghost'",)

    def test_unparseable_module_is_skipped(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": manifest("solo"),
                "src/lib.rs": "mod broken;\n",
                "src/broken.rs": "fn f() {\n",
            }
        )
        project = build_project(root, make_config())
        assert project.crates[0].metrics.module_count == 0
        assert any(issue.startswith("src/broken.rs:") for issue in project.issues)

    def test_undecodable_module_is_skipped(self, make_project, manifest, make_config):
        root = make_project({"Cargo.toml": manifest("solo"), "src/lib.rs": "mod latin;\n"})
        (root / "src/latin.rs").write_bytes(b"// caf\xe9\npub fn f() {}\n")
        project = build_project(root, make_config())
        assert project.crates[0].metrics.module_count == 0
        assert project.issues == ("src/latin.rs: not valid utf-8 at byte 6",)

    def test_path_attribute(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": manifest("solo"),
                "src/lib.rs": '#[path = "impls/other.rs"]\nmod renamed;\n',
                "src/impls/other.rs": "pub fn f() {}\n",
            }
        )
        module = build_project(root, make_config()).module_by_path("solo::renamed")
        assert module.file == "src/impls/other.rs"

    def test_duplicate_crate_names(self, make_project, manifest, make_config):
        root = make_project(
            {
                "Cargo.toml": '[workspace]\nmembers = ["a", "b"]\n',
                "a/Cargo.toml": manifest("dup"),
                "a/src/lib.rs": "",
                "b/Cargo.toml": manifest("dup"),
                "b/src/lib.rs": "",
            }
        )
        project = build_project(root, make_config())
        assert [c.root for c in project.crates] == ["a"]
        assert any("duplicate crate name" in issue for issue in project.issues)

    def test_member_without_manifest(self, make_project, make_config):
        root = make_project({"Cargo.toml": '[workspace]\nmembers = ["missing"]\n'})
        project = build_project(root, make_config())
        assert project.crates == ()
        assert project.issues[0].startswith("missing:")

    def test_not_a_project(self, tmp_path, make_config):
        with pytest.raises(ProjectNotFoundError):
            build_project(tmp_path, make_config())
