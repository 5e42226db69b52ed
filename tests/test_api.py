"""End-to-end tests of analyze / refactor / check / recover."""

import fcntl

import pytest

import modsplit
from modsplit.exceptions import CommitIoError, ProjectLockedError, ProjectNotFoundError
from modsplit.refactor import Journal
from modsplit.refactor import executor as executor_module
from modsplit.rules import RuleKind
from modsplit.scanning import count_lines


def functions(count, lines_each=1):
    blocks = []
    for n in range(1, count + 1):
        if lines_each == 1:
            blocks.append(f"pub fn f{n:02d}() {{}}\n")
        else:
            body = "".join(f"    let _v{i} = {i};\n" for i in range(lines_each - 2))
            blocks.append(f"pub fn f{n:02d}() {{\n{body}}}\n")
    return "\n".join(blocks)


DEMO_LIB = """
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


@pytest.fixture
def engine(make_project, manifest):
    return make_project(
        {"Cargo.toml": manifest("solo"), "src/lib.rs": "mod engine;\n", "src/engine.rs": functions(25)}
    )


@pytest.fixture
def demo(make_project, manifest):
    return make_project(
        {"Cargo.toml": manifest("demo"), "src/lib.rs": DEMO_LIB, "src/util.rs": "pub fn helper() {}\n"}
    )


class TestScenarios:
    def test_module_with_too_many_functions(self, engine):
        [violation] = modsplit.analyze(str(engine))
        assert violation.kind is RuleKind.TOO_MANY_FUNCTIONS
        assert violation.count == 25

        result = modsplit.refactor(str(engine))
        assert result.applied
        assert [v.kind for v in result.resolved] == [RuleKind.TOO_MANY_FUNCTIONS]
        assert result.remaining == []
        part1 = (engine / "src/engine/part1.rs").read_text()
        part2 = (engine / "src/engine/part2.rs").read_text()
        assert (part1.count("pub fn "), part2.count("pub fn ")) == (13, 12)
        original = (engine / "src/engine.rs").read_text()
        assert "pub fn" not in original
        assert "mod part1;\nmod part2;\n" in original
        assert "pub use part1::{f01, f03," in original

    def test_items_leave_the_entry_file(self, demo):
        assert len(modsplit.analyze(str(demo))) == 2
        result = modsplit.refactor(str(demo))
        assert result.remaining == []
        assert (demo / "src/lib.rs").read_text() == (
            "//! Demo crate.\n\nmod util;\n\npub use util::helper;\n\n"
            "mod config;\npub use config::Config;\n\nmod run;\npub use run::run;\n"
        )
        assert (demo / "src/config.rs").exists()
        assert (demo / "src/run.rs").read_text() == "use super::*;\n\npub fn run() {\n    helper();\n}\n"

    def test_crate_with_too_many_modules(self, make_project, manifest):
        root = make_project(
            {
                "Cargo.toml": '[workspace]\nmembers = ["crates/big"]\n',
                "crates/big/Cargo.toml": manifest("big"),
                "crates/big/src/lib.rs": "pub mod alpha;\npub mod beta;\npub mod gamma;\n",
                "crates/big/src/alpha.rs": "pub fn a() {}\n",
                "crates/big/src/beta.rs": "pub fn b() {}\n",
                "crates/big/src/gamma/mod.rs": "pub mod inner;\n",
                "crates/big/src/gamma/inner.rs": "pub fn deep() {}\n",
            }
        )
        result = modsplit.refactor(str(root), max_modules_per_crate=3)
        assert result.remaining == []
        assert (root / "crates/big_gamma/src/gamma/inner.rs").read_text() == "pub fn deep() {}\n"
        assert (root / "crates/big_alpha/src/alpha.rs").exists()
        assert not (root / "crates/big/src/gamma").exists()
        workspace = (root / "Cargo.toml").read_text()
        assert '"crates/big_alpha"' in workspace and '"crates/big_gamma"' in workspace
        big_manifest = (root / "crates/big/Cargo.toml").read_text()
        assert 'big_alpha = { path = "../big_alpha" }' in big_manifest
        lib = (root / "crates/big/src/lib.rs").read_text()
        assert "pub use big_alpha::alpha;" in lib
        assert "pub use big_gamma::gamma;" in lib

    def test_file_with_too_many_lines(self, make_project, manifest):
        text = "//! Big file.\n\n" + functions(60, lines_each=9)
        root = make_project({"Cargo.toml": manifest("solo"), "src/lib.rs": "mod big;\n", "src/big.rs": text})
        result = modsplit.refactor(str(root), max_loc_per_file=500, max_functions_per_module=1000)
        assert result.remaining == []
        assert count_lines((root / "src/big.rs").read_text()) == 495
        assert (root / "src/big/big_part2.rs").read_text().count("pub fn ") == 11

    def test_failed_commit_leaves_tree_untouched(self, demo, snapshot, monkeypatch):
        before = snapshot(demo)
        original = executor_module._apply_step
        calls = {"n": 0}

        def apply(step, root, journal):
            calls["n"] += 1
            if calls["n"] == 3:
                raise OSError("injected failure")
            original(step, root, journal)

        monkeypatch.setattr(executor_module, "_apply_step", apply)
        with pytest.raises(CommitIoError):
            modsplit.refactor(str(demo))
        assert snapshot(demo) == before


class TestRefactorProperties:
    def test_second_run_is_a_no_op(self, engine, snapshot):
        modsplit.refactor(str(engine))
        after_first = snapshot(engine)
        result = modsplit.refactor(str(engine))
        assert result.operations == [] and result.cargo_changes == []
        assert not result.applied
        assert snapshot(engine) == after_first
        assert modsplit.analyze(str(engine)) == []

    def test_dry_run_is_deterministic_and_read_only(self, demo, snapshot):
        before = snapshot(demo)
        first = modsplit.refactor(str(demo), dry_run=True)
        second = modsplit.refactor(str(demo), dry_run=True)
        assert first.diffs and first.diffs == second.diffs
        assert first.operations == second.operations
        assert snapshot(demo) == before
        assert first.transaction_id is None
        assert len(first.remaining) == 0

    def test_unplannable_violation_is_reported(self, make_project, manifest):
        root = make_project(
            {
                "Cargo.toml": manifest("big"),
                "src/lib.rs": "pub mod only;\n",
                "src/only/mod.rs": "mod a;\nmod b;\nmod c;\n",
                "src/only/a.rs": "",
                "src/only/b.rs": "",
                "src/only/c.rs": "",
            }
        )
        result = modsplit.refactor(str(root), max_modules_per_crate=2)
        assert result.operations == []
        [(violation, reason)] = result.unresolved
        assert violation.kind is RuleKind.TOO_MANY_MODULES
        assert "fewer than two" in reason
        assert [v.kind for v in result.remaining] == [RuleKind.TOO_MANY_MODULES]


    def test_undecodable_file_is_never_rewritten(self, make_project, manifest):
        root = make_project(
            {"Cargo.toml": manifest("solo"), "src/lib.rs": "mod engine;\nmod latin;\n", "src/engine.rs": functions(25)}
        )
        latin = b"// caf\xe9\npub fn f() {\n    crate::engine::f01();\n}\n"
        (root / "src/latin.rs").write_bytes(latin)
        result = modsplit.refactor(str(root))
        assert result.applied
        assert (root / "src/engine/part1.rs").exists()
        assert (root / "src/latin.rs").read_bytes() == latin


class TestEntryPoints:
    def test_missing_manifest(self, tmp_path):
        with pytest.raises(ProjectNotFoundError):
            modsplit.analyze(str(tmp_path))
        with pytest.raises(ProjectNotFoundError):
            modsplit.refactor(str(tmp_path / "nowhere"))

    def test_check(self, engine):
        assert modsplit.check(str(engine)) == 1
        assert modsplit.check(str(engine), max_functions_per_module=25) == 0

    def test_locked_project(self, engine):
        (engine / ".modsplit").mkdir()
        with open(engine / ".modsplit" / "lock", "a+") as handle:
            fcntl.flock(handle.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
            with pytest.raises(ProjectLockedError):
                modsplit.refactor(str(engine))

    def test_interrupted_transaction_is_recovered(self, engine, snapshot):
        before = snapshot(engine)
        journal = Journal.begin(engine)
        journal.snapshot("src/engine.rs")
        (engine / "src/engine.rs").write_text("// half written\n")
        journal.created("src/engine/part1.rs")

        assert modsplit.recover(str(engine)) == [journal.txn_id]
        assert snapshot(engine) == before
        assert modsplit.recover(str(engine)) == []

    def test_analyze_rolls_back_pending_transactions_first(self, engine):
        journal = Journal.begin(engine)
        journal.snapshot("src/engine.rs")
        (engine / "src/engine.rs").write_text("")
        [violation] = modsplit.analyze(str(engine))
        assert violation.count == 25
