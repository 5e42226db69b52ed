"""Tests for the write-ahead journal and crash recovery."""

import os

import pytest

from modsplit.exceptions import RollbackFailure
from modsplit.refactor import Journal, pending_journals, recover
from modsplit.refactor import journal as journal_module


@pytest.fixture
def root(make_project):
    return make_project({"a.txt": "old\n", "b.txt": "moving\n", "gone.txt": "delete me\n"})


def mutate(root, journal):
    """The mutations of a small transaction, journaled first."""
    journal.snapshot("a.txt")
    (root / "a.txt").write_text("new\n")
    journal.mkdir("d")
    os.mkdir(root / "d")
    journal.created("d/f.txt")
    (root / "d/f.txt").write_text("created\n")
    journal.moved("b.txt", "c.txt")
    os.replace(root / "b.txt", root / "c.txt")
    journal.snapshot("gone.txt")
    (root / "gone.txt").unlink()


class TestJournal:
    def test_state_directory_is_ignored_by_git(self, root):
        Journal.begin(root)
        assert (root / ".modsplit/.gitignore").read_text() == "*\n"

    def test_records_in_order(self, root):
        journal = Journal.begin(root, "demo")
        mutate(root, journal)
        kinds = [r["type"] for r in journal.records()]
        assert kinds == ["begin", "snapshot", "mkdir", "created", "moved", "snapshot"]
        assert journal.records()[0]["description"] == "demo"
        assert not journal.is_terminated

    def test_rollback_restores_the_tree(self, root, snapshot):
        before = snapshot(root)
        journal = Journal.begin(root)
        mutate(root, journal)
        journal.rollback()
        assert snapshot(root) == before
        assert journal.is_terminated

    def test_truncated_record_is_ignored(self, root):
        journal = Journal.begin(root)
        journal.created("x.txt")
        with open(journal.journal_path, "a", encoding="utf-8") as f:
            f.write('{"type": "crea')
        assert [r["type"] for r in journal.records()] == ["begin", "created"]

    def test_rollback_failure_keeps_the_journal(self, root, monkeypatch):
        journal = Journal.begin(root)
        mutate(root, journal)
        with monkeypatch.context() as m:
            m.setattr(journal_module, "remove_path", _fail)
            with pytest.raises(RollbackFailure) as exc_info:
                journal.rollback()
        assert exc_info.value.journal_dir == journal.directory
        assert not journal.is_terminated
        assert journal.directory.is_dir()


def _fail(path):
    raise OSError(f"cannot remove {path}")


class TestRecovery:
    def test_pending_journals_are_rolled_back(self, root, snapshot):
        before = snapshot(root)
        journal = Journal.begin(root)
        mutate(root, journal)

        assert [j.txn_id for j in pending_journals(root)] == [journal.txn_id]
        assert recover(root) == [journal.txn_id]
        assert snapshot(root) == before
        assert pending_journals(root) == []
        assert not journal.directory.exists()

    def test_terminated_journals_are_cleaned_up(self, root):
        journal = Journal.begin(root)
        journal.commit()
        assert pending_journals(root) == []
        assert not journal.directory.exists()

    def test_nothing_to_recover(self, root):
        assert recover(root) == []
