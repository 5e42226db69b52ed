"""Write-ahead journal for refactor transactions.

Layout below the project root::

    .modsplit/txn/<id>/journal.jsonl   one JSON record per line
    .modsplit/txn/<id>/blobs/<n>       pre-image of a modified/deleted file

Every record is appended and fsynced *before* the mutation it describes,
so a journal without a terminal record (``commit`` or ``rolled_back``)
always holds enough information to restore the tree.
"""

from __future__ import annotations

import json
import os
import shutil
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List

from ..exceptions import RollbackFailure
from ..file_ops import atomic_write_bytes, fsync_directory, move_path, read_bytes, remove_path
from ..logging_config import get_logger, transaction_logger
from ..security import STATE_DIR

logger = get_logger(__name__)

JOURNAL_FILE = "journal.jsonl"
TERMINAL_RECORDS = ("commit", "rolled_back")


def state_dir(root: Path) -> Path:
    """Create (if needed) and return the ``.modsplit`` directory."""
    directory = Path(root) / STATE_DIR
    directory.mkdir(exist_ok=True)
    gitignore = directory / ".gitignore"
    if not gitignore.exists():
        gitignore.write_text("*\n", encoding="utf-8")
    return directory


def transactions_dir(root: Path) -> Path:
    directory = state_dir(root) / "txn"
    directory.mkdir(exist_ok=True)
    return directory


class Journal:
    """Append-only record of one transaction's mutations."""

    def __init__(self, root: Path, directory: Path):
        self.root = Path(root)
        self.directory = Path(directory)
        self.txn_id = self.directory.name
        self._blob_count = len(list(self.blobs_dir.iterdir())) if self.blobs_dir.exists() else 0

    @classmethod
    def begin(cls, root: Path, description: str = "") -> "Journal":
        txn_id = datetime.now(timezone.utc).strftime("%Y%m%dT%H%M%S") + "-" + uuid.uuid4().hex[:8]
        directory = transactions_dir(root) / txn_id
        directory.mkdir()
        (directory / "blobs").mkdir()
        fsync_directory(directory.parent)
        journal = cls(root, directory)
        journal._append({"type": "begin", "id": txn_id, "description": description,
                         "created_at": datetime.now(timezone.utc).isoformat()})
        transaction_logger(logger, txn_id).debug(f"Started: {description or 'unnamed'}")
        return journal

    @property
    def journal_path(self) -> Path:
        return self.directory / JOURNAL_FILE

    @property
    def blobs_dir(self) -> Path:
        return self.directory / "blobs"

    def _append(self, record: Dict[str, Any]) -> None:
        with open(self.journal_path, "a", encoding="utf-8") as f:
            f.write(json.dumps(record, sort_keys=True) + "\n")
            f.flush()
            os.fsync(f.fileno())

    # -- records written before each mutation --------------------------------

    def snapshot(self, rel_path: str) -> None:
        """Save the current bytes of ``rel_path`` before it is changed."""
        self._blob_count += 1
        blob = f"{self._blob_count:06d}"
        data = read_bytes(self.root / rel_path)
        atomic_write_bytes(self.blobs_dir / blob, data)
        self._append({"type": "snapshot", "path": rel_path, "blob": blob})

    def created(self, rel_path: str) -> None:
        self._append({"type": "created", "path": rel_path})

    def mkdir(self, rel_path: str) -> None:
        self._append({"type": "mkdir", "path": rel_path})

    def moved(self, source: str, destination: str) -> None:
        self._append({"type": "moved", "source": source, "destination": destination})

    def commit(self) -> None:
        self._append({"type": "commit"})

    def mark_rolled_back(self) -> None:
        self._append({"type": "rolled_back"})

    # -- reading and replay ---------------------------------------------------

    def records(self) -> List[Dict[str, Any]]:
        records = []
        if not self.journal_path.exists():
            return records
        with open(self.journal_path, encoding="utf-8") as f:
            for line in f:
                line = line.strip()
                if not line:
                    continue
                try:
                    records.append(json.loads(line))
                except json.JSONDecodeError:
                    # a torn final write; its mutation never started
                    logger.warning(f"Ignoring truncated journal record in {self.journal_path}")
                    break
        return records

    @property
    def is_terminated(self) -> bool:
        return any(r.get("type") in TERMINAL_RECORDS for r in self.records())

    def rollback(self) -> None:
        """Undo every recorded mutation, newest first.

        Raises:
            RollbackFailure: If any record cannot be undone
        """
        for record in reversed(self.records()):
            kind = record.get("type")
            try:
                if kind == "snapshot":
                    target = self.root / record["path"]
                    target.parent.mkdir(parents=True, exist_ok=True)
                    atomic_write_bytes(target, read_bytes(self.blobs_dir / record["blob"]))
                elif kind == "created":
                    target = self.root / record["path"]
                    if target.exists() or target.is_symlink():
                        remove_path(target)
                elif kind == "mkdir":
                    target = self.root / record["path"]
                    if target.exists():
                        remove_path(target)
                elif kind == "moved":
                    source = self.root / record["source"]
                    destination = self.root / record["destination"]
                    if destination.exists() and not source.exists():
                        move_path(destination, source)
            except (OSError, KeyError) as e:
                raise RollbackFailure(self.directory, f"cannot undo {kind} record: {e}")
        self.mark_rolled_back()
        transaction_logger(logger, self.txn_id).info("Rolled back")

    def discard(self) -> None:
        """Remove the transaction directory once the journal is terminal."""
        shutil.rmtree(self.directory, ignore_errors=True)


def pending_journals(root: Path) -> List[Journal]:
    """Journals of transactions that never reached a terminal record."""
    directory = Path(root) / STATE_DIR / "txn"
    if not directory.is_dir():
        return []
    pending = []
    for txn_dir in sorted(p for p in directory.iterdir() if p.is_dir()):
        journal = Journal(root, txn_dir)
        if journal.is_terminated:
            journal.discard()
        else:
            pending.append(journal)
    return pending


def recover(root: Path) -> List[str]:
    """Roll back every interrupted transaction. Returns their IDs.

    The caller must hold the exclusive project lock.

    Raises:
        RollbackFailure: If an interrupted transaction cannot be undone
    """
    recovered = []
    for journal in pending_journals(root):
        transaction_logger(logger, journal.txn_id).warning("Recovering interrupted transaction")
        journal.rollback()
        journal.discard()
        recovered.append(journal.txn_id)
    return recovered

