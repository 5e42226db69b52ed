"""Advisory project lock (``.modsplit/lock``) based on ``fcntl.flock``.

Refactors hold it exclusively from validation through commit or
rollback; analysis holds it shared. Acquisition never blocks: a lock held
by another process or another thread raises ProjectLockedError. Each thread
holds its own open file description, so ``flock`` arbitrates between
threads as it does between processes. Within one thread the lock is
re-entrant, so ``refactor`` can call ``execute`` while holding it.
"""

from __future__ import annotations

import fcntl
import threading
from pathlib import Path
from typing import Dict, Tuple

from ..exceptions import ProjectLockedError
from ..logging_config import get_logger
from .journal import state_dir

logger = get_logger(__name__)

_registry_lock = threading.Lock()
# (resolved root, thread id) -> (open lock file, exclusive?, depth)
_held: Dict[Tuple[Path, int], Tuple[object, bool, int]] = {}


class ProjectLock:
    """Context manager holding the project lock."""

    def __init__(self, root: Path, shared: bool = False):
        self.root = Path(root).resolve()
        self.shared = shared
        self.lock_path = self.root / ".modsplit" / "lock"

    def __enter__(self) -> "ProjectLock":
        self._key = (self.root, threading.get_ident())
        with _registry_lock:
            held = _held.get(self._key)
            if held is not None:
                handle, exclusive, depth = held
                if self.shared or exclusive:
                    _held[self._key] = (handle, exclusive, depth + 1)
                    return self
                # upgrading a shared lock held by this thread
                self._flock(handle, exclusive=True)
                _held[self._key] = (handle, True, depth + 1)
                return self

            state_dir(self.root)
            handle = open(self.lock_path, "a+")
            try:
                self._flock(handle, exclusive=not self.shared)
            except ProjectLockedError:
                handle.close()
                raise
            _held[self._key] = (handle, not self.shared, 1)
            logger.debug(f"Acquired {'shared' if self.shared else 'exclusive'} lock on {self.root}")
            return self

    def _flock(self, handle, exclusive: bool) -> None:
        mode = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        try:
            fcntl.flock(handle.fileno(), mode | fcntl.LOCK_NB)
        except BlockingIOError:
            raise ProjectLockedError(self.lock_path)

    def __exit__(self, _exc_type, _exc_val, _exc_tb) -> None:
        with _registry_lock:
            handle, exclusive, depth = _held[self._key]
            if depth > 1:
                _held[self._key] = (handle, exclusive, depth - 1)
                return
            del _held[self._key]
            fcntl.flock(handle.fileno(), fcntl.LOCK_UN)
            handle.close()
