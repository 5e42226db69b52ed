"""In-memory view of the project tree with pending operations applied.

Used by validation (line counts of files that will exist) and by dry runs
(diff rendering), so neither ever touches the disk.
"""

from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Optional, Set, Tuple

from ..file_ops import read_text


def is_under(path: str, prefix: str) -> bool:
    return path == prefix or path.startswith(prefix + "/")


class VirtualTree:
    def __init__(self, root: Path):
        self.root = Path(root)
        self._files: Dict[str, Optional[str]] = {}  # None marks a deleted file
        self._dirs: Set[str] = set()
        self._moves: List[Tuple[str, str]] = []
        self._removed: Set[str] = set()

    def origin(self, path: str) -> str:
        """Where the content now at ``path`` lives on disk."""
        for source, destination in reversed(self._moves):
            if is_under(path, destination):
                path = source + path[len(destination):]
        return path

    def _is_removed(self, path: str) -> bool:
        return any(is_under(path, r) for r in self._removed)

    def exists(self, path: str) -> bool:
        if path in self._files:
            return self._files[path] is not None
        if path in self._dirs:
            return True
        if any(is_under(p, path) and c is not None for p, c in self._files.items()):
            return True
        if self._is_removed(path):
            return False
        return (self.root / self.origin(path)).exists()

    def is_dir(self, path: str) -> bool:
        if path in self._dirs:
            return True
        if path in self._files:
            return False
        if self._is_removed(path):
            return False
        return (self.root / self.origin(path)).is_dir()

    def read(self, path: str) -> str:
        """Current content of ``path``.

        Raises:
            FileNotFoundError: If the path does not exist in the overlay
            FileAccessError: If the underlying file cannot be read
        """
        if path in self._files:
            content = self._files[path]
            if content is None:
                raise FileNotFoundError(path)
            return content
        if self._is_removed(path):
            raise FileNotFoundError(path)
        disk = self.root / self.origin(path)
        if not disk.is_file():
            raise FileNotFoundError(path)
        return read_text(disk)

    def write(self, path: str, content: str) -> None:
        self._files[path] = content
        self._removed.discard(path)

    def mkdir(self, path: str) -> None:
        self._dirs.add(path)
        self._removed.discard(path)

    def delete(self, path: str) -> None:
        self._files[path] = None

    def move(self, source: str, destination: str) -> None:
        virtual = {p: c for p, c in self._files.items() if is_under(p, source)}
        for p, c in virtual.items():
            del self._files[p]
            self._files[destination + p[len(source):]] = c
        for d in [d for d in self._dirs if is_under(d, source)]:
            self._dirs.discard(d)
            self._dirs.add(destination + d[len(source):])
        self._moves.append((source, destination))
        self._removed.add(source)
        self._removed.discard(destination)

