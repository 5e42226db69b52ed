"""Refactor plan data: file operations, manifest edits, moved items, results.

Plans are pure data. Paths are project-root-relative POSIX strings.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional, Tuple, Union

from ..exceptions import ConflictError
from ..rules.models import Violation


@dataclass(frozen=True)
class TextChange:
    """Replace lines ``[start, end)`` (0-based) with ``lines``.

    ``start == end`` is an insertion before line ``start``.
    """

    start: int
    end: int
    lines: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if self.start < 0 or self.end < self.start:
            raise ValueError(f"invalid line range [{self.start}, {self.end})")

    @property
    def is_insertion(self) -> bool:
        return self.start == self.end


@dataclass(frozen=True)
class CreateFile:
    path: str
    content: str

    def describe(self) -> str:
        return f"create {self.path}"


@dataclass(frozen=True)
class DeleteFile:
    path: str

    def describe(self) -> str:
        return f"delete {self.path}"


@dataclass(frozen=True)
class ModifyFile:
    path: str
    changes: Tuple[TextChange, ...]
    depends_on: Tuple[str, ...] = ()

    def describe(self) -> str:
        return f"modify {self.path} ({len(self.changes)} changes)"


@dataclass(frozen=True)
class MoveFile:
    source: str
    destination: str

    def describe(self) -> str:
        return f"move {self.source} -> {self.destination}"


@dataclass(frozen=True)
class CreateDirectory:
    path: str

    def describe(self) -> str:
        return f"mkdir {self.path}"


FileOperation = Union[CreateFile, DeleteFile, ModifyFile, MoveFile, CreateDirectory]


@dataclass(frozen=True)
class AddWorkspaceMember:
    manifest: str
    member: str

    def describe(self) -> str:
        return f"{self.manifest}: add workspace member {self.member}"


@dataclass(frozen=True)
class RemoveWorkspaceMember:
    manifest: str
    member: str

    def describe(self) -> str:
        return f"{self.manifest}: remove workspace member {self.member}"


@dataclass(frozen=True)
class AddDependency:
    manifest: str
    name: str
    path: str

    def describe(self) -> str:
        return f"{self.manifest}: add dependency {self.name} (path {self.path})"


@dataclass(frozen=True)
class UpdateDependencyPath:
    manifest: str
    name: str
    path: str

    def describe(self) -> str:
        return f"{self.manifest}: dependency {self.name} path -> {self.path}"


CargoChange = Union[AddWorkspaceMember, RemoveWorkspaceMember, AddDependency, UpdateDependencyPath]


@dataclass(frozen=True)
class MovedItem:
    source: str
    destination: str
    reexported: bool = True


class MovedItemTable:
    """Ordered mapping from old item paths to new ones.

    No two distinct sources may share a destination.
    """

    def __init__(self, entries: Optional[List[MovedItem]] = None):
        self._entries: "OrderedDict[str, MovedItem]" = OrderedDict()
        self._destinations: Dict[str, str] = {}
        for entry in entries or []:
            self.add(entry.source, entry.destination, entry.reexported)

    def add(self, source: str, destination: str, reexported: bool = True) -> None:
        """Record a move.

        Raises:
            ConflictError: If another source already maps to ``destination``
        """
        owner = self._destinations.get(destination)
        if owner is not None and owner != source:
            raise ConflictError(
                f"'{owner}' and '{source}' both move to '{destination}'", [destination]
            )
        existing = self._entries.get(source)
        if existing is not None and existing.destination != destination:
            raise ConflictError(
                f"'{source}' moved to both '{existing.destination}' and '{destination}'", [source]
            )
        self._entries[source] = MovedItem(source, destination, reexported)
        self._destinations[destination] = source

    def merge(self, other: "MovedItemTable") -> None:
        for entry in other:
            self.add(entry.source, entry.destination, entry.reexported)

    def copy(self) -> "MovedItemTable":
        return MovedItemTable(list(self))

    def get(self, source: str) -> Optional[MovedItem]:
        return self._entries.get(source)

    def lookup_prefix(self, segments: Tuple[str, ...]) -> Optional[Tuple[MovedItem, Tuple[str, ...]]]:
        """Longest entry whose source is a prefix of ``segments``, plus the remainder."""
        for cut in range(len(segments), 0, -1):
            entry = self._entries.get("::".join(segments[:cut]))
            if entry is not None:
                return entry, tuple(segments[cut:])
        return None

    def __iter__(self) -> Iterator[MovedItem]:
        return iter(list(self._entries.values()))

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, source: object) -> bool:
        return source in self._entries

    def __eq__(self, other: object) -> bool:
        return isinstance(other, MovedItemTable) and list(self) == list(other)

    def __repr__(self) -> str:
        return f"MovedItemTable({list(self)!r})"


@dataclass(frozen=True)
class RefactorPlan:
    pattern: str
    description: str
    operations: Tuple[FileOperation, ...] = ()
    cargo_changes: Tuple[CargoChange, ...] = ()
    moved_items: MovedItemTable = field(default_factory=MovedItemTable, compare=False)
    resolves: Tuple[Violation, ...] = ()


class Mode(Enum):
    APPLY = "apply"
    DRY_RUN = "dry_run"


@dataclass
class RefactorResult:
    mode: Mode
    operations: List[str] = field(default_factory=list)
    cargo_changes: List[str] = field(default_factory=list)
    resolved: List[Violation] = field(default_factory=list)
    diffs: List[str] = field(default_factory=list)
    unresolved: List[Tuple[Violation, str]] = field(default_factory=list)
    remaining: List[Violation] = field(default_factory=list)
    transaction_id: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.mode is Mode.APPLY and bool(self.operations or self.cargo_changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mode": self.mode.value,
            "transaction_id": self.transaction_id,
            "operations": list(self.operations),
            "cargo_changes": list(self.cargo_changes),
            "resolved": [v.to_dict() for v in self.resolved],
            "unresolved": [dict(v.to_dict(), reason=reason) for v, reason in self.unresolved],
            "remaining": [v.to_dict() for v in self.remaining],
            "diffs": list(self.diffs),
        }
