"""Merging and conflict validation of refactor plans.

Nothing here touches the disk except to read current state.
"""

from __future__ import annotations

import posixpath
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, List, Sequence, Tuple, Union

from ..exceptions import ConflictError, FileAccessError
from ..rules.models import Violation
from ..security import PathValidator
from .models import (
    AddDependency,
    AddWorkspaceMember,
    CargoChange,
    CreateDirectory,
    CreateFile,
    DeleteFile,
    FileOperation,
    ModifyFile,
    MovedItemTable,
    MoveFile,
    RefactorPlan,
    RemoveWorkspaceMember,
    UpdateDependencyPath,
)
from .overlay import VirtualTree, is_under
from .text import check_changes, split_lines

Action = Union[FileOperation, CargoChange]
CARGO_CHANGES = (AddWorkspaceMember, RemoveWorkspaceMember, AddDependency, UpdateDependencyPath)


@dataclass(frozen=True)
class Step:
    """One action of a transaction, keyed by its origin for stable ordering."""

    plan_index: int
    position: int
    action: Action

    @property
    def key(self) -> Tuple[int, int]:
        return (self.plan_index, self.position)

    @property
    def is_cargo(self) -> bool:
        return isinstance(self.action, CARGO_CHANGES)

    def describe(self) -> str:
        return self.action.describe()


@dataclass
class Transaction:
    steps: List[Step]
    moved_items: MovedItemTable = field(default_factory=MovedItemTable)
    resolves: List[Violation] = field(default_factory=list)
    description: str = ""

    @property
    def moves(self) -> List[Tuple[str, str]]:
        return [
            (s.action.source, s.action.destination)
            for s in self.steps
            if isinstance(s.action, MoveFile)
        ]


def merge_plans(plans: Sequence[RefactorPlan]) -> Transaction:
    """Flatten plans into keyed steps; cargo changes follow each plan's file ops.

    Raises:
        ConflictError: If the combined moved-item tables collide
    """
    steps: List[Step] = []
    moved = MovedItemTable()
    resolves: List[Violation] = []
    for index, plan in enumerate(plans):
        for position, op in enumerate(plan.operations):
            steps.append(Step(index, position, op))
        offset = len(plan.operations)
        for position, change in enumerate(plan.cargo_changes):
            steps.append(Step(index, offset + position, change))
        moved.merge(plan.moved_items)
        resolves.extend(plan.resolves)
    description = "; ".join(p.description for p in plans)
    return Transaction(steps=steps, moved_items=moved, resolves=resolves, description=description)


def _paths(action: Action) -> List[str]:
    if isinstance(action, MoveFile):
        return [action.source, action.destination]
    if isinstance(action, CARGO_CHANGES):
        return [action.manifest]
    return [action.path]


def validate(transaction: Transaction, root: Path) -> Transaction:
    """Check a merged transaction and normalize it.

    Identical CreateDirectory/DeleteFile steps are merged, directories that
    already exist are dropped and all ModifyFile steps for one path become
    a single step at the position of the first.

    Raises:
        SecurityError: If a path is absolute or leaves the project root
        ConflictError: If two steps are incompatible
    """
    validator = PathValidator(root)
    for step in transaction.steps:
        for path in _paths(step.action):
            validator.resolve(path)

    tree = VirtualTree(root)
    steps: List[Step] = []
    created_files: Dict[str, Step] = {}
    created_dirs: Dict[str, Step] = {}
    deleted: Dict[str, Step] = {}
    move_sources: Dict[str, Step] = {}
    move_destinations: Dict[str, Step] = {}
    modifies: Dict[str, List[Step]] = {}

    for step in transaction.steps:
        action = step.action
        if isinstance(action, CreateDirectory):
            if action.path in created_dirs:
                continue
            if (root / action.path).is_dir():
                continue
            if (root / action.path).exists():
                raise ConflictError(f"cannot create directory over file {action.path}", [action.path])
            created_dirs[action.path] = step
        elif isinstance(action, CreateFile):
            if action.path in created_files:
                raise ConflictError("two operations create the same file", [action.path])
            if action.path in move_destinations:
                raise ConflictError("file is both created and a move destination", [action.path])
            if (root / action.path).exists():
                raise ConflictError("file to create already exists", [action.path])
            created_files[action.path] = step
        elif isinstance(action, DeleteFile):
            if action.path in deleted:
                continue
            if not (root / action.path).is_file():
                raise ConflictError("file to delete does not exist", [action.path])
            deleted[action.path] = step
        elif isinstance(action, MoveFile):
            if action.source in move_sources:
                raise ConflictError("source moved twice", [action.source])
            if action.destination in move_destinations or action.destination in created_files:
                raise ConflictError("two operations target the same destination", [action.destination])
            if not (root / action.source).exists():
                raise ConflictError("move source does not exist", [action.source])
            if (root / action.destination).exists():
                raise ConflictError("move destination already exists", [action.destination])
            move_sources[action.source] = step
            move_destinations[action.destination] = step
        elif isinstance(action, ModifyFile):
            modifies.setdefault(action.path, []).append(step)
            if len(modifies[action.path]) > 1:
                continue
        steps.append(step)

    for path, step in deleted.items():
        if path in modifies:
            raise ConflictError("file is both deleted and modified", [path])
        if any(is_under(path, src) for src in move_sources):
            raise ConflictError("file is both deleted and moved", [path])
    for source in move_sources:
        for path in modifies:
            if is_under(path, source):
                raise ConflictError("modification targets a moved-away path", [path])

    # replay creations and moves so line counts reflect post-move content
    for step in sorted(list(created_files.values()) + list(move_sources.values()), key=lambda s: s.key):
        if isinstance(step.action, CreateFile):
            tree.write(step.action.path, step.action.content)
        else:
            tree.move(step.action.source, step.action.destination)

    for path in list(created_files) + list(move_destinations) + list(created_dirs):
        parent = posixpath.dirname(path)
        if parent and parent not in created_dirs and not tree.is_dir(parent):
            raise ConflictError("parent directory does not exist", [path])

    merged: Dict[str, Step] = {}
    for path, group in modifies.items():
        changes = tuple(c for s in group for c in s.action.changes)
        depends: List[str] = []
        for s in group:
            depends.extend(d for d in s.action.depends_on if d not in depends)
        try:
            line_count = len(split_lines(tree.read(path)))
        except (FileNotFoundError, FileAccessError):
            raise ConflictError("file to modify does not exist", [path])
        check_changes(path, changes, line_count)
        first = group[0]
        merged[path] = replace(first, action=ModifyFile(path, changes, tuple(depends)))

    normalized = [
        merged[s.action.path] if isinstance(s.action, ModifyFile) else s for s in steps
    ]
    return Transaction(
        steps=normalized,
        moved_items=transaction.moved_items,
        resolves=transaction.resolves,
        description=transaction.description,
    )

