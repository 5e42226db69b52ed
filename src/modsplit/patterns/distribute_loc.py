"""DistributeLoc: move the tail of an oversized file into sibling part files."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import List, Sequence, Set

from ..exceptions import PlanningError
from ..file_ops import read_text
from ..logging_config import get_logger
from ..model import Item, Module, Project
from ..refactor.models import (
    CreateDirectory,
    CreateFile,
    FileOperation,
    ModifyFile,
    MovedItemTable,
    RefactorPlan,
    TextChange,
)
from ..refactor.text import apply_changes
from ..rules.models import RuleKind, Violation
from ..scanning import ItemKind, count_lines
from ._edits import (
    adapt_item,
    child_names,
    file_taken,
    insertion_line,
    locate_module,
    padded,
    part_content,
    part_line_count,
    reexport_lines,
    removal_changes,
    require_movable,
    source_lines,
)
from .base import PlanContext

logger = get_logger(__name__)


def _stem(module: Module) -> str:
    if module.file_name == "mod.rs":
        return module.name
    return posixpath.splitext(module.file_name)[0]


def pack_consecutive(blocks: Sequence[List[str]], capacity: int) -> List[List[int]]:
    """Indices of ``blocks`` packed in order into parts of at most ``capacity`` lines.

    Raises:
        ValueError: If one block alone does not fit
    """
    parts: List[List[int]] = []
    current: List[int] = []
    for index, block in enumerate(blocks):
        if part_line_count([len(block)]) > capacity:
            raise ValueError(f"item of {len(block)} lines cannot fit in {capacity} lines")
        sizes = [len(blocks[i]) for i in current] + [len(block)]
        if current and part_line_count(sizes) > capacity:
            parts.append(current)
            current = []
        current.append(index)
    if current:
        parts.append(current)
    return parts


class DistributeLocPattern:
    """Keep the longest prefix of items that fits, move the rest to ``<stem>_partN.rs``.

    Declarations (``use``, ``mod``, attributes) and ``macro_rules!`` stay in
    place; the moved items are re-exported with their original visibility.
    """

    name = "distribute_loc"
    description = "move items of an oversized file into sibling part files"

    def matches(self, violation: Violation) -> bool:
        return violation.kind is RuleKind.TOO_MANY_LOC

    def plan(self, project: Project, violation: Violation, context: PlanContext) -> RefactorPlan:
        _, module = locate_module(self.name, project, violation)
        capacity = violation.maximum or context.config.thresholds.max_loc_per_file
        text = read_text(Path(project.root) / module.file)
        if count_lines(text) <= capacity:
            raise PlanningError(self.name, f"{module.file} no longer exceeds {capacity} lines")

        lines = source_lines(project.root, module.file)
        movable = [i for i in module.items if i.kind is not ItemKind.MACRO]
        kept_macros = [i for i in module.items if i.kind is ItemKind.MACRO]
        if not movable:
            raise PlanningError(self.name, f"{module.file} has no movable items")
        require_movable(self.name, movable)

        blocks = [adapt_item(lines, item) for item in movable]
        taken = child_names(module)
        for keep in range(len(movable) - 1, -1, -1):
            try:
                parts = pack_consecutive(blocks[keep:], capacity)
            except ValueError as e:
                raise PlanningError(self.name, f"{module.file}: {e}")
            names = self._part_names(len(parts), module, taken, project.root)
            groups = [[keep + i for i in part] for part in parts]
            change = self._rewrite_original(module, lines, movable, keep, kept_macros, names, groups)
            if count_lines(apply_changes(text, change.changes)) <= capacity:
                return self._build(project, module, violation, movable, blocks, names, groups, change)
        raise PlanningError(
            self.name, f"{module.file}: declarations alone exceed {capacity} lines"
        )

    def _part_names(self, count: int, module: Module, taken: Set[str], root: Path) -> List[str]:
        stem = _stem(module)
        names: List[str] = []
        n = 2
        while len(names) < count:
            name = f"{stem}_part{n}"
            n += 1
            if name in taken or file_taken(root, posixpath.join(module.child_dir, f"{name}.rs")):
                continue
            if file_taken(root, posixpath.join(module.child_dir, name)):
                continue
            names.append(name)
        return names

    def _rewrite_original(
        self,
        module: Module,
        lines: List[str],
        movable: List[Item],
        keep: int,
        kept_macros: List[Item],
        names: List[str],
        groups: List[List[int]],
    ) -> ModifyFile:
        block = [f"mod {name};" for name in names]
        for name, group in zip(names, groups):
            block.extend(reexport_lines(name, [movable[i] for i in group]))
        point = insertion_line(module, lines, kept_macros)
        changes = removal_changes(lines, movable[keep:])
        changes.append(TextChange(point, point, padded(lines, point, block)))
        paths = tuple(posixpath.join(module.child_dir, f"{name}.rs") for name in names)
        return ModifyFile(module.file, tuple(sorted(changes, key=lambda c: c.start)), paths)

    def _build(
        self,
        project: Project,
        module: Module,
        violation: Violation,
        movable: List[Item],
        blocks: List[List[str]],
        names: List[str],
        groups: List[List[int]],
        change: ModifyFile,
    ) -> RefactorPlan:
        operations: List[FileOperation] = []
        if not (Path(project.root) / module.child_dir).is_dir():
            operations.append(CreateDirectory(module.child_dir))
        moved = MovedItemTable()
        for name, group in zip(names, groups):
            content = part_content([blocks[i] for i in group])
            operations.append(CreateFile(posixpath.join(module.child_dir, f"{name}.rs"), content))
            for i in group:
                item = movable[i]
                if item.kind is not ItemKind.IMPL_BLOCK:
                    moved.add(item.id, f"{module.path}::{name}::{item.name}")
        operations.append(change)
        logger.debug(f"{module.file}: moving {sum(map(len, groups))} items into {len(names)} files")
        return RefactorPlan(
            pattern=self.name,
            description=f"distribute {module.file} over {', '.join(names)}",
            operations=tuple(operations),
            moved_items=moved,
            resolves=(violation,),
        )

