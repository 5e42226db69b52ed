"""CleanEntryFiles: move code out of ``lib.rs``/``mod.rs`` into child modules."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from ..exceptions import PlanningError
from ..file_ops import read_text
from ..logging_config import get_logger
from ..model import Item, Module, Project
from ..refactor.models import (
    CreateFile,
    FileOperation,
    ModifyFile,
    MovedItemTable,
    RefactorPlan,
    TextChange,
)
from ..rules import entry_file_offenders
from ..rules.models import RuleKind, Violation
from ..scanning import DeclKind, ItemKind, parse_source
from ._edits import (
    PART_HEADER,
    RESERVED_STEMS,
    adapt_item,
    file_taken,
    impl_blocks_for,
    insertion_line,
    locate_module,
    padded,
    part_content,
    reexport_lines,
    require_movable,
    snake_case,
    source_lines,
    trait_impls_for,
)
from .base import PlanContext

logger = get_logger(__name__)


def assign_stems(module: Module, offenders: List[Item], root: Path) -> Dict[str, Tuple[str, bool]]:
    """Item ID -> (target module name, whether that module's file already exists).

    A stem naming an existing file-backed child that is not itself an entry
    file is reused (the item is appended there). Anything else that already
    owns the name (inline modules, ``name/mod.rs`` children, stray files,
    keywords, earlier offenders) pushes the stem to ``_2``, ``_3``, ...
    """
    appendable = {
        c.name for c in module.children if not c.is_entry and module.mod_declaration(c.name)
    }
    taken = set(module.declared_names()) - appendable
    taken.update(RESERVED_STEMS)
    result: Dict[str, Tuple[str, bool]] = {}
    for item in offenders:
        base = snake_case(item.name)
        candidate = base
        n = 2
        while True:
            if candidate in appendable:
                break
            if candidate not in taken and not _on_disk(root, module.child_dir, candidate):
                break
            candidate = f"{base}_{n}"
            n += 1
        taken.add(candidate)
        appendable.discard(candidate)
        result[item.id] = (candidate, candidate in {c.name for c in module.children})
    return result


def _on_disk(root: Path, child_dir: str, name: str) -> bool:
    return file_taken(root, posixpath.join(child_dir, f"{name}.rs")) or file_taken(
        root, posixpath.join(child_dir, name)
    )


def companions(module: Module, item: Item, offenders: List[Item]) -> List[Item]:
    """Impl blocks that travel with ``item``.

    Impls follow their self type when that type is itself moving out of
    the entry file, otherwise they follow the trait they implement.
    """
    moving_types = {
        o.name for o in offenders if o.kind in (ItemKind.STRUCT, ItemKind.ENUM)
    }
    if item.kind in (ItemKind.STRUCT, ItemKind.ENUM):
        return impl_blocks_for(module, item.name)
    if item.kind is ItemKind.TRAIT:
        return [i for i in trait_impls_for(module, item.name) if i.self_type not in moving_types]
    return []


class CleanEntryFilesPattern:
    """One plan per offending item: ``Foo`` in ``lib.rs`` becomes ``foo.rs``
    plus ``mod foo;`` and a re-export where ``Foo`` used to be."""

    name = "clean_entry_files"
    description = "move items declared in entry files into their own modules"

    def matches(self, violation: Violation) -> bool:
        return violation.kind is RuleKind.ITEM_IN_ENTRY_FILE

    def plan(self, project: Project, violation: Violation, context: PlanContext) -> RefactorPlan:
        _, module = locate_module(self.name, project, violation)
        offenders = entry_file_offenders(module, context.config)
        item = next((o for o in offenders if o.id == violation.location.item), None)
        if item is None:
            raise PlanningError(self.name, f"{violation.location.item} is no longer in {module.file}")

        moving = [item] + companions(module, item, offenders)
        require_movable(self.name, moving)
        stem, existing = assign_stems(module, offenders, project.root)[item.id]
        lines = source_lines(project.root, module.file)
        blocks = [adapt_item(lines, i) for i in sorted(moving, key=lambda i: i.span.start_line)]

        operations: List[FileOperation] = []
        target = posixpath.join(module.child_dir, f"{stem}.rs")
        if existing:
            child = module.child(stem)
            target = child.file if child is not None else target
            operations.append(self._append(project.root, child, target, blocks))
        else:
            operations.append(CreateFile(target, part_content(blocks)))

        replacement = ([] if existing else [f"mod {stem};"]) + reexport_lines(stem, [item])
        changes = [TextChange(item.span.start_line - 1, item.span.end_line, tuple(replacement))]
        for impl in moving[1:]:
            changes.append(self._removal(lines, impl))
        operations.append(
            ModifyFile(
                module.file,
                tuple(sorted(changes, key=lambda c: c.start)),
                () if existing else (target,),
            )
        )

        moved = MovedItemTable()
        moved.add(item.id, f"{module.path}::{stem}::{item.name}")
        logger.debug(f"{item.id} -> {target}")
        return RefactorPlan(
            pattern=self.name,
            description=f"move {item.kind.value} {item.name} from {module.file} to {target}",
            operations=tuple(operations),
            moved_items=moved,
            resolves=(violation,),
        )

    @staticmethod
    def _removal(lines: List[str], item: Item) -> TextChange:
        start = item.span.start_line - 1
        end = item.span.end_line
        if end < len(lines) and not lines[end].strip():
            end += 1
        return TextChange(start, end, ())

    @staticmethod
    def _append(root: Path, child: Optional[Module], target: str, blocks: List[List[str]]) -> ModifyFile:
        text = read_text(Path(root) / target)
        lines = text.splitlines()
        changes: List[TextChange] = []
        parsed = parse_source(text, target)
        has_glob = any(
            d.kind is DeclKind.USE
            and d.use is not None
            and any(leaf.glob and leaf.path == ("super",) for leaf in d.use.leaves)
            for d in parsed.declarations
        )
        if not has_glob:
            point = insertion_line(child, lines) if child is not None else 0
            changes.append(TextChange(point, point, padded(lines, point, [PART_HEADER])))

        appended: List[str] = []
        if lines and lines[-1].strip():
            appended.append("")
        for index, block in enumerate(blocks):
            if index:
                appended.append("")
            appended.extend(block)
        changes.append(TextChange(len(lines), len(lines), tuple(appended)))
        return ModifyFile(target, tuple(changes))
