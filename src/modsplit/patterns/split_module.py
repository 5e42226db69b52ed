"""SplitModule: spread the functions of an oversized module over child files."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Dict, List, Set

from ..exceptions import PlanningError
from ..logging_config import get_logger
from ..model import Item, Project
from ..refactor.models import (
    CreateDirectory,
    CreateFile,
    ModifyFile,
    MovedItemTable,
    RefactorPlan,
    TextChange,
)
from ..rules.models import RuleKind, Violation
from ..scanning import ItemKind
from ._edits import (
    adapt_item,
    child_names,
    file_taken,
    insertion_line,
    locate_module,
    padded,
    part_content,
    reexport_lines,
    removal_changes,
    require_movable,
    source_lines,
)
from .base import PlanContext
from .clustering import pack_functions

logger = get_logger(__name__)


def call_graph(functions: List[Item]) -> Dict[str, Set[str]]:
    """Directed intra-module call edges between function IDs."""
    ids = {f.id for f in functions}
    return {f.id: {r for r in f.references if r in ids and r != f.id} for f in functions}


def _undirected(graph: Dict[str, Set[str]]) -> Dict[str, Set[str]]:
    result: Dict[str, Set[str]] = {node: set() for node in graph}
    for node, targets in graph.items():
        for target in targets:
            result[node].add(target)
            result[target].add(node)
    return result


def _part_names(count: int, taken: Set[str], root: Path, child_dir: str) -> List[str]:
    names: List[str] = []
    n = 1
    while len(names) < count:
        name = f"part{n}"
        n += 1
        if name in taken:
            continue
        if file_taken(root, posixpath.join(child_dir, f"{name}.rs")) or file_taken(
            root, posixpath.join(child_dir, name, "mod.rs")
        ):
            continue
        names.append(name)
    return names


class SplitModulePattern:
    """Move a module's functions into ``partN.rs`` children and re-export them.

    Functions that call each other stay together where capacity allows.
    The module keeps its declarations and every non-function item.
    """

    name = "split_module"
    description = "split a module with too many functions into child modules"

    def matches(self, violation: Violation) -> bool:
        return violation.kind is RuleKind.TOO_MANY_FUNCTIONS

    def plan(self, project: Project, violation: Violation, context: PlanContext) -> RefactorPlan:
        _, module = locate_module(self.name, project, violation)
        capacity = violation.maximum or context.config.thresholds.max_functions_per_module
        functions = module.functions
        if len(functions) <= capacity:
            raise PlanningError(self.name, f"{module.path} no longer exceeds {capacity} functions")
        require_movable(self.name, functions)

        graph = call_graph(functions)
        out_degree = {node: len(targets) for node, targets in graph.items()}
        chunks = pack_functions([f.id for f in functions], _undirected(graph), out_degree, capacity)
        if len(chunks) < 2:
            raise PlanningError(self.name, f"cannot partition the functions of {module.path}")

        by_id = {f.id: f for f in functions}
        lines = source_lines(project.root, module.file)
        child_dir = module.child_dir
        names = _part_names(len(chunks), child_names(module), project.root, child_dir)
        logger.debug(f"{module.path}: {len(functions)} functions -> {len(chunks)} parts")

        operations = []
        if not (Path(project.root) / child_dir).is_dir():
            operations.append(CreateDirectory(child_dir))

        moved = MovedItemTable()
        declarations: List[str] = []
        reexports: List[str] = []
        part_paths = []
        for name, chunk in zip(names, chunks):
            items = [by_id[i] for i in chunk]
            path = posixpath.join(child_dir, f"{name}.rs")
            part_paths.append(path)
            operations.append(CreateFile(path, part_content([adapt_item(lines, i) for i in items])))
            declarations.append(f"mod {name};")
            reexports.extend(reexport_lines(name, items))
            for item in items:
                moved.add(item.id, f"{module.path}::{name}::{item.name}")

        kept = [i for i in module.items if i.kind is not ItemKind.FUNCTION]
        point = insertion_line(module, lines, kept)
        changes = removal_changes(lines, functions)
        changes.append(TextChange(point, point, padded(lines, point, declarations + reexports)))
        operations.append(
            ModifyFile(module.file, tuple(sorted(changes, key=lambda c: c.start)), tuple(part_paths))
        )

        return RefactorPlan(
            pattern=self.name,
            description=f"split {module.path} into {', '.join(names)}",
            operations=tuple(operations),
            moved_items=moved,
            resolves=(violation,),
        )
