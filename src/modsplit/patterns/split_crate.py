"""SplitCrate: turn the top-level modules of an oversized crate into new crates.

The original crate keeps its root file and re-exports every moved module
under its old name, so ``orig::net::Stream`` keeps resolving for the rest
of the workspace.
"""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Set, Tuple

from ..config import load_toml_file
from ..exceptions import PlanningError
from ..logging_config import get_logger
from ..model import Crate, Module, Project
from ..model.paths import Segments, absolutize, split_path
from ..refactor.cargo import render_toml_value, toml_key
from ..refactor.models import (
    AddDependency,
    CargoChange,
    CreateDirectory,
    CreateFile,
    FileOperation,
    ModifyFile,
    MoveFile,
    MovedItemTable,
    RefactorPlan,
    TextChange,
)
from ..rules.models import RuleKind, Violation
from ..scanning import DeclKind, ItemKind
from ._edits import source_lines
from ._workspace import fresh_directory, group_units, relative_dir, undirected_edges, workspace_change
from .base import PlanContext
from .clustering import find_cycle
from .split_component import plan_component_split

logger = get_logger(__name__)

_COPIED_PACKAGE_KEYS = ("version", "edition", "rust-version", "authors", "license", "publish")
_COPIED_DEPENDENCY_TABLES = ("dependencies", "dev-dependencies")


def _rebase_dependency(spec: Any, old_dir: str, new_dir: str) -> Any:
    if isinstance(spec, dict) and "path" in spec:
        target = posixpath.normpath(posixpath.join(old_dir, str(spec["path"])))
        spec = dict(spec, path=relative_dir(target, new_dir))
    return spec


def render_manifest(
    name: str,
    original: Dict[str, Any],
    old_dir: str,
    new_dir: str,
    extra: Sequence[Tuple[str, str]],
) -> str:
    """Cargo.toml of a crate split off from the crate at ``old_dir``.

    Package metadata and dependencies are copied (path dependencies
    re-pointed from ``new_dir``); ``extra`` adds (name, path) dependencies.
    """
    package = original.get("package") or {}
    lines = ["[package]", f"name = {render_toml_value(name)}"]
    if "version" not in package:
        lines.append('version = "0.1.0"')
    for key in _COPIED_PACKAGE_KEYS:
        value = package.get(key)
        if value is None:
            continue
        if isinstance(value, dict) and value.get("workspace"):
            lines.append(f"{key}.workspace = true")
        else:
            lines.append(f"{key} = {render_toml_value(value)}")

    for table in _COPIED_DEPENDENCY_TABLES:
        entries = [
            f"{toml_key(key)} = {render_toml_value(_rebase_dependency(spec, old_dir, new_dir))}"
            for key, spec in (original.get(table) or {}).items()
        ]
        if table == "dependencies":
            entries.extend(
                f"{toml_key(dep)} = {{ path = {render_toml_value(path)} }}" for dep, path in extra
            )
        if entries:
            lines.extend(["", f"[{table}]"] + entries)
    return "\n".join(lines) + "\n"


class _CrateSplit:
    """Facts about one crate needed to plan its split."""

    def __init__(self, pattern: str, project: Project, crate: Crate):
        self.pattern = pattern
        self.project = project
        self.crate = crate
        self.lib = crate.lib_name
        self.crate_names = {c.lib_name for c in project.crates}
        self.units = list(crate.root_module.children)
        self.unit_names = [u.name for u in self.units]

    def fail(self, reason: str) -> PlanningError:
        return PlanningError(self.pattern, f"{self.crate.name}: {reason}")

    def check_declarations(self) -> None:
        root = self.crate.root_module
        for unit in self.units:
            decl = root.mod_declaration(unit.name)
            if decl is None:
                raise self.fail(f"module '{unit.name}' has no declaration in {root.file}")
            if decl.path_attr:
                raise self.fail(f"module '{unit.name}' uses #[path]")
            if decl.shares_line:
                raise self.fail(f"the declaration of '{unit.name}' shares a line with other code")

    def unit_of(self, absolute: Optional[Segments]) -> Optional[str]:
        """Top-level module an absolute path points into; "" for root-level names."""
        if not absolute or absolute[0] != self.lib or len(absolute) < 2:
            return None
        return absolute[1] if absolute[1] in self.unit_names else ""

    def exported(self, absolute: Segments) -> bool:
        """Whether ``absolute`` stays nameable once its unit is another crate's ``pub mod``."""
        module = self.crate.root_module
        for depth, name in enumerate(absolute[1:]):
            child = module.child(name)
            if child is not None:
                decl = module.mod_declaration(name)
                if depth and (decl is None or decl.visibility != "pub"):
                    return False
                module = child
                continue
            item = next(
                (i for i in module.items if i.name == name and i.kind is not ItemKind.IMPL_BLOCK), None
            )
            # names we cannot see (re-exports, variants) are assumed reachable
            return item is None or item.visibility == "pub"
        return True

    def references(self, module: Module) -> List[Tuple[str, Segments, bool]]:
        """(referencing id, absolute target, is glob) for items and imports of ``module``."""
        found: List[Tuple[str, Segments, bool]] = []
        local = {c.name for c in module.children} | {
            i.name for i in module.items if i.kind is not ItemKind.IMPL_BLOCK
        }
        for item in module.items:
            for ref in sorted(item.references):
                found.append((item.id, split_path(ref), False))
        for decl in module.declarations:
            if decl.kind is not DeclKind.USE or decl.use is None:
                continue
            for leaf in decl.use.leaves:
                absolute = absolutize(leaf.path, module.segments, self.crate_names, local)
                if absolute is not None:
                    found.append((f"{module.path} (use at line {decl.start_line})", absolute, leaf.glob))
        return found

    def dependencies(self) -> Tuple[Dict[str, Dict[str, int]], List[Tuple[str, str, Segments]]]:
        """Unit -> unit -> reference count, plus every cross-unit reference.

        Raises:
            PlanningError: If a unit depends on code that stays in the crate root
        """
        counts: Dict[str, Dict[str, int]] = {name: {} for name in self.unit_names}
        cross: List[Tuple[str, str, Segments]] = []
        for unit in self.units:
            for module in unit.walk():
                for source, absolute, glob in self.references(module):
                    target = self.unit_of(absolute)
                    if target is None or target == unit.name:
                        continue
                    if target == "":
                        if glob:
                            continue
                        raise self.fail(
                            f"{source} uses {'::'.join(absolute)}, which stays in the crate root"
                        )
                    counts[unit.name][target] = counts[unit.name].get(target, 0) + 1
                    cross.append((unit.name, target, absolute))
        return counts, cross

    def check_root_references(self) -> None:
        for source, absolute, glob in self.references(self.crate.root_module):
            if glob or not self.unit_of(absolute):
                continue
            if not self.exported(absolute):
                raise self.fail(f"{source} uses {'::'.join(absolute)}, which is not public")


def plan_crate_split(
    pattern: str, project: Project, violation: Violation, context: PlanContext
) -> RefactorPlan:
    crate = project.crate(violation.location.crate or "")
    if crate is None:
        raise PlanningError(pattern, f"crate {violation.location.crate} not found")
    split = _CrateSplit(pattern, project, crate)
    if len(split.units) < 2:
        raise split.fail("fewer than two top-level modules to distribute")
    split.check_declarations()

    max_size = violation.maximum or context.config.thresholds.max_modules_per_crate
    sizes = {u.name: sum(1 for _ in u.walk()) for u in split.units}
    counts, cross = split.dependencies()
    split.check_root_references()
    groups = group_units(
        pattern, split.unit_names, sizes, undirected_edges(counts), max_size, context,
        f"Units are the top-level modules of crate {crate.name}.",
    )
    group_of = {name: index for index, group in enumerate(groups) for name in group}

    graph: Dict[int, Set[int]] = {i: set() for i in range(len(groups))}
    for source, target, absolute in cross:
        if group_of[source] == group_of[target]:
            continue
        if not split.exported(absolute):
            raise split.fail(f"'{'::'.join(absolute)}' is used from another group but is not public")
        graph[group_of[source]].add(group_of[target])
    cycle = find_cycle({str(k): {str(v) for v in vs} for k, vs in graph.items()})
    if cycle:
        described = " -> ".join("+".join(groups[int(i)]) for i in cycle)
        raise split.fail(f"grouping creates a dependency cycle between new crates: {described}")

    root = Path(project.root)
    original = load_toml_file(root / crate.manifest)
    taken = {c.name for c in project.crates} | {c.lib_name for c in project.crates}
    for table in _COPIED_DEPENDENCY_TABLES:
        taken.update((original.get(table) or {}).keys())
    parent = posixpath.dirname(crate.root)
    targets = [fresh_directory(f"{split.lib}_{group[0]}", parent, taken, root) for group in groups]

    operations: List[FileOperation] = []
    cargo: List[CargoChange] = []
    moved = MovedItemTable()
    units = {u.name: u for u in split.units}
    for index, (group, (name, directory)) in enumerate(zip(groups, targets)):
        extra = [
            (targets[dep][0], relative_dir(targets[dep][1], directory)) for dep in sorted(graph[index])
        ]
        src = posixpath.join(directory, "src")
        operations.append(CreateDirectory(directory))
        operations.append(CreateDirectory(src))
        operations.append(
            CreateFile(
                posixpath.join(directory, "Cargo.toml"),
                render_manifest(name, original, crate.root, directory, extra),
            )
        )
        operations.append(
            CreateFile(posixpath.join(src, "lib.rs"), "".join(f"pub mod {u};\n" for u in group))
        )
        for unit_name in group:
            unit = units[unit_name]
            operations.extend(_unit_moves(unit, src, root))
            for module in unit.walk():
                moved.add(module.path, name + module.path[len(split.lib):])
                for item in module.items:
                    if item.kind is not ItemKind.IMPL_BLOCK:
                        moved.add(item.id, name + item.id[len(split.lib):])

        member = workspace_change(project, directory)
        if member is not None:
            cargo.append(member)
        cargo.append(AddDependency(crate.manifest, name, relative_dir(directory, crate.root)))

    operations.append(_reexport_units(project, crate, group_of, targets))
    logger.info(f"Splitting crate {crate.name} into {', '.join(n for n, _ in targets)}")
    return RefactorPlan(
        pattern=pattern,
        description=f"split crate {crate.name} into {', '.join(n for n, _ in targets)}",
        operations=tuple(operations),
        cargo_changes=tuple(cargo),
        moved_items=moved,
        resolves=(violation,),
    )


def _unit_moves(unit: Module, src: str, root: Path) -> List[MoveFile]:
    destination = posixpath.join(src, unit.name)
    if unit.is_entry:
        return [MoveFile(posixpath.dirname(unit.file), destination)]
    moves = [MoveFile(unit.file, destination + ".rs")]
    if (root / unit.child_dir).is_dir():
        moves.append(MoveFile(unit.child_dir, destination))
    return moves


def _reexport_units(
    project: Project, crate: Crate, group_of: Dict[str, int], targets: List[Tuple[str, str]]
) -> ModifyFile:
    """Replace every ``mod unit;`` of the root file with ``use new_crate::unit;``."""
    root_module = crate.root_module
    lines = source_lines(project.root, root_module.file)
    changes = []
    for unit in root_module.children:
        decl = root_module.mod_declaration(unit.name)
        first = decl.header_line - 1
        prefix = lines[first][: decl.header_column]
        vis = f"{decl.visibility} " if decl.visibility else ""
        rendered = f"{prefix}{vis}use {targets[group_of[unit.name]][0]}::{unit.name};"
        changes.append(TextChange(first, decl.end_line, (rendered,)))
    return ModifyFile(root_module.file, tuple(changes))


class SplitCratePattern:
    """Splits oversized crates, and oversized components into sub-directories."""

    name = "split_crate"
    description = "split an oversized crate into new crates, or a component into sub-directories"

    def matches(self, violation: Violation) -> bool:
        return violation.kind in (RuleKind.TOO_MANY_MODULES, RuleKind.TOO_MANY_CRATES)

    def plan(self, project: Project, violation: Violation, context: PlanContext) -> RefactorPlan:
        if violation.kind is RuleKind.TOO_MANY_CRATES:
            return plan_component_split(self.name, project, violation, context)
        return plan_crate_split(self.name, project, violation, context)
