"""Component split: move the crates of a crowded directory into sub-directories."""

from __future__ import annotations

import posixpath
from pathlib import Path
from typing import Dict, List, Tuple

from ..config import load_toml_file
from ..exceptions import PlanningError
from ..logging_config import get_logger
from ..model import Project, read_manifest
from ..refactor.models import (
    AddWorkspaceMember,
    CargoChange,
    CreateDirectory,
    FileOperation,
    MoveFile,
    RefactorPlan,
    RemoveWorkspaceMember,
    UpdateDependencyPath,
)
from ..rules import components
from ..rules.models import Violation
from ._workspace import fresh_directory, glob_covers, group_units, relative_dir
from .base import PlanContext

logger = get_logger(__name__)


def _member_changes(
    project: Project, destinations: Dict[str, str], pattern: str
) -> List[CargoChange]:
    """Swap the moved crates' workspace members for their new directories.

    A glob member is dropped when every crate it matches moves; a glob
    that would keep matching some of the crates cannot be rewritten.
    """
    manifest_path = project.root_manifest or "Cargo.toml"
    manifest = read_manifest(project.root, manifest_path)
    if manifest.workspace_members is None:
        raise PlanningError(pattern, f"{manifest_path} has no [workspace] table")
    base = posixpath.dirname(manifest_path)
    roots = [c.root for c in project.crates]
    changes: List[CargoChange] = []
    for member in manifest.workspace_members:
        if any(ch in member for ch in "*?["):
            matched = [r for r in roots if glob_covers(posixpath.join(base, member), r)]
            hit = [r for r in matched if r in destinations]
            if not hit:
                continue
            if len(hit) != len(matched):
                raise PlanningError(
                    pattern, f"workspace member glob '{member}' also matches crates that stay"
                )
            changes.append(RemoveWorkspaceMember(manifest_path, member))
        elif posixpath.normpath(posixpath.join(base, member)) in destinations:
            changes.append(RemoveWorkspaceMember(manifest_path, member))
    for old in sorted(destinations):
        changes.append(AddWorkspaceMember(manifest_path, relative_dir(destinations[old], base)))
    return changes


def _dependency_changes(project: Project, destinations: Dict[str, str]) -> List[CargoChange]:
    """Re-point path dependencies whose either end moved."""
    changes: Dict[Tuple[str, str], CargoChange] = {}
    for crate in project.crates:
        own = destinations.get(crate.root, crate.root)
        manifest = posixpath.join(own, posixpath.basename(crate.manifest))
        for key, written in crate.path_dependencies:
            target = posixpath.normpath(posixpath.join(crate.root, written))
            if crate.root not in destinations and target not in destinations:
                continue
            path = relative_dir(destinations.get(target, target), own)
            if path != posixpath.normpath(written):
                changes[(manifest, key)] = UpdateDependencyPath(manifest, key, path)

    root_manifest = project.root_manifest or "Cargo.toml"
    data = load_toml_file(Path(project.root) / root_manifest)
    shared = (data.get("workspace") or {}).get("dependencies") or {}
    base = posixpath.dirname(root_manifest)
    for key, spec in shared.items():
        if not isinstance(spec, dict) or "path" not in spec:
            continue
        target = posixpath.normpath(posixpath.join(base, str(spec["path"])))
        if target in destinations:
            changes.setdefault(
                (root_manifest, key),
                UpdateDependencyPath(root_manifest, key, relative_dir(destinations[target], base)),
            )
    return list(changes.values())


def plan_component_split(
    pattern: str, project: Project, violation: Violation, context: PlanContext
) -> RefactorPlan:
    config = context.config
    component = next(
        (c for c in components(project, config) if c.name == violation.component), None
    )
    if component is None:
        raise PlanningError(pattern, f"component {violation.component} not found")
    if component.name in config.components:
        raise PlanningError(
            pattern, f"component '{component.name}' is configured by name; regroup it in the config"
        )
    if any(not c.root for c in component.crates):
        raise PlanningError(pattern, f"component '{component.name}' contains the root package")

    crates = sorted(component.crates, key=lambda c: c.root)
    names = [c.name for c in crates]
    by_name = {c.name: c for c in crates}
    by_root = {c.root: c.name for c in crates}
    counts: Dict[str, Dict[str, int]] = {n: {} for n in names}
    for crate in crates:
        for target in crate.dependency_dirs().values():
            other = by_root.get(target)
            if other is not None and other != crate.name:
                counts[crate.name][other] = counts[crate.name].get(other, 0) + 1
    edges = sorted(
        {(min(a, b), max(a, b)): counts[a].get(b, 0) + counts[b].get(a, 0)
         for a in names for b in counts[a]}.items()
    )

    max_size = violation.maximum or config.thresholds.max_crates_per_component
    groups = group_units(
        pattern, names, {n: 1 for n in names}, [(a, b, w) for (a, b), w in edges], max_size,
        context, f"Units are the crates of directory {component.directory}.",
    )

    root = Path(project.root)
    label = posixpath.basename(component.directory)
    taken = {posixpath.basename(c.root) for c in crates}
    operations: List[FileOperation] = []
    destinations: Dict[str, str] = {}
    for group in groups:
        first = posixpath.basename(by_name[group[0]].root)
        _, directory = fresh_directory(f"{label}_{first}", component.directory, taken, root)
        operations.append(CreateDirectory(directory))
        for name in group:
            old = by_name[name].root
            new = posixpath.join(directory, posixpath.basename(old))
            destinations[old] = new
            operations.append(MoveFile(old, new))

    cargo = _member_changes(project, destinations, pattern) + _dependency_changes(project, destinations)
    logger.info(f"Regrouping {len(crates)} crates of {component.directory} into {len(groups)} directories")
    return RefactorPlan(
        pattern=pattern,
        description=f"split component {component.name} into {len(groups)} directories",
        operations=tuple(operations),
        cargo_changes=tuple(cargo),
        resolves=(violation,),
    )
