"""Helpers shared by the crate and component splits: grouping, naming,
relative paths and workspace membership."""

from __future__ import annotations

import fnmatch
import posixpath
from collections import OrderedDict
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Set, Tuple

from ..exceptions import OracleError, PlanningError
from ..logging_config import get_logger
from ..model import Project, read_manifest
from ..refactor.models import AddWorkspaceMember
from ._edits import file_taken
from .base import PlanContext
from .clustering import affinity_matrix, greedy_merge

logger = get_logger(__name__)


def group_units(
    pattern: str,
    names: Sequence[str],
    sizes: Dict[str, int],
    edges: Sequence[Tuple[str, str, int]],
    max_size: int,
    context: PlanContext,
    subject: str,
) -> List[List[str]]:
    """Partition ``names``: the oracle's answer when it gives a valid one,
    the greedy heuristic otherwise. Members keep ``names`` order.

    Raises:
        PlanningError: If no partition into two or more groups fits
    """
    position = {name: i for i, name in enumerate(names)}
    if context.oracle is not None:
        units = OrderedDict((name, sizes[name]) for name in names)
        try:
            groups = context.oracle.suggest_groups(units, edges, max_size, context=subject)
        except OracleError as e:
            logger.warning(f"Oracle grouping for {subject} rejected: {e.message}; using heuristic")
        else:
            logger.info(f"Using oracle grouping for {subject}")
            ordered = [sorted(g, key=position.__getitem__) for g in groups]
            return sorted(ordered, key=lambda g: position[g[0]])

    try:
        groups = greedy_merge(names, sizes, affinity_matrix(names, edges), max_size)
    except ValueError as e:
        raise PlanningError(pattern, str(e))
    if len(groups) < 2:
        raise PlanningError(pattern, f"{subject} cannot be split into two or more groups")
    return groups


def undirected_edges(counts: Dict[str, Dict[str, int]]) -> List[Tuple[str, str, int]]:
    """(a, b, weight) with a < b, weights summed over both directions."""
    merged: Dict[Tuple[str, str], int] = {}
    for source, targets in counts.items():
        for target, weight in targets.items():
            key = (min(source, target), max(source, target))
            merged[key] = merged.get(key, 0) + weight
    return [(a, b, w) for (a, b), w in sorted(merged.items())]


def fresh_directory(base: str, parent: str, taken: Set[str], root: Path) -> Tuple[str, str]:
    """First ``base``, ``base_2``, ... that is neither taken nor on disk under ``parent``."""
    n = 1
    while True:
        name = base if n == 1 else f"{base}_{n}"
        directory = posixpath.join(parent, name)
        n += 1
        if name in taken or file_taken(root, directory):
            continue
        taken.add(name)
        return name, directory


def relative_dir(target: str, start: str) -> str:
    return posixpath.relpath(target or ".", start or ".")


def glob_covers(pattern: str, directory: str) -> bool:
    """Cargo member globs never match across ``/``."""
    pattern = posixpath.normpath(pattern)
    return fnmatch.fnmatchcase(directory, pattern) and pattern.count("/") == directory.count("/")


def workspace_change(project: Project, member: str) -> Optional[AddWorkspaceMember]:
    """Member addition for ``member`` unless a glob already covers it."""
    manifest_path = project.root_manifest or "Cargo.toml"
    manifest = read_manifest(project.root, manifest_path)
    for pattern in manifest.workspace_members or ():
        if any(ch in pattern for ch in "*?[") and glob_covers(pattern, member):
            return None
    return AddWorkspaceMember(manifest_path, member)


