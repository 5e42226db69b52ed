"""Deterministic dependency ordering of transaction steps.

Edges:
    CreateDirectory(d)           -> anything created inside d
    CreateFile/MoveFile(p)       -> ModifyFile on p (or below p), and any
                                    ModifyFile listing p in depends_on
    MoveFile(crate dir)          -> manifest edits inside the moved crate
    crate manifest created/moved, AddWorkspaceMember(dir)
                                 -> AddDependency/UpdateDependencyPath to dir
    everything                   -> DeleteFile

Ready steps are taken from a heap keyed by (plan index, position), so the
total order is reproducible.
"""

from __future__ import annotations

import heapq
import posixpath
from typing import Dict, List, Set

from ..exceptions import ConflictError
from .models import (
    AddDependency,
    AddWorkspaceMember,
    CreateDirectory,
    CreateFile,
    DeleteFile,
    ModifyFile,
    MoveFile,
    UpdateDependencyPath,
)
from .overlay import is_under
from .validation import Step


def _created_path(step: Step):
    action = step.action
    if isinstance(action, (CreateFile, CreateDirectory)):
        return action.path
    if isinstance(action, MoveFile):
        return action.destination
    return None


def _edited_path(step: Step):
    action = step.action
    if isinstance(action, ModifyFile):
        return action.path
    if step.is_cargo:
        return action.manifest
    return None


def _dependency_target(step: Step):
    """Crate directory a dependency edit points at."""
    action = step.action
    if isinstance(action, (AddDependency, UpdateDependencyPath)):
        return posixpath.normpath(posixpath.join(posixpath.dirname(action.manifest), action.path))
    return None


def order_steps(steps: List[Step]) -> List[Step]:
    """Topologically sort ``steps``.

    Raises:
        ConflictError: If the dependencies form a cycle
    """
    count = len(steps)
    edges: Dict[int, Set[int]] = {i: set() for i in range(count)}

    def add_edge(before: int, after: int) -> None:
        if before != after:
            edges[before].add(after)

    deletes = [i for i, s in enumerate(steps) if isinstance(s.action, DeleteFile)]
    for i, first in enumerate(steps):
        created = _created_path(first)
        for j, second in enumerate(steps):
            if i == j:
                continue
            if isinstance(first.action, CreateDirectory):
                target = _created_path(second)
                if target is not None and target != created and is_under(target, created):
                    add_edge(i, j)
            if created is not None and not isinstance(first.action, CreateDirectory):
                edited = _edited_path(second)
                if edited is not None and is_under(edited, created):
                    add_edge(i, j)
                if isinstance(second.action, ModifyFile) and any(
                    is_under(d, created) or is_under(created, d) for d in second.action.depends_on
                ):
                    add_edge(i, j)
            dep_dir = _dependency_target(second)
            if dep_dir is not None:
                if created is not None and (
                    created == posixpath.join(dep_dir, "Cargo.toml") or created == dep_dir
                ):
                    add_edge(i, j)
                if isinstance(first.action, AddWorkspaceMember):
                    member = posixpath.normpath(
                        posixpath.join(posixpath.dirname(first.action.manifest), first.action.member)
                    )
                    if member == dep_dir:
                        add_edge(i, j)

    for d in deletes:
        for i in range(count):
            if i not in deletes:
                add_edge(i, d)

    indegree = [0] * count
    for i, targets in edges.items():
        for j in targets:
            indegree[j] += 1

    heap = [(steps[i].key, i) for i in range(count) if indegree[i] == 0]
    heapq.heapify(heap)
    ordered: List[Step] = []
    while heap:
        _, i = heapq.heappop(heap)
        ordered.append(steps[i])
        for j in sorted(edges[i]):
            indegree[j] -= 1
            if indegree[j] == 0:
                heapq.heappush(heap, (steps[j].key, j))

    if len(ordered) != count:
        stuck = [steps[i].describe() for i in range(count) if indegree[i] > 0]
        raise ConflictError("operations depend on each other in a cycle", stuck)
    return ordered
