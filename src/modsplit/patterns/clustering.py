"""Grouping heuristics used by the split patterns.

All functions are deterministic: ties are broken by names or source order,
never by hash or dict iteration order of unordered inputs.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

import numpy as np


def affinity_matrix(names: Sequence[str], edges: Iterable[Tuple[str, str, int]]) -> np.ndarray:
    """Symmetric weight matrix over ``names`` from (a, b, weight) edges.

    Self-edges and edges to unknown names are ignored.
    """
    index = {name: i for i, name in enumerate(names)}
    matrix = np.zeros((len(names), len(names)), dtype=np.int64)
    for a, b, weight in edges:
        if a == b or a not in index or b not in index:
            continue
        matrix[index[a], index[b]] += weight
        matrix[index[b], index[a]] += weight
    return matrix


def target_group_count(total: int, max_size: int) -> int:
    return max(2, math.ceil(total / max_size))


def greedy_merge(
    names: Sequence[str],
    sizes: Dict[str, int],
    affinity: np.ndarray,
    max_size: int,
    target: Optional[int] = None,
) -> List[List[str]]:
    """Agglomerative grouping of ``names``.

    Starting from singletons, repeatedly merge the pair of groups with the
    highest summed affinity whose merged size stays within ``max_size``.
    Ties go to the lexicographically smallest pair of group names (a group
    is named after its smallest member). Stops at ``target`` groups (default
    ``max(2, ceil(total / max_size))``) or when no merge is feasible.

    Returns groups with members in the order of ``names``, ordered by their
    first member.

    Raises:
        ValueError: If a single unit is larger than ``max_size``
    """
    for name in names:
        if sizes[name] > max_size:
            raise ValueError(f"'{name}' alone has size {sizes[name]} (max {max_size})")
    if target is None:
        target = target_group_count(sum(sizes[n] for n in names), max_size)

    groups: List[List[int]] = [[i] for i in range(len(names))]
    weights = affinity.astype(np.int64).copy()
    group_size = [sizes[n] for n in names]

    def label(group: List[int]) -> str:
        return min(names[i] for i in group)

    while len(groups) > target:
        best = None
        for a in range(len(groups)):
            for b in range(a + 1, len(groups)):
                if group_size[a] + group_size[b] > max_size:
                    continue
                pair = tuple(sorted((label(groups[a]), label(groups[b]))))
                key = (-int(weights[a, b]), pair)
                if best is None or key < best[0]:
                    best = (key, a, b)
        if best is None:
            break
        _, a, b = best
        groups[a] = groups[a] + groups[b]
        group_size[a] += group_size[b]
        weights[a, :] += weights[b, :]
        weights[:, a] += weights[:, b]
        weights[a, a] = 0
        weights = np.delete(np.delete(weights, b, axis=0), b, axis=1)
        del groups[b]
        del group_size[b]

    ordered = [sorted(g) for g in groups]
    ordered.sort(key=lambda g: g[0])
    return [[names[i] for i in g] for g in ordered]


def connected_components(nodes: Sequence[str], adjacency: Dict[str, Set[str]]) -> List[List[str]]:
    """Components of an undirected graph, each in ``nodes`` order, ordered by first node."""
    position = {n: i for i, n in enumerate(nodes)}
    seen: Set[str] = set()
    components: List[List[str]] = []
    for start in nodes:
        if start in seen:
            continue
        component = []
        stack = [start]
        seen.add(start)
        while stack:
            node = stack.pop()
            component.append(node)
            for neighbor in sorted(adjacency.get(node, ()), key=lambda n: position.get(n, 0)):
                if neighbor in position and neighbor not in seen:
                    seen.add(neighbor)
                    stack.append(neighbor)
        components.append(sorted(component, key=position.__getitem__))
    return components


def find_cycle(adjacency: Dict[str, Set[str]]) -> Optional[List[str]]:
    """A directed cycle as a node list, or None (iterative DFS, sorted order)."""
    WHITE, GREY, BLACK = 0, 1, 2
    color = {n: WHITE for n in adjacency}
    for targets in adjacency.values():
        for t in targets:
            color.setdefault(t, WHITE)

    for root in sorted(color):
        if color[root] != WHITE:
            continue
        path = [root]
        color[root] = GREY
        stack = [(root, iter(sorted(adjacency.get(root, ()))))]
        while stack:
            node, it = stack[-1]
            advanced = False
            for nxt in it:
                if color[nxt] == GREY:
                    return path[path.index(nxt):] + [nxt]
                if color[nxt] == WHITE:
                    color[nxt] = GREY
                    path.append(nxt)
                    stack.append((nxt, iter(sorted(adjacency.get(nxt, ())))))
                    advanced = True
                    break
            if not advanced:
                color[node] = BLACK
                stack.pop()
                path.pop()
    return None


def pack_functions(
    functions: Sequence[str],
    adjacency: Dict[str, Set[str]],
    out_degree: Dict[str, int],
    capacity: int,
) -> List[List[str]]:
    """Partition functions into chunks of at most ``capacity``.

    Connected components with at least one edge are packed first-fit
    decreasing; a component larger than ``capacity`` is cut into full
    chunks by descending out-degree (ties in source order). Isolated
    functions are then dealt round-robin over chunks with room, opening new
    chunks when all are full. At least two chunks are produced whenever
    there are at least two functions.
    """
    position = {f: i for i, f in enumerate(functions)}
    components = connected_components(functions, adjacency)
    linked = [c for c in components if len(c) > 1]
    isolated = [c[0] for c in components if len(c) == 1]
    linked.sort(key=lambda c: (-len(c), position[c[0]]))

    chunks: List[List[str]] = []
    for component in linked:
        if len(component) > capacity:
            ranked = sorted(component, key=lambda f: (-out_degree.get(f, 0), position[f]))
            for start in range(0, len(ranked), capacity):
                chunks.append(ranked[start:start + capacity])
            continue
        for chunk in chunks:
            if len(chunk) + len(component) <= capacity:
                chunk.extend(component)
                break
        else:
            chunks.append(list(component))

    if not chunks and isolated:
        for _ in range(max(2 if len(functions) > 1 else 1, math.ceil(len(functions) / capacity))):
            chunks.append([])
    elif len(chunks) == 1 and isolated and len(functions) > 1:
        chunks.append([])

    cursor = 0
    for function in isolated:
        placed = False
        for step in range(len(chunks)):
            index = (cursor + step) % len(chunks)
            if len(chunks[index]) < capacity:
                chunks[index].append(function)
                cursor = index + 1
                placed = True
                break
        if not placed:
            chunks.append([function])
            cursor = 0

    chunks = [sorted(c, key=position.__getitem__) for c in chunks if c]
    return chunks
