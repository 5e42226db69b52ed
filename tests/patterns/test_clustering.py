"""Tests for the deterministic grouping heuristics."""

import numpy as np
import pytest

from modsplit.patterns.clustering import (
    affinity_matrix,
    connected_components,
    find_cycle,
    greedy_merge,
    pack_functions,
    target_group_count,
)


class TestAffinity:
    def test_symmetric_and_ignores_self_edges(self):
        matrix = affinity_matrix(["a", "b", "c"], [("a", "b", 2), ("b", "a", 1), ("c", "c", 5), ("a", "z", 9)])
        assert matrix.tolist() == [[0, 3, 0], [3, 0, 0], [0, 0, 0]]

    @pytest.mark.parametrize("total, max_size, expected", [(25, 10, 3), (5, 10, 2), (20, 10, 2)])
    def test_target_group_count(self, total, max_size, expected):
        assert target_group_count(total, max_size) == expected


class TestGreedyMerge:
    """Highest affinity merges first; ties go to the smallest names."""

    def test_strongest_pairs_merge(self):
        names = ["a", "b", "c", "d"]
        matrix = affinity_matrix(names, [("a", "c", 5), ("b", "d", 3)])
        groups = greedy_merge(names, {n: 1 for n in names}, matrix, max_size=2)
        assert groups == [["a", "c"], ["b", "d"]]

    def test_ties_broken_by_name(self):
        names = ["x", "y", "z"]
        groups = greedy_merge(names, {n: 1 for n in names}, np.zeros((3, 3), dtype=np.int64), 2)
        assert groups == [["x", "y"], ["z"]]

    def test_sizes_respected(self):
        names = ["a", "b", "c"]
        matrix = affinity_matrix(names, [("a", "b", 10), ("b", "c", 1)])
        groups = greedy_merge(names, {"a": 3, "b": 2, "c": 1}, matrix, max_size=4)
        assert groups == [["a"], ["b", "c"]]

    def test_unit_larger_than_limit(self):
        with pytest.raises(ValueError):
            greedy_merge(["a"], {"a": 5}, np.zeros((1, 1)), max_size=4)


class TestGraphHelpers:
    def test_connected_components(self):
        adjacency = {"a": {"c"}, "c": {"a"}}
        assert connected_components(["a", "b", "c"], adjacency) == [["a", "c"], ["b"]]

    def test_find_cycle(self):
        assert find_cycle({"a": {"b"}, "b": {"c"}, "c": {"a"}}) == ["a", "b", "c", "a"]

    def test_acyclic(self):
        assert find_cycle({"a": {"b", "c"}, "b": {"c"}, "c": set()}) is None


class TestPackFunctions:
    def test_isolated_functions_dealt_round_robin(self):
        functions = ["f1", "f2", "f3", "f4", "f5"]
        assert pack_functions(functions, {}, {}, capacity=3) == [["f1", "f3", "f5"], ["f2", "f4"]]

    def test_linked_functions_stay_together(self):
        adjacency = {"a": {"b"}, "b": {"a"}, "c": set(), "d": set()}
        assert pack_functions(["a", "b", "c", "d"], adjacency, {"a": 1}, capacity=3) == [
            ["a", "b", "c"],
            ["d"],
        ]

    def test_oversized_component_cut_by_out_degree(self):
        adjacency = {"a": {"b", "c"}, "b": {"a", "c"}, "c": {"a", "b"}}
        chunks = pack_functions(["c", "b", "a"], adjacency, {"a": 2, "b": 1, "c": 0}, capacity=2)
        assert chunks == [["b", "a"], ["c"]]

    def test_at_least_two_chunks(self):
        assert pack_functions(["a", "b"], {}, {}, capacity=10) == [["a"], ["b"]]
