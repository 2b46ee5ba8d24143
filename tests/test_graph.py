"""Tests for dependency ordering."""

import itertools

import pytest

from statecraft.core.errors import CycleDetected
from statecraft.graph import DependencyGraph, teardown_order, topo_sort


def _respects(order, mapping):
    position = {node: index for index, node in enumerate(order)}
    return all(position[dep] < position[node] for node, deps in mapping.items() for dep in deps)


class TestTopoSort:
    """Tests for topo_sort and teardown_order."""

    def test_chain(self):
        assert topo_sort({"c": ["b"], "b": ["a"], "a": []}) == ["a", "b", "c"]

    def test_dependencies_only_listed_as_edges_are_included(self):
        order = topo_sort({"api": ["db"]})

        assert order == ["db", "api"]

    def test_valid_for_every_declaration_order(self):
        edges = {"api": ["db", "cache"], "db": ["net"], "cache": ["net"], "net": [], "cdn": ["api"]}

        for nodes in itertools.permutations(edges):
            mapping = {node: edges[node] for node in nodes}
            order = topo_sort(mapping)
            assert sorted(order) == sorted(edges)
            assert _respects(order, mapping)

    def test_cycle_detected(self):
        with pytest.raises(CycleDetected) as exc_info:
            topo_sort({"a": ["b"], "b": ["c"], "c": ["a"]})

        assert exc_info.value.node in {"a", "b", "c"}

    def test_self_cycle(self):
        with pytest.raises(CycleDetected):
            topo_sort({"a": ["a"]})

    def test_teardown_is_reverse(self):
        mapping = {"api": ["db"], "db": []}

        assert teardown_order(mapping) == ["api", "db"]


class TestDependencyGraph:
    """Tests for the incremental graph."""

    def test_add_and_query(self):
        graph = DependencyGraph()
        graph.add("db")
        graph.add("api", ["db"])
        graph.add("worker", ["db"])

        assert "db" in graph
        assert len(graph) == 3
        assert graph.dependencies_of("api") == ["db"]
        assert sorted(graph.dependents_of("db")) == ["api", "worker"]
        assert graph.execution_order()[0] == "db"
        assert graph.teardown_order()[-1] == "db"

    def test_rejects_edge_closing_cycle(self):
        graph = DependencyGraph()
        graph.add("b", ["a"])
        graph.add("c", ["b"])

        with pytest.raises(CycleDetected):
            graph.add("a", ["c"])

    def test_subgraph_drops_external_edges(self):
        graph = DependencyGraph()
        graph.add("api", ["db", "cache"])

        assert graph.subgraph(["api", "db"]) == {"api": ["db"], "db": []}
