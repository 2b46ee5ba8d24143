"""Dependency graph construction and ordering."""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence

from statecraft.core.errors import CycleDetected

_UNVISITED, _IN_PROGRESS, _DONE = 0, 1, 2


def topo_sort(dependencies: Mapping[str, Sequence[str]]) -> list[str]:
    """Order nodes so every dependency precedes its dependents.

    Depth-first search with three-colour marking. Nodes that only appear as
    dependencies are included. Ties follow the mapping's iteration order.

    Raises:
        CycleDetected: naming the node at which the cycle was found.
    """
    state: dict[str, int] = {}
    order: list[str] = []

    def visit(node: str) -> None:
        mark = state.get(node, _UNVISITED)
        if mark == _IN_PROGRESS:
            raise CycleDetected(node)
        if mark == _DONE:
            return
        state[node] = _IN_PROGRESS
        for dep in dependencies.get(node, ()):
            visit(dep)
        state[node] = _DONE
        order.append(node)

    for node in dependencies:
        if state.get(node, _UNVISITED) == _UNVISITED:
            visit(node)
    return order


def teardown_order(dependencies: Mapping[str, Sequence[str]]) -> list[str]:
    """Reverse of :func:`topo_sort`: dependents come before what they depend on."""
    return list(reversed(topo_sort(dependencies)))


class DependencyGraph:
    """Incrementally built, always-acyclic dependency graph."""

    def __init__(self) -> None:
        self._edges: dict[str, list[str]] = {}

    def __contains__(self, node: object) -> bool:
        return node in self._edges

    def __len__(self) -> int:
        return len(self._edges)

    @property
    def nodes(self) -> list[str]:
        return list(self._edges)

    def add(self, node: str, dependencies: Iterable[str] = ()) -> None:
        """Add ``node`` (or extend its edges) and reject edges that close a cycle."""
        deps = self._edges.setdefault(node, [])
        for dep in dependencies:
            if dep == node or self._reaches(dep, node):
                raise CycleDetected(node)
            if dep not in deps:
                deps.append(dep)
            self._edges.setdefault(dep, [])

    def dependencies_of(self, node: str) -> list[str]:
        return list(self._edges.get(node, ()))

    def dependents_of(self, node: str) -> list[str]:
        return [other for other, deps in self._edges.items() if node in deps]

    def subgraph(self, nodes: Iterable[str]) -> dict[str, list[str]]:
        """Mapping restricted to ``nodes`` (edges to other nodes are dropped)."""
        keep = set(nodes)
        return {
            node: [dep for dep in deps if dep in keep]
            for node, deps in self._edges.items()
            if node in keep
        }

    def as_mapping(self) -> dict[str, list[str]]:
        return {node: list(deps) for node, deps in self._edges.items()}

    def execution_order(self) -> list[str]:
        return topo_sort(self._edges)

    def teardown_order(self) -> list[str]:
        return teardown_order(self._edges)

    def _reaches(self, start: str, target: str) -> bool:
        stack = [start]
        seen: set[str] = set()
        while stack:
            current = stack.pop()
            if current == target:
                return True
            if current in seen:
                continue
            seen.add(current)
            stack.extend(self._edges.get(current, ()))
        return False
