from statecraft.graph.topo import DependencyGraph, teardown_order, topo_sort

__all__ = ["DependencyGraph", "topo_sort", "teardown_order"]
