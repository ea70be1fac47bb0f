"""
Dependency graph of components and capabilities.

Nodes: ``component:<name>@<version>`` and ``capability:<name>``.
Edges point from a dependent node to what it depends on:

- a capability depends on every component offering it
  (``capability:X -> component:A@1.0.0``);
- a component depends on every capability it requires
  (``component:B@1.0.0 -> capability:X``).

The graph is only used for ordering. It must stay acyclic; a cycle is a
configuration error raised when the order is computed.
"""

from __future__ import annotations

from enum import Enum

import networkx as nx

from pluginhost.core.errors import GraphCycleError


class NodeKind(str, Enum):
    COMPONENT = "component"
    CAPABILITY = "capability"


def component_key(name: str, version: str) -> str:
    return f"{NodeKind.COMPONENT.value}:{name}@{version}"


def capability_key(name: str) -> str:
    return f"{NodeKind.CAPABILITY.value}:{name}"


class DependencyGraph:
    """Bipartite component/capability graph backed by ``networkx.DiGraph``."""

    def __init__(self) -> None:
        self._graph = nx.DiGraph()
        self._seq = 0

    def _add_node(self, key: str, kind: NodeKind) -> str:
        if key not in self._graph:
            self._graph.add_node(key, kind=kind, seq=self._seq)
            self._seq += 1
        return key

    def add_component(self, name: str, version: str) -> str:
        return self._add_node(component_key(name, version), NodeKind.COMPONENT)

    def add_capability(self, name: str) -> str:
        return self._add_node(capability_key(name), NodeKind.CAPABILITY)

    def add_dependency(self, dependent: str, dependency: str) -> None:
        """Record that ``dependent`` must come after ``dependency``."""
        for key in (dependent, dependency):
            if key not in self._graph:
                raise KeyError(f"Unknown graph node: {key}")
        self._graph.add_edge(dependent, dependency)

    def offer(self, name: str, version: str, capability: str) -> None:
        self.add_dependency(self.add_capability(capability), self.add_component(name, version))

    def require(self, name: str, version: str, capability: str) -> None:
        self.add_dependency(self.add_component(name, version), self.add_capability(capability))

    def has_node(self, key: str) -> bool:
        return key in self._graph

    def dependencies_of(self, key: str) -> list[str]:
        """Direct dependencies of ``key``."""
        return sorted(self._graph.successors(key), key=self._sequence)

    def dependants_of(self, key: str) -> list[str]:
        return sorted(self._graph.predecessors(key), key=self._sequence)

    def _sequence(self, key: str) -> int:
        return self._graph.nodes[key]["seq"]

    def overall_order(self) -> list[str]:
        """Every node, dependencies first.

        Unrelated nodes keep insertion order.

        Raises:
            GraphCycleError: the graph contains a cycle
        """
        try:
            return list(
                nx.lexicographical_topological_sort(
                    self._graph.reverse(copy=False),
                    key=self._sequence,
                )
            )
        except nx.NetworkXUnfeasible:
            edges = nx.find_cycle(self._graph)
            cycle = [source for source, _ in edges]
            cycle.append(cycle[0])
            raise GraphCycleError(cycle) from None

    def component_order(self) -> list[str]:
        """``overall_order`` restricted to component nodes."""
        return [key for key in self.overall_order() if self._graph.nodes[key]["kind"] is NodeKind.COMPONENT]

    def unresolved_capabilities(self) -> list[str]:
        """Capability names that are required but offered by no component."""
        return [
            key.split(":", 1)[1]
            for key, kind in self._graph.nodes(data="kind")
            if kind is NodeKind.CAPABILITY and self._graph.out_degree(key) == 0
        ]

    def __len__(self) -> int:
        return self._graph.number_of_nodes()

    def __contains__(self, key: object) -> bool:
        return key in self._graph


__all__ = ["DependencyGraph", "NodeKind", "capability_key", "component_key"]
