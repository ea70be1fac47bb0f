"""Tests for pluginhost.app.graph: DependencyGraph ordering."""

import pytest

from pluginhost.app.graph import DependencyGraph, capability_key, component_key
from pluginhost.core.errors import GraphCycleError


class TestEdges:
    def test_offer_and_require_edges(self):
        graph = DependencyGraph()
        graph.offer("storage", "1.0.0", "db")
        graph.require("search", "1.0.0", "db")

        assert graph.dependencies_of(capability_key("db")) == [component_key("storage", "1.0.0")]
        assert graph.dependencies_of(component_key("search", "1.0.0")) == [capability_key("db")]
        assert graph.dependants_of(capability_key("db")) == [component_key("search", "1.0.0")]

    def test_unknown_node(self):
        graph = DependencyGraph()
        graph.add_component("a", "1.0.0")
        with pytest.raises(KeyError):
            graph.add_dependency(component_key("a", "1.0.0"), capability_key("nope"))

    def test_nodes_are_not_duplicated(self):
        graph = DependencyGraph()
        graph.add_capability("db")
        graph.add_capability("db")
        assert len(graph) == 1
        assert graph.has_node(capability_key("db"))


class TestOrder:
    def test_provider_before_consumer_in_either_order(self):
        for consumer_first in (True, False):
            graph = DependencyGraph()
            steps = [
                lambda: graph.require("b", "1.0.0", "X"),
                lambda: graph.offer("a", "1.0.0", "X"),
            ]
            if not consumer_first:
                steps.reverse()
            for step in steps:
                step()

            assert graph.component_order() == [component_key("a", "1.0.0"), component_key("b", "1.0.0")]

    def test_unrelated_nodes_keep_insertion_order(self):
        graph = DependencyGraph()
        for name in ("c", "a", "b"):
            graph.add_component(name, "1.0.0")
        assert graph.component_order() == [component_key(name, "1.0.0") for name in ("c", "a", "b")]

    def test_chain(self):
        graph = DependencyGraph()
        graph.require("app", "1.0.0", "search")
        graph.offer("search", "1.0.0", "search")
        graph.require("search", "1.0.0", "storage")
        graph.offer("storage", "1.0.0", "storage")

        order = graph.component_order()
        assert order == [component_key(n, "1.0.0") for n in ("storage", "search", "app")]

    def test_cycle_raises(self):
        graph = DependencyGraph()
        graph.offer("a", "1.0.0", "X")
        graph.require("a", "1.0.0", "Y")
        graph.offer("b", "1.0.0", "Y")
        graph.require("b", "1.0.0", "X")

        with pytest.raises(GraphCycleError) as exc_info:
            graph.overall_order()
        cycle = exc_info.value.cycle
        assert cycle[0] == cycle[-1]
        assert component_key("a", "1.0.0") in cycle

    def test_self_offer_and_require_is_a_cycle(self):
        graph = DependencyGraph()
        graph.offer("a", "1.0.0", "X")
        graph.require("a", "1.0.0", "X")
        with pytest.raises(GraphCycleError):
            graph.component_order()


class TestUnresolved:
    def test_required_but_not_offered(self):
        graph = DependencyGraph()
        graph.require("search", "1.0.0", "storage")
        graph.offer("other", "1.0.0", "logging")
        assert graph.unresolved_capabilities() == ["storage"]
