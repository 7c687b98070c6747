"""
Tests for Graph building and compilation.

Compilation succeeds iff the entry node exists and there is no cycle
among fixed edges; unreachable nodes only produce warnings.
"""

import logging

import pytest

from conductor.errors import GraphDefinitionError
from conductor.graph import FunctionNode, Graph, PredicateRouter


def noop(state, config):
    pass


def make_graph(entry="entry", names=("entry", "a", "b", "exit")) -> Graph:
    graph = Graph(entry_node=entry)
    for name in names:
        graph.add_node(FunctionNode(name, noop))
    return graph


class TestCompileValidation:
    def test_missing_entry_node_is_fatal(self):
        graph = make_graph(entry="start")

        with pytest.raises(GraphDefinitionError, match="Entry node 'start' not found"):
            graph.compile()

    def test_fixed_edge_cycle_is_fatal(self):
        graph = make_graph()
        graph.add_fixed_edge("entry", "a")
        graph.add_fixed_edge("a", "b")
        graph.add_fixed_edge("b", "a")

        with pytest.raises(GraphDefinitionError, match="Cycle"):
            graph.compile()

    def test_self_loop_is_fatal(self):
        graph = make_graph()
        graph.add_fixed_edge("entry", "entry")

        with pytest.raises(GraphDefinitionError):
            graph.compile()

    def test_cycle_outside_entry_reach_is_still_fatal(self):
        graph = make_graph()
        graph.add_fixed_edge("a", "b")
        graph.add_fixed_edge("b", "a")

        with pytest.raises(GraphDefinitionError):
            graph.compile()

    def test_predicate_cycle_is_allowed(self):
        graph = make_graph()
        graph.add_fixed_edge("entry", "a")
        graph.add_conditional_edge("a", lambda state: "entry")

        compiled = graph.compile()

        assert compiled.entry_node == "entry"

    def test_diamond_compiles(self):
        graph = make_graph()
        graph.add_fixed_edge("entry", "a")
        graph.add_fixed_edge("entry", "b")
        graph.add_fixed_edge("a", "exit")
        graph.add_fixed_edge("b", "exit")

        compiled = graph.compile()

        assert compiled.is_barrier("exit")
        assert compiled.expected_sources("exit") == frozenset({"a", "b"})
        assert not compiled.is_barrier("a")
        assert compiled.successors("entry") == ["a", "b"]

    def test_duplicate_node_name_rejected(self):
        graph = make_graph()

        with pytest.raises(GraphDefinitionError, match="Duplicate"):
            graph.add_node(FunctionNode("a", noop))

    def test_unreachable_nodes_warn_but_compile(self, caplog):
        graph = make_graph()
        graph.add_fixed_edge("entry", "a")

        with caplog.at_level(logging.WARNING):
            compiled = graph.compile()

        assert set(compiled.unreachable_nodes) == {"b", "exit"}
        assert "not reachable" in caplog.text


class TestCompiledGraphIsolation:
    def test_builder_changes_do_not_leak(self):
        graph = make_graph()
        graph.add_fixed_edge("entry", "a")
        compiled = graph.compile()

        graph.add_node(FunctionNode("late", noop))
        graph.add_fixed_edge("a", "late")

        assert compiled.get_node("late") is None
        assert compiled.routers_for("a") == ()

    def test_tables_are_read_only(self):
        compiled = make_graph().compile()

        with pytest.raises(TypeError):
            compiled.nodes["x"] = FunctionNode("x", noop)

    def test_predicate_routers_do_not_count_toward_fan_in(self):
        graph = make_graph()
        graph.add_fixed_edge("entry", "a")
        graph.add_router("entry", PredicateRouter(lambda s: "exit"))
        graph.add_fixed_edge("a", "exit")

        compiled = graph.compile()

        assert compiled.expected_sources("exit") == frozenset({"a"})
        assert not compiled.is_barrier("exit")
