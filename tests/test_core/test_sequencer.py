"""Tests for execution ordering."""

import logging
import random

import pytest

from stepflow.core.exceptions import CycleError
from stepflow.core.models import WorkflowGraph
from stepflow.core.sequencer import build_execution_order


def _order(graph_doc, **kwargs):
    return build_execution_order(WorkflowGraph.model_validate(graph_doc), **kwargs)


class TestTopologicalOrder:
    def test_linear_chain(self, linear_graph):
        assert _order(linear_graph) == ["n1", "n2", "n3"]

    def test_edges_win_over_declaration_order(self, graph, node):
        """A node declared first still runs after its predecessor."""
        document = graph([node("c", "return"), node("b", "transform"), node("a", "entry")], [("a", "b"), ("b", "c")])

        assert _order(document) == ["a", "b", "c"]

    def test_ties_broken_by_declaration_order(self, graph, node):
        """Independent nodes keep the order they were declared in."""
        document = graph(
            [node("a", "entry"), node("y", "transform"), node("x", "transform"), node("z", "return")],
            [("a", "y"), ("a", "x"), ("y", "z"), ("x", "z")],
        )

        assert _order(document) == ["a", "y", "x", "z"]

    def test_disconnected_nodes_are_included(self, graph, node):
        document = graph([node("a", "entry"), node("lonely", "transform"), node("b", "return")], [("a", "b")])

        assert _order(document) == ["a", "lonely", "b"]

    def test_dangling_edges_are_ignored(self, graph, node):
        """Edges to unknown nodes carry no ordering."""
        document = graph([node("a", "entry"), node("b", "return")], [("a", "b"), ("ghost", "a")])

        assert _order(document) == ["a", "b"]

    def test_order_is_stable_across_calls(self, linear_graph):
        assert _order(linear_graph) == _order(linear_graph)


class TestCycles:
    @pytest.fixture
    def cyclic(self, graph, node):
        return graph([node("A", "entry"), node("B", "return")], [("A", "B"), ("B", "A")])

    def test_cycle_falls_back_to_declaration_order(self, cyclic, caplog):
        """A -> B -> A still yields both nodes exactly once."""
        with caplog.at_level(logging.WARNING, logger="stepflow.core.sequencer"):
            order = _order(cyclic)

        assert order == ["A", "B"]
        assert "declaration order" in caplog.text

    def test_strict_mode_raises(self, cyclic):
        with pytest.raises(CycleError) as exc_info:
            _order(cyclic, strict=True)

        assert "A, B" in str(exc_info.value)
        assert exc_info.value.phase == "sequencing"

    def test_self_loop_falls_back(self, graph, node):
        document = graph([node("a", "entry"), node("b", "return")], [("a", "b"), ("b", "b")])

        assert _order(document) == ["a", "b"]


class TestOrderingProperties:
    @pytest.mark.parametrize("seed", range(5))
    def test_every_edge_points_forward(self, graph, node, seed):
        """For acyclic graphs every edge source precedes its target."""
        rng = random.Random(seed)
        ids = [f"n{i}" for i in range(12)]
        edges = [(ids[i], ids[j]) for i in range(12) for j in range(i + 1, 12) if rng.random() < 0.25]
        shuffled = ids[:]
        rng.shuffle(shuffled)

        order = _order(graph([node(node_id, "transform") for node_id in shuffled], edges))

        assert sorted(order) == sorted(ids)
        position = {node_id: index for index, node_id in enumerate(order)}
        assert all(position[source] < position[target] for source, target in edges)
