# tests/test_graph_mutation.py
"""Tests for core/graph_mutation.py - graph intent parsing and edge updates."""

import pytest

from core.graph_mutation import HEURISTIC_DELTA, apply_graph_mutation, parse_graph_intent
from models.agent_models import GraphMutation
from models.kg_models import GraphEdge, GraphNode, KnowledgeGraph, default_knowledge_graph


class TestParseGraphIntent:
    def test_maintain_is_noop(self):
        assert parse_graph_intent("Maintain", default_knowledge_graph()) is None
        assert parse_graph_intent("maintain the current balance", default_knowledge_graph()) is None

    def test_weaken_between_mentioned_nodes(self):
        mutation = parse_graph_intent("Erode the trust between Subject and Ally", default_knowledge_graph())

        assert mutation is not None
        assert (mutation.source, mutation.target) == ("Subject", "Ally")
        assert mutation.delta == -HEURISTIC_DELTA

    def test_strengthen_uses_labels_in_order_of_appearance(self):
        mutation = parse_graph_intent("Bond The Ally closer to The Provost", default_knowledge_graph())

        assert mutation is not None
        assert (mutation.source, mutation.target) == ("Ally", "Provost")
        assert mutation.delta == HEURISTIC_DELTA

    @pytest.mark.parametrize(
        "intent",
        [
            "Sow distrust between Subject and Ally",
            "Deepen the Subject's isolation from the Ally",
            "Let mistrust grow between Subject and Ally",
        ],
    )
    def test_hostile_intent_never_strengthens(self, intent):
        mutation = parse_graph_intent(intent, default_knowledge_graph())

        assert mutation is not None
        assert (mutation.source, mutation.target) == ("Subject", "Ally")
        assert mutation.delta == -HEURISTIC_DELTA
        assert mutation.relation == "strained"

    def test_inflected_strengthen_verb(self):
        mutation = parse_graph_intent("Subject and Ally reconciled after the trial", default_knowledge_graph())

        assert mutation is not None
        assert mutation.delta == HEURISTIC_DELTA

    def test_single_node_mention_is_noop(self):
        assert parse_graph_intent("Isolate the Subject", default_knowledge_graph()) is None

    def test_no_recognised_verb_is_noop(self):
        assert parse_graph_intent("Observe Subject and Ally", default_knowledge_graph()) is None


class TestApplyGraphMutation:
    def test_existing_edge_is_shifted(self):
        graph = default_knowledge_graph()
        before = graph.find_edge("Subject", "Ally").weight

        updated = apply_graph_mutation(graph, GraphMutation(source="Subject", target="Ally", delta=-10))

        assert updated.find_edge("Subject", "Ally").weight == before - 10

    def test_shift_is_clamped(self):
        graph = KnowledgeGraph(
            nodes=[GraphNode(id="a", label="A"), GraphNode(id="b", label="B")],
            edges=[GraphEdge(source="a", target="b", relation="r", weight=95)],
        )

        updated = apply_graph_mutation(graph, GraphMutation(source="a", target="b", delta=30))

        assert updated.find_edge("a", "b").weight == 100

    def test_missing_edge_created_when_nodes_exist(self):
        graph = default_knowledge_graph()

        updated = apply_graph_mutation(graph, GraphMutation(source="Ally", target="Provost", relation="fears", delta=-20))

        edge = updated.find_edge("Ally", "Provost")
        assert edge is not None
        assert edge.weight == 30
        assert edge.relation == "fears"

    def test_unknown_node_leaves_graph_unchanged(self):
        graph = default_knowledge_graph()

        updated = apply_graph_mutation(graph, GraphMutation(source="Ally", target="Nobody", delta=10))

        assert updated == graph

    def test_zero_delta_is_noop(self):
        graph = default_knowledge_graph()

        assert apply_graph_mutation(graph, GraphMutation(source="Ally", target="Provost", delta=0)) is graph
