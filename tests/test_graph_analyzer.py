# tests/test_graph_analyzer.py
"""Tests for core/graph_analyzer.py - influence ranking and relationship signals."""

import pytest

from core.graph_analyzer import GraphAnalyzer
from models.kg_models import (
    SUBJECT_NODE_ID,
    GraphEdge,
    GraphNode,
    KnowledgeGraph,
    NodeType,
    default_knowledge_graph,
)


def _chain_graph() -> KnowledgeGraph:
    return KnowledgeGraph(
        nodes=[GraphNode(id="A", label="A"), GraphNode(id="B", label="B"), GraphNode(id="C", label="C")],
        edges=[
            GraphEdge(source="A", target="B", relation="leads", weight=90),
            GraphEdge(source="B", target="C", relation="leads", weight=30),
        ],
    )


class TestRank:
    def test_end_of_chain_is_most_influential(self):
        analysis = GraphAnalyzer(damping=0.85, iterations=20).analyze(_chain_graph())

        assert analysis.most_influential_character == "C"

    def test_ranking_is_deterministic(self):
        analyzer = GraphAnalyzer(damping=0.85, iterations=20)

        first = analyzer.rank(_chain_graph())
        second = analyzer.rank(_chain_graph())

        assert first == second
        assert first["C"] > first["B"] > first["A"]

    def test_single_iteration_values(self):
        ranks = GraphAnalyzer(damping=0.85, iterations=1).rank(_chain_graph())

        base = 0.15 / 3
        assert ranks["A"] == pytest.approx(base)
        assert ranks["B"] == pytest.approx(base + 0.85 / 3)
        assert ranks["C"] == pytest.approx(base + 0.85 / 3)

    def test_empty_graph(self):
        analysis = GraphAnalyzer().analyze(KnowledgeGraph())

        assert analysis.ranks == {}
        assert analysis.most_influential_character is None

    def test_ties_go_to_first_node(self):
        graph = KnowledgeGraph(nodes=[GraphNode(id="X", label="X"), GraphNode(id="Y", label="Y")])

        analysis = GraphAnalyzer().analyze(graph)

        assert analysis.ranks["X"] == pytest.approx(analysis.ranks["Y"])
        assert analysis.most_influential_character == "X"

    def test_dangling_edges_are_ignored(self):
        graph = _chain_graph().with_edge(GraphEdge(source="A", target="Missing", relation="seeks"))

        with_dangling = GraphAnalyzer().rank(graph)
        without = GraphAnalyzer().rank(_chain_graph())

        assert set(with_dangling) == {"A", "B", "C"}
        assert with_dangling == pytest.approx(without)

    def test_only_characters_are_candidates(self):
        graph = KnowledgeGraph(
            nodes=[
                GraphNode(id="Hero", label="Hero"),
                GraphNode(id="Hall", label="Hall", type=NodeType.LOCATION),
            ],
            edges=[GraphEdge(source="Hero", target="Hall", relation="visits")],
        )

        analysis = GraphAnalyzer().analyze(graph)

        assert analysis.ranks["Hall"] > analysis.ranks["Hero"]
        assert analysis.most_influential_character == "Hero"

    def test_default_graph_centres_on_subject(self):
        analysis = GraphAnalyzer().analyze(default_knowledge_graph())

        assert analysis.most_influential_character == SUBJECT_NODE_ID


class TestRelationships:
    def test_key_relationships_sorted_above_threshold(self):
        analyzer = GraphAnalyzer(relationship_threshold=60, relationship_limit=5)

        weights = [e.weight for e in analyzer.key_relationships(default_knowledge_graph())]

        assert weights == [90, 85, 70, 65]

    def test_key_relationships_respect_limit(self):
        analyzer = GraphAnalyzer(relationship_threshold=0, relationship_limit=2)

        assert len(analyzer.key_relationships(default_knowledge_graph())) == 2

    def test_isolated_nodes(self):
        graph = default_knowledge_graph().with_node(GraphNode(id="Ghost", label="The Ghost"))

        assert GraphAnalyzer.isolated_nodes(graph) == ["Ghost"]
