# tests/test_kg_models.py
"""Tests for models/kg_models.py - knowledge graph data models."""

from models.kg_models import (
    ALLY_NODE_ID,
    SUBJECT_NODE_ID,
    GraphEdge,
    GraphNode,
    KnowledgeGraph,
    NodeType,
    clamp_weight,
    default_knowledge_graph,
)


class TestGraphEdge:
    def test_weight_is_clamped_on_construction(self):
        assert GraphEdge(source="a", target="b", relation="r", weight=150).weight == 100
        assert GraphEdge(source="a", target="b", relation="r", weight=-3).weight == 0
        assert GraphEdge(source="a", target="b", relation="r", weight=42.6).weight == 43

    def test_clamp_weight_helper(self):
        assert clamp_weight(101) == 100
        assert clamp_weight(-1) == 0
        assert clamp_weight(7) == 7


class TestKnowledgeGraph:
    def test_with_edge_replaces_same_endpoints(self):
        graph = KnowledgeGraph(
            nodes=[GraphNode(id="a", label="A"), GraphNode(id="b", label="B")],
            edges=[GraphEdge(source="a", target="b", relation="knows", weight=10)],
        )

        updated = graph.with_edge(GraphEdge(source="a", target="b", relation="knows", weight=40))

        assert len(updated.edges) == 1
        assert updated.find_edge("a", "b").weight == 40
        # original graph unchanged
        assert graph.find_edge("a", "b").weight == 10

    def test_with_edge_appends_new_direction(self):
        graph = KnowledgeGraph(edges=[GraphEdge(source="a", target="b", relation="knows")])

        updated = graph.with_edge(GraphEdge(source="b", target="a", relation="fears"))

        assert len(updated.edges) == 2
        assert updated.find_edge("b", "a").relation == "fears"

    def test_with_node_keeps_position(self):
        graph = KnowledgeGraph(nodes=[GraphNode(id="a", label="A"), GraphNode(id="b", label="B")])

        updated = graph.with_node(GraphNode(id="a", label="Renamed"))

        assert [n.id for n in updated.nodes] == ["a", "b"]
        assert updated.node("a").label == "Renamed"

    def test_summary_lists_nodes_and_edges(self):
        graph = KnowledgeGraph(
            nodes=[GraphNode(id="a", label="Alpha", type=NodeType.CONCEPT)],
            edges=[GraphEdge(source="a", target="a", relation="doubts", weight=30)],
        )

        summary = graph.summary()

        assert "- a (concept): Alpha" in summary
        assert "- a -[doubts 30]-> a" in summary


class TestDefaultGraph:
    def test_contains_subject_and_ally(self):
        graph = default_knowledge_graph()

        assert graph.has_node(SUBJECT_NODE_ID)
        assert graph.has_node(ALLY_NODE_ID)
        assert graph.find_edge(SUBJECT_NODE_ID, ALLY_NODE_ID) is not None

    def test_every_edge_references_existing_nodes(self):
        graph = default_knowledge_graph()

        for edge in graph.edges:
            assert graph.has_node(edge.source)
            assert graph.has_node(edge.target)
            assert 0 <= edge.weight <= 100
