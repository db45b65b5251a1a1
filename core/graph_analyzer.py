# core/graph_analyzer.py
"""Derive narrative signals from the knowledge graph.

The analyzer answers three questions the Analyst stage grounds its plan on:
who currently holds the most influence, which relationships are strongest,
and who has been left with no relationships at all.
"""

from __future__ import annotations

import numpy as np
import structlog

import config
from models.kg_models import GraphAnalysis, GraphEdge, KnowledgeGraph, NodeType

logger = structlog.get_logger(__name__)


class GraphAnalyzer:
    """Influence ranking and relationship extraction over a `KnowledgeGraph`."""

    def __init__(
        self,
        damping: float | None = None,
        iterations: int | None = None,
        relationship_threshold: int | None = None,
        relationship_limit: int | None = None,
    ):
        self.damping = damping if damping is not None else config.GRAPH_DAMPING_FACTOR
        self.iterations = iterations if iterations is not None else config.GRAPH_RANK_ITERATIONS
        self.relationship_threshold = (
            relationship_threshold if relationship_threshold is not None else config.GRAPH_KEY_RELATIONSHIP_THRESHOLD
        )
        self.relationship_limit = relationship_limit if relationship_limit is not None else config.GRAPH_KEY_RELATIONSHIP_LIMIT

    def rank(self, graph: KnowledgeGraph) -> dict[str, float]:
        """Compute PageRank-style influence for every node.

        Every rank starts at 1/N. Each iteration sets a node's rank to
        (1-d)/N plus d times the sum of rank(source)/outDegree(source) over
        its incoming edges. Edges with a missing endpoint are ignored, both as
        contributions and in out-degree counts.

        Args:
            graph: The graph to rank.

        Returns:
            Mapping of node id to rank, in node order.
        """
        node_ids = [n.id for n in graph.nodes]
        n = len(node_ids)
        if n == 0:
            return {}

        index = {node_id: i for i, node_id in enumerate(node_ids)}
        valid_edges = [e for e in graph.edges if e.source in index and e.target in index]

        out_degree = np.zeros(n)
        for edge in valid_edges:
            out_degree[index[edge.source]] += 1

        # transition[t, s] = 1 / outDegree(s) for every edge s -> t
        transition = np.zeros((n, n))
        for edge in valid_edges:
            s = index[edge.source]
            transition[index[edge.target], s] += 1.0 / out_degree[s]

        ranks = np.full(n, 1.0 / n)
        base = (1.0 - self.damping) / n
        for _ in range(self.iterations):
            ranks = base + self.damping * (transition @ ranks)

        return {node_id: float(ranks[i]) for i, node_id in enumerate(node_ids)}

    def key_relationships(self, graph: KnowledgeGraph) -> list[GraphEdge]:
        """Edges heavier than the threshold, heaviest first, capped at the limit."""
        strong = [e for e in graph.edges if e.weight > self.relationship_threshold]
        strong.sort(key=lambda e: e.weight, reverse=True)
        return strong[: self.relationship_limit]

    @staticmethod
    def isolated_nodes(graph: KnowledgeGraph) -> list[str]:
        """Ids of nodes that appear in no edge, as source or target."""
        touched: set[str] = set()
        for edge in graph.edges:
            touched.add(edge.source)
            touched.add(edge.target)
        return [n.id for n in graph.nodes if n.id not in touched]

    def analyze(self, graph: KnowledgeGraph) -> GraphAnalysis:
        """Run all analyses over `graph`.

        The most influential character is the highest-ranked character node;
        ties go to the earliest node in node order. When the graph holds no
        character nodes every node is eligible.
        """
        ranks = self.rank(graph)

        candidates = [n.id for n in graph.nodes if n.type == NodeType.CHARACTER] or [n.id for n in graph.nodes]
        most_influential: str | None = None
        best = -1.0
        for node_id in candidates:
            # strict comparison keeps the first of equal ranks
            if ranks[node_id] > best:
                best = ranks[node_id]
                most_influential = node_id

        analysis = GraphAnalysis(
            most_influential_character=most_influential,
            key_relationships=self.key_relationships(graph),
            isolated_nodes=self.isolated_nodes(graph),
            ranks=ranks,
        )
        logger.debug(
            "Graph analyzed",
            most_influential=most_influential,
            key_relationships=len(analysis.key_relationships),
            isolated=analysis.isolated_nodes,
        )
        return analysis
