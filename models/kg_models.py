# models/kg_models.py
"""Define the knowledge-graph data models used across the Loom engine.

The graph is a small directed, weighted relationship map between story
participants. Nodes are characters, locations or concepts; edges carry a
relation label and a weight in [0, 100].

Notes:
- Dangling edges (an endpoint id with no matching node) are tolerated by the
  models. [`GraphAnalyzer`](core/graph_analyzer.py:1) ignores them.
- All mutators return new graph instances; callers never edit a graph in place.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class NodeType(str, Enum):
    CHARACTER = "character"
    LOCATION = "location"
    CONCEPT = "concept"


def clamp_weight(value: float) -> int:
    """Clamp a relationship weight into the closed range [0, 100]."""
    return int(max(0, min(100, round(value))))


class GraphNode(BaseModel):
    """A participant, place or idea in the story's relationship map."""

    id: str
    type: NodeType = NodeType.CHARACTER
    label: str
    properties: dict[str, Any] = Field(default_factory=dict)


class GraphEdge(BaseModel):
    """A directed, weighted relationship between two nodes."""

    source: str
    target: str
    relation: str
    weight: int = 50

    @field_validator("weight", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_weight(float(value))


class KnowledgeGraph(BaseModel):
    """Nodes and edges describing who matters to whom.

    Node order is significant: ties in influence ranking are broken by the
    first node in `nodes`.
    """

    nodes: list[GraphNode] = Field(default_factory=list)
    edges: list[GraphEdge] = Field(default_factory=list)

    def node(self, node_id: str) -> GraphNode | None:
        for node in self.nodes:
            if node.id == node_id:
                return node
        return None

    def has_node(self, node_id: str) -> bool:
        return self.node(node_id) is not None

    def find_edge(self, source: str, target: str) -> GraphEdge | None:
        for edge in self.edges:
            if edge.source == source and edge.target == target:
                return edge
        return None

    def with_node(self, node: GraphNode) -> KnowledgeGraph:
        """Return a copy with `node` replacing the node of the same id, or appended."""
        replaced = False
        nodes: list[GraphNode] = []
        for existing in self.nodes:
            if existing.id == node.id:
                nodes.append(node)
                replaced = True
            else:
                nodes.append(existing)
        if not replaced:
            nodes.append(node)
        return KnowledgeGraph(nodes=nodes, edges=list(self.edges))

    def with_edge(self, edge: GraphEdge) -> KnowledgeGraph:
        """Return a copy with `edge` replacing the edge between the same endpoints, or appended."""
        replaced = False
        edges: list[GraphEdge] = []
        for existing in self.edges:
            if existing.source == edge.source and existing.target == edge.target:
                edges.append(edge)
                replaced = True
            else:
                edges.append(existing)
        if not replaced:
            edges.append(edge)
        return KnowledgeGraph(nodes=list(self.nodes), edges=edges)

    def summary(self) -> str:
        """Serialize the graph as compact text for prompt grounding."""
        lines = [f"- {n.id} ({n.type.value}): {n.label}" for n in self.nodes]
        lines.extend(f"- {e.source} -[{e.relation} {e.weight}]-> {e.target}" for e in self.edges)
        return "\n".join(lines)


class GraphAnalysis(BaseModel):
    """Derived signals computed from a knowledge graph."""

    most_influential_character: str | None = None
    key_relationships: list[GraphEdge] = Field(default_factory=list)
    isolated_nodes: list[str] = Field(default_factory=list)
    ranks: dict[str, float] = Field(default_factory=dict)


SUBJECT_NODE_ID = "Subject"
ALLY_NODE_ID = "Ally"
AUTHORITY_NODE_ID = "Provost"
LOCATION_NODE_ID = "Academy"


def default_knowledge_graph() -> KnowledgeGraph:
    """Build the fixed starting cast and its default relationship weights."""
    return KnowledgeGraph(
        nodes=[
            GraphNode(id=SUBJECT_NODE_ID, type=NodeType.CHARACTER, label="The Subject", properties={"archetype": "Subject"}),
            GraphNode(id=ALLY_NODE_ID, type=NodeType.CHARACTER, label="The Ally", properties={"archetype": "Ally"}),
            GraphNode(
                id=AUTHORITY_NODE_ID,
                type=NodeType.CHARACTER,
                label="The Provost",
                properties={"archetype": "Provost", "role": "authority"},
            ),
            GraphNode(id=LOCATION_NODE_ID, type=NodeType.LOCATION, label="The Forge Academy"),
        ],
        edges=[
            GraphEdge(source=AUTHORITY_NODE_ID, target=SUBJECT_NODE_ID, relation="controls", weight=85),
            GraphEdge(source=SUBJECT_NODE_ID, target=ALLY_NODE_ID, relation="trusts", weight=70),
            GraphEdge(source=ALLY_NODE_ID, target=SUBJECT_NODE_ID, relation="protects", weight=65),
            GraphEdge(source=AUTHORITY_NODE_ID, target=LOCATION_NODE_ID, relation="governs", weight=90),
            GraphEdge(source=LOCATION_NODE_ID, target=SUBJECT_NODE_ID, relation="confines", weight=55),
        ],
    )
