# core/graph_mutation.py
"""Turn the Analyst's graph intent into a concrete edge-weight change.

The Analyst may return a structured `graph_mutation`. When it only returns
free text, `parse_graph_intent` recovers a mutation from the first two graph
nodes mentioned and the verbs around them.
"""

from __future__ import annotations

import re

import structlog

from models.agent_models import GraphMutation
from models.kg_models import GraphEdge, KnowledgeGraph, clamp_weight

logger = structlog.get_logger(__name__)

HEURISTIC_DELTA = 10

_STRENGTHEN = re.compile(r"\b(?:strengthen|deepen|bond|closer|trust|reconcil)\w*")
_WEAKEN = re.compile(r"\b(?:weaken|erod|isolat|sever|betray|undermin|fractur|distrust|mistrust)\w*")


def _mentions(text: str, graph: KnowledgeGraph) -> list[str]:
    """Node ids mentioned in `text` by id or label, ordered by first appearance."""
    lowered = text.lower()
    hits: list[tuple[int, str]] = []
    for node in graph.nodes:
        positions = []
        for term in {node.id, node.label}:
            if not term:
                continue
            match = re.search(rf"\b{re.escape(term.lower())}\b", lowered)
            if match:
                positions.append(match.start())
        if positions:
            hits.append((min(positions), node.id))
    hits.sort()
    return [node_id for _, node_id in hits]


def parse_graph_intent(intent: str, graph: KnowledgeGraph) -> GraphMutation | None:
    """Recover a mutation from free-text intent, or None for a no-op.

    Args:
        intent: The Analyst's `graph_intent` text.
        graph: Graph used to recognise node names.

    Returns:
        A mutation of +/-10 between the first two mentioned nodes, or None when
        the intent is "Maintain", names fewer than two nodes, or carries no
        recognised verb.
    """
    if not intent or intent.strip().lower().startswith("maintain"):
        return None

    lowered = intent.lower()
    # a weakening word anywhere outweighs any strengthening one
    if _WEAKEN.search(lowered):
        delta = -HEURISTIC_DELTA
        relation = "strained"
    elif _STRENGTHEN.search(lowered):
        delta = HEURISTIC_DELTA
        relation = "bonded"
    else:
        return None

    mentioned = _mentions(intent, graph)
    if len(mentioned) < 2:
        return None
    return GraphMutation(source=mentioned[0], target=mentioned[1], relation=relation, delta=delta)


def apply_graph_mutation(graph: KnowledgeGraph, mutation: GraphMutation) -> KnowledgeGraph:
    """Apply `mutation` and return the new graph.

    An existing edge is shifted by `delta` and clamped. A missing edge is only
    created (at 50 + delta) when both endpoint nodes exist; otherwise the graph
    is returned unchanged.
    """
    if mutation.delta == 0:
        return graph

    edge = graph.find_edge(mutation.source, mutation.target)
    if edge is not None:
        updated = edge.model_copy(update={"weight": clamp_weight(edge.weight + mutation.delta)})
        logger.debug(
            "Graph edge adjusted",
            source=mutation.source,
            target=mutation.target,
            old=edge.weight,
            new=updated.weight,
        )
        return graph.with_edge(updated)

    if not (graph.has_node(mutation.source) and graph.has_node(mutation.target)):
        logger.debug("Graph mutation references unknown node; skipped", source=mutation.source, target=mutation.target)
        return graph

    created = GraphEdge(
        source=mutation.source,
        target=mutation.target,
        relation=mutation.relation,
        weight=clamp_weight(50 + mutation.delta),
    )
    logger.debug("Graph edge created", source=created.source, target=created.target, weight=created.weight)
    return graph.with_edge(created)
