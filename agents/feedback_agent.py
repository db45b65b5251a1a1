# agents/feedback_agent.py
"""Feed each page's outcome back into the ledger and the knowledge graph.

The ledger delta is derived from the Analyst's target emotion and strategy
text rather than from the generated image. It and any graph mutation are
only applied when the page's image was produced.
"""

from __future__ import annotations

import structlog

from core.graph_mutation import apply_graph_mutation, parse_graph_intent
from core.narrative_store import NarrativeStore
from models.agent_models import AnalystOutput, GraphMutation
from models.narrative_models import LedgerDelta

logger = structlog.get_logger(__name__)

DESPAIR_EMOTIONS = ("despair", "hopelessness", "shame", "grief", "horror")
FEAR_EMOTIONS = ("fear", "dread", "anxiety", "panic")
HOPE_EMOTIONS = ("hope", "relief", "defiance", "resolve")


def compute_ledger_delta(analyst: AnalystOutput) -> LedgerDelta:
    """Heuristic ledger change for a page's plan."""
    emotion = analyst.target_emotion.lower()
    strategy = analyst.strategy.lower()
    hope = trauma = integrity = 0

    if any(word in emotion for word in DESPAIR_EMOTIONS):
        trauma += 8
    elif any(word in emotion for word in FEAR_EMOTIONS):
        trauma += 4
    elif any(word in emotion for word in HOPE_EMOTIONS):
        hope += 5

    if "break" in strategy:
        hope -= 8
    if "isolat" in strategy:
        hope -= 5
    if any(word in strategy for word in ("violence", "kinetic", "endure")):
        integrity -= 5
    if any(word in strategy for word in ("comfort", "sanctuary")):
        hope += 3

    return LedgerDelta(hope=hope, trauma=trauma, integrity=integrity)


def resolve_graph_mutation(analyst: AnalystOutput, store: NarrativeStore) -> GraphMutation | None:
    """Structured mutation when given, otherwise parsed from `graph_intent`."""
    if analyst.graph_mutation is not None:
        return analyst.graph_mutation
    return parse_graph_intent(analyst.graph_intent, store.graph)


class FeedbackAgent:
    """Applies a page's ledger delta and graph mutation to the store."""

    def __init__(self, store: NarrativeStore):
        self._store = store

    def apply(
        self,
        *,
        page_index: int,
        analyst: AnalystOutput,
        image_ok: bool,
        generation: int | None = None,
    ) -> LedgerDelta | None:
        """Apply feedback for one page.

        Returns:
            The delta applied, or None when the image failed and nothing was applied.
        """
        if not image_ok:
            logger.info("Skipping feedback; page has no image", page=page_index)
            return None

        delta = compute_ledger_delta(analyst)
        ledger = self._store.update_ledger(delta, generation=generation)

        mutation = resolve_graph_mutation(analyst, self._store)
        if mutation is not None:
            self._store.update_graph(lambda g: apply_graph_mutation(g, mutation), generation=generation)

        logger.info(
            "Feedback applied",
            page=page_index,
            hope=ledger.hope,
            trauma=ledger.trauma,
            integrity=ledger.integrity,
            graph_mutation=f"{mutation.source}->{mutation.target} {mutation.delta:+d}" if mutation else None,
        )
        return delta
