# prompts/prompt_data_getters.py
"""
Helper functions that turn narrative state into plain-text prompt snippets:
the prior-page history digest and the graph analysis summary.
"""

from __future__ import annotations

from collections.abc import Iterable

from models.kg_models import GraphAnalysis
from models.narrative_models import ComicFace, PageType

OPENING_HISTORY = "The story begins. No prior pages."


def build_history_digest(pages: Iterable[ComicFace], before_page: int) -> str:
    """Summarize every story page before `before_page` that has a narrative.

    Each line reads
    `[Page i] [Location: L] [Focus: F] (Action: "scene")`, followed by
    ` -> SUBJECT CHOICE: "c"` when the player resolved a choice on that page.
    """
    story = sorted(
        (
            p
            for p in pages
            if p.type == PageType.STORY and p.page_index < before_page and p.narrative is not None
        ),
        key=lambda p: p.page_index,
    )
    if not story:
        return OPENING_HISTORY

    lines = []
    for page in story:
        beat = page.narrative
        line = f'[Page {page.page_index}] [Location: {beat.location}] [Focus: {beat.focus_char.value}] (Action: "{beat.scene}")'
        if page.resolved_choice:
            line += f' -> SUBJECT CHOICE: "{page.resolved_choice}"'
        lines.append(line)
    return "\n".join(lines)


def format_graph_analysis(analysis: GraphAnalysis) -> str:
    """Render analyzer output as short labelled lines."""
    lines = [f"Most influential: {analysis.most_influential_character or 'none'}"]
    if analysis.key_relationships:
        rels = "; ".join(f"{e.source} -[{e.relation} {e.weight}]-> {e.target}" for e in analysis.key_relationships)
        lines.append(f"Key relationships: {rels}")
    else:
        lines.append("Key relationships: none above threshold")
    lines.append(f"Isolated: {', '.join(analysis.isolated_nodes) if analysis.isolated_nodes else 'none'}")
    return "\n".join(lines)
