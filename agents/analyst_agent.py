# agents/analyst_agent.py
"""Plan each page's psychological strategy from ledger and graph state.

The narrative phase is computed here from ledger thresholds before the model
is called, and handed to it as fixed grounding. The model only chooses the
strategy, target emotion and graph intent. Any failure yields
`AnalystOutput.fallback()`.
"""

from __future__ import annotations

import asyncio

import structlog

import config
from core.exceptions import StageFailure, create_error_context
from core.generative_services import TextGenerationRequest, TextGenerationService
from models.agent_models import AnalystOutput
from models.kg_models import GraphAnalysis, KnowledgeGraph
from models.narrative_models import Ledger, SceneConfig
from prompts.prompt_data_getters import format_graph_analysis
from prompts.prompt_renderer import get_system_prompt, render_prompt
from utils.common import parse_model_from_response

logger = structlog.get_logger(__name__)

ANALYST_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "narrative_phase": {"type": "STRING"},
        "strategy": {"type": "STRING"},
        "target_emotion": {"type": "STRING"},
        "graph_intent": {"type": "STRING"},
        "graph_mutation": {
            "type": "OBJECT",
            "properties": {
                "source": {"type": "STRING"},
                "target": {"type": "STRING"},
                "relation": {"type": "STRING"},
                "delta": {"type": "INTEGER"},
            },
            "required": ["source", "target", "delta"],
        },
    },
    "required": ["narrative_phase", "strategy", "target_emotion", "graph_intent"],
}


def narrative_phase(ledger: Ledger) -> str:
    """Classify the story phase from ledger thresholds, first match wins."""
    if ledger.trauma > 60:
        return "Fragmentation"
    if ledger.hope < 30:
        return "Breaking Point"
    if ledger.integrity < 40:
        return "Collapse"
    if ledger.hope > 70:
        return "False Hope"
    return "Conditioning"


def interpret_ledger(ledger: Ledger) -> str:
    """Translate ledger counters into a short psyche description."""
    state = "CURRENT SUBJECT PSYCHE: "
    if ledger.hope < 30:
        state += "Learned Helplessness (passive, withdrawn). "
    elif ledger.hope > 70:
        state += "Defiant Spark (resistant, angry). "
    else:
        state += "Fragile Compliance (anxious, wary). "

    if ledger.trauma > 60:
        state += "Dissociative (drifting, numb). "
    elif ledger.trauma > 30:
        state += "Hyper-Vigilant (startles easily). "

    if ledger.integrity < 40:
        state += "Physically Ruined (exhausted, in pain). "
    return state.strip()


class AnalystAgent:
    """Produces the strategic plan for one page via a single text call."""

    def __init__(self, text_service: TextGenerationService):
        self._text_service = text_service

    def build_request(
        self,
        *,
        page_index: int,
        ledger: Ledger,
        graph: KnowledgeGraph,
        analysis: GraphAnalysis,
        scene: SceneConfig,
        history: str,
    ) -> TextGenerationRequest:
        phase = narrative_phase(ledger)
        psyche = interpret_ledger(ledger)
        prompt = render_prompt(
            "analyst/plan_page.j2",
            {
                "page_index": page_index,
                "phase": phase,
                "psyche": psyche,
                "ledger": ledger,
                "scene": scene,
                "graph_summary": graph.summary(),
                "graph_analysis": format_graph_analysis(analysis),
                "history": history,
            },
        )
        return TextGenerationRequest(
            system_instruction=f"{get_system_prompt('analyst')}\n\n{psyche}",
            prompt=prompt,
            response_schema=ANALYST_RESPONSE_SCHEMA,
            temperature=config.TEMPERATURE_ANALYST,
        )

    async def plan(
        self,
        *,
        page_index: int,
        ledger: Ledger,
        graph: KnowledgeGraph,
        analysis: GraphAnalysis,
        scene: SceneConfig,
        history: str,
    ) -> AnalystOutput:
        """Return the page plan; never raises.

        The computed narrative phase always overrides whatever phase the model
        echoes back.
        """
        phase = narrative_phase(ledger)
        try:
            request = self.build_request(
                page_index=page_index,
                ledger=ledger,
                graph=graph,
                analysis=analysis,
                scene=scene,
                history=history,
            )
            raw = await asyncio.wait_for(
                self._text_service.generate_text(request),
                timeout=config.GENERATION_TIMEOUT_SECONDS,
            )
            output = parse_model_from_response(raw, AnalystOutput, context="analyst")
        except Exception as e:
            failure = StageFailure(
                "Analyst stage failed; using fallback plan",
                details=create_error_context(page=page_index, error=str(e), error_type=type(e).__name__),
            )
            logger.warning(failure.message, **failure.details)
            return AnalystOutput.fallback()

        if output.narrative_phase != phase:
            output = output.model_copy(update={"narrative_phase": phase})
        logger.info(
            "Analyst plan ready",
            page=page_index,
            phase=output.narrative_phase,
            strategy=output.strategy,
            emotion=output.target_emotion,
        )
        return output
