# agents/director_agent.py
"""Turn an Analyst plan into a concrete script, shot directives and choices.

`build_beat` merges the Director's output with the Analyst plan and the scene
configuration into the `Beat` the renderer and the page consume.
"""

from __future__ import annotations

import asyncio

import structlog

import config
from agents.analyst_agent import interpret_ledger
from core.exceptions import SchemaValidationError, StageFailure, create_error_context
from core.generative_services import TextGenerationRequest, TextGenerationService
from core.lore_tables import LoreTables
from models.agent_models import AnalystOutput, DirectorOutput
from models.narrative_models import Beat, Ledger, SceneConfig
from prompts.prompt_renderer import get_system_prompt, render_prompt
from utils.common import parse_model_from_response

logger = structlog.get_logger(__name__)

DIRECTOR_RESPONSE_SCHEMA = {
    "type": "OBJECT",
    "properties": {
        "script": {
            "type": "OBJECT",
            "properties": {
                "caption": {"type": "STRING"},
                "dialogue": {"type": "STRING"},
                "speaker": {"type": "STRING"},
            },
            "required": ["caption", "dialogue", "speaker"],
        },
        "visuals": {
            "type": "OBJECT",
            "properties": {
                "camera": {"type": "STRING"},
                "lighting": {"type": "STRING"},
                "pose": {"type": "STRING"},
                "environment": {"type": "STRING"},
            },
            "required": ["camera", "lighting", "pose", "environment"],
        },
        "choices": {"type": "ARRAY", "items": {"type": "STRING"}},
    },
    "required": ["script", "visuals", "choices"],
}


def _enforce_choices(output: DirectorOutput, is_decision: bool) -> DirectorOutput:
    if not is_decision:
        return output.model_copy(update={"choices": []}) if output.choices else output
    if len(output.choices) < 2:
        raise SchemaValidationError(
            "Decision page requires two choices",
            details={"choices": len(output.choices)},
        )
    return output.model_copy(update={"choices": output.choices[:2]})


def build_beat(
    analyst: AnalystOutput,
    director: DirectorOutput,
    scene: SceneConfig,
    is_decision: bool,
) -> Beat:
    """Merge stage outputs and scene metadata into one page beat."""
    visuals = director.visuals
    scene_description = ". ".join(part.strip() for part in (visuals.environment, visuals.pose) if part and part.strip())
    return Beat(
        caption=director.script.caption,
        dialogue=director.script.dialogue,
        speaker=director.script.speaker,
        scene=scene_description,
        mood=analyst.target_emotion,
        intent=scene.intent,
        focus_char=scene.focus_archetype,
        location=scene.location,
        choices=list(director.choices) if is_decision else [],
        reasoning_trace=f"Strategy: {analyst.strategy} | Camera: {visuals.camera or 'n/a'}",
    )


class DirectorAgent:
    """Produces the script and visual directives for one page via a single text call."""

    def __init__(self, text_service: TextGenerationService, lore: LoreTables):
        self._text_service = text_service
        self._lore = lore

    def build_request(
        self,
        *,
        page_index: int,
        analyst: AnalystOutput,
        scene: SceneConfig,
        is_decision: bool,
        ledger: Ledger,
        history: str,
    ) -> TextGenerationRequest:
        psyche = interpret_ledger(ledger)
        prompt = render_prompt(
            "director/direct_page.j2",
            {
                "page_index": page_index,
                "is_decision": is_decision,
                "psyche": psyche,
                "analyst": analyst,
                "scene": scene,
                "delivery": self._lore.delivery_for(scene.focus_archetype),
                "focus_visual": self._lore.visual_for(scene.focus_archetype),
                "history": history,
            },
        )
        return TextGenerationRequest(
            system_instruction=f"{get_system_prompt('director')}\n\n{psyche}",
            prompt=prompt,
            response_schema=DIRECTOR_RESPONSE_SCHEMA,
            temperature=config.TEMPERATURE_DIRECTOR,
        )

    async def direct(
        self,
        *,
        page_index: int,
        analyst: AnalystOutput,
        scene: SceneConfig,
        is_decision: bool,
        ledger: Ledger,
        history: str,
    ) -> DirectorOutput:
        """Return the page direction; never raises.

        Decision pages must come back with at least two choices (the first two
        are kept); other pages have their choices cleared.
        """
        try:
            request = self.build_request(
                page_index=page_index,
                analyst=analyst,
                scene=scene,
                is_decision=is_decision,
                ledger=ledger,
                history=history,
            )
            raw = await asyncio.wait_for(
                self._text_service.generate_text(request),
                timeout=config.GENERATION_TIMEOUT_SECONDS,
            )
            output = _enforce_choices(
                parse_model_from_response(raw, DirectorOutput, context="director"),
                is_decision,
            )
        except Exception as e:
            failure = StageFailure(
                "Director stage failed; using neutral direction",
                details=create_error_context(page=page_index, error=str(e), error_type=type(e).__name__),
            )
            logger.warning(failure.message, **failure.details)
            return DirectorOutput.fallback()

        logger.info(
            "Director output ready",
            page=page_index,
            speaker=output.script.speaker,
            camera=output.visuals.camera,
            choices=len(output.choices),
        )
        return output
