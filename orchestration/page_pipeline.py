# orchestration/page_pipeline.py
"""Run one page through analyst -> director -> render -> feedback.

The stage order is a compiled LangGraph `StateGraph`. A `plan_only` run
stops after the director, which spread mode uses to plan both halves before
the combined render.

Each node reads the store when it runs and writes its results back as page
patches, so narrative text is visible before the image and the image before
the audio.
"""

from __future__ import annotations

import asyncio
from typing import Literal

import structlog
from langgraph.graph import END, StateGraph  # type: ignore

import config
from agents.analyst_agent import AnalystAgent
from agents.director_agent import DirectorAgent, build_beat
from agents.feedback_agent import FeedbackAgent
from agents.renderer_agent import References, RendererAgent
from core.graph_analyzer import GraphAnalyzer
from core.narrative_store import NarrativeStore
from core.scene_config import SceneConfigResolver
from models.agent_models import PageState
from models.narrative_models import AudioAsset, ImageAsset, LedgerDelta, face_id
from prompts.prompt_data_getters import build_history_digest

logger = structlog.get_logger(__name__)


def route_after_director(state: PageState) -> Literal["render", "end"]:
    """Stop after direction for plan-only runs."""
    return "end" if state.get("plan_only") else "render"


class PagePipeline:
    """The four-stage per-page pipeline over an injected store and stages."""

    def __init__(
        self,
        store: NarrativeStore,
        resolver: SceneConfigResolver,
        analyzer: GraphAnalyzer,
        analyst: AnalystAgent,
        director: DirectorAgent,
        renderer: RendererAgent,
        feedback: FeedbackAgent,
    ):
        self.store = store
        self.resolver = resolver
        self.analyzer = analyzer
        self.analyst = analyst
        self.director = director
        self.renderer = renderer
        self.feedback = feedback
        self._graph = self._build_graph()

    def _build_graph(self):
        workflow = StateGraph(PageState)

        workflow.add_node("analyst", self._analyst_node)
        workflow.add_node("director", self._director_node)
        workflow.add_node("render", self._render_node)
        workflow.add_node("feedback", self._feedback_node)

        workflow.set_entry_point("analyst")
        workflow.add_edge("analyst", "director")
        workflow.add_conditional_edges(
            "director",
            route_after_director,
            {"render": "render", "end": END},
        )
        workflow.add_edge("render", "feedback")
        workflow.add_edge("feedback", END)

        return workflow.compile()

    # -- nodes --------------------------------------------------------------

    async def _analyst_node(self, state: PageState) -> PageState:
        page_index = state["page_index"]
        scene = self.resolver.resolve(page_index)
        graph = self.store.graph
        ledger = self.store.ledger
        analysis = self.analyzer.analyze(graph)
        history = build_history_digest(self.store.pages, page_index)

        plan = await self.analyst.plan(
            page_index=page_index,
            ledger=ledger,
            graph=graph,
            analysis=analysis,
            scene=scene,
            history=history,
        )
        return {
            "scene": scene,
            "ledger": ledger,
            "graph": graph,
            "graph_analysis": analysis,
            "history": history,
            "analyst": plan,
        }

    async def _director_node(self, state: PageState) -> PageState:
        page_index = state["page_index"]
        is_decision = state.get("is_decision", False)
        direction = await self.director.direct(
            page_index=page_index,
            analyst=state["analyst"],
            scene=state["scene"],
            is_decision=is_decision,
            ledger=state["ledger"],
            history=state["history"],
        )
        beat = build_beat(state["analyst"], direction, state["scene"], is_decision)
        self.store.update_page(
            face_id(page_index),
            {"narrative": beat, "choices": list(beat.choices), "is_decision_page": is_decision},
            generation=state.get("generation"),
        )
        return {"director": direction, "beat": beat}

    async def _render_node(self, state: PageState) -> PageState:
        page_index = state["page_index"]
        generation = state.get("generation")
        refs = await self.references_for(page_index, generation)

        image, audio = await self.renderer.render_page(
            page_index=page_index,
            beat=state["beat"],
            director=state["director"],
            analyst=state["analyst"],
            refs=refs,
            with_audio=self.store.sound_enabled,
        )
        self.publish_assets(page_index, image, audio, generation)
        return {"image": image, "image_ok": image is not None}

    async def _feedback_node(self, state: PageState) -> PageState:
        delta = self.apply_feedback(state, state.get("image_ok", False))
        return {"ledger_delta": delta if delta is not None else LedgerDelta()}

    # -- shared steps (also used by spread rendering) -----------------------

    async def references_for(self, page_index: int, generation: int | None) -> References:
        """Identity and style anchors, refreshing the protagonist crop on reset pages."""
        crop = await self.renderer.consistency_reference(page_index, self.store.pages)
        if crop is not None:
            self.store.set_protagonist_reference(crop, generation=generation)

        hero = self.store.hero
        hero_image = self.store.protagonist_reference or (hero.image if hero else None)
        previous = self.store.get_page(page_index - 1)
        style = previous.image if previous is not None else None
        return References(hero=hero, hero_image=hero_image, friend=self.store.friend, style=style)

    def publish_assets(
        self,
        page_index: int,
        image: ImageAsset | None,
        audio: AudioAsset | None,
        generation: int | None,
    ) -> None:
        page_id = face_id(page_index)
        self.store.update_page(page_id, {"image": image, "is_loading": False, "failed": False}, generation=generation)
        if audio is not None:
            self.store.update_page(page_id, {"audio": audio}, generation=generation)

    def apply_feedback(self, state: PageState, image_ok: bool) -> LedgerDelta | None:
        page_index = state["page_index"]
        generation = state.get("generation")
        delta = self.feedback.apply(
            page_index=page_index,
            analyst=state["analyst"],
            image_ok=image_ok,
            generation=generation,
        )
        if delta is not None:
            beat = state["beat"].model_copy(update={"ledger_impact": delta})
            self.store.update_page(face_id(page_index), {"narrative": beat}, generation=generation)
        return delta

    # -- entry points -------------------------------------------------------

    def _initial_state(self, page_index: int, generation: int, plan_only: bool) -> PageState:
        return {
            "page_index": page_index,
            "generation": generation,
            "is_decision": page_index in config.DECISION_PAGES,
            "plan_only": plan_only,
        }

    async def run_page(self, page_index: int, generation: int) -> PageState:
        """Run all four stages for a story page."""
        logger.info("Page pipeline started", page=page_index)
        result = await self._graph.ainvoke(self._initial_state(page_index, generation, plan_only=False))
        logger.info("Page pipeline finished", page=page_index, image=result.get("image_ok", False))
        return result

    async def plan_page(self, page_index: int, generation: int) -> PageState:
        """Run analyst and director only; the page stays loading."""
        return await self._graph.ainvoke(self._initial_state(page_index, generation, plan_only=True))

    async def run_spread(self, left_index: int, right_index: int, generation: int) -> tuple[PageState, PageState]:
        """Plan both pages, render them with one combined image call, then apply feedback.

        Feedback for the left page runs after the right page has been planned.
        """
        logger.info("Spread pipeline started", left=left_index, right=right_index)
        left = await self.plan_page(left_index, generation)
        right = await self.plan_page(right_index, generation)

        refs = await self.references_for(left_index, generation)
        right_crop = await self.renderer.consistency_reference(right_index, self.store.pages)
        if right_crop is not None:
            self.store.set_protagonist_reference(right_crop, generation=generation)

        with_audio = self.store.sound_enabled
        (left_image, right_image), left_audio, right_audio = await asyncio.gather(
            self.renderer.render_spread(
                left_index=left_index,
                right_index=right_index,
                left_beat=left["beat"],
                right_beat=right["beat"],
                left_director=left["director"],
                refs=refs,
            ),
            self.renderer.synthesize(
                self.renderer.build_speech_request(left["beat"], left["analyst"]) if with_audio else None,
                left_index,
            ),
            self.renderer.synthesize(
                self.renderer.build_speech_request(right["beat"], right["analyst"]) if with_audio else None,
                right_index,
            ),
        )
        self.publish_assets(left_index, left_image, left_audio, generation)
        self.publish_assets(right_index, right_image, right_audio, generation)

        self.apply_feedback(left, left_image is not None)
        self.apply_feedback(right, right_image is not None)
        logger.info("Spread pipeline finished", left=left_index, right=right_index)
        return left, right
