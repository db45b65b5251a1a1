# orchestration/generation_scheduler.py
"""Coordinate page generation for a story.

The scheduler owns the in-flight set that deduplicates overlapping batch
requests, walks each batch strictly in page order, isolates per-page failures
and exposes the inbound story controls (start, choice, reset, export).

Concurrency:
    Everything runs on one event loop. Pages are added to the in-flight set
    before the first await of a batch, so a second overlapping call made
    before the first settles sees them and skips them.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

import config
from agents.analyst_agent import AnalystAgent
from agents.director_agent import DirectorAgent
from agents.feedback_agent import FeedbackAgent
from agents.renderer_agent import RendererAgent
from core.document_export import export_pdf
from core.exceptions import NarrativeStateError, PageFailure, create_error_context
from core.generative_services import ImageGenerationService, SpeechSynthesisService, TextGenerationService
from core.graph_analyzer import GraphAnalyzer
from core.image_cache import ImagePreloadCache
from core.lore_tables import LoreTables, load_lore_tables
from core.narrative_store import NarrativeStore
from core.scene_config import SceneConfigResolver
from models.narrative_models import Archetype, Beat, ComicFace, PageType, face_id
from orchestration.page_pipeline import PagePipeline

logger = structlog.get_logger(__name__)

FAILED_NARRATIVE = "The thread frayed... this page could not be woven."
BACK_COVER_BEAT = Beat(scene="Teaser", focus_char=Archetype.SUBJECT, location="Void")


def page_type_for(page_index: int) -> PageType:
    if page_index == config.COVER_PAGE:
        return PageType.COVER
    if page_index == config.BACK_COVER_PAGE:
        return PageType.BACK_COVER
    return PageType.STORY


def is_story_page(page_index: int) -> bool:
    return 1 <= page_index <= config.MAX_STORY_PAGES


class GenerationScheduler:
    """Top-level coordinator for batched, deduplicated page generation."""

    def __init__(
        self,
        store: NarrativeStore,
        pipeline: PagePipeline,
        renderer: RendererAgent,
        cache: ImagePreloadCache | None = None,
        spread_mode: bool | None = None,
    ):
        self.store = store
        self.pipeline = pipeline
        self.renderer = renderer
        self.cache = cache if cache is not None else ImagePreloadCache()
        self.spread_mode = config.SPREAD_MODE if spread_mode is None else spread_mode
        self.in_flight: set[int] = set()
        self._background: set[asyncio.Task] = set()

    # -- batch scheduling ---------------------------------------------------

    def _needs_generation(self, page_index: int) -> bool:
        if page_index in self.in_flight:
            return False
        existing = self.store.get_page(page_index)
        # Loading pages left over from a cancelled call are retried along with failed ones
        return existing is None or existing.failed or existing.is_loading

    def _claim_pages(self, start_page: int, count: int) -> list[int]:
        last = min(start_page + count, config.TOTAL_PAGES + 1)
        candidates = range(max(start_page, config.COVER_PAGE), last)
        claimed = [p for p in candidates if self._needs_generation(p)]
        self.in_flight.update(claimed)
        return claimed

    def _add_placeholders(self, pages: list[int], generation: int) -> None:
        """Insert loading placeholders, or reset failed pages to loading, in one transform."""
        wanted = set(pages)

        def transform(current: list[ComicFace]) -> list[ComicFace]:
            present = {face.page_index for face in current}
            merged = [
                face.model_copy(update={"is_loading": True, "failed": False})
                if face.page_index in wanted
                else face
                for face in current
            ]
            merged.extend(
                ComicFace.placeholder(p, page_type_for(p), is_decision_page=p in config.DECISION_PAGES)
                for p in pages
                if p not in present
            )
            return sorted(merged, key=lambda face: face.page_index)

        self.store.set_pages(transform, generation=generation)

    def _plan_units(self, pages: list[int]) -> list[tuple[int, ...]]:
        """Group the ordered batch into single pages and, in spread mode, even/odd pairs."""
        units: list[tuple[int, ...]] = []
        i = 0
        while i < len(pages):
            page = pages[i]
            nxt = pages[i + 1] if i + 1 < len(pages) else None
            if (
                self.spread_mode
                and page % 2 == 0
                and nxt == page + 1
                and is_story_page(page)
                and is_story_page(nxt)
            ):
                units.append((page, nxt))
                i += 2
            else:
                units.append((page,))
                i += 1
        return units

    async def generate_batch(self, start_page: int, count: int) -> list[int]:
        """Generate pages `[start_page, start_page + count)` clipped to the book.

        Pages already in flight or already complete are skipped. The rest are
        generated one after another in ascending order; a failure on one page
        is recorded on that page and the batch continues.

        Returns:
            The page numbers this call generated.
        """
        generation = self.store.generation
        pages = self._claim_pages(start_page, count)
        if not pages:
            logger.debug("Nothing to generate", start=start_page, count=count)
            return []

        logger.info("Batch started", pages=pages, generation=generation)
        self._add_placeholders(pages, generation)

        try:
            for unit in self._plan_units(pages):
                if self.store.is_stale(generation):
                    logger.info("Story was reset; abandoning batch", remaining=list(unit))
                    break
                await self._run_unit(unit, generation)
        finally:
            # after a reset the set belongs to the new story
            if not self.store.is_stale(generation):
                for page in pages:
                    self.in_flight.discard(page)

        logger.info("Batch finished", pages=pages)
        self._schedule_preload(start_page, count)
        return pages

    async def _run_unit(self, unit: tuple[int, ...], generation: int) -> None:
        try:
            if len(unit) == 2:
                await self.pipeline.run_spread(unit[0], unit[1], generation)
            else:
                await self._generate_page(unit[0], generation)
        except Exception as e:
            failure = PageFailure(
                "Page generation failed",
                details=create_error_context(pages=list(unit), error=str(e), error_type=type(e).__name__),
            )
            logger.error(failure.message, exc_info=True, **failure.details)
            for page in unit:
                self._mark_failed(page, generation)

    async def _generate_page(self, page_index: int, generation: int) -> None:
        page_type = page_type_for(page_index)
        if page_type == PageType.COVER:
            await self._generate_cover(generation)
        elif page_type == PageType.BACK_COVER:
            await self._generate_back_cover(generation)
        else:
            await self.pipeline.run_page(page_index, generation)

    async def _generate_cover(self, generation: int) -> None:
        hero = self.store.hero
        hero_image = self.store.protagonist_reference or (hero.image if hero else None)
        image = await self.renderer.render_cover(hero, hero_image)
        self.store.update_page(
            face_id(config.COVER_PAGE),
            {"image": image, "is_loading": False, "failed": False},
            generation=generation,
        )

    async def _generate_back_cover(self, generation: int) -> None:
        self.store.update_page(face_id(config.BACK_COVER_PAGE), {"narrative": BACK_COVER_BEAT}, generation=generation)
        image = await self.renderer.render_back_cover(BACK_COVER_BEAT)
        self.store.update_page(
            face_id(config.BACK_COVER_PAGE),
            {"image": image, "is_loading": False, "failed": False},
            generation=generation,
        )

    def _mark_failed(self, page_index: int, generation: int) -> None:
        scene = self.pipeline.resolver.resolve(page_index)
        placeholder = Beat(
            caption=FAILED_NARRATIVE,
            scene=FAILED_NARRATIVE,
            focus_char=scene.focus_archetype,
            location=scene.location,
        )
        self.store.update_page(
            face_id(page_index),
            {"narrative": placeholder, "image": None, "choices": [], "is_loading": False, "failed": True},
            generation=generation,
        )

    # -- read-ahead -------------------------------------------------------

    def _schedule_preload(self, start_page: int, count: int) -> None:
        """Warm the cache for the batch just generated and the read-ahead pages after it.

        Pages past the batch only have images once a later batch produced
        them, so the window starts at the batch rather than after it.
        """
        window = range(start_page, start_page + count + config.READ_AHEAD_PAGES)
        images = {face.id: face.image for face in self.store.pages if face.page_index in window and face.image is not None}
        if not images:
            return
        task = asyncio.create_task(self.cache.preload_batch(images))
        self._background.add(task)
        task.add_done_callback(self._background.discard)

    async def wait_for_background(self) -> None:
        """Await outstanding preload tasks (used at shutdown and in tests)."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    # -- inbound story controls -------------------------------------------

    async def start_story(self, name: str, fear: str) -> None:
        """Begin a story for the configured protagonist.

        Raises:
            NarrativeStateError: If no protagonist persona has been set.
        """
        hero = self.store.hero
        if hero is None:
            raise NarrativeStateError("Cannot start a story without a protagonist persona")

        self.store.set_hero(hero.model_copy(update={"name": name, "core_fear": fear, "archetype": Archetype.SUBJECT}))
        logger.info("Story started", hero=name)

        await self.generate_batch(config.COVER_PAGE, 1)
        await self.generate_batch(1, config.INITIAL_PAGES)
        await self.generate_batch(1 + config.INITIAL_PAGES, config.READ_AHEAD_PAGES)

    async def handle_choice(self, page_index: int, choice: str) -> list[int]:
        """Record the player's choice, then generate the next batch after the last page.

        A choice is set once. Calls for unknown, loading, non-decision or
        already answered pages are ignored and schedule nothing.
        """
        face = self.store.get_page(page_index)
        if face is None:
            logger.warning("Choice for unknown page ignored", page=page_index)
            return []
        if not face.is_decision_page or face.is_loading or face.resolved_choice is not None:
            logger.warning(
                "Choice ignored",
                page=page_index,
                choice=choice,
                decision_page=face.is_decision_page,
                loading=face.is_loading,
                resolved=face.resolved_choice,
            )
            return []

        self.store.update_page(face.id, {"resolved_choice": choice})
        logger.info("Choice recorded", page=page_index, choice=choice)
        return await self.continue_story()

    async def continue_story(self) -> list[int]:
        """Generate the next batch after the highest existing page."""
        max_page = max((face.page_index for face in self.store.pages), default=config.COVER_PAGE)
        next_page = max_page + 1
        if next_page > config.TOTAL_PAGES:
            return []
        return await self.generate_batch(next_page, config.BATCH_SIZE)

    def reset(self) -> None:
        """Restore the store and drop scheduling state; outstanding writes become stale."""
        self.store.reset_all()
        self.in_flight.clear()
        self.cache.clear()

    def export_document(self, path: str | Path) -> int:
        """Write the finished pages to a PDF and return the page count."""
        return export_pdf(self.store.pages, path)


def build_scheduler(
    text_service: TextGenerationService,
    image_service: ImageGenerationService,
    speech_service: SpeechSynthesisService,
    *,
    store: NarrativeStore | None = None,
    lore: LoreTables | None = None,
    spread_mode: bool | None = None,
) -> GenerationScheduler:
    """Wire the store, stages and pipeline into a scheduler.

    Lore tables are loaded (and validated) from the configured files unless
    provided.
    """
    store = store if store is not None else NarrativeStore()
    lore = lore if lore is not None else load_lore_tables()
    renderer = RendererAgent(image_service, speech_service, lore)
    pipeline = PagePipeline(
        store=store,
        resolver=SceneConfigResolver(lore.timeline, lore.fallback_scene),
        analyzer=GraphAnalyzer(),
        analyst=AnalystAgent(text_service),
        director=DirectorAgent(text_service, lore),
        renderer=renderer,
        feedback=FeedbackAgent(store),
    )
    return GenerationScheduler(store, pipeline, renderer, spread_mode=spread_mode)
