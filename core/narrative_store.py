# core/narrative_store.py
"""Hold the narrative state shared by the scheduler and every pipeline stage.

The store is an explicit, constructor-injected object. Each write replaces a
field with a value computed from the previous one, so interleaved async
completions never overwrite each other's unrelated fields.

Generation stamping:
    `reset_all()` increments `generation`. Writers that captured an older
    generation pass it as `generation=`; such writes are dropped.
"""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

import structlog

import config
from models.kg_models import ALLY_NODE_ID, SUBJECT_NODE_ID, KnowledgeGraph, default_knowledge_graph
from models.narrative_models import ComicFace, ImageAsset, Ledger, LedgerDelta, Persona

logger = structlog.get_logger(__name__)

PagesTransform = Callable[[list[ComicFace]], list[ComicFace]]


def initial_ledger() -> Ledger:
    return Ledger(hope=config.INITIAL_HOPE, trauma=config.INITIAL_TRAUMA, integrity=config.INITIAL_INTEGRITY)


class NarrativeStore:
    """Personas, ledger, knowledge graph and pages for one story."""

    def __init__(self, sound_enabled: bool = True):
        self._sound_enabled = sound_enabled
        self._generation = 0
        self._restore_initial_state()

    def _restore_initial_state(self) -> None:
        self._hero: Persona | None = None
        self._friend: Persona | None = None
        self._ledger = initial_ledger()
        self._graph = default_knowledge_graph()
        self._pages: list[ComicFace] = []
        self._protagonist_reference: ImageAsset | None = None

    # -- read access -------------------------------------------------------

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def hero(self) -> Persona | None:
        return self._hero

    @property
    def friend(self) -> Persona | None:
        return self._friend

    @property
    def ledger(self) -> Ledger:
        return self._ledger

    @property
    def graph(self) -> KnowledgeGraph:
        return self._graph

    @property
    def pages(self) -> list[ComicFace]:
        return list(self._pages)

    @property
    def sound_enabled(self) -> bool:
        return self._sound_enabled

    @property
    def protagonist_reference(self) -> ImageAsset | None:
        return self._protagonist_reference

    def get_page(self, page_index: int) -> ComicFace | None:
        for face in self._pages:
            if face.page_index == page_index:
                return face
        return None

    def is_stale(self, generation: int | None) -> bool:
        """True when a write stamped with `generation` predates the last reset."""
        return generation is not None and generation != self._generation

    def _drop_stale(self, generation: int | None, op: str, **context: Any) -> bool:
        if self.is_stale(generation):
            logger.debug(
                "Discarding stale write",
                op=op,
                write_generation=generation,
                current_generation=self._generation,
                **context,
            )
            return True
        return False

    # -- personas ----------------------------------------------------------

    def set_hero(self, persona: Persona | None) -> None:
        """Set the protagonist and sync the `Subject` graph node."""
        self._hero = persona
        if persona is not None:
            self._sync_persona_node(SUBJECT_NODE_ID, persona)

    def set_friend(self, persona: Persona | None) -> None:
        """Set the companion and sync the `Ally` graph node."""
        self._friend = persona
        if persona is not None:
            self._sync_persona_node(ALLY_NODE_ID, persona)

    def _sync_persona_node(self, node_id: str, persona: Persona) -> None:
        node = self._graph.node(node_id)
        if node is None:
            logger.warning("Persona node missing from graph; not synced", node_id=node_id)
            return
        properties = {
            **node.properties,
            "bio": persona.bio,
            "core_fear": persona.core_fear,
            "archetype": persona.archetype.value,
        }
        self._graph = self._graph.with_node(node.model_copy(update={"label": persona.name, "properties": properties}))

    def set_sound_enabled(self, enabled: bool) -> None:
        self._sound_enabled = enabled

    def set_protagonist_reference(self, image: ImageAsset | None, generation: int | None = None) -> None:
        if self._drop_stale(generation, "set_protagonist_reference"):
            return
        self._protagonist_reference = image

    # -- ledger ------------------------------------------------------------

    def set_ledger(self, ledger: Ledger, generation: int | None = None) -> None:
        if self._drop_stale(generation, "set_ledger"):
            return
        self._ledger = Ledger(hope=ledger.hope, trauma=ledger.trauma, integrity=ledger.integrity)

    def update_ledger(self, delta: LedgerDelta, generation: int | None = None) -> Ledger:
        """Merge `delta` into the ledger, clamping every counter to [0, 100]."""
        if not self._drop_stale(generation, "update_ledger"):
            self._ledger = self._ledger.apply(delta)
        return self._ledger

    # -- graph -------------------------------------------------------------

    def set_graph(self, graph: KnowledgeGraph, generation: int | None = None) -> None:
        if self._drop_stale(generation, "set_graph"):
            return
        self._graph = graph

    def update_graph(
        self,
        transform: Callable[[KnowledgeGraph], KnowledgeGraph],
        generation: int | None = None,
    ) -> KnowledgeGraph:
        if not self._drop_stale(generation, "update_graph"):
            self._graph = transform(self._graph)
        return self._graph

    # -- pages -------------------------------------------------------------

    def set_pages(self, pages: list[ComicFace] | PagesTransform, generation: int | None = None) -> None:
        """Replace the page collection, or apply a transform to the current one."""
        if self._drop_stale(generation, "set_pages"):
            return
        if callable(pages):
            self._pages = list(pages(list(self._pages)))
        else:
            self._pages = list(pages)

    def update_page(self, face_id: str, patch: dict[str, Any], generation: int | None = None) -> bool:
        """Merge `patch` into the page with id `face_id`.

        Returns:
            True if a page was updated; False for an unknown id or a stale write.
        """
        if self._drop_stale(generation, "update_page", face_id=face_id):
            return False
        found = False
        updated: list[ComicFace] = []
        for face in self._pages:
            if face.id == face_id:
                updated.append(face.model_copy(update=patch))
                found = True
            else:
                updated.append(face)
        if found:
            self._pages = updated
        return found

    # -- lifecycle ---------------------------------------------------------

    def reset_all(self) -> int:
        """Restore initial state; the sound preference survives.

        Returns:
            The new generation number.
        """
        self._generation += 1
        self._restore_initial_state()
        logger.info("Narrative store reset", generation=self._generation)
        return self._generation
