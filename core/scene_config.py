# core/scene_config.py
"""Resolve a page number to its fixed scene configuration."""

from __future__ import annotations

from collections.abc import Mapping

from models.narrative_models import Archetype, SceneConfig

FALLBACK_SCENE = SceneConfig(location="Isolation Ward", focus_archetype=Archetype.SUBJECT, intent="Survival.")


class SceneConfigResolver:
    """Pure page-number lookup over the story timeline."""

    def __init__(self, timeline: Mapping[int, SceneConfig], fallback: SceneConfig = FALLBACK_SCENE):
        self._timeline = dict(timeline)
        self._fallback = fallback

    @property
    def fallback(self) -> SceneConfig:
        return self._fallback

    def resolve(self, page_number: int) -> SceneConfig:
        """Return the scene for `page_number`, or the fallback for any page outside the table."""
        return self._timeline.get(page_number, self._fallback)
