# agents/renderer_agent.py
"""Build and execute the image and speech requests for a page.

Image and speech run concurrently and fail independently: a failed image
leaves the page without a picture, a failed speech call leaves it without
audio, and neither aborts the page.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from dataclasses import dataclass

import structlog

import config
from core.exceptions import AssetFailure, create_error_context
from core.generative_services import (
    ImageGenerationRequest,
    ImageGenerationService,
    ImagePart,
    SpeechRequest,
    SpeechSynthesisService,
)
from core.image_processing import crop_face_region, split_spread
from core.lore_tables import LoreTables
from models.agent_models import AnalystOutput, DirectorOutput
from models.narrative_models import Archetype, AudioAsset, Beat, ComicFace, ImageAsset, PageType, Persona
from prompts.prompt_renderer import render_prompt

logger = structlog.get_logger(__name__)


@dataclass(frozen=True)
class References:
    """Identity and style anchors for one image request."""

    hero: Persona | None = None
    hero_image: ImageAsset | None = None
    friend: Persona | None = None
    style: ImageAsset | None = None


@dataclass(frozen=True)
class SpreadLayout:
    left_index: int
    right_index: int
    right_scene: str


def is_consistency_reset_page(page_index: int) -> bool:
    return 1 <= page_index <= config.MAX_STORY_PAGES and page_index % config.CONSISTENCY_RESET_INTERVAL == 0


def latest_protagonist_image(pages: Iterable[ComicFace], before_page: int) -> ImageAsset | None:
    """Image of the most recent earlier story page focused on the Subject."""
    best: ComicFace | None = None
    for face in pages:
        if (
            face.type == PageType.STORY
            and face.page_index < before_page
            and face.image is not None
            and face.narrative is not None
            and face.narrative.focus_char == Archetype.SUBJECT
            and (best is None or face.page_index > best.page_index)
        ):
            best = face
    return best.image if best else None


class RendererAgent:
    """Turns a beat into page assets through the image and speech services."""

    def __init__(
        self,
        image_service: ImageGenerationService,
        speech_service: SpeechSynthesisService,
        lore: LoreTables,
    ):
        self._image_service = image_service
        self._speech_service = speech_service
        self._lore = lore

    # -- request building ---------------------------------------------------

    def _reference_parts(self, refs: References) -> list[ImagePart]:
        parts: list[ImagePart] = []
        if refs.hero is not None and refs.hero_image is not None:
            parts.append(ImagePart(text="Reference 1: the Subject. Preserve this face exactly.", image=refs.hero_image))
        if refs.friend is not None and refs.friend.image is not None:
            index = 2 if parts else 1
            parts.append(ImagePart(text=f"Reference {index}: the Ally. Preserve this face exactly.", image=refs.friend.image))
        return parts

    def _sampling(self) -> dict[str, float | int]:
        return {
            "temperature": config.IMAGE_TEMPERATURE,
            "top_p": config.IMAGE_TOP_P,
            "top_k": config.IMAGE_TOP_K,
        }

    def build_image_request(
        self,
        beat: Beat,
        director: DirectorOutput,
        refs: References,
        spread: SpreadLayout | None = None,
    ) -> ImageGenerationRequest:
        """Reference images first, then the structured scene text, then the style anchor."""
        hero_present = refs.hero is not None and refs.hero_image is not None
        friend_present = refs.friend is not None and refs.friend.image is not None
        scene_text = render_prompt(
            "renderer/page.j2",
            {
                "beat": beat,
                "visuals": director.visuals,
                "location_visual": self._lore.location_visual(beat.location),
                "focus_visual": self._lore.visual_for(beat.focus_char),
                "hero_present": hero_present,
                "friend_present": friend_present,
                "hero_visual": self._persona_visual(refs.hero, Archetype.SUBJECT),
                "friend_visual": self._persona_visual(refs.friend, Archetype.ALLY),
                "style_reference": refs.style is not None,
                "spread": spread,
            },
        )
        parts = self._reference_parts(refs)
        parts.append(ImagePart(text=scene_text))
        if refs.style is not None:
            parts.append(ImagePart(text="Style reference (previous page):", image=refs.style))
        return ImageGenerationRequest(parts=parts, **self._sampling())

    def _persona_visual(self, persona: Persona | None, archetype: Archetype) -> str:
        base = self._lore.visual_for(archetype)
        if persona is None:
            return base
        detail = f"{persona.name}. {persona.bio}".strip(" .")
        return f"{base}. {detail}" if detail else base

    def build_speech_request(self, beat: Beat, analyst: AnalystOutput) -> SpeechRequest | None:
        """Dialogue is preferred over caption; None when the page has no text."""
        text = (beat.dialogue or beat.caption).strip()
        if not text:
            return None
        delivery = self._lore.delivery_for(beat.focus_char)
        emotion = analyst.target_emotion.lower()
        hint = f"{delivery}, conveying {emotion}" if delivery else f"conveying {emotion}"
        return SpeechRequest(text=text, voice=self._lore.voice_for(beat.focus_char), delivery_hint=hint)

    # -- execution ----------------------------------------------------------

    async def render_image(self, request: ImageGenerationRequest, page_index: int) -> ImageAsset | None:
        try:
            image = await asyncio.wait_for(
                self._image_service.generate_image(request),
                timeout=config.GENERATION_TIMEOUT_SECONDS,
            )
        except Exception as e:
            failure = AssetFailure(
                "Image generation failed",
                details=create_error_context(page=page_index, error=str(e), error_type=type(e).__name__),
            )
            logger.warning(failure.message, **failure.details)
            return None
        if image is None:
            logger.warning("Image service returned no image", page=page_index)
        return image

    async def synthesize(self, request: SpeechRequest | None, page_index: int) -> AudioAsset | None:
        if request is None:
            return None
        try:
            return await asyncio.wait_for(
                self._speech_service.synthesize(request),
                timeout=config.GENERATION_TIMEOUT_SECONDS,
            )
        except Exception as e:
            failure = AssetFailure(
                "Speech synthesis failed",
                details=create_error_context(page=page_index, error=str(e), error_type=type(e).__name__),
            )
            logger.warning(failure.message, **failure.details)
            return None

    async def render_page(
        self,
        *,
        page_index: int,
        beat: Beat,
        director: DirectorOutput,
        analyst: AnalystOutput,
        refs: References,
        with_audio: bool = True,
    ) -> tuple[ImageAsset | None, AudioAsset | None]:
        """Run image and speech concurrently for one page."""
        image_request = self.build_image_request(beat, director, refs)
        speech_request = self.build_speech_request(beat, analyst) if with_audio else None
        image, audio = await asyncio.gather(
            self.render_image(image_request, page_index),
            self.synthesize(speech_request, page_index),
        )
        logger.info("Page rendered", page=page_index, image=image is not None, audio=audio is not None)
        return image, audio

    async def render_spread(
        self,
        *,
        left_index: int,
        right_index: int,
        left_beat: Beat,
        right_beat: Beat,
        left_director: DirectorOutput,
        refs: References,
    ) -> tuple[ImageAsset | None, ImageAsset | None]:
        """One combined image call for two pages, split into left and right halves."""
        layout = SpreadLayout(left_index=left_index, right_index=right_index, right_scene=right_beat.scene or right_beat.caption)
        request = self.build_image_request(left_beat, left_director, refs, spread=layout)
        combined = await self.render_image(request, left_index)
        if combined is None:
            return None, None
        try:
            left, right = await asyncio.to_thread(split_spread, combined)
        except AssetFailure as e:
            logger.warning("Spread split failed", left=left_index, right=right_index, error=str(e))
            return None, None
        logger.info("Spread rendered", left=left_index, right=right_index)
        return left, right

    async def render_cover(self, hero: Persona | None, hero_image: ImageAsset | None) -> ImageAsset | None:
        hero_present = hero is not None and hero_image is not None
        text = render_prompt("renderer/cover.j2", {"hero_present": hero_present, "hero_name": hero.name if hero else ""})
        parts = [ImagePart(text="Reference 1: the Subject.", image=hero_image)] if hero_present else []
        parts.append(ImagePart(text=text))
        return await self.render_image(ImageGenerationRequest(parts=parts, **self._sampling()), config.COVER_PAGE)

    async def render_back_cover(self, beat: Beat) -> ImageAsset | None:
        text = render_prompt("renderer/back_cover.j2", {"location_visual": self._lore.location_visual(beat.location)})
        return await self.render_image(
            ImageGenerationRequest(parts=[ImagePart(text=text)], **self._sampling()),
            config.BACK_COVER_PAGE,
        )

    async def consistency_reference(self, page_index: int, pages: Iterable[ComicFace]) -> ImageAsset | None:
        """Crop a fresh protagonist reference on reset pages; None otherwise."""
        if not is_consistency_reset_page(page_index):
            return None
        source = latest_protagonist_image(pages, page_index)
        if source is None:
            logger.debug("No prior protagonist image for consistency reset", page=page_index)
            return None
        try:
            crop = await asyncio.to_thread(crop_face_region, source)
        except AssetFailure as e:
            logger.warning("Consistency reset crop failed", page=page_index, error=str(e))
            return None
        logger.info("Consistency reset applied", page=page_index)
        return crop
