# models/narrative_models.py
"""Define the narrative state models: personas, ledger, beats and pages.

These are Pydantic models treated as values. Store updates produce new
instances via `model_copy(update=...)` rather than assigning fields.
"""

from __future__ import annotations

import base64
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field, field_validator


class Archetype(str, Enum):
    """Every character role the lore tables must describe."""

    # Faculty
    PROVOST = "Provost"
    INQUISITOR = "Inquisitor"
    CONFESSOR = "Confessor"
    LOGICIAN = "Logician"
    CUSTODIAN = "Custodian"
    VETERAN = "Veteran"
    # Prefects
    LOYALIST = "Loyalist"
    PRAGMATIST = "Pragmatist"
    SIREN = "Siren"
    DISSIDENT = "Dissident"
    # Students
    SUBJECT = "Subject"
    ALLY = "Ally"
    GUARDIAN = "Guardian"
    ARCHIVIST = "Archivist"
    GHOST = "Ghost"
    JESTER = "Jester"
    PENITENT = "Penitent"


class PageType(str, Enum):
    COVER = "cover"
    STORY = "story"
    BACK_COVER = "back_cover"


class ImageAsset(BaseModel):
    """Encoded image bytes plus their MIME type."""

    data: bytes
    mime_type: str = "image/png"

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")


class AudioAsset(BaseModel):
    """Synthesized speech. Gemini returns raw 16-bit PCM at 24 kHz."""

    data: bytes
    mime_type: str = "audio/L16;rate=24000"


class Persona(BaseModel):
    """A participant reference supplied by the user."""

    name: str
    archetype: Archetype = Archetype.SUBJECT
    bio: str = ""
    core_fear: str = ""
    image: ImageAsset | None = None


def clamp_stat(value: Any) -> int:
    return int(max(0, min(100, round(float(value)))))


class LedgerDelta(BaseModel):
    """A signed change to each ledger counter."""

    hope: int = 0
    trauma: int = 0
    integrity: int = 0


class Ledger(BaseModel):
    """Protagonist condition: three counters, each clamped to [0, 100]."""

    hope: int = 50
    trauma: int = 10
    integrity: int = 90

    @field_validator("hope", "trauma", "integrity", mode="before")
    @classmethod
    def _clamp(cls, value: Any) -> int:
        return clamp_stat(value)

    def apply(self, delta: LedgerDelta) -> Ledger:
        """Return a new ledger with `delta` added and every counter clamped."""
        return Ledger(
            hope=self.hope + delta.hope,
            trauma=self.trauma + delta.trauma,
            integrity=self.integrity + delta.integrity,
        )


class Beat(BaseModel):
    """One page's merged narrative payload."""

    caption: str = ""
    dialogue: str = ""
    speaker: str = ""
    scene: str = ""
    mood: str = ""
    intent: str = ""
    focus_char: Archetype = Archetype.SUBJECT
    location: str = ""
    choices: list[str] = Field(default_factory=list)
    reasoning_trace: str | None = None
    ledger_impact: LedgerDelta | None = None


class ComicFace(BaseModel):
    """One page of the book, from loading placeholder to finished content."""

    id: str
    type: PageType = PageType.STORY
    page_index: int
    is_loading: bool = True
    is_decision_page: bool = False
    image: ImageAsset | None = None
    narrative: Beat | None = None
    choices: list[str] = Field(default_factory=list)
    resolved_choice: str | None = None
    audio: AudioAsset | None = None
    failed: bool = False

    @classmethod
    def placeholder(cls, page_index: int, page_type: PageType, is_decision_page: bool = False) -> ComicFace:
        return cls(
            id=face_id(page_index),
            type=page_type,
            page_index=page_index,
            is_loading=True,
            is_decision_page=is_decision_page,
        )


def face_id(page_index: int) -> str:
    """Stable page id derived from the page index."""
    return f"page-{page_index}"


class SceneConfig(BaseModel):
    """Fixed narrative metadata for one page number."""

    location: str
    focus_archetype: Archetype
    intent: str
