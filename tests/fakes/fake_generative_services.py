# tests/fakes/fake_generative_services.py
"""Hermetic stand-ins for the three generative services.

Each fake records the requests it receives and can be told to fail. Text
responses are chosen by the request's response schema: analyst requests get
an analyst plan, director requests get a script with two choices.
"""

from __future__ import annotations

import io
import json
from collections.abc import Callable
from typing import Any

from PIL import Image

from core.exceptions import GenerativeServiceError
from core.generative_services import (
    ImageGenerationRequest,
    ImageGenerationService,
    SpeechRequest,
    SpeechSynthesisService,
    TextGenerationRequest,
    TextGenerationService,
)
from models.narrative_models import AudioAsset, ImageAsset

DEFAULT_ANALYST_PAYLOAD: dict[str, Any] = {
    "narrative_phase": "Conditioning",
    "strategy": "Offer comfort, then withdraw it",
    "target_emotion": "Fear",
    "graph_intent": "Maintain",
}

DEFAULT_DIRECTOR_PAYLOAD: dict[str, Any] = {
    "script": {"caption": "The bell tolls twice.", "dialogue": "You are late.", "speaker": "Provost"},
    "visuals": {
        "camera": "low angle",
        "lighting": "cold dawn light",
        "pose": "standing at attention",
        "environment": "a long stone hall",
    },
    "choices": ["Defy", "Submit"],
}


def make_png(width: int = 64, height: int = 96, color: str = "gray") -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


def is_analyst_request(request: TextGenerationRequest) -> bool:
    return "strategy" in (request.response_schema or {}).get("properties", {})


class FakeTextService(TextGenerationService):
    def __init__(
        self,
        analyst_payload: dict[str, Any] | None = None,
        director_payload: dict[str, Any] | None = None,
        fail: bool = False,
        raw_response: str | None = None,
    ):
        self.analyst_payload = analyst_payload or dict(DEFAULT_ANALYST_PAYLOAD)
        self.director_payload = director_payload or dict(DEFAULT_DIRECTOR_PAYLOAD)
        self.fail = fail
        self.raw_response = raw_response
        self.requests: list[TextGenerationRequest] = []

    async def generate_text(self, request: TextGenerationRequest) -> str:
        self.requests.append(request)
        if self.fail:
            raise GenerativeServiceError("fake text failure")
        if self.raw_response is not None:
            return self.raw_response
        payload = self.analyst_payload if is_analyst_request(request) else self.director_payload
        return json.dumps(payload)


class FakeImageService(ImageGenerationService):
    def __init__(
        self,
        width: int = 64,
        height: int = 96,
        fail: bool = False,
        on_call: Callable[[ImageGenerationRequest], None] | None = None,
    ):
        self.width = width
        self.height = height
        self.fail = fail
        self.on_call = on_call
        self.requests: list[ImageGenerationRequest] = []

    async def generate_image(self, request: ImageGenerationRequest) -> ImageAsset | None:
        self.requests.append(request)
        if self.on_call is not None:
            self.on_call(request)
        if self.fail:
            raise GenerativeServiceError("fake image failure")
        return ImageAsset(data=make_png(self.width, self.height))


class FakeSpeechService(SpeechSynthesisService):
    def __init__(self, fail: bool = False):
        self.fail = fail
        self.requests: list[SpeechRequest] = []

    async def synthesize(self, request: SpeechRequest) -> AudioAsset | None:
        self.requests.append(request)
        if self.fail:
            raise GenerativeServiceError("fake speech failure")
        return AudioAsset(data=b"\x00\x01" * 8)
