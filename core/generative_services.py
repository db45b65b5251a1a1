# core/generative_services.py
"""Contracts for the three external generative services and their Gemini adapters.

The engine only orchestrates these services. Each contract is an abstract
class with one async method; the Gemini implementations translate requests to
the REST `generateContent` shape and normalize responses back.

Failure contract:
    Implementations raise `GenerativeServiceError`; HTTP errors are wrapped
    via `handle_service_error`. Image and speech services return `None` when the response
    carries no media. Callers decide whether a failure is fatal.
"""

from __future__ import annotations

import base64
from abc import ABC, abstractmethod
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any

import httpx
import structlog
from pydantic import BaseModel, Field

import config
from core.exceptions import GenerativeServiceError, create_error_context, handle_service_error
from core.http_client_service import GeminiHTTPClient, HTTPClientService
from models.narrative_models import AudioAsset, ImageAsset

logger = structlog.get_logger(__name__)


class TextGenerationRequest(BaseModel):
    system_instruction: str
    prompt: str
    response_schema: dict[str, Any] | None = None
    temperature: float = 0.7


class ImagePart(BaseModel):
    """One ordered element of an image request: text, a reference image, or both."""

    text: str | None = None
    image: ImageAsset | None = None


class ImageGenerationRequest(BaseModel):
    parts: list[ImagePart] = Field(default_factory=list)
    temperature: float = 0.4
    top_p: float = 0.8
    top_k: int = 32


class SpeechRequest(BaseModel):
    text: str
    voice: str = "Puck"
    delivery_hint: str | None = None


class TextGenerationService(ABC):
    @abstractmethod
    async def generate_text(self, request: TextGenerationRequest) -> str:
        """Return the model's text output, ideally schema-conformant JSON."""


class ImageGenerationService(ABC):
    @abstractmethod
    async def generate_image(self, request: ImageGenerationRequest) -> ImageAsset | None:
        """Return one generated image, or None when the model produced none."""


class SpeechSynthesisService(ABC):
    @abstractmethod
    async def synthesize(self, request: SpeechRequest) -> AudioAsset | None:
        """Return synthesized audio, or None when the model produced none."""


async def _generate(client: GeminiHTTPClient, model: str, body: dict[str, Any], operation: str) -> dict[str, Any]:
    try:
        return await client.generate_content(model, body)
    except httpx.HTTPError as e:
        raise handle_service_error(operation, e, model=model) from e


def _candidate_parts(response: dict[str, Any], operation: str) -> list[dict[str, Any]]:
    candidates = response.get("candidates") or []
    if not candidates:
        feedback = response.get("promptFeedback") or {}
        raise GenerativeServiceError(
            f"Gemini returned no candidates for {operation}",
            details=create_error_context(block_reason=feedback.get("blockReason")),
        )
    content = candidates[0].get("content") or {}
    return list(content.get("parts") or [])


def _inline_data(parts: list[dict[str, Any]]) -> tuple[bytes, str] | None:
    for part in parts:
        inline = part.get("inlineData") or part.get("inline_data")
        if inline and inline.get("data"):
            mime = inline.get("mimeType") or inline.get("mime_type") or "application/octet-stream"
            return base64.b64decode(inline["data"]), mime
    return None


class GeminiTextService(TextGenerationService):
    """Text generation via Gemini with optional structured output."""

    def __init__(self, client: GeminiHTTPClient, model: str | None = None):
        self._client = client
        self._model = model or config.TEXT_MODEL

    async def generate_text(self, request: TextGenerationRequest) -> str:
        generation_config: dict[str, Any] = {"temperature": request.temperature}
        if request.response_schema is not None:
            generation_config["responseMimeType"] = "application/json"
            generation_config["responseSchema"] = request.response_schema

        body = {
            "systemInstruction": {"parts": [{"text": request.system_instruction}]},
            "contents": [{"role": "user", "parts": [{"text": request.prompt}]}],
            "generationConfig": generation_config,
        }
        response = await _generate(self._client, self._model, body, "text generation")
        parts = _candidate_parts(response, "text generation")
        text = "".join(part.get("text", "") for part in parts if isinstance(part.get("text"), str))
        if not text.strip():
            raise GenerativeServiceError("Gemini returned empty text", details={"model": self._model})
        return text


class GeminiImageService(ImageGenerationService):
    """Image generation via a Gemini image model, with reference images inline."""

    def __init__(self, client: GeminiHTTPClient, model: str | None = None):
        self._client = client
        self._model = model or config.IMAGE_MODEL

    async def generate_image(self, request: ImageGenerationRequest) -> ImageAsset | None:
        parts: list[dict[str, Any]] = []
        for part in request.parts:
            if part.text:
                parts.append({"text": part.text})
            if part.image is not None:
                parts.append({"inlineData": {"mimeType": part.image.mime_type, "data": part.image.to_base64()}})

        body = {
            "contents": [{"role": "user", "parts": parts}],
            "generationConfig": {
                "responseModalities": ["IMAGE"],
                "temperature": request.temperature,
                "topP": request.top_p,
                "topK": request.top_k,
            },
        }
        response = await _generate(self._client, self._model, body, "image generation")
        media = _inline_data(_candidate_parts(response, "image generation"))
        if media is None:
            logger.warning("Gemini image response carried no image", model=self._model)
            return None
        data, mime = media
        return ImageAsset(data=data, mime_type=mime)


class GeminiSpeechService(SpeechSynthesisService):
    """Speech synthesis via the Gemini TTS model with a prebuilt voice."""

    def __init__(self, client: GeminiHTTPClient, model: str | None = None):
        self._client = client
        self._model = model or config.SPEECH_MODEL

    async def synthesize(self, request: SpeechRequest) -> AudioAsset | None:
        if not request.text.strip():
            return None
        # TTS models take style direction as a natural-language prefix
        text = f"Say {request.delivery_hint}: {request.text}" if request.delivery_hint else request.text
        body = {
            "contents": [{"role": "user", "parts": [{"text": text}]}],
            "generationConfig": {
                "responseModalities": ["AUDIO"],
                "speechConfig": {"voiceConfig": {"prebuiltVoiceConfig": {"voiceName": request.voice}}},
            },
        }
        response = await _generate(self._client, self._model, body, "speech synthesis")
        media = _inline_data(_candidate_parts(response, "speech synthesis"))
        if media is None:
            return None
        data, mime = media
        return AudioAsset(data=data, mime_type=mime)


class GeminiServices(BaseModel):
    """The three Gemini adapters sharing one HTTP client."""

    model_config = {"arbitrary_types_allowed": True}

    text: GeminiTextService
    image: GeminiImageService
    speech: GeminiSpeechService
    http_client: HTTPClientService


@asynccontextmanager
async def gemini_service_context(api_key: str | None = None) -> AsyncGenerator[GeminiServices, None]:
    """Build the Gemini adapters over a shared HTTP client and close it on exit.

    Usage:
        async with gemini_service_context() as services:
            text = await services.text.generate_text(request)
    """
    http_client = HTTPClientService()
    client = GeminiHTTPClient(http_client, api_key=api_key)
    services = GeminiServices(
        text=GeminiTextService(client),
        image=GeminiImageService(client),
        speech=GeminiSpeechService(client),
        http_client=http_client,
    )
    try:
        yield services
    finally:
        await http_client.aclose()
        logger.debug("Gemini services closed", **http_client.get_statistics())
