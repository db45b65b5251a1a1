# tests/test_generative_services.py
"""Tests for core/generative_services.py - Gemini request/response translation."""

import base64
import json

import httpx
import pytest

import config
from core.exceptions import GenerativeServiceError
from core.generative_services import (
    GeminiImageService,
    GeminiSpeechService,
    GeminiTextService,
    ImageGenerationRequest,
    ImagePart,
    SpeechRequest,
    TextGenerationRequest,
)
from core.http_client_service import GeminiHTTPClient, HTTPClientService
from models.narrative_models import ImageAsset


class _Recorder:
    def __init__(self, response: dict | None = None, status: int = 200):
        self.response = response or {}
        self.status = status
        self.payloads: list[dict] = []
        self.urls: list[str] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.urls.append(str(request.url))
        self.payloads.append(json.loads(request.content))
        return httpx.Response(self.status, json=self.response)


def _client(recorder: _Recorder) -> tuple[GeminiHTTPClient, HTTPClientService]:
    service = HTTPClientService(timeout=5.0, transport=httpx.MockTransport(recorder))
    return GeminiHTTPClient(service, api_key="k", api_base="http://gemini"), service


def _inline(data: bytes, mime: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"inlineData": {"mimeType": mime, "data": base64.b64encode(data).decode()}}]}}]}


@pytest.mark.asyncio
class TestGeminiTextService:
    async def test_structured_request_and_joined_text(self) -> None:
        recorder = _Recorder({"candidates": [{"content": {"parts": [{"text": '{"a": '}, {"text": "1}"}]}}]})
        client, service = _client(recorder)
        schema = {"type": "OBJECT", "properties": {"a": {"type": "INTEGER"}}}

        text = await GeminiTextService(client, model="text-model").generate_text(
            TextGenerationRequest(system_instruction="sys", prompt="go", response_schema=schema, temperature=0.3)
        )

        payload = recorder.payloads[0]
        assert text == '{"a": 1}'
        assert recorder.urls[0].endswith("/models/text-model:generateContent")
        assert payload["systemInstruction"] == {"parts": [{"text": "sys"}]}
        assert payload["contents"][0]["parts"] == [{"text": "go"}]
        assert payload["generationConfig"] == {
            "temperature": 0.3,
            "responseMimeType": "application/json",
            "responseSchema": schema,
        }
        await service.aclose()

    async def test_no_candidates_raises(self) -> None:
        client, service = _client(_Recorder({"promptFeedback": {"blockReason": "SAFETY"}}))

        with pytest.raises(GenerativeServiceError) as info:
            await GeminiTextService(client).generate_text(TextGenerationRequest(system_instruction="s", prompt="p"))

        assert info.value.details["block_reason"] == "SAFETY"
        await service.aclose()

    async def test_http_error_is_wrapped(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(config, "LLM_RETRY_ATTEMPTS", 1)
        client, service = _client(_Recorder({"error": "nope"}, status=403))

        with pytest.raises(GenerativeServiceError) as info:
            await GeminiTextService(client).generate_text(TextGenerationRequest(system_instruction="s", prompt="p"))

        assert info.value.details["operation"] == "text generation"
        assert isinstance(info.value.__cause__, httpx.HTTPStatusError)
        await service.aclose()


@pytest.mark.asyncio
class TestGeminiImageService:
    async def test_parts_and_sampling_are_sent_in_order(self) -> None:
        recorder = _Recorder(_inline(b"png-bytes", "image/png"))
        client, service = _client(recorder)
        request = ImageGenerationRequest(
            parts=[ImagePart(text="ref", image=ImageAsset(data=b"ref-bytes")), ImagePart(text="scene")],
            temperature=0.4,
            top_p=0.8,
            top_k=32,
        )

        image = await GeminiImageService(client, model="image-model").generate_image(request)

        payload = recorder.payloads[0]
        parts = payload["contents"][0]["parts"]
        assert parts[0] == {"text": "ref"}
        assert parts[1]["inlineData"]["data"] == base64.b64encode(b"ref-bytes").decode()
        assert parts[2] == {"text": "scene"}
        assert payload["generationConfig"] == {"responseModalities": ["IMAGE"], "temperature": 0.4, "topP": 0.8, "topK": 32}
        assert image.data == b"png-bytes"
        await service.aclose()

    async def test_text_only_response_returns_none(self) -> None:
        client, service = _client(_Recorder({"candidates": [{"content": {"parts": [{"text": "sorry"}]}}]}))

        assert await GeminiImageService(client).generate_image(ImageGenerationRequest(parts=[ImagePart(text="x")])) is None
        await service.aclose()


@pytest.mark.asyncio
class TestGeminiSpeechService:
    async def test_voice_and_delivery_prefix(self) -> None:
        recorder = _Recorder(_inline(b"pcm", "audio/L16;rate=24000"))
        client, service = _client(recorder)

        audio = await GeminiSpeechService(client).synthesize(
            SpeechRequest(text="You are late.", voice="Zephyr", delivery_hint="measured, conveying fear")
        )

        payload = recorder.payloads[0]
        assert payload["contents"][0]["parts"] == [{"text": "Say measured, conveying fear: You are late."}]
        voice = payload["generationConfig"]["speechConfig"]["voiceConfig"]["prebuiltVoiceConfig"]["voiceName"]
        assert voice == "Zephyr"
        assert payload["generationConfig"]["responseModalities"] == ["AUDIO"]
        assert audio.data == b"pcm"
        assert audio.mime_type == "audio/L16;rate=24000"
        await service.aclose()

    async def test_blank_text_skips_request(self) -> None:
        recorder = _Recorder()
        client, service = _client(recorder)

        assert await GeminiSpeechService(client).synthesize(SpeechRequest(text="   ")) is None
        assert recorder.payloads == []
        await service.aclose()
