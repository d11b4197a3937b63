import base64
import json

import httpx
import pytest

from app.models import AppSettings
from app.transcribe_service import (
    RESPONSE_SCHEMA,
    TranscribeService,
    TranscriptionError,
    build_prompt,
)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

RESULT_JSON = {
    "segments": [
        {"startTime": "00:00", "endTime": "00:04", "speaker": "Speaker 1", "text": "Hello"},
        {"startTime": "00:04", "endTime": "00:07", "speaker": "Speaker 2", "text": "Hi"},
    ],
    "summary": "Two people greet each other.",
    "detectedLanguage": "English",
}


def _gemini_body(text: str) -> dict:
    return {"candidates": [{"content": {"parts": [{"text": text}], "role": "model"}}]}


def _service(handler) -> TranscribeService:
    return TranscribeService(
        api_key="test-key", model="test-model", transport=httpx.MockTransport(handler)
    )


# ---------------------------------------------------------------------------
# Prompt
# ---------------------------------------------------------------------------

class TestBuildPrompt:
    def test_all_options_enabled(self):
        prompt = build_prompt(AppSettings())
        assert "Exclude filler words like 'um', 'uh', 'hmm'." in prompt
        assert "Differentiate between speakers if there are multiple." in prompt
        assert "Provide a concise summary of the content in English." in prompt
        assert "support English and Bangla" in prompt

    def test_all_options_disabled(self):
        settings = AppSettings(
            generate_summary=False, speaker_detection=False, remove_fillers=False
        )
        prompt = build_prompt(settings)
        assert "Keep the transcription verbatim." in prompt
        assert "Use 'Speaker 1' for all text." in prompt
        assert "summary" not in prompt

    def test_instructions_are_numbered_without_gaps(self):
        prompt = build_prompt(AppSettings(generate_summary=False))
        numbers = [line.split(".")[0] for line in prompt.splitlines()[1:]]
        assert numbers == [str(i) for i in range(1, len(numbers) + 1)]


# ---------------------------------------------------------------------------
# Request / response
# ---------------------------------------------------------------------------

class TestTranscribe:
    @pytest.mark.asyncio
    async def test_sends_inline_base64_video_and_schema(self):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["url"] = str(request.url)
            captured["key"] = request.headers["x-goog-api-key"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(200, json=_gemini_body(json.dumps(RESULT_JSON)))

        await _service(handler).transcribe(b"fake-video-bytes", "video/mp4", AppSettings())

        assert captured["url"].endswith("/models/test-model:generateContent")
        assert captured["key"] == "test-key"
        parts = captured["body"]["contents"][0]["parts"]
        assert parts[0]["text"] == build_prompt(AppSettings())
        assert parts[1]["inlineData"] == {
            "mimeType": "video/mp4",
            "data": base64.b64encode(b"fake-video-bytes").decode("ascii"),
        }
        config = captured["body"]["generationConfig"]
        assert config["responseMimeType"] == "application/json"
        assert config["responseSchema"] == RESPONSE_SCHEMA

    @pytest.mark.asyncio
    async def test_parses_result(self):
        service = _service(
            lambda request: httpx.Response(200, json=_gemini_body(json.dumps(RESULT_JSON)))
        )
        result = await service.transcribe(b"v", "video/quicktime", AppSettings())

        assert [s.speaker for s in result.segments] == ["Speaker 1", "Speaker 2"]
        assert result.segments[1].end_time == "00:07"
        assert result.summary == "Two people greet each other."
        assert result.detected_language == "English"

    @pytest.mark.asyncio
    async def test_joins_split_text_parts(self):
        text = json.dumps(RESULT_JSON)
        body = {"candidates": [{"content": {"parts": [{"text": text[:10]}, {"text": text[10:]}]}}]}
        service = _service(lambda request: httpx.Response(200, json=body))

        result = await service.transcribe(b"v", "video/mp4", AppSettings())
        assert len(result.segments) == 2

    @pytest.mark.asyncio
    async def test_each_call_hits_the_service(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json=_gemini_body(json.dumps(RESULT_JSON)))

        service = _service(handler)
        await service.transcribe(b"v", "video/mp4", AppSettings())
        await service.transcribe(b"v", "video/mp4", AppSettings())
        assert len(calls) == 2

    def test_reads_api_key_from_environment(self, monkeypatch):
        monkeypatch.setenv("API_KEY", "from-env")
        assert TranscribeService().api_key == "from-env"


class TestTranscribeFailures:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "response",
        [
            httpx.Response(500, json={"error": {"message": "internal"}}),
            httpx.Response(403, json={"error": {"message": "bad key"}}),
            httpx.Response(200, text="not json at all"),
            httpx.Response(200, json={"candidates": []}),
            httpx.Response(200, json=_gemini_body("{not valid json")),
            httpx.Response(200, json=_gemini_body(json.dumps({"segments": [], "summary": "x"}))),
            httpx.Response(
                200,
                json=_gemini_body(
                    json.dumps(
                        {
                            "segments": [{"startTime": "0", "speaker": "A", "text": "t"}],
                            "summary": "",
                            "detectedLanguage": "English",
                        }
                    )
                ),
            ),
        ],
        ids=[
            "server-error",
            "forbidden",
            "non-json-body",
            "no-candidates",
            "invalid-json-text",
            "missing-language",
            "incomplete-segment",
        ],
    )
    async def test_failures_surface_as_transcription_error(self, response):
        service = _service(lambda request: response)
        with pytest.raises(TranscriptionError, match="Failed to process transcription via AI."):
            await service.transcribe(b"v", "video/mp4", AppSettings())

    @pytest.mark.asyncio
    async def test_network_error_surfaces_as_transcription_error(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(TranscriptionError) as excinfo:
            await _service(handler).transcribe(b"v", "video/mp4", AppSettings())
        assert isinstance(excinfo.value.__cause__, httpx.ConnectError)
