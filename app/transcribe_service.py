"""This module contains classes to manage the Gemini transcription request"""

import base64
import json
import os
from typing import Any, Protocol

import httpx

from .models import AppSettings, TranscriptionResult

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"
DEFAULT_MODEL = os.environ.get("GEMINI_MODEL", "gemini-3-flash-preview")

RESPONSE_SCHEMA: dict[str, Any] = {
    "type": "OBJECT",
    "properties": {
        "segments": {
            "type": "ARRAY",
            "items": {
                "type": "OBJECT",
                "properties": {
                    "startTime": {"type": "STRING"},
                    "endTime": {"type": "STRING"},
                    "speaker": {"type": "STRING"},
                    "text": {"type": "STRING"},
                },
                "required": ["startTime", "endTime", "speaker", "text"],
            },
        },
        "summary": {"type": "STRING"},
        "detectedLanguage": {"type": "STRING"},
    },
    "required": ["segments", "summary", "detectedLanguage"],
}


class TranscriptionError(RuntimeError):
    """Single opaque failure for transport, status and parsing problems."""


class Transcriber(Protocol):
    """Anything the processing session can hand a video to."""

    async def transcribe(
        self, data: bytes, mime_type: str, settings: AppSettings
    ) -> TranscriptionResult:
        """Return the structured transcript for the given video bytes."""


def build_prompt(settings: AppSettings) -> str:
    """Natural-language instruction, with clauses switched by the user settings."""
    instructions = [
        "Transcribe the spoken words accurately in their native language "
        "(Detect automatically, support English and Bangla).",
        "Format the response as a JSON object with segments containing "
        "startTime, endTime, speaker, and text.",
        "Exclude filler words like 'um', 'uh', 'hmm'."
        if settings.remove_fillers
        else "Keep the transcription verbatim.",
        "Differentiate between speakers if there are multiple."
        if settings.speaker_detection
        else "Use 'Speaker 1' for all text.",
    ]
    if settings.generate_summary:
        instructions.append("Provide a concise summary of the content in English.")
    instructions.append("Maintain proper punctuation and sentence structure.")
    instructions.append("Break paragraphs every 10-15 seconds.")

    lines = ["Analyze the provided audio from this video."]
    lines.extend(f"{i}. {text}" for i, text in enumerate(instructions, start=1))
    return "\n".join(lines)


def build_request(encoded: str, mime_type: str, settings: AppSettings) -> dict[str, Any]:
    """Body of a generateContent call: instruction plus inline base64 media."""
    return {
        "contents": [
            {
                "parts": [
                    {"text": build_prompt(settings)},
                    {"inlineData": {"mimeType": mime_type, "data": encoded}},
                ]
            }
        ],
        "generationConfig": {
            "responseMimeType": "application/json",
            "responseSchema": RESPONSE_SCHEMA,
        },
    }


def parse_response(body: dict[str, Any]) -> TranscriptionResult:
    """Pull the JSON text out of the first candidate and validate it."""
    parts = body["candidates"][0]["content"]["parts"]
    text = "".join(part.get("text", "") for part in parts)
    return TranscriptionResult.model_validate(json.loads(text or "{}"))


class TranscribeService:
    """Sends one video at a time to Gemini and returns the structured transcript."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = DEFAULT_MODEL,
        base_url: str = GEMINI_BASE_URL,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        # The credential is read once, when the service is built
        if api_key is None:
            api_key = os.environ.get("API_KEY") or os.environ.get("GEMINI_API_KEY", "")
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}/models/{self.model}:generateContent"

    async def transcribe(
        self, data: bytes, mime_type: str, settings: AppSettings
    ) -> TranscriptionResult:
        """Run a single request/response round-trip; no retries, no caching."""
        encoded = base64.b64encode(data).decode("ascii")
        payload = build_request(encoded, mime_type, settings)

        try:
            # No timeout: large uploads run to completion or failure
            async with httpx.AsyncClient(transport=self._transport, timeout=None) as client:
                response = await client.post(
                    self.endpoint,
                    json=payload,
                    headers={"x-goog-api-key": self.api_key},
                )
                response.raise_for_status()
                return parse_response(response.json())
        except (
            httpx.HTTPError,
            ValueError,
            KeyError,
            IndexError,
            TypeError,
            AttributeError,
        ) as e:
            print(f"Transcription error: {e!r}", flush=True)
            raise TranscriptionError("Failed to process transcription via AI.") from e
