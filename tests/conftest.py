import asyncio
import sys
import os

import pytest

# Ensure the project root is in sys.path so `from app.main import app` works
# with relative imports inside the app package
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from app import main  # noqa: E402
from app.models import TranscriptionResult, TranscriptionSegment  # noqa: E402
from app.session import ProcessingSession  # noqa: E402
from app.transcribe_service import TranscriptionError  # noqa: E402


def make_result(*segments, summary="A short greeting.", language="English"):
    """Build a TranscriptionResult from (start, end, speaker, text) tuples."""
    if not segments:
        segments = (("00:00", "00:05", "Speaker 1", "Hello"),)
    return TranscriptionResult(
        segments=[
            TranscriptionSegment(start_time=start, end_time=end, speaker=speaker, text=text)
            for start, end, speaker, text in segments
        ],
        summary=summary,
        detected_language=language,
    )


class StubTranscriber:
    """Stands in for the Gemini client; returns a fixed result or raises."""

    def __init__(self, result=None, error=None):
        self.result = result if result is not None else make_result()
        self.error = error
        self.calls = []

    async def transcribe(self, data, mime_type, settings):
        self.calls.append((data, mime_type, settings))
        if self.error is not None:
            raise self.error
        return self.result


class BlockingTranscriber(StubTranscriber):
    """Waits for `release` before answering, to observe in-flight behaviour."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.release = asyncio.Event()

    async def transcribe(self, data, mime_type, settings):
        await self.release.wait()
        return await super().transcribe(data, mime_type, settings)


class RecordingSleep:
    """Timer replacement that returns immediately and remembers each delay."""

    def __init__(self):
        self.delays = []

    async def __call__(self, seconds):
        self.delays.append(seconds)


@pytest.fixture
def transcriber():
    return StubTranscriber()


@pytest.fixture
def failing_transcriber():
    return StubTranscriber(error=TranscriptionError("Failed to process transcription via AI."))


@pytest.fixture
def sleep():
    return RecordingSleep()


@pytest.fixture
def session(transcriber, sleep, monkeypatch):
    """A fresh session wired into the app in place of the module-level one."""
    fresh = ProcessingSession(transcriber, sleep=sleep)
    monkeypatch.setattr(main, "session", fresh)
    return fresh
