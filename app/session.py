"""Processing state machine driving one transcription run at a time.

The phase timings are cosmetic: each phase shows a fixed percentage and, except
for the transcription itself, lasts a fixed simulated duration. The real
network call happens inside the transcribing phase, so its latency never
affects the displayed percentage.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .formatting import format_transcript
from .models import (
    RESTARTABLE_STATUSES,
    AppSettings,
    ProcessingStatus,
    TranscriptionResult,
)
from .transcribe_service import Transcriber, TranscriptionError
from .validation import SelectedFile

Sleep = Callable[[float], Awaitable[None]]


@dataclass(frozen=True)
class Phase:
    status: ProcessingStatus
    label: str
    percent: int
    duration: float


DEFAULT_PHASES: tuple[Phase, ...] = (
    Phase(ProcessingStatus.UPLOADING, "Loading Video Data...", 20, 1.0),
    Phase(ProcessingStatus.EXTRACTING, "Extracting Audio...", 40, 1.2),
    # Lasts as long as the real request
    Phase(ProcessingStatus.TRANSCRIBING, "Running AI Transcription...", 70, 0.0),
    Phase(ProcessingStatus.FINALIZING, "Polishing Output...", 90, 0.8),
)

FAILURE_MESSAGE = (
    "There was an issue processing your video. "
    "Please try a different file or check your internet connection."
)


class SessionBusyError(RuntimeError):
    """Raised when the session cannot change while a run is in flight."""


class NoResultError(RuntimeError):
    """Raised when an operation needs a finished transcription."""


class ProcessingSession:
    """Owns settings, the selected file, the status and the current result."""

    def __init__(
        self,
        transcriber: Transcriber,
        phases: tuple[Phase, ...] = DEFAULT_PHASES,
        sleep: Sleep = asyncio.sleep,
    ) -> None:
        self.transcriber = transcriber
        self.phases = phases
        self._sleep = sleep
        self.settings = AppSettings()
        self.selected_file: SelectedFile | None = None
        self.status = ProcessingStatus.IDLE
        self.label = ""
        self.progress = 0
        self.result: TranscriptionResult | None = None
        self.edited_text = ""
        self.error_message: str | None = None
        self.task: asyncio.Task | None = None
        self._subscribers: set[asyncio.Queue] = set()

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------

    @property
    def is_processing(self) -> bool:
        return self.status not in RESTARTABLE_STATUSES

    def snapshot(self) -> dict[str, Any]:
        """JSON-ready view of the whole session."""
        selected = None
        if self.selected_file is not None:
            selected = {
                "filename": self.selected_file.filename,
                "contentType": self.selected_file.content_type,
                "size": self.selected_file.size,
            }
        return {
            "status": self.status.value,
            "label": self.label,
            "progress": self.progress,
            "isProcessing": self.is_processing,
            "settings": self.settings.model_dump(by_alias=True),
            "selectedFile": selected,
            "result": self.result.model_dump(by_alias=True) if self.result else None,
            "editedText": self.edited_text,
            "error": self.error_message,
        }

    def subscribe(self) -> asyncio.Queue:
        queue: asyncio.Queue = asyncio.Queue()
        self._subscribers.add(queue)
        return queue

    def unsubscribe(self, queue: asyncio.Queue) -> None:
        self._subscribers.discard(queue)

    def _publish(self) -> None:
        state = self.snapshot()
        for queue in self._subscribers:
            queue.put_nowait(state)

    # ------------------------------------------------------------------
    # User actions
    # ------------------------------------------------------------------

    def select_file(self, selected: SelectedFile) -> None:
        """Make `selected` the only file of the session and drop any old result."""
        if self.is_processing:
            raise SessionBusyError("A transcription is already in progress")
        self.selected_file = selected
        self._clear_run()
        self._publish()

    def toggle_setting(self, name: str) -> bool:
        value = self.settings.toggle(name)
        self._publish()
        return value

    def start(self) -> asyncio.Task | None:
        """Schedule a run; a no-op without a file or while one is in flight."""
        if self.selected_file is None or self.is_processing:
            return None
        self.result = None
        self.edited_text = ""
        self.error_message = None
        # Enter the first phase now so a second start() before the task runs is refused
        self._enter(self.phases[0])
        self.task = asyncio.create_task(self._run(self.selected_file))
        return self.task

    def reset(self) -> None:
        """Return to idle from success or error, keeping the selected file (Try Again)."""
        if self.is_processing:
            raise SessionBusyError("A transcription is already in progress")
        self._clear_run()
        self._publish()

    def update_edited_text(self, text: str) -> None:
        self.require_result()
        self.edited_text = text
        self._publish()

    def rerender(self) -> str:
        """Rebuild the editable text from the result with the current settings."""
        result = self.require_result()
        self.edited_text = format_transcript(result, self.settings)
        self._publish()
        return self.edited_text

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    async def _run(self, selected: SelectedFile) -> None:
        settings = self.settings.model_copy()
        print(f"Starting transcription of {selected.filename}", flush=True)
        try:
            result = None
            for index, phase in enumerate(self.phases):
                if index:
                    self._enter(phase)
                if phase.status is ProcessingStatus.TRANSCRIBING:
                    result = await self.transcriber.transcribe(
                        selected.data, selected.content_type, settings
                    )
                else:
                    await self._sleep(phase.duration)
            if result is None:
                raise TranscriptionError("No transcription phase configured")
        except Exception as e:
            print(f"Transcription failed during {self.status.value}: {e}", flush=True)
            self.status = ProcessingStatus.ERROR
            self.label = ""
            self.error_message = FAILURE_MESSAGE
            self._publish()
            return

        self.result = result
        self.edited_text = format_transcript(result, self.settings)
        self.status = ProcessingStatus.SUCCESS
        self.label = ""
        self.progress = 100
        print(f"Transcription finished with {len(result.segments)} segments", flush=True)
        self._publish()

    def _enter(self, phase: Phase) -> None:
        self.status = phase.status
        self.label = phase.label
        self.progress = phase.percent
        self._publish()

    def _clear_run(self) -> None:
        self.status = ProcessingStatus.IDLE
        self.label = ""
        self.progress = 0
        self.result = None
        self.edited_text = ""
        self.error_message = None

    def require_result(self) -> TranscriptionResult:
        if self.result is None:
            raise NoResultError("No transcription available")
        return self.result
