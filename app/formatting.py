"""Rendering of a transcription result into editable text and downloadable files."""

import time
from collections.abc import Iterable

from .models import AppSettings, TranscriptionResult, TranscriptionSegment


def format_segment(segment: TranscriptionSegment, show_timestamps: bool) -> str:
    prefix = f"[{segment.start_time}] " if show_timestamps else ""
    return f"{prefix}{segment.speaker}: {segment.text}"


def format_transcript(result: TranscriptionResult, settings: AppSettings) -> str:
    """One entry per segment, separated by a blank line."""
    return "\n\n".join(
        format_segment(segment, settings.show_timestamps) for segment in result.segments
    )


def normalize_srt_time(value: str) -> str:
    """Pass through anything with a colon, otherwise treat the value as seconds.

    This is a best-effort wrap, not a validation: "5" becomes "00:00:5,000" and
    "00:00:05" is returned unchanged even though it has no milliseconds.
    """
    if ":" in value:
        return value
    return f"00:00:{value},000"


def build_srt(segments: Iterable[TranscriptionSegment]) -> str:
    """SubRip text built from the original segments, not from the edited transcript."""
    blocks = []
    for index, segment in enumerate(segments, start=1):
        start = normalize_srt_time(segment.start_time)
        end = normalize_srt_time(segment.end_time)
        blocks.append(f"{index}\n{start} --> {end}\n{segment.speaker}: {segment.text}\n")
    return "\n".join(blocks)


def epoch_millis() -> int:
    return time.time_ns() // 1_000_000


def txt_filename(now_ms: int | None = None) -> str:
    return f"transcription_{epoch_millis() if now_ms is None else now_ms}.txt"


def srt_filename(now_ms: int | None = None) -> str:
    return f"subtitles_{epoch_millis() if now_ms is None else now_ms}.srt"
