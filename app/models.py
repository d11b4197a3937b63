"""Pydantic models shared by the transcription client, the session and the API."""

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field


class ProcessingStatus(str, Enum):
    """Visible phase of a transcription run."""

    IDLE = "idle"
    UPLOADING = "uploading"
    EXTRACTING = "extracting"
    TRANSCRIBING = "transcribing"
    FINALIZING = "finalizing"
    SUCCESS = "success"
    ERROR = "error"


# Statuses from which a new run may be started
RESTARTABLE_STATUSES = frozenset(
    {ProcessingStatus.IDLE, ProcessingStatus.SUCCESS, ProcessingStatus.ERROR}
)


class AppSettings(BaseModel):
    """Four user toggles, reset to defaults for every new session."""

    model_config = ConfigDict(populate_by_name=True)

    show_timestamps: bool = Field(True, alias="showTimestamps")
    generate_summary: bool = Field(True, alias="generateSummary")
    speaker_detection: bool = Field(True, alias="speakerDetection")
    remove_fillers: bool = Field(True, alias="removeFillers")

    def toggle(self, name: str) -> bool:
        """Flip one flag, addressed by field name or wire alias, and return its new value."""
        field_name = _resolve_setting(name)
        value = not getattr(self, field_name)
        setattr(self, field_name, value)
        return value


def _resolve_setting(name: str) -> str:
    for field_name, info in AppSettings.model_fields.items():
        if name in (field_name, info.alias):
            return field_name
    raise KeyError(name)


class TranscriptionSegment(BaseModel):
    """One timed, attributed unit of speech. Times are free-form strings from the model."""

    model_config = ConfigDict(populate_by_name=True)

    start_time: str = Field(alias="startTime")
    end_time: str = Field(alias="endTime")
    speaker: str
    text: str


class TranscriptionResult(BaseModel):
    """Structured transcript returned by the AI service."""

    model_config = ConfigDict(populate_by_name=True)

    segments: list[TranscriptionSegment]
    summary: str
    detected_language: str = Field(alias="detectedLanguage")
