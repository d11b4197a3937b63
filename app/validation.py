"""Checks applied to a video before it becomes the selected file."""

from dataclasses import dataclass

ALLOWED_MIME_TYPES = frozenset(
    {
        "video/mp4",
        "video/x-matroska",
        "video/quicktime",
        "video/x-msvideo",
    }
)
MAX_FILE_SIZE_MB = 500
MAX_FILE_SIZE = MAX_FILE_SIZE_MB * 1024 * 1024

INVALID_TYPE = "invalid_type"
TOO_LARGE = "too_large"
INVALID_TYPE_MESSAGE = "Please upload a valid video file (MP4, MKV, MOV, or AVI)"
TOO_LARGE_MESSAGE = f"File size exceeds {MAX_FILE_SIZE_MB}MB limit"


class FileValidationError(ValueError):
    """Raised when an upload is rejected. `reason` is INVALID_TYPE or TOO_LARGE."""

    def __init__(self, reason: str, message: str) -> None:
        super().__init__(message)
        self.reason = reason
        self.message = message


@dataclass(frozen=True)
class SelectedFile:
    """An accepted video held in memory for the current session."""

    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


def check_content_type(content_type: str | None) -> str:
    """Return the MIME type if it is allowed; the client-reported value is trusted."""
    if content_type not in ALLOWED_MIME_TYPES:
        raise FileValidationError(INVALID_TYPE, INVALID_TYPE_MESSAGE)
    return content_type


def check_size(size: int) -> None:
    if size > MAX_FILE_SIZE:
        raise FileValidationError(TOO_LARGE, TOO_LARGE_MESSAGE)


def upload_limits() -> dict:
    """Limits the page checks before sending a file, so a rejected video is never uploaded."""
    return {
        "types": sorted(ALLOWED_MIME_TYPES),
        "maxSize": MAX_FILE_SIZE,
        "typeMessage": INVALID_TYPE_MESSAGE,
        "sizeMessage": TOO_LARGE_MESSAGE,
    }


def validate_upload(filename: str, content_type: str | None, data: bytes) -> SelectedFile:
    """Validate type first, then size, and wrap the accepted upload."""
    mime_type = check_content_type(content_type)
    check_size(len(data))
    return SelectedFile(filename=filename, content_type=mime_type, data=data)
