"""FastAPI application exposing the transcription session and the single-page UI."""

import asyncio
import json
from pathlib import Path

from fastapi import (
    FastAPI,
    File,
    HTTPException,
    UploadFile,
    WebSocket,
    WebSocketDisconnect,
    status,
)
from fastapi.responses import HTMLResponse, PlainTextResponse
from pydantic import BaseModel

from .formatting import build_srt, srt_filename, txt_filename
from .session import NoResultError, ProcessingSession, SessionBusyError
from .transcribe_service import TranscribeService
from .validation import (
    TOO_LARGE,
    FileValidationError,
    check_content_type,
    check_size,
    upload_limits,
    validate_upload,
)

INDEX_PATH = Path(__file__).parent / "index.html"
UPLOAD_CHUNK_SIZE = 1024 * 1024

app = FastAPI(title="VidScribe AI")
transcribe_service = TranscribeService()
session = ProcessingSession(transcribe_service)


class TranscriptUpdate(BaseModel):
    """Body of PUT /api/transcript."""

    text: str


def _attachment(content: str, filename: str) -> PlainTextResponse:
    return PlainTextResponse(
        content,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@app.get("/")
async def get_index() -> HTMLResponse:
    """Serve the index.html single-page UI with the upload limits filled in."""
    with open(INDEX_PATH, encoding="utf-8") as f:
        page = f.read()
    return HTMLResponse(page.replace("__UPLOAD_LIMITS__", json.dumps(upload_limits())))


@app.get("/api/state")
async def get_state() -> dict:
    """Return the current session snapshot."""
    return session.snapshot()


@app.post("/api/upload")
async def upload_video(file: UploadFile = File(...)) -> dict:
    """Validate the uploaded video and make it the session's selected file."""
    try:
        check_content_type(file.content_type)
        # The page checks type and size before sending; this repeats both checks server-side
        chunks = []
        received = 0
        while chunk := await file.read(UPLOAD_CHUNK_SIZE):
            received += len(chunk)
            check_size(received)
            chunks.append(chunk)
        selected = validate_upload(file.filename or "video", file.content_type, b"".join(chunks))
    except FileValidationError as e:
        print(f"Rejected upload {file.filename}: {e.message}", flush=True)
        code = (
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE
            if e.reason == TOO_LARGE
            else status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
        )
        raise HTTPException(status_code=code, detail=e.message) from e

    try:
        session.select_file(selected)
    except SessionBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    print(f"Selected {selected.filename} ({selected.size} bytes)", flush=True)
    return session.snapshot()


@app.post("/api/settings/{name}/toggle")
async def toggle_setting(name: str) -> dict:
    """Flip one setting, addressed by its wire name."""
    try:
        session.toggle_setting(name)
    except KeyError as e:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND, detail=f"Unknown setting: {name}"
        ) from e
    return session.snapshot()


@app.post("/api/transcribe", status_code=status.HTTP_202_ACCEPTED)
async def start_transcription() -> dict:
    """Start a run in the background; progress is reported on /ws/progress."""
    if session.start() is None:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Select a video first, or wait for the current transcription to finish",
        )
    return session.snapshot()


@app.post("/api/reset")
async def reset_session() -> dict:
    """Go back to idle after a success or a failure, keeping the selected file."""
    try:
        session.reset()
    except SessionBusyError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return session.snapshot()


@app.put("/api/transcript")
async def update_transcript(update: TranscriptUpdate) -> dict:
    """Replace the editable transcript with the user's text."""
    try:
        session.update_edited_text(update.text)
    except NoResultError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return session.snapshot()


@app.post("/api/transcript/render")
async def render_transcript() -> dict:
    """Rebuild the editable text with the current settings, discarding edits."""
    try:
        session.rerender()
    except NoResultError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return session.snapshot()


@app.get("/api/export/txt")
async def export_txt() -> PlainTextResponse:
    """Download the edited transcript verbatim."""
    try:
        session.require_result()
    except NoResultError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _attachment(session.edited_text, txt_filename())


@app.get("/api/export/srt")
async def export_srt() -> PlainTextResponse:
    """Download subtitles built from the original segments."""
    try:
        result = session.require_result()
    except NoResultError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e)) from e
    return _attachment(build_srt(result.segments), srt_filename())


@app.websocket("/ws/progress")
async def websocket_progress(websocket: WebSocket) -> None:
    """Send the session state on connect and again after every change."""
    await websocket.accept()
    print("New progress connection established", flush=True)

    queue = session.subscribe()

    async def disconnect_watcher():
        try:
            while True:
                # Clients only listen; any incoming text is ignored
                await websocket.receive_text()
        except WebSocketDisconnect:
            print("Client disconnected", flush=True)
            await queue.put(None)
        except Exception as e:
            print(f"Receiver error: {e}", flush=True)
            await queue.put(None)

    # Launch the disconnect watcher in the background
    watcher_task = asyncio.create_task(disconnect_watcher())

    try:
        await websocket.send_json(session.snapshot())
        while True:
            state = await queue.get()
            if state is None:
                break
            await websocket.send_json(state)
    finally:
        session.unsubscribe(queue)
        await watcher_task
