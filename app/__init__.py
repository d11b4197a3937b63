"""
Video-to-text app built with FastAPI, exposing
- an index.html UI,
- a video upload endpoint with type and size validation,
- a transcription run that sends the video to Gemini and reports its progress
over a WebSocket,
- and plain-text and SRT exports of the returned transcript.
"""

__version__ = "0.2.0"
