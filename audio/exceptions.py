# audio/exceptions.py
"""Custom exceptions for audio capture and frame extraction."""


class AudioCaptureError(Exception):
    """Base exception for audio capture failures."""

    def __init__(self, message: str, session_id: str = "N/A"):
        self.message = message
        self.session_id = session_id
        super().__init__(f"[SessionID: {session_id}] {message}")


class CaptureFailureError(AudioCaptureError):
    """Raised when the audio source is unavailable or fails while sampling."""
    pass


class FrameOrderError(AudioCaptureError):
    """Raised when a frame would break the increasing timestamp order."""
    pass
