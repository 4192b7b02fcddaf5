# speech/exceptions.py
"""Custom exceptions for speech analysis sessions."""

from audio.exceptions import AudioCaptureError, CaptureFailureError, FrameOrderError


class SpeechAnalysisError(Exception):
    """Base exception for speech analysis session failures."""

    def __init__(self, message: str, session_id: str = "N/A"):
        self.message = message
        self.session_id = session_id
        super().__init__(f"[SessionID: {session_id}] {message}")


class UnsupportedPlatformError(SpeechAnalysisError):
    """Raised when no speech recognition capability is available."""
    pass


class SessionStateError(SpeechAnalysisError):
    """Raised when an operation is not valid in the current session state."""
    pass


class RecognitionEngineStateError(SpeechAnalysisError):
    """Raised by an engine started twice or used after it was released."""
    pass


class RecognitionError(SpeechAnalysisError):
    """Non-transient error reported by the recognition engine."""

    def __init__(self, code: str, session_id: str = "N/A"):
        self.code = code
        super().__init__(f"Speech recognition error: {code}", session_id)


__all__ = [
    "SpeechAnalysisError",
    "UnsupportedPlatformError",
    "SessionStateError",
    "RecognitionEngineStateError",
    "RecognitionError",
    "AudioCaptureError",
    "CaptureFailureError",
    "FrameOrderError",
]
