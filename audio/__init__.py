"""Audio analysis package for on-device speech analysis.

This module exports the frame-level audio components:
- FrameExtractor: samples an AudioSource into AudioFrames (primary entry point)
- analyze_prosody: pauses, stress, intonation and rhythm from finished frames
- Audio sources:
  - ArraySource: in-memory or file-backed signal
  - MicrophoneSource: live input through sounddevice
"""

from .exceptions import AudioCaptureError, CaptureFailureError, FrameOrderError
from .frame_extractor import FrameExtractor
from .models import (
    AudioAnalysisResult,
    AudioFrame,
    IntonationEvent,
    IntonationType,
    PitchRange,
    ProsodyMetrics,
    SpeakingRate,
)
from .prosody import analyze_prosody, create_empty_prosody_metrics
from .sources import ArraySource, AudioSource, MicrophoneSource

__all__ = [
    "FrameExtractor",
    "analyze_prosody",
    "create_empty_prosody_metrics",
    # Sources
    "AudioSource",
    "ArraySource",
    "MicrophoneSource",
    # Models
    "AudioFrame",
    "AudioAnalysisResult",
    "PitchRange",
    "ProsodyMetrics",
    "IntonationEvent",
    "IntonationType",
    "SpeakingRate",
    # Errors
    "AudioCaptureError",
    "CaptureFailureError",
    "FrameOrderError",
]
