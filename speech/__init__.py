"""Speech analysis package.

This module exports the transcript-side components and the session orchestrator:
- SpeechAnalysisSession: capture session lifecycle (primary entry point)
- WordConfidenceTracker: per-word stability, filler and repeat annotation
- calculate_fluency / get_fluency_assessment: fluency metrics and bands
- RecognitionEngine: interface for the external speech recognition capability
- build_grading_payload: text-and-metrics request for the remote grader
"""

from .exceptions import (
    RecognitionEngineStateError,
    RecognitionError,
    SessionStateError,
    SpeechAnalysisError,
    UnsupportedPlatformError,
)
from .fluency import calculate_fluency, create_empty_fluency_metrics, get_fluency_assessment
from .grading import build_grading_payload, build_segment_summary
from .models import (
    FluencyAssessment,
    FluencyLevel,
    FluencyMetrics,
    SessionState,
    SpeechAnalysisResult,
    WordConfidence,
)
from .recognition import RecognitionEngine, RecognitionItem
from .session import SpeechAnalysisSession, create_empty_speech_analysis_result
from .text_metrics import confidence_band
from .word_confidence import WordConfidenceTracker

__all__ = [
    "SpeechAnalysisSession",
    "create_empty_speech_analysis_result",
    "WordConfidenceTracker",
    "calculate_fluency",
    "create_empty_fluency_metrics",
    "get_fluency_assessment",
    "confidence_band",
    "RecognitionEngine",
    "RecognitionItem",
    "build_grading_payload",
    "build_segment_summary",
    # Models
    "FluencyAssessment",
    "FluencyLevel",
    "FluencyMetrics",
    "SessionState",
    "SpeechAnalysisResult",
    "WordConfidence",
    # Errors
    "SpeechAnalysisError",
    "UnsupportedPlatformError",
    "SessionStateError",
    "RecognitionEngineStateError",
    "RecognitionError",
]
