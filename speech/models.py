"""
Pydantic models for word annotations, fluency metrics and session results.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field

from audio.models import AudioAnalysisResult, ProsodyMetrics


class SessionState(str, Enum):
    """Lifecycle state of a capture session."""
    IDLE = "idle"
    CAPTURING = "capturing"
    STOPPED = "stopped"
    ABORTED = "aborted"


class FluencyLevel(str, Enum):
    EXCELLENT = "excellent"
    GOOD = "good"
    FAIR = "fair"
    NEEDS_IMPROVEMENT = "needs_improvement"


class WordConfidence(BaseModel):
    """One transcript token with its stability score and disfluency flags."""
    word: str = Field(..., min_length=1)
    confidence: int = Field(..., ge=0, le=100)
    is_filler: bool = False
    is_repeat: bool = False

    model_config = ConfigDict(frozen=True)


class FluencyMetrics(BaseModel):
    words_per_minute: int = Field(0, ge=0)
    pause_count: int = Field(0, ge=0)
    long_pause_count: int = Field(0, ge=0)
    filler_count: int = Field(0, ge=0)
    filler_ratio: float = Field(0.0, ge=0.0, le=1.0)
    repetition_count: int = Field(0, ge=0)
    hesitation_score: float = Field(50.0, ge=0.0, le=100.0)
    speech_to_silence_ratio: float = Field(0.0, ge=0.0, le=1.0)
    overall_fluency_score: float = Field(0.0, ge=0.0, le=100.0)

    model_config = ConfigDict(frozen=True)


class FluencyAssessment(BaseModel):
    level: FluencyLevel
    summary: str
    issues: List[str] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)


class SpeechAnalysisResult(BaseModel):
    """Complete report for one spoken response."""
    raw_transcript: str
    cleaned_transcript: str
    word_confidences: List[WordConfidence] = Field(default_factory=list)
    fluency_metrics: FluencyMetrics
    prosody_metrics: ProsodyMetrics
    audio_analysis: AudioAnalysisResult
    duration_ms: int = Field(..., ge=0)
    overall_clarity_score: int = Field(..., ge=0, le=100)

    model_config = ConfigDict(frozen=True)
