"""
Pydantic models for frame-level audio analysis and prosody results.

All models are frozen: a result is immutable once the producing component
has finished with it.
"""

from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class SpeakingRate(str, Enum):
    """Qualitative speaking-rate label."""
    SLOW = "slow"
    NORMAL = "normal"
    FAST = "fast"


class IntonationType(str, Enum):
    """Direction of a pitch trend."""
    RISING = "rising"
    FALLING = "falling"
    LEVEL = "level"


class AudioFrame(BaseModel):
    """One fixed-cadence sample of energy, pitch and silence."""
    timestamp: int = Field(..., ge=0, description="ms since session start")
    rms: float = Field(..., ge=0.0)
    pitch: float = Field(0.0, ge=0.0, description="Hz, 0 if undetected")
    is_silent: bool

    model_config = ConfigDict(frozen=True)


class PitchRange(BaseModel):
    min: float = Field(0.0, ge=0.0)
    max: float = Field(0.0, ge=0.0)

    model_config = ConfigDict(frozen=True)


class AudioAnalysisResult(BaseModel):
    """Finished frame sequence plus running aggregates."""
    frames: List[AudioFrame] = Field(default_factory=list)
    pitch_range: PitchRange = Field(default_factory=PitchRange)
    average_pitch: float = Field(0.0, ge=0.0)
    total_duration: int = Field(0, ge=0, description="ms")
    silence_ratio: float = Field(0.0, ge=0.0, le=1.0)

    @field_validator('frames')
    @classmethod
    def validate_frame_order(cls, v: List[AudioFrame]) -> List[AudioFrame]:
        for prev, current in zip(v, v[1:]):
            if current.timestamp <= prev.timestamp:
                raise ValueError(
                    f"Frame timestamps must increase ({prev.timestamp} -> {current.timestamp})"
                )
        return v

    model_config = ConfigDict(frozen=True)


class IntonationEvent(BaseModel):
    timestamp: int = Field(..., ge=0)
    type: IntonationType
    magnitude: float = Field(..., ge=0.0, le=100.0)

    model_config = ConfigDict(frozen=True)


class StressEvent(BaseModel):
    timestamp: int = Field(..., ge=0)
    intensity: float = Field(..., ge=0.0, le=100.0)

    model_config = ConfigDict(frozen=True)


class PauseEvent(BaseModel):
    start: int = Field(..., ge=0)
    end: int = Field(..., ge=0)
    duration: int = Field(..., ge=0)

    model_config = ConfigDict(frozen=True)


class ProsodyMetrics(BaseModel):
    """Pauses, stress, intonation and rhythm derived from a frame sequence."""
    pitch_variation: float = Field(0.0, ge=0.0, le=100.0)
    stress_event_count: int = Field(0, ge=0)
    average_pause_duration: float = Field(0.0, ge=0.0, description="ms")
    pause_count: int = Field(0, ge=0)
    long_pause_count: int = Field(0, ge=0)
    speaking_rate: SpeakingRate = SpeakingRate.NORMAL
    intonation_patterns: List[IntonationEvent] = Field(default_factory=list)
    rhythm_consistency: float = Field(50.0, ge=0.0, le=100.0)

    @model_validator(mode='after')
    def validate_long_pauses(self) -> "ProsodyMetrics":
        if self.long_pause_count > self.pause_count:
            raise ValueError(
                f"long_pause_count ({self.long_pause_count}) cannot exceed pause_count ({self.pause_count})"
            )
        return self

    model_config = ConfigDict(frozen=True)
