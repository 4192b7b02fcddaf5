"""
Payloads for the remote grading service.

The grader receives transcripts and numeric metrics per spoken segment,
keyed by segment identifier. Frames and raw audio never leave the device.
"""

import logging
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from .models import SpeechAnalysisResult, WordConfidence
from .text_metrics import round_half_up

logger = logging.getLogger(__name__)


class SegmentFluency(BaseModel):
    words_per_minute: int = Field(..., ge=0)
    pause_count: int = Field(..., ge=0)
    filler_count: int = Field(..., ge=0)
    filler_ratio: float = Field(..., ge=0.0, le=1.0)
    repetition_count: int = Field(..., ge=0)
    overall_fluency_score: float = Field(..., ge=0.0, le=100.0)


class SegmentProsody(BaseModel):
    pitch_variation: float = Field(..., ge=0.0, le=100.0)
    stress_event_count: int = Field(..., ge=0)
    rhythm_consistency: float = Field(..., ge=0.0, le=100.0)


class SegmentTranscript(BaseModel):
    """Text and metrics of one spoken segment, as sent to the grader."""
    raw_transcript: str
    cleaned_transcript: str
    word_confidences: List[WordConfidence] = Field(default_factory=list)
    fluency_metrics: SegmentFluency
    prosody_metrics: SegmentProsody
    duration_ms: int = Field(..., ge=0)
    overall_clarity_score: int = Field(..., ge=0, le=100)


class GradingRequest(BaseModel):
    test_id: str = Field(..., min_length=1)
    user_id: str = Field(..., min_length=1)
    transcripts: Dict[str, SegmentTranscript] = Field(..., min_length=1)
    topic: Optional[str] = None
    difficulty: Optional[str] = None
    fluency_flag: bool = False


def build_segment_transcript(result: SpeechAnalysisResult) -> SegmentTranscript:
    fluency = result.fluency_metrics
    prosody = result.prosody_metrics
    return SegmentTranscript(
        raw_transcript=result.raw_transcript,
        cleaned_transcript=result.cleaned_transcript,
        word_confidences=list(result.word_confidences),
        fluency_metrics=SegmentFluency(
            words_per_minute=fluency.words_per_minute,
            pause_count=fluency.pause_count,
            filler_count=fluency.filler_count,
            filler_ratio=fluency.filler_ratio,
            repetition_count=fluency.repetition_count,
            overall_fluency_score=fluency.overall_fluency_score,
        ),
        prosody_metrics=SegmentProsody(
            pitch_variation=prosody.pitch_variation,
            stress_event_count=prosody.stress_event_count,
            rhythm_consistency=prosody.rhythm_consistency,
        ),
        duration_ms=result.duration_ms,
        overall_clarity_score=result.overall_clarity_score,
    )


def build_grading_payload(
    test_id: str,
    user_id: str,
    segments: Dict[str, SpeechAnalysisResult],
    topic: Optional[str] = None,
    difficulty: Optional[str] = None,
    fluency_flag: bool = False
) -> GradingRequest:
    """
    Assemble the grading request for a set of analyzed segments.

    Args:
        test_id: Test the responses belong to
        user_id: Speaker
        segments: Analysis result per segment identifier (e.g. "part1-q3")
        topic: Optional topic hint for the grader
        difficulty: Optional difficulty hint for the grader
        fluency_flag: Marks a response flagged as too short

    Returns:
        GradingRequest ready for ``model_dump(mode="json")``

    Raises:
        ValueError: if an identifier is missing or there are no segments
    """
    request = GradingRequest(
        test_id=test_id,
        user_id=user_id,
        transcripts={key: build_segment_transcript(r) for key, r in segments.items()},
        topic=topic,
        difficulty=difficulty,
        fluency_flag=fluency_flag,
    )
    logger.info(f"Grading payload for test {test_id}: {len(request.transcripts)} segments")
    return request


def build_segment_summary(
    segment_id: str,
    segment: SegmentTranscript,
    question_text: Optional[str] = None
) -> str:
    """Plain-text block describing one segment for the grader's prompt."""
    fluency = segment.fluency_metrics
    return "\n".join([
        f"### {segment_id.upper()}",
        f"Question: {question_text or 'Unknown'}",
        f"Transcript: \"{segment.raw_transcript}\"",
        f"Duration: {round_half_up(segment.duration_ms / 1000)}s | WPM: {fluency.words_per_minute}",
        f"Fillers: {fluency.filler_count} | Pauses: {fluency.pause_count}",
        f"Clarity Score: {segment.overall_clarity_score}% | "
        f"Pitch Variation: {segment.prosody_metrics.pitch_variation:.0f}%",
    ])
