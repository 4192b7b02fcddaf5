"""
Fluency metrics from word annotations, frame aggregates and prosody.
"""

import logging
from typing import List, Sequence

from audio.models import AudioAnalysisResult, ProsodyMetrics

from . import constants
from .models import FluencyAssessment, FluencyLevel, FluencyMetrics, WordConfidence
from .text_metrics import compute_wpm

logger = logging.getLogger(__name__)


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def calculate_fluency(
    words: Sequence[WordConfidence],
    audio_result: AudioAnalysisResult,
    prosody: ProsodyMetrics,
    duration_ms: int
) -> FluencyMetrics:
    """
    Combine word flags, silence ratio and pause statistics into fluency metrics.

    Args:
        words: Annotated transcript words
        audio_result: Frame aggregates (silence ratio)
        prosody: Pause counts
        duration_ms: Session duration

    Returns:
        FluencyMetrics with every ratio and score clamped to its range
    """
    total_words = len(words)
    wpm = compute_wpm(total_words, duration_ms)

    pause_count = prosody.pause_count
    long_pause_count = prosody.long_pause_count

    filler_count = sum(1 for w in words if w.is_filler)
    filler_ratio = filler_count / total_words if total_words > 0 else 0.0
    repetition_count = sum(1 for w in words if w.is_repeat)

    hesitation_score = _clamp(
        100
        - pause_count * constants.HESITATION_PAUSE_WEIGHT
        - filler_count * constants.HESITATION_FILLER_WEIGHT
        - repetition_count * constants.HESITATION_REPEAT_WEIGHT
        - long_pause_count * constants.HESITATION_LONG_PAUSE_WEIGHT,
        0, 100
    )

    speech_to_silence_ratio = _clamp(1 - audio_result.silence_ratio, 0.0, 1.0)

    score = 100.0
    if wpm < constants.SLOW_WPM:
        score -= (constants.SLOW_WPM - wpm) * constants.SLOW_WPM_PENALTY
    elif wpm > constants.FAST_WPM:
        score -= (wpm - constants.FAST_WPM) * constants.FAST_WPM_PENALTY
    score -= filler_ratio * constants.FILLER_RATIO_PENALTY
    score -= long_pause_count * constants.LONG_PAUSE_PENALTY
    if speech_to_silence_ratio < constants.MIN_SPEECH_RATIO:
        score -= (constants.MIN_SPEECH_RATIO - speech_to_silence_ratio) * constants.LOW_SPEECH_RATIO_PENALTY
    score = (score + hesitation_score) / 2
    overall_fluency_score = _clamp(score, 0.0, 100.0)

    logger.debug(
        f"Fluency: wpm={wpm}, fillers={filler_count} ({filler_ratio:.2f}), "
        f"repeats={repetition_count}, hesitation={hesitation_score}, overall={overall_fluency_score:.1f}"
    )

    return FluencyMetrics(
        words_per_minute=wpm,
        pause_count=pause_count,
        long_pause_count=long_pause_count,
        filler_count=filler_count,
        filler_ratio=filler_ratio,
        repetition_count=repetition_count,
        hesitation_score=hesitation_score,
        speech_to_silence_ratio=speech_to_silence_ratio,
        overall_fluency_score=overall_fluency_score,
    )


def create_empty_fluency_metrics() -> FluencyMetrics:
    return FluencyMetrics(
        words_per_minute=0,
        pause_count=0,
        long_pause_count=0,
        filler_count=0,
        filler_ratio=0.0,
        repetition_count=0,
        hesitation_score=50.0,
        speech_to_silence_ratio=0.0,
        overall_fluency_score=0.0,
    )


def get_fluency_assessment(metrics: FluencyMetrics) -> FluencyAssessment:
    """
    Map fluency metrics to a qualitative band with a short summary.

    Args:
        metrics: Output of calculate_fluency

    Returns:
        FluencyAssessment with level, summary and the contributing issues
    """
    score = metrics.overall_fluency_score
    wpm = metrics.words_per_minute

    if score >= 80:
        return FluencyAssessment(
            level=FluencyLevel.EXCELLENT,
            summary="Excellent fluency with natural pacing and minimal hesitation.",
        )

    if score >= 60:
        issues: List[str] = []
        if wpm < 110:
            issues.append("slightly slow pace")
        if wpm > 190:
            issues.append("slightly fast pace")
        if metrics.filler_ratio > 0.1:
            issues.append("some filler words")
        if metrics.long_pause_count > 2:
            issues.append("occasional long pauses")
        summary = (
            f"Good fluency with {', '.join(issues)}."
            if issues else "Good fluency with room for minor improvements."
        )
        return FluencyAssessment(level=FluencyLevel.GOOD, summary=summary, issues=issues)

    if score >= 40:
        issues = []
        if wpm < 100:
            issues.append("slow pace")
        if metrics.filler_ratio > 0.15:
            issues.append("frequent filler words")
        if metrics.long_pause_count > 4:
            issues.append("frequent long pauses")
        summary = (
            f"Fair fluency - work on {', '.join(issues)}."
            if issues else "Fair fluency with noticeable hesitation."
        )
        return FluencyAssessment(level=FluencyLevel.FAIR, summary=summary, issues=issues)

    return FluencyAssessment(
        level=FluencyLevel.NEEDS_IMPROVEMENT,
        summary="Fluency needs significant improvement. Focus on reducing pauses and fillers.",
    )
