"""
Prosody analysis over a finished frame sequence.

Derives pauses, stress events, intonation direction, rhythm consistency and
a qualitative speaking rate. Everything here is a pure function of an
AudioAnalysisResult.
"""

import logging
from typing import List, Tuple

import numpy as np

from utils.logging import log_execution_time

from . import constants
from .models import (
    AudioAnalysisResult,
    AudioFrame,
    IntonationEvent,
    IntonationType,
    PauseEvent,
    ProsodyMetrics,
    SpeakingRate,
    StressEvent,
)

logger = logging.getLogger(__name__)


def _runs(frames: List[AudioFrame], silent: bool, end_of_recording: int) -> List[Tuple[int, int]]:
    """
    Maximal runs of frames whose ``is_silent`` equals ``silent``.

    A run ends at the timestamp of the first frame outside it; a run still
    open at the last frame ends at ``end_of_recording``.
    """
    runs: List[Tuple[int, int]] = []
    run_start = None
    for frame in frames:
        if frame.is_silent == silent:
            if run_start is None:
                run_start = frame.timestamp
        elif run_start is not None:
            runs.append((run_start, frame.timestamp))
            run_start = None
    if run_start is not None:
        runs.append((run_start, end_of_recording))
    return runs


def _end_of_recording(audio_result: AudioAnalysisResult, frame_period_ms: int) -> int:
    frames = audio_result.frames
    return max(audio_result.total_duration, frames[-1].timestamp + frame_period_ms)


def detect_pauses(
    audio_result: AudioAnalysisResult,
    frame_period_ms: int = constants.FRAME_PERIOD_MS
) -> List[PauseEvent]:
    """Silent runs lasting at least the pause threshold."""
    if not audio_result.frames:
        return []
    end = _end_of_recording(audio_result, frame_period_ms)
    return [
        PauseEvent(start=start, end=stop, duration=stop - start)
        for start, stop in _runs(audio_result.frames, True, end)
        if stop - start >= constants.PAUSE_THRESHOLD_MS
    ]


def detect_stress_events(frames: List[AudioFrame]) -> List[StressEvent]:
    """Non-silent local energy peaks above 1.5x the mean energy."""
    if len(frames) < 3:
        return []

    mean_rms = float(np.mean([f.rms for f in frames]))
    if mean_rms <= 0:
        return []

    events: List[StressEvent] = []
    for prev, current, nxt in zip(frames, frames[1:], frames[2:]):
        if (not current.is_silent
                and current.rms > prev.rms
                and current.rms > nxt.rms
                and current.rms > mean_rms * constants.STRESS_ENERGY_FACTOR):
            events.append(StressEvent(
                timestamp=current.timestamp,
                intensity=min(100.0, current.rms / mean_rms * 50),
            ))
    return events


def detect_intonation(frames: List[AudioFrame]) -> List[IntonationEvent]:
    """Classify the pitch trend of each non-overlapping 5-frame window."""
    size = constants.INTONATION_WINDOW_FRAMES
    events: List[IntonationEvent] = []

    for start in range(0, len(frames) - size + 1, size):
        window = [f for f in frames[start:start + size] if not f.is_silent]
        if len(window) < constants.INTONATION_MIN_VOICED_FRAMES:
            continue

        start_pitch = window[0].pitch
        end_pitch = window[-1].pitch
        relative = (end_pitch - start_pitch) / start_pitch * 100 if start_pitch > 0 else 0.0

        if relative > constants.INTONATION_CHANGE_PCT:
            kind = IntonationType.RISING
        elif relative < -constants.INTONATION_CHANGE_PCT:
            kind = IntonationType.FALLING
        else:
            kind = IntonationType.LEVEL

        events.append(IntonationEvent(
            timestamp=frames[start].timestamp,
            type=kind,
            magnitude=min(100.0, abs(relative)),
        ))
    return events


def compute_rhythm_consistency(segment_durations: List[int]) -> float:
    """Map the coefficient of variation of voiced-run durations to 0-100."""
    if len(segment_durations) < 2:
        return constants.DEFAULT_RHYTHM_CONSISTENCY

    durations = np.asarray(segment_durations, dtype=np.float64)
    mean = durations.mean()
    cv = durations.std() / mean if mean > 0 else 0.0
    return float(max(0.0, min(100.0, 100.0 - cv * 100.0)))


def classify_speaking_rate(speaking_ratio: float) -> SpeakingRate:
    if speaking_ratio < constants.SLOW_SPEAKING_RATIO:
        return SpeakingRate.SLOW
    if speaking_ratio > constants.FAST_SPEAKING_RATIO:
        return SpeakingRate.FAST
    return SpeakingRate.NORMAL


@log_execution_time(logger)
def analyze_prosody(
    audio_result: AudioAnalysisResult,
    frame_period_ms: int = constants.FRAME_PERIOD_MS
) -> ProsodyMetrics:
    """
    Derive prosody metrics from a finished frame sequence.

    Args:
        audio_result: Output of FrameExtractor.stop()
        frame_period_ms: Sampling period the frames were produced at

    Returns:
        ProsodyMetrics; neutral defaults for an empty frame sequence
    """
    frames = audio_result.frames
    if not frames:
        return create_empty_prosody_metrics()

    # Pitch variation
    pitch_span = audio_result.pitch_range.max - audio_result.pitch_range.min
    pitch_variation = 0.0
    if audio_result.average_pitch > 0:
        pitch_variation = min(100.0, max(0.0, pitch_span / audio_result.average_pitch * 100))

    # Pauses
    pauses = detect_pauses(audio_result, frame_period_ms)
    pause_count = len(pauses)
    long_pause_count = sum(1 for p in pauses if p.duration >= constants.LONG_PAUSE_THRESHOLD_MS)
    average_pause_duration = (
        sum(p.duration for p in pauses) / pause_count if pause_count else 0.0
    )

    stress_events = detect_stress_events(frames)
    intonation_patterns = detect_intonation(frames)

    # Rhythm from voiced runs
    end = _end_of_recording(audio_result, frame_period_ms)
    segments = [stop - start for start, stop in _runs(frames, False, end)]
    rhythm_consistency = compute_rhythm_consistency(segments)

    # Speaking rate
    voiced_ms = sum(1 for f in frames if not f.is_silent) * frame_period_ms
    speaking_ratio = min(1.0, voiced_ms / end) if end > 0 else 0.0
    speaking_rate = classify_speaking_rate(speaking_ratio)

    logger.debug(
        f"Prosody: pauses={pause_count} (long={long_pause_count}), stress={len(stress_events)}, "
        f"intonation={len(intonation_patterns)}, rhythm={rhythm_consistency:.1f}, "
        f"speaking_ratio={speaking_ratio:.2f}"
    )

    return ProsodyMetrics(
        pitch_variation=pitch_variation,
        stress_event_count=len(stress_events),
        average_pause_duration=average_pause_duration,
        pause_count=pause_count,
        long_pause_count=long_pause_count,
        speaking_rate=speaking_rate,
        intonation_patterns=intonation_patterns,
        rhythm_consistency=rhythm_consistency,
    )


def create_empty_prosody_metrics() -> ProsodyMetrics:
    return ProsodyMetrics(
        pitch_variation=0.0,
        stress_event_count=0,
        average_pause_duration=0.0,
        pause_count=0,
        long_pause_count=0,
        speaking_rate=SpeakingRate.NORMAL,
        intonation_patterns=[],
        rhythm_consistency=constants.DEFAULT_RHYTHM_CONSISTENCY,
    )
