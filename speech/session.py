"""
Session orchestrator for live speech analysis.

Runs the frame extractor and the recognition engine in lockstep for one
capture session and merges their output into a SpeechAnalysisResult.
"""

import asyncio
import logging
import time
import uuid
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, List, Optional

from audio.exceptions import CaptureFailureError, FrameOrderError
from audio.frame_extractor import FrameExtractor
from audio.models import AudioFrame
from audio.prosody import analyze_prosody, create_empty_prosody_metrics
from audio.sources import AudioSource
from config import AppSettings, settings as default_settings

from . import constants
from .exceptions import (
    RecognitionEngineStateError,
    RecognitionError,
    SessionStateError,
    UnsupportedPlatformError,
)
from .fluency import calculate_fluency, create_empty_fluency_metrics
from .models import SessionState, SpeechAnalysisResult
from .recognition import (
    AudioFrameEvent,
    RecognitionEndEvent,
    RecognitionEngine,
    RecognitionErrorEvent,
    RecognitionItem,
    RecognitionResultEvent,
    SessionEvent,
)
from .text_metrics import clean_transcript, round_half_up
from .word_confidence import WordConfidenceTracker

logger = logging.getLogger(__name__)


@dataclass
class SessionContext:
    """Everything owned by one capture session."""
    session_id: str
    extractor: FrameExtractor
    tracker: WordConfidenceTracker
    started_at: float
    state: SessionState = SessionState.CAPTURING
    events: Deque[SessionEvent] = field(default_factory=deque)
    final_parts: List[str] = field(default_factory=list)
    live_transcript: str = ""
    # Engine run counter; bumped on every restart
    generation: int = 0
    committed_index: int = 0
    restarts_without_result: int = 0
    recognition_suspended: bool = False


class SpeechAnalysisSession:
    """
    Coordinates one speech analysis session at a time.

    Orchestrates:
    - FrameExtractor for frame-level audio features
    - RecognitionEngine for interim/final transcript updates
    - WordConfidenceTracker, prosody and fluency for the final report

    Engine callbacks and frame sampling only enqueue events; ``tick`` samples
    one frame and drains the queue synchronously.
    """

    def __init__(
        self,
        engine: Optional[RecognitionEngine],
        settings: Optional[AppSettings] = None,
        on_interim_result: Optional[Callable[[str], None]] = None,
        on_error: Optional[Callable[[Exception], None]] = None,
        clock: Callable[[], float] = time.monotonic,
        auto_sample: bool = True
    ):
        """
        Initialize session orchestrator.

        Args:
            engine: Recognition capability, None when the platform has none
            settings: Capture, recognition and scoring settings
            on_interim_result: Called with the live transcript on every recognition update
            on_error: Called with non-fatal recognition and capture errors
            clock: Seconds clock used for the session duration
            auto_sample: Sample frames from an asyncio task once per frame period
        """
        self.engine = engine
        self.settings = settings or default_settings
        self.on_interim_result = on_interim_result
        self.on_error = on_error
        self.auto_sample = auto_sample
        self._clock = clock

        self._context: Optional[SessionContext] = None
        self._last_state = SessionState.IDLE
        self._sampling_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> SessionState:
        if self._context is not None:
            return self._context.state
        return self._last_state

    @property
    def session_id(self) -> Optional[str]:
        return self._context.session_id if self._context else None

    @property
    def interim_transcript(self) -> str:
        return self._context.live_transcript if self._context else ""

    @property
    def frame_period_ms(self) -> int:
        return self.settings.FRAME_PERIOD_MS

    async def start(self, source: AudioSource) -> None:
        """
        Claim the audio source and begin recognition.

        Raises:
            SessionStateError: if a session is already capturing
            UnsupportedPlatformError: if no recognition engine is available
            CaptureFailureError: if the audio source cannot be opened

        Any error raised while starting recognition propagates after the
        audio source has been released.
        """
        if self.state is SessionState.CAPTURING:
            raise SessionStateError("Session is already capturing", self.session_id or "N/A")
        if self.engine is None:
            raise UnsupportedPlatformError("Speech recognition not supported on this platform")

        session_id = uuid.uuid4().hex[:12]
        extractor = FrameExtractor(
            frame_period_ms=self.settings.FRAME_PERIOD_MS,
            silence_threshold=self.settings.SILENCE_RMS_THRESHOLD,
            pitch_min_hz=self.settings.PITCH_MIN_HZ,
            pitch_max_hz=self.settings.PITCH_MAX_HZ,
            hpf_hz=self.settings.PREFILTER_HPF_HZ,
            session_id=session_id
        )
        await extractor.start(source)

        try:
            tracker = WordConfidenceTracker(neutral_confidence=self.settings.NEUTRAL_WORD_CONFIDENCE)
            tracker.start()

            ctx = SessionContext(
                session_id=session_id,
                extractor=extractor,
                tracker=tracker,
                started_at=self._clock()
            )
            self._context = ctx

            self.engine.language = self.settings.RECOGNITION_LANGUAGE
            self.engine.continuous = True
            self.engine.interim_results = True
            self._attach(ctx)
            self._start_engine(ctx)

            if self.auto_sample:
                self._sampling_task = asyncio.get_running_loop().create_task(self._sampling_loop(ctx))
        except Exception as e:
            logger.error(f"Session {session_id} failed to start: {e}", extra={"session_id": session_id})
            self.engine.detach()
            extractor.discard()
            self._context = None
            self._last_state = SessionState.IDLE
            raise

        logger.info(
            f"Session {session_id} capturing: language={self.engine.language}, "
            f"frame_period={self.frame_period_ms}ms",
            extra={"session_id": session_id}
        )

    def tick(self) -> Optional[AudioFrame]:
        """
        Sample one frame and apply every queued event.

        Returns:
            The sampled frame, or None when the source is exhausted
        """
        ctx = self._require_capturing()
        frame = ctx.extractor.sample()
        if frame is not None:
            ctx.events.append(AudioFrameEvent(frame))
        self._drain(ctx)
        return frame

    def stop(self) -> Optional[SpeechAnalysisResult]:
        """
        Finish the session and build the report.

        Returns:
            SpeechAnalysisResult, or None when nothing was recognized
        """
        ctx = self._require_capturing()
        ctx.state = SessionState.STOPPED
        self._cancel_sampling()
        self._detach()

        try:
            self._drain(ctx)
            audio_analysis = ctx.extractor.stop()
        finally:
            ctx.extractor.discard()
            self._context = None
            self._last_state = SessionState.STOPPED

        prosody = analyze_prosody(audio_analysis, self.frame_period_ms)

        raw_transcript = ' '.join(''.join(ctx.final_parts).split())
        if not raw_transcript:
            raw_transcript = ' '.join(ctx.live_transcript.split())
        if not raw_transcript:
            logger.info(f"Session {ctx.session_id} stopped with an empty transcript",
                        extra={"session_id": ctx.session_id})
            return None

        word_confidences = ctx.tracker.get_word_confidences(raw_transcript)
        duration_ms = max(0, round_half_up((self._clock() - ctx.started_at) * 1000))
        fluency = calculate_fluency(word_confidences, audio_analysis, prosody, duration_ms)
        cleaned_transcript = clean_transcript(word_confidences)

        avg_confidence = (
            sum(w.confidence for w in word_confidences) / len(word_confidences)
            if word_confidences else 0.0
        )
        clarity = round_half_up(
            avg_confidence * constants.CLARITY_CONFIDENCE_WEIGHT
            + fluency.overall_fluency_score * constants.CLARITY_FLUENCY_WEIGHT
            + prosody.pitch_variation * constants.CLARITY_PITCH_WEIGHT
            + prosody.rhythm_consistency * constants.CLARITY_RHYTHM_WEIGHT
        )

        logger.info(
            f"Session {ctx.session_id} stopped: {len(word_confidences)} words, {duration_ms}ms, "
            f"fluency={fluency.overall_fluency_score:.1f}, clarity={clarity}",
            extra={"session_id": ctx.session_id}
        )

        return SpeechAnalysisResult(
            raw_transcript=raw_transcript,
            cleaned_transcript=cleaned_transcript,
            word_confidences=word_confidences,
            fluency_metrics=fluency,
            prosody_metrics=prosody,
            audio_analysis=audio_analysis,
            duration_ms=duration_ms,
            overall_clarity_score=max(0, min(100, clarity)),
        )

    def abort(self) -> None:
        """Cancel the session, release the audio source and drop all data."""
        ctx = self._context
        if ctx is None or ctx.state is not SessionState.CAPTURING:
            return

        ctx.state = SessionState.ABORTED
        self._cancel_sampling()
        self._detach()
        ctx.events.clear()
        ctx.extractor.discard()
        self._context = None
        self._last_state = SessionState.ABORTED
        logger.info(f"Session {ctx.session_id} aborted", extra={"session_id": ctx.session_id})

    # ------------------------------------------------------------------
    # Recognition engine

    def _attach(self, ctx: SessionContext) -> None:
        generation = ctx.generation
        events = ctx.events

        def on_result(result_index: int, results) -> None:
            events.append(RecognitionResultEvent(generation, result_index, tuple(results)))

        def on_error(code: str) -> None:
            events.append(RecognitionErrorEvent(generation, code))

        def on_end() -> None:
            events.append(RecognitionEndEvent(generation))

        self.engine.on_result = on_result
        self.engine.on_error = on_error
        self.engine.on_end = on_end

    def _start_engine(self, ctx: SessionContext) -> None:
        # Checked right before start so an abort always wins over a restart
        if ctx.state is not SessionState.CAPTURING or self._context is not ctx:
            return
        try:
            self.engine.start()
        except RecognitionEngineStateError as e:
            logger.debug(f"Recognition start ignored: {e.message}")

    def _detach(self) -> None:
        self.engine.detach()
        try:
            self.engine.abort()
        except RecognitionEngineStateError:
            logger.debug("Recognition engine already stopped")

    def _restart_engine(self, ctx: SessionContext) -> None:
        max_restarts = self.settings.RECOGNITION_MAX_RESTARTS
        if max_restarts and ctx.restarts_without_result >= max_restarts:
            if not ctx.recognition_suspended:
                ctx.recognition_suspended = True
                logger.warning(
                    f"Session {ctx.session_id}: recognition ended {max_restarts} times without results, "
                    f"not restarting",
                    extra={"session_id": ctx.session_id}
                )
                self._report(RecognitionError("restart-limit", ctx.session_id))
            return

        ctx.generation += 1
        ctx.committed_index = 0
        ctx.restarts_without_result += 1
        logger.info(f"Session {ctx.session_id}: restarting recognition (run {ctx.generation})",
                    extra={"session_id": ctx.session_id})
        self._attach(ctx)
        self._start_engine(ctx)

    # ------------------------------------------------------------------
    # Event queue

    def _drain(self, ctx: SessionContext) -> None:
        # Events queued while this batch is applied wait for the next drain
        batch = [ctx.events.popleft() for _ in range(len(ctx.events))]

        frames = sorted(
            (e for e in batch if isinstance(e, AudioFrameEvent)),
            key=lambda e: e.frame.timestamp
        )
        results = sorted(
            (e for e in batch if isinstance(e, RecognitionResultEvent)),
            key=lambda e: (e.generation, e.result_index)
        )
        others = [e for e in batch if isinstance(e, (RecognitionErrorEvent, RecognitionEndEvent))]

        for event in frames:
            try:
                ctx.extractor.add_frame(event.frame)
            except FrameOrderError as e:
                logger.warning(f"Dropping frame: {e.message}", extra={"session_id": ctx.session_id})
        for event in results:
            self._apply_result(ctx, event)
        for event in others:
            if isinstance(event, RecognitionErrorEvent):
                self._apply_error(ctx, event)
            else:
                self._apply_end(ctx, event)

    def _apply_result(self, ctx: SessionContext, event: RecognitionResultEvent) -> None:
        if event.generation != ctx.generation:
            logger.debug(f"Ignoring result from recognition run {event.generation}")
            return

        ctx.restarts_without_result = 0
        final_text = ""
        interim_text = ""
        for index in range(event.result_index, len(event.results)):
            item: RecognitionItem = event.results[index]
            if item.is_final:
                if index < ctx.committed_index:
                    continue
                final_text += item.transcript + ' '
                ctx.tracker.add_snapshot(item.transcript, True)
                ctx.committed_index = index + 1
            else:
                interim_text += item.transcript
                ctx.tracker.add_snapshot(item.transcript, False)

        if final_text:
            ctx.final_parts.append(final_text)

        ctx.live_transcript = ''.join(ctx.final_parts) + interim_text
        if self.on_interim_result:
            self.on_interim_result(ctx.live_transcript)

    def _apply_error(self, ctx: SessionContext, event: RecognitionErrorEvent) -> None:
        if event.code in constants.BENIGN_RECOGNITION_ERRORS:
            logger.debug(f"Session {ctx.session_id}: recognition reported '{event.code}'",
                         extra={"session_id": ctx.session_id})
            return
        error = RecognitionError(event.code, ctx.session_id)
        logger.warning(str(error), extra={"session_id": ctx.session_id})
        self._report(error)

    def _apply_end(self, ctx: SessionContext, event: RecognitionEndEvent) -> None:
        if event.generation != ctx.generation or ctx.state is not SessionState.CAPTURING:
            return
        self._restart_engine(ctx)

    # ------------------------------------------------------------------
    # Sampling

    async def _sampling_loop(self, ctx: SessionContext) -> None:
        period_sec = self.frame_period_ms / 1000.0
        try:
            while ctx.state is SessionState.CAPTURING and self._context is ctx:
                self.tick()
                await asyncio.sleep(period_sec)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(f"Session {ctx.session_id}: capture failed: {e}", exc_info=True,
                         extra={"session_id": ctx.session_id})
            self._sampling_task = None
            self.abort()
            error = e if isinstance(e, CaptureFailureError) else CaptureFailureError(
                f"Capture failed: {e}", ctx.session_id
            )
            self._report(error)

    def _cancel_sampling(self) -> None:
        task, self._sampling_task = self._sampling_task, None
        if task is not None and not task.done():
            task.cancel()

    # ------------------------------------------------------------------

    def _report(self, error: Exception) -> None:
        if self.on_error:
            self.on_error(error)

    def _require_capturing(self) -> SessionContext:
        if self._context is None or self._context.state is not SessionState.CAPTURING:
            raise SessionStateError(f"Session is not capturing (state={self.state.value})")
        return self._context


def create_empty_speech_analysis_result() -> SpeechAnalysisResult:
    """Zero-filled report for callers that need a placeholder."""
    return SpeechAnalysisResult(
        raw_transcript="",
        cleaned_transcript="",
        word_confidences=[],
        fluency_metrics=create_empty_fluency_metrics(),
        prosody_metrics=create_empty_prosody_metrics(),
        audio_analysis=FrameExtractor.create_empty_result(),
        duration_ms=0,
        overall_clarity_score=0,
    )
