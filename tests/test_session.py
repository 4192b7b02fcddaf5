"""
Tests for the speech analysis session orchestrator.

Recognition is driven by a fake engine and frames are sampled with
``tick`` unless a test exercises the background sampling task.
"""

import asyncio
import logging

import numpy as np
import pytest

from audio.exceptions import CaptureFailureError
from audio.sources import ArraySource
from config import AppSettings
from speech.exceptions import RecognitionError, SessionStateError, UnsupportedPlatformError
from speech.models import SessionState
from speech.recognition import RecognitionItem
from speech.session import SpeechAnalysisSession, create_empty_speech_analysis_result

from _helpers import SR, BrokenSource, FailingSource, FakeClock, FakeRecognitionEngine, sine


@pytest.fixture
def settings():
    return AppSettings(_env_file=None)


@pytest.fixture
def engine():
    return FakeRecognitionEngine()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return ArraySource(sine(seconds=2.0), SR)


@pytest.fixture
def interims():
    return []


@pytest.fixture
def errors():
    return []


@pytest.fixture
def session(engine, settings, clock, interims, errors):
    return SpeechAnalysisSession(
        engine,
        settings=settings,
        on_interim_result=interims.append,
        on_error=errors.append,
        clock=clock,
        auto_sample=False
    )


# ============================================================================
# Lifecycle
# ============================================================================

class TestLifecycle:

    @pytest.mark.asyncio
    async def test_start_configures_engine(self, session, engine, source):
        assert session.state is SessionState.IDLE

        await session.start(source)

        assert session.state is SessionState.CAPTURING
        assert session.session_id
        assert engine.start_count == 1
        assert engine.language == "en-GB"
        assert engine.continuous is True
        assert engine.interim_results is True
        assert source.is_open

    @pytest.mark.asyncio
    async def test_unsupported_platform(self, settings, source):
        session = SpeechAnalysisSession(None, settings=settings, auto_sample=False)

        with pytest.raises(UnsupportedPlatformError):
            await session.start(source)

        assert source.open_count == 0
        assert session.state is SessionState.IDLE

    @pytest.mark.asyncio
    async def test_capture_failure(self, session, engine):
        source = FailingSource()

        with pytest.raises(CaptureFailureError):
            await session.start(source)

        assert session.state is SessionState.IDLE
        assert engine.start_count == 0
        assert source.close_calls == 1

    @pytest.mark.asyncio
    async def test_engine_start_failure_releases_source(self, settings, source):
        engine = FakeRecognitionEngine(start_error=RuntimeError("not-allowed"))
        session = SpeechAnalysisSession(engine, settings=settings, auto_sample=False)

        with pytest.raises(RuntimeError):
            await session.start(source)

        assert source.is_open is False
        assert source.close_count == 1
        assert session.state is SessionState.IDLE
        assert engine.on_result is None

        engine.start_error = None
        await session.start(ArraySource(sine(), SR))
        assert session.state is SessionState.CAPTURING

    @pytest.mark.asyncio
    async def test_start_while_capturing_rejected(self, session, source):
        await session.start(source)

        with pytest.raises(SessionStateError):
            await session.start(ArraySource(sine(), SR))

    @pytest.mark.asyncio
    async def test_engine_already_running_is_tolerated(self, session, engine, source):
        engine.running = True

        await session.start(source)

        assert session.state is SessionState.CAPTURING

    def test_stop_without_session_raises(self, session):
        with pytest.raises(SessionStateError):
            session.stop()

    @pytest.mark.asyncio
    async def test_empty_transcript_returns_none(self, session, source):
        await session.start(source)
        for _ in range(5):
            session.tick()

        assert session.stop() is None
        assert session.state is SessionState.STOPPED
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_abort_releases_everything(self, session, engine, source):
        await session.start(source)
        engine.emit_result(0, ("hello", False))
        session.tick()

        session.abort()
        session.abort()

        assert session.state is SessionState.ABORTED
        assert source.close_count == 1
        assert engine.running is False
        assert engine.on_result is None
        with pytest.raises(SessionStateError):
            session.tick()

    @pytest.mark.asyncio
    async def test_restart_after_stop(self, session, engine, source):
        await session.start(source)
        session.stop()

        await session.start(ArraySource(sine(), SR))

        assert session.state is SessionState.CAPTURING
        assert engine.start_count == 2


# ============================================================================
# Recognition results
# ============================================================================

class TestRecognition:

    @pytest.mark.asyncio
    async def test_interim_then_final(self, session, engine, clock, source, interims):
        await session.start(source)

        engine.emit_result(0, ("hello", False))
        session.tick()
        assert session.interim_transcript == "hello"

        engine.emit_result(0, ("hello world", True))
        session.tick()
        clock.advance(3.0)
        result = session.stop()

        assert interims == ["hello", "hello world "]
        assert result.raw_transcript == "hello world"
        assert [w.confidence for w in result.word_confidences] == [100, 50]
        assert result.duration_ms == 3000
        assert result.fluency_metrics.words_per_minute == 40
        assert len(result.audio_analysis.frames) == 2
        assert 0 <= result.overall_clarity_score <= 100

    @pytest.mark.asyncio
    async def test_committed_results_not_duplicated(self, session, engine, source):
        await session.start(source)

        engine.emit_result(0, ("hello", True))
        session.tick()
        engine.emit_result(0, ("hello", True), ("there", False))
        session.tick()

        assert session.interim_transcript == "hello there"

        engine.emit_result(1, ("hello", True), ("there", True))
        session.tick()
        result = session.stop()

        assert result.raw_transcript == "hello there"

    @pytest.mark.asyncio
    async def test_interim_only_transcript_is_used(self, session, engine, source):
        await session.start(source)
        engine.emit_result(0, ("almost  said", False))
        session.tick()

        result = session.stop()

        assert result.raw_transcript == "almost said"
        assert [w.confidence for w in result.word_confidences] == [100, 100]

    @pytest.mark.asyncio
    async def test_events_before_tick_are_queued(self, session, engine, source, interims):
        await session.start(source)

        engine.emit_result(0, ("one", False))
        assert interims == []

        session.tick()
        assert interims == ["one"]

    @pytest.mark.asyncio
    async def test_cleaned_transcript_and_flags(self, session, engine, source):
        await session.start(source)
        engine.emit_result(0, ("um I I think so", True))
        session.tick()

        result = session.stop()

        assert result.cleaned_transcript == "I think so"
        assert result.fluency_metrics.filler_count == 1
        assert result.fluency_metrics.repetition_count == 1


# ============================================================================
# Engine restarts and errors
# ============================================================================

class TestEngineRestarts:

    @pytest.mark.asyncio
    async def test_spontaneous_end_restarts(self, session, engine, source):
        await session.start(source)

        engine.end()
        session.tick()

        assert engine.start_count == 2
        assert engine.running is True

    @pytest.mark.asyncio
    async def test_result_indexes_restart_with_engine(self, session, engine, source):
        await session.start(source)
        engine.emit_result(0, ("hello", True))
        session.tick()

        engine.end()
        session.tick()
        engine.emit_result(0, ("again", True))
        session.tick()

        assert session.stop().raw_transcript == "hello again"

    @pytest.mark.asyncio
    async def test_stale_run_results_ignored(self, session, engine, source):
        await session.start(source)
        old_on_result = engine.on_result

        engine.end()
        session.tick()
        old_on_result(0, [RecognitionItem("stale", True)])
        session.tick()

        assert session.interim_transcript == ""

    @pytest.mark.asyncio
    async def test_no_restart_after_stop(self, session, engine, source):
        await session.start(source)
        on_end = engine.on_end

        session.stop()
        on_end()

        assert engine.start_count == 1

    @pytest.mark.asyncio
    async def test_restart_limit(self, engine, clock, source, errors):
        settings = AppSettings(_env_file=None, RECOGNITION_MAX_RESTARTS=2)
        session = SpeechAnalysisSession(engine, settings=settings, on_error=errors.append,
                                        clock=clock, auto_sample=False)
        await session.start(source)

        for _ in range(4):
            engine.end()
            session.tick()

        assert engine.start_count == 3
        assert len(errors) == 1
        assert isinstance(errors[0], RecognitionError)
        assert errors[0].code == "restart-limit"
        assert session.state is SessionState.CAPTURING

    @pytest.mark.asyncio
    async def test_results_reset_restart_budget(self, engine, clock, source):
        settings = AppSettings(_env_file=None, RECOGNITION_MAX_RESTARTS=1)
        session = SpeechAnalysisSession(engine, settings=settings, clock=clock, auto_sample=False)
        await session.start(source)

        for word in ("one", "two", "three"):
            engine.emit_result(0, (word, True))
            engine.end()
            session.tick()

        assert engine.start_count == 4

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_restarts", [20, 0])
    async def test_immediate_end_restarts_once_per_tick(self, clock, source, max_restarts):
        engine = FakeRecognitionEngine(end_on_start=True)
        settings = AppSettings(_env_file=None, RECOGNITION_MAX_RESTARTS=max_restarts)
        session = SpeechAnalysisSession(engine, settings=settings, clock=clock, auto_sample=False)
        await session.start(source)

        session.tick()
        assert engine.start_count == 2

        session.tick()
        assert engine.start_count == 3

        session.abort()
        assert session.state is SessionState.ABORTED
        assert source.close_count == 1

    @pytest.mark.asyncio
    async def test_session_id_attached_to_log_records(self, session, engine, source, caplog):
        await session.start(source)

        with caplog.at_level(logging.INFO, logger="speech.session"):
            engine.end()
            session.tick()

        restart_records = [r for r in caplog.records if "restarting recognition" in r.getMessage()]
        assert restart_records
        assert restart_records[0].session_id == session.session_id

    @pytest.mark.asyncio
    @pytest.mark.parametrize("code", ["no-speech", "aborted"])
    async def test_benign_errors_not_reported(self, session, engine, source, errors, code):
        await session.start(source)

        engine.emit_error(code)
        session.tick()

        assert errors == []

    @pytest.mark.asyncio
    async def test_other_errors_reported(self, session, engine, source, errors):
        await session.start(source)

        engine.emit_error("network")
        session.tick()

        assert len(errors) == 1
        assert errors[0].code == "network"
        assert str(errors[0]).endswith("Speech recognition error: network")
        assert session.state is SessionState.CAPTURING


# ============================================================================
# Background sampling
# ============================================================================

class TestSampling:

    @pytest.mark.asyncio
    async def test_sampling_task_collects_frames(self, engine, settings, source):
        session = SpeechAnalysisSession(engine, settings=settings)
        await session.start(source)
        engine.emit_result(0, ("hi there", True))

        await asyncio.sleep(0.35)
        result = session.stop()

        assert len(result.audio_analysis.frames) >= 1
        assert result.raw_transcript == "hi there"

    @pytest.mark.asyncio
    async def test_sampling_failure_aborts(self, engine, settings, errors):
        session = SpeechAnalysisSession(engine, settings=settings, on_error=errors.append)
        source = BrokenSource(np.zeros(SR, dtype=np.float32), SR)
        await session.start(source)

        await asyncio.sleep(0.05)

        assert session.state is SessionState.ABORTED
        assert source.close_count == 1
        assert isinstance(errors[0], CaptureFailureError)


def test_empty_result_placeholder():
    result = create_empty_speech_analysis_result()

    assert result.raw_transcript == ""
    assert result.word_confidences == []
    assert result.overall_clarity_score == 0
    assert result.audio_analysis.frames == []
