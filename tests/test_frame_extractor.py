"""
Tests for frame extraction and per-window features.
"""

import sys
from unittest.mock import MagicMock, patch

import numpy as np
import pytest

from audio.exceptions import CaptureFailureError, FrameOrderError
from audio.features import apply_highpass, compute_rms, estimate_pitch
from audio.frame_extractor import FrameExtractor
from audio.models import AudioFrame
from audio.sources import ArraySource, MicrophoneSource

from _helpers import SR, FailingSource, make_frames, sine


# ============================================================================
# Features
# ============================================================================

class TestFeatures:

    def test_rms_of_empty_window_is_zero(self):
        assert compute_rms(np.zeros(0, dtype=np.float32)) == 0.0

    def test_rms_of_sine(self):
        rms = compute_rms(sine(amplitude=0.5))
        assert rms == pytest.approx(0.5 / np.sqrt(2), rel=1e-3)

    def test_highpass_keeps_length(self):
        window = sine(seconds=0.1)
        assert len(apply_highpass(window, SR, 80.0)) == len(window)

    def test_highpass_skips_short_windows(self):
        window = np.ones(10, dtype=np.float64)
        assert apply_highpass(window, SR, 80.0) is window

    def test_pitch_of_sine(self):
        pitch = estimate_pitch(sine(freq=200.0, seconds=0.1), SR)
        assert pitch == pytest.approx(200.0, abs=5.0)

    def test_pitch_of_short_window_is_zero(self):
        assert estimate_pitch(sine(seconds=0.005), SR) == 0.0


# ============================================================================
# FrameExtractor
# ============================================================================

class TestFrameExtractor:

    @pytest.fixture
    def extractor(self):
        return FrameExtractor(frame_period_ms=100, silence_threshold=0.01)

    def test_empty_result(self, extractor):
        result = extractor.stop()

        assert result.frames == []
        assert result.total_duration == 0
        assert result.silence_ratio == 0.0
        assert result.average_pitch == 0.0

    @pytest.mark.asyncio
    async def test_silence_produces_silent_frames(self, extractor):
        source = ArraySource(np.zeros(SR, dtype=np.float32), SR)
        await extractor.start(source)

        while True:
            frame = extractor.sample()
            if frame is None:
                break
            extractor.add_frame(frame)
        result = extractor.stop()

        assert len(result.frames) == 10
        assert all(f.is_silent and f.pitch == 0.0 for f in result.frames)
        assert [f.timestamp for f in result.frames] == list(range(0, 1000, 100))
        assert result.total_duration == 1000
        assert result.silence_ratio == 1.0

    @pytest.mark.asyncio
    async def test_voiced_frames_carry_pitch(self, extractor):
        source = ArraySource(sine(freq=200.0, seconds=0.5), SR)
        await extractor.start(source)

        for _ in range(5):
            extractor.add_frame(extractor.sample())
        result = extractor.stop()

        assert all(not f.is_silent for f in result.frames)
        assert result.average_pitch == pytest.approx(200.0, abs=5.0)
        assert result.pitch_range.min <= result.average_pitch <= result.pitch_range.max
        assert result.silence_ratio == 0.0

    @pytest.mark.asyncio
    async def test_start_failure_releases_source(self, extractor):
        source = FailingSource()

        with pytest.raises(CaptureFailureError):
            await extractor.start(source)

        assert source.close_calls == 1
        assert extractor.is_capturing is False

    @pytest.mark.asyncio
    async def test_double_start_rejected(self, extractor):
        await extractor.start(ArraySource(sine(), SR))

        with pytest.raises(CaptureFailureError):
            await extractor.start(ArraySource(sine(), SR))

    def test_sample_without_source_raises(self, extractor):
        with pytest.raises(CaptureFailureError):
            extractor.sample()

    def test_rejects_out_of_order_frame(self, extractor):
        frames = make_frames("VV")
        extractor.add_frame(frames[0])
        extractor.add_frame(frames[1])

        with pytest.raises(FrameOrderError):
            extractor.add_frame(frames[1])
        assert extractor.frame_count == 2

    def test_first_frame_must_start_at_zero(self, extractor):
        with pytest.raises(FrameOrderError):
            extractor.add_frame(AudioFrame(timestamp=100, rms=0.1, pitch=150.0, is_silent=False))

    def test_aggregates_ignore_unpitched_frames(self, extractor):
        frames = [
            AudioFrame(timestamp=0, rms=0.1, pitch=100.0, is_silent=False),
            AudioFrame(timestamp=100, rms=0.1, pitch=0.0, is_silent=False),
            AudioFrame(timestamp=200, rms=0.0, pitch=0.0, is_silent=True),
            AudioFrame(timestamp=300, rms=0.1, pitch=200.0, is_silent=False),
        ]
        for frame in frames:
            extractor.add_frame(frame)
        result = extractor.stop()

        assert result.pitch_range.min == 100.0
        assert result.pitch_range.max == 200.0
        assert result.average_pitch == pytest.approx(150.0)
        assert result.silence_ratio == pytest.approx(0.25)
        assert result.total_duration == 400

    @pytest.mark.asyncio
    async def test_stop_releases_source_once(self, extractor):
        source = ArraySource(sine(), SR)
        await extractor.start(source)
        extractor.add_frame(extractor.sample())

        extractor.stop()
        extractor.discard()

        assert source.close_count == 1
        assert source.is_open is False

    @pytest.mark.asyncio
    async def test_discard_drops_frames(self, extractor):
        source = ArraySource(sine(), SR)
        await extractor.start(source)
        extractor.add_frame(extractor.sample())

        extractor.discard()

        assert extractor.frame_count == 0
        assert source.close_count == 1
        assert extractor.stop().frames == []


# ============================================================================
# MicrophoneSource
# ============================================================================

class TestMicrophoneSource:

    @pytest.fixture
    def sounddevice(self):
        module = MagicMock()
        with patch.dict(sys.modules, {"sounddevice": module}):
            yield module

    @pytest.mark.asyncio
    async def test_open_read_close(self, sounddevice):
        mic = MicrophoneSource(sample_rate=SR, buffer_seconds=0.5)
        await mic.open()

        assert mic.is_open
        assert mic.read(1600).size == 0

        block = np.arange(1024, dtype=np.float32).reshape(-1, 1)
        mic._on_audio(block, 1024, None, None)
        window = mic.read(100)

        assert np.array_equal(window, np.arange(924, 1024, dtype=np.float32))

        mic.close()
        mic.close()

        stream = sounddevice.InputStream.return_value
        stream.start.assert_called_once()
        stream.close.assert_called_once()
        assert mic.is_open is False

    @pytest.mark.asyncio
    async def test_ring_buffer_is_bounded(self, sounddevice):
        mic = MicrophoneSource(sample_rate=SR, buffer_seconds=0.1)
        await mic.open()

        for _ in range(20):
            mic._on_audio(np.ones((512, 1), dtype=np.float32), 512, None, None)

        assert mic._buffered <= 1600 + 512
