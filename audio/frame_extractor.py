"""
Frame extraction for live speech analysis.

Samples an audio source once per frame period and keeps an ordered frame
buffer plus running aggregates (pitch range, average pitch, silence count).
The source is claimed on ``start`` and released exactly once, by ``stop`` or
``discard``.
"""

import logging
from typing import List, Optional

import numpy as np

from . import constants
from .exceptions import CaptureFailureError, FrameOrderError
from .features import compute_rms, estimate_pitch
from .models import AudioAnalysisResult, AudioFrame, PitchRange
from .sources import AudioSource

logger = logging.getLogger(__name__)


class FrameExtractor:
    """
    Produces one AudioFrame per sampling period.

    Responsibilities:
    - Exclusive ownership of the audio source for the session
    - Per-frame RMS energy, silence flag and pitch estimate
    - Running aggregates for the final AudioAnalysisResult
    """

    def __init__(
        self,
        frame_period_ms: int = constants.FRAME_PERIOD_MS,
        silence_threshold: float = constants.SILENCE_RMS_THRESHOLD,
        pitch_min_hz: float = constants.PITCH_MIN_HZ,
        pitch_max_hz: float = constants.PITCH_MAX_HZ,
        hpf_hz: float = constants.PREFILTER_HPF_HZ,
        session_id: str = "N/A"
    ):
        self.frame_period_ms = frame_period_ms
        self.silence_threshold = silence_threshold
        self.pitch_min_hz = pitch_min_hz
        self.pitch_max_hz = pitch_max_hz
        self.hpf_hz = hpf_hz
        self.session_id = session_id

        self._source: Optional[AudioSource] = None
        self._reset_buffers()

    def _reset_buffers(self) -> None:
        self._frames: List[AudioFrame] = []
        self._frame_index = 0
        self._pitch_sum = 0.0
        self._pitch_count = 0
        self._pitch_min = 0.0
        self._pitch_max = 0.0
        self._silent_count = 0

    @property
    def is_capturing(self) -> bool:
        return self._source is not None

    @property
    def frame_count(self) -> int:
        return len(self._frames)

    async def start(self, source: AudioSource) -> None:
        """
        Claim the audio source and reset all buffers.

        Raises:
            CaptureFailureError: if the source cannot be opened
        """
        if self._source is not None:
            raise CaptureFailureError("Frame extractor already owns an audio source", self.session_id)

        try:
            await source.open()
        except Exception as e:
            # The source may have been partially claimed
            source.close()
            raise CaptureFailureError(f"Audio source unavailable: {e}", self.session_id) from e

        self._reset_buffers()
        self._source = source
        logger.info(
            f"FrameExtractor started: sample_rate={source.sample_rate}Hz, "
            f"period={self.frame_period_ms}ms, silence_threshold={self.silence_threshold}"
        )

    def sample(self) -> Optional[AudioFrame]:
        """
        Read one window from the source and build a frame.

        The frame is not buffered; pass it to ``add_frame``.

        Returns:
            The next AudioFrame, or None when the source is exhausted
        """
        if self._source is None:
            raise CaptureFailureError("Frame extractor is not capturing", self.session_id)

        num_samples = self._source.sample_rate * self.frame_period_ms // 1000
        window = self._source.read(num_samples)
        if window is None:
            return None

        frame = self.build_frame(window, self._source.sample_rate, self._frame_index * self.frame_period_ms)
        self._frame_index += 1
        return frame

    def build_frame(self, window: np.ndarray, sr: int, timestamp: int) -> AudioFrame:
        """Measure energy, silence and (for voiced windows) pitch of one window."""
        rms = compute_rms(window)
        is_silent = rms < self.silence_threshold
        pitch = 0.0
        if not is_silent:
            pitch = estimate_pitch(window, sr, self.pitch_min_hz, self.pitch_max_hz, self.hpf_hz)
        return AudioFrame(timestamp=timestamp, rms=rms, pitch=pitch, is_silent=is_silent)

    def add_frame(self, frame: AudioFrame) -> None:
        """
        Append a frame and update the running aggregates.

        Raises:
            FrameOrderError: if the timestamp does not increase
        """
        if self._frames and frame.timestamp <= self._frames[-1].timestamp:
            raise FrameOrderError(
                f"Frame at {frame.timestamp}ms arrived after {self._frames[-1].timestamp}ms",
                self.session_id
            )
        if not self._frames and frame.timestamp != 0:
            raise FrameOrderError(
                f"First frame must start at 0ms, got {frame.timestamp}ms", self.session_id
            )

        self._frames.append(frame)
        if frame.is_silent:
            self._silent_count += 1
        if frame.pitch > 0:
            if self._pitch_count == 0:
                self._pitch_min = self._pitch_max = frame.pitch
            else:
                self._pitch_min = min(self._pitch_min, frame.pitch)
                self._pitch_max = max(self._pitch_max, frame.pitch)
            self._pitch_sum += frame.pitch
            self._pitch_count += 1

    def stop(self) -> AudioAnalysisResult:
        """Release the source and return the finished analysis."""
        try:
            return self._build_result()
        finally:
            self._release()
            self._reset_buffers()

    def discard(self) -> None:
        """Release the source and drop every buffered frame."""
        dropped = len(self._frames)
        self._release()
        self._reset_buffers()
        logger.debug(f"FrameExtractor discarded {dropped} frames")

    def _release(self) -> None:
        source, self._source = self._source, None
        if source is not None:
            source.close()
            logger.info("FrameExtractor released audio source")

    def _build_result(self) -> AudioAnalysisResult:
        if not self._frames:
            return self.create_empty_result()

        frame_count = len(self._frames)
        average_pitch = self._pitch_sum / self._pitch_count if self._pitch_count else 0.0
        result = AudioAnalysisResult(
            frames=list(self._frames),
            pitch_range=PitchRange(min=self._pitch_min, max=self._pitch_max),
            average_pitch=average_pitch,
            total_duration=frame_count * self.frame_period_ms,
            silence_ratio=self._silent_count / frame_count,
        )
        logger.info(
            f"Audio analysis: {frame_count} frames, {result.total_duration}ms, "
            f"silence_ratio={result.silence_ratio:.2f}, avg_pitch={average_pitch:.1f}Hz"
        )
        return result

    @staticmethod
    def create_empty_result() -> AudioAnalysisResult:
        return AudioAnalysisResult(
            frames=[],
            pitch_range=PitchRange(min=0.0, max=0.0),
            average_pitch=0.0,
            total_duration=0,
            silence_ratio=0.0,
        )
