"""
Audio sources the frame extractor can sample.

A source is a live-capture handle: it is opened once, read one window at a
time at the frame cadence, and closed once. ``ArraySource`` wraps an
in-memory signal (or a file loaded with librosa) and ``MicrophoneSource``
wraps a sounddevice input stream.
"""

import logging
import threading
from abc import ABC, abstractmethod
from collections import deque
from typing import Deque, Optional

import librosa
import numpy as np

from . import constants

logger = logging.getLogger(__name__)


class AudioSource(ABC):
    """Abstract live-capture handle."""

    def __init__(self, sample_rate: int = constants.DEFAULT_SAMPLE_RATE):
        self.sample_rate = sample_rate
        self._is_open = False

    @property
    def is_open(self) -> bool:
        return self._is_open

    @abstractmethod
    async def open(self) -> None:
        """Claim the input and wait until it can be sampled."""

    @abstractmethod
    def read(self, num_samples: int) -> Optional[np.ndarray]:
        """
        Return the next window of ``num_samples`` float samples.

        Returns None when no more audio will be produced.
        """

    @abstractmethod
    def close(self) -> None:
        """Release the input. Safe to call on an already-closed source."""


class ArraySource(AudioSource):
    """Source backed by a mono float signal held in memory."""

    def __init__(self, samples: np.ndarray, sample_rate: int = constants.DEFAULT_SAMPLE_RATE):
        super().__init__(sample_rate)
        self.samples = np.asarray(samples, dtype=np.float32)
        self._cursor = 0
        self.open_count = 0
        self.close_count = 0

    @classmethod
    def from_file(cls, path: str, sample_rate: int = constants.DEFAULT_SAMPLE_RATE) -> "ArraySource":
        """Load a file as mono audio resampled to ``sample_rate``."""
        y, sr = librosa.load(path, sr=sample_rate, mono=True)
        logger.info(f"Loaded {path}: {len(y) / sr:.2f} seconds at {sr}Hz")
        return cls(y, sr)

    async def open(self) -> None:
        self._cursor = 0
        self._is_open = True
        self.open_count += 1

    def read(self, num_samples: int) -> Optional[np.ndarray]:
        if not self._is_open:
            raise RuntimeError("ArraySource is not open")
        if self._cursor >= len(self.samples):
            return None
        window = self.samples[self._cursor:self._cursor + num_samples]
        self._cursor += num_samples
        return window

    def close(self) -> None:
        if self._is_open:
            self._is_open = False
            self.close_count += 1


class MicrophoneSource(AudioSource):
    """
    Live microphone input through sounddevice.

    The PortAudio callback appends blocks to a bounded ring buffer; ``read``
    returns the most recent ``num_samples`` samples so each frame reflects
    what was just captured.
    """

    def __init__(
        self,
        sample_rate: int = constants.DEFAULT_SAMPLE_RATE,
        device: Optional[int] = None,
        buffer_seconds: float = 2.0
    ):
        super().__init__(sample_rate)
        self.device = device
        self._stream = None
        self._lock = threading.Lock()
        self._blocks: Deque[np.ndarray] = deque()
        self._buffered = 0
        self._max_buffered = int(sample_rate * buffer_seconds)

    async def open(self) -> None:
        import sounddevice as sd

        self._stream = sd.InputStream(
            samplerate=self.sample_rate,
            channels=1,
            dtype='float32',
            device=self.device,
            callback=self._on_audio
        )
        self._stream.start()
        self._is_open = True
        logger.info(f"Microphone opened: device={self.device}, sample_rate={self.sample_rate}Hz")

    def _on_audio(self, indata, frames, time_info, status) -> None:
        if status:
            logger.debug(f"Microphone status: {status}")
        block = indata[:, 0].copy()
        with self._lock:
            self._blocks.append(block)
            self._buffered += len(block)
            while self._buffered - len(self._blocks[0]) >= self._max_buffered:
                self._buffered -= len(self._blocks.popleft())

    def read(self, num_samples: int) -> Optional[np.ndarray]:
        if not self._is_open:
            raise RuntimeError("MicrophoneSource is not open")
        with self._lock:
            if not self._blocks:
                return np.zeros(0, dtype=np.float32)
            data = np.concatenate(list(self._blocks))
        return data[-num_samples:]

    def close(self) -> None:
        if not self._is_open:
            return
        self._is_open = False
        if self._stream is not None:
            self._stream.stop()
            self._stream.close()
            self._stream = None
        with self._lock:
            self._blocks.clear()
            self._buffered = 0
        logger.info("Microphone released")
