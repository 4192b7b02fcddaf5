"""
Recognition capability interface and session event types.

The speech recognition engine is an external collaborator. The session only
depends on ``RecognitionEngine``: ``start``/``stop``/``abort`` plus three
callbacks the session attaches. Engine callbacks and frame sampling never
touch session state directly; they enqueue the tagged events below, which
the session drains on its own schedule.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Callable, Optional, Sequence, Tuple, Union

from audio.models import AudioFrame


@dataclass(frozen=True)
class RecognitionItem:
    """One recognition result: a transcript chunk and whether it is committed."""
    transcript: str
    is_final: bool = False


ResultCallback = Callable[[int, Sequence[RecognitionItem]], None]
ErrorCallback = Callable[[str], None]
EndCallback = Callable[[], None]


class RecognitionEngine(ABC):
    """
    Streaming speech recognition capability.

    ``on_result(result_index, results)`` receives the engine's full result
    list for the current run; items before ``result_index`` are unchanged
    since the previous call. Result indexes restart at 0 every time the
    engine is started.

    Engines raise ``RecognitionEngineStateError`` when started while
    running or used after release.
    """

    def __init__(self, language: str = "en-GB", continuous: bool = True, interim_results: bool = True):
        self.language = language
        self.continuous = continuous
        self.interim_results = interim_results
        self.on_result: Optional[ResultCallback] = None
        self.on_error: Optional[ErrorCallback] = None
        self.on_end: Optional[EndCallback] = None

    @abstractmethod
    def start(self) -> None:
        """Begin recognition."""

    @abstractmethod
    def stop(self) -> None:
        """Stop listening and deliver any pending final result."""

    @abstractmethod
    def abort(self) -> None:
        """Stop immediately, discarding pending results."""

    def detach(self) -> None:
        self.on_result = None
        self.on_error = None
        self.on_end = None


@dataclass(frozen=True)
class AudioFrameEvent:
    frame: AudioFrame


@dataclass(frozen=True)
class RecognitionResultEvent:
    generation: int
    result_index: int
    results: Tuple[RecognitionItem, ...]


@dataclass(frozen=True)
class RecognitionErrorEvent:
    generation: int
    code: str


@dataclass(frozen=True)
class RecognitionEndEvent:
    generation: int


SessionEvent = Union[AudioFrameEvent, RecognitionResultEvent, RecognitionErrorEvent, RecognitionEndEvent]
