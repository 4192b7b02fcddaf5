"""
Offline replay of a recorded session.

``ScriptedRecognitionEngine`` plays back timed recognition events (results,
errors, spontaneous ends) and ``replay_session`` drives a full
SpeechAnalysisSession over an audio source on a simulated clock, one frame
period per step.

Script format (JSON lines, one event per line)::

    {"at_ms": 300, "type": "result", "result_index": 0,
     "results": [{"transcript": "hello", "is_final": false}]}
    {"at_ms": 900, "type": "error", "code": "network"}
    {"at_ms": 5000, "type": "end"}
"""

import json
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from audio.sources import AudioSource
from config import AppSettings, settings as default_settings

from .exceptions import RecognitionEngineStateError
from .models import SpeechAnalysisResult
from .recognition import RecognitionEngine, RecognitionItem
from .session import SpeechAnalysisSession

logger = logging.getLogger(__name__)


class ScriptItem(BaseModel):
    transcript: str
    is_final: bool = False


class ScriptEvent(BaseModel):
    at_ms: int = Field(..., ge=0)
    type: str = Field(..., pattern="^(result|error|end)$")
    result_index: int = Field(0, ge=0)
    results: List[ScriptItem] = Field(default_factory=list)
    code: Optional[str] = None


def load_script(path: str) -> List[ScriptEvent]:
    """Read a JSON-lines recognition script, ordered by time."""
    events: List[ScriptEvent] = []
    with open(path, "r", encoding="utf-8") as f:
        for line_number, line in enumerate(f, start=1):
            line = line.strip()
            if not line:
                continue
            try:
                events.append(ScriptEvent.model_validate(json.loads(line)))
            except ValueError as e:
                raise ValueError(f"{path}:{line_number}: invalid script event: {e}") from e
    logger.info(f"Loaded {len(events)} recognition events from {path}")
    return sorted(events, key=lambda e: e.at_ms)


class ScriptedRecognitionEngine(RecognitionEngine):
    """Recognition engine that emits scripted events as simulated time advances."""

    def __init__(self, events: List[ScriptEvent], language: str = "en-GB"):
        super().__init__(language=language)
        self._events = sorted(events, key=lambda e: e.at_ms)
        self._position = 0
        self.running = False
        self.start_count = 0

    @property
    def exhausted(self) -> bool:
        return self._position >= len(self._events)

    def start(self) -> None:
        if self.running:
            raise RecognitionEngineStateError("Recognition already started")
        self.running = True
        self.start_count += 1

    def stop(self) -> None:
        if not self.running:
            raise RecognitionEngineStateError("Recognition not running")
        self.running = False

    def abort(self) -> None:
        if not self.running:
            raise RecognitionEngineStateError("Recognition not running")
        self.running = False

    def advance(self, now_ms: int) -> None:
        """Emit every scripted event due at or before ``now_ms``."""
        while not self.exhausted and self._events[self._position].at_ms <= now_ms:
            event = self._events[self._position]
            self._position += 1
            if not self.running:
                logger.debug(f"Dropping scripted {event.type} at {event.at_ms}ms: engine not running")
                continue

            if event.type == "result" and self.on_result:
                items = [RecognitionItem(i.transcript, i.is_final) for i in event.results]
                self.on_result(event.result_index, items)
            elif event.type == "error" and self.on_error:
                self.on_error(event.code or "unknown")
            elif event.type == "end":
                self.running = False
                if self.on_end:
                    self.on_end()


class ReplayClock:
    """Seconds clock advanced by the replay loop."""

    def __init__(self):
        self.now_ms = 0

    def __call__(self) -> float:
        return self.now_ms / 1000.0


async def replay_session(
    source: AudioSource,
    engine: ScriptedRecognitionEngine,
    settings: Optional[AppSettings] = None,
    on_interim_result=None,
    on_error=None
) -> Optional[SpeechAnalysisResult]:
    """
    Run a complete session over a source and a recognition script.

    The loop advances one frame period at a time until both the audio and
    the script are exhausted.

    Returns:
        SpeechAnalysisResult, or None when nothing was recognized
    """
    settings = settings or default_settings
    clock = ReplayClock()
    session = SpeechAnalysisSession(
        engine,
        settings=settings,
        on_interim_result=on_interim_result,
        on_error=on_error,
        clock=clock,
        auto_sample=False
    )
    await session.start(source)

    try:
        while True:
            engine.advance(clock.now_ms)
            frame = session.tick()
            if frame is None and engine.exhausted:
                break
            clock.now_ms += settings.FRAME_PERIOD_MS
    except Exception:
        session.abort()
        raise

    return session.stop()
