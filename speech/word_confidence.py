"""
Word-level confidence from recognition snapshot stability.

The recognition engine revises its interim hypothesis several times before
committing a segment. A word that sat unchanged at its position through the
trailing interim revisions is scored near 100; a word that only settled in
the last revision, or kept changing, scores lower.

Scoring of a committed word at position j of its segment:

    confidence = 50 + 50 * stability - 5 * revisions

where ``stability`` is the fraction of the segment's interim snapshots,
counted back from the last one, that already held the final word at j, and
``revisions`` is how many times the token at j changed across interims.
A segment committed without any interim gets a fixed score.
"""

import logging
from difflib import SequenceMatcher
from typing import List, Optional, Tuple

from . import constants
from .models import WordConfidence
from .text_metrics import detect_fillers, detect_repeats, normalize_token, round_half_up, tokenize

logger = logging.getLogger(__name__)

# (normalized token, confidence)
ScoredWord = Tuple[str, int]


class WordConfidenceTracker:
    """
    Tracks interim/final recognition snapshots for one session.

    Responsibilities:
    - Snapshot history per uncommitted segment
    - Stability scoring when a segment is committed
    - Alignment of scored words with the finished transcript
    """

    def __init__(self, neutral_confidence: int = constants.NEUTRAL_CONFIDENCE):
        self.neutral_confidence = neutral_confidence
        self._committed: List[ScoredWord] = []
        self._pending: List[List[str]] = []
        self._snapshot_count = 0

    @property
    def snapshot_count(self) -> int:
        return self._snapshot_count

    def start(self) -> None:
        """Reset snapshot history."""
        self._committed = []
        self._pending = []
        self._snapshot_count = 0

    def add_snapshot(self, text: str, is_final: bool) -> None:
        """
        Record one recognition update.

        Args:
            text: Interim hypothesis or committed segment text
            is_final: True when the engine committed the segment
        """
        tokens = [normalize_token(t) for t in tokenize(text)]
        self._snapshot_count += 1

        if is_final:
            scores = self._score_segment(tokens, self._pending)
            self._committed.extend(zip(tokens, scores))
            logger.debug(
                f"Committed segment: {len(tokens)} words after {len(self._pending)} interim snapshots"
            )
            self._pending = []
        else:
            self._pending.append(tokens)

    @staticmethod
    def _score_segment(final_tokens: List[str], interims: List[List[str]]) -> List[int]:
        n = len(interims)
        if n == 0:
            return [constants.FINAL_ONLY_CONFIDENCE] * len(final_tokens)

        scores: List[int] = []
        for j, word in enumerate(final_tokens):
            streak = 0
            for snapshot in reversed(interims):
                if j < len(snapshot) and snapshot[j] == word:
                    streak += 1
                else:
                    break

            revisions = 0
            previous: Optional[str] = None
            for snapshot in interims:
                if j >= len(snapshot):
                    continue
                if previous is not None and snapshot[j] != previous:
                    revisions += 1
                previous = snapshot[j]

            confidence = (
                constants.BASE_CONFIDENCE
                + constants.STABILITY_WEIGHT * streak / n
                - constants.REVISION_PENALTY * revisions
            )
            scores.append(max(0, min(100, round_half_up(max(0.0, confidence)))))
        return scores

    def _scored_words(self) -> List[ScoredWord]:
        words = list(self._committed)
        if self._pending:
            # Uncommitted segment: score against its latest hypothesis
            latest = self._pending[-1]
            words.extend(zip(latest, self._score_segment(latest, self._pending)))
        return words

    def get_word_confidences(self, final_transcript: str) -> List[WordConfidence]:
        """
        Annotate every word of the finished transcript.

        Args:
            final_transcript: Transcript the report is built on

        Returns:
            One WordConfidence per whitespace-separated word, in order
        """
        if self._snapshot_count == 0:
            return self.create_empty_confidences(final_transcript, self.neutral_confidence)

        tokens = tokenize(final_transcript)
        scored = self._scored_words()
        confidences = [self.neutral_confidence] * len(tokens)

        matcher = SequenceMatcher(
            a=[word for word, _ in scored],
            b=[normalize_token(t) for t in tokens],
            autojunk=False
        )
        matched = 0
        for block in matcher.get_matching_blocks():
            for k in range(block.size):
                confidences[block.b + k] = scored[block.a + k][1]
            matched += block.size

        if matched < len(tokens):
            logger.debug(f"{len(tokens) - matched} transcript words had no snapshot history")

        return self._annotate(tokens, confidences)

    @staticmethod
    def _annotate(tokens: List[str], confidences: List[int]) -> List[WordConfidence]:
        fillers = detect_fillers(tokens)
        repeats = detect_repeats(tokens)
        return [
            WordConfidence(word=token, confidence=confidence, is_filler=filler, is_repeat=repeat)
            for token, confidence, filler, repeat in zip(tokens, confidences, fillers, repeats)
        ]

    @staticmethod
    def create_empty_confidences(
        transcript: str,
        neutral_confidence: int = constants.NEUTRAL_CONFIDENCE
    ) -> List[WordConfidence]:
        """Neutral-confidence annotation for a transcript with no snapshot history."""
        tokens = tokenize(transcript)
        return WordConfidenceTracker._annotate(tokens, [neutral_confidence] * len(tokens))
