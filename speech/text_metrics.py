"""
Text metrics for recognized speech.

Tokenization, filler detection, immediate-repeat detection and transcript
cleaning. Matching is done on normalized tokens (lowercase, accents and
punctuation removed) while the original token text is preserved.
"""

import logging
import math
import re
import unicodedata
from typing import List, Sequence

from . import constants
from .models import WordConfidence

logger = logging.getLogger(__name__)

_PUNCTUATION = re.compile(r"[^\w']+", re.UNICODE)


def normalize_token(token: str) -> str:
    """
    Normalize a token for vocabulary matching.

    Args:
        token: Raw token from a transcript

    Returns:
        Lowercase token without accents or surrounding punctuation
    """
    token = unicodedata.normalize('NFD', token)
    token = ''.join(c for c in token if not unicodedata.combining(c))
    token = _PUNCTUATION.sub('', token.lower())
    return token.strip("'")


def tokenize(text: str) -> List[str]:
    """Split a transcript on whitespace."""
    if not text:
        return []
    return text.split()


def detect_fillers(tokens: Sequence[str]) -> List[bool]:
    """
    Flag tokens that belong to the filler vocabulary.

    Multi-word markers ("you know") flag every token of the match.
    """
    normalized = [normalize_token(t) for t in tokens]
    flags = [n in constants.FILLER_WORDS for n in normalized]

    for phrase in constants.FILLER_PHRASES:
        size = len(phrase)
        for i in range(len(normalized) - size + 1):
            if tuple(normalized[i:i + size]) == phrase:
                for j in range(i, i + size):
                    flags[j] = True

    logger.debug(f"Filler detection: {sum(flags)} of {len(tokens)} tokens")
    return flags


def detect_repeats(tokens: Sequence[str]) -> List[bool]:
    """Flag tokens that exactly repeat the immediately preceding token."""
    flags: List[bool] = []
    previous = None
    for token in tokens:
        current = normalize_token(token)
        flags.append(bool(current) and current == previous)
        previous = current
    return flags


def clean_transcript(words: Sequence[WordConfidence]) -> str:
    """Join the words that are neither fillers nor repeats, single-spaced."""
    kept = [w.word for w in words if not w.is_filler and not w.is_repeat]
    return ' '.join(' '.join(kept).split())


def compute_wpm(word_count: int, duration_ms: float) -> int:
    """
    Words per minute, rounded.

    Returns 0 when the duration is zero.
    """
    if duration_ms <= 0:
        return 0
    return round_half_up(word_count / (duration_ms / 60000.0))


def confidence_band(confidence: int) -> str:
    """Display band for one word's confidence (clear/good/okay/unclear)."""
    for threshold, label in constants.CONFIDENCE_BANDS:
        if confidence >= threshold:
            return label
    return constants.LOWEST_CONFIDENCE_BAND


def round_half_up(value: float) -> int:
    """Round non-negative values with .5 going up."""
    return int(math.floor(value + 0.5))
