# speech/constants.py
"""Centralized constants for transcript and fluency analysis."""

# --- Disfluency markers ---
# Single-token fillers (lowercase, punctuation stripped)
FILLER_WORDS = frozenset([
    "um", "umm", "uh", "uhh", "uhm", "er", "erm", "ah", "eh", "hmm", "mm", "mhm",
    "like", "basically", "literally",
])
# Multi-token fillers; every token of a match is flagged
FILLER_PHRASES = (
    ("you", "know"),
    ("i", "mean"),
    ("sort", "of"),
    ("kind", "of"),
)

# --- Recognition ---
BENIGN_RECOGNITION_ERRORS = frozenset(["no-speech", "aborted"])

# --- Word confidence ---
NEUTRAL_CONFIDENCE = 75
FINAL_ONLY_CONFIDENCE = 80
BASE_CONFIDENCE = 50
STABILITY_WEIGHT = 50
REVISION_PENALTY = 5

# Display bands for a single word's confidence
CONFIDENCE_BANDS = (
    (90, "clear"),
    (75, "good"),
    (60, "okay"),
)
LOWEST_CONFIDENCE_BAND = "unclear"

# --- Fluency ---
SLOW_WPM = 100
FAST_WPM = 200
SLOW_WPM_PENALTY = 0.3
FAST_WPM_PENALTY = 0.2
FILLER_RATIO_PENALTY = 30
LONG_PAUSE_PENALTY = 5
MIN_SPEECH_RATIO = 0.4
LOW_SPEECH_RATIO_PENALTY = 50

HESITATION_PAUSE_WEIGHT = 5
HESITATION_FILLER_WEIGHT = 3
HESITATION_REPEAT_WEIGHT = 4
HESITATION_LONG_PAUSE_WEIGHT = 8

# --- Clarity weights ---
CLARITY_CONFIDENCE_WEIGHT = 0.4
CLARITY_FLUENCY_WEIGHT = 0.3
CLARITY_PITCH_WEIGHT = 0.15
CLARITY_RHYTHM_WEIGHT = 0.15
