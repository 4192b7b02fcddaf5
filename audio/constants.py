# audio/constants.py
"""Centralized constants for the audio processing modules."""

# --- Capture & framing ---
DEFAULT_SAMPLE_RATE = 16000
FRAME_PERIOD_MS = 100  # one frame per 100 ms sample
SILENCE_RMS_THRESHOLD = 0.01  # RMS noise floor for float audio in [-1, 1]

# --- Pitch estimation ---
PITCH_MIN_HZ = 70.0
PITCH_MAX_HZ = 400.0
PREFILTER_HPF_HZ = 80.0
YIN_FRAME_LENGTH = 1024
YIN_HOP_LENGTH = 256
MIN_PITCH_WINDOW_SAMPLES = 256

# --- Prosody ---
PAUSE_THRESHOLD_MS = 500
LONG_PAUSE_THRESHOLD_MS = 1500
STRESS_ENERGY_FACTOR = 1.5
INTONATION_WINDOW_FRAMES = 5
INTONATION_MIN_VOICED_FRAMES = 3
INTONATION_CHANGE_PCT = 10.0
DEFAULT_RHYTHM_CONSISTENCY = 50.0
SLOW_SPEAKING_RATIO = 0.5
FAST_SPEAKING_RATIO = 0.8
