"""
Per-window signal features for frame extraction.

Energy is measured on the raw window. Pitch is estimated with YIN on a
high-pass filtered copy so that low-frequency rumble does not pull the
estimate down.
"""

import logging

import librosa
import numpy as np
import scipy.signal as signal

from . import constants

logger = logging.getLogger(__name__)


def compute_rms(window: np.ndarray) -> float:
    """Root-mean-square energy of a window (0.0 for an empty window)."""
    if window.size == 0:
        return 0.0
    samples = window.astype(np.float64)
    return float(np.sqrt(np.mean(samples * samples)))


def apply_highpass(
    window: np.ndarray,
    sr: int,
    cutoff_hz: float = constants.PREFILTER_HPF_HZ
) -> np.ndarray:
    """
    Butterworth high-pass filter that keeps the window length.

    Args:
        window: Audio samples
        sr: Sample rate
        cutoff_hz: Cutoff frequency, 0 disables filtering

    Returns:
        Filtered samples with the same length as the input
    """
    nyquist = sr / 2
    if cutoff_hz <= 0 or cutoff_hz >= nyquist:
        return window

    b, a = signal.butter(4, cutoff_hz / nyquist, btype='high')
    # filtfilt needs more samples than its edge padding
    padlen = 3 * max(len(a), len(b))
    if len(window) <= padlen:
        return window
    return signal.filtfilt(b, a, window)


def estimate_pitch(
    window: np.ndarray,
    sr: int,
    fmin: float = constants.PITCH_MIN_HZ,
    fmax: float = constants.PITCH_MAX_HZ,
    hpf_hz: float = constants.PREFILTER_HPF_HZ
) -> float:
    """
    Estimate the fundamental frequency of one window.

    Args:
        window: Audio samples (float, roughly [-1, 1])
        sr: Sample rate
        fmin: Lowest pitch considered
        fmax: Highest pitch considered
        hpf_hz: High-pass cutoff applied before estimation

    Returns:
        Median YIN estimate in Hz, or 0.0 when the window is too short
    """
    if window.size < constants.MIN_PITCH_WINDOW_SAMPLES:
        return 0.0

    filtered = apply_highpass(window.astype(np.float64), sr, hpf_hz)
    f0 = librosa.yin(
        filtered,
        fmin=fmin,
        fmax=fmax,
        sr=sr,
        frame_length=constants.YIN_FRAME_LENGTH,
        hop_length=constants.YIN_HOP_LENGTH,
        center=True
    )
    f0 = f0[np.isfinite(f0) & (f0 > 0)]
    if f0.size == 0:
        return 0.0
    return float(np.median(f0))
