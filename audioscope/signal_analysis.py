"""Measurements on captured signals: RMS, Vpp, frequency and THD."""

from __future__ import annotations

import math

import numpy as np


def hann_window(size: int, normalise: bool = True) -> np.ndarray:
    """Hann window; when normalised its samples sum to ``size``."""
    if size < 1:
        raise ValueError("size must be at least 1")
    if size == 1:
        window = np.ones(1)
    else:
        window = 0.5 - 0.5 * np.cos(2.0 * np.pi * np.arange(size) / (size - 1))
    if normalise:
        total = window.sum()
        if total > 0:
            window = window * (size / total)
    return window


def _channels(buffer) -> np.ndarray:
    return np.atleast_2d(np.asarray(buffer, dtype=float))


def compute_rms(buffer, calibration_factor: float) -> float:
    """RMS over every sample of every channel, after scaling by the factor."""
    data = _channels(buffer)
    if data.size == 0:
        return 0.0
    scaled = data * calibration_factor
    return float(math.sqrt(np.mean(scaled * scaled)))


def compute_vpp(min_y: float, max_y: float, pixels_per_div: float, volts_per_div: float) -> float:
    """Peak-to-peak volts from a trace's on-screen extent."""
    return (max_y - min_y) / pixels_per_div * volts_per_div


def compute_frequency(buffer, sample_rate: float) -> float:
    """Frequency from the first two rising zero crossings of channel 0, or -1."""
    data = _channels(buffer)
    if data.shape[0] == 0 or data.shape[1] < 2:
        return -1.0
    samples = data[0]
    crossings = np.flatnonzero((samples[:-1] < 0.0) & (samples[1:] >= 0.0)) + 1
    if crossings.size < 2:
        return -1.0
    return float(sample_rate / (crossings[1] - crossings[0]))


def compute_thd(buffer, sample_rate: float, fft_order: int = 10, max_harmonics: int = 5) -> float:
    """Total harmonic distortion ratio of channel 0.

    ``sample_rate`` and ``max_harmonics`` are accepted but do not affect the result.
    """
    fft_size = 1 << fft_order
    data = _channels(buffer)
    if data.shape[0] == 0 or data.shape[1] < fft_size:
        return 0.0

    # Samples sit on the even slots of an interleaved block of fft_size values,
    # and the window runs over that whole block.
    window = hann_window(fft_size, True)
    frame = np.zeros(fft_size)
    half = fft_size // 2
    frame[0::2] = data[0, :half] * window[0::2]

    magnitudes = np.abs(np.fft.rfft(frame))[:half]
    magnitudes[0] = 0.0

    fundamental_bin = int(np.argmax(magnitudes))
    fundamental = float(magnitudes[fundamental_bin])
    if fundamental == 0.0:
        return 0.0

    threshold = fundamental * 10.0 ** (-60.0 / 20.0)
    sum_squares = 0.0
    k = 2
    while True:
        bin_index = k * fundamental_bin
        if bin_index >= magnitudes.size:
            break
        magnitude = float(magnitudes[bin_index])
        if magnitude < threshold and k > 5:
            break
        sum_squares += magnitude * magnitude
        k += 1

    return math.sqrt(sum_squares) / fundamental