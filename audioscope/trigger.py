"""Rising-edge trigger detection with optional smoothing."""

from __future__ import annotations

import numpy as np


def moving_average(samples, window_size: int = 5) -> np.ndarray:
    """Centred moving average; the window shrinks at the edges."""
    if window_size < 1:
        raise ValueError("window_size must be at least 1")
    data = np.asarray(samples, dtype=float)
    if data.size == 0:
        return data.copy()
    half = window_size // 2
    kernel = np.ones(2 * half + 1)
    sums = np.convolve(data, kernel, mode="full")[half:half + data.size]
    counts = np.convolve(np.ones(data.size), kernel, mode="full")[half:half + data.size]
    return sums / counts


def _jlimit(low: int, high: int, value: int) -> int:
    if value < low:
        return low
    if value > high:
        return high
    return value


class Trigger:
    """Finds where a signal first rises through the trigger level."""

    def __init__(self) -> None:
        self.level = 0.0
        self.offset = 0.0
        self.moving_average_enabled = False

    def set_parameters(self, level: float, offset: float, use_filter: bool) -> None:
        self.level = float(level)
        self.offset = min(1.0, max(0.0, float(offset)))
        self.moving_average_enabled = bool(use_filter)

    def find_trigger_point(self, buffer, channel: int = 0) -> int:
        """Index of the first rising crossing at or after the offset, else the offset."""
        samples = np.atleast_2d(np.asarray(buffer, dtype=float))[channel]
        if self.moving_average_enabled:
            samples = moving_average(samples)

        count = samples.size
        start = _jlimit(1, count - 2, int(self.offset * count))
        if start < count - 1:
            previous = samples[start - 1:count - 2]
            current = samples[start:count - 1]
            hits = np.flatnonzero((previous < self.level) & (current >= self.level))
            if hits.size:
                return start + int(hits[0])
        return start