"""A multichannel ring buffer of audio samples."""

from __future__ import annotations

import numpy as np

_FLT_MAX = float(np.finfo(np.float32).max)
_FLT_MIN = float(np.finfo(np.float32).tiny)


class CircularAudioBuffer:
    """Keeps the most recent ``capacity`` samples of every channel."""

    def __init__(self) -> None:
        self._data = np.zeros((0, 0))
        self.capacity = 0
        self.write_pos = 0
        self.stored_samples = 0

    @property
    def num_channels(self) -> int:
        return self._data.shape[0]

    def prepare(self, num_channels: int, capacity: int) -> None:
        if num_channels < 0 or capacity <= 0:
            raise ValueError("channels must be >= 0 and capacity > 0")
        self.capacity = int(capacity)
        self.write_pos = 0
        self.stored_samples = 0
        self._data = np.zeros((int(num_channels), self.capacity))

    def _require_prepared(self) -> None:
        if self.capacity == 0:
            raise RuntimeError("buffer has not been prepared")

    def push_block(self, block) -> None:
        """Append a block shaped (channels, samples)."""
        self._require_prepared()
        block = np.atleast_2d(np.asarray(block, dtype=float))
        channels = min(self.num_channels, block.shape[0])
        length = block.shape[1]

        tail = block[:channels, -self.capacity:] if length > self.capacity else block[:channels]
        start = (self.write_pos + length - tail.shape[1]) % self.capacity
        indices = (start + np.arange(tail.shape[1])) % self.capacity
        self._data[:channels, indices] = tail

        self.write_pos = (self.write_pos + length) % self.capacity
        self.stored_samples = min(self.stored_samples + length, self.capacity)

    def most_recent_window(self, num_samples: int) -> np.ndarray:
        """Return up to ``num_samples`` of the newest samples, oldest first."""
        self._require_prepared()
        if num_samples < 0:
            raise ValueError("num_samples must not be negative")
        available = min(int(num_samples), self.stored_samples)
        indices = (self.write_pos - available + np.arange(available)) % self.capacity
        return self._data[:, indices].copy()

    def compute_last_vpp(self) -> float:
        """Peak-to-peak value of every stored sample on channel 0."""
        self._require_prepared()
        low, high = _FLT_MAX, -_FLT_MIN
        if self.num_channels and self.stored_samples:
            samples = self.most_recent_window(self.stored_samples)[0]
            low = min(low, float(samples.min()))
            high = max(high, float(samples.max()))
        return high - low