"""Averaged spectrum analysis of a mono mix of incoming audio."""

from __future__ import annotations

import math
import threading
from dataclasses import dataclass

import numpy as np

from audioscope.signal_analysis import hann_window


@dataclass(frozen=True)
class Bounds:
    """An axis-aligned rectangle: top-left corner plus size."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height


def gain_to_decibels(gain: float, minus_infinity_db: float = -100.0) -> float:
    """Convert a linear gain to decibels, floored at ``minus_infinity_db``."""
    if gain > 0.0:
        return max(minus_infinity_db, 20.0 * math.log10(gain))
    return minus_infinity_db


def jmap(value: float, source_min: float, source_max: float,
         target_min: float, target_max: float) -> float:
    """Linearly remap ``value`` from one range onto another."""
    return target_min + (target_max - target_min) * (value - source_min) / (source_max - source_min)


class SpectrumAnalyzer:
    """Collects audio in a FIFO and keeps a running average of its spectrum.

    Frames of ``2**order`` samples are taken with 50 % overlap, Hann-windowed
    and transformed; the magnitudes are averaged over the last ``averages``
    frames.  Frames can be processed by a background thread (:meth:`start`)
    or on demand with :meth:`process_available`.
    """

    def __init__(self, order: int = 12, averages: int = 8, fifo_size: int = 48000) -> None:
        if order < 1:
            raise ValueError("order must be at least 1")
        if averages < 1:
            raise ValueError("averages must be at least 1")
        self.order = order
        self.fft_size = 1 << order
        self.sample_rate = 48000.0
        self._window = hann_window(self.fft_size, True)
        self._averager = np.zeros((averages + 1, self.fft_size // 2))
        self._averager_ptr = 1
        self._path_lock = threading.RLock()
        self._fifo_lock = threading.Lock()
        self._data_ready = threading.Event()
        self._stop_requested = threading.Event()
        self._thread: threading.Thread | None = None
        self._new_data = False
        self._reset_fifo(fifo_size)

    def _reset_fifo(self, size: int) -> None:
        if size < 2:
            raise ValueError("fifo_size must be at least 2")
        with self._fifo_lock:
            self._fifo = np.zeros(int(size))
            self._read_pos = 0
            self._ready = 0

    @property
    def num_ready(self) -> int:
        """Samples waiting in the FIFO."""
        with self._fifo_lock:
            return self._ready

    @property
    def spectrum(self) -> np.ndarray:
        """A copy of the averaged magnitude spectrum."""
        with self._path_lock:
            return self._averager[0].copy()

    def setup(self, fifo_size: int, sample_rate: float) -> None:
        """Resize the FIFO and set the sample rate used for bin frequencies."""
        self.sample_rate = float(sample_rate)
        self._reset_fifo(fifo_size)

    def add_audio_data(self, buffer, start_channel: int = 0, num_channels: int = 1) -> bool:
        """Mix the given channels of a (channels, samples) block into the FIFO.

        The whole block is dropped when the FIFO lacks room for it; the
        return value tells whether it was accepted.
        """
        data = np.atleast_2d(np.asarray(buffer, dtype=float))
        channels = data[start_channel:start_channel + num_channels]
        if channels.shape[0] == 0:
            raise ValueError("no channels selected")
        mixed = channels.sum(axis=0)
        count = mixed.size
        with self._fifo_lock:
            size = self._fifo.size
            if size - self._ready - 1 < count:
                return False
            indices = (self._read_pos + self._ready + np.arange(count)) % size
            self._fifo[indices] = mixed
            self._ready += count
        self._data_ready.set()
        return True

    def _next_frame(self) -> np.ndarray | None:
        with self._fifo_lock:
            if self._ready < self.fft_size:
                return None
            size = self._fifo.size
            indices = (self._read_pos + np.arange(self.fft_size)) % size
            frame = self._fifo[indices].copy()
            consumed = self.fft_size // 2
            self._read_pos = (self._read_pos + consumed) % size
            self._ready -= consumed
            return frame

    def _analyse(self, frame: np.ndarray) -> None:
        bins = self._averager.shape[1]
        magnitudes = np.abs(np.fft.rfft(frame * self._window))[:bins]
        scale = 1.0 / (bins * (self._averager.shape[0] - 1))
        with self._path_lock:
            ptr = self._averager_ptr
            self._averager[0] -= self._averager[ptr]
            self._averager[ptr] = magnitudes * scale
            self._averager[0] += self._averager[ptr]
            self._averager_ptr = ptr + 1
            if self._averager_ptr == self._averager.shape[0]:
                self._averager_ptr = 1
            self._new_data = True

    def process_available(self) -> int:
        """Analyse every complete frame waiting in the FIFO; return how many."""
        frames = 0
        while (frame := self._next_frame()) is not None:
            self._analyse(frame)
            frames += 1
        return frames

    def _run(self) -> None:
        while not self._stop_requested.is_set():
            self.process_available()
            if self.num_ready < self.fft_size:
                self._data_ready.wait(0.1)
                self._data_ready.clear()

    def start(self) -> None:
        """Start the background analysis thread if it is not running."""
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop_requested.clear()
        self._thread = threading.Thread(target=self._run, name="FFT-Processor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 1.0) -> None:
        """Ask the background thread to finish and wait up to ``timeout`` seconds."""
        thread = self._thread
        if thread is None:
            return
        self._stop_requested.set()
        self._data_ready.set()
        thread.join(timeout)
        if not thread.is_alive():
            self._thread = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def check_for_new_data(self) -> bool:
        """Report whether a frame was analysed since the last call."""
        with self._path_lock:
            available = self._new_data
            self._new_data = False
        return available

    def _index_to_x(self, index: float, min_freq: float) -> float:
        freq = self.sample_rate * index / self.fft_size
        return math.log2(freq / min_freq) if freq > 0.01 else 0.0

    def _bin_to_y(self, value: float, bounds: Bounds, db_min: float, db_max: float) -> float:
        db = gain_to_decibels(value, db_min)
        return jmap(db, db_min, db_max, bounds.bottom, bounds.y)

    def create_path(self, bounds: Bounds, min_freq: float = 20.0,
                    db_min: float = -80.0, db_max: float = 24.0) -> list[tuple[float, float]]:
        """Points of the averaged spectrum: log-frequency across, decibels up."""
        factor = bounds.width / 10.0
        with self._path_lock:
            data = self._averager[0].copy()
        return [
            (
                bounds.x + factor * self._index_to_x(float(i), min_freq),
                self._bin_to_y(float(value), bounds, db_min, db_max),
            )
            for i, value in enumerate(data)
        ]

    def harmonics_in_db(self, max_harmonics: int = 5, min_db: float = -80.0) -> list[tuple[float, float]]:
        """(frequency, level in dB) of the strongest bin and its exact multiples."""
        with self._path_lock:
            magnitudes = self._averager[0].copy()
        bins = magnitudes.size
        if bins < 2:
            return []
        fundamental_bin = int(np.argmax(magnitudes[1:])) + 1
        if magnitudes[fundamental_bin] <= 0.0:
            return []
        bin_hz = self.sample_rate / self.fft_size
        result = []
        for k in range(1, max_harmonics + 1):
            index = k * fundamental_bin
            if index >= bins:
                break
            result.append((index * bin_hz, gain_to_decibels(float(magnitudes[index]), min_db)))
        return result