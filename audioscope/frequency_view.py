"""Frequency-domain view geometry: log-frequency axis, dB grid and harmonic labels."""

from __future__ import annotations

import math
from typing import Iterable

from audioscope.fft import Bounds, jmap

MIN_FREQUENCY = 20.0
MAX_FREQUENCY = 20000.0
MIN_DB = -80.0
MAX_DB = 24.0
DB_STEP = 8.0

# The plot is drawn between 5 % and 95 % of the frame in both directions.
_PADDING = 0.05
_SPAN = 1.0 - 2.0 * _PADDING

GRID_FREQUENCIES: tuple[float, ...] = (
    31.5, 63.0, 125.0, 250.0, 500.0, 1000.0, 2000.0, 4000.0, 8000.0, 16000.0,
)


def _as_bounds(frame) -> Bounds:
    return frame if isinstance(frame, Bounds) else Bounds(*frame)


def frequency_for_position(pos: float) -> float:
    """Frequency at a normalised position on an unpadded 20 Hz - 20 kHz log axis."""
    return MIN_FREQUENCY * (MAX_FREQUENCY / MIN_FREQUENCY) ** pos


def position_for_frequency(freq: float) -> float:
    """Normalised x position of ``freq``, padded to 0.05 - 0.95 of the width."""
    if freq <= 0:
        raise ValueError("frequency must be positive")
    norm = math.log(freq / MIN_FREQUENCY) / math.log(MAX_FREQUENCY / MIN_FREQUENCY)
    return _PADDING + _SPAN * norm


def format_frequency_label(freq: float) -> str:
    """Axis label such as ``"500 Hz"`` or ``"2.0 kHz"``."""
    if freq >= 1000.0:
        return f"{freq / 1000.0:.1f} kHz"
    return f"{int(freq)} Hz"


def _harmonic_label(freq: float, db: float) -> str:
    if freq >= 1000.0:
        return f"{freq / 1000.0:.1f}k\n{db:.1f} dB"
    return f"{int(freq)}\n{db:.1f} dB"


def _x_for_frequency(freq: float, frame: Bounds) -> float:
    return frame.x + position_for_frequency(freq) * frame.width


def frequency_grid(frame) -> list[tuple[float, str]]:
    """Vertical grid lines as (x, label) for the standard octave frequencies."""
    bounds = _as_bounds(frame)
    return [
        (_x_for_frequency(freq, bounds), format_frequency_label(freq))
        for freq in GRID_FREQUENCIES
    ]


def level_grid(frame, min_db: float = MIN_DB, max_db: float = MAX_DB) -> list[tuple[float, str]]:
    """Horizontal grid lines as (y, label), every 8 dB from ``max_db`` down."""
    if max_db <= min_db:
        raise ValueError("max_db must be greater than min_db")
    bounds = _as_bounds(frame)
    steps = int((max_db - min_db) / DB_STEP)
    lines = []
    for i in range(steps + 1):
        db = max_db - i * DB_STEP
        norm_y = _PADDING + _SPAN * ((max_db - db) / (max_db - min_db))
        lines.append((bounds.y + norm_y * bounds.height, f"{int(db)} dB"))
    return lines


def harmonic_markers(
    harmonics: Iterable[tuple[float, float]],
    frame,
    min_db: float = MIN_DB,
    max_db: float = MAX_DB,
) -> list[tuple[float, float, str]]:
    """Label positions (x, y, text) for (frequency, dB) harmonic pairs."""
    if max_db <= min_db:
        raise ValueError("max_db must be greater than min_db")
    bounds = _as_bounds(frame)
    markers = []
    for freq, db in harmonics:
        x = _x_for_frequency(freq, bounds)
        norm_y = jmap(db, min_db, max_db, 1.0, 0.0)
        y = bounds.y + norm_y * bounds.height
        markers.append((x, y, _harmonic_label(freq, db)))
    return markers