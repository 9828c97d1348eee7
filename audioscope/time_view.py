"""Time-domain scope view: trace geometry, measurements and snapshots."""

from __future__ import annotations

import colorsys
import random
from dataclasses import dataclass, field

import numpy as np

from audioscope.parameters import BYPASS, MOVING_AVERAGE, VERTICAL_SCALE_BY_RANGE
from audioscope.signal_analysis import (
    compute_frequency,
    compute_rms,
    compute_thd,
    compute_vpp,
)
from audioscope.trigger import Trigger

NUM_VERTICAL_DIVISIONS = 8
NUM_HORIZONTAL_DIVISIONS = 10
_EXTRA_SAMPLES = 2048
_MIN_SAMPLES = 16

Point = tuple[float, float]


@dataclass
class Snapshot:
    """A frozen trace with the measurements taken when it was captured."""

    path: list[Point] = field(default_factory=list)
    colour: tuple[int, int, int] = (0, 0, 0)
    vpp: float = 0.0
    vrms: float = 0.0
    frequency: float = 0.0
    thd: float = 0.0
    is_dc: bool = False


@dataclass
class Measurements:
    """Readings of the live trace, as shown under the plot."""

    vpp: float
    vrms: float
    frequency: float
    thd_ratio: float
    scale_label: str
    time_label: str


def _format_frequency(frequency: float, separator: str) -> str:
    if frequency >= 1000.0:
        return f"Freq: {frequency / 1000.0:.2f} kHz{separator}"
    return f"Freq: {frequency:.1f} Hz{separator}"


def format_time_per_division(seconds: float) -> str:
    """Horizontal scale label such as ``"10 ms/div"``."""
    if seconds >= 1.0:
        return f"{seconds:.1f} s/div"
    if seconds >= 0.001:
        return f"{seconds * 1000.0:.0f} ms/div"
    return f"{seconds * 1e6:.0f} µs/div"


def format_snapshot_label(index: int, snapshot: Snapshot) -> str:
    """Legend line for the snapshot at zero-based ``index``."""
    label = f"M{index + 1}: "
    if snapshot.is_dc:
        return label + f"V = {snapshot.vpp:.2f} V (DC)"
    label += f"Vpp = {snapshot.vpp:.2f} V, "
    label += f"Vrms = {snapshot.vrms:.2f} V, "
    label += _format_frequency(snapshot.frequency, ", ")
    label += f"THD = {snapshot.thd:.2f} %"
    return label


def format_measurements(measurements: Measurements, mode_dc: bool) -> str:
    """The combined readout shown at the bottom right of the plot."""
    vpp = measurements.vpp
    if mode_dc:
        if vpp < 1.0:
            return f"DC: {vpp * 1000.0:.2f} mV"
        return f"DC: {vpp:.2f} V"
    text = f"Vpp: {vpp:.2f} V    "
    text += f"Vrms: {measurements.vrms:.2f} V    "
    text += _format_frequency(measurements.frequency, "    ")
    text += f"THD: {measurements.thd_ratio * 100.0:.3f} %"
    return text


@dataclass
class _Window:
    samples: np.ndarray
    display_samples: int
    seconds_per_div: float
    total_time: float
    sample_rate: float


@dataclass
class _Frame:
    samples: np.ndarray
    points: list[Point]
    min_y: float
    max_y: float
    pixels_per_div: float
    volts_per_div: float
    sample_rate: float


class TimeView:
    """Turns the processor's captured signal into a scope trace of a given size."""

    MAX_SNAPSHOTS = 10

    def __init__(self, processor, width: int = 800, height: int = 420,
                 rng: random.Random | None = None) -> None:
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be positive")
        self.processor = processor
        self.width = width
        self.height = height
        self.rng = rng if rng is not None else random.Random()
        self.trigger = Trigger()
        self.vertical_gain = 1.0
        self.vertical_offset = 0.0
        self.horizontal_scale = 1.0
        self.horizontal_offset = 0.0
        self.mode_dc = False
        self.current_trigger_level = 0.0
        self.last_vpp = -1.0
        self.snapshots: list[Snapshot] = []

    def set_mode_dc(self, enabled: bool) -> None:
        self.mode_dc = bool(enabled)

    def set_vertical_offset_in_divisions(self, divisions: float) -> None:
        self.vertical_offset = divisions * (self.height / NUM_VERTICAL_DIVISIONS)

    def update_trigger_parameters(self, level: float, offset: float, filter_enabled: bool) -> None:
        """Convert a level in divisions into an uncalibrated signal level for the trigger."""
        volts = level * self.processor.params.vertical_scale_in_volts()
        uncalibrated = volts / self.processor.calibration_factor()
        self.current_trigger_level = uncalibrated
        self.trigger.set_parameters(uncalibrated, offset, filter_enabled)

    def tick(self) -> None:
        """Periodic refresh: pick up the trigger level and smoothing setting."""
        use_filter = bool(self.processor.tree[MOVING_AVERAGE].value)
        self.update_trigger_parameters(self.processor.trigger_level, 0.0, use_filter)

    # -- geometry -------------------------------------------------------

    def _window(self) -> _Window | None:
        processor = self.processor
        buffer = processor.circular_buffer
        sample_rate = float(processor.sample_rate)
        if buffer.capacity == 0 or sample_rate <= 0:
            return None
        seconds_per_div = processor.params.horizontal_scale_in_seconds()
        total_time = seconds_per_div * NUM_HORIZONTAL_DIVISIONS
        display = int(total_time * sample_rate)
        samples = buffer.most_recent_window(display + _EXTRA_SAMPLES)
        if samples.shape[0] == 0 or samples.shape[1] < _MIN_SAMPLES:
            return None
        return _Window(samples, min(display, samples.shape[1]),
                       seconds_per_div, total_time, sample_rate)

    def _scales(self) -> tuple[float, float, float, float]:
        volts_per_div = self.processor.params.vertical_scale_in_volts()
        pixels_per_div = self.height / NUM_VERTICAL_DIVISIONS
        pixels_per_volt = (pixels_per_div / volts_per_div) * self.processor.calibration_factor()
        return volts_per_div, pixels_per_div, pixels_per_volt, self.height / 2.0

    def _ac_path(self, window: _Window, pixels_per_volt: float,
                 center_y: float) -> tuple[list[Point], float, float]:
        samples = window.samples
        count = samples.shape[1]
        trigger_sample = self.trigger.find_trigger_point(samples, 0)
        offset = int(-self.horizontal_offset * window.seconds_per_div * window.sample_rate)
        steps = np.arange(window.display_samples)
        indices = (trigger_sample + offset + steps) % count
        values = samples[:, indices].mean(axis=0)
        xs = steps / window.sample_rate * (self.width / window.total_time)
        ys = center_y - values * pixels_per_volt - self.vertical_offset
        points = [(float(x), float(y)) for x, y in zip(xs, ys)]
        if ys.size == 0:
            return points, float("inf"), float("-inf")
        return points, float(ys.min()), float(ys.max())

    def _dc_line(self, samples: np.ndarray, pixels_per_volt: float,
                 center_y: float) -> tuple[list[Point], float, float]:
        low, high = float(samples.min()), float(samples.max())
        y = center_y - (high - low) * pixels_per_volt - self.vertical_offset
        min_y = center_y - high * pixels_per_volt - self.vertical_offset
        max_y = center_y - low * pixels_per_volt - self.vertical_offset
        return [(0.0, y), (float(self.width), y)], min_y, max_y

    def _bypassed(self) -> bool:
        return self.processor.tree.raw_value(BYPASS) > 0.5

    def _render(self) -> _Frame | None:
        window = self._window()
        if window is None or self._bypassed():
            return None
        volts_per_div, pixels_per_div, pixels_per_volt, center_y = self._scales()
        if self.mode_dc:
            points, min_y, max_y = self._dc_line(window.samples, pixels_per_volt, center_y)
        else:
            points, min_y, max_y = self._ac_path(window, pixels_per_volt, center_y)
        return _Frame(window.samples, points, min_y, max_y,
                      pixels_per_div, volts_per_div, window.sample_rate)

    # -- public views ---------------------------------------------------

    def trace(self) -> list[Point]:
        """Points of the live trace; empty when bypassed or short of data."""
        frame = self._render()
        return frame.points if frame is not None else []

    def measure(self) -> Measurements | None:
        """Measure the live signal, or ``None`` when bypassed or short of data."""
        frame = self._render()
        if frame is None:
            return None
        processor = self.processor
        vpp = compute_vpp(frame.min_y, frame.max_y, frame.pixels_per_div, frame.volts_per_div)
        vrms = processor.corrected_voltage(compute_rms(frame.samples, 1.0))
        frequency = compute_frequency(frame.samples, frame.sample_rate)
        thd_ratio = compute_thd(frame.samples, frame.sample_rate, 11)
        self.last_vpp = vpp

        params = processor.params
        scale_label = ""
        if 0 <= params.range_value < len(VERTICAL_SCALE_BY_RANGE):
            options = VERTICAL_SCALE_BY_RANGE[params.range_value]
            if 0 <= params.vertical_scale_index < len(options):
                scale_label = options[params.vertical_scale_index][0]
        time_label = format_time_per_division(params.horizontal_scale_in_seconds())
        return Measurements(vpp, vrms, frequency, thd_ratio, scale_label, time_label)

    def _random_colour(self) -> tuple[int, int, int]:
        r, g, b = colorsys.hsv_to_rgb(self.rng.random(), 0.9, 0.9)
        return (round(r * 255), round(g * 255), round(b * 255))

    def capture_current_path(self) -> Snapshot | None:
        """Freeze the current trace as a snapshot; the oldest beyond the limit are dropped."""
        window = self._window()
        if window is None:
            return None
        volts_per_div, pixels_per_div, pixels_per_volt, center_y = self._scales()
        colour = self._random_colour()

        if self.mode_dc:
            path, _, _ = self._dc_line(window.samples, pixels_per_volt, center_y)
            snapshot = Snapshot(path=path, colour=colour, vpp=self.last_vpp, is_dc=True)
        else:
            path, min_y, max_y = self._ac_path(window, pixels_per_volt, center_y)
            calibration = self.processor.calibration_factor()
            snapshot = Snapshot(
                path=path,
                colour=colour,
                vpp=compute_vpp(min_y, max_y, pixels_per_div, volts_per_div),
                vrms=compute_rms(window.samples, calibration),
                frequency=compute_frequency(window.samples, window.sample_rate),
                thd=compute_thd(window.samples, window.sample_rate) * 100.0,
                is_dc=False,
            )

        self.snapshots.append(snapshot)
        del self.snapshots[:-self.MAX_SNAPSHOTS]
        return snapshot

    def clear_snapshots(self) -> None:
        self.snapshots.clear()