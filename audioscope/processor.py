"""The oscilloscope's audio engine: capture, analysis, test tone and calibration."""

from __future__ import annotations

import math
import xml.etree.ElementTree as ET

import numpy as np

from audioscope.circular_buffer import CircularAudioBuffer
from audioscope.fft import Bounds, SpectrumAnalyzer
from audioscope.parameters import (
    PLOT_MODE,
    RANGE_COMPENSATION_FACTORS,
    ParameterTree,
    Parameters,
)

_STATE_TAG = "PARAMETERS"
_CALIBRATION_KEYS = (
    "calibrationFactorAC",
    "calibrationFactorDC",
    "calibrationRangeAC",
    "calibrationRangeDC",
)

_AC_SINE_AMPLITUDE = 0.4205  # 400 mVpp balanced
_DC_SINE_AMPLITUDE = 2 * 0.412  # 800 mVpp


class OscilloscopeProcessor:
    """Routes stereo blocks to the scope buffer or the spectrum analyzer."""

    NUM_INPUT_CHANNELS = 2
    NUM_OUTPUT_CHANNELS = 2
    BUFFER_SECONDS = 10

    def __init__(self) -> None:
        self.tree = ParameterTree()
        self.params = Parameters(self.tree)
        self.circular_buffer = CircularAudioBuffer()
        self.analyzer = SpectrumAnalyzer()
        self.sample_rate = 0.0
        self.calibration_factor_ac = 1.0
        self.calibration_factor_dc = 1.0
        self.calibration_range_ac = 0
        self.calibration_range_dc = 0
        self.calibration_range = 0
        self.sine_enabled = False
        self._phase = 0.0
        self._phase_increment = 0.0

    @property
    def trigger_level(self) -> float:
        return self.params.current_trigger_level()

    def prepare_to_play(self, sample_rate: float, samples_per_block: int) -> None:
        """Size the capture buffer for ten seconds and start the analyzer."""
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self.sample_rate = float(sample_rate)
        self.circular_buffer.prepare(
            self.NUM_INPUT_CHANNELS, int(sample_rate * self.BUFFER_SECONDS)
        )
        self.analyzer.setup(int(sample_rate), sample_rate)
        self.analyzer.start()
        self._phase = 0.0
        self._phase_increment = 2.0 * math.pi * 1000.0 / sample_rate

    def release_resources(self) -> None:
        self.analyzer.stop(1.0)

    def is_buses_layout_supported(self, input_channels: int, output_channels: int) -> bool:
        return input_channels == 2 and output_channels == 2

    def process_block(self, buffer) -> np.ndarray:
        """Capture a (channels, samples) block, then replace it with the test
        tone or with silence. A float array is modified in place and returned."""
        self.params.update()
        out = np.asarray(buffer, dtype=float)
        if out.ndim == 1:
            out = out.reshape(1, -1)

        if self.tree.raw_value(PLOT_MODE) > 0.5:
            channels = min(self.NUM_OUTPUT_CHANNELS, out.shape[0])
            self.analyzer.add_audio_data(out, 0, channels)
        else:
            self.circular_buffer.push_block(out)

        if self.sine_enabled:
            amplitude = _DC_SINE_AMPLITUDE if self.params.mode_value == 1 else _AC_SINE_AMPLITUDE
            count = out.size
            phases = self._phase + self._phase_increment * np.arange(count)
            out[...] = (np.sin(phases) * amplitude).reshape(out.shape)
            self._phase = math.fmod(self._phase + self._phase_increment * count, 2.0 * math.pi)
        else:
            out[...] = 0.0
        return out

    def get_state(self) -> bytes:
        """Serialise parameter values and calibration as XML."""
        root = ET.Element(_STATE_TAG)
        root.set("calibrationFactorAC", repr(float(self.calibration_factor_ac)))
        root.set("calibrationFactorDC", repr(float(self.calibration_factor_dc)))
        root.set("calibrationRangeAC", str(int(self.calibration_range_ac)))
        root.set("calibrationRangeDC", str(int(self.calibration_range_dc)))
        for parameter_id, value in self.tree.to_dict().items():
            ET.SubElement(root, "PARAM", id=parameter_id, value=repr(value))
        return ET.tostring(root, encoding="utf-8")

    def set_state(self, data: bytes) -> bool:
        """Restore state saved by :meth:`get_state`.

        Data that is not such a state is ignored; the return value says
        whether anything was restored.
        """
        try:
            root = ET.fromstring(data)
        except ET.ParseError:
            return False
        if root.tag != _STATE_TAG:
            return False

        attributes = root.attrib
        try:
            if "calibrationFactorAC" in attributes:
                self.calibration_factor_ac = float(attributes["calibrationFactorAC"])
            if "calibrationFactorDC" in attributes:
                self.calibration_factor_dc = float(attributes["calibrationFactorDC"])
            if "calibrationRangeAC" in attributes:
                self.calibration_range_ac = int(float(attributes["calibrationRangeAC"]))
            if "calibrationRangeDC" in attributes:
                self.calibration_range_dc = int(float(attributes["calibrationRangeDC"]))
        except ValueError:
            return False

        values = {}
        for element in root.iter("PARAM"):
            parameter_id = element.get("id")
            value = element.get("value")
            if parameter_id is None or value is None:
                continue
            try:
                values[parameter_id] = float(value)
            except ValueError:
                continue
        self.tree.load_dict(values)
        return True

    def create_analyser_plot(self, bounds, db_min: float, db_max: float) -> list[tuple[float, float]]:
        if not isinstance(bounds, Bounds):
            bounds = Bounds(*bounds)
        return self.analyzer.create_path(bounds, 20.0, db_min, db_max)

    def check_for_new_analyser_data(self) -> bool:
        return self.analyzer.check_for_new_data()

    def start_level_calibration(self) -> None:
        """Calibrate the current mode so the latest signal reads 1 Vpp."""
        window = self.circular_buffer.most_recent_window(1024)
        if window.size == 0:
            raise ValueError("no captured signal to calibrate against")
        measured_vpp = float(window.max() - window.min())
        if measured_vpp == 0.0:
            raise ValueError("captured signal is flat; cannot calibrate")
        expected_vpp = 1.0
        new_factor = expected_vpp / measured_vpp

        if self.params.mode_value == 1:
            self.calibration_factor_dc = new_factor
        else:
            self.calibration_factor_ac = new_factor
        self.calibration_range = self.params.range_value

    def calibration_factor(self) -> float:
        """Calibration for the current mode, rescaled from its calibration range."""
        current = RANGE_COMPENSATION_FACTORS[self.params.range_value]
        if self.params.mode_value == 0:
            reference = RANGE_COMPENSATION_FACTORS[self.calibration_range_ac]
            return self.calibration_factor_ac * (current / reference)
        reference = RANGE_COMPENSATION_FACTORS[self.calibration_range_dc]
        return self.calibration_factor_dc * (current / reference)

    def corrected_voltage(self, value: float) -> float:
        return value * self.calibration_factor()

    def set_sine_enabled(self, enabled: bool) -> None:
        self.sine_enabled = bool(enabled)

    def harmonic_labels(self) -> list[tuple[float, float]]:
        return self.analyzer.harmonics_in_db(6, -80.0)