import math
import random

import numpy as np
import pytest

from audioscope.parameters import BYPASS, HORIZONTAL_SCALE, MODE, MOVING_AVERAGE, TRIGGER_LEVEL
from audioscope.processor import OscilloscopeProcessor
from audioscope.time_view import (
    Measurements,
    Snapshot,
    TimeView,
    format_measurements,
    format_snapshot_label,
    format_time_per_division,
)

RATE = 8000.0
AMPLITUDE = 0.4


def _processor(bypass=False):
    processor = OscilloscopeProcessor()
    processor.sample_rate = RATE
    processor.circular_buffer.prepare(2, int(RATE))
    processor.tree.set_value(BYPASS, 1.0 if bypass else 0.0)
    processor.tree.set_value(HORIZONTAL_SCALE, 9)  # 10 ms/div
    processor.params.update()
    return processor


def _push_sine(processor, count=4000):
    phases = 2.0 * math.pi * 1000.0 * np.arange(count) / RATE + 0.1
    wave = AMPLITUDE * np.sin(phases)
    processor.circular_buffer.push_block(np.vstack([wave, wave]))


@pytest.fixture
def scope():
    processor = _processor()
    _push_sine(processor)
    return TimeView(processor, width=800, height=400, rng=random.Random(3))


def test_format_time_per_division():
    assert format_time_per_division(0.01) == "10 ms/div"
    assert format_time_per_division(1.0) == "1.0 s/div"
    assert format_time_per_division(0.0001) == "100 µs/div"


def test_format_snapshot_label_dc():
    snap = Snapshot(vpp=1.234, is_dc=True)
    assert format_snapshot_label(0, snap) == "M1: V = 1.23 V (DC)"


def test_format_snapshot_label_ac_uses_one_based_index():
    snap = Snapshot(vpp=1.0, vrms=0.5, frequency=440.0, thd=0.25)
    label = format_snapshot_label(2, snap)
    assert label.startswith("M3: Vpp = 1.00 V, Vrms = 0.50 V, ")
    assert "Hz" in label and label.endswith("THD = 0.25 %")


def test_format_measurements_dc_millivolts():
    m = Measurements(0.5, 0.0, 0.0, 0.0, "", "")
    assert format_measurements(m, True) == "DC: 500.00 mV"


def test_format_measurements_ac():
    m = Measurements(1.0, 0.35, 1500.0, 0.01, "", "")
    assert format_measurements(m, False) == (
        "Vpp: 1.00 V    Vrms: 0.35 V    Freq: 1.50 kHz    THD: 1.000 %"
    )


def test_invalid_size_rejected():
    with pytest.raises(ValueError):
        TimeView(_processor(), width=0, height=100)


def test_trace_empty_when_bypassed():
    processor = _processor(bypass=True)
    _push_sine(processor)
    assert TimeView(processor).trace() == []
    assert TimeView(processor).measure() is None


def test_trace_empty_without_enough_data():
    processor = _processor()
    _push_sine(processor, count=10)
    view = TimeView(processor)
    assert view.trace() == []
    assert view.capture_current_path() is None


def test_trace_spans_width(scope):
    points = scope.trace()
    xs = [x for x, _ in points]
    assert len(points) == int(0.1 * RATE)
    assert xs[0] == 0.0
    assert all(b > a for a, b in zip(xs, xs[1:]))
    assert xs[-1] < scope.width


def test_vertical_offset_shifts_trace(scope):
    before = scope.trace()
    scope.set_vertical_offset_in_divisions(1.0)
    after = scope.trace()
    shift = scope.height / 8
    assert all(b[1] - a[1] == pytest.approx(shift) for a, b in zip(after, before))


def test_measure_ac_sine(scope):
    m = scope.measure()
    assert m.frequency == pytest.approx(1000.0)
    assert m.vrms == pytest.approx(AMPLITUDE / math.sqrt(2), rel=0.02)
    assert m.vpp == pytest.approx(2 * AMPLITUDE, rel=0.05)
    assert scope.last_vpp == m.vpp
    assert m.scale_label == "20 mV/div"
    assert m.time_label == "10 ms/div"


def test_measure_dc_spread():
    processor = _processor()
    processor.circular_buffer.push_block(
        np.vstack([np.full(3000, 0.2), np.full(3000, 0.5)])
    )
    view = TimeView(processor, rng=random.Random(1))
    view.set_mode_dc(True)
    m = view.measure()
    assert m.vpp == pytest.approx(0.3)
    line = view.trace()
    assert len(line) == 2 and line[0][1] == line[1][1]
    snap = view.capture_current_path()
    assert snap.is_dc and snap.vpp == m.vpp


def test_capture_ac_snapshot(scope):
    snap = scope.capture_current_path()
    assert not snap.is_dc
    assert snap.frequency == pytest.approx(1000.0)
    assert snap.vrms == pytest.approx(AMPLITUDE / math.sqrt(2), rel=0.02)
    assert scope.snapshots == [snap]
    assert len(snap.path) == len(scope.trace())


def test_snapshots_keep_newest(scope):
    colours = [scope.capture_current_path().colour for _ in range(12)]
    assert len(scope.snapshots) == TimeView.MAX_SNAPSHOTS
    assert [s.colour for s in scope.snapshots] == colours[-TimeView.MAX_SNAPSHOTS:]
    scope.clear_snapshots()
    assert scope.snapshots == []


def test_colours_follow_rng():
    first = TimeView(_processor(), rng=random.Random(7))
    second = TimeView(_processor(), rng=random.Random(7))
    for view in (first, second):
        _push_sine(view.processor)
    a = first.capture_current_path().colour
    b = second.capture_current_path().colour
    assert a == b
    assert all(0 <= c <= 255 for c in a)


def test_update_trigger_parameters(scope):
    scope.update_trigger_parameters(2.0, 0.5, True)
    volts = 2.0 * scope.processor.params.vertical_scale_in_volts()
    assert scope.current_trigger_level == pytest.approx(volts / scope.processor.calibration_factor())
    assert scope.trigger.level == scope.current_trigger_level
    assert scope.trigger.offset == 0.5
    assert scope.trigger.moving_average_enabled is True


def test_tick_reads_tree(scope):
    tree = scope.processor.tree
    tree.set_value(MOVING_AVERAGE, 1.0)
    tree.set_value(TRIGGER_LEVEL, 1.0)
    scope.tick()
    assert scope.trigger.moving_average_enabled is True
    assert scope.trigger.offset == 0.0
    assert scope.current_trigger_level > 0.0


def test_mode_flag_changes_trace_shape(scope):
    scope.processor.tree.set_value(MODE, 1)
    scope.processor.params.update()
    scope.set_mode_dc(True)
    assert len(scope.trace()) == 2
    scope.set_mode_dc(False)
    assert len(scope.trace()) > 2