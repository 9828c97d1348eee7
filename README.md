# audioscope

An oscilloscope and spectrum-analyser engine for audio-rate signals. It holds
the parameter model, signal capture, triggering, measurements and display
geometry of a two-channel scope. It also provides buffered, thread-driven
serial-port streams and a monitor for the list of available ports.

The views return plain data, such as traces, grid lines, labels and harmonic
markers. Any plotting toolkit can render that data.

## Installation

```
pip install .
```

To run the tests:

```
pip install .[test]
pytest
```

## Modules

### Parameters and processing

- `audioscope.parameters` defines the scope's controls: horizontal and
  vertical position and scale, range, AC/DC mode, plot mode, trigger level,
  moving average and bypass. Bypass is on by default.
  - `create_parameter_layout()` builds the controls.
  - `ParameterTree` holds them by id. It calls listeners on changes and saves
    and restores values with `to_dict` / `load_dict`.
  - `Parameters` is a snapshot refreshed by `update()`. It gives
    `vertical_scale_in_volts()` and `horizontal_scale_in_seconds()`.
- `audioscope.circular_buffer` provides `CircularAudioBuffer`, a multichannel
  ring buffer. Its `most_recent_window(n)` returns the newest samples, and
  `compute_last_vpp()` returns their peak-to-peak value.
- `audioscope.trigger` provides two things:
  - `Trigger.find_trigger_point` finds the first rising crossing of the
    trigger level.
  - `moving_average` is a centred moving average that can smooth the signal
    before triggering.
- `audioscope.signal_analysis` measures signals:
  - `compute_rms`
  - `compute_vpp` (from on-screen extent)
  - `compute_frequency` (from the first two rising zero crossings; returns -1
    if there are fewer than two)
  - `compute_thd`
  - `hann_window`
- `audioscope.fft` provides `SpectrumAnalyzer`, an averaged FFT magnitude
  spectrum.
  - Frames are processed by a background thread (`start` / `stop`) or on
    demand (`process_available`).
  - `create_path` returns log-frequency/decibel points.
  - `harmonics_in_db` returns the strongest bin and its multiples.
  - The module also has the helpers `Bounds`, `gain_to_decibels` and `jmap`.
- `audioscope.processor` provides `OscilloscopeProcessor`, which ties these
  together.
  - `process_block` sends each block to the capture buffer (time plot) or the
    analyser (frequency plot). It then replaces the block with a 1 kHz test
    tone or silence.
  - `start_level_calibration` and `calibration_factor` handle AC/DC level
    calibration with range compensation.
  - `get_state` / `set_state` save and restore the state as XML bytes.

### Views

- `audioscope.time_view` provides `TimeView`, the time-domain display model.
  - `trace()` gives the triggered trace points.
  - `measure()` returns `Measurements` (Vpp, Vrms, frequency, THD and labels).
  - `capture_current_path()` stores a snapshot; up to ten are kept.
  - Formatting helpers: `format_measurements`, `format_snapshot_label` and
    `format_time_per_division`.
- `audioscope.frequency_view` provides the frequency-view geometry:
  - `frequency_grid` and `level_grid` give the grid lines.
  - `harmonic_markers` places the harmonic labels.
  - `position_for_frequency` / `frequency_for_position` map the 20 Hz to
    20 kHz log axis.

### Serial ports

- `audioscope.serial_config` provides `SerialPortConfig`, with the `Parity`,
  `StopBits` and `FlowControl` enums. It maps to and from pyserial settings.
- `audioscope.serialport` provides serial-port access:
  - `serial_port_paths()` lists the ports on the system.
  - `SerialPort` opens a device path or pyserial URL such as `loop://`.
  - `SerialPortInputStream` buffers bytes read by a background thread. It
    offers `read`, `read_next_line`, `can_read_line`, and listener callbacks
    per byte or on a chosen byte.
  - `SerialPortOutputStream` queues writes for a background thread.
  - Failures raise `SerialPortError`.
- `audioscope.port_monitor` provides `SerialPortListMonitor`. It polls the
  port list and calls `on_port_list_changed` when the list changes.

## Example

```python
import numpy as np

from audioscope.parameters import BYPASS
from audioscope.processor import OscilloscopeProcessor
from audioscope.time_view import TimeView

processor = OscilloscopeProcessor()
processor.prepare_to_play(48000.0, 512)
processor.tree.set_value(BYPASS, 0)        # bypass is on by default

t = np.arange(4800) / 48000.0
block = np.vstack([np.sin(2 * np.pi * 1000 * t)] * 2)
processor.process_block(block)

view = TimeView(processor, width=800, height=420)
readings = view.measure()
print(readings.frequency)    # about 1000 Hz
print(readings.vrms)         # about 0.707
print(readings.time_label)   # "100 ms/div"

processor.release_resources()
```

## What it does not do

- It draws nothing and opens no windows. Rendering is left to the caller.
- There is no command-line program.
- The serial modules move bytes to and from a port. They do not include a
  command set for controlling an external front end.