"""Oscilloscope parameters: definitions, the parameter tree and a cached view of it."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Iterable

HORIZONTAL_POSITION = "horizontalPosition"
HORIZONTAL_SCALE = "horizontalScale"
VERTICAL_POSITION = "verticalPosition"
VERTICAL_SCALE = "verticalScale"
RANGE = "range"
MODE = "mode"
PLOT_MODE = "plotMode"
BYPASS = "bypass"
TRIGGER_LEVEL = "triggerLevel"
MOVING_AVERAGE = "movingAverage"

VERTICAL_SCALE_BY_RANGE: tuple[tuple[tuple[str, float], ...], ...] = (
    (("20 mV/div", 0.02), ("10 mV/div", 0.01), ("5 mV/div", 0.005), ("2 mV/div", 0.002)),
    (("200 mV/div", 0.2), ("100 mV/div", 0.1), ("50 mV/div", 0.05), ("20 mV/div", 0.02)),
    (("2 V/div", 2.0), ("1 V/div", 1.0), ("500 mV/div", 0.5), ("200 mV/div", 0.2)),
    (("20 V/div", 20.0), ("10 V/div", 10.0), ("5 V/div", 5.0), ("2 V/div", 2.0)),
)

HORIZONTAL_SCALE_OPTIONS: tuple[tuple[str, float], ...] = (
    ("10 s", 10.0), ("5 s", 5.0), ("2 s", 2.0), ("1 s", 1.0),
    ("500 ms", 0.5), ("200 ms", 0.2), ("100 ms", 0.1), ("50 ms", 0.05),
    ("20 ms", 0.02), ("10 ms", 0.01), ("5 ms", 0.005), ("2 ms", 0.002),
    ("1 ms", 0.001), ("0.5 ms", 0.0005), ("0.2 ms", 0.0002), ("0.1 ms", 0.0001),
)

RANGE_COMPENSATION_FACTORS: tuple[float, ...] = (0.01, 0.1, 1.0, 10.0)

RANGE_OPTIONS = ("10 mV - 100 mV", "0.1 V - 1 V", "1 V - 10 V", "10 V - 100 V")
MODE_OPTIONS = ("AC", "DC")
PLOT_OPTIONS = ("Time", "Frequency")

Listener = Callable[[str, float], None]


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


@dataclass
class FloatParameter:
    """A continuous parameter with a linear, stepped range."""

    id: str
    name: str
    minimum: float
    maximum: float
    interval: float
    default: float
    value: float = field(init=False)

    def __post_init__(self) -> None:
        self.value = self._snap(self.default)

    def _snap(self, value: float) -> float:
        value = _clamp(float(value), self.minimum, self.maximum)
        if self.interval > 0:
            steps = round((value - self.minimum) / self.interval)
            value = self.minimum + steps * self.interval
        return _clamp(value, self.minimum, self.maximum)

    def set(self, value: float) -> None:
        self.value = self._snap(value)

    def to_normalized(self, value: float) -> float:
        value = _clamp(float(value), self.minimum, self.maximum)
        return (value - self.minimum) / (self.maximum - self.minimum)

    def from_normalized(self, normalized: float) -> float:
        normalized = _clamp(float(normalized), 0.0, 1.0)
        return self._snap(self.minimum + normalized * (self.maximum - self.minimum))


@dataclass
class ChoiceParameter:
    """A parameter that selects one of a list of labelled choices by index."""

    id: str
    name: str
    choices: tuple[str, ...]
    default: int = 0
    value: int = field(init=False)

    def __post_init__(self) -> None:
        if not self.choices:
            raise ValueError("a choice parameter needs at least one choice")
        self.choices = tuple(self.choices)
        self.value = self._index(self.default)

    def _index(self, value: float) -> int:
        return int(_clamp(round(float(value)), 0, len(self.choices) - 1))

    @property
    def current_choice(self) -> str:
        return self.choices[self.value]

    def set(self, value: float) -> None:
        self.value = self._index(value)

    def to_normalized(self, value: float) -> float:
        last = len(self.choices) - 1
        return self._index(value) / last if last else 0.0

    def from_normalized(self, normalized: float) -> int:
        normalized = _clamp(float(normalized), 0.0, 1.0)
        return self._index(normalized * (len(self.choices) - 1))


@dataclass
class BoolParameter:
    """An on/off parameter."""

    id: str
    name: str
    default: bool = False
    value: bool = field(init=False)

    def __post_init__(self) -> None:
        self.value = bool(self.default)

    def set(self, value: float) -> None:
        self.value = bool(value)

    def to_normalized(self, value: float) -> float:
        return 1.0 if value else 0.0

    def from_normalized(self, normalized: float) -> bool:
        return float(normalized) >= 0.5


Parameter = FloatParameter | ChoiceParameter | BoolParameter


def create_parameter_layout() -> list[Parameter]:
    """Build the full set of oscilloscope parameters with their defaults."""
    return [
        FloatParameter(HORIZONTAL_POSITION, "Hor Position", -5.0, 5.0, 0.01, 0.0),
        ChoiceParameter(
            HORIZONTAL_SCALE,
            "Hor Scale",
            tuple(label for label, _ in HORIZONTAL_SCALE_OPTIONS),
            6,
        ),
        FloatParameter(VERTICAL_POSITION, "Ver Position", -4.0, 4.0, 0.01, 0.0),
        ChoiceParameter(VERTICAL_SCALE, "Ver Scale", ("A", "B", "C", "D"), 0),
        ChoiceParameter(RANGE, "Range", RANGE_OPTIONS, 0),
        ChoiceParameter(MODE, "Mode", MODE_OPTIONS, 0),
        ChoiceParameter(PLOT_MODE, "Plot Option", PLOT_OPTIONS, 0),
        FloatParameter(TRIGGER_LEVEL, "Trigger Level", -4.0, 4.0, 0.01, 0.0),
        BoolParameter(MOVING_AVERAGE, "Moving Average", False),
        BoolParameter(BYPASS, "Bypass", True),
    ]


class ParameterTree:
    """Holds parameters by id, notifies listeners of changes and saves state."""

    def __init__(self, layout: Iterable[Parameter] | None = None) -> None:
        if layout is None:
            layout = create_parameter_layout()
        self._parameters: dict[str, Parameter] = {}
        for parameter in layout:
            if parameter.id in self._parameters:
                raise ValueError(f"duplicate parameter id: {parameter.id}")
            self._parameters[parameter.id] = parameter
        self._listeners: dict[str, list[Listener]] = {}

    def __getitem__(self, parameter_id: str) -> Parameter:
        try:
            return self._parameters[parameter_id]
        except KeyError:
            raise KeyError(f"unknown parameter: {parameter_id}") from None

    def __contains__(self, parameter_id: object) -> bool:
        return parameter_id in self._parameters

    def __iter__(self):
        return iter(self._parameters)

    def raw_value(self, parameter_id: str) -> float:
        """Return the parameter's value in its own units, as a float."""
        return float(self[parameter_id].value)

    def set_value(self, parameter_id: str, value: float) -> None:
        """Set a parameter in its own units and notify listeners if it changed."""
        parameter = self[parameter_id]
        before = float(parameter.value)
        parameter.set(value)
        after = float(parameter.value)
        if after != before:
            for callback in list(self._listeners.get(parameter_id, ())):
                callback(parameter_id, after)

    def add_listener(self, parameter_id: str, callback: Listener) -> None:
        self[parameter_id]
        self._listeners.setdefault(parameter_id, []).append(callback)

    def remove_listener(self, parameter_id: str, callback: Listener) -> None:
        callbacks = self._listeners.get(parameter_id, [])
        if callback in callbacks:
            callbacks.remove(callback)

    def to_dict(self) -> dict[str, float]:
        return {pid: float(p.value) for pid, p in self._parameters.items()}

    def load_dict(self, values: dict[str, float]) -> None:
        """Restore saved values; ids that are not parameters are ignored."""
        for parameter_id, value in values.items():
            if parameter_id in self._parameters:
                self.set_value(parameter_id, value)


class Parameters:
    """A snapshot of the parameter tree, refreshed by :meth:`update`."""

    def __init__(self, tree: ParameterTree) -> None:
        self.tree = tree
        for parameter_id in (
            HORIZONTAL_POSITION, HORIZONTAL_SCALE, VERTICAL_POSITION, VERTICAL_SCALE,
            RANGE, MODE, PLOT_MODE, TRIGGER_LEVEL, MOVING_AVERAGE, BYPASS,
        ):
            tree[parameter_id]

        self.horizontal_position = 0.0
        self.horizontal_scale_index = 0
        self.vertical_position = 0.0
        self.vertical_scale_index = 0
        self.range_value = 0
        self.mode_value = 0
        self.trigger_level = 0.0
        self.plot_mode = 0
        self.moving_average = True

    def update(self) -> None:
        tree = self.tree
        self.horizontal_scale_index = tree[HORIZONTAL_SCALE].value
        self.horizontal_position = tree[HORIZONTAL_POSITION].value
        self.vertical_scale_index = tree[VERTICAL_SCALE].value
        self.vertical_position = tree[VERTICAL_POSITION].value
        self.mode_value = tree[MODE].value
        self.range_value = tree[RANGE].value
        self.trigger_level = tree[TRIGGER_LEVEL].value
        self.plot_mode = tree[PLOT_MODE].value

    def current_trigger_level(self) -> float:
        """The live trigger level, read straight from the tree."""
        return float(self.tree[TRIGGER_LEVEL].value)

    def vertical_scale_in_volts(self) -> float:
        if (
            0 <= self.range_value < len(VERTICAL_SCALE_BY_RANGE)
            and 0 <= self.vertical_scale_index < 4
        ):
            return VERTICAL_SCALE_BY_RANGE[self.range_value][self.vertical_scale_index][1]
        return 1.0

    def horizontal_scale_in_seconds(self) -> float:
        if 0 <= self.horizontal_scale_index < len(HORIZONTAL_SCALE_OPTIONS):
            return HORIZONTAL_SCALE_OPTIONS[self.horizontal_scale_index][1]
        return 0.01