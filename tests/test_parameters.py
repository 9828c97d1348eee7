import pytest

from audioscope.parameters import (
    BYPASS,
    HORIZONTAL_POSITION,
    HORIZONTAL_SCALE,
    HORIZONTAL_SCALE_OPTIONS,
    MODE,
    MOVING_AVERAGE,
    RANGE,
    TRIGGER_LEVEL,
    VERTICAL_SCALE,
    BoolParameter,
    ChoiceParameter,
    FloatParameter,
    Parameters,
    ParameterTree,
    create_parameter_layout,
)


def test_layout_defaults():
    tree = ParameterTree(create_parameter_layout())
    assert tree[HORIZONTAL_SCALE].current_choice == "100 ms"
    assert tree[BYPASS].value is True
    assert tree[MOVING_AVERAGE].value is False
    assert tree[RANGE].choices[0] == "10 mV - 100 mV"
    assert tree.raw_value(TRIGGER_LEVEL) == 0.0


def test_float_parameter_clamps_and_round_trips():
    param = FloatParameter("p", "P", -5.0, 5.0, 0.01, 0.0)
    param.set(100.0)
    assert param.value == pytest.approx(5.0)
    param.set(-100.0)
    assert param.value == pytest.approx(-5.0)
    for value in (-4.2, 0.0, 1.37, 4.99):
        assert param.from_normalized(param.to_normalized(value)) == pytest.approx(value)


def test_float_parameter_snaps_to_interval():
    param = FloatParameter("p", "P", -4.0, 4.0, 0.01, 0.0)
    param.set(1.234567)
    steps = (param.value + 4.0) / 0.01
    assert steps == pytest.approx(round(steps))


def test_choice_parameter_normalization():
    param = ChoiceParameter("c", "C", ("a", "b", "c", "d"), 0)
    assert param.to_normalized(0) == 0.0
    assert param.to_normalized(3) == 1.0
    assert param.from_normalized(1.0) == 3
    for index in range(4):
        assert param.from_normalized(param.to_normalized(index)) == index
    param.set(10)
    assert param.value == 3


def test_choice_parameter_needs_choices():
    with pytest.raises(ValueError):
        ChoiceParameter("c", "C", (), 0)


def test_bool_parameter():
    param = BoolParameter("b", "B", False)
    assert param.from_normalized(param.to_normalized(True)) is True
    assert param.from_normalized(param.to_normalized(False)) is False
    param.set(1.0)
    assert param.value is True


def test_listeners_notified_on_change_only():
    tree = ParameterTree()
    calls = []

    def listener(pid, value):
        calls.append((pid, value))

    tree.add_listener(MODE, listener)
    tree.set_value(MODE, 1)
    tree.set_value(MODE, 1)
    assert tree.raw_value(MODE) == 1.0
    assert calls == [(MODE, 1.0)]
    tree.remove_listener(MODE, listener)
    tree.set_value(MODE, 0)
    assert tree.raw_value(MODE) == 0.0
    assert calls == [(MODE, 1.0)]


def test_unknown_parameter_raises():
    tree = ParameterTree()
    with pytest.raises(KeyError):
        tree["nope"]
    with pytest.raises(KeyError):
        tree.set_value("nope", 1.0)


def test_state_round_trip():
    tree = ParameterTree()
    tree.set_value(HORIZONTAL_POSITION, 2.5)
    tree.set_value(RANGE, 2)
    tree.set_value(BYPASS, 0)
    saved = tree.to_dict()

    restored = ParameterTree()
    restored.load_dict({**saved, "unrelated": 3.0})
    assert restored.to_dict() == saved
    assert "unrelated" not in restored.to_dict()


def test_parameters_update_and_scales():
    tree = ParameterTree()
    params = Parameters(tree)
    tree.set_value(RANGE, 2)
    tree.set_value(VERTICAL_SCALE, 1)
    tree.set_value(HORIZONTAL_SCALE, 9)
    assert params.range_value == 0
    params.update()
    assert params.range_value == 2
    assert params.vertical_scale_in_volts() == 1.0
    assert params.horizontal_scale_in_seconds() == HORIZONTAL_SCALE_OPTIONS[9][1]


def test_parameters_fallbacks():
    params = Parameters(ParameterTree())
    params.range_value = 9
    assert params.vertical_scale_in_volts() == 1.0
    params.horizontal_scale_index = 40
    assert params.horizontal_scale_in_seconds() == 0.01


def test_current_trigger_level_is_live():
    tree = ParameterTree()
    params = Parameters(tree)
    tree.set_value(TRIGGER_LEVEL, 1.5)
    assert params.current_trigger_level() == pytest.approx(1.5)
    assert params.trigger_level == 0.0


def test_parameters_requires_full_tree():
    with pytest.raises(KeyError):
        Parameters(ParameterTree([BoolParameter(BYPASS, "Bypass", True)]))