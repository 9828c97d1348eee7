import threading
import time
from types import SimpleNamespace
from unittest import mock

import pytest

from audioscope.serial_config import FlowControl, Parity, SerialPortConfig, StopBits
from audioscope.serialport import (
    NotifyMode,
    SerialPort,
    SerialPortError,
    SerialPortInputStream,
    SerialPortOutputStream,
    serial_port_paths,
)


def wait_until(predicate, timeout=3.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def loop_port():
    port = SerialPort("loop://")
    yield port
    port.close()


def test_serial_port_paths_maps_name_to_device():
    ports = [
        SimpleNamespace(name="ttyUSB0", device="/dev/ttyUSB0"),
        SimpleNamespace(name="ttyACM1", device="/dev/ttyACM1"),
    ]
    with mock.patch("serial.tools.list_ports.comports", return_value=ports):
        assert serial_port_paths() == {
            "ttyUSB0": "/dev/ttyUSB0",
            "ttyACM1": "/dev/ttyACM1",
        }


def test_open_missing_port_raises_and_logs():
    messages = []
    port = SerialPort(debug_log=lambda prefix, msg: messages.append((prefix, msg)))
    with pytest.raises(SerialPortError):
        port.open("/nonexistent/serial-device-for-tests")
    assert port.exists() is False
    assert ("SerialPort.open", "open() failed") in messages


def test_open_and_close_loop_port():
    port = SerialPort("loop://")
    assert port.exists() is True
    assert port.port_path == "loop://"
    port.close()
    assert port.exists() is False


def test_config_round_trip(loop_port):
    config = SerialPortConfig(
        bps=115200,
        databits=7,
        parity=Parity.EVEN,
        stopbits=StopBits.TWO,
        flowcontrol=FlowControl.XONXOFF,
    )
    loop_port.set_config(config)
    assert loop_port.get_config() == config


def test_config_requires_open_port():
    port = SerialPort()
    with pytest.raises(SerialPortError):
        port.get_config()
    with pytest.raises(SerialPortError):
        port.set_config(SerialPortConfig())


def test_write_then_read_line(loop_port):
    with SerialPortInputStream(loop_port) as reader, SerialPortOutputStream(loop_port) as writer:
        writer.write(b"hello\n")
        writer.flush()
        assert wait_until(reader.can_read_line)
        assert reader.read_next_line() == "hello"
        assert reader.is_exhausted() is True


def test_partial_read_keeps_remainder(loop_port):
    with SerialPortInputStream(loop_port) as reader, SerialPortOutputStream(loop_port) as writer:
        writer.write(b"abcdef")
        assert wait_until(lambda: reader.total_length() == 6)
        assert reader.read(2) == b"ab"
        assert reader.total_length() == 4
        assert reader.read(100) == b"cdef"
        assert reader.read(1) == b""


def test_large_write_arrives_in_order(loop_port):
    payload = bytes(range(256)) * 3
    with SerialPortInputStream(loop_port) as reader, SerialPortOutputStream(loop_port) as writer:
        writer.write(payload)
        writer.flush()
        assert wait_until(lambda: reader.total_length() == len(payload))
        assert reader.read(len(payload)) == payload


def test_can_read_string_detects_nul(loop_port):
    with SerialPortInputStream(loop_port) as reader, SerialPortOutputStream(loop_port) as writer:
        writer.write(b"ab")
        assert wait_until(lambda: reader.total_length() == 2)
        assert reader.can_read_string() is False
        writer.write(b"\x00")
        assert wait_until(reader.can_read_string)


def test_notify_on_char_calls_listener(loop_port):
    hits = []
    done = threading.Event()

    def listener(stream):
        hits.append(stream)
        done.set()

    with SerialPortInputStream(loop_port) as reader, SerialPortOutputStream(loop_port) as writer:
        reader.set_notify(NotifyMode.ON_CHAR, b"\n")
        reader.add_listener(listener)
        writer.write(b"line\n")
        assert done.wait(3.0)
        assert hits == [reader]


def test_set_notify_rejects_multibyte(loop_port):
    with SerialPortInputStream(loop_port) as reader:
        with pytest.raises(ValueError):
            reader.set_notify(NotifyMode.ON_CHAR, b"ab")


def test_read_and_write_fail_when_closed():
    port = SerialPort("loop://")
    reader = SerialPortInputStream(port)
    writer = SerialPortOutputStream(port)
    port.close()
    with pytest.raises(SerialPortError):
        reader.read(1)
    with pytest.raises(SerialPortError):
        writer.write(b"x")
    reader.close()
    writer.close()