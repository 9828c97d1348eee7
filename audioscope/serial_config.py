"""Serial line settings and their mapping onto pyserial port attributes."""

from __future__ import annotations

from dataclasses import dataclass
from enum import IntEnum

import serial


class StopBits(IntEnum):
    ONE = 0
    ONE_AND_HALF = 1
    TWO = 2


class FlowControl(IntEnum):
    NONE = 0
    HARDWARE = 1
    XONXOFF = 2


class Parity(IntEnum):
    NONE = 0
    ODD = 1
    EVEN = 2
    SPACE = 3
    MARK = 4


_PARITY_TO_SERIAL = {
    Parity.NONE: serial.PARITY_NONE,
    Parity.ODD: serial.PARITY_ODD,
    Parity.EVEN: serial.PARITY_EVEN,
    Parity.SPACE: serial.PARITY_SPACE,
    Parity.MARK: serial.PARITY_MARK,
}
_PARITY_FROM_SERIAL = {value: key for key, value in _PARITY_TO_SERIAL.items()}

_STOPBITS_TO_SERIAL = {
    StopBits.ONE: serial.STOPBITS_ONE,
    StopBits.ONE_AND_HALF: serial.STOPBITS_ONE_POINT_FIVE,
    StopBits.TWO: serial.STOPBITS_TWO,
}
_STOPBITS_FROM_SERIAL = {value: key for key, value in _STOPBITS_TO_SERIAL.items()}

_VALID_DATABITS = (5, 6, 7, 8)


@dataclass
class SerialPortConfig:
    """Baud rate, framing and flow control for a serial line."""

    bps: int = 9600
    databits: int = 8
    parity: Parity = Parity.NONE
    stopbits: StopBits = StopBits.ONE
    flowcontrol: FlowControl = FlowControl.NONE

    def __post_init__(self) -> None:
        if self.bps <= 0:
            raise ValueError("bps must be positive")
        if self.databits not in _VALID_DATABITS:
            raise ValueError(f"databits must be one of {_VALID_DATABITS}")
        self.parity = Parity(self.parity)
        self.stopbits = StopBits(self.stopbits)
        self.flowcontrol = FlowControl(self.flowcontrol)

    def to_serial_kwargs(self) -> dict:
        """Keyword arguments for ``serial.Serial`` that apply this configuration."""
        hardware = self.flowcontrol is FlowControl.HARDWARE
        return {
            "baudrate": int(self.bps),
            "bytesize": int(self.databits),
            "parity": _PARITY_TO_SERIAL[self.parity],
            "stopbits": _STOPBITS_TO_SERIAL[self.stopbits],
            "xonxoff": self.flowcontrol is FlowControl.XONXOFF,
            "rtscts": hardware,
            "dsrdtr": hardware,
        }

    @classmethod
    def from_serial(cls, port) -> "SerialPortConfig":
        """Read the configuration of a pyserial port (or any object with its attributes)."""
        parity = _PARITY_FROM_SERIAL.get(port.parity, Parity.NONE)
        stopbits = _STOPBITS_FROM_SERIAL.get(port.stopbits, StopBits.ONE)
        if port.xonxoff:
            flowcontrol = FlowControl.XONXOFF
        elif port.rtscts and port.dsrdtr:
            flowcontrol = FlowControl.HARDWARE
        else:
            flowcontrol = FlowControl.NONE
        return cls(
            bps=int(port.baudrate),
            databits=int(port.bytesize),
            parity=parity,
            stopbits=stopbits,
            flowcontrol=flowcontrol,
        )