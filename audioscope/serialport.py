"""Buffered, thread-driven access to serial ports."""

from __future__ import annotations

import threading
from enum import IntEnum
from typing import Callable

import serial
from serial.tools import list_ports

from audioscope.serial_config import SerialPortConfig

DebugFunction = Callable[[str, str], None]

_READ_TIMEOUT = 0.1
_WRITE_CHUNK = 128
_THREAD_JOIN_TIMEOUT = 5.0


class SerialPortError(Exception):
    """Raised when a serial port cannot be opened, configured or used."""


def serial_port_paths() -> dict[str, str]:
    """Installed serial ports as a mapping of friendly name to device path."""
    return {info.name or info.device: info.device for info in list_ports.comports()}


class SerialPort:
    """A serial port opened by path; the streams below read and write it."""

    def __init__(
        self,
        port_path: str | None = None,
        config: SerialPortConfig | None = None,
        debug_log: DebugFunction | None = None,
    ) -> None:
        self.debug_function = debug_log
        self.port_path = ""
        self.canceled = False
        self._serial: serial.SerialBase | None = None
        if port_path is not None:
            self.open(port_path)
            if config is not None:
                self.set_config(config)

    def __enter__(self) -> "SerialPort":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def debug_log(self, prefix: str, message: str) -> None:
        if self.debug_function is not None:
            self.debug_function(prefix, message)

    def open(self, port_path: str) -> None:
        """Open ``port_path`` (a device path or a pyserial URL)."""
        if self._serial is not None:
            self.close()
        self.port_path = port_path
        self.canceled = False
        self.debug_log("SerialPort.open", "opening port:" + port_path)
        try:
            self._serial = serial.serial_for_url(port_path, timeout=_READ_TIMEOUT)
        except (serial.SerialException, OSError, ValueError) as exc:
            self._serial = None
            self.debug_log("SerialPort.open", "open() failed")
            raise SerialPortError(f"cannot open {port_path}: {exc}") from exc

    def close(self) -> None:
        self.debug_log("SerialPort.close", "closing port:" + self.port_path)
        handle, self._serial = self._serial, None
        if handle is not None:
            try:
                handle.close()
            except (serial.SerialException, OSError):
                pass

    def exists(self) -> bool:
        """Whether the port is currently open."""
        return self._serial is not None and self._serial.is_open

    def _require_open(self) -> serial.SerialBase:
        handle = self._serial
        if handle is None or not handle.is_open:
            raise SerialPortError("serial port is not open")
        return handle

    def set_config(self, config: SerialPortConfig) -> None:
        handle = self._require_open()
        try:
            for name, value in config.to_serial_kwargs().items():
                setattr(handle, name, value)
        except (serial.SerialException, OSError, ValueError) as exc:
            self.debug_log("SerialPort.set_config", "can't set port settings")
            raise SerialPortError(f"cannot configure {self.port_path}: {exc}") from exc

    def get_config(self) -> SerialPortConfig:
        handle = self._require_open()
        return SerialPortConfig.from_serial(handle)

    def cancel(self) -> None:
        """Interrupt pending reads and writes, once."""
        if self.canceled:
            return
        self.canceled = True
        handle = self._serial
        if handle is None:
            return
        for name in ("cancel_read", "cancel_write"):
            method = getattr(handle, name, None)
            if method is not None:
                try:
                    method()
                except (serial.SerialException, OSError, NotImplementedError):
                    pass


class NotifyMode(IntEnum):
    OFF = 0
    ON_CHAR = 1
    ALWAYS = 2


def _byte_value(char) -> int:
    if isinstance(char, int):
        if not 0 <= char <= 255:
            raise ValueError("notify character must be a byte value")
        return char
    if isinstance(char, str):
        char = char.encode("latin-1")
    if isinstance(char, (bytes, bytearray)) and len(char) == 1:
        return char[0]
    raise ValueError("notify character must be a single byte")


class SerialPortInputStream:
    """Reads a port on a background thread into a buffer that callers drain."""

    def __init__(self, port: SerialPort) -> None:
        self.port = port
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._listeners: list[Callable[["SerialPortInputStream"], None]] = []
        self.notify = NotifyMode.OFF
        self.notify_char = 0
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="SerialInThread", daemon=True)
        self._thread.start()

    def __enter__(self) -> "SerialPortInputStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def set_notify(self, mode: NotifyMode = NotifyMode.ON_CHAR, char=0) -> None:
        self.notify_char = _byte_value(char)
        self.notify = NotifyMode(mode)

    def add_listener(self, callback: Callable[["SerialPortInputStream"], None]) -> None:
        self._listeners.append(callback)

    def _notify_listeners(self, chunk: bytes) -> None:
        if self.notify is NotifyMode.ALWAYS:
            count = len(chunk)
        elif self.notify is NotifyMode.ON_CHAR:
            count = chunk.count(self.notify_char)
        else:
            count = 0
        for _ in range(count):
            for callback in list(self._listeners):
                callback(self)

    def _run(self) -> None:
        while not self._stop.is_set():
            handle = self.port._serial
            if handle is None or not handle.is_open:
                break
            try:
                waiting = handle.in_waiting
                chunk = handle.read(max(1, waiting))
            except (serial.SerialException, OSError) as exc:
                if not self._stop.is_set():
                    self.port.debug_log("SerialPortInputStream.run", f"read failed: {exc}")
                    self.port.close()
                break
            if not chunk:
                continue
            with self._lock:
                self._buffer.extend(chunk)
            self._notify_listeners(bytes(chunk))

    def can_read_string(self) -> bool:
        """Whether a NUL-terminated string is buffered."""
        with self._lock:
            return 0 in self._buffer

    def can_read_line(self) -> bool:
        with self._lock:
            return b"\n" in self._buffer

    def read(self, max_bytes: int) -> bytes:
        """Take up to ``max_bytes`` buffered bytes."""
        if not self.port.exists():
            raise SerialPortError("serial port is not open")
        if max_bytes < 0:
            raise ValueError("max_bytes must not be negative")
        with self._lock:
            data = bytes(self._buffer[:max_bytes])
            del self._buffer[:max_bytes]
        return data

    def read_next_line(self) -> str:
        """Bytes up to the next newline (or the buffer's end), trimmed."""
        chars = []
        while True:
            byte = self.read(1)
            if not byte or byte == b"\n":
                break
            chars.append(byte)
        return b"".join(chars).decode("latin-1").strip()

    def total_length(self) -> int:
        with self._lock:
            return len(self._buffer)

    def is_exhausted(self) -> bool:
        with self._lock:
            return not self._buffer

    def close(self) -> None:
        self._stop.set()
        self.port.cancel()
        self._thread.join(_THREAD_JOIN_TIMEOUT)


class SerialPortOutputStream:
    """Queues written bytes and sends them from a background thread."""

    def __init__(self, port: SerialPort) -> None:
        self.port = port
        self._buffer = bytearray()
        self._lock = threading.Lock()
        self._trigger = threading.Event()
        self._drained = threading.Event()
        self._drained.set()
        self._stop = threading.Event()
        self._thread = threading.Thread(target=self._run, name="SerialOutThread", daemon=True)
        self._thread.start()

    def __enter__(self) -> "SerialPortOutputStream":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def _run(self) -> None:
        while not self._stop.is_set():
            handle = self.port._serial
            if handle is None or not handle.is_open:
                break
            with self._lock:
                pending = bool(self._buffer)
            if not pending:
                self._trigger.wait(0.1)
                self._trigger.clear()
            with self._lock:
                chunk = bytes(self._buffer[:_WRITE_CHUNK])
            if not chunk:
                continue
            try:
                written = handle.write(chunk)
            except (serial.SerialException, OSError) as exc:
                self.port.debug_log("SerialPortOutputStream.run", f"write failed: {exc}")
                self.port.close()
                break
            if written is None:
                written = len(chunk)
            if written <= 0:
                self.port.debug_log("SerialPortOutputStream.run", "couldn't write anything")
                self.port.close()
                break
            with self._lock:
                del self._buffer[:written]
                if not self._buffer:
                    self._drained.set()

    def write(self, data: bytes) -> None:
        """Queue ``data`` for sending."""
        if not self.port.exists():
            raise SerialPortError("serial port is not open")
        data = bytes(data)
        if not data:
            return
        with self._lock:
            self._buffer.extend(data)
            self._drained.clear()
        self._trigger.set()

    def flush(self) -> None:
        """Block until every queued byte has been handed to the port."""
        while not self._drained.wait(0.05):
            if not self._thread.is_alive():
                raise SerialPortError("writer stopped before all data was sent")

    def close(self) -> None:
        self._stop.set()
        self._trigger.set()
        self.port.cancel()
        self._thread.join(_THREAD_JOIN_TIMEOUT)