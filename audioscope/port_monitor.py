"""Keeps an up-to-date list of the serial ports on the system."""

from __future__ import annotations

import logging
import threading
from typing import Callable

from audioscope.serialport import serial_port_paths

DEFAULT_SLEEP_TIME = 1000  # milliseconds

_log = logging.getLogger(__name__)


class SerialPortListMonitor:
    """Polls the serial port list and reports when it changes."""

    def __init__(
        self,
        sleep_time: int = DEFAULT_SLEEP_TIME,
        list_ports: Callable[[], dict[str, str]] | None = None,
        autostart: bool = True,
    ) -> None:
        self.sleep_time = int(sleep_time)
        self._list_ports = list_ports if list_ports is not None else serial_port_paths
        self._lock = threading.Lock()
        self._names: dict[str, str] = {}
        self._changed = False
        self._stop = threading.Event()
        self._thread: threading.Thread | None = None
        self.on_port_list_changed: Callable[[dict[str, str]], None] | None = None
        if autostart:
            self.start()

    def __enter__(self) -> "SerialPortListMonitor":
        return self

    def __exit__(self, *exc_info) -> None:
        self.stop()

    def has_list_changed(self) -> bool:
        with self._lock:
            return self._changed

    def serial_port_list(self) -> dict[str, str]:
        """The current list; reading it clears the changed flag."""
        with self._lock:
            self._changed = False
            return dict(self._names)

    def set_sleep_time(self, sleep_time: int) -> None:
        self.sleep_time = int(sleep_time)

    def poll(self) -> bool:
        """Check the port list once; return whether it changed."""
        ports = dict(self._list_ports())
        with self._lock:
            if ports == self._names:
                return False
            self._names = ports
            self._changed = True
            callback = self.on_port_list_changed
        _log.debug("Serial Port List: %s", ", ".join(ports.values()))
        if callback is not None:
            callback(dict(ports))
        return True

    def _run(self) -> None:
        while not self._stop.wait(self.sleep_time / 1000.0):
            self.poll()

    def start(self) -> None:
        if self._thread is not None and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="Serial Port Monitor", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stop.set()
        thread.join(timeout)
        if not thread.is_alive():
            self._thread = None