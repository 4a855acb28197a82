"""In-memory adapter fakes and polling helpers for datalogger tests."""

from __future__ import annotations

import threading
import time
from collections import deque
from typing import Callable, Deque, Dict, List, Optional, Tuple, Union

from ecu_datalogger.reader.base import Transport

# Replies of a healthy adapter to the init sequence.
ELM_INIT_RESPONSES: Dict[str, str] = {
    "ATZ": "\r\rELM327 v1.5\r\r>",
    "ATE0": "ATE0\rOK\r\r>",
    "ATL0": "OK\r\r>",
    "ATH0": "OK\r\r>",
    "ATS0": "OK\r\r>",
    "ATSP0": "OK\r\r>",
}

Reply = Union[str, None, Exception]
RawItem = Union[bytes, Exception]


class FakeElmTransport(Transport):
    """Scripted in-memory ELM327.

    * ``responses[command]`` is the text queued after *command* is
      written; ``None`` means the adapter stays silent and an exception
      instance is raised from ``write``.
    * Unknown commands get ``default``.
    * ``raw_items`` feed reads once no response is pending (raw capture);
      an exception instance in the queue is raised when reached.
    """

    def __init__(
        self,
        responses: Optional[Dict[str, Reply]] = None,
        default: Reply = "?\r\r>",
        raw_items: Optional[List[RawItem]] = None,
        raw_quiet_period: float = 0.15,
    ) -> None:
        self.responses: Dict[str, Reply] = dict(responses or {})
        self.default = default
        self.written: List[str] = []
        self.closed = False
        self.read_error: Optional[Exception] = None
        self._pending = bytearray()
        self._raw: Deque[RawItem] = deque(raw_items or [])
        self._raw_quiet_period = raw_quiet_period
        self._last_write = 0.0
        self._lock = threading.Lock()

    def write(self, data: bytes) -> None:
        command = data.decode("utf-8").rstrip("\r")
        reply = self.responses.get(command, self.default)
        with self._lock:
            self.written.append(command)
            self._last_write = time.monotonic()
            if isinstance(reply, Exception):
                raise reply
            if reply is not None:
                self._pending.extend(reply.encode("utf-8"))

    def flush(self) -> None:
        pass

    def read(self, size: int) -> bytes:
        if self.read_error is not None:
            raise self.read_error
        with self._lock:
            if self._pending:
                chunk = bytes(self._pending[:size])
                del self._pending[:size]
                return chunk
            quiet = time.monotonic() - self._last_write >= self._raw_quiet_period
            if self._raw and quiet:
                item = self._raw.popleft()
                if isinstance(item, Exception):
                    raise item
                return item
        # Emulates the serial read timeout.
        time.sleep(0.002)
        return b""

    def close(self) -> None:
        self.closed = True

    def sent(self, command: str) -> int:
        with self._lock:
            return self.written.count(command)


class RecordingOpener:
    """Transport opener returning a prepared fake and recording calls."""

    def __init__(
        self,
        transport: Optional[Transport] = None,
        error: Optional[Exception] = None,
    ) -> None:
        self.transport = transport if transport is not None else FakeElmTransport()
        self.error = error
        self.calls: List[Tuple[str, int, float]] = []

    def __call__(self, port: str, baud_rate: int, timeout: float) -> Transport:
        self.calls.append((port, baud_rate, timeout))
        if self.error is not None:
            raise self.error
        return self.transport


def wait_for(predicate: Callable[[], bool], timeout: float = 3.0) -> bool:
    """Poll *predicate* until it holds or *timeout* seconds pass."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()
