"""SerialTransport -- pyserial-backed adapter transport.

A read returns whatever the driver has already buffered (up to *size*)
and only blocks, for at most the configured timeout, when nothing is
waiting.  An empty result is the "no data yet" contract of
:class:`~ecu_datalogger.reader.base.Transport.read`.
Every ``serial.SerialException`` is re-raised as ``TransportIOError``.
"""

from __future__ import annotations

from typing import Optional

import serial
import structlog

from ecu_datalogger.errors import TransportIOError, TransportOpenError
from ecu_datalogger.reader.base import Transport

logger = structlog.get_logger(__name__)


class SerialTransport(Transport):
    """Wraps an open ``serial.Serial`` handle."""

    def __init__(self, handle: serial.Serial) -> None:
        self._serial: Optional[serial.Serial] = handle

    @property
    def port(self) -> str:
        return self._handle().port or ""

    def read(self, size: int) -> bytes:
        """Return what is already buffered, else block for the first byte."""
        try:
            handle = self._handle()
            return handle.read(min(size, handle.in_waiting) or 1)
        except serial.SerialException as exc:
            raise TransportIOError(str(exc)) from exc

    def write(self, data: bytes) -> None:
        try:
            self._handle().write(data)
        except serial.SerialException as exc:
            raise TransportIOError(str(exc)) from exc

    def flush(self) -> None:
        try:
            self._handle().flush()
        except serial.SerialException as exc:
            raise TransportIOError(str(exc)) from exc

    def close(self) -> None:
        if self._serial is not None:
            port = self._serial.port
            self._serial.close()
            self._serial = None
            logger.debug("serial_transport_closed", port=port)

    # -- internal -----------------------------------------------------------

    def _handle(self) -> serial.Serial:
        if self._serial is None:
            raise TransportIOError("serial transport is closed")
        return self._serial


def open_serial_transport(
    port: str, baud_rate: int, timeout: float
) -> SerialTransport:
    """Open *port* at *baud_rate* with a per-read *timeout* in seconds."""
    try:
        handle = serial.Serial(port=port, baudrate=baud_rate, timeout=timeout)
    except (serial.SerialException, ValueError) as exc:
        raise TransportOpenError(f"Unable to open serial port: {exc}") from exc
    logger.info("serial_transport_opened", port=port, baud_rate=baud_rate)
    return SerialTransport(handle)
