"""Abstract base class for adapter byte-stream transports."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Transport(ABC):
    """Duplex byte stream to an OBD-II adapter.

    Concrete implementation: ``SerialTransport`` (pyserial).  Tests use
    scripted in-memory fakes.
    """

    @abstractmethod
    def read(self, size: int) -> bytes:
        """Read up to *size* bytes.

        Must return ``b""`` when the per-read timeout elapses with no
        data, and raise ``TransportIOError`` for any other failure.
        """

    @abstractmethod
    def write(self, data: bytes) -> None:
        """Write all of *data* or raise ``TransportIOError``."""

    @abstractmethod
    def flush(self) -> None:
        """Block until written data has been transmitted."""

    @abstractmethod
    def close(self) -> None:
        """Release the underlying device.  Safe to call twice."""
