"""Adapter-side building blocks.

* ``Transport``        -- byte-stream abstraction (``base``).
* ``SerialTransport``  -- pyserial implementation (``serial_transport``).
* ELM327 command/response driver (``elm327``).
* Deterministic telemetry simulator (``simulation``).
"""

from ecu_datalogger.reader.base import Transport

__all__ = ["Transport"]
