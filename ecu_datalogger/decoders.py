"""Standard OBD-II PID decode table and the generic channel decoder.

The standard table is closed: every key maps to a mode-01 PID command,
an engineering unit and a formula over the payload bytes that follow
the ``41 <pid>`` positive-response marker.  Manufacturer channels use
:func:`decode_from_config` with a :class:`~ecu_datalogger.schemas.DecodeConfig`
instead.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Dict, Optional

from ecu_datalogger.schemas import DecodeConfig, NumericType

POSITIVE_RESPONSE_MODE = 0x41
KPA_TO_PSI = 0.145038

DEFAULT_PARAMETER_KEY = "engine-rpm"
DEFAULT_PID_COMMAND = "010C"


# ---------------------------------------------------------------------------
# Formulas
# ---------------------------------------------------------------------------

def _word(payload: bytes) -> Optional[float]:
    if len(payload) < 2:
        return None
    return float(payload[0] * 256 + payload[1])


def _first(payload: bytes) -> Optional[float]:
    if not payload:
        return None
    return float(payload[0])


def _engine_rpm(payload: bytes) -> Optional[float]:
    raw = _word(payload)
    return None if raw is None else raw / 4.0


def _throttle(payload: bytes) -> Optional[float]:
    a = _first(payload)
    return None if a is None else a * 100.0 / 255.0


def _temperature(payload: bytes) -> Optional[float]:
    a = _first(payload)
    return None if a is None else a - 40.0


def _speed(payload: bytes) -> Optional[float]:
    return _first(payload)


def _timing_advance(payload: bytes) -> Optional[float]:
    a = _first(payload)
    return None if a is None else a / 2.0 - 64.0


def _boost_psi(payload: bytes) -> Optional[float]:
    a = _first(payload)
    return None if a is None else (a - 100.0) * KPA_TO_PSI


def _equivalence_ratio(payload: bytes) -> Optional[float]:
    raw = _word(payload)
    return None if raw is None else raw / 32768.0


def _fuel_pressure(payload: bytes) -> Optional[float]:
    a = _first(payload)
    return None if a is None else a * 3.0


# ---------------------------------------------------------------------------
# Table
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class StandardPid:
    """One entry of the standard decode table."""

    key: str
    command: str
    unit: str
    formula: Callable[[bytes], Optional[float]]

    @property
    def pid_code(self) -> int:
        """PID byte echoed in the positive response (``010C`` -> ``0x0C``)."""
        return int(self.command[2:], 16)


_STANDARD_PIDS: Dict[str, StandardPid] = {
    entry.key: entry
    for entry in (
        StandardPid("engine-rpm", "010C", "rpm", _engine_rpm),
        StandardPid("throttle-position", "0111", "%", _throttle),
        StandardPid("coolant-temp", "0105", "degC", _temperature),
        StandardPid("iat", "010F", "degC", _temperature),
        StandardPid("oil-temp", "015C", "degC", _temperature),
        StandardPid("vehicle-speed", "010D", "km/h", _speed),
        StandardPid("timing-avg", "010E", "deg", _timing_advance),
        StandardPid("boost-actual", "010B", "psi", _boost_psi),
        StandardPid("boost-target", "010B", "psi", _boost_psi),
        StandardPid("afr-bank1", "0144", "lambda", _equivalence_ratio),
        StandardPid("afr-bank2", "0144", "lambda", _equivalence_ratio),
        StandardPid("fuel-pressure", "010A", "kPa", _fuel_pressure),
    )
}


def standard_pids() -> Dict[str, StandardPid]:
    """Return a copy of the full standard decode table."""
    return dict(_STANDARD_PIDS)


def lookup_pid(key: str) -> Optional[StandardPid]:
    return _STANDARD_PIDS.get(key)


def pid_for_key(key: str) -> Optional[str]:
    """Return the mode-01 command for *key*, or ``None`` if unknown."""
    entry = _STANDARD_PIDS.get(key)
    return entry.command if entry is not None else None


def unit_for_key(key: str) -> str:
    entry = _STANDARD_PIDS.get(key)
    return entry.unit if entry is not None else ""


def decode_pid_value(key: str, payload: bytes) -> Optional[float]:
    """Apply the table formula for *key* to *payload*.

    Returns ``None`` for unknown keys or payloads too short for the
    formula.
    """
    entry = _STANDARD_PIDS.get(key)
    if entry is None:
        return None
    return entry.formula(bytes(payload))


def find_pid_payload(data: bytes, pid_code: int) -> Optional[bytes]:
    """Return the bytes after the first ``41 <pid_code>`` marker."""
    for i in range(len(data) - 1):
        if data[i] == POSITIVE_RESPONSE_MODE and data[i + 1] == pid_code:
            return bytes(data[i + 2:])
    return None


# ---------------------------------------------------------------------------
# Generic (catalog) decoding
# ---------------------------------------------------------------------------

_NUMERIC_READERS: Dict[NumericType, Callable[[bytes, int], int]] = {
    NumericType.U8: lambda data, i: data[i],
    NumericType.U16BE: lambda data, i: int.from_bytes(data[i:i + 2], "big"),
    NumericType.I16BE: lambda data, i: int.from_bytes(
        data[i:i + 2], "big", signed=True
    ),
}


def decode_from_config(data: bytes, decode: DecodeConfig) -> Optional[float]:
    """Decode ``raw * scale + offset`` at ``decode.byte_index``.

    Returns ``None`` when the value would extend past the end of *data*.
    """
    index = decode.byte_index
    if index + decode.numeric_type.width > len(data):
        return None
    raw = _NUMERIC_READERS[decode.numeric_type](bytes(data), index)
    return raw * decode.scale + decode.offset
