"""Deterministic telemetry simulator (no hardware required).

Every value is a function of the sample index alone, built from simple
modular ramps, so two runs with the same keys and indices produce the
same samples.
"""

from __future__ import annotations

from typing import Callable, Dict, Iterable, List

from ecu_datalogger.decoders import DEFAULT_PARAMETER_KEY, KPA_TO_PSI


def _centered(index: int, period: int) -> int:
    """Ramp from ``-period/2`` to ``period/2 - 1``."""
    return index % period - period // 2


def _rpm(i: int) -> float:
    return float(max(650, 750 + _centered(i, 220) * 8))


def _throttle(i: int) -> float:
    return float(min(i % 100, 92))


def _coolant(i: int) -> float:
    return 88.0 + _centered(i, 12) * 0.15


def _intake_air(i: int) -> float:
    return 38.0 + _centered(i, 20) * 0.2


def _speed(i: int) -> float:
    return float(i % 145)


def _timing(i: int) -> float:
    return 8.0 + _centered(i, 16) * 0.25


def _boost(i: int) -> float:
    map_kpa = 112.0 + _centered(i, 60) * 0.7
    return (map_kpa - 100.0) * KPA_TO_PSI


def _lambda(i: int) -> float:
    return 0.84 + _centered(i, 30) * 0.0015


def _oil(i: int) -> float:
    return 95.0 + _centered(i, 16) * 0.2


def _fuel_pressure(i: int) -> float:
    return 620.0 + _centered(i, 20) * 2.5


_GENERATORS: Dict[str, Callable[[int], float]] = {
    "engine-rpm": _rpm,
    "throttle-position": _throttle,
    "coolant-temp": _coolant,
    "iat": _intake_air,
    "vehicle-speed": _speed,
    "timing-avg": _timing,
    "boost-actual": _boost,
    "boost-target": _boost,
    "afr-bank1": _lambda,
    "afr-bank2": _lambda,
    "oil-temp": _oil,
    "fuel-pressure": _fuel_pressure,
}


def simulated_keys() -> List[str]:
    """Parameter keys the simulator can produce."""
    return list(_GENERATORS)


def build_simulated_sample(keys: Iterable[str], sample_index: int) -> Dict[str, float]:
    """Return simulated values for the recognised *keys* at *sample_index*.

    Falls back to engine speed alone when none of *keys* is known, so a
    sample is never empty.
    """
    values: Dict[str, float] = {}
    for key in keys:
        generator = _GENERATORS.get(key)
        if generator is not None:
            values[key] = generator(sample_index)

    if not values:
        values[DEFAULT_PARAMETER_KEY] = _rpm(sample_index)
    return values
