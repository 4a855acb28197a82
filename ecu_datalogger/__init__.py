"""ECU Datalogger -- OBD-II telemetry acquisition engine.

Reads live parameters from an ELM327 adapter (or a deterministic
simulator) on a background worker and exposes decoded samples through
a drain-style poll interface.
"""

__version__ = "0.1.0"
