"""Datalogger configuration via environment variables.

Uses pydantic-settings so every field can be overridden with an
env var.  The simulator is the zero-hardware default.

Note: ``env_prefix`` is empty, so field names map directly to env vars
(e.g. ``SERIAL_PORT``, ``LOG_LEVEL``).  List fields such as
``PARAMETER_KEYS`` are read as JSON arrays.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings


class DataloggerSettings(BaseSettings):
    """Datalogger runtime settings."""

    model_config = {"env_prefix": "", "env_file": ".env", "extra": "ignore"}

    # -- adapter / session --------------------------------------------------
    connection_mode: str = Field(
        default="simulator",
        description="'simulator' or 'hardware'",
    )
    serial_port: Optional[str] = Field(
        default=None,
        description="Serial port of the ELM327 adapter (hardware mode only)",
    )
    baud_rate: int = Field(default=115200, description="Serial baud rate")
    parameter_keys: List[str] = Field(
        default_factory=lambda: ["engine-rpm"],
        description="Parameter keys to log when none are given explicitly",
    )
    channel_catalog_path: Path = Field(
        default=Path("config/bmw_channels.json"),
        description="JSON file with manufacturer-specific channel definitions",
    )

    # -- timing -------------------------------------------------------------
    command_timeout_ms: int = Field(
        default=900,
        description="Max wait for the '>' prompt after sending a command",
    )
    serial_read_timeout_ms: int = Field(
        default=180,
        description="Per-read timeout of the open serial transport",
    )
    probe_timeout_ms: int = Field(
        default=250,
        description="Read timeout used by verify_transport",
    )
    simulator_interval_ms: int = Field(
        default=110, description="Cadence of simulated samples"
    )
    live_interval_ms: int = Field(
        default=85, description="Pause between live query ticks"
    )

    # -- buffering / polling ------------------------------------------------
    max_pending_lines: int = Field(
        default=1500, description="Cap on undrained log lines"
    )
    max_pending_samples: int = Field(
        default=500, description="Cap on undrained decoded samples"
    )
    poll_max_lines: int = Field(
        default=400, description="Default line limit for a single poll"
    )
    poll_interval_seconds: float = Field(
        default=0.5, description="CLI polling period"
    )

    # -- behaviour ----------------------------------------------------------
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: str = Field(
        default="console",
        description="Log output format: 'console' or 'json'",
    )

    # -- derived ------------------------------------------------------------
    @property
    def is_simulation(self) -> bool:
        """Return ``True`` when sessions run against the simulator."""
        return self.connection_mode.strip().lower() == "simulator"
