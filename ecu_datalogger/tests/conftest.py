"""Shared pytest fixtures for datalogger tests."""

from __future__ import annotations

from pathlib import Path
from typing import Dict

import pytest

from ecu_datalogger.config import DataloggerSettings
from ecu_datalogger.tests.fakes import ELM_INIT_RESPONSES, FakeElmTransport, Reply

_REPO_ROOT = Path(__file__).resolve().parent.parent.parent


@pytest.fixture()
def healthy_elm() -> FakeElmTransport:
    """Adapter that initialises cleanly and answers RPM and coolant."""
    responses: Dict[str, Reply] = dict(ELM_INIT_RESPONSES)
    responses["010C"] = "41 0C 1A F8 \r\r>"
    responses["0105"] = "41 05 5A \r\r>"
    return FakeElmTransport(responses, default="NO DATA\r\r>")


@pytest.fixture()
def settings(tmp_path: Path) -> DataloggerSettings:
    """Settings with fast cadences and an absent channel catalog."""
    return DataloggerSettings(
        connection_mode="simulator",
        simulator_interval_ms=5,
        live_interval_ms=5,
        command_timeout_ms=100,
        channel_catalog_path=tmp_path / "missing_catalog.json",
    )


@pytest.fixture()
def shipped_catalog_path() -> Path:
    return _REPO_ROOT / "config" / "bmw_channels.json"
