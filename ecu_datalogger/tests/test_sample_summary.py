"""Tests for the end-of-session sample summary."""

from __future__ import annotations

from dataclasses import FrozenInstanceError

import numpy as np
import pytest

from ecu_datalogger.sample_summary import (
    ChannelSummary,
    format_summary,
    summarize_samples,
)
from ecu_datalogger.schemas import DecodedSample


def _samples() -> list:
    return [
        DecodedSample(timestamp_ms=1, values={"engine-rpm": 800.0, "coolant-temp": 80.0}),
        DecodedSample(timestamp_ms=2, values={"engine-rpm": 1200.0}),
        DecodedSample(timestamp_ms=3, values={"engine-rpm": 1000.0, "rail-pressure": 5.5}),
    ]


class TestSummarizeSamples:
    def test_empty(self) -> None:
        assert summarize_samples([]) == {}

    def test_channels_in_first_seen_order(self) -> None:
        summary = summarize_samples(_samples())
        assert list(summary) == ["engine-rpm", "coolant-temp", "rail-pressure"]

    def test_statistics(self) -> None:
        rpm = summarize_samples(_samples())["engine-rpm"]
        assert rpm.count == 3
        assert rpm.min == 800.0
        assert rpm.max == 1200.0
        assert rpm.mean == pytest.approx(1000.0)
        assert rpm.std == pytest.approx(float(np.std([800.0, 1200.0, 1000.0])))
        assert rpm.last == 1000.0
        assert rpm.unit == "rpm"

    def test_missing_cycles_are_not_counted(self) -> None:
        summary = summarize_samples(_samples())
        assert summary["coolant-temp"].count == 1
        assert summary["coolant-temp"].std == 0.0

    def test_catalog_channel_has_no_unit(self) -> None:
        assert summarize_samples(_samples())["rail-pressure"].unit == ""

    def test_summary_is_frozen(self) -> None:
        rpm = summarize_samples(_samples())["engine-rpm"]
        with pytest.raises(FrozenInstanceError):
            rpm.count = 0  # type: ignore[misc]

    def test_to_dict(self) -> None:
        stats = ChannelSummary(
            count=1, min=2.0, max=2.0, mean=2.0, std=0.0, last=2.0, unit="kPa"
        )
        assert stats.to_dict() == {
            "count": 1,
            "min": 2.0,
            "max": 2.0,
            "mean": 2.0,
            "std": 0.0,
            "last": 2.0,
            "unit": "kPa",
        }


class TestFormatSummary:
    def test_empty(self) -> None:
        assert format_summary({}) == "No samples recorded."

    def test_one_row_per_channel(self) -> None:
        text = format_summary(summarize_samples(_samples()))
        lines = text.splitlines()
        assert lines[0].startswith("channel")
        assert set(lines[1]) == {"-"}
        assert len(lines) == 2 + 3
        assert lines[2].startswith("engine-rpm")
        assert "1000.000" in lines[2]

    def test_columns_include_std(self) -> None:
        text = format_summary(summarize_samples(_samples()))
        header, _, rpm_row = text.splitlines()[:3]
        assert header.split() == ["channel", "unit", "n", "min", "max", "mean", "std", "last"]
        expected_std = float(np.std([800.0, 1200.0, 1000.0]))
        assert rpm_row.split() == [
            "engine-rpm",
            "rpm",
            "3",
            "800.000",
            "1200.000",
            "1000.000",
            f"{expected_std:.3f}",
            "1000.000",
        ]
