"""Per-channel summary of drained samples.

Used by the CLI to print a table when a session ends.  Everything is
computed with **numpy** over the values each channel actually produced;
cycles in which a channel did not decode are simply absent.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, Iterable, List

import numpy as np

from ecu_datalogger.decoders import unit_for_key
from ecu_datalogger.schemas import DecodedSample


@dataclass(frozen=True)
class ChannelSummary:
    """Descriptive statistics for a single channel."""

    count: int
    min: float
    max: float
    mean: float
    std: float  # population std (ddof=0)
    last: float
    unit: str

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def summarize_samples(samples: Iterable[DecodedSample]) -> Dict[str, ChannelSummary]:
    """Group sample values by channel and describe each group.

    Channels appear in first-seen order.
    """
    series: Dict[str, List[float]] = {}
    for sample in samples:
        for key, value in sample.values.items():
            series.setdefault(key, []).append(value)

    result: Dict[str, ChannelSummary] = {}
    for key, values in series.items():
        arr = np.asarray(values, dtype=float)
        result[key] = ChannelSummary(
            count=int(arr.size),
            min=float(arr.min()),
            max=float(arr.max()),
            mean=float(arr.mean()),
            std=float(arr.std(ddof=0)),
            last=float(arr[-1]),
            unit=unit_for_key(key),
        )
    return result


def format_summary(summary: Dict[str, ChannelSummary]) -> str:
    """Render *summary* as a fixed-width text table."""
    if not summary:
        return "No samples recorded."

    header = (
        f"{'channel':<20} {'unit':<7} {'n':>6} "
        f"{'min':>10} {'max':>10} {'mean':>10} {'std':>10} {'last':>10}"
    )
    rows = [header, "-" * len(header)]
    for key, stats in summary.items():
        rows.append(
            f"{key:<20} {stats.unit:<7} {stats.count:>6} "
            f"{stats.min:>10.3f} {stats.max:>10.3f} {stats.mean:>10.3f} "
            f"{stats.std:>10.3f} {stats.last:>10.3f}"
        )
    return "\n".join(rows)
