"""Thread-safe buffer between the acquisition worker and the poller.

The worker appends lines and samples; the poller drains them.  Both
queues are bounded deques, so a slow poller loses the oldest entries
rather than growing memory without limit.
"""

from __future__ import annotations

import threading
from collections import deque
from typing import Deque, Iterable, List, Optional, Tuple

from ecu_datalogger.schemas import DatalogPollUpdate, DecodedSample, ProtocolMode

MAX_PENDING_LINES: int = 1_500
MAX_PENDING_SAMPLES: int = 500


class DatalogBuffer:
    """Lock-guarded pending lines, samples, counters and mode."""

    def __init__(
        self,
        max_lines: int = MAX_PENDING_LINES,
        max_samples: int = MAX_PENDING_SAMPLES,
    ) -> None:
        self._lock = threading.Lock()
        self._lines: Deque[str] = deque(maxlen=max_lines)
        self._samples: Deque[DecodedSample] = deque(maxlen=max_samples)
        self._total_bytes = 0
        self._last_error: Optional[str] = None
        self._mode = ProtocolMode.STOPPED

    # ------------------------------------------------------------------
    # Worker side
    # ------------------------------------------------------------------

    def set_mode(self, mode: ProtocolMode) -> None:
        with self._lock:
            self._mode = mode

    def set_error(self, message: str) -> None:
        with self._lock:
            self._last_error = message

    def fail_over(self, mode: ProtocolMode, message: str) -> None:
        """Switch *mode* and record *message* atomically."""
        with self._lock:
            self._mode = mode
            self._last_error = message

    def push_lines(self, lines: Iterable[str], counted_bytes: Optional[int] = None) -> None:
        """Append *lines*.

        ``total_bytes`` grows by *counted_bytes* when given, otherwise by
        the length of each line.
        """
        with self._lock:
            added = 0
            for line in lines:
                self._lines.append(line)
                added += len(line)
            self._total_bytes += added if counted_bytes is None else counted_bytes

    def record_cycle(
        self,
        lines: List[str],
        sample: Optional[DecodedSample],
        mode: Optional[ProtocolMode] = None,
    ) -> None:
        """Publish the output of one acquisition cycle in a single step."""
        with self._lock:
            if mode is not None:
                self._mode = mode
            for line in lines:
                self._lines.append(line)
                self._total_bytes += len(line)
            if sample is not None:
                self._samples.append(sample)

    # ------------------------------------------------------------------
    # Poller side
    # ------------------------------------------------------------------

    def drain(self, max_lines: int) -> DatalogPollUpdate:
        """Remove and return pending data.

        Only the newest *max_lines* lines are returned (at least one);
        older pending lines are discarded.  All pending samples are
        returned.
        """
        limit = max(1, max_lines)
        with self._lock:
            lines = list(self._lines)[-limit:]
            samples = list(self._samples)
            self._lines.clear()
            self._samples.clear()
            return DatalogPollUpdate(
                is_logging=True,
                last_error=self._last_error,
                lines=lines,
                total_bytes=self._total_bytes,
                decoded_samples=samples,
                protocol_mode=self._mode,
            )

    # ------------------------------------------------------------------
    # Utility
    # ------------------------------------------------------------------

    @property
    def mode(self) -> ProtocolMode:
        with self._lock:
            return self._mode

    @property
    def last_error(self) -> Optional[str]:
        with self._lock:
            return self._last_error

    @property
    def total_bytes(self) -> int:
        with self._lock:
            return self._total_bytes

    def pending_counts(self) -> Tuple[int, int]:
        with self._lock:
            return len(self._lines), len(self._samples)
