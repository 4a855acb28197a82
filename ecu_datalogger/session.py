"""Datalogging session engine.

A :class:`SessionManager` owns at most one :class:`DatalogSession`.  Each
session runs a single worker thread that either ticks the simulator or
drives an ELM327 adapter, publishing lines and decoded samples into a
:class:`~ecu_datalogger.shared_buffer.DatalogBuffer` that callers drain
with :meth:`SessionManager.poll`.

Worker states::

    simulator
    elm_initializing -> elm_obd [-> elm+bmw]
    elm_initializing -> raw_fallback

Stopping is cooperative: the worker checks its stop event at the top of
every tick and before every query inside a tick.
"""

from __future__ import annotations

import functools
import threading
import time
from typing import Callable, Dict, Iterable, List, Optional, Tuple

import structlog

from ecu_datalogger.channel_catalog import load_channel_catalog, select_channels
from ecu_datalogger.config import DataloggerSettings
from ecu_datalogger.decoders import DEFAULT_PARAMETER_KEY, DEFAULT_PID_COMMAND, pid_for_key
from ecu_datalogger.errors import (
    AdapterRejectedError,
    CommandIoError,
    NoResponseError,
    TransportIOError,
    TransportOpenError,
)
from ecu_datalogger.reader.base import Transport
from ecu_datalogger.reader.elm327 import initialize, query_channel, query_standard_pid
from ecu_datalogger.reader.serial_transport import open_serial_transport
from ecu_datalogger.reader.simulation import build_simulated_sample
from ecu_datalogger.schemas import (
    ChannelConfig,
    DatalogPollUpdate,
    DecodedSample,
    ProtocolMode,
)
from ecu_datalogger.shared_buffer import DatalogBuffer

logger = structlog.get_logger(__name__)

SIMULATOR_MODE = "simulator"
RAW_READ_SIZE = 512
INIT_FAILED_MESSAGE = "Adapter init failed. Falling back to raw serial capture."

TransportOpener = Callable[[str, int, float], Transport]
PidPlan = List[Tuple[str, str]]
ChannelPlan = List[Tuple[str, ChannelConfig]]


# ---------------------------------------------------------------------------
# Session handle
# ---------------------------------------------------------------------------

class DatalogSession:
    """A running worker, its stop token and its buffer."""

    def __init__(
        self,
        buffer: DatalogBuffer,
        stop_event: threading.Event,
        thread: threading.Thread,
    ) -> None:
        self.buffer = buffer
        self.stop_event = stop_event
        self.thread = thread

    @property
    def is_alive(self) -> bool:
        """``False`` once the worker has returned (e.g. raw capture died)."""
        return self.thread.is_alive()

    def stop(self) -> None:
        """Signal the worker and wait for it to finish."""
        self.stop_event.set()
        self.thread.join()


# ---------------------------------------------------------------------------
# Manager
# ---------------------------------------------------------------------------

class SessionManager:
    """Starts, stops and polls the single active datalogging session.

    Parameters
    ----------
    settings:
        Runtime configuration; defaults are loaded from the environment.
    transport_opener:
        ``(port, baud_rate, read_timeout_seconds) -> Transport``.  Defaults
        to pyserial; tests inject scripted fakes.
    """

    def __init__(
        self,
        settings: Optional[DataloggerSettings] = None,
        transport_opener: TransportOpener = open_serial_transport,
    ) -> None:
        self._settings = settings if settings is not None else DataloggerSettings()
        self._open_transport = transport_opener
        # Serialises start/stop so replacement is strictly sequential.
        self._lifecycle_lock = threading.Lock()
        # Guards the session slot only; never held while joining.
        self._slot_lock = threading.Lock()
        self._session: Optional[DatalogSession] = None

    # -- lifecycle ----------------------------------------------------------

    def start(
        self,
        mode: str,
        port: Optional[str] = None,
        baud_rate: Optional[int] = None,
        keys: Optional[Iterable[str]] = None,
    ) -> bool:
        """Stop any running session, then start a new one.

        Raises ``TransportOpenError`` in hardware mode when *port* is
        missing or cannot be opened; no worker is spawned in that case.
        """
        settings = self._settings
        selected = list(keys) if keys is not None else list(settings.parameter_keys)
        baud = baud_rate if baud_rate is not None else settings.baud_rate
        normalized = mode.strip().lower()

        with self._lifecycle_lock:
            self._stop_current()

            buffer = DatalogBuffer(
                max_lines=settings.max_pending_lines,
                max_samples=settings.max_pending_samples,
            )
            stop_event = threading.Event()

            if normalized == SIMULATOR_MODE:
                target = functools.partial(
                    _run_simulator,
                    buffer,
                    stop_event,
                    selected,
                    settings.simulator_interval_ms / 1000,
                )
            else:
                if not port:
                    raise TransportOpenError("Port name is required for hardware mode.")
                transport = self._open_transport(
                    port, baud, settings.serial_read_timeout_ms / 1000
                )
                target = functools.partial(
                    _run_live, transport, buffer, stop_event, selected, settings
                )

            thread = threading.Thread(
                target=_guarded(target, buffer),
                name=f"datalog-{normalized}",
                daemon=True,
            )
            session = DatalogSession(buffer, stop_event, thread)
            with self._slot_lock:
                self._session = session
            thread.start()

        logger.info(
            "session_started",
            mode=normalized,
            port=port,
            baud_rate=baud,
            keys=selected,
        )
        return True

    def stop(self) -> bool:
        """Stop the active session.  A no-op when nothing is running."""
        with self._lifecycle_lock:
            self._stop_current()
        return True

    # -- polling ------------------------------------------------------------

    def poll(self, max_lines: Optional[int] = None) -> DatalogPollUpdate:
        """Drain pending lines and samples from the active session."""
        with self._slot_lock:
            session = self._session
        if session is None:
            return DatalogPollUpdate.stopped()
        limit = max_lines if max_lines is not None else self._settings.poll_max_lines
        return session.buffer.drain(limit)

    @property
    def active_session(self) -> Optional[DatalogSession]:
        with self._slot_lock:
            return self._session

    @property
    def is_logging(self) -> bool:
        return self.active_session is not None

    # -- probing ------------------------------------------------------------

    def verify_transport(self, port: str, baud_rate: Optional[int] = None) -> bool:
        """Open and immediately close *port*; session state is untouched."""
        if not port:
            raise TransportOpenError("Port name is required for hardware mode.")
        baud = baud_rate if baud_rate is not None else self._settings.baud_rate
        transport = self._open_transport(
            port, baud, self._settings.probe_timeout_ms / 1000
        )
        transport.close()
        logger.info("transport_verified", port=port, baud_rate=baud)
        return True

    # -- internal -----------------------------------------------------------

    def _stop_current(self) -> None:
        with self._slot_lock:
            session, self._session = self._session, None
        if session is None:
            return
        session.stop()
        logger.info("session_stopped", total_bytes=session.buffer.total_bytes)


# ---------------------------------------------------------------------------
# Workers
# ---------------------------------------------------------------------------

def _guarded(target: Callable[[], None], buffer: DatalogBuffer) -> Callable[[], None]:
    """Record unexpected worker crashes in the buffer instead of losing them."""

    def runner() -> None:
        try:
            target()
        except Exception as exc:
            logger.exception("datalog_worker_crashed")
            buffer.set_error(f"Datalog worker crashed: {exc}")

    return runner


def _run_simulator(
    buffer: DatalogBuffer,
    stop_event: threading.Event,
    keys: List[str],
    interval: float,
) -> None:
    buffer.set_mode(ProtocolMode.SIMULATOR)
    sample_index = 0
    while not stop_event.is_set():
        sample_index += 1
        values = build_simulated_sample(keys, sample_index)
        timestamp_ms = _now_ms()
        line = f"[{timestamp_ms}] SIM {values}"
        buffer.record_cycle(
            [line], DecodedSample(timestamp_ms=timestamp_ms, values=values)
        )
        stop_event.wait(interval)


def build_query_plan(
    keys: Iterable[str], catalog: Dict[str, ChannelConfig]
) -> Tuple[PidPlan, ChannelPlan]:
    """Split *keys* into standard-PID queries and catalog queries.

    Falls back to engine speed when no key maps to a standard PID.
    """
    keys = list(keys)
    pid_pairs: PidPlan = []
    for key in keys:
        command = pid_for_key(key)
        if command is not None:
            pid_pairs.append((key, command))
    if not pid_pairs:
        pid_pairs.append((DEFAULT_PARAMETER_KEY, DEFAULT_PID_COMMAND))
    return pid_pairs, select_channels(catalog, keys)


def _run_live(
    transport: Transport,
    buffer: DatalogBuffer,
    stop_event: threading.Event,
    keys: List[str],
    settings: DataloggerSettings,
) -> None:
    try:
        buffer.set_mode(ProtocolMode.ELM_INITIALIZING)
        catalog = load_channel_catalog(settings.channel_catalog_path)
        pid_pairs, channel_pairs = build_query_plan(keys, catalog)
        timeout = settings.command_timeout_ms / 1000

        try:
            initialize(transport, timeout)
        except (AdapterRejectedError, CommandIoError, NoResponseError) as exc:
            logger.warning("adapter_init_failed", error=str(exc))
            buffer.fail_over(ProtocolMode.RAW_FALLBACK, INIT_FAILED_MESSAGE)
            _capture_raw(transport, buffer, stop_event)
            return

        buffer.set_mode(ProtocolMode.ELM_OBD)
        logger.info(
            "live_logging_started",
            pids=[key for key, _ in pid_pairs],
            channels=[key for key, _ in channel_pairs],
        )
        _query_loop(
            transport,
            buffer,
            stop_event,
            pid_pairs,
            channel_pairs,
            timeout,
            settings.live_interval_ms / 1000,
        )
    finally:
        transport.close()


def _query_loop(
    transport: Transport,
    buffer: DatalogBuffer,
    stop_event: threading.Event,
    pid_pairs: PidPlan,
    channel_pairs: ChannelPlan,
    timeout: float,
    interval: float,
) -> None:
    while not stop_event.is_set():
        timestamp_ms = _now_ms()
        values: Dict[str, float] = {}
        lines: List[str] = []
        channel_decoded = False

        # Standard PIDs; an I/O error abandons the rest of this lane only.
        for key, command in pid_pairs:
            if stop_event.is_set():
                break
            try:
                value = query_standard_pid(transport, key, command, timeout)
            except CommandIoError as exc:
                _record_query_error(buffer, key, exc)
                break
            if value is not None:
                values[key] = value
                lines.append(_value_line(timestamp_ms, key, value))

        # Manufacturer channels.
        for key, channel in channel_pairs:
            if stop_event.is_set():
                break
            try:
                value = query_channel(transport, channel, timeout)
            except CommandIoError as exc:
                _record_query_error(buffer, key, exc)
                break
            if value is not None:
                channel_decoded = True
                values[key] = value
                lines.append(_value_line(timestamp_ms, key, value))

        sample = DecodedSample(timestamp_ms=timestamp_ms, values=values) if values else None
        buffer.record_cycle(
            lines,
            sample,
            mode=ProtocolMode.ELM_MANUFACTURER if channel_decoded else None,
        )
        stop_event.wait(interval)


def _capture_raw(
    transport: Transport,
    buffer: DatalogBuffer,
    stop_event: threading.Event,
) -> None:
    """Dump raw adapter bytes as hex lines until stopped or the port fails."""
    while not stop_event.is_set():
        try:
            chunk = transport.read(RAW_READ_SIZE)
        except TransportIOError as exc:
            logger.error("raw_capture_failed", error=str(exc))
            buffer.set_error(f"Read failed: {exc}")
            return
        if not chunk:
            continue
        buffer.push_lines(
            [f"[{_now_ms()}] {chunk.hex(' ').upper()}"], counted_bytes=len(chunk)
        )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _record_query_error(buffer: DatalogBuffer, key: str, exc: Exception) -> None:
    logger.warning("query_failed", key=key, error=str(exc))
    buffer.set_error(str(exc))


def _value_line(timestamp_ms: int, key: str, value: float) -> str:
    return f"[{timestamp_ms}] {key}={value:.3f}"


def _now_ms() -> int:
    return int(time.time() * 1000)
