"""CLI entry point: ``python -m ecu_datalogger [--mode ...] [--duration S]``."""

from __future__ import annotations

import argparse
import sys
import time
from typing import List, Optional

import structlog


def _configure_logging(level: str, fmt: str) -> None:
    """Set up structlog with console or JSON rendering."""
    import logging

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, level.upper(), logging.INFO),
        stream=sys.stderr,
    )

    processors: list = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_log_level,
        structlog.stdlib.add_logger_name,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if fmt == "json":
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.append(structlog.dev.ConsoleRenderer())

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def _parse_keys(raw: Optional[str]) -> Optional[List[str]]:
    if raw is None:
        return None
    return [key.strip() for key in raw.split(",") if key.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ecu_datalogger",
        description="Log OBD-II engine telemetry from an ELM327 adapter or the simulator",
    )
    parser.add_argument(
        "--mode",
        choices=["simulator", "hardware"],
        default=None,
        help="Connection mode (default: CONNECTION_MODE setting)",
    )
    parser.add_argument("--port", default=None, help="Serial port of the adapter")
    parser.add_argument("--baud", type=int, default=None, help="Serial baud rate")
    parser.add_argument(
        "--keys",
        default=None,
        help="Comma-separated parameter keys, e.g. engine-rpm,coolant-temp",
    )
    parser.add_argument(
        "--duration",
        type=float,
        default=None,
        help="Stop after this many seconds (default: run until Ctrl-C)",
    )
    parser.add_argument(
        "--verify",
        action="store_true",
        default=False,
        help="Only check that the serial port opens, then exit",
    )
    parser.add_argument(
        "--list-channels",
        action="store_true",
        default=False,
        help="Print the standard and catalog channels, then exit",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    # Load settings from env / .env file first, then override with CLI flags.
    from ecu_datalogger.config import DataloggerSettings

    settings = DataloggerSettings()
    if args.mode is not None:
        settings.connection_mode = args.mode
    if args.port is not None:
        settings.serial_port = args.port
    if args.baud is not None:
        settings.baud_rate = args.baud

    _configure_logging(settings.log_level, settings.log_format)
    logger = structlog.get_logger("ecu_datalogger")

    if args.list_channels:
        _print_channels(settings)
        return 0

    from ecu_datalogger.errors import TransportOpenError
    from ecu_datalogger.session import SessionManager

    manager = SessionManager(settings)

    if args.verify:
        try:
            manager.verify_transport(settings.serial_port or "", settings.baud_rate)
        except TransportOpenError as exc:
            logger.error("transport_verify_failed", error=str(exc))
            return 1
        print(f"{settings.serial_port}: OK")
        return 0

    logger.info(
        "datalogger_starting",
        version=__import__("ecu_datalogger").__version__,
        mode=settings.connection_mode,
        port=settings.serial_port,
    )

    try:
        manager.start(
            settings.connection_mode,
            port=settings.serial_port,
            baud_rate=settings.baud_rate,
            keys=_parse_keys(args.keys),
        )
    except TransportOpenError as exc:
        logger.error("session_start_failed", error=str(exc))
        return 1

    samples = []
    try:
        samples = _run_poll_loop(manager, settings, args.duration)
    except KeyboardInterrupt:
        logger.info("datalogger_interrupted")
    finally:
        manager.stop()

    from ecu_datalogger.sample_summary import format_summary, summarize_samples

    print(format_summary(summarize_samples(samples)))
    return 0


def _run_poll_loop(manager, settings, duration: Optional[float]) -> list:
    """Poll until *duration* elapses; return every drained sample."""
    logger = structlog.get_logger("ecu_datalogger")
    deadline = None if duration is None else time.monotonic() + duration
    samples: list = []
    last_error: Optional[str] = None
    last_mode = None

    while deadline is None or time.monotonic() < deadline:
        time.sleep(settings.poll_interval_seconds)
        update = manager.poll(settings.poll_max_lines)
        for line in update.lines:
            print(line)
        samples.extend(update.decoded_samples)
        if update.protocol_mode != last_mode:
            logger.info("protocol_mode_changed", mode=str(update.protocol_mode.value))
            last_mode = update.protocol_mode
        if update.last_error and update.last_error != last_error:
            logger.warning("datalog_degraded", error=update.last_error)
            last_error = update.last_error
    return samples


def _print_channels(settings) -> None:
    from ecu_datalogger.channel_catalog import load_channel_catalog
    from ecu_datalogger.decoders import standard_pids

    print("Standard PIDs:")
    for key, entry in standard_pids().items():
        print(f"  {key:<20} {entry.command}  [{entry.unit}]")
    catalog = load_channel_catalog(settings.channel_catalog_path)
    print(f"Catalog channels ({settings.channel_catalog_path}):")
    for key, channel in catalog.items():
        print(f"  {key:<20} {channel.command}  {channel.decode.numeric_type.value}")


if __name__ == "__main__":
    sys.exit(main())
