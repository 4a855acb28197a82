"""ELM327 command/response driver.

Talks to the adapter over any :class:`~ecu_datalogger.reader.base.Transport`:

* commands are ASCII terminated by ``\\r``;
* a response is complete once the ``>`` prompt arrives;
* payloads are whitespace-separated hex pairs, standard PID answers
  being prefixed by ``41 <pid>``.

All functions are stateless; the session engine owns the transport.
"""

from __future__ import annotations

import re
import time
from typing import List, Optional

import structlog

from ecu_datalogger.decoders import decode_from_config, decode_pid_value, find_pid_payload
from ecu_datalogger.errors import (
    AdapterRejectedError,
    CommandIoError,
    NoResponseError,
    TransportIOError,
)
from ecu_datalogger.reader.base import Transport
from ecu_datalogger.schemas import ChannelConfig

logger = structlog.get_logger(__name__)

PROMPT = ">"
COMMAND_TIMEOUT_SECONDS = 0.9
READ_CHUNK_SIZE = 256

# Reset, echo off, linefeeds off, headers off, spaces off, auto protocol.
INIT_COMMANDS = ("ATZ", "ATE0", "ATL0", "ATH0", "ATS0", "ATSP0")
_UNVALIDATED_COMMANDS = frozenset({"ATZ"})

_TOKEN_SPLIT_RE = re.compile(r"[\s>]+")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")


# ---------------------------------------------------------------------------
# Command / response
# ---------------------------------------------------------------------------

def send_command(
    stream: Transport,
    command: str,
    timeout: float = COMMAND_TIMEOUT_SECONDS,
) -> str:
    """Send *command* and return the adapter's raw text response.

    Raises ``CommandIoError`` if the transport fails and
    ``NoResponseError`` if nothing arrives within *timeout* seconds.
    """
    payload = f"{command}\r".encode("utf-8")
    try:
        stream.write(payload)
    except TransportIOError as exc:
        raise CommandIoError(f"Failed to write command {command}: {exc}") from exc
    try:
        stream.flush()
    except TransportIOError as exc:
        raise CommandIoError(f"Failed to flush command {command}: {exc}") from exc
    return read_response(stream, timeout)


def read_response(stream: Transport, timeout: float = COMMAND_TIMEOUT_SECONDS) -> str:
    """Accumulate input until the prompt appears or *timeout* elapses."""
    collected = ""
    started = time.monotonic()
    while time.monotonic() - started < timeout:
        try:
            chunk = stream.read(READ_CHUNK_SIZE)
        except TransportIOError as exc:
            raise CommandIoError(f"Serial read failed: {exc}") from exc
        if not chunk:
            continue
        collected += chunk.decode("utf-8", errors="replace")
        if PROMPT in collected:
            return collected

    if not collected:
        raise NoResponseError("No response from adapter.")
    return collected


def initialize(stream: Transport, timeout: float = COMMAND_TIMEOUT_SECONDS) -> None:
    """Run the adapter init sequence.

    The reset banner is not checked; every later command must answer
    with ``OK`` or a prompt, otherwise ``AdapterRejectedError`` is raised.
    """
    for command in INIT_COMMANDS:
        response = send_command(stream, command, timeout)
        if command in _UNVALIDATED_COMMANDS:
            continue
        normalized = response.upper()
        if "OK" not in normalized and PROMPT not in normalized:
            raise AdapterRejectedError(command, response)
    logger.info("adapter_initialized", commands=len(INIT_COMMANDS))


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------

def parse_hex_tokens(text: str) -> bytes:
    """Extract two-character hex tokens from *text*.

    Anything else (prompts, ``SEARCHING...``, odd spacing) is dropped.
    """
    tokens: List[int] = []
    for token in _TOKEN_SPLIT_RE.split(text):
        if len(token) == 2 and all(ch in _HEX_DIGITS for ch in token):
            tokens.append(int(token, 16))
    return bytes(tokens)


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------

def query_standard_pid(
    stream: Transport,
    key: str,
    pid_command: str,
    timeout: float = COMMAND_TIMEOUT_SECONDS,
) -> Optional[float]:
    """Request a mode-01 PID and decode it with the standard table.

    ``None`` means the vehicle did not answer this PID (no marker, empty
    or short payload, or no response at all); transport failures raise
    ``CommandIoError``.
    """
    pid_code = int(pid_command[2:], 16)
    try:
        response = send_command(stream, pid_command, timeout)
    except NoResponseError:
        logger.debug("pid_no_response", key=key, command=pid_command)
        return None

    data = parse_hex_tokens(response)
    if not data:
        return None
    payload = find_pid_payload(data, pid_code)
    if payload is None:
        return None
    return decode_pid_value(key, payload)


def query_channel(
    stream: Transport,
    channel: ChannelConfig,
    timeout: float = COMMAND_TIMEOUT_SECONDS,
) -> Optional[float]:
    """Send a catalog command and decode the full token sequence."""
    try:
        response = send_command(stream, channel.command, timeout)
    except NoResponseError:
        logger.debug("channel_no_response", command=channel.command)
        return None

    data = parse_hex_tokens(response)
    if not data:
        return None
    return decode_from_config(data, channel.decode)
