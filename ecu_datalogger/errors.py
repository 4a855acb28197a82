"""Exception hierarchy for transport and adapter failures."""

from __future__ import annotations


class DataloggerError(Exception):
    """Base class for all datalogger errors."""


class TransportOpenError(DataloggerError):
    """The serial transport could not be opened (or no port was given)."""


class TransportIOError(DataloggerError):
    """A transport read, write or flush failed for a reason other than timeout."""


class CommandIoError(DataloggerError):
    """An adapter command could not be written or its response read."""


class NoResponseError(DataloggerError):
    """The adapter sent nothing before the command timeout elapsed."""


class AdapterRejectedError(DataloggerError):
    """The adapter answered an init command without ``OK`` or a prompt."""

    def __init__(self, command: str, response: str) -> None:
        super().__init__(f"Adapter rejected {command}: {response}")
        self.command = command
        self.response = response
