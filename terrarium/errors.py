"""Exception types raised by the controller components.

Components raise these; the dispatcher and the scheduled job callbacks turn
them into published notifications or HTTP error responses.
"""
from __future__ import annotations


class TerrariumError(Exception):
    """Base class for every recoverable controller error."""


class InvalidMessageFormat(TerrariumError):
    """Inbound payload is not JSON or lacks the ``sender`` key."""


class InvalidCommand(TerrariumError):
    """Unknown command name or a command value outside the accepted set."""


class InvalidValue(TerrariumError):
    """Command payload has the wrong shape, type or format."""


class SensorReadFailure(TerrariumError):
    SENSOR_NOT_READY = "SensorNotReady"
    MALFORMED_DATA = "MalformedData"
    IO_ERROR = "IOError"

    def __init__(self, reason: str, path: str, detail: str = ""):
        self.reason = reason
        self.path = path
        self.detail = detail
        msg = f"Error while reading temperature data from {path}: {reason}"
        if detail:
            msg += f" ({detail})"
        super().__init__(msg)


class ActuatorTransportFailure(TerrariumError):
    """The remote light controller was unreachable or answered non-2xx."""


class PersistenceFailure(TerrariumError):
    """The settings file could not be read or written."""
