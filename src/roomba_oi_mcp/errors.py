"""Exceptions raised by the command encoder, the session and the transport."""


class RoombaError(Exception):
    """Base class for all errors raised by this package."""


class InvalidArgument(RoombaError, ValueError):
    """A command argument is out of range or otherwise not allowed.

    Raised before any bytes are produced, so a failed call never sends
    a partial command.
    """


class TooFrequent(RoombaError, RuntimeError):
    """A sensor update was requested before the minimum interval elapsed."""


class TransportFailure(RoombaError, ConnectionError):
    """The transport reported that a write did not go through."""
