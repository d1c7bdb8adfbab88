"""Error types raised by the pantry server and client."""

from __future__ import annotations


class PantryError(Exception):
    """Base class for pantry errors."""


class BindError(PantryError):
    """The server socket could not be bound.

    Fatal to ``RecipeServer.start()``; nothing else in the server is.
    """

    def __init__(self, host: str, port: int, reason: str) -> None:
        self.host = host
        self.port = port
        self.reason = reason
        super().__init__(f"Cannot bind {host}:{port}: {reason}")


class TransportError(PantryError):
    """A datagram could not be sent or received."""


class EndpointClosed(TransportError):
    """The endpoint was closed while (or before) receiving."""
