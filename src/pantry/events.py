"""Server event types.

Every event is a frozen dataclass with a ``level`` (a ``logging`` level)
and a ``describe()`` method producing the human-readable log line.
``EventLog`` in :mod:`pantry.logger` routes them to the logger and sinks.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import ClassVar

from pantry.identity import PeerIdentity


@dataclass(frozen=True)
class ServerStarted:
    address: PeerIdentity

    level: ClassVar[int] = logging.INFO

    def describe(self) -> str:
        return f"Server started on {self.address}"


@dataclass(frozen=True)
class ServerStopped:
    address: PeerIdentity

    level: ClassVar[int] = logging.INFO

    def describe(self) -> str:
        return "Server stopped."


@dataclass(frozen=True)
class RequestReceived:
    peer: PeerIdentity
    text: str

    level: ClassVar[int] = logging.INFO

    def describe(self) -> str:
        return f"{self.peer} requested recipes for {self.text}"


@dataclass(frozen=True)
class AdmissionDenied:
    """A new peer arrived while the registry was full."""

    peer: PeerIdentity
    max_clients: int

    level: ClassVar[int] = logging.WARNING

    def describe(self) -> str:
        return f"Max clients reached. Disconnecting {self.peer}."


@dataclass(frozen=True)
class QuotaDenied:
    """A peer went over its request quota."""

    peer: PeerIdentity
    count: int
    limit: int

    level: ClassVar[int] = logging.WARNING

    def describe(self) -> str:
        return f"Client {self.peer} exceeded request limit."


@dataclass(frozen=True)
class PeerEvicted:
    peer: PeerIdentity
    idle_for: float

    level: ClassVar[int] = logging.INFO

    def describe(self) -> str:
        return f"Client {self.peer} disconnected due to inactivity."


@dataclass(frozen=True)
class ReplySent:
    peer: PeerIdentity
    recipe: str

    level: ClassVar[int] = logging.DEBUG

    def describe(self) -> str:
        return f"Sent recipe to {self.peer}"


@dataclass(frozen=True)
class ImageSent:
    peer: PeerIdentity
    size: int

    level: ClassVar[int] = logging.DEBUG

    def describe(self) -> str:
        return f"Sent image ({self.size} bytes) to {self.peer}"


@dataclass(frozen=True)
class ImageSkipped:
    """An image exists but cannot travel in a single datagram."""

    recipe: str
    size: int
    reason: str

    level: ClassVar[int] = logging.WARNING

    def describe(self) -> str:
        return f"Skipping image for {self.recipe!r} ({self.size} bytes): {self.reason}"


@dataclass(frozen=True)
class SendFailed:
    peer: PeerIdentity
    what: str
    error: str

    level: ClassVar[int] = logging.ERROR

    def describe(self) -> str:
        return f"Error sending {self.what}: {self.error}"


@dataclass(frozen=True)
class SweepFailed:
    error: str

    level: ClassVar[int] = logging.ERROR

    def describe(self) -> str:
        return f"Error removing inactive clients: {self.error}"


type ServerEvent = (
    ServerStarted
    | ServerStopped
    | RequestReceived
    | AdmissionDenied
    | QuotaDenied
    | PeerEvicted
    | ReplySent
    | ImageSent
    | ImageSkipped
    | SendFailed
    | SweepFailed
)
