"""Peer identity for connectionless sessions.

Provides ``PeerIdentity``, a frozen dataclass naming a remote UDP endpoint
by ``host:port``. Two datagrams from the same address and port belong to
the same session.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class PeerIdentity:
    """Immutable ``(host, port)`` pair identifying a remote peer.

    Parameters
    ----------
    host : str
        IP address or hostname of the peer.
    port : int
        UDP port of the peer.

    Examples
    --------
    >>> peer = PeerIdentity("10.0.0.5", 4000)
    >>> str(peer)
    '10.0.0.5:4000'
    >>> peer == PeerIdentity.parse("10.0.0.5:4000")
    True
    """

    host: str
    port: int

    @classmethod
    def from_addr(cls, addr: tuple[str, int] | tuple[str, int, int, int]) -> PeerIdentity:
        """Build an identity from an asyncio datagram address.

        IPv6 addresses arrive as 4-tuples; only host and port are kept.
        """
        return cls(host=addr[0], port=int(addr[1]))

    @classmethod
    def parse(cls, raw: str) -> PeerIdentity:
        """Parse ``host:port`` (the port is taken after the last colon).

        Raises
        ------
        ValueError
            If *raw* has no port or the port is not an integer.
        """
        host, sep, port = raw.rpartition(":")
        if not sep or not host:
            msg = f"Invalid peer address: {raw!r}"
            raise ValueError(msg)
        return cls(host=host.strip("[]"), port=int(port))

    @property
    def addr(self) -> tuple[str, int]:
        return (self.host, self.port)

    def __str__(self) -> str:
        return f"{self.host}:{self.port}"
