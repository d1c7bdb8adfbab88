"""UDP endpoint with an awaitable receive.

Wraps an asyncio datagram transport so the server can ``await recv()`` in
a loop. Incoming datagrams are queued by the protocol callback; closing the
endpoint wakes a pending ``recv()`` with ``EndpointClosed``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any

from pantry.errors import BindError, EndpointClosed, TransportError
from pantry.identity import PeerIdentity
from pantry.logger import get_logger

logger = get_logger("transport")

MAX_DATAGRAM_SIZE = 65507


@dataclass(frozen=True)
class Datagram:
    payload: bytes
    peer: PeerIdentity


class _Closed:
    pass


_CLOSED = _Closed()

type _Item = Datagram | TransportError | _Closed


class _EndpointProtocol(asyncio.DatagramProtocol):
    """Internal datagram protocol - feeds the endpoint queue."""

    def __init__(self, queue: asyncio.Queue[_Item], max_pending: int) -> None:
        self.queue = queue
        self.max_pending = max_pending
        self.transport: asyncio.DatagramTransport | None = None

    def connection_made(self, transport: asyncio.BaseTransport) -> None:
        self.transport = transport  # type: ignore[assignment]

    def datagram_received(self, data: bytes, addr: Any) -> None:
        if self.queue.qsize() >= self.max_pending:
            logger.warning(
                "Receive queue full, dropping datagram",
                extra={"fields": {"from": f"{addr[0]}:{addr[1]}", "size": len(data)}},
            )
            return
        self.queue.put_nowait(Datagram(data, PeerIdentity.from_addr(addr)))

    def error_received(self, exc: Exception) -> None:
        self.queue.put_nowait(TransportError(f"UDP error: {exc}"))

    def connection_lost(self, exc: Exception | None) -> None:
        if exc:
            logger.error("UDP connection lost: %s", exc)
        self.queue.put_nowait(_CLOSED)


class DatagramEndpoint:
    """A bound UDP socket with awaitable receive and fire-and-forget send.

    Examples
    --------
    >>> endpoint = await DatagramEndpoint.open("127.0.0.1", 0)
    >>> endpoint.send(b"hello", PeerIdentity("127.0.0.1", 9999))
    >>> endpoint.close()
    """

    def __init__(
        self,
        transport: asyncio.DatagramTransport,
        queue: asyncio.Queue[_Item],
    ) -> None:
        self._transport = transport
        self._queue = queue
        self._closed = False

    @classmethod
    async def open(cls, host: str, port: int, *, max_pending: int = 1024) -> DatagramEndpoint:
        """Bind a UDP socket on ``host:port``.

        Raises
        ------
        BindError
            If the address is invalid, unavailable or already in use.
        """
        queue: asyncio.Queue[_Item] = asyncio.Queue()
        loop = asyncio.get_running_loop()
        try:
            transport, _ = await loop.create_datagram_endpoint(
                lambda: _EndpointProtocol(queue, max_pending),
                local_addr=(host, port),
            )
        except OSError as e:
            raise BindError(host, port, str(e)) from e
        return cls(transport, queue)

    @property
    def local_address(self) -> PeerIdentity:
        return PeerIdentity.from_addr(self._transport.get_extra_info("sockname"))

    @property
    def closed(self) -> bool:
        return self._closed

    async def recv(self) -> Datagram:
        """Wait for the next datagram.

        Raises
        ------
        EndpointClosed
            If the endpoint is closed, including while waiting.
        TransportError
            If the socket reported an error (the endpoint stays usable).
        """
        if self._closed:
            raise EndpointClosed("endpoint is closed")
        item = await self._queue.get()
        match item:
            case Datagram():
                return item
            case TransportError():
                raise item
            case _:
                self._closed = True
                raise EndpointClosed("endpoint is closed")

    def send(self, data: bytes, peer: PeerIdentity) -> None:
        if self._closed:
            raise EndpointClosed("endpoint is closed")
        if len(data) > MAX_DATAGRAM_SIZE:
            msg = f"datagram of {len(data)} bytes exceeds {MAX_DATAGRAM_SIZE}"
            raise TransportError(msg)
        try:
            self._transport.sendto(data, peer.addr)
        except OSError as e:
            raise TransportError(str(e)) from e

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._transport.close()
        self._queue.put_nowait(_CLOSED)
