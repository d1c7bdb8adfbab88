"""UDP client for the recipe server.

Sends one request datagram and collects the recipe reply plus the optional
image datagram that follows it. A denied request gets no reply at all, so
silence surfaces as ``TimeoutError``.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass

from pantry.catalog import is_image
from pantry.errors import EndpointClosed, TransportError
from pantry.identity import PeerIdentity
from pantry.transport import Datagram, DatagramEndpoint


@dataclass(frozen=True)
class Reply:
    recipe: str
    image: bytes | None = None


class RecipeClient:
    """Request/response client bound to an ephemeral local port.

    Parameters
    ----------
    host : str
        Server host.
    port : int
        Server port.
    local_host : str
        Interface to bind the client socket on.

    Examples
    --------
    >>> async with RecipeClient("127.0.0.1", 11000) as client:
    ...     reply = await client.ask("tomato")
    >>> reply.recipe
    'Tomato Salad: tomatoes, olive oil, salt.'
    """

    def __init__(self, host: str, port: int, *, local_host: str = "127.0.0.1") -> None:
        self.server = PeerIdentity(host, port)
        self.local_host = local_host
        self._endpoint: DatagramEndpoint | None = None

    async def __aenter__(self) -> RecipeClient:
        await self.open()
        return self

    async def __aexit__(self, *exc: object) -> None:
        self.close()

    async def open(self) -> None:
        if self._endpoint is None:
            self._endpoint = await DatagramEndpoint.open(self.local_host, 0)

    @property
    def local_address(self) -> PeerIdentity:
        if self._endpoint is None:
            raise RuntimeError("Client is not open")
        return self._endpoint.local_address

    async def ask(self, text: str, *, timeout: float = 2.0, image_grace: float = 0.5) -> Reply:
        """Send *text* and wait for the reply.

        Parameters
        ----------
        text : str
            Ingredient list, sent as one UTF-8 datagram.
        timeout : float
            Seconds to wait for the recipe datagram.
        image_grace : float
            Seconds to wait for an image after the recipe arrives.

        Raises
        ------
        TimeoutError
            No recipe arrived within *timeout* (denied or lost).
        """
        await self.open()
        endpoint = self._endpoint
        assert endpoint is not None
        endpoint.send(text.encode("utf-8"), self.server)

        async with asyncio.timeout(timeout):
            first = await self._next_from_server(endpoint, skip_images=True)
        recipe = first.payload.decode("utf-8", errors="replace")

        try:
            async with asyncio.timeout(image_grace):
                second = await self._next_from_server(endpoint)
        except TimeoutError:
            return Reply(recipe)
        if is_image(second.payload):
            return Reply(recipe, second.payload)
        return Reply(recipe)

    async def _next_from_server(
        self, endpoint: DatagramEndpoint, *, skip_images: bool = False
    ) -> Datagram:
        """Next datagram from the server port.

        With *skip_images*, PNG datagrams are discarded: an image that arrived
        after an earlier ask gave up waiting is never taken for a recipe.
        """
        while True:
            try:
                datagram = await endpoint.recv()
            except EndpointClosed:
                raise
            except TransportError:
                continue
            if datagram.peer.port != self.server.port:
                continue
            if skip_images and is_image(datagram.payload):
                continue
            return datagram

    def close(self) -> None:
        if self._endpoint is not None:
            self._endpoint.close()
            self._endpoint = None
