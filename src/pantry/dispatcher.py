"""Receive loop: admission, quota, lookup and reply.

The loop decides admission and quota for each datagram in arrival order,
then hands accepted requests to a tracked task that looks up the recipe
and sends the reply (and image) while the loop goes back to receiving.
Rejected and rate-limited peers get no reply at all.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

from pantry.events import (
    AdmissionDenied,
    ImageSent,
    ImageSkipped,
    QuotaDenied,
    ReplySent,
    RequestReceived,
    SendFailed,
)
from pantry.errors import EndpointClosed, TransportError
from pantry.identity import PeerIdentity
from pantry.logger import EventLog, get_logger
from pantry.sessions import Admitted, OverCapacity, OverQuota, SessionTable, Verdict
from pantry.transport import MAX_DATAGRAM_SIZE, Datagram, DatagramEndpoint

logger = get_logger("dispatcher")

type RecipeLookup = Callable[[str], str]
type ImageLookup = Callable[[str], bytes | None]


class RequestDispatcher:
    """Turns incoming datagrams into recipe replies.

    Parameters
    ----------
    endpoint : DatagramEndpoint
        Bound socket to receive from and reply on.
    sessions : SessionTable
        Shared admission and quota state.
    recipe_lookup : RecipeLookup
        Maps request text to recipe text.
    image_for : ImageLookup
        Maps recipe text to PNG bytes, or ``None`` for no image. Called in
        a worker thread since it usually reads from disk.
    events : EventLog
        Destination for request, denial and failure events.
    """

    def __init__(
        self,
        endpoint: DatagramEndpoint,
        sessions: SessionTable,
        recipe_lookup: RecipeLookup,
        image_for: ImageLookup,
        events: EventLog,
    ) -> None:
        self.endpoint = endpoint
        self.sessions = sessions
        self.recipe_lookup = recipe_lookup
        self.image_for = image_for
        self.events = events
        self._pending: set[asyncio.Task[None]] = set()

    async def run(self, stop: asyncio.Event) -> None:
        while not stop.is_set():
            try:
                datagram = await self.endpoint.recv()
            except EndpointClosed:
                break
            except TransportError as e:
                logger.warning("Receive failed: %s", e)
                continue
            await self.handle(datagram)
        logger.debug("Receive loop stopped")

    async def handle(self, datagram: Datagram) -> Verdict:
        """Check admission and quota; schedule the reply if both pass."""
        verdict = await self.sessions.register_request(datagram.peer)
        match verdict:
            case OverCapacity(peer=peer, max_clients=max_clients):
                self.events.emit(AdmissionDenied(peer, max_clients))
            case OverQuota(peer=peer, count=count, limit=limit):
                self.events.emit(QuotaDenied(peer, count, limit))
            case Admitted():
                self._schedule(self.respond(datagram))
        return verdict

    async def respond(self, datagram: Datagram) -> None:
        peer = datagram.peer
        text = datagram.payload.decode("utf-8", errors="replace")
        recipe = self.recipe_lookup(text)
        self.events.emit(RequestReceived(peer, text))

        if not self._send(recipe.encode("utf-8"), peer, "recipe"):
            return
        self.events.emit(ReplySent(peer, recipe))

        try:
            image = await asyncio.to_thread(self.image_for, recipe)
        except Exception as e:
            self.events.emit(SendFailed(peer, "image", str(e)))
            return
        if image is None:
            return
        if len(image) > MAX_DATAGRAM_SIZE:
            self.events.emit(ImageSkipped(recipe, len(image), "larger than one datagram"))
            return
        if self._send(image, peer, "image"):
            self.events.emit(ImageSent(peer, len(image)))

    def _send(self, data: bytes, peer: PeerIdentity, what: str) -> bool:
        try:
            self.endpoint.send(data, peer)
        except TransportError as e:
            self.events.emit(SendFailed(peer, what, str(e)))
            return False
        return True

    def _schedule(self, coro) -> None:
        task = asyncio.create_task(coro)
        self._pending.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task[None]) -> None:
        self._pending.discard(task)
        if not task.cancelled() and task.exception() is not None:
            logger.error("Reply task failed", exc_info=task.exception())

    @property
    def in_flight(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every in-flight reply task to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def cancel_pending(self) -> None:
        for task in self._pending:
            if not task.done():
                task.cancel()
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
        self._pending.clear()
