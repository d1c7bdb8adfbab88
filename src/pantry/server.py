"""Server lifecycle.

``RecipeServer`` binds the UDP endpoint, runs the receive loop and the
liveness sweeper as two tasks on the running loop, and tears both down on
``stop()``. Use it as an async context manager for automatic shutdown.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable

from pantry.catalog import DEFAULT_RECIPES, ImageShelf, RecipeBook
from pantry.config import PantryConfig
from pantry.dispatcher import ImageLookup, RecipeLookup, RequestDispatcher
from pantry.events import ServerStarted, ServerStopped
from pantry.identity import PeerIdentity
from pantry.logger import EventLog, EventSink, FileSink, get_logger
from pantry.sessions import SessionTable
from pantry.sweeper import LivenessSweeper
from pantry.transport import DatagramEndpoint

logger = get_logger("server")


class RecipeServer:
    """UDP recipe server.

    Parameters
    ----------
    config : PantryConfig | None
        Server settings. Defaults to ``PantryConfig()``.
    recipe_lookup : RecipeLookup | None
        Overrides the ``RecipeBook`` built from the config.
    image_for : ImageLookup | None
        Overrides the ``ImageShelf`` built from the config.
    sinks : list[EventSink] | None
        Extra event sinks. A ``FileSink`` is added when the config names a
        log file.
    clock : Callable[[], float]
        Time source for liveness and quotas.

    Examples
    --------
    >>> async with RecipeServer(PantryConfig(server=ServerConfig(port=0))) as server:
    ...     print(server.address)
    127.0.0.1:54321
    """

    def __init__(
        self,
        config: PantryConfig | None = None,
        *,
        recipe_lookup: RecipeLookup | None = None,
        image_for: ImageLookup | None = None,
        sinks: list[EventSink] | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.config = config or PantryConfig()
        limits = self.config.limits
        liveness = self.config.liveness

        self.recipe_lookup: RecipeLookup = recipe_lookup or RecipeBook(
            {**DEFAULT_RECIPES, **dict(self.config.recipes)}
        )
        self.image_for: ImageLookup = image_for or ImageShelf(
            self.config.images.directory, default=self.config.images.default
        )

        event_sinks = list(sinks or [])
        if self.config.logging.file is not None:
            event_sinks.append(FileSink(self.config.logging.file))
        self.events = EventLog(event_sinks)

        self.sessions = SessionTable(
            max_clients=limits.max_clients,
            max_requests=limits.max_requests_per_hour,
            window=limits.quota_window,
            window_seconds=limits.window_seconds,
            clock=clock,
        )
        self.sweeper = LivenessSweeper(
            self.sessions,
            self.events,
            idle_timeout=liveness.idle_timeout,
            interval=liveness.sweep_interval,
        )

        self._endpoint: DatagramEndpoint | None = None
        self._dispatcher: RequestDispatcher | None = None
        self._stop = asyncio.Event()
        self._stopped = asyncio.Event()
        self._tasks: list[asyncio.Task[None]] = []
        self._address: PeerIdentity | None = None
        self._stopping = False

    @property
    def address(self) -> PeerIdentity:
        if self._address is None:
            raise RuntimeError("Server is not running")
        return self._address

    @property
    def running(self) -> bool:
        return self._endpoint is not None

    @property
    def dispatcher(self) -> RequestDispatcher:
        if self._dispatcher is None:
            raise RuntimeError("Server is not running")
        return self._dispatcher

    async def __aenter__(self) -> RecipeServer:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()

    async def start(self) -> PeerIdentity:
        """Bind the socket and start the receive loop and the sweeper.

        Returns
        -------
        PeerIdentity
            The address actually bound (resolves port ``0``).

        Raises
        ------
        BindError
            If the configured address cannot be bound.
        RuntimeError
            If the server is already running or still stopping.
        """
        if self._endpoint is not None:
            raise RuntimeError("Server is already running")
        if self._stopping:
            raise RuntimeError("Server is stopping")

        host, port = self.config.server.host, self.config.server.port
        endpoint = await DatagramEndpoint.open(host, port)
        self._endpoint = endpoint
        self._address = endpoint.local_address
        self._stop = asyncio.Event()
        self._stopped = asyncio.Event()

        self._dispatcher = RequestDispatcher(
            endpoint,
            self.sessions,
            self.recipe_lookup,
            self.image_for,
            self.events,
        )
        loop = asyncio.get_running_loop()
        self._tasks = [
            loop.create_task(self.sweeper.run(self._stop), name="pantry-sweeper"),
            loop.create_task(self._dispatcher.run(self._stop), name="pantry-receive"),
        ]
        self.events.emit(ServerStarted(self._address))
        return self._address

    async def serve_forever(self) -> None:
        """Start if needed, then block until ``stop()`` completes."""
        if self._endpoint is None:
            await self.start()
        await self._stopped.wait()

    async def stop(self) -> None:
        """Stop both tasks and close the socket.

        Safe to call repeatedly and concurrently: a call made while another
        stop is in progress returns only once that teardown has finished.
        """
        stopped = self._stopped
        if self._stopping:
            await stopped.wait()
            return
        endpoint = self._endpoint
        if endpoint is None:
            return
        self._stopping = True
        self._endpoint = None
        try:
            self._stop.set()
            endpoint.close()

            for task in self._tasks:
                if not task.done():
                    task.cancel()
            results = await asyncio.gather(*self._tasks, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.error("Server task failed", exc_info=result)
            self._tasks.clear()

            if self._dispatcher is not None:
                await self._dispatcher.cancel_pending()

            address = self._address
            if address is not None:
                self.events.emit(ServerStopped(address))
        finally:
            self._stopping = False
            stopped.set()
