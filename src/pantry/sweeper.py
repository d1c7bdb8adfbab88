"""Periodic eviction of idle peers."""

from __future__ import annotations

import asyncio

from pantry.events import PeerEvicted, SweepFailed
from pantry.logger import EventLog, get_logger
from pantry.sessions import Eviction, SessionTable

logger = get_logger("sweeper")


class LivenessSweeper:
    """Evicts peers idle for longer than ``idle_timeout`` every ``interval`` seconds.

    The wait between sweeps is an ``asyncio.Event`` wait bounded by the
    interval, so setting *stop* ends ``run()`` without waiting out the
    rest of the interval.
    """

    def __init__(
        self,
        sessions: SessionTable,
        events: EventLog,
        *,
        idle_timeout: float = 600.0,
        interval: float = 60.0,
    ) -> None:
        if idle_timeout <= 0 or interval <= 0:
            msg = f"idle_timeout and interval must be positive, got {idle_timeout}, {interval}"
            raise ValueError(msg)
        self.sessions = sessions
        self.events = events
        self.idle_timeout = idle_timeout
        self.interval = interval
        self.sweeps = 0

    async def sweep(self) -> list[Eviction]:
        """Run one eviction pass and emit a ``PeerEvicted`` per peer."""
        evicted = await self.sessions.evict_idle(self.idle_timeout)
        self.sweeps += 1
        for eviction in evicted:
            self.events.emit(PeerEvicted(eviction.peer, eviction.idle_for))
        return evicted

    async def run(self, stop: asyncio.Event) -> None:
        logger.debug(
            "Sweeper running",
            extra={"fields": {"interval": self.interval, "idle_timeout": self.idle_timeout}},
        )
        while not stop.is_set():
            try:
                await asyncio.wait_for(stop.wait(), timeout=self.interval)
            except TimeoutError:
                pass
            if stop.is_set():
                break
            try:
                await self.sweep()
            except Exception as e:
                self.events.emit(SweepFailed(str(e)))
                logger.exception("Sweep failed")
        logger.debug("Sweeper stopped")
