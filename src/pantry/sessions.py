"""Shared session state for the receive loop and the sweeper.

``SessionTable`` owns a ``PeerRegistry`` and a ``QuotaTracker`` behind one
``asyncio.Lock``. Every read-modify-write on a peer goes through it, so the
receive loop and the liveness sweeper never act on stale reads of the same
peer, and a peer is always evicted from both structures at once.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass

from pantry.identity import PeerIdentity
from pantry.quota import Allowed, Denied, QuotaTracker, QuotaWindow
from pantry.registry import Accepted, PeerRecord, PeerRegistry, Rejected


@dataclass(frozen=True)
class Admitted:
    """Request passed admission and quota."""

    peer: PeerIdentity
    count: int
    new: bool


@dataclass(frozen=True)
class OverCapacity:
    """Registry is full and *peer* is not in it."""

    peer: PeerIdentity
    max_clients: int


@dataclass(frozen=True)
class OverQuota:
    """Peer is tracked but has used up its quota."""

    peer: PeerIdentity
    count: int
    limit: int


type Verdict = Admitted | OverCapacity | OverQuota


@dataclass(frozen=True)
class Eviction:
    peer: PeerIdentity
    idle_for: float


class SessionTable:
    """Lock-guarded pairing of peer registry and quota tracker.

    Parameters
    ----------
    max_clients : int
        Registry capacity.
    max_requests : int
        Requests allowed per quota window.
    window : QuotaWindow
        ``"lifetime"`` or ``"hourly"``; see :mod:`pantry.quota`.
    window_seconds : float
        Length of the hourly window.
    clock : Callable[[], float]
        Shared time source for both structures.

    Examples
    --------
    >>> table = SessionTable(max_clients=100, max_requests=10)
    >>> verdict = await table.register_request(PeerIdentity("10.0.0.5", 4000))
    >>> verdict
    Admitted(peer=PeerIdentity(host='10.0.0.5', port=4000), count=1, new=True)
    """

    def __init__(
        self,
        *,
        max_clients: int = 100,
        max_requests: int = 10,
        window: QuotaWindow = "lifetime",
        window_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_requests <= 0:
            msg = f"max_requests must be positive, got {max_requests}"
            raise ValueError(msg)
        self.max_requests = max_requests
        self.registry = PeerRegistry(max_clients, clock=clock)
        self.quotas = QuotaTracker(window=window, window_seconds=window_seconds, clock=clock)
        self._clock = clock
        self._lock = asyncio.Lock()

    async def register_request(self, peer: PeerIdentity) -> Verdict:
        """Admit, touch and charge one request to *peer* in one step."""
        async with self._lock:
            match self.registry.admit(peer):
                case Rejected():
                    return OverCapacity(peer, self.registry.max_clients)
                case Accepted(new=new):
                    self.registry.touch(peer)

            match self.quotas.check_and_increment(peer, self.max_requests):
                case Denied(count=count):
                    return OverQuota(peer, count, self.max_requests)
                case Allowed(count=count):
                    return Admitted(peer, count, new)

    async def evict(self, peer: PeerIdentity) -> bool:
        async with self._lock:
            return self._evict_locked(peer)

    async def snapshot(self) -> list[PeerRecord]:
        async with self._lock:
            return self.registry.snapshot()

    async def evict_idle(self, idle_timeout: float) -> list[Eviction]:
        """Evict every peer idle for longer than *idle_timeout* seconds.

        Candidates are picked from a snapshot outside the lock. Each one is
        re-checked under the lock before eviction so a peer that sent a
        datagram in between survives.
        """
        records = await self.snapshot()
        now = self._clock()
        candidates = [r.peer for r in records if now - r.last_seen > idle_timeout]
        if not candidates:
            return []

        evicted: list[Eviction] = []
        async with self._lock:
            now = self._clock()
            for peer in candidates:
                last_seen = self.registry.last_seen(peer)
                if last_seen is None or now - last_seen <= idle_timeout:
                    continue
                self._evict_locked(peer)
                evicted.append(Eviction(peer, now - last_seen))
        return evicted

    def _evict_locked(self, peer: PeerIdentity) -> bool:
        existed = self.registry.evict(peer)
        self.quotas.evict(peer)
        return existed

    def __len__(self) -> int:
        return len(self.registry)

    def __contains__(self, peer: object) -> bool:
        return peer in self.registry
