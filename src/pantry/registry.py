"""Bounded registry of live peers.

``PeerRegistry`` maps each ``PeerIdentity`` to the time it was last seen
and caps how many peers can be tracked at once. It is not synchronized on
its own; ``SessionTable`` guards it together with the quota tracker.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from pantry.identity import PeerIdentity


@dataclass(frozen=True)
class Accepted:
    """The peer is (or may now be) tracked."""

    peer: PeerIdentity
    new: bool


@dataclass(frozen=True)
class Rejected:
    """The peer was refused and not inserted."""

    peer: PeerIdentity
    reason: Literal["max_clients"] = "max_clients"


type Admission = Accepted | Rejected


@dataclass(frozen=True)
class PeerRecord:
    peer: PeerIdentity
    last_seen: float


class PeerRegistry:
    """Map of peer identity to last-seen timestamp with admission control.

    Parameters
    ----------
    max_clients : int
        Maximum number of peers tracked at once.
    clock : Callable[[], float]
        Time source in seconds. Defaults to ``time.monotonic``.

    Examples
    --------
    >>> registry = PeerRegistry(max_clients=1)
    >>> a, b = PeerIdentity("10.0.0.1", 1), PeerIdentity("10.0.0.2", 2)
    >>> registry.admit(a)
    Accepted(peer=PeerIdentity(host='10.0.0.1', port=1), new=True)
    >>> registry.touch(a)
    >>> registry.admit(b)
    Rejected(peer=PeerIdentity(host='10.0.0.2', port=2), reason='max_clients')
    """

    def __init__(
        self,
        max_clients: int,
        *,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if max_clients <= 0:
            msg = f"max_clients must be positive, got {max_clients}"
            raise ValueError(msg)
        self.max_clients = max_clients
        self._clock = clock
        self._last_seen: dict[PeerIdentity, float] = {}

    def admit(self, peer: PeerIdentity) -> Admission:
        """Decide whether *peer* may be tracked. Does not insert it."""
        if peer in self._last_seen:
            return Accepted(peer, new=False)
        if len(self._last_seen) < self.max_clients:
            return Accepted(peer, new=True)
        return Rejected(peer)

    def touch(self, peer: PeerIdentity) -> None:
        """Insert *peer* or refresh its last-seen time."""
        self._last_seen[peer] = self._clock()

    def evict(self, peer: PeerIdentity) -> bool:
        return self._last_seen.pop(peer, None) is not None

    def last_seen(self, peer: PeerIdentity) -> float | None:
        return self._last_seen.get(peer)

    def snapshot(self) -> list[PeerRecord]:
        return [PeerRecord(peer, seen) for peer, seen in self._last_seen.items()]

    def now(self) -> float:
        return self._clock()

    def __len__(self) -> int:
        return len(self._last_seen)

    def __contains__(self, peer: object) -> bool:
        return peer in self._last_seen
