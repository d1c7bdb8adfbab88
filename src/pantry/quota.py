"""Per-peer request quotas.

Two window modes are supported:

- ``"lifetime"``: the counter only goes away when the peer is evicted for
  inactivity. Once a peer is over its limit, every further request is
  denied (and still counted) until that happens.
- ``"hourly"``: a fixed window of ``window_seconds`` starting at the first
  request. The first request after the window has elapsed starts a new
  window at zero.

In both modes the counter is incremented before the comparison and is not
rolled back on denial, so exactly ``limit`` requests per window succeed.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Literal

from pantry.identity import PeerIdentity


type QuotaWindow = Literal["lifetime", "hourly"]

QUOTA_WINDOWS: tuple[QuotaWindow, ...] = ("lifetime", "hourly")


@dataclass(frozen=True)
class Allowed:
    count: int


@dataclass(frozen=True)
class Denied:
    count: int


type QuotaDecision = Allowed | Denied


@dataclass
class _Counter:
    count: int
    window_start: float


class QuotaTracker:
    """Request counters keyed by peer identity.

    Not synchronized on its own; see ``SessionTable``.

    Examples
    --------
    >>> quotas = QuotaTracker()
    >>> peer = PeerIdentity("10.0.0.5", 4000)
    >>> [quotas.check_and_increment(peer, limit=2) for _ in range(4)]
    [Allowed(count=1), Allowed(count=2), Denied(count=3), Denied(count=4)]
    """

    def __init__(
        self,
        *,
        window: QuotaWindow = "lifetime",
        window_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        if window not in QUOTA_WINDOWS:
            msg = f"Unknown quota window: {window!r}"
            raise ValueError(msg)
        if window_seconds <= 0:
            msg = f"window_seconds must be positive, got {window_seconds}"
            raise ValueError(msg)
        self.window = window
        self.window_seconds = window_seconds
        self._clock = clock
        self._counters: dict[PeerIdentity, _Counter] = {}

    def check_and_increment(self, peer: PeerIdentity, limit: int) -> QuotaDecision:
        now = self._clock()
        counter = self._counters.get(peer)
        if counter is None:
            self._counters[peer] = _Counter(count=1, window_start=now)
            return Allowed(1)

        if self.window == "hourly" and now - counter.window_start >= self.window_seconds:
            counter.count = 0
            counter.window_start = now

        counter.count += 1
        if counter.count > limit:
            return Denied(counter.count)
        return Allowed(counter.count)

    def evict(self, peer: PeerIdentity) -> bool:
        return self._counters.pop(peer, None) is not None

    def count(self, peer: PeerIdentity) -> int:
        counter = self._counters.get(peer)
        return counter.count if counter is not None else 0

    def __len__(self) -> int:
        return len(self._counters)

    def __contains__(self, peer: object) -> bool:
        return peer in self._counters
