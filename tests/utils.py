"""Test utilities for pantry tests."""

from __future__ import annotations

import asyncio
import io
from collections.abc import Awaitable, Callable
from pathlib import Path

from PIL import Image

from pantry.catalog import PNG_SIGNATURE
from pantry.errors import EndpointClosed, TransportError
from pantry.identity import PeerIdentity
from pantry.transport import Datagram

TOMATO = "Tomato Salad: tomatoes, olive oil, salt."
FAKE_PNG = PNG_SIGNATURE + b"tomato-salad-pixels"
DISH_SIZE = (6, 4)


def write_image(path: Path, *, size: tuple[int, int] = DISH_SIZE, color: str = "tomato") -> Path:
    """Write a solid-colour image; the format follows the file suffix."""
    Image.new("RGB", size, color).save(path)
    return path


def decode_png(data: bytes) -> Image.Image:
    image = Image.open(io.BytesIO(data))
    assert image.format == "PNG"
    return image


async def retry_until(
    condition: Callable[[], bool | Awaitable[bool]],
    *,
    timeout: float = 3.0,
    interval: float = 0.02,
    message: str = "Condition not met within timeout",
) -> None:
    """Wait until a condition is met, with timeout.

    Args:
        condition: A callable that returns a truthy value when the condition is met
        timeout: Maximum time to wait in seconds
        interval: Time between checks in seconds
        message: Error message if timeout is reached

    Raises:
        TimeoutError: If condition is not met within timeout

    Example:
        await retry_until(lambda: PEER not in sessions, message="peer not evicted")
    """
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while loop.time() < deadline:
        result = condition()
        if asyncio.iscoroutine(result):
            result = await result
        if result:
            return
        await asyncio.sleep(interval)
    raise TimeoutError(message)


class FakeClock:
    """Manually advanced time source."""

    def __init__(self, start: float = 1000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class _Closed:
    pass


class FakeEndpoint:
    """In-memory stand-in for ``DatagramEndpoint``.

    ``fail_sends`` holds 1-based send-call numbers that raise
    ``TransportError`` instead of recording the datagram.
    """

    def __init__(self) -> None:
        self.sent: list[tuple[bytes, PeerIdentity]] = []
        self.fail_sends: set[int] = set()
        self.closed = False
        self._queue: asyncio.Queue[Datagram | TransportError | _Closed] = asyncio.Queue()
        self._send_calls = 0

    def feed(self, payload: bytes | str, peer: PeerIdentity) -> None:
        if isinstance(payload, str):
            payload = payload.encode("utf-8")
        self._queue.put_nowait(Datagram(payload, peer))

    def feed_error(self, error: TransportError) -> None:
        self._queue.put_nowait(error)

    async def recv(self) -> Datagram:
        if self.closed:
            raise EndpointClosed("endpoint is closed")
        item = await self._queue.get()
        if isinstance(item, _Closed):
            raise EndpointClosed("endpoint is closed")
        if isinstance(item, TransportError):
            raise item
        return item

    def send(self, data: bytes, peer: PeerIdentity) -> None:
        self._send_calls += 1
        if self._send_calls in self.fail_sends:
            raise TransportError("network is unreachable")
        self.sent.append((data, peer))

    def sent_to(self, peer: PeerIdentity) -> list[bytes]:
        return [data for data, to in self.sent if to == peer]

    def close(self) -> None:
        if not self.closed:
            self.closed = True
            self._queue.put_nowait(_Closed())
