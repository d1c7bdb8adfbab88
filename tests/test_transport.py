from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import pytest

from pantry.errors import BindError, EndpointClosed, TransportError
from pantry.identity import PeerIdentity
from pantry.transport import MAX_DATAGRAM_SIZE, DatagramEndpoint


@pytest.fixture
async def pair() -> AsyncIterator[tuple[DatagramEndpoint, DatagramEndpoint]]:
    a = await DatagramEndpoint.open("127.0.0.1", 0)
    b = await DatagramEndpoint.open("127.0.0.1", 0)
    yield a, b
    a.close()
    b.close()


async def test_send_and_recv(pair) -> None:
    a, b = pair

    a.send(b"hello", b.local_address)
    datagram = await asyncio.wait_for(b.recv(), timeout=2.0)

    assert datagram.payload == b"hello"
    assert datagram.peer == a.local_address


async def test_bound_port_is_resolved(pair) -> None:
    a, _ = pair
    assert a.local_address.host == "127.0.0.1"
    assert a.local_address.port > 0


async def test_bind_conflict_raises_bind_error(pair) -> None:
    a, _ = pair
    with pytest.raises(BindError) as exc_info:
        await DatagramEndpoint.open("127.0.0.1", a.local_address.port)
    assert exc_info.value.port == a.local_address.port


async def test_close_wakes_pending_recv() -> None:
    endpoint = await DatagramEndpoint.open("127.0.0.1", 0)
    waiter = asyncio.create_task(endpoint.recv())
    await asyncio.sleep(0)

    endpoint.close()

    with pytest.raises(EndpointClosed):
        await asyncio.wait_for(waiter, timeout=1.0)
    assert endpoint.closed


async def test_close_is_idempotent_and_blocks_io() -> None:
    endpoint = await DatagramEndpoint.open("127.0.0.1", 0)
    endpoint.close()
    endpoint.close()

    with pytest.raises(EndpointClosed):
        await endpoint.recv()
    with pytest.raises(EndpointClosed):
        endpoint.send(b"x", PeerIdentity("127.0.0.1", 9))


async def test_oversized_send_is_rejected(pair) -> None:
    a, b = pair
    with pytest.raises(TransportError):
        a.send(b"\x00" * (MAX_DATAGRAM_SIZE + 1), b.local_address)


async def test_full_queue_drops_datagrams() -> None:
    receiver = await DatagramEndpoint.open("127.0.0.1", 0, max_pending=2)
    sender = await DatagramEndpoint.open("127.0.0.1", 0)
    try:
        for n in range(5):
            sender.send(str(n).encode(), receiver.local_address)
        await asyncio.sleep(0.1)

        got = [await asyncio.wait_for(receiver.recv(), timeout=1.0) for _ in range(2)]
        assert [d.payload for d in got] == [b"0", b"1"]
        with pytest.raises(TimeoutError):
            await asyncio.wait_for(receiver.recv(), timeout=0.1)
    finally:
        sender.close()
        receiver.close()
