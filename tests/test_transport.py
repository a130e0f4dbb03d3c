from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import pytest

from pypanamax._transport import ConnectionState, StreamTransport
from pypanamax.config import ReconnectPolicy
from pypanamax.exceptions import PanamaxConnectionClosedError, PanamaxTransportWriteError

if TYPE_CHECKING:
    from conftest import FakePanamaxDevice, WaitUntil


async def _unused_port() -> int:
    server = await asyncio.start_server(lambda r, w: None, "127.0.0.1", 0)
    port: int = server.sockets[0].getsockname()[1]
    server.close()
    await server.wait_closed()
    return port


@pytest.mark.asyncio
async def test_connects_and_delivers_received_text(device: FakePanamaxDevice, wait_until: WaitUntil) -> None:
    connected: list[bool] = []
    received: list[str] = []
    transport = StreamTransport(
        "127.0.0.1",
        device.port,
        on_connected=lambda: connected.append(True),
        on_data=received.append,
    )
    await transport.start()
    try:
        assert await transport.wait_connected(2.0)
        assert transport.state is ConnectionState.CONNECTED
        assert connected == [True]
        await wait_until(lambda: device.connections == 1)

        await device.push("$OUTLET1 = ON\r\n")
        await wait_until(lambda: "".join(received) == "$OUTLET1 = ON\r\n")
    finally:
        await transport.close()

    assert transport.state is ConnectionState.DISCONNECTED
    assert not transport.is_running


@pytest.mark.asyncio
async def test_write_reaches_device(device: FakePanamaxDevice, wait_until: WaitUntil) -> None:
    transport = StreamTransport("127.0.0.1", device.port)
    await transport.start()
    try:
        assert await transport.wait_connected(2.0)
        await transport.write(b"!SWITCH 2 ON\r\n")
        await wait_until(lambda: device.received == ["!SWITCH 2 ON\r\n"])
    finally:
        await transport.close()

    assert device.states[1] is True


@pytest.mark.asyncio
async def test_write_without_connection_raises() -> None:
    transport = StreamTransport("127.0.0.1", 23)

    with pytest.raises(PanamaxTransportWriteError) as err:
        await transport.write(b"?OUTLETSTAT\r\n")
    assert err.value.command == "?OUTLETSTAT\r\n"
    assert err.value.port == 23


@pytest.mark.asyncio
async def test_reconnects_after_peer_closes(device: FakePanamaxDevice, wait_until: WaitUntil) -> None:
    reasons: list[PanamaxConnectionClosedError] = []
    transport = StreamTransport(
        "127.0.0.1",
        device.port,
        reconnect=ReconnectPolicy(delay=0.05),
        on_disconnected=reasons.append,
    )
    await transport.start()
    try:
        assert await transport.wait_connected(2.0)
        await wait_until(lambda: device.connections == 1)
        await device.drop_clients()

        await wait_until(lambda: len(reasons) == 1)
        assert "closed by peer" in str(reasons[0])

        await wait_until(lambda: transport.connect_count == 2 and transport.connected)
        assert device.connections == 2
    finally:
        await transport.close()


@pytest.mark.asyncio
async def test_failed_connects_stop_after_max_attempts(wait_until: WaitUntil) -> None:
    port = await _unused_port()
    disconnected: list[PanamaxConnectionClosedError] = []
    transport = StreamTransport(
        "127.0.0.1",
        port,
        reconnect=ReconnectPolicy(delay=0.01, max_attempts=2),
        on_disconnected=disconnected.append,
    )
    await transport.start()
    try:
        await wait_until(lambda: not transport.is_running)
        assert transport.connect_count == 0
        assert transport.connected is False
        # Never connected, so there was no session to end.
        assert disconnected == []
        assert await transport.wait_connected(0.01) is False
    finally:
        await transport.close()


@pytest.mark.asyncio
async def test_close_stops_reconnecting(device: FakePanamaxDevice, wait_until: WaitUntil) -> None:
    transport = StreamTransport("127.0.0.1", device.port, reconnect=ReconnectPolicy(delay=0.01))
    await transport.start()
    assert await transport.wait_connected(2.0)

    await transport.close()
    await asyncio.sleep(0.05)

    assert not transport.is_running
    assert transport.connect_count == 1
    assert device.connections == 1
