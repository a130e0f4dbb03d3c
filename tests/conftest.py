from __future__ import annotations

import asyncio
import contextlib
from collections.abc import AsyncIterator, Awaitable, Callable

import pytest
import pytest_asyncio


class FakePanamaxDevice:
    """Minimal telnet emulator of a Panamax M4315.

    Answers ``?OUTLETSTAT`` with one status line per outlet and applies
    ``!SWITCH`` commands silently, like the real unit.
    """

    def __init__(self, outlet_count: int = 8) -> None:
        self.states = [False] * outlet_count
        self.received: list[str] = []
        self.connections = 0
        self.port = 0
        self._server: asyncio.Server | None = None
        self._writers: list[asyncio.StreamWriter] = []

    async def start(self) -> None:
        self._server = await asyncio.start_server(self._handle, "127.0.0.1", 0)
        self.port = self._server.sockets[0].getsockname()[1]

    async def stop(self) -> None:
        await self.drop_clients()
        if self._server is not None:
            self._server.close()
            await self._server.wait_closed()
            self._server = None

    def status_report(self) -> str:
        return "".join(f"$OUTLET{i} = {'ON' if on else 'OFF'}\r\n" for i, on in enumerate(self.states, start=1))

    def count(self, command: str) -> int:
        return self.received.count(command)

    async def push(self, text: str) -> None:
        for writer in list(self._writers):
            if writer.is_closing():
                continue
            writer.write(text.encode())
            await writer.drain()

    async def drop_clients(self) -> None:
        writers = list(self._writers)
        self._writers.clear()
        for writer in writers:
            writer.close()
            with contextlib.suppress(OSError):
                await writer.wait_closed()

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.connections += 1
        self._writers.append(writer)
        try:
            while True:
                line = await reader.readline()
                if not line:
                    break
                text = line.decode()
                self.received.append(text)
                command = text.strip()
                if command == "?OUTLETSTAT":
                    writer.write(self.status_report().encode())
                elif command.startswith("!SWITCH"):
                    _, number, value = command.split()
                    self.states[int(number) - 1] = value == "ON"
                await writer.drain()
        except (OSError, asyncio.IncompleteReadError):
            pass
        finally:
            if writer in self._writers:
                self._writers.remove(writer)
            writer.close()


WaitUntil = Callable[..., Awaitable[None]]


async def _wait_until(predicate: Callable[[], bool], timeout: float = 2.0, interval: float = 0.005) -> None:
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while not predicate():
        if loop.time() >= deadline:
            raise AssertionError("condition not met before timeout")
        await asyncio.sleep(interval)


@pytest_asyncio.fixture
async def device() -> AsyncIterator[FakePanamaxDevice]:
    fake = FakePanamaxDevice()
    await fake.start()
    try:
        yield fake
    finally:
        await fake.stop()


@pytest.fixture
def wait_until() -> WaitUntil:
    return _wait_until
