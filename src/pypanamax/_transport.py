"""TCP stream transport with an automatic reconnect loop."""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Callable
from enum import StrEnum
from typing import Any, Protocol

from pypanamax._constants import CONNECT_TIMEOUT, ENCODING, READ_CHUNK_SIZE
from pypanamax.config import ReconnectPolicy
from pypanamax.exceptions import (
    PanamaxConnectionClosedError,
    PanamaxConnectionError,
    PanamaxTransportWriteError,
)

_logger = logging.getLogger(__name__)


class ConnectionState(StrEnum):
    DISCONNECTED = "disconnected"
    CONNECTED = "connected"


class Transport(Protocol):
    """Structural transport interface used by the dispatcher and poller.

    Having a protocol here makes it easy to pass test doubles while keeping
    the production implementation (`StreamTransport`) concrete.
    """

    @property
    def connected(self) -> bool: ...

    async def write(self, data: bytes) -> None: ...


class StreamTransport:
    """Owns the socket session to one device.

    The connection loop runs as a background task: connect, read until the
    peer closes, wait per the reconnect policy, connect again. Each
    successful connect replaces the reader/writer pair wholesale.

    Connection failures never propagate to callers; they only show up as
    :attr:`state` returning :attr:`ConnectionState.DISCONNECTED`.
    """

    def __init__(
        self,
        host: str,
        port: int,
        *,
        reconnect: ReconnectPolicy | None = None,
        connect_timeout: float = CONNECT_TIMEOUT,
        read_chunk_size: int = READ_CHUNK_SIZE,
        on_connected: Callable[[], None] | None = None,
        on_data: Callable[[str], None] | None = None,
        on_disconnected: Callable[[PanamaxConnectionClosedError], None] | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._reconnect = reconnect or ReconnectPolicy()
        self._connect_timeout = connect_timeout
        self._read_chunk_size = read_chunk_size
        self._on_connected = on_connected
        self._on_data = on_data
        self._on_disconnected = on_disconnected

        self._state = ConnectionState.DISCONNECTED
        self._reader: asyncio.StreamReader | None = None
        self._writer: asyncio.StreamWriter | None = None
        self._task: asyncio.Task[None] | None = None
        self._connected_event = asyncio.Event()
        self._connect_count = 0

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._state is ConnectionState.CONNECTED

    @property
    def connect_count(self) -> int:
        """Number of successful connections since construction."""
        return self._connect_count

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        """Start the connection loop (no-op if already running)."""
        if self.is_running:
            return
        _logger.info("Attempting to connect to %s:%s", self._host, self._port)
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def wait_connected(self, timeout: float | None = None) -> bool:
        """Wait until the session is connected; ``False`` on timeout."""
        if self.connected:
            return True
        try:
            await asyncio.wait_for(self._connected_event.wait(), timeout)
        except TimeoutError:
            return False
        return self.connected

    async def close(self) -> None:
        """Stop reconnecting and close the current connection."""
        task = self._task
        self._task = None
        if task is not None:
            task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await task

        writer = self._writer
        self._writer = None
        self._reader = None
        self._set_state(ConnectionState.DISCONNECTED)
        if writer is not None:
            writer.close()
            with contextlib.suppress(OSError, RuntimeError):
                await writer.wait_closed()
        _logger.debug("Transport to %s:%s closed", self._host, self._port)

    # ------------------------------------------------------------------
    # I/O
    # ------------------------------------------------------------------

    async def write(self, data: bytes) -> None:
        """Send *data* on the current connection and wait for it to drain."""
        writer = self._writer
        command = data.decode(ENCODING, errors="replace")
        if writer is None or not self.connected or writer.is_closing():
            raise PanamaxTransportWriteError(
                f"Connection to {self._host}:{self._port} is not open",
                command=command,
                host=self._host,
                port=self._port,
            )
        try:
            writer.write(data)
            await writer.drain()
        except (OSError, RuntimeError) as exc:
            raise PanamaxTransportWriteError(
                f"Write to {self._host}:{self._port} failed: {exc}",
                command=command,
                host=self._host,
                port=self._port,
            ) from exc

    # ------------------------------------------------------------------
    # Connection loop
    # ------------------------------------------------------------------

    async def _run(self) -> None:
        attempt = 0
        while True:
            try:
                await self._open()
            except PanamaxConnectionError as exc:
                _logger.error("Connection error: %s", exc)
                self._set_state(ConnectionState.DISCONNECTED)
            else:
                attempt = 0
                await self._read_until_closed()
                _logger.info("Connection closed. Attempting to reconnect...")

            attempt += 1
            if not self._reconnect.allows(attempt):
                _logger.error(
                    "Giving up on %s:%s after %d reconnect attempts",
                    self._host,
                    self._port,
                    attempt - 1,
                )
                return
            delay = self._reconnect.delay_for(attempt)
            _logger.debug("Reconnecting to %s:%s in %.1fs (attempt %d)", self._host, self._port, delay, attempt)
            await asyncio.sleep(delay)
            _logger.info("Attempting to connect to %s:%s", self._host, self._port)

    async def _open(self) -> None:
        try:
            reader, writer = await asyncio.wait_for(
                asyncio.open_connection(self._host, self._port),
                self._connect_timeout,
            )
        except (OSError, TimeoutError) as exc:
            raise PanamaxConnectionError(
                f"Connection to {self._host}:{self._port} failed: {exc!r}",
                host=self._host,
                port=self._port,
            ) from exc

        self._reader = reader
        self._writer = writer
        self._connect_count += 1
        self._set_state(ConnectionState.CONNECTED)
        _logger.info("Connected to %s:%s", self._host, self._port)
        self._fire(self._on_connected)

    async def _read_until_closed(self) -> None:
        reader = self._reader
        if reader is None:
            return
        reason = PanamaxConnectionClosedError(
            f"Connection to {self._host}:{self._port} closed by peer",
            host=self._host,
            port=self._port,
        )
        try:
            while True:
                data = await reader.read(self._read_chunk_size)
                if not data:
                    break
                text = data.decode(ENCODING, errors="replace")
                _logger.debug("Received data: %s", text.strip())
                self._fire(self._on_data, text)
        except OSError as exc:
            _logger.error("Connection error: %s", exc)
            reason = PanamaxConnectionClosedError(
                f"Connection to {self._host}:{self._port} lost: {exc}",
                host=self._host,
                port=self._port,
            )
            reason.__cause__ = exc
        finally:
            self._drop_connection(reason)

    def _drop_connection(self, reason: PanamaxConnectionClosedError) -> None:
        writer = self._writer
        self._writer = None
        self._reader = None
        was_connected = self.connected
        self._set_state(ConnectionState.DISCONNECTED)
        if writer is not None:
            writer.close()
        if was_connected:
            self._fire(self._on_disconnected, reason)

    def _set_state(self, state: ConnectionState) -> None:
        self._state = state
        if state is ConnectionState.CONNECTED:
            self._connected_event.set()
        else:
            self._connected_event.clear()

    def _fire(self, callback: Callable[..., None] | None, *args: Any) -> None:
        if callback is None:
            return
        try:
            callback(*args)
        except Exception:
            _logger.debug("Transport callback %r failed", callback, exc_info=True)
