"""High-level async client for the Panamax M4315 outlet controller."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

from pypanamax._dispatcher import CommandDispatcher, DispatcherState
from pypanamax._poller import StatusPoller
from pypanamax._protocol import LineBuffer, build_switch_command, parse_status_chunk
from pypanamax._transport import ConnectionState, StreamTransport
from pypanamax.config import PanamaxConfig
from pypanamax.exceptions import PanamaxConnectionClosedError, PanamaxNotConnectedError
from pypanamax.services import AccessoryInformation, SwitchService, build_services
from pypanamax.state.events import OutletStateChange
from pypanamax.state.store import OutletStateStore

_logger = logging.getLogger(__name__)


class PanamaxClient:
    """Async session with one Panamax outlet controller.

    Usage::

        async with PanamaxClient(PanamaxConfig(host="10.0.0.5")) as client:
            await client.wait_connected(10)
            await client.set_state(1, True)
            print(client.get_state(1))

    The connection is kept open (and reopened after it drops) for the life
    of the client. Outlet values are only ever taken from the device's own
    status lines, so :meth:`get_state` reflects the last confirmed value.
    """

    def __init__(
        self,
        config: PanamaxConfig,
        *,
        on_state_change: Callable[[OutletStateChange], None] | None = None,
    ) -> None:
        self._config = config
        self._on_state_change_cb = on_state_change
        self._store = OutletStateStore(config.outlet_count)
        self._transport = StreamTransport(
            config.host,
            config.port,
            reconnect=config.reconnect,
            connect_timeout=config.connect_timeout,
            read_chunk_size=config.read_chunk_size,
            on_connected=self._on_connected,
            on_data=self._on_data,
            on_disconnected=self._on_disconnected,
        )
        self._poller = StatusPoller(self._transport)
        self._dispatcher = CommandDispatcher(
            self._transport,
            self._poller.poll,
            settle_delay=config.settle_delay,
            poll_settle_delay=config.poll_settle_delay,
        )
        self._line_buffer = LineBuffer() if config.buffer_partial_lines else None
        self._services: list[AccessoryInformation | SwitchService] | None = None
        self._background: set[asyncio.Task[Any]] = set()
        self._store.add_listener(self._on_store_change)

    # ------------------------------------------------------------------
    # Context manager lifecycle
    # ------------------------------------------------------------------

    async def __aenter__(self) -> PanamaxClient:
        await self.connect()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def connect(self) -> None:
        """Start (or restart after :meth:`close`) the connection loop.

        Returns without waiting for the socket.
        """
        _logger.info("PanamaxClient initialized for %s:%s", self._config.host, self._config.port)
        self._dispatcher.reopen()
        await self._transport.start()

    async def wait_connected(self, timeout: float | None = None) -> bool:
        return await self._transport.wait_connected(timeout)

    async def close(self) -> None:
        """Stop reconnecting, cancel scheduled steps and close the socket."""
        self._dispatcher.close()
        for task in list(self._background):
            task.cancel()
        self._background.clear()
        await self._transport.close()

    # ------------------------------------------------------------------
    # Properties
    # ------------------------------------------------------------------

    @property
    def config(self) -> PanamaxConfig:
        return self._config

    @property
    def store(self) -> OutletStateStore:
        return self._store

    @property
    def connected(self) -> bool:
        return self._transport.connected

    @property
    def connection_state(self) -> ConnectionState:
        return self._transport.state

    @property
    def dispatcher_state(self) -> DispatcherState:
        return self._dispatcher.state

    @property
    def outlet_states(self) -> tuple[bool, ...]:
        return self._store.snapshot()

    def outlet_name(self, outlet: int) -> str:
        return self._config.outlet_name(outlet)

    # ------------------------------------------------------------------
    # Outlet operations
    # ------------------------------------------------------------------

    def get_state(self, outlet: int) -> bool:
        """Return the last confirmed value of *outlet* without querying the device.

        Raises
        ------
        PanamaxNotConnectedError
            If the session is not currently connected.
        """
        _logger.debug("Getting state for outlet %s", outlet)
        self._config.outlet(outlet)
        if not self.connected:
            raise PanamaxNotConnectedError()
        return self._store.get(outlet)

    async def set_state(self, outlet: int, on: bool) -> None:
        """Switch *outlet* on or off.

        Completes once the command has been written (or coalesced with an
        identical pending command). The outlet's stored value only changes
        when the device confirms it in a status line.

        Raises
        ------
        PanamaxNotConnectedError
            If the session is not currently connected. Nothing is queued.
        PanamaxTransportWriteError
            If writing the command failed.
        """
        name = self._config.outlet_name(outlet)
        _logger.info("Setting %s (Outlet %s) to %s", name, outlet, "ON" if on else "OFF")
        if not self.connected:
            raise PanamaxNotConnectedError()
        await self._dispatcher.submit(build_switch_command(outlet, on))

    async def poll_outlet_states(self) -> bool:
        """Ask the device to report all outlets; ``False`` if nothing was sent."""
        return await self._poller.poll()

    def get_services(self) -> list[AccessoryInformation | SwitchService]:
        """Accessory descriptors: device information plus one switch per enabled outlet."""
        if self._services is None:
            self._services = build_services(
                self._config,
                get_state=self.get_state,
                set_state=self.set_state,
            )
        return list(self._services)

    # ------------------------------------------------------------------
    # Transport callbacks
    # ------------------------------------------------------------------

    def _on_connected(self) -> None:
        self._spawn(self._poller.poll())

    def _on_disconnected(self, reason: PanamaxConnectionClosedError) -> None:
        _logger.debug("Session ended: %s", reason)
        if self._line_buffer is not None:
            self._line_buffer.clear()

    def _on_data(self, text: str) -> None:
        if self._line_buffer is not None:
            text = self._line_buffer.feed(text)
        for status in parse_status_chunk(text):
            self._store.update_outlet_state(status.outlet, status.on)
        # Any response completes a cycle, whichever outlets it mentioned.
        self._dispatcher.on_response_cycle()

    def _on_store_change(self, event: OutletStateChange) -> None:
        if self._services is not None:
            subtype = f"outlet{event.outlet}"
            for service in self._services:
                if isinstance(service, SwitchService) and service.subtype == subtype:
                    service.update_value(event.on)

        if self._on_state_change_cb is not None:
            try:
                self._on_state_change_cb(event)
            except Exception:
                _logger.debug("on_state_change callback failed", exc_info=True)

    def _spawn(self, coro: Coroutine[Any, Any, object]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._background.add(task)
        task.add_done_callback(self._background.discard)
