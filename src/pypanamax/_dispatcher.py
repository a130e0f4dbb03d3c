"""Serialized outbound command queue.

Commands go on the wire strictly one at a time, in submission order. Each
successful write is followed by a settle pipeline before the next command::

    write -> settle_delay -> status poll -> poll_settle_delay -> next

because the device needs time both to switch the relay and to report the
new status. A status response that arrives while the pipeline waits after
the poll releases that wait early.

Identical commands that are still *pending* (sent, but no status response
seen since) are coalesced: the duplicate completes successfully without a
second write.
"""

from __future__ import annotations

import asyncio
import logging
from collections import deque
from collections.abc import Awaitable, Callable, Coroutine
from dataclasses import dataclass
from enum import Enum, StrEnum, auto
from typing import Any

from pypanamax._constants import ENCODING, POLL_SETTLE_DELAY, SETTLE_DELAY
from pypanamax._transport import Transport
from pypanamax.exceptions import PanamaxNotConnectedError, PanamaxTransportError

_logger = logging.getLogger(__name__)


class DispatcherState(StrEnum):
    IDLE = "idle"
    PROCESSING = "processing"


class _Stage(Enum):
    """Where the in-flight command is within its send/settle pipeline."""

    NONE = auto()
    SENDING = auto()
    SETTLING = auto()
    AWAITING_POLL = auto()


@dataclass(slots=True)
class _QueuedCommand:
    command: str
    future: asyncio.Future[None]


def _complete(future: asyncio.Future[None], error: BaseException | None = None) -> None:
    if future.done():
        return
    if error is None:
        future.set_result(None)
    else:
        future.set_exception(error)


class CommandDispatcher:
    """FIFO command queue with pending-command de-duplication."""

    def __init__(
        self,
        transport: Transport,
        poll: Callable[[], Awaitable[object]],
        *,
        settle_delay: float = SETTLE_DELAY,
        poll_settle_delay: float = POLL_SETTLE_DELAY,
    ) -> None:
        self._transport = transport
        self._poll = poll
        self._settle_delay = settle_delay
        self._poll_settle_delay = poll_settle_delay

        self._queue: deque[_QueuedCommand] = deque()
        self._pending: set[str] = set()
        self._state = DispatcherState.IDLE
        self._stage = _Stage.NONE
        self._timer: asyncio.TimerHandle | None = None
        self._current: _QueuedCommand | None = None
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

    @property
    def state(self) -> DispatcherState:
        return self._state

    @property
    def pending_commands(self) -> frozenset[str]:
        return frozenset(self._pending)

    @property
    def queued(self) -> int:
        return len(self._queue)

    def submit(self, command: str) -> asyncio.Future[None]:
        """Queue *command*; the returned future completes once it is sent, coalesced, or fails."""
        future: asyncio.Future[None] = asyncio.get_running_loop().create_future()
        if self._closed:
            future.set_exception(PanamaxNotConnectedError("Client closed"))
            return future
        self._queue.append(_QueuedCommand(command=command, future=future))
        if self._state is DispatcherState.IDLE:
            self.process_next()
        return future

    def process_next(self) -> None:
        """Start sending the next queued command, or go idle."""
        while self._queue:
            self._state = DispatcherState.PROCESSING
            entry = self._queue.popleft()

            if entry.command in self._pending:
                _logger.debug("Command %s already pending, skipping", entry.command.strip())
                _complete(entry.future)
                continue

            self._pending.add(entry.command)
            self._current = entry
            self._stage = _Stage.SENDING
            self._spawn(self._send(entry))
            return

        self._current = None
        self._state = DispatcherState.IDLE
        self._stage = _Stage.NONE

    def on_response_cycle(self) -> None:
        """A status response arrived: pending commands are confirmed."""
        self._pending.clear()
        if self._stage is _Stage.AWAITING_POLL:
            self._cancel_timer()
            self._stage = _Stage.NONE
            self.process_next()
        elif self._stage is _Stage.NONE:
            self.process_next()

    def close(self) -> None:
        """Cancel scheduled steps and fail the in-flight and queued commands."""
        self._closed = True
        self._cancel_timer()
        if self._current is not None:
            _complete(self._current.future, PanamaxNotConnectedError("Client closed"))
            self._current = None
        for task in list(self._tasks):
            task.cancel()
        self._tasks.clear()
        while self._queue:
            _complete(self._queue.popleft().future, PanamaxNotConnectedError("Client closed"))
        self._pending.clear()
        self._state = DispatcherState.IDLE
        self._stage = _Stage.NONE

    def reopen(self) -> None:
        """Accept submissions again after :meth:`close`."""
        self._closed = False

    # ------------------------------------------------------------------
    # Pipeline steps
    # ------------------------------------------------------------------

    async def _send(self, entry: _QueuedCommand) -> None:
        _logger.debug("Sending command: %s", entry.command.strip())
        try:
            await self._transport.write(entry.command.encode(ENCODING))
        except PanamaxTransportError as exc:
            _logger.error("Error sending command: %s", exc)
            self._pending.discard(entry.command)
            _complete(entry.future, exc)
            self._stage = _Stage.NONE
            self.process_next()
            return

        _logger.debug("Command sent successfully")
        _complete(entry.future)
        self._stage = _Stage.SETTLING
        self._timer = asyncio.get_running_loop().call_later(self._settle_delay, self._on_settled)

    def _on_settled(self) -> None:
        self._timer = None
        self._spawn(self._run_poll())
        self._stage = _Stage.AWAITING_POLL
        self._timer = asyncio.get_running_loop().call_later(self._poll_settle_delay, self._on_poll_settled)

    async def _run_poll(self) -> None:
        await self._poll()

    def _on_poll_settled(self) -> None:
        self._timer = None
        self._stage = _Stage.NONE
        self.process_next()

    def _cancel_timer(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
