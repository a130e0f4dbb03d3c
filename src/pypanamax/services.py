"""Framework-neutral accessory surface.

A home-automation bridge binds these descriptors to its own service and
characteristic types: one information record for the device, plus one
on/off switch per enabled outlet. Switch handlers use the
``callback(error, value)`` convention such bridges expect, while the
client itself stays coroutine based.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from dataclasses import dataclass
from typing import Any

from pypanamax._constants import MANUFACTURER, MODEL, SERIAL_NUMBER
from pypanamax.config import PanamaxConfig
from pypanamax.exceptions import PanamaxError

_logger = logging.getLogger(__name__)

GetCallback = Callable[[BaseException | None, bool | None], None]
SetCallback = Callable[[BaseException | None], None]
ValueListener = Callable[[bool], None]


@dataclass(frozen=True)
class AccessoryInformation:
    """Static identity of the device."""

    name: str
    manufacturer: str = MANUFACTURER
    model: str = MODEL
    serial_number: str = SERIAL_NUMBER


class SwitchService:
    """One outlet exposed as an on/off switch."""

    def __init__(
        self,
        outlet: int,
        name: str,
        *,
        get_state: Callable[[int], bool],
        set_state: Callable[[int, bool], Coroutine[Any, Any, None]],
    ) -> None:
        self.outlet = outlet
        self.name = name
        self.subtype = f"outlet{outlet}"
        self.value: bool | None = None
        self._get_state = get_state
        self._set_state = set_state
        self._listeners: list[ValueListener] = []

    def __repr__(self) -> str:
        return f"SwitchService(outlet={self.outlet}, name={self.name!r}, value={self.value})"

    def subscribe(self, listener: ValueListener) -> Callable[[], None]:
        """Register for pushed value updates; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def update_value(self, value: bool) -> None:
        """Push a confirmed value to subscribers."""
        self.value = value
        for listener in list(self._listeners):
            try:
                listener(value)
            except Exception:
                _logger.debug("Switch listener for %s failed", self.subtype, exc_info=True)

    def handle_get(self, callback: GetCallback) -> None:
        try:
            value = self._get_state(self.outlet)
        except PanamaxError as exc:
            callback(exc, None)
            return
        callback(None, value)

    def handle_set(self, value: bool, callback: SetCallback) -> asyncio.Task[None]:
        """Schedule the switch command; *callback* fires when it completes."""
        task = asyncio.get_running_loop().create_task(self._set_state(self.outlet, bool(value)))

        def _done(finished: asyncio.Task[None]) -> None:
            if finished.cancelled():
                callback(asyncio.CancelledError())
                return
            callback(finished.exception())

        task.add_done_callback(_done)
        return task


def build_services(
    config: PanamaxConfig,
    *,
    get_state: Callable[[int], bool],
    set_state: Callable[[int, bool], Coroutine[Any, Any, None]],
) -> list[AccessoryInformation | SwitchService]:
    """Build the information record plus a switch for every enabled outlet."""
    services: list[AccessoryInformation | SwitchService] = [AccessoryInformation(name=config.name)]
    for number, outlet in enumerate(config.outlets, start=1):
        if not outlet.enabled:
            continue
        services.append(
            SwitchService(
                number,
                outlet.display_name(number),
                get_state=get_state,
                set_state=set_state,
            )
        )
    return services
