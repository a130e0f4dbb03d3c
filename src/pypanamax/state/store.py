"""Authoritative in-memory outlet state.

This is the only component allowed to mutate outlet values, and it only
does so when a status line confirms a different value.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import UTC, datetime

from pypanamax._constants import OUTLET_COUNT
from pypanamax.state.events import OutletStateChange

_logger = logging.getLogger(__name__)

StateListener = Callable[[OutletStateChange], None]


def _utcnow() -> datetime:
    return datetime.now(UTC)


class OutletStateStore:
    """Per-outlet boolean state with change-driven notification.

    Outlets are addressed 1-based, as on the wire. Every outlet starts
    ``False`` until the device reports otherwise.
    """

    def __init__(
        self,
        outlet_count: int = OUTLET_COUNT,
        *,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self._clock = clock
        self._states: list[bool] = [False] * outlet_count
        self._listeners: list[StateListener] = []

    @property
    def outlet_count(self) -> int:
        return len(self._states)

    def _check(self, outlet: int) -> None:
        if not 1 <= outlet <= len(self._states):
            raise ValueError(f"outlet must be between 1 and {len(self._states)}, got {outlet}")

    def get(self, outlet: int) -> bool:
        """Last confirmed value of *outlet*."""
        self._check(outlet)
        return self._states[outlet - 1]

    def snapshot(self) -> tuple[bool, ...]:
        return tuple(self._states)

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register *listener* for change events; returns an unsubscribe callable."""
        self._listeners.append(listener)

        def _remove() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return _remove

    def update_outlet_state(self, outlet: int, on: bool) -> bool:
        """Apply a confirmed status value.

        Returns ``True`` when the stored value changed (and listeners were
        notified). Out-of-range outlets are ignored.
        """
        if not 1 <= outlet <= len(self._states):
            _logger.debug("Ignoring status for unknown outlet %s", outlet)
            return False

        previous = self._states[outlet - 1]
        if previous == on:
            return False

        self._states[outlet - 1] = on
        _logger.debug("Updating outlet %s to %s", outlet, on)
        event = OutletStateChange(outlet=outlet, on=on, previous=previous, observed_at=self._clock())
        for listener in list(self._listeners):
            try:
                listener(event)
            except Exception:
                _logger.debug("Outlet state listener failed", exc_info=True)
        return True
