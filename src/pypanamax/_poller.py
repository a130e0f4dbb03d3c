"""Status polling (``?OUTLETSTAT``)."""

from __future__ import annotations

import logging

from pypanamax._constants import ENCODING, STATUS_REQUEST
from pypanamax._transport import Transport
from pypanamax.exceptions import PanamaxTransportError

_logger = logging.getLogger(__name__)


class StatusPoller:
    """Asks the device to report every outlet's status.

    Poll failures are logged and dropped; the next connect or dispatched
    command triggers another poll anyway.
    """

    def __init__(self, transport: Transport) -> None:
        self._transport = transport

    async def poll(self) -> bool:
        """Write the status request. Returns ``True`` if it was sent."""
        if not self._transport.connected:
            return False

        _logger.debug("Polling outlet states: %s", STATUS_REQUEST.strip())
        try:
            await self._transport.write(STATUS_REQUEST.encode(ENCODING))
        except PanamaxTransportError as exc:
            _logger.error("Error sending poll command: %s", exc)
            return False
        _logger.debug("Poll command sent successfully")
        return True
