"""Custom exception hierarchy for pypanamax."""

from __future__ import annotations


class PanamaxError(Exception):
    """Base exception for all pypanamax errors."""


class PanamaxConfigError(PanamaxError):
    """Invalid or missing configuration."""


class PanamaxNotConnectedError(PanamaxError):
    """The device session is not currently connected.

    Raised synchronously by ``get_state``/``set_state``. The library never
    retries on behalf of the caller.
    """

    def __init__(self, message: str = "Not connected to Panamax M4315") -> None:
        super().__init__(message)


class PanamaxTransportError(PanamaxError):
    """Socket-level failure (connect, read, write)."""

    def __init__(
        self,
        message: str,
        *,
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.host = host
        self.port = port
        super().__init__(message)


class PanamaxTransportWriteError(PanamaxTransportError):
    """Writing a command to the socket failed.

    Delivered on the failing command's completion; the dispatcher moves on
    to the next queued command without retrying.
    """

    def __init__(
        self,
        message: str,
        *,
        command: str = "",
        host: str = "",
        port: int | None = None,
    ) -> None:
        self.command = command
        super().__init__(message, host=host, port=port)


class PanamaxConnectionError(PanamaxTransportError):
    """Opening the connection failed.

    Absorbed by the transport; callers only observe ``connected=False``.
    """


class PanamaxConnectionClosedError(PanamaxTransportError):
    """The device (or network) closed the connection."""
