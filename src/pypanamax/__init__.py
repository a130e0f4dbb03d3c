"""pypanamax - Async Python client for Panamax M4315 outlet controllers."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("pypanamax")
except PackageNotFoundError:
    __version__ = "0+local"
from pypanamax._dispatcher import DispatcherState
from pypanamax._transport import ConnectionState
from pypanamax.client import PanamaxClient
from pypanamax.config import OutletConfig, PanamaxConfig, ReconnectPolicy
from pypanamax.exceptions import (
    PanamaxConfigError,
    PanamaxConnectionClosedError,
    PanamaxConnectionError,
    PanamaxError,
    PanamaxNotConnectedError,
    PanamaxTransportError,
    PanamaxTransportWriteError,
)
from pypanamax.services import AccessoryInformation, SwitchService
from pypanamax.state import OutletStateChange, OutletStateStore

__all__ = [
    "__version__",
    "AccessoryInformation",
    "ConnectionState",
    "DispatcherState",
    "OutletConfig",
    "OutletStateChange",
    "OutletStateStore",
    "PanamaxClient",
    "PanamaxConfig",
    "PanamaxConfigError",
    "PanamaxConnectionClosedError",
    "PanamaxConnectionError",
    "PanamaxError",
    "PanamaxNotConnectedError",
    "PanamaxTransportError",
    "PanamaxTransportWriteError",
    "ReconnectPolicy",
    "SwitchService",
]
