"""State/store layer.

Status lines from the device are the only input that moves outlet state;
everything else (commands, polls) merely provokes the device to send them.
"""

from pypanamax.state.events import OutletStateChange
from pypanamax.state.store import OutletStateStore, StateListener

__all__ = ["OutletStateChange", "OutletStateStore", "StateListener"]
