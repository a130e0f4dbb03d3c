"""Line codec for the Panamax telnet command set.

Outbound commands are ``\\r\\n`` terminated::

    !SWITCH <n> ON
    !SWITCH <n> OFF
    ?OUTLETSTAT

The device answers (and pushes unsolicited changes) with one status
assertion per ``\\n`` separated line::

    $OUTLET<n> = ON
    $OUTLET<n> = OFF

Anything else on the wire (banners, prompts, echoes) is ignored.
"""

from __future__ import annotations

import re

from pydantic import BaseModel, ConfigDict, Field

from pypanamax._constants import LINE_TERMINATOR, STATUS_REQUEST

STATUS_LINE_RE = re.compile(r"^\$OUTLET(\d+) = (ON|OFF)")

__all__ = [
    "STATUS_LINE_RE",
    "STATUS_REQUEST",
    "LineBuffer",
    "OutletStatus",
    "build_switch_command",
    "parse_status_chunk",
    "parse_status_line",
]


class OutletStatus(BaseModel):
    """One ``$OUTLET<n> = ON|OFF`` assertion."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    outlet: int = Field(..., ge=0, description="1-based outlet number as reported")
    on: bool


def build_switch_command(outlet: int, on: bool) -> str:
    """Build the ``!SWITCH`` command for 1-based *outlet*."""
    if outlet < 1:
        raise ValueError(f"outlet must be >= 1, got {outlet}")
    return f"!SWITCH {outlet} {'ON' if on else 'OFF'}{LINE_TERMINATOR}"


def parse_status_line(line: str) -> OutletStatus | None:
    """Parse a single status line, or return ``None`` if it is not one."""
    match = STATUS_LINE_RE.match(line.strip())
    if match is None:
        return None
    return OutletStatus(outlet=int(match.group(1)), on=match.group(2) == "ON")


def parse_status_chunk(text: str) -> list[OutletStatus]:
    """Parse every status line in a received chunk, in order."""
    statuses: list[OutletStatus] = []
    for line in text.split("\n"):
        status = parse_status_line(line)
        if status is not None:
            statuses.append(status)
    return statuses


class LineBuffer:
    """Reassemble lines split across socket reads.

    ``feed`` returns the text made of complete lines only and keeps the
    unterminated tail for the next call.
    """

    def __init__(self) -> None:
        self._partial = ""

    @property
    def pending(self) -> str:
        return self._partial

    def feed(self, chunk: str) -> str:
        data = self._partial + chunk
        head, sep, tail = data.rpartition("\n")
        if not sep:
            self._partial = data
            return ""
        self._partial = tail
        return head + sep

    def clear(self) -> None:
        self._partial = ""
