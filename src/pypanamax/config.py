"""Client configuration for pypanamax."""

from __future__ import annotations

import dataclasses
import os
from collections.abc import Mapping, Sequence
from typing import Any

from pypanamax._constants import (
    CONNECT_TIMEOUT,
    DEFAULT_NAME,
    DEFAULT_PORT,
    OUTLET_COUNT,
    POLL_SETTLE_DELAY,
    READ_CHUNK_SIZE,
    RECONNECT_DELAY,
    RECONNECT_MAX_DELAY,
    SETTLE_DELAY,
)
from pypanamax.exceptions import PanamaxConfigError


def _env_bool(env: Mapping[str, str], key: str, default: bool) -> bool:
    raw = env.get(key)
    if raw is None:
        return default
    normalized = raw.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    raise PanamaxConfigError(f"{key} must be a boolean, got {raw!r}")


def _env_float(env: Mapping[str, str], key: str) -> float | None:
    raw = env.get(key)
    if raw is None:
        return None
    try:
        return float(raw)
    except ValueError as exc:
        raise PanamaxConfigError(f"{key} must be a number, got {raw!r}") from exc


@dataclasses.dataclass(frozen=True)
class OutletConfig:
    """Per-outlet exposure settings.

    Parameters
    ----------
    enabled : bool
        Whether the outlet is exposed as a switch service.
    name : str
        Display label. Empty means ``"Outlet <n>"``.
    """

    enabled: bool = True
    name: str = ""

    def display_name(self, outlet: int) -> str:
        return self.name or f"Outlet {outlet}"


@dataclasses.dataclass(frozen=True)
class ReconnectPolicy:
    """When and how often to reopen a closed connection.

    The default reproduces the device's classic behavior: a fixed
    5 second pause, retried forever.

    Parameters
    ----------
    delay : float
        Seconds to wait before the first reconnect attempt.
    multiplier : float
        Backoff factor applied per consecutive failed attempt.
        ``1.0`` keeps the delay fixed.
    max_delay : float
        Upper bound for the computed delay.
    max_attempts : int or None
        Stop reconnecting after this many consecutive attempts.
        ``None`` retries forever.
    """

    delay: float = RECONNECT_DELAY
    multiplier: float = 1.0
    max_delay: float = RECONNECT_MAX_DELAY
    max_attempts: int | None = None

    def __post_init__(self) -> None:
        if self.delay < 0:
            raise PanamaxConfigError(f"reconnect delay must be >= 0, got {self.delay}")
        if self.multiplier < 1.0:
            raise PanamaxConfigError(f"reconnect multiplier must be >= 1.0, got {self.multiplier}")
        if self.max_attempts is not None and self.max_attempts < 0:
            raise PanamaxConfigError(f"max_attempts must be >= 0, got {self.max_attempts}")

    def delay_for(self, attempt: int) -> float:
        """Delay before reconnect attempt number *attempt* (1-based)."""
        exponent = max(attempt - 1, 0)
        return min(self.delay * (self.multiplier**exponent), max(self.max_delay, self.delay))

    def allows(self, attempt: int) -> bool:
        return self.max_attempts is None or attempt <= self.max_attempts


def _normalize_outlets(outlets: Sequence[OutletConfig], outlet_count: int) -> tuple[OutletConfig, ...]:
    if len(outlets) > outlet_count:
        raise PanamaxConfigError(f"device has {outlet_count} outlets, got {len(outlets)} outlet configs")
    padded = list(outlets)
    # Outlets missing from the configuration exist on the device but are not exposed.
    padded.extend(OutletConfig(enabled=False) for _ in range(outlet_count - len(padded)))
    return tuple(padded)


@dataclasses.dataclass(frozen=True)
class PanamaxConfig:
    """Client configuration.

    Parameters
    ----------
    host : str
        Device IP address or hostname.
    name : str
        Accessory display name.
    port : int
        Telnet port. The device always listens on 23.
    outlets : tuple of OutletConfig
        One entry per physical outlet, in outlet order. Shorter sequences
        are padded with disabled outlets.
    outlet_count : int
        Number of physical outlets on the device.
    settle_delay : float
        Seconds between a successful command write and the follow-up
        status poll.
    poll_settle_delay : float
        Seconds between that poll and sending the next queued command.
    connect_timeout : float
        Seconds allowed for a single connection attempt.
    read_chunk_size : int
        Maximum bytes requested per socket read.
    buffer_partial_lines : bool
        Keep an unterminated trailing fragment and join it with the next
        received chunk. Off by default: status lines split across reads
        are dropped.
    reconnect : ReconnectPolicy
        Reconnect timing after the connection closes.
    """

    host: str
    name: str = DEFAULT_NAME
    port: int = DEFAULT_PORT
    outlets: tuple[OutletConfig, ...] = dataclasses.field(
        default_factory=lambda: tuple(OutletConfig() for _ in range(OUTLET_COUNT))
    )
    outlet_count: int = OUTLET_COUNT
    settle_delay: float = SETTLE_DELAY
    poll_settle_delay: float = POLL_SETTLE_DELAY
    connect_timeout: float = CONNECT_TIMEOUT
    read_chunk_size: int = READ_CHUNK_SIZE
    buffer_partial_lines: bool = False
    reconnect: ReconnectPolicy = dataclasses.field(default_factory=ReconnectPolicy)

    def __post_init__(self) -> None:
        if not self.host or not self.host.strip():
            raise PanamaxConfigError("host must be non-empty")
        if self.outlet_count < 1:
            raise PanamaxConfigError(f"outlet_count must be >= 1, got {self.outlet_count}")
        for field_name in ("settle_delay", "poll_settle_delay", "connect_timeout"):
            if getattr(self, field_name) < 0:
                raise PanamaxConfigError(f"{field_name} must be >= 0")
        if self.read_chunk_size < 1:
            raise PanamaxConfigError(f"read_chunk_size must be >= 1, got {self.read_chunk_size}")
        object.__setattr__(self, "host", self.host.strip())
        object.__setattr__(self, "outlets", _normalize_outlets(self.outlets, self.outlet_count))

    def outlet(self, number: int) -> OutletConfig:
        """Return the configuration of 1-based outlet *number*."""
        if not 1 <= number <= self.outlet_count:
            raise ValueError(f"outlet must be between 1 and {self.outlet_count}, got {number}")
        return self.outlets[number - 1]

    def outlet_name(self, number: int) -> str:
        return self.outlet(number).display_name(number)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], **overrides: Any) -> PanamaxConfig:
        """Create configuration from an accessory-style mapping.

        Accepts the shape used by plugin configuration files::

            {"name": "Rack", "ip": "10.0.0.5",
             "outlets": [{"enabled": true, "name": "Lamp"}, ...]}

        ``host`` is accepted as an alias for ``ip``.
        """
        host = data.get("ip") or data.get("host")
        if not isinstance(host, str):
            raise PanamaxConfigError("configuration needs an 'ip' (or 'host') string")

        raw_outlets = data.get("outlets") or []
        if not isinstance(raw_outlets, Sequence) or isinstance(raw_outlets, str):
            raise PanamaxConfigError("'outlets' must be a list")

        outlets: list[OutletConfig] = []
        for index, item in enumerate(raw_outlets, start=1):
            if not isinstance(item, Mapping):
                raise PanamaxConfigError(f"outlet {index} must be an object")
            outlets.append(
                OutletConfig(
                    enabled=bool(item.get("enabled", False)),
                    name=str(item.get("name") or ""),
                )
            )

        kwargs: dict[str, Any] = {"host": host, "outlets": tuple(outlets)}
        name = data.get("name")
        if isinstance(name, str) and name:
            kwargs["name"] = name
        kwargs.update(overrides)
        return cls(**kwargs)

    @classmethod
    def from_env(cls, **overrides: Any) -> PanamaxConfig:
        """Create configuration from environment variables.

        Reads ``PANAMAX_HOST`` and optional ``PANAMAX_*`` variables.
        Explicit keyword arguments override environment values.

        ``PANAMAX_OUTLET_NAMES`` is a comma-separated list in outlet order;
        an empty entry leaves that outlet disabled.
        """
        env = os.environ
        config_kwargs: dict[str, Any] = {}

        for env_key, field_name in (("PANAMAX_HOST", "host"), ("PANAMAX_NAME", "name")):
            val = env.get(env_key)
            if val is not None:
                config_kwargs[field_name] = val

        port_env = env.get("PANAMAX_PORT")
        if port_env is not None and "port" not in overrides:
            try:
                config_kwargs["port"] = int(port_env)
            except ValueError as exc:
                raise PanamaxConfigError(f"PANAMAX_PORT must be an integer, got {port_env!r}") from exc

        for env_key, field_name in (
            ("PANAMAX_SETTLE_DELAY", "settle_delay"),
            ("PANAMAX_POLL_SETTLE_DELAY", "poll_settle_delay"),
        ):
            value = _env_float(env, env_key)
            if value is not None and field_name not in overrides:
                config_kwargs[field_name] = value

        reconnect_delay = _env_float(env, "PANAMAX_RECONNECT_DELAY")
        if reconnect_delay is not None and "reconnect" not in overrides:
            config_kwargs["reconnect"] = ReconnectPolicy(delay=reconnect_delay)

        if "buffer_partial_lines" not in overrides:
            config_kwargs["buffer_partial_lines"] = _env_bool(env, "PANAMAX_BUFFER_PARTIAL_LINES", False)

        names_env = env.get("PANAMAX_OUTLET_NAMES")
        if names_env is not None and "outlets" not in overrides:
            names = [part.strip() for part in names_env.split(",")]
            config_kwargs["outlets"] = tuple(OutletConfig(enabled=bool(n), name=n) for n in names)

        config_kwargs.update(overrides)
        if "host" not in config_kwargs:
            raise PanamaxConfigError("PANAMAX_HOST is not set")
        return cls(**config_kwargs)
