#!/usr/bin/env python3
"""Live console for a Panamax outlet controller.

Connects to the device, waits for the first status report and then runs
one action:

- ``status``: print every outlet's confirmed state
- ``on N`` / ``off N``: switch outlet N and print the confirmed result
- ``watch``: stay connected and print every state change until Ctrl+C

Connection settings come from ``--host`` or ``PANAMAX_HOST`` (plus the
other ``PANAMAX_*`` variables understood by ``PanamaxConfig.from_env``).
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pypanamax import (  # noqa: E402
    OutletStateChange,
    PanamaxClient,
    PanamaxConfig,
    PanamaxConfigError,
    PanamaxError,
)


def _parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--host", help="Device IP or hostname (default: $PANAMAX_HOST)")
    parser.add_argument("--timeout", type=float, default=10.0, help="Seconds to wait for the connection")
    parser.add_argument("--settle", type=float, default=1.5, help="Seconds to wait for status after a switch")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="action", required=True)
    sub.add_parser("status", help="Print all outlet states")
    for action in ("on", "off"):
        cmd = sub.add_parser(action, help=f"Switch an outlet {action}")
        cmd.add_argument("outlet", type=int, help="Outlet number (1-based)")
    sub.add_parser("watch", help="Print state changes until interrupted")
    return parser.parse_args(argv)


def _print_states(client: PanamaxClient) -> None:
    for number, on in enumerate(client.outlet_states, start=1):
        outlet = client.config.outlet(number)
        marker = "" if outlet.enabled else " (hidden)"
        print(f"{number:>2}  {'ON ' if on else 'OFF'}  {client.outlet_name(number)}{marker}")


def _print_change(event: OutletStateChange) -> None:
    print(f"{event.observed_at.isoformat()}  outlet {event.outlet}: {'ON' if event.on else 'OFF'}")


async def _run(args: argparse.Namespace) -> int:
    overrides = {"host": args.host} if args.host else {}
    try:
        config = PanamaxConfig.from_env(**overrides)
    except PanamaxConfigError as exc:
        print(f"Configuration error: {exc}", file=sys.stderr)
        return 2

    on_change = _print_change if args.action == "watch" else None
    async with PanamaxClient(config, on_state_change=on_change) as client:
        if not await client.wait_connected(args.timeout):
            print(f"Could not connect to {config.host}:{config.port}", file=sys.stderr)
            return 1
        # The connect-time poll answers within a fraction of a second.
        await asyncio.sleep(config.settle_delay)

        if args.action == "status":
            _print_states(client)
            return 0

        if args.action in {"on", "off"}:
            try:
                await client.set_state(args.outlet, args.action == "on")
            except (PanamaxError, ValueError) as exc:
                print(f"Switch failed: {exc}", file=sys.stderr)
                return 1
            await asyncio.sleep(args.settle)
            _print_states(client)
            return 0

        _print_states(client)
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
        return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 130


if __name__ == "__main__":
    raise SystemExit(main())
