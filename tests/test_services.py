from __future__ import annotations

import asyncio

import pytest

from pypanamax import (
    AccessoryInformation,
    OutletConfig,
    PanamaxClient,
    PanamaxConfig,
    PanamaxNotConnectedError,
    SwitchService,
)
from pypanamax.exceptions import PanamaxTransportWriteError
from pypanamax.services import build_services


def _config() -> PanamaxConfig:
    return PanamaxConfig(
        host="10.0.0.5",
        name="Rack",
        outlets=(
            OutletConfig(name="Lamp"),
            OutletConfig(enabled=False, name="Spare"),
            OutletConfig(),
        ),
    )


def _switches(services: list[AccessoryInformation | SwitchService]) -> list[SwitchService]:
    return [s for s in services if isinstance(s, SwitchService)]


async def _noop_set(outlet: int, on: bool) -> None:
    return None


def test_services_expose_information_and_enabled_outlets() -> None:
    services = build_services(_config(), get_state=lambda n: False, set_state=_noop_set)

    info = services[0]
    assert info == AccessoryInformation(
        name="Rack",
        manufacturer="Panamax",
        model="M4315",
        serial_number="123-456-789",
    )
    assert [(s.outlet, s.name, s.subtype) for s in _switches(services)] == [
        (1, "Lamp", "outlet1"),
        (3, "Outlet 3", "outlet3"),
    ]


def test_handle_get_reports_value_or_error() -> None:
    results: list[tuple[BaseException | None, bool | None]] = []

    def _disconnected(outlet: int) -> bool:
        raise PanamaxNotConnectedError()

    SwitchService(1, "Lamp", get_state=lambda n: True, set_state=_noop_set).handle_get(
        lambda err, value: results.append((err, value))
    )
    SwitchService(1, "Lamp", get_state=_disconnected, set_state=_noop_set).handle_get(
        lambda err, value: results.append((err, value))
    )

    assert results[0] == (None, True)
    assert isinstance(results[1][0], PanamaxNotConnectedError)
    assert results[1][1] is None


@pytest.mark.asyncio
async def test_handle_set_calls_back_with_outcome() -> None:
    calls: list[tuple[int, bool]] = []
    ok_outcomes: list[BaseException | None] = []
    bad_outcomes: list[BaseException | None] = []

    async def _set(outlet: int, on: bool) -> None:
        calls.append((outlet, on))
        if outlet == 2:
            raise PanamaxTransportWriteError("write failed")

    ok = SwitchService(1, "Lamp", get_state=lambda n: False, set_state=_set)
    bad = SwitchService(2, "Fan", get_state=lambda n: False, set_state=_set)

    await asyncio.gather(
        ok.handle_set(True, ok_outcomes.append),
        bad.handle_set(False, bad_outcomes.append),
        return_exceptions=True,
    )
    await asyncio.sleep(0)

    assert calls == [(1, True), (2, False)]
    assert ok_outcomes == [None]
    assert len(bad_outcomes) == 1
    assert isinstance(bad_outcomes[0], PanamaxTransportWriteError)


def test_subscribers_receive_pushed_values() -> None:
    service = SwitchService(1, "Lamp", get_state=lambda n: False, set_state=_noop_set)
    values: list[bool] = []

    def _broken(value: bool) -> None:
        raise RuntimeError("boom")

    service.subscribe(_broken)
    remove = service.subscribe(values.append)
    service.update_value(True)
    remove()
    service.update_value(False)

    assert values == [True]
    assert service.value is False


def test_client_pushes_confirmed_changes_to_its_services() -> None:
    client = PanamaxClient(_config())
    services = client.get_services()
    assert client.get_services() == services

    lamp, third = _switches(services)
    lamp_values: list[bool] = []
    lamp.subscribe(lamp_values.append)

    client.store.update_outlet_state(1, True)
    client.store.update_outlet_state(1, True)
    client.store.update_outlet_state(2, True)

    assert lamp_values == [True]
    assert lamp.value is True
    assert third.value is None


def test_client_services_report_not_connected() -> None:
    client = PanamaxClient(_config())
    lamp = _switches(client.get_services())[0]
    results: list[tuple[BaseException | None, bool | None]] = []

    lamp.handle_get(lambda err, value: results.append((err, value)))

    assert isinstance(results[0][0], PanamaxNotConnectedError)
